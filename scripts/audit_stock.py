# flake8: noqa
# scripts/audit_stock.py

"""
재고 정합성 점검을 명령행에서 실행합니다. (ARQ 워커 없이)
저장된 재고 집계와 원장/할당으로부터 다시 계산한 값을 비교만 하며, 어떤 값도 고치지 않습니다.

    python scripts/audit_stock.py --fail-on-drift
"""

import asyncio
import logging
import typer

from packledger.core.database import get_async_session_context
from packledger.domains.inv.tasks import audit_stock_balances
import packledger.domains.models  # noqa: F401

cli = typer.Typer()


@cli.command()
def main(
    fail_on_drift: bool = typer.Option(
        False, '--fail-on-drift',
        help="차이가 하나라도 있으면 종료 코드 1 로 끝냅니다."
    ),
    verbose: bool = typer.Option(False, '--verbose', '-v', help="로그를 DEBUG 수준으로 출력합니다."),
):
    """저장된 Stock / StockItem 값을 원장 기준 기대값과 비교합니다."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)

    async def run_audit():
        async with get_async_session_context() as db:
            return await audit_stock_balances(db)

    report = asyncio.run(run_audit())
    typer.echo(
        f"점검 완료: 재고 {report.checked_stocks}건, 변형 재고 {report.checked_stock_items}건, "
        f"불일치 {len(report.drifts)}건"
    )
    for drift in report.drifts:
        typer.echo(f"  [{drift.kind}] {drift.id} item={drift.item_id} stored={drift.stored} expected={drift.expected}")

    if fail_on_drift and report.drifts:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    cli()
