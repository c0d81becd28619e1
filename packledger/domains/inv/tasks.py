# packledger/domains/inv/tasks.py

"""
'inv' 도메인의 백그라운드 작업(ARQ) 모듈입니다.

reconcile_stock_balances 는 읽기 전용 점검입니다.
저장된 재고 집계를 원장/할당으로부터 다시 계산한 값과 비교해 차이가 나는 행을 보고할 뿐,
어떤 값도 고치지 않습니다.
"""

import logging
from collections import defaultdict
from typing import Any, Dict

from sqlalchemy import func
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.database import get_async_session_context
from packledger.domains.exp import models as exp_models
from packledger.domains.inv import models as inv_models
from packledger.domains.inv import schemas as inv_schemas

logger = logging.getLogger(__name__)


async def _sum_by_variant(db: AsyncSession, model) -> Dict[tuple, int]:
    result = await db.execute(
        select(model.item_id, model.item_feature_id, model.feature_option_id, func.sum(model.quantity))
        .group_by(model.item_id, model.item_feature_id, model.feature_option_id)
    )
    return {(row[0], row[1], row[2]): int(row[3] or 0) for row in result.all()}


async def audit_stock_balances(db: AsyncSession) -> inv_schemas.ReconcileReport:
    """
    StockItem: 기대값 = Σ 원장 항목 − Σ 활성 할당 (변형 키별)
    Stock:     기대값 = Σ StockItem.quantity (품목별, 저장된 값 기준)
    """
    ledger = await _sum_by_variant(db, inv_models.MovementItem)
    allocated = await _sum_by_variant(db, exp_models.BoxItem)

    report = inv_schemas.ReconcileReport()
    variant_totals: Dict[Any, int] = defaultdict(int)

    result = await db.execute(select(inv_models.StockItem))
    for db_stock_item in result.scalars().all():
        key = (db_stock_item.item_id, db_stock_item.item_feature_id, db_stock_item.feature_option_id)
        expected = ledger.get(key, 0) - allocated.get(key, 0)
        report.checked_stock_items += 1
        variant_totals[db_stock_item.item_id] += db_stock_item.quantity
        if db_stock_item.quantity != expected:
            report.drifts.append(inv_schemas.StockDrift(
                kind="stock_item",
                id=db_stock_item.id,
                item_id=db_stock_item.item_id,
                stored=db_stock_item.quantity,
                expected=expected,
            ))

    result = await db.execute(select(inv_models.Stock))
    for db_stock in result.scalars().all():
        expected = variant_totals.get(db_stock.item_id, 0)
        report.checked_stocks += 1
        if db_stock.quantity != expected:
            report.drifts.append(inv_schemas.StockDrift(
                kind="stock",
                id=db_stock.id,
                item_id=db_stock.item_id,
                stored=db_stock.quantity,
                expected=expected,
            ))

    for drift in report.drifts:
        logger.warning(
            "Stock drift on %s %s (item %s): stored %d, expected %d",
            drift.kind, drift.id, drift.item_id, drift.stored, drift.expected,
        )
    logger.info(
        "Stock reconciliation checked %d stocks / %d variants, %d drifts",
        report.checked_stocks, report.checked_stock_items, len(report.drifts),
    )
    return report


async def reconcile_stock_balances(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """ARQ 워커에서 실행되는 재고 정합성 점검 작업"""
    logger.info("백그라운드 작업 시작: 재고 정합성 점검")
    async with get_async_session_context() as db:
        report = await audit_stock_balances(db)
    return report.model_dump(mode="json")
