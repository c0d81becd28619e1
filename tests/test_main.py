# tests/test_main.py

"""
FastAPI 애플리케이션의 메인 엔드포인트에 대한 통합 테스트를 정의하는 모듈입니다.

- 애플리케이션의 루트 경로 (`/`) 응답을 테스트합니다.
- 데이터베이스 연결 헬스 체크 엔드포인트 (`/health-check`)를 테스트합니다.
- 원장 오류(LedgerError)가 {"detail", "code"} 응답으로 변환되는지 테스트합니다.
"""

import uuid

import pytest
from httpx import AsyncClient

from packledger import APP_NAME


@pytest.mark.asyncio
async def test_read_root(client: AsyncClient):
    """루트 엔드포인트 (`GET /`)가 올바르게 응답하는지 테스트합니다."""
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": f"Welcome to {APP_NAME}. Visit /docs for interactive API documentation."}


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """헬스 체크 엔드포인트가 데이터베이스 연결 상태를 올바르게 반환하는지 테스트합니다."""
    response = await client.get("/health-check")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database_connection": "successful"}


@pytest.mark.asyncio
async def test_ledger_error_is_rendered_with_code(authorized_client: AsyncClient):
    """없는 주문을 조회하면 NotFound 가 404 + code 로 변환됩니다."""
    missing_id = uuid.uuid4()
    response = await authorized_client.get(f"/api/v1/ord/orders/{missing_id}")

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "NOT_FOUND"
    assert str(missing_id) in body["detail"]
    assert body["context"]["entity_id"] == str(missing_id)
