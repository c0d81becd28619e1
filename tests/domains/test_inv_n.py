# tests/domains/test_inv_n.py

"""
'inv' 도메인 (재고 원장) 관련 API 엔드포인트에 대한 통합 테스트 모듈입니다.
"""

import uuid

import pytest
from httpx import AsyncClient
from sqlmodel import update
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.domains.inv import models as inv_models


def _entry(catalog, quantity, option_id=None, **extra):
    return {
        "item_id": str(catalog.item_id),
        "item_feature_id": str(catalog.size_id),
        "feature_option_id": str(option_id or catalog.size_m_id),
        "quantity": quantity,
        **extra,
    }


# =============================================================================
# 1. movements 엔드포인트 테스트
# =============================================================================
@pytest.mark.asyncio
async def test_create_movement_receipt(authorized_client: AsyncClient, catalog, stock_of):
    """입고 기록 → 변형 재고와 품목 재고가 함께 증가합니다. (성공)"""
    response = await authorized_client.post(
        "/api/v1/inv/movements",
        json={"observation": "Entrada inicial", "items": [_entry(catalog, 100), _entry(catalog, 30, catalog.size_g_id)]},
    )

    assert response.status_code == 201
    movement = response.json()
    assert movement["referral_id"] == 1
    assert movement["movement_type"] == inv_models.MovementType.MANUAL.value
    assert [i["quantity"] for i in movement["items"]] == [100, 30]
    assert movement["user_id"] is not None

    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (100, 130)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_g_id) == (30, 130)


@pytest.mark.asyncio
async def test_create_movement_debit_insufficient(authorized_client: AsyncClient, catalog, stock_of):
    """재고보다 많은 출고는 409, 아무것도 기록되지 않습니다. (실패)"""
    await authorized_client.post("/api/v1/inv/movements", json={"items": [_entry(catalog, 10)]})

    response = await authorized_client.post("/api/v1/inv/movements", json={"items": [_entry(catalog, -11)]})
    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["context"]["requested"] == 11
    assert body["context"]["available"] == 10

    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (10, 10)
    movements = await authorized_client.get("/api/v1/inv/movements")
    assert len(movements.json()) == 1


@pytest.mark.asyncio
async def test_create_movement_zero_quantity_rejected(authorized_client: AsyncClient, catalog):
    """수량 0 항목은 요청 검증 단계에서 422. (실패)"""
    response = await authorized_client.post("/api/v1/inv/movements", json={"items": [_entry(catalog, 0)]})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_movement_invalid_variant(authorized_client: AsyncClient, catalog):
    """사이즈 특성에 색상 옵션을 쓰면 422 (VALIDATION_ERROR). (실패)"""
    response = await authorized_client.post(
        "/api/v1/inv/movements", json={"items": [_entry(catalog, 5, catalog.blue_id)]}
    )
    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_movement_requires_auth(client: AsyncClient, catalog):
    """비인증 사용자는 재고를 기록할 수 없습니다. (실패)"""
    response = await client.post("/api/v1/inv/movements", json={"items": [_entry(catalog, 5)]})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_read_movement_by_id(authorized_client: AsyncClient, catalog):
    """원장 헤더와 항목을 함께 조회합니다. (성공)"""
    created = (await authorized_client.post("/api/v1/inv/movements", json={"items": [_entry(catalog, 7)]})).json()

    response = await authorized_client.get(f"/api/v1/inv/movements/{created['id']}")
    assert response.status_code == 200
    assert response.json()["items"][0]["quantity"] == 7

    missing = await authorized_client.get(f"/api/v1/inv/movements/{uuid.uuid4()}")
    assert missing.status_code == 404


# =============================================================================
# 2. stocks / stock_items 엔드포인트 테스트
# =============================================================================
@pytest.mark.asyncio
async def test_read_stock_detail_and_threshold(authorized_client: AsyncClient, catalog):
    """재고 상세(변형 포함)와 최소 재고 미달 표시. (성공)"""
    await authorized_client.post(
        "/api/v1/inv/movements", json={"items": [_entry(catalog, 20), _entry(catalog, 5, catalog.size_g_id)]}
    )

    detail = await authorized_client.get(f"/api/v1/inv/stocks/{catalog.item_id}")
    assert detail.status_code == 200
    body = detail.json()
    assert body["quantity"] == 25
    assert sorted(v["quantity"] for v in body["variants"]) == [5, 20]

    # catalog 픽스처의 min_stock 은 50
    below = await authorized_client.get("/api/v1/inv/stocks", params={"below_min_only": True})
    assert [s["item_id"] for s in below.json()] == [str(catalog.item_id)]
    assert below.json()[0]["below_min_stock"] is True


@pytest.mark.asyncio
async def test_read_stock_not_found(authorized_client: AsyncClient, catalog):
    """입고 기록이 없는 품목의 재고 조회는 404. (실패)"""
    response = await authorized_client.get(f"/api/v1/inv/stocks/{catalog.item_id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_read_stock_items_filtered_by_variant(authorized_client: AsyncClient, catalog):
    """변형 키로 재고 행을 필터링합니다. (성공)"""
    await authorized_client.post(
        "/api/v1/inv/movements", json={"items": [_entry(catalog, 3), _entry(catalog, 4, catalog.size_g_id)]}
    )
    response = await authorized_client.get(
        "/api/v1/inv/stock_items", params={"feature_option_id": str(catalog.size_g_id)}
    )
    assert response.status_code == 200
    assert [s["quantity"] for s in response.json()] == [4]


@pytest.mark.asyncio
async def test_additional_features_linked_once(authorized_client: AsyncClient, catalog):
    """보조 특성(색상)은 같은 재고 행에 한 번만 연결됩니다. (성공)"""
    extra = {"additional_features": [{"item_feature_id": str(catalog.color_id), "feature_option_id": str(catalog.blue_id)}]}
    for quantity in (10, 5):
        response = await authorized_client.post(
            "/api/v1/inv/movements", json={"items": [_entry(catalog, quantity, **extra)]}
        )
        assert response.status_code == 201

    stock_items = (await authorized_client.get(
        "/api/v1/inv/stock_items", params={"item_id": str(catalog.item_id)}
    )).json()
    assert len(stock_items) == 1
    assert stock_items[0]["quantity"] == 15

    links = await authorized_client.get(f"/api/v1/inv/stock_items/{stock_items[0]['id']}/additional_items")
    assert links.status_code == 200
    assert len(links.json()) == 1
    assert links.json()[0]["feature_option_id"] == str(catalog.blue_id)


# =============================================================================
# 3. 재고 정합성 점검 (reconcile) 테스트
# =============================================================================
@pytest.mark.asyncio
async def test_reconcile_reports_no_drift(admin_client: AsyncClient, catalog):
    """원장과 집계가 일치하면 drift 가 없습니다. (성공)"""
    await admin_client.post("/api/v1/inv/movements", json={"items": [_entry(catalog, 12), _entry(catalog, -2)]})

    response = await admin_client.post("/api/v1/inv/stocks/reconcile")
    assert response.status_code == 200
    report = response.json()
    assert report["checked_stocks"] == 1
    assert report["checked_stock_items"] == 1
    assert report["drifts"] == []
    assert report["job_id"] is None


@pytest.mark.asyncio
async def test_reconcile_reports_drift(admin_client: AsyncClient, db_session: AsyncSession, catalog, stock_of):
    """저장된 값을 직접 바꾸면 drift 로 보고되고, 값은 고쳐지지 않습니다. (성공)"""
    await admin_client.post("/api/v1/inv/movements", json={"items": [_entry(catalog, 12)]})

    await db_session.execute(
        update(inv_models.StockItem)
        .where(inv_models.StockItem.item_id == catalog.item_id)
        .values(quantity=9)
    )
    await db_session.commit()

    report = (await admin_client.post("/api/v1/inv/stocks/reconcile")).json()
    drifts = {d["kind"]: d for d in report["drifts"]}
    assert drifts["stock_item"]["stored"] == 9
    assert drifts["stock_item"]["expected"] == 12
    # Stock 은 저장된 StockItem 합계(9)와 비교합니다.
    assert drifts["stock"]["stored"] == 12
    assert drifts["stock"]["expected"] == 9

    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (9, 12)


@pytest.mark.asyncio
async def test_reconcile_forbidden_for_operator(authorized_client: AsyncClient):
    """정합성 점검은 관리자 전용입니다. (실패)"""
    response = await authorized_client.post("/api/v1/inv/stocks/reconcile")
    assert response.status_code == 403
