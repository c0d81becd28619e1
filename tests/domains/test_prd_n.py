# tests/domains/test_prd_n.py

"""
'prd' 도메인 (생산 오더) 관련 API 엔드포인트에 대한 통합 테스트 모듈입니다.

- 생산 오더 입고에 따른 delivered_quantity 누적
- 상태 이벤트: Finalizada 이후 추가 불가, 마감일 기록
- 마감된 생산 오더가 있는 프로젝트의 수요/할당 쓰기 보호
"""

import pytest
from httpx import AsyncClient

from packledger.domains.prd import models as prd_models


async def _create_production_order(client: AsyncClient, sales, **extra) -> dict:
    response = await client.post(
        "/api/v1/prd/production_orders",
        json={"project_id": str(sales.project_id), "main_customer_id": str(sales.customer_id), "planned_quantity": 100, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _entry(catalog, quantity):
    return {
        "item_id": str(catalog.item_id),
        "item_feature_id": str(catalog.size_id),
        "feature_option_id": str(catalog.size_m_id),
        "quantity": quantity,
    }


# =============================================================================
# 1. production_orders 엔드포인트 테스트
# =============================================================================
@pytest.mark.asyncio
async def test_create_production_order(authorized_client: AsyncClient, sales):
    """생산 오더 생성: 번호 1, 납품 수량 0, 상태 없음. (성공)"""
    order = await _create_production_order(authorized_client, sales)

    assert order["referral_id"] == 1
    assert order["delivered_quantity"] == 0
    assert order["type"] == prd_models.ProductionOrderType.NORMAL.value
    assert order["issue_date"] is not None
    assert order["current_status"] is None

    second = await _create_production_order(
        authorized_client, sales, type=prd_models.ProductionOrderType.REPLENISHMENT.value
    )
    assert second["referral_id"] == 2

    listed = await authorized_client.get(
        "/api/v1/prd/production_orders", params={"type": prd_models.ProductionOrderType.REPLENISHMENT.value}
    )
    assert [o["id"] for o in listed.json()] == [second["id"]]


@pytest.mark.asyncio
async def test_production_order_items(authorized_client: AsyncClient, sales, catalog):
    """생산 오더에 계획 품목(변형)을 추가합니다. (성공)"""
    order = await _create_production_order(authorized_client, sales)
    response = await authorized_client.post(
        f"/api/v1/prd/production_orders/{order['id']}/items",
        json={
            "item_id": str(catalog.item_id),
            "item_feature_id": str(catalog.size_id),
            "feature_option_id": str(catalog.size_m_id),
            "quantity": 60,
        },
    )
    assert response.status_code == 201

    items = await authorized_client.get(f"/api/v1/prd/production_orders/{order['id']}/items")
    assert [i["quantity"] for i in items.json()] == [60]


@pytest.mark.asyncio
async def test_movement_accumulates_delivered_quantity(authorized_client: AsyncClient, sales, catalog, stock_of):
    """생산 오더를 지정한 입고는 delivered_quantity 에 누적됩니다. (성공)"""
    order = await _create_production_order(authorized_client, sales)

    for quantity in (40, 25):
        response = await authorized_client.post(
            "/api/v1/inv/movements",
            json={"production_order_id": order["id"], "items": [_entry(catalog, quantity)]},
        )
        assert response.status_code == 201
        assert response.json()["movement_type"] == "productionOrder"

    refreshed = await authorized_client.get(f"/api/v1/prd/production_orders/{order['id']}")
    assert refreshed.json()["delivered_quantity"] == 65
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (65, 65)

    movements = await authorized_client.get("/api/v1/inv/movements", params={"production_order_id": order["id"]})
    assert len(movements.json()) == 2


# =============================================================================
# 2. 상태 이벤트 테스트
# =============================================================================
@pytest.mark.asyncio
async def test_status_transitions_and_finalize(authorized_client: AsyncClient, sales):
    """Aberto → Parcial → Finalizada, 마감일이 기록됩니다. (성공)"""
    order = await _create_production_order(authorized_client, sales)
    base = f"/api/v1/prd/production_orders/{order['id']}/statuses"

    for status_value in ("Aberto", "Parcial", "Finalizada"):
        response = await authorized_client.post(base, json={"status": status_value})
        assert response.status_code == 201
        assert response.json()["status"] == status_value

    history = await authorized_client.get(base)
    assert [s["status"] for s in history.json()] == ["Aberto", "Parcial", "Finalizada"]

    refreshed = (await authorized_client.get(f"/api/v1/prd/production_orders/{order['id']}")).json()
    assert refreshed["current_status"] == "Finalizada"
    assert refreshed["close_date"] is not None


@pytest.mark.asyncio
async def test_status_after_finalizada_rejected(authorized_client: AsyncClient, sales):
    """Finalizada 이후에는 어떤 상태도 추가할 수 없습니다. (실패)"""
    order = await _create_production_order(authorized_client, sales)
    base = f"/api/v1/prd/production_orders/{order['id']}/statuses"
    await authorized_client.post(base, json={"status": "Finalizada"})

    response = await authorized_client.post(base, json={"status": "Aberto"})
    assert response.status_code == 409
    assert response.json()["code"] == "ALLOCATION_CONFLICT"

    history = await authorized_client.get(base)
    assert [s["status"] for s in history.json()] == ["Finalizada"]


@pytest.mark.asyncio
async def test_finalized_project_blocks_demand_changes(authorized_client: AsyncClient, sales, catalog):
    """마감된 생산 오더가 있는 프로젝트의 주문에는 수요를 추가/변경할 수 없습니다. (실패)"""
    demand = {
        "order_id": str(sales.order_id),
        "item_id": str(catalog.item_id),
        "item_feature_id": str(catalog.size_id),
        "feature_option_id": str(catalog.size_m_id),
        "quantity": 10,
    }
    created = (await authorized_client.post("/api/v1/ord/order_items", json=demand)).json()

    order = await _create_production_order(authorized_client, sales)
    await authorized_client.post(
        f"/api/v1/prd/production_orders/{order['id']}/statuses", json={"status": "Finalizada"}
    )

    response = await authorized_client.post("/api/v1/ord/order_items", json=demand)
    assert response.status_code == 409
    assert response.json()["code"] == "ALLOCATION_CONFLICT"

    response = await authorized_client.put(f"/api/v1/ord/order_items/{created['id']}", json={"quantity": 20})
    assert response.status_code == 409

    unchanged = await authorized_client.get(f"/api/v1/ord/order_items/{created['id']}")
    assert unchanged.json()["quantity"] == 10


@pytest.mark.asyncio
async def test_parcial_status_does_not_freeze_project(authorized_client: AsyncClient, sales, catalog):
    """Parcial 상태는 쓰기를 막지 않습니다. (성공)"""
    order = await _create_production_order(authorized_client, sales)
    await authorized_client.post(
        f"/api/v1/prd/production_orders/{order['id']}/statuses", json={"status": "Parcial"}
    )
    response = await authorized_client.post(
        "/api/v1/ord/order_items",
        json={
            "order_id": str(sales.order_id),
            "item_id": str(catalog.item_id),
            "item_feature_id": str(catalog.size_id),
            "feature_option_id": str(catalog.size_m_id),
            "quantity": 3,
        },
    )
    assert response.status_code == 201


# =============================================================================
# 3. 보조 특성 (additional feature options) 엔드포인트 테스트
# =============================================================================
def _additional_option(catalog, option_id=None):
    return {
        "item_id": str(catalog.item_id),
        "item_feature_id": str(catalog.color_id),
        "feature_option_id": str(option_id or catalog.blue_id),
    }


@pytest.mark.asyncio
async def test_production_order_additional_options(authorized_client: AsyncClient, sales, catalog):
    """생산 오더 보조 특성 추가/조회/삭제. 마감된 생산 오더에도 기록할 수 있습니다. (성공)"""
    order = await _create_production_order(authorized_client, sales)
    base = f"/api/v1/prd/production_orders/{order['id']}/additional_feature_options"

    created = await authorized_client.post(base, json=_additional_option(catalog))
    assert created.status_code == 201
    option = created.json()
    assert option["production_order_id"] == order["id"]

    again = await authorized_client.post(base, json=_additional_option(catalog))
    assert again.json()["id"] == option["id"]

    await authorized_client.post(
        f"/api/v1/prd/production_orders/{order['id']}/statuses", json={"status": "Finalizada"}
    )
    updated = await authorized_client.put(f"{base}/{option['id']}", json={"feature_option_id": str(catalog.blue_id)})
    assert updated.status_code == 200

    listed = await authorized_client.get(base)
    assert [o["id"] for o in listed.json()] == [option["id"]]

    deleted = await authorized_client.delete(f"{base}/{option['id']}")
    assert deleted.status_code == 204
    assert (await authorized_client.get(base)).json() == []


@pytest.mark.asyncio
async def test_production_order_additional_option_errors(authorized_client: AsyncClient, sales, catalog):
    """옵션이 특성과 맞지 않으면 422, 다른 생산 오더 경로로 접근하면 404. (실패)"""
    order = await _create_production_order(authorized_client, sales)
    other = await _create_production_order(authorized_client, sales)
    base = f"/api/v1/prd/production_orders/{order['id']}/additional_feature_options"

    response = await authorized_client.post(base, json=_additional_option(catalog, catalog.size_g_id))
    assert response.status_code == 422

    option = (await authorized_client.post(base, json=_additional_option(catalog))).json()
    response = await authorized_client.delete(
        f"/api/v1/prd/production_orders/{other['id']}/additional_feature_options/{option['id']}"
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_finalized_project_blocks_order_additional_options(authorized_client: AsyncClient, sales, catalog):
    """마감된 프로젝트 주문의 보조 특성은 추가/삭제할 수 없습니다. (실패)"""
    additional = {"order_id": str(sales.order_id), **_additional_option(catalog)}
    created = (await authorized_client.post("/api/v1/ord/order_item_additional_feature_options", json=additional)).json()

    order = await _create_production_order(authorized_client, sales)
    await authorized_client.post(
        f"/api/v1/prd/production_orders/{order['id']}/statuses", json={"status": "Finalizada"}
    )

    response = await authorized_client.post("/api/v1/ord/order_item_additional_feature_options", json=additional)
    assert response.status_code == 409
    assert response.json()["code"] == "ALLOCATION_CONFLICT"

    response = await authorized_client.delete(f"/api/v1/ord/order_item_additional_feature_options/{created['id']}")
    assert response.status_code == 409
