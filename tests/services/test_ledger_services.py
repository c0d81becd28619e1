# tests/services/test_ledger_services.py

"""
원장/할당/롤업 서비스를 세션으로 직접 호출하여 재고 보존 규칙을 검증합니다.

실패한 연산은 세션을 롤백하므로 ORM 객체 대신 id 값만 보관하고,
수량은 stock_of 픽스처(컬럼 직접 조회)로 확인합니다.
"""

import pytest
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from packledger.core.exceptions import AllocationConflict, InsufficientStock, ValidationError
from packledger.domains.exp import crud as exp_crud, schemas as exp_schemas
from packledger.domains.inv import crud as inv_crud, models as inv_models, schemas as inv_schemas
from packledger.domains.inv.tasks import audit_stock_balances
from packledger.domains.ord import models as ord_models, schemas as ord_schemas
from packledger.domains.prd import crud as prd_crud, models as prd_models, schemas as prd_schemas
from packledger.services import production_guard
from packledger.services.allocation_service import AllocationService
from packledger.services.movement_service import MovementService
from packledger.services.rollup_service import RollupService


def _key(catalog, option_id=None) -> inv_schemas.VariantKey:
    return inv_schemas.VariantKey(
        item_id=catalog.item_id,
        item_feature_id=catalog.size_id,
        feature_option_id=option_id or catalog.size_m_id,
    )


def _entry(catalog, quantity, option_id=None) -> inv_schemas.MovementItemCreate:
    return inv_schemas.MovementItemCreate(**_key(catalog, option_id).model_dump(), quantity=quantity)


async def _demand_id(db, sales, catalog, quantity, option_id=None):
    db_order_item = await AllocationService(db).record_demand(
        ord_schemas.OrderItemCreate(
            order_id=sales.order_id,
            item_id=catalog.item_id,
            item_feature_id=catalog.size_id,
            feature_option_id=option_id or catalog.size_m_id,
            quantity=quantity,
        )
    )
    return db_order_item.id


async def _box_id(db, sales):
    db_box = await exp_crud.box.create(
        db,
        obj_in=exp_schemas.BoxCreate(project_id=sales.project_id, customer_id=sales.customer_id, order_id=sales.order_id),
    )
    return db_box.id


async def _allocate_id(db, box_id, order_item_id, quantity):
    db_box_item = await AllocationService(db).allocate(
        exp_schemas.BoxItemCreate(box_id=box_id, order_item_id=order_item_id, quantity=quantity)
    )
    return db_box_item.id


async def _finalize_production(db, sales):
    db_order = await prd_crud.production_order.create(
        db, obj_in=prd_schemas.ProductionOrderCreate(project_id=sales.project_id, planned_quantity=10)
    )
    await prd_crud.production_order_status.create_status(
        db,
        production_order_id=db_order.id,
        obj_in=prd_schemas.ProductionOrderStatusCreate(status=prd_models.ProductionStatus.FINALIZADA),
    )
    return db_order.id


# =============================================================================
# 1. 원장 기록
# =============================================================================
@pytest.mark.asyncio
async def test_receipt_allocate_and_box_delete_scenario(db_session, sales, catalog, stock_of):
    """+100 입고, 수요 40, 15 할당 → 85 / 잔여 25, 초과 할당 거부, 박스 삭제 → 100 복원"""
    await MovementService(db_session).record_movement(_key(catalog), 100)
    order_item_id = await _demand_id(db_session, sales, catalog, 40)
    box_id = await _box_id(db_session, sales)

    await _allocate_id(db_session, box_id, order_item_id, 15)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (85, 85)
    assert await AllocationService(db_session).remaining_for(order_item_id) == (15, 25)

    with pytest.raises(AllocationConflict):
        await _allocate_id(db_session, box_id, order_item_id, 30)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (85, 85)

    await AllocationService(db_session).delete_box(box_id)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (100, 100)
    assert await AllocationService(db_session).remaining_for(order_item_id) == (0, 40)


@pytest.mark.asyncio
async def test_debit_never_goes_negative(db_session, catalog, stock_of):
    service = MovementService(db_session)
    with pytest.raises(InsufficientStock) as exc_info:
        await service.record_movement(_key(catalog), -1)
    assert (exc_info.value.requested, exc_info.value.available) == (1, 0)

    await service.record_movement(_key(catalog), 5)
    await service.record_movement(_key(catalog), -5)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (0, 0)

    with pytest.raises(InsufficientStock):
        await service.record_movement(_key(catalog), -1)


@pytest.mark.asyncio
async def test_zero_quantity_rejected(db_session, catalog):
    with pytest.raises(ValidationError):
        await MovementService(db_session).record_movement(_key(catalog), 0)


@pytest.mark.asyncio
async def test_movement_batch_is_atomic(db_session, catalog, stock_of):
    """배치 중 한 항목이 실패하면 헤더와 앞선 항목도 남지 않습니다."""
    movement_in = inv_schemas.MovementCreate(items=[_entry(catalog, 5), _entry(catalog, -10)])
    with pytest.raises(InsufficientStock):
        await MovementService(db_session).record_movements(movement_in)

    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (0, 0)
    count = await db_session.execute(select(func.count()).select_from(inv_models.Movement))
    assert count.scalar_one() == 0


@pytest.mark.asyncio
async def test_referral_ids_are_sequential(db_session, catalog):
    service = MovementService(db_session)
    first = await service.record_movements(inv_schemas.MovementCreate(items=[_entry(catalog, 5)]))
    first_referral = first.referral_id

    with pytest.raises(InsufficientStock):
        await service.record_movements(inv_schemas.MovementCreate(items=[_entry(catalog, -50)]))

    second = await service.record_movements(inv_schemas.MovementCreate(items=[_entry(catalog, 5)]))
    assert (first_referral, second.referral_id) == (1, 2)


@pytest.mark.asyncio
async def test_stock_conservation_over_mixed_operations(db_session, sales, catalog, stock_of):
    """입출고와 할당/해제를 섞어도 재고 = Σ원장 − Σ활성 할당 이 유지됩니다."""
    movement = MovementService(db_session)
    allocation = AllocationService(db_session)

    await movement.record_movement(_key(catalog), 60)
    await movement.record_movement(_key(catalog, catalog.size_g_id), 40)
    demand_m = await _demand_id(db_session, sales, catalog, 30)
    demand_g = await _demand_id(db_session, sales, catalog, 30, catalog.size_g_id)
    box_id = await _box_id(db_session, sales)

    box_item_m = await _allocate_id(db_session, box_id, demand_m, 20)
    await _allocate_id(db_session, box_id, demand_g, 25)
    await movement.record_movement(_key(catalog), -10)
    await allocation.update_allocation(box_item_m, 12)
    await movement.record_movement(_key(catalog, catalog.size_g_id), 7)

    # M: 60 - 10 - 12 = 38, G: 40 + 7 - 25 = 22
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (38, 60)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_g_id) == (22, 60)

    report = await audit_stock_balances(db_session)
    assert report.drifts == []
    assert (report.checked_stocks, report.checked_stock_items) == (1, 2)


@pytest.mark.asyncio
async def test_stock_item_key_without_features_is_unique(db_session, catalog):
    """특성 없는 변형 키 (stock_id, NULL, NULL) 도 한 행만 허용합니다."""
    db_stock = inv_models.Stock(item_id=catalog.item_id, quantity=0)
    db_session.add(db_stock)
    db_session.add(inv_models.StockItem(stock_id=db_stock.id, item_id=catalog.item_id, quantity=1))
    await db_session.flush()

    db_session.add(inv_models.StockItem(stock_id=db_stock.id, item_id=catalog.item_id, quantity=2))
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_order_item_key_without_item_feature_is_unique(db_session, sales, catalog):
    """item_feature_id 가 NULL 인 수요도 같은 (주문, 품목, 옵션) 조합은 한 행만 허용합니다."""
    for quantity in (1, 2):
        db_session.add(
            ord_models.OrderItem(
                order_id=sales.order_id, item_id=catalog.item_id, feature_option_id=catalog.blue_id, quantity=quantity
            )
        )
    with pytest.raises(IntegrityError):
        await db_session.flush()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_receipt_reuses_row_created_concurrently(db_session, catalog, stock_of, monkeypatch):
    """
    조회와 추가 사이에 다른 트랜잭션이 같은 변형 행을 만든 경우:
    제약 위반 후 기존 행을 다시 읽어 그 행에 더합니다. (행이 둘로 갈라지지 않음)
    """
    key = inv_schemas.VariantKey(item_id=catalog.item_id)
    service = MovementService(db_session)
    await service.record_movement(key, 10)

    lookup = inv_crud.stock_item.get_by_variant
    calls = []

    async def missed_first_lookup(db, **kwargs):
        calls.append(kwargs)
        if len(calls) == 1:
            return None
        return await lookup(db, **kwargs)

    monkeypatch.setattr(inv_crud.stock_item, "get_by_variant", missed_first_lookup)
    await service.record_movement(key, 5)
    monkeypatch.undo()

    assert len(calls) == 2
    rows = await db_session.execute(
        select(func.count()).select_from(inv_models.StockItem).where(inv_models.StockItem.item_id == catalog.item_id)
    )
    assert rows.scalar_one() == 1
    assert await stock_of(catalog.item_id) == (15, 15)

    await service.record_movement(key, -15)
    assert await stock_of(catalog.item_id) == (0, 0)


# =============================================================================
# 2. 할당
# =============================================================================
@pytest.mark.asyncio
async def test_allocation_insufficient_stock(db_session, sales, catalog, stock_of):
    await MovementService(db_session).record_movement(_key(catalog), 10)
    order_item_id = await _demand_id(db_session, sales, catalog, 40)
    box_id = await _box_id(db_session, sales)

    with pytest.raises(InsufficientStock) as exc_info:
        await _allocate_id(db_session, box_id, order_item_id, 15)
    assert exc_info.value.available == 10
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (10, 10)


@pytest.mark.asyncio
async def test_allocation_batch_is_atomic(db_session, sales, catalog, stock_of):
    await MovementService(db_session).record_movement(_key(catalog), 20)
    order_item_id = await _demand_id(db_session, sales, catalog, 40)
    box_id = await _box_id(db_session, sales)

    items = [
        exp_schemas.BoxItemCreate(box_id=box_id, order_item_id=order_item_id, quantity=15),
        exp_schemas.BoxItemCreate(box_id=box_id, order_item_id=order_item_id, quantity=10),
    ]
    with pytest.raises(InsufficientStock):
        await AllocationService(db_session).allocate_batch(items)

    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (20, 20)
    assert await AllocationService(db_session).remaining_for(order_item_id) == (0, 40)


@pytest.mark.asyncio
async def test_deallocate_then_reallocate_restores_state(db_session, sales, catalog, stock_of):
    await MovementService(db_session).record_movement(_key(catalog), 100)
    order_item_id = await _demand_id(db_session, sales, catalog, 40)
    box_id = await _box_id(db_session, sales)

    box_item_id = await _allocate_id(db_session, box_id, order_item_id, 15)
    db_box = await AllocationService(db_session).deallocate(box_item_id)
    assert db_box.total_quantity == 0
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (100, 100)

    await _allocate_id(db_session, box_id, order_item_id, 15)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (85, 85)
    assert await AllocationService(db_session).remaining_for(order_item_id) == (15, 25)


@pytest.mark.asyncio
async def test_demand_changes_respect_allocations(db_session, sales, catalog):
    """할당 합계보다 작게 줄이거나, 할당이 남은 수요를 지울 수 없습니다."""
    await MovementService(db_session).record_movement(_key(catalog), 100)
    order_item_id = await _demand_id(db_session, sales, catalog, 40)
    box_id = await _box_id(db_session, sales)
    box_item_id = await _allocate_id(db_session, box_id, order_item_id, 15)

    service = AllocationService(db_session)
    with pytest.raises(AllocationConflict):
        await service.update_demand(order_item_id, 10)
    with pytest.raises(AllocationConflict):
        await service.delete_demand(order_item_id)

    await service.update_demand(order_item_id, 15)
    assert await service.remaining_for(order_item_id) == (15, 0)

    await service.deallocate(box_item_id)
    await service.delete_demand(order_item_id)


@pytest.mark.asyncio
async def test_allocation_rolls_up_into_delivery_note(db_session, sales, catalog):
    await MovementService(db_session).record_movement(_key(catalog), 100)
    order_item_id = await _demand_id(db_session, sales, catalog, 40)
    box_id = await _box_id(db_session, sales)
    await _allocate_id(db_session, box_id, order_item_id, 15)

    db_note = await RollupService(db_session).create_delivery_note(
        exp_schemas.DeliveryNoteCreate(project_id=sales.project_id, customer_id=sales.customer_id, box_ids=[box_id])
    )
    assert (db_note.box_quantity, db_note.total_quantity) == (1, 15)

    await _allocate_id(db_session, box_id, order_item_id, 5)
    db_note = await exp_crud.delivery_note.get(db_session, db_note.id)
    assert db_note.total_quantity == 20


# =============================================================================
# 3. 생산 오더 마감 보호
# =============================================================================
@pytest.mark.asyncio
async def test_finalized_production_order_freezes_project(db_session, sales, catalog, stock_of):
    await MovementService(db_session).record_movement(_key(catalog), 100)
    order_item_id = await _demand_id(db_session, sales, catalog, 40)
    box_id = await _box_id(db_session, sales)
    box_item_id = await _allocate_id(db_session, box_id, order_item_id, 15)

    assert await production_guard.is_project_frozen(db_session, sales.project_id) is False
    await _finalize_production(db_session, sales)
    assert await production_guard.is_project_frozen(db_session, sales.project_id) is True

    service = AllocationService(db_session)
    with pytest.raises(AllocationConflict):
        await _demand_id(db_session, sales, catalog, 5)
    with pytest.raises(AllocationConflict):
        await _allocate_id(db_session, box_id, order_item_id, 5)
    with pytest.raises(AllocationConflict):
        await service.update_allocation(box_item_id, 20)

    # 해제는 재고를 돌려주는 방향이므로 허용됩니다.
    await service.deallocate(box_item_id)
    assert await stock_of(catalog.item_id, catalog.size_id, catalog.size_m_id) == (100, 100)


@pytest.mark.asyncio
async def test_latest_status_decides_frozen(db_session, sales):
    db_order = await prd_crud.production_order.create(
        db_session, obj_in=prd_schemas.ProductionOrderCreate(project_id=sales.project_id)
    )
    order_id = db_order.id
    await prd_crud.production_order_status.create_status(
        db_session,
        production_order_id=order_id,
        obj_in=prd_schemas.ProductionOrderStatusCreate(status=prd_models.ProductionStatus.ABERTO),
    )
    assert await production_guard.latest_status(db_session, order_id) == prd_models.ProductionStatus.ABERTO
    assert await production_guard.is_project_frozen(db_session, sales.project_id) is False

    await prd_crud.production_order_status.create_status(
        db_session,
        production_order_id=order_id,
        obj_in=prd_schemas.ProductionOrderStatusCreate(status=prd_models.ProductionStatus.FINALIZADA),
    )
    assert await production_guard.is_project_frozen(db_session, sales.project_id) is True

    # Finalizada 이후 상태는 추가되지 않습니다.
    with pytest.raises(AllocationConflict):
        await prd_crud.production_order_status.create_status(
            db_session,
            production_order_id=order_id,
            obj_in=prd_schemas.ProductionOrderStatusCreate(status=prd_models.ProductionStatus.PARCIAL),
        )
    assert await production_guard.latest_status(db_session, order_id) == prd_models.ProductionStatus.FINALIZADA
