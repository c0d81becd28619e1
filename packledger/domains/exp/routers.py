# packledger/domains/exp/routers.py

"""
'exp' 도메인 (출하)의 API 엔드포인트를 정의하는 모듈입니다.

배치 경로(/box_items/batch 등)는 '/{id}' 경로보다 먼저 선언해야 합니다.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core import dependencies as deps
from packledger.core.exceptions import NotFound
from packledger.domains.cat import crud as cat_crud
from packledger.domains.exp import crud as exp_crud, models as exp_models, schemas as exp_schemas
from packledger.domains.usr.models import User as UsrUser
from packledger.services.allocation_service import AllocationService
from packledger.services.rollup_service import RollupService

router = APIRouter(
    tags=["Expedition (출하)"],
    responses={404: {"description": "Not found"}},
)


async def _box_detail(db: AsyncSession, box_id: uuid.UUID) -> exp_schemas.BoxDetailResponse:
    """박스 조회 모델: 항목(잔여 수량 포함), 총 중량, 마지막 이동 로그"""
    db_box = await exp_crud.box.get_or_raise(db, box_id)
    service = AllocationService(db)
    box_items = await exp_crud.box_item.get_for_box(db, box_id=box_id)

    items = await cat_crud.item.get_many(db, (db_box_item.item_id for db_box_item in box_items))
    total_weight = 0.0
    for db_box_item in box_items:
        db_item = items.get(db_box_item.item_id)
        total_weight += db_box_item.quantity * (db_item.weight if db_item else 0)
    if db_box.package_id is not None:
        db_package = await exp_crud.package.get(db, db_box.package_id)
        if db_package is not None:
            total_weight += db_package.weight

    last_log = await exp_crud.movement_log_entity.latest_for_entity(
        db, entity=exp_models.EntityKind.BOX, entity_id=box_id
    )
    return exp_schemas.BoxDetailResponse.model_validate(
        db_box,
        update={
            "items": await service.describe_allocations(box_items),
            "total_weight": round(total_weight, 3),
            "last_log": exp_schemas.MovementLogEntityResponse.model_validate(last_log) if last_log else None,
        },
    )


async def _delivery_note_detail(db: AsyncSession, delivery_note_id: uuid.UUID) -> exp_schemas.DeliveryNoteDetailResponse:
    db_note = await exp_crud.delivery_note.get_or_raise(db, delivery_note_id)
    boxes = await exp_crud.box.get_for_delivery_note(db, delivery_note_id=delivery_note_id)
    return exp_schemas.DeliveryNoteDetailResponse.model_validate(
        db_note, update={"boxes": [exp_schemas.BoxResponse.model_validate(db_box) for db_box in boxes]}
    )


# =============================================================================
# 1. packages 엔드포인트
# =============================================================================
@router.post("/packages", response_model=exp_schemas.PackageResponse, status_code=status.HTTP_201_CREATED)
async def create_package(
    package_create: exp_schemas.PackageCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    return await exp_crud.package.create(db=db, obj_in=package_create)


@router.get("/packages", response_model=List[exp_schemas.PackageResponse])
async def read_packages(skip: int = 0, limit: int = 100, db: AsyncSession = Depends(deps.get_db_session)):
    return await exp_crud.package.get_multi(db, skip=skip, limit=limit)


# =============================================================================
# 2. boxes 엔드포인트
# =============================================================================
@router.post("/boxes", response_model=exp_schemas.BoxResponse, status_code=status.HTTP_201_CREATED)
async def create_box(
    box_create: exp_schemas.BoxCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.box.create(db=db, obj_in=box_create, user_id=current_user.id)


@router.get("/boxes", response_model=List[exp_schemas.BoxResponse])
async def read_boxes(
    project_id: Optional[uuid.UUID] = None,
    order_id: Optional[uuid.UUID] = None,
    delivery_note_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.box.get_multi(
        db, skip=skip, limit=limit, project_id=project_id, order_id=order_id, delivery_note_id=delivery_note_id
    )


@router.get("/boxes/{box_id}", response_model=exp_schemas.BoxDetailResponse)
async def read_box(
    box_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await _box_detail(db, box_id)


@router.delete("/boxes/{box_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_box(
    box_id: uuid.UUID,
    movement_log_entity_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """박스를 삭제합니다. 모든 할당 수량이 재고로 돌아가고, 속한 납품서 합계가 다시 계산됩니다."""
    await AllocationService(db).delete_box(box_id, movement_log_entity_id=movement_log_entity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# 3. box_items (할당) 엔드포인트
# =============================================================================
@router.post("/box_items/batch", response_model=List[exp_schemas.BoxItemResponse], status_code=status.HTTP_201_CREATED)
async def create_box_items_batch(
    batch_in: exp_schemas.BoxItemBatchCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    service = AllocationService(db)
    db_box_items = await service.allocate_batch(batch_in.items, user_id=current_user.id)
    return await service.describe_allocations(db_box_items)


@router.put("/box_items/batch", response_model=List[exp_schemas.BoxItemResponse])
async def update_box_items_batch(
    batch_in: exp_schemas.BoxItemBatchUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    service = AllocationService(db)
    db_box_items = await service.update_allocation_batch(batch_in.items)
    return await service.describe_allocations(db_box_items)


@router.post("/box_items/batch_delete", response_model=List[exp_schemas.BoxResponse])
async def delete_box_items_batch(
    batch_in: exp_schemas.BoxItemBatchDelete,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """여러 할당을 한 번에 해제합니다. 갱신된 박스 목록을 반환합니다."""
    return await AllocationService(db).deallocate_batch(
        batch_in.ids, movement_log_entity_id=batch_in.movement_log_entity_id
    )


@router.post("/box_items", response_model=exp_schemas.BoxItemResponse, status_code=status.HTTP_201_CREATED)
async def create_box_item(
    box_item_create: exp_schemas.BoxItemCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    수요를 박스에 할당합니다.
    - 수요 잔여량을 넘으면 409 (ALLOCATION_CONFLICT)
    - 변형 재고가 모자라면 409 (INSUFFICIENT_STOCK)
    """
    service = AllocationService(db)
    db_box_item = await service.allocate(box_item_create, user_id=current_user.id)
    return await service.describe_allocation(db_box_item)


@router.get("/box_items", response_model=List[exp_schemas.BoxItemResponse])
async def read_box_items(
    box_id: Optional[uuid.UUID] = None,
    order_item_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    service = AllocationService(db)
    db_box_items = await exp_crud.box_item.get_multi(
        db, skip=skip, limit=limit, box_id=box_id, order_item_id=order_item_id
    )
    return await service.describe_allocations(db_box_items)


@router.put("/box_items/{box_item_id}", response_model=exp_schemas.BoxItemResponse)
async def update_box_item(
    box_item_id: uuid.UUID,
    box_item_update: exp_schemas.BoxItemUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    service = AllocationService(db)
    db_box_item = await service.update_allocation(
        box_item_id, box_item_update.quantity, movement_log_entity_id=box_item_update.movement_log_entity_id
    )
    return await service.describe_allocation(db_box_item)


@router.delete("/box_items/{box_item_id}", response_model=exp_schemas.BoxResponse)
async def delete_box_item(
    box_item_id: uuid.UUID,
    movement_log_entity_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """할당을 해제합니다. 수량은 재고로 돌아가며, 갱신된 박스를 반환합니다."""
    return await AllocationService(db).deallocate(box_item_id, movement_log_entity_id=movement_log_entity_id)


# =============================================================================
# 4. delivery_notes / delivery_note_items 엔드포인트
# =============================================================================
@router.post("/delivery_notes", response_model=exp_schemas.DeliveryNoteDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_delivery_note(
    note_create: exp_schemas.DeliveryNoteCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_note = await RollupService(db).create_delivery_note(note_create)
    return await _delivery_note_detail(db, db_note.id)


@router.get("/delivery_notes", response_model=List[exp_schemas.DeliveryNoteResponse])
async def read_delivery_notes(
    project_id: Optional[uuid.UUID] = None,
    expedition_id: Optional[uuid.UUID] = None,
    invoice_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.delivery_note.get_multi(
        db, skip=skip, limit=limit, project_id=project_id, expedition_id=expedition_id, invoice_id=invoice_id
    )


@router.get("/delivery_notes/{delivery_note_id}", response_model=exp_schemas.DeliveryNoteDetailResponse)
async def read_delivery_note(
    delivery_note_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await _delivery_note_detail(db, delivery_note_id)


@router.put("/delivery_notes/{delivery_note_id}", response_model=exp_schemas.DeliveryNoteResponse)
async def update_delivery_note(
    delivery_note_id: uuid.UUID,
    note_update: exp_schemas.DeliveryNoteUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """송장/출하/주문 연결만 바꿀 수 있습니다. 합계는 박스 소속 변경으로만 바뀝니다."""
    db_note = await exp_crud.delivery_note.get_or_raise(db, delivery_note_id)
    return await exp_crud.delivery_note.update(db, db_obj=db_note, obj_in=note_update)


@router.delete("/delivery_notes/{delivery_note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_delivery_note(
    delivery_note_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    await RollupService(db).delete_delivery_note(delivery_note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/delivery_note_items/batch", response_model=exp_schemas.DeliveryNoteDetailResponse)
async def add_boxes_to_delivery_note(
    batch_in: exp_schemas.DeliveryNoteItemBatch,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """박스를 납품서에 연결합니다. 다른 납품서에 이미 속한 박스가 있으면 409. 재고는 바뀌지 않습니다."""
    await RollupService(db).add_boxes(batch_in.delivery_note_id, batch_in.box_ids)
    return await _delivery_note_detail(db, batch_in.delivery_note_id)


@router.post("/delivery_note_items/batch_delete", response_model=exp_schemas.DeliveryNoteDetailResponse)
async def remove_boxes_from_delivery_note(
    batch_in: exp_schemas.DeliveryNoteItemBatch,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    await RollupService(db).remove_boxes(batch_in.delivery_note_id, batch_in.box_ids)
    return await _delivery_note_detail(db, batch_in.delivery_note_id)


# =============================================================================
# 5. expeditions / invoices 엔드포인트
# =============================================================================
@router.post("/expeditions", response_model=exp_schemas.ExpeditionResponse, status_code=status.HTTP_201_CREATED)
async def create_expedition(
    expedition_create: exp_schemas.ExpeditionCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.expedition.create(db=db, obj_in=expedition_create)


@router.get("/expeditions", response_model=List[exp_schemas.ExpeditionResponse])
async def read_expeditions(
    project_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.expedition.get_multi(db, skip=skip, limit=limit, project_id=project_id)


@router.post("/invoices", response_model=exp_schemas.InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_create: exp_schemas.InvoiceCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.invoice.create(db=db, obj_in=invoice_create)


@router.get("/invoices", response_model=List[exp_schemas.InvoiceResponse])
async def read_invoices(
    project_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.invoice.get_multi(db, skip=skip, limit=limit, project_id=project_id)


# =============================================================================
# 6. movement_logs (엔티티 이동 로그) 엔드포인트
# =============================================================================
@router.post("/movement_logs", response_model=exp_schemas.MovementLogEntityResponse, status_code=status.HTTP_201_CREATED)
async def open_movement_log(
    log_create: exp_schemas.MovementLogEntityCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """편집 세션을 엽니다. 반환된 id 를 box_items 요청의 movement_log_entity_id 로 넘기면 변화량이 기록됩니다."""
    return await exp_crud.movement_log_entity.open(db, obj_in=log_create, user_id=current_user.id)


@router.get("/movement_logs/{log_id}", response_model=exp_schemas.MovementLogEntityResponse)
async def read_movement_log(
    log_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_log = await exp_crud.movement_log_entity.get_with_items(db, log_id)
    if db_log is None:
        raise NotFound("MovementLogEntity", log_id)
    return db_log


@router.post("/movement_logs/{log_id}/finalize", response_model=exp_schemas.MovementLogEntityResponse)
async def finalize_movement_log(
    log_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await exp_crud.movement_log_entity.finalize(db, id=log_id)
