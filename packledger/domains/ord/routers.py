# packledger/domains/ord/routers.py

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core import dependencies as deps
from packledger.domains.ord import crud as ord_crud, schemas as ord_schemas
from packledger.domains.usr.models import User as UsrUser
from packledger.services.allocation_service import AllocationService

router = APIRouter(
    tags=["Orders (고객 주문)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. customers / projects 엔드포인트
# =============================================================================
@router.post("/customers", response_model=ord_schemas.CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_create: ord_schemas.CustomerCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    return await ord_crud.customer.create(db=db, obj_in=customer_create)


@router.get("/customers", response_model=List[ord_schemas.CustomerResponse])
async def read_customers(
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await ord_crud.customer.get_multi(db, skip=skip, limit=limit)


@router.post("/projects", response_model=ord_schemas.ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_create: ord_schemas.ProjectCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    return await ord_crud.project.create(db=db, obj_in=project_create)


@router.get("/projects", response_model=List[ord_schemas.ProjectResponse])
async def read_projects(
    customer_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await ord_crud.project.get_multi(db, skip=skip, limit=limit, customer_id=customer_id)


# =============================================================================
# 2. orders 엔드포인트
# =============================================================================
@router.post("/orders", response_model=ord_schemas.OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_create: ord_schemas.OrderCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await ord_crud.order.create(db=db, obj_in=order_create)


@router.get("/orders", response_model=List[ord_schemas.OrderResponse])
async def read_orders(
    project_id: Optional[uuid.UUID] = None,
    customer_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await ord_crud.order.get_multi(
        db, skip=skip, limit=limit, project_id=project_id, customer_id=customer_id
    )


@router.get("/orders/{order_id}", response_model=ord_schemas.OrderDetailResponse)
async def read_order(
    order_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """주문과 수요 기록(잔여 수량 포함)을 함께 조회합니다."""
    db_order = await ord_crud.order.get_or_raise(db, order_id)
    db_order_items = await ord_crud.order_item.get_for_order(db, order_id=order_id)
    items = await AllocationService(db).describe_demands(db_order_items)
    return ord_schemas.OrderDetailResponse.model_validate(db_order, update={"items": items})


# =============================================================================
# 3. order_items (수요 기록) 엔드포인트
# =============================================================================
@router.post("/order_items", response_model=ord_schemas.OrderItemResponse, status_code=status.HTTP_201_CREATED)
async def create_order_item(
    order_item_create: ord_schemas.OrderItemCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    수요를 기록합니다. 같은 주문에 같은 변형이 이미 있으면 수량을 더합니다.
    해당 프로젝트의 생산 오더가 마감(Finalizada)되었으면 409.
    """
    service = AllocationService(db)
    db_order_item = await service.record_demand(order_item_create)
    return await service.describe_demand(db_order_item)


@router.post("/order_items/batch", response_model=List[ord_schemas.OrderItemResponse], status_code=status.HTTP_201_CREATED)
async def create_order_items_batch(
    batch_in: ord_schemas.OrderItemBatchCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    service = AllocationService(db)
    db_order_items = await service.record_demands(batch_in.items)
    return await service.describe_demands(db_order_items)


@router.get("/order_items", response_model=List[ord_schemas.OrderItemResponse])
async def read_order_items(
    order_id: Optional[uuid.UUID] = None,
    item_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    service = AllocationService(db)
    db_order_items = await ord_crud.order_item.get_multi(
        db, skip=skip, limit=limit, order_id=order_id, item_id=item_id
    )
    return await service.describe_demands(db_order_items)


@router.get("/order_items/{order_item_id}", response_model=ord_schemas.OrderItemResponse)
async def read_order_item(
    order_item_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order_item = await ord_crud.order_item.get_or_raise(db, order_item_id)
    return await AllocationService(db).describe_demand(db_order_item)


@router.put("/order_items/{order_item_id}", response_model=ord_schemas.OrderItemResponse)
async def update_order_item(
    order_item_id: uuid.UUID,
    order_item_update: ord_schemas.OrderItemUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """수요 수량을 변경합니다. 이미 할당된 합계보다 작게 줄일 수 없습니다."""
    service = AllocationService(db)
    db_order_item = await service.update_demand(order_item_id, order_item_update.quantity)
    return await service.describe_demand(db_order_item)


@router.delete("/order_items/{order_item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order_item(
    order_item_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """할당이 남아 있는 수요는 삭제할 수 없습니다."""
    await AllocationService(db).delete_demand(order_item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# 4. order_item_additional_feature_options (보조 특성) 엔드포인트
# =============================================================================
@router.post(
    "/order_item_additional_feature_options",
    response_model=ord_schemas.OrderItemAdditionalFeatureOptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_order_item_additional_option(
    option_create: ord_schemas.OrderItemAdditionalFeatureOptionCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    주문 품목에 보조 (특성, 옵션) 쌍을 붙입니다. 이미 있는 쌍이면 그대로 반환합니다.
    수요 수량과 할당에는 영향이 없지만, 마감된 프로젝트의 주문이면 409.
    """
    return await ord_crud.order_item_additional_feature_option.create(db, obj_in=option_create)


@router.get("/order_item_additional_feature_options", response_model=List[ord_schemas.OrderItemAdditionalFeatureOptionResponse])
async def read_order_item_additional_options(
    order_id: Optional[uuid.UUID] = None,
    item_id: Optional[uuid.UUID] = None,
    item_feature_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await ord_crud.order_item_additional_feature_option.get_multi(
        db, skip=skip, limit=limit, order_id=order_id, item_id=item_id, item_feature_id=item_feature_id
    )


@router.put(
    "/order_item_additional_feature_options/{option_id}",
    response_model=ord_schemas.OrderItemAdditionalFeatureOptionResponse,
)
async def update_order_item_additional_option(
    option_id: uuid.UUID,
    option_update: ord_schemas.OrderItemAdditionalFeatureOptionUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await ord_crud.order_item_additional_feature_option.change_option(db, id=option_id, obj_in=option_update)


@router.delete("/order_item_additional_feature_options/{option_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_order_item_additional_option(
    option_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    await ord_crud.order_item_additional_feature_option.remove(db, id=option_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
