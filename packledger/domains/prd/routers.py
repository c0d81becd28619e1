# packledger/domains/prd/routers.py

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core import dependencies as deps
from packledger.domains.prd import crud as prd_crud, models as prd_models, schemas as prd_schemas
from packledger.domains.usr.models import User as UsrUser
from packledger.services import production_guard

router = APIRouter(
    tags=["Production Orders (생산 오더)"],
    responses={404: {"description": "Not found"}},
)


async def _with_status(db: AsyncSession, db_order: prd_models.ProductionOrder) -> prd_schemas.ProductionOrderResponse:
    current = await production_guard.latest_status(db, db_order.id)
    return prd_schemas.ProductionOrderResponse.model_validate(db_order, update={"current_status": current})


# =============================================================================
# 1. production_orders 엔드포인트
# =============================================================================
@router.post("/production_orders", response_model=prd_schemas.ProductionOrderResponse, status_code=status.HTTP_201_CREATED)
async def create_production_order(
    order_create: prd_schemas.ProductionOrderCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """생산 오더를 생성합니다. planned_quantity 는 이후 변경할 수 없습니다."""
    db_order = await prd_crud.production_order.create(db=db, obj_in=order_create)
    return await _with_status(db, db_order)


@router.get("/production_orders", response_model=List[prd_schemas.ProductionOrderResponse])
async def read_production_orders(
    project_id: Optional[uuid.UUID] = None,
    type: Optional[prd_models.ProductionOrderType] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_orders = await prd_crud.production_order.get_multi(db, skip=skip, limit=limit, project_id=project_id, type=type)
    return [await _with_status(db, db_order) for db_order in db_orders]


@router.get("/production_orders/{production_order_id}", response_model=prd_schemas.ProductionOrderResponse)
async def read_production_order(
    production_order_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_order = await prd_crud.production_order.get_or_raise(db, production_order_id)
    return await _with_status(db, db_order)


# =============================================================================
# 2. production_order_items 엔드포인트
# =============================================================================
@router.post(
    "/production_orders/{production_order_id}/items",
    response_model=prd_schemas.ProductionOrderItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_production_order_item(
    production_order_id: uuid.UUID,
    item_create: prd_schemas.ProductionOrderItemCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await prd_crud.production_order_item.create_for_order(
        db, production_order_id=production_order_id, obj_in=item_create
    )


@router.get("/production_orders/{production_order_id}/items", response_model=List[prd_schemas.ProductionOrderItemResponse])
async def read_production_order_items(
    production_order_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    await prd_crud.production_order.get_or_raise(db, production_order_id)
    return await prd_crud.production_order_item.get_for_order(db, production_order_id=production_order_id)


# =============================================================================
# 3. production_order_statuses 엔드포인트
# =============================================================================
@router.post(
    "/production_orders/{production_order_id}/statuses",
    response_model=prd_schemas.ProductionOrderStatusResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_production_order_status(
    production_order_id: uuid.UUID,
    status_create: prd_schemas.ProductionOrderStatusCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    상태 이벤트를 추가합니다. Finalizada 는 close_date 를 설정하며 되돌릴 수 없습니다.
    마감 이후에는 같은 프로젝트 주문의 수요 변경과 할당이 거부됩니다.
    """
    return await prd_crud.production_order_status.create_status(
        db, production_order_id=production_order_id, obj_in=status_create
    )


@router.get(
    "/production_orders/{production_order_id}/statuses",
    response_model=List[prd_schemas.ProductionOrderStatusResponse],
)
async def read_production_order_statuses(
    production_order_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    await prd_crud.production_order.get_or_raise(db, production_order_id)
    return await prd_crud.production_order_status.get_for_order(db, production_order_id=production_order_id)


# =============================================================================
# 4. production_order_item_additional_feature_options 엔드포인트
# =============================================================================
@router.post(
    "/production_orders/{production_order_id}/additional_feature_options",
    response_model=prd_schemas.ProductionOrderItemAdditionalFeatureOptionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_production_order_additional_option(
    production_order_id: uuid.UUID,
    option_create: prd_schemas.ProductionOrderItemAdditionalFeatureOptionCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """생산 오더 품목에 보조 (특성, 옵션) 쌍을 붙입니다. 이미 있는 쌍이면 그대로 반환합니다."""
    return await prd_crud.production_order_item_additional_feature_option.create_for_order(
        db, production_order_id=production_order_id, obj_in=option_create
    )


@router.get(
    "/production_orders/{production_order_id}/additional_feature_options",
    response_model=List[prd_schemas.ProductionOrderItemAdditionalFeatureOptionResponse],
)
async def read_production_order_additional_options(
    production_order_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    await prd_crud.production_order.get_or_raise(db, production_order_id)
    return await prd_crud.production_order_item_additional_feature_option.get_for_order(
        db, production_order_id=production_order_id
    )


@router.put(
    "/production_orders/{production_order_id}/additional_feature_options/{option_id}",
    response_model=prd_schemas.ProductionOrderItemAdditionalFeatureOptionResponse,
)
async def update_production_order_additional_option(
    production_order_id: uuid.UUID,
    option_id: uuid.UUID,
    option_update: prd_schemas.ProductionOrderItemAdditionalFeatureOptionUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await prd_crud.production_order_item_additional_feature_option.change_option(
        db, production_order_id=production_order_id, id=option_id, obj_in=option_update
    )


@router.delete(
    "/production_orders/{production_order_id}/additional_feature_options/{option_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_production_order_additional_option(
    production_order_id: uuid.UUID,
    option_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    crud = prd_crud.production_order_item_additional_feature_option
    await crud.get_in_order(db, production_order_id=production_order_id, id=option_id)
    await crud.delete(db, id=option_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
