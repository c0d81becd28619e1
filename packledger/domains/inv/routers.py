# packledger/domains/inv/routers.py

"""
'inv' 도메인 (재고 원장)의 API 엔드포인트를 정의하는 모듈입니다.

재고 수량은 이 라우터에서 직접 수정할 수 없습니다.
입출고 기록(POST /movements)과 출하 도메인의 할당만이 재고를 바꿉니다.
"""

import logging
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core import dependencies as deps
from packledger.core.exceptions import NotFound
from packledger.domains.inv import crud as inv_crud, schemas as inv_schemas
from packledger.domains.inv import tasks as inv_tasks
from packledger.domains.usr.models import User as UsrUser
from packledger.services.movement_service import MovementService

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Inventory Ledger (재고 원장)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. movements 엔드포인트
# =============================================================================
@router.post("/movements", response_model=inv_schemas.MovementResponse, status_code=status.HTTP_201_CREATED)
async def create_movement(
    movement_in: inv_schemas.MovementCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """
    입출고(원장 헤더 + 항목 N개)를 기록합니다.
    - 양수는 입고, 음수는 출고입니다. 출고량이 변형 재고를 넘으면 409 (INSUFFICIENT_STOCK).
    - 항목 중 하나라도 실패하면 전체가 기록되지 않습니다.
    """
    return await MovementService(db).record_movements(movement_in, user_id=current_user.id)


@router.get("/movements", response_model=List[inv_schemas.MovementResponse])
async def read_movements(
    production_order_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await inv_crud.movement.get_multi_with_items(
        db, skip=skip, limit=limit, production_order_id=production_order_id
    )


@router.get("/movements/{movement_id}", response_model=inv_schemas.MovementResponse)
async def read_movement(
    movement_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    db_movement = await inv_crud.movement.get_with_items(db, movement_id)
    if db_movement is None:
        raise NotFound("Movement", movement_id)
    return db_movement


# =============================================================================
# 2. stocks / stock_items 엔드포인트 (읽기 전용)
# =============================================================================
@router.post("/stocks/reconcile", response_model=inv_schemas.ReconcileReport)
async def reconcile_stocks(
    db: AsyncSession = Depends(deps.get_db_session),
    arq_pool=Depends(deps.get_arq_pool),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    """
    저장된 재고 집계를 원장과 할당으로부터 다시 계산해 비교합니다. (값을 고치지 않음)
    ARQ 풀이 있으면 작업을 큐에 넣고 job_id 만 반환하며, 없으면 즉시 실행한 결과를 반환합니다.
    """
    if arq_pool is not None:
        job = await arq_pool.enqueue_job(inv_tasks.reconcile_stock_balances.__name__)
        logger.info("ARQ Job enqueued: reconcile_stock_balances (%s)", job.job_id if job else None)
        return inv_schemas.ReconcileReport(job_id=job.job_id if job else None)
    return await inv_tasks.audit_stock_balances(db)


@router.get("/stocks", response_model=List[inv_schemas.StockResponse])
async def read_stocks(
    below_min_only: bool = False,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """품목별 재고 목록. below_min_only=true 이면 최소 재고 미달 품목만 조회합니다."""
    rows = await inv_crud.stock.get_multi_with_thresholds(
        db, skip=skip, limit=limit, below_min_only=below_min_only
    )
    return [
        inv_schemas.StockResponse.model_validate(
            db_stock,
            update={"below_min_stock": min_stock is not None and db_stock.quantity < min_stock},
        )
        for db_stock, min_stock in rows
    ]


@router.get("/stocks/{item_id}", response_model=inv_schemas.StockDetailResponse)
async def read_stock(
    item_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    """품목 하나의 재고와 변형별 재고를 함께 조회합니다."""
    db_stock = await inv_crud.stock.get_by_item(db, item_id=item_id)
    if db_stock is None:
        raise NotFound("Stock for item", item_id)
    variants = await inv_crud.stock_item.get_for_item(db, item_id=item_id)
    return inv_schemas.StockDetailResponse.model_validate(
        db_stock,
        update={"variants": [inv_schemas.StockItemResponse.model_validate(v) for v in variants]},
    )


@router.get("/stock_items", response_model=List[inv_schemas.StockItemResponse])
async def read_stock_items(
    item_id: Optional[uuid.UUID] = None,
    item_feature_id: Optional[uuid.UUID] = None,
    feature_option_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    return await inv_crud.stock_item.get_multi(
        db,
        skip=skip,
        limit=limit,
        item_id=item_id,
        item_feature_id=item_feature_id,
        feature_option_id=feature_option_id,
    )


@router.get("/stock_items/{stock_item_id}/additional_items", response_model=List[inv_schemas.StockAdditionalItemResponse])
async def read_stock_additional_items(
    stock_item_id: uuid.UUID,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_active_user),
):
    await inv_crud.stock_item.get_or_raise(db, stock_item_id)
    return await inv_crud.stock_additional_item.get_for_stock_item(db, stock_item_id=stock_item_id)
