# packledger/domains/cat/routers.py

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core import dependencies as deps
from packledger.domains.cat import crud as cat_crud, schemas as cat_schemas
from packledger.domains.usr.models import User as UsrUser

router = APIRouter(
    tags=["Catalog (품목 카탈로그)"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. items 엔드포인트
# =============================================================================
@router.post("/items", response_model=cat_schemas.ItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_create: cat_schemas.ItemCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    """새로운 품목을 생성합니다. 관리자 권한이 필요합니다."""
    return await cat_crud.item.create(db=db, obj_in=item_create)


@router.get("/items", response_model=List[cat_schemas.ItemResponse])
async def read_items(
    skip: int = 0,
    limit: int = 100,
    is_active: Optional[bool] = None,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """품목 목록을 조회합니다."""
    return await cat_crud.item.get_multi(db, skip=skip, limit=limit, is_active=is_active)


@router.get("/items/{item_id}", response_model=cat_schemas.ItemResponse)
async def read_item(item_id: uuid.UUID, db: AsyncSession = Depends(deps.get_db_session)):
    """ID로 특정 품목을 조회합니다."""
    db_item = await cat_crud.item.get(db, item_id)
    if db_item is None:
        raise HTTPException(status_code=404, detail="Item not found.")
    return db_item


@router.put("/items/{item_id}", response_model=cat_schemas.ItemResponse)
async def update_item(
    item_id: uuid.UUID,
    item_update: cat_schemas.ItemUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    """품목 정보를 수정합니다. 재고 수량은 이 경로로 변경되지 않습니다."""
    db_item = await cat_crud.item.get(db, item_id)
    if db_item is None:
        raise HTTPException(status_code=404, detail="Item not found.")
    return await cat_crud.item.update(db=db, db_obj=db_item, obj_in=item_update)


# =============================================================================
# 2. features / item_features / feature_options 엔드포인트
# =============================================================================
@router.post("/features", response_model=cat_schemas.FeatureResponse, status_code=status.HTTP_201_CREATED)
async def create_feature(
    feature_create: cat_schemas.FeatureCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    return await cat_crud.feature.create(db=db, obj_in=feature_create)


@router.get("/features", response_model=List[cat_schemas.FeatureResponse])
async def read_features(skip: int = 0, limit: int = 100, db: AsyncSession = Depends(deps.get_db_session)):
    return await cat_crud.feature.get_multi(db, skip=skip, limit=limit)


@router.post("/item_features", response_model=cat_schemas.ItemFeatureResponse, status_code=status.HTTP_201_CREATED)
async def create_item_feature(
    link_create: cat_schemas.ItemFeatureCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    """품목에 특성을 연결합니다. 이미 연결되어 있으면 기존 연결을 반환합니다."""
    return await cat_crud.item_feature.create(db=db, obj_in=link_create)


@router.get("/item_features", response_model=List[cat_schemas.ItemFeatureResponse])
async def read_item_features(
    item_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await cat_crud.item_feature.get_multi(db, skip=skip, limit=limit, item_id=item_id)


@router.post("/feature_options", response_model=cat_schemas.FeatureOptionResponse, status_code=status.HTTP_201_CREATED)
async def create_feature_option(
    option_create: cat_schemas.FeatureOptionCreate,
    db: AsyncSession = Depends(deps.get_db_session),
    current_user: UsrUser = Depends(deps.get_current_admin_user),
):
    return await cat_crud.feature_option.create(db=db, obj_in=option_create)


@router.get("/feature_options", response_model=List[cat_schemas.FeatureOptionResponse])
async def read_feature_options(
    feature_id: Optional[uuid.UUID] = None,
    skip: int = 0,
    limit: int = 100,
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await cat_crud.feature_option.get_multi(db, skip=skip, limit=limit, feature_id=feature_id)
