# packledger/domains/cat/crud.py

"""
'cat' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.
"""

import uuid
from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import HTTPException

from packledger.core.crud_base import CRUDBase
from packledger.core.exceptions import NotFound, ValidationError
from packledger.domains.cat import models as cat_models
from packledger.domains.cat import schemas as cat_schemas


class ItemCRUD(CRUDBase[cat_models.Item, cat_schemas.ItemCreate, cat_schemas.ItemUpdate]):
    """Item 모델에 특화된 CRUD 작업을 처리합니다."""

    async def get_by_code(self, db: AsyncSession, *, code: str) -> Optional[cat_models.Item]:
        query = select(self.model).where(self.model.code == code)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, *, obj_in: cat_schemas.ItemCreate) -> cat_models.Item:
        if await self.get_by_code(db, code=obj_in.code):
            raise HTTPException(status_code=400, detail="Item with this code already exists.")
        return await super().create(db, obj_in=obj_in)


class FeatureCRUD(CRUDBase[cat_models.Feature, cat_schemas.FeatureCreate, cat_schemas.FeatureCreate]):
    """Feature 모델에 특화된 CRUD 작업을 처리합니다."""

    async def create(self, db: AsyncSession, *, obj_in: cat_schemas.FeatureCreate) -> cat_models.Feature:
        if await self.get_by_attribute(db, attribute="name", value=obj_in.name):
            raise HTTPException(status_code=400, detail="Feature with this name already exists.")
        return await super().create(db, obj_in=obj_in)


class ItemFeatureCRUD(CRUDBase[cat_models.ItemFeature, cat_schemas.ItemFeatureCreate, cat_schemas.ItemFeatureCreate]):
    """품목-특성 연결 CRUD. 이미 연결된 경우 기존 연결을 반환합니다."""

    async def get_by_link(
        self, db: AsyncSession, *, item_id: uuid.UUID, feature_id: uuid.UUID
    ) -> Optional[cat_models.ItemFeature]:
        query = select(self.model).where(
            self.model.item_id == item_id,
            self.model.feature_id == feature_id,
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def create(self, db: AsyncSession, *, obj_in: cat_schemas.ItemFeatureCreate) -> cat_models.ItemFeature:
        await item.get_or_raise(db, obj_in.item_id)
        await feature.get_or_raise(db, obj_in.feature_id)
        link = await self.get_by_link(db, item_id=obj_in.item_id, feature_id=obj_in.feature_id)
        if link:
            return link
        return await super().create(db, obj_in=obj_in)


class FeatureOptionCRUD(CRUDBase[cat_models.FeatureOption, cat_schemas.FeatureOptionCreate, cat_schemas.FeatureOptionCreate]):
    """FeatureOption 모델에 특화된 CRUD 작업을 처리합니다."""

    async def create(self, db: AsyncSession, *, obj_in: cat_schemas.FeatureOptionCreate) -> cat_models.FeatureOption:
        await feature.get_or_raise(db, obj_in.feature_id)
        return await super().create(db, obj_in=obj_in)


async def validate_variant(
    db: AsyncSession,
    *,
    item_id: uuid.UUID,
    item_feature_id: Optional[uuid.UUID],
    feature_option_id: Optional[uuid.UUID],
) -> cat_models.Item:
    """
    변형 키의 각 구성 요소가 존재하고 서로 일관된지 검사합니다.
    - item_feature는 같은 품목에 속해야 합니다.
    - item_feature가 있으면 feature_option은 그 특성의 옵션이어야 합니다.
    """
    db_item = await item.get(db, item_id)
    if db_item is None:
        raise NotFound("Item", item_id)

    db_item_feature = None
    if item_feature_id is not None:
        db_item_feature = await item_feature.get(db, item_feature_id)
        if db_item_feature is None:
            raise NotFound("ItemFeature", item_feature_id)
        if db_item_feature.item_id != item_id:
            raise ValidationError(
                f"ItemFeature {item_feature_id} does not belong to item {item_id}",
                item_id=item_id, item_feature_id=item_feature_id,
            )

    if feature_option_id is not None:
        db_option = await feature_option.get(db, feature_option_id)
        if db_option is None:
            raise NotFound("FeatureOption", feature_option_id)
        if db_item_feature is not None and db_option.feature_id != db_item_feature.feature_id:
            raise ValidationError(
                f"FeatureOption {feature_option_id} is not an option of ItemFeature {item_feature_id}",
                item_feature_id=item_feature_id, feature_option_id=feature_option_id,
            )

    return db_item


#  각 CRUD 클래스의 인스턴스 생성
item = ItemCRUD(cat_models.Item)
feature = FeatureCRUD(cat_models.Feature)
item_feature = ItemFeatureCRUD(cat_models.ItemFeature)
feature_option = FeatureOptionCRUD(cat_models.FeatureOption)
