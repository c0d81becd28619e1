# packledger/domains/prd/crud.py

"""
'prd' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.
"""

import logging
import uuid
from typing import List, Optional
from datetime import datetime, UTC

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import HTTPException

from packledger.core.crud_base import CRUDBase
from packledger.core.database import transactional
from packledger.core.exceptions import AllocationConflict, NotFound
from packledger.domains.cat.crud import validate_variant
from packledger.domains.ord import crud as ord_crud
from packledger.domains.prd import models as prd_models
from packledger.domains.prd import schemas as prd_schemas
from packledger.services import production_guard

logger = logging.getLogger(__name__)


class ProductionOrderCRUD(
    CRUDBase[prd_models.ProductionOrder, prd_schemas.ProductionOrderCreate, prd_schemas.ProductionOrderCreate]
):
    """ProductionOrder 모델에 특화된 CRUD 작업을 처리합니다."""

    async def create(
        self, db: AsyncSession, *, obj_in: prd_schemas.ProductionOrderCreate
    ) -> prd_models.ProductionOrder:
        await ord_crud.project.get_or_raise(db, obj_in.project_id)
        if obj_in.supplier_id:
            await ord_crud.customer.get_or_raise(db, obj_in.supplier_id)
        if obj_in.main_customer_id:
            await ord_crud.customer.get_or_raise(db, obj_in.main_customer_id)

        update = {"referral_id": await self.next_referral_id(db), "delivered_quantity": 0}
        if obj_in.issue_date is None:
            update["issue_date"] = datetime.now(UTC).date()
        db_obj = prd_models.ProductionOrder.model_validate(obj_in, update=update)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj


class ProductionOrderItemCRUD(
    CRUDBase[prd_models.ProductionOrderItem, prd_schemas.ProductionOrderItemCreate, prd_schemas.ProductionOrderItemCreate]
):

    async def create_for_order(
        self,
        db: AsyncSession,
        *,
        production_order_id: uuid.UUID,
        obj_in: prd_schemas.ProductionOrderItemCreate,
    ) -> prd_models.ProductionOrderItem:
        await production_order.get_or_raise(db, production_order_id)
        await validate_variant(
            db,
            item_id=obj_in.item_id,
            item_feature_id=obj_in.item_feature_id,
            feature_option_id=obj_in.feature_option_id,
        )
        db_obj = prd_models.ProductionOrderItem.model_validate(
            obj_in, update={"production_order_id": production_order_id}
        )
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def get_for_order(
        self, db: AsyncSession, *, production_order_id: uuid.UUID
    ) -> List[prd_models.ProductionOrderItem]:
        result = await db.execute(
            select(self.model)
            .where(self.model.production_order_id == production_order_id)
            .order_by(self.model.created_at)
        )
        return result.scalars().all()


class ProductionOrderStatusCRUD(
    CRUDBase[prd_models.ProductionOrderStatus, prd_schemas.ProductionOrderStatusCreate, prd_schemas.ProductionOrderStatusCreate]
):
    """
    상태 이벤트는 추가만 가능합니다.
    Finalizada 이후에는 어떤 상태도 추가할 수 없습니다. (되돌리기 불가)
    """

    async def create_status(
        self,
        db: AsyncSession,
        *,
        production_order_id: uuid.UUID,
        obj_in: prd_schemas.ProductionOrderStatusCreate,
    ) -> prd_models.ProductionOrderStatus:
        async with transactional(db):
            db_order = await production_order.get_or_raise(db, production_order_id)

            current = await production_guard.latest_status(db, production_order_id)
            if current == prd_models.ProductionStatus.FINALIZADA:
                logger.warning("Rejected status %s for finalized production order %s", obj_in.status, production_order_id)
                raise AllocationConflict(
                    f"Production order {production_order_id} is already finalized",
                    production_order_id=production_order_id,
                )

            now = datetime.now(UTC)
            db_status = prd_models.ProductionOrderStatus(
                production_order_id=production_order_id,
                status=obj_in.status,
                date=obj_in.date or now,
            )
            db.add(db_status)

            if obj_in.status == prd_models.ProductionStatus.FINALIZADA:
                db_order.close_date = now.date()
                db.add(db_order)

        logger.info("Production order %s status -> %s", production_order_id, obj_in.status.value)
        return db_status

    async def get_for_order(
        self, db: AsyncSession, *, production_order_id: uuid.UUID
    ) -> List[prd_models.ProductionOrderStatus]:
        result = await db.execute(
            select(self.model)
            .where(self.model.production_order_id == production_order_id)
            .order_by(self.model.created_at)
        )
        return result.scalars().all()




class ProductionOrderItemAdditionalFeatureOptionCRUD(
    CRUDBase[
        prd_models.ProductionOrderItemAdditionalFeatureOption,
        prd_schemas.ProductionOrderItemAdditionalFeatureOptionCreate,
        prd_schemas.ProductionOrderItemAdditionalFeatureOptionUpdate,
    ]
):
    """생산 오더 품목의 보조 (특성, 옵션) 쌍. 같은 쌍을 다시 추가하면 기존 기록을 반환합니다."""

    async def get_by_pair(
        self,
        db: AsyncSession,
        *,
        production_order_id: uuid.UUID,
        item_id: uuid.UUID,
        item_feature_id: uuid.UUID,
        feature_option_id: uuid.UUID,
    ) -> Optional[prd_models.ProductionOrderItemAdditionalFeatureOption]:
        result = await db.execute(
            select(self.model).where(
                self.model.production_order_id == production_order_id,
                self.model.item_id == item_id,
                self.model.item_feature_id == item_feature_id,
                self.model.feature_option_id == feature_option_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_in_order(
        self, db: AsyncSession, *, production_order_id: uuid.UUID, id: uuid.UUID
    ) -> prd_models.ProductionOrderItemAdditionalFeatureOption:
        db_obj = await self.get_or_raise(db, id)
        if db_obj.production_order_id != production_order_id:
            raise NotFound(self.model.__name__, id)
        return db_obj

    async def create_for_order(
        self,
        db: AsyncSession,
        *,
        production_order_id: uuid.UUID,
        obj_in: prd_schemas.ProductionOrderItemAdditionalFeatureOptionCreate,
    ) -> prd_models.ProductionOrderItemAdditionalFeatureOption:
        await production_order.get_or_raise(db, production_order_id)
        await validate_variant(
            db,
            item_id=obj_in.item_id,
            item_feature_id=obj_in.item_feature_id,
            feature_option_id=obj_in.feature_option_id,
        )
        existing = await self.get_by_pair(db, production_order_id=production_order_id, **obj_in.model_dump())
        if existing is not None:
            return existing

        db_obj = prd_models.ProductionOrderItemAdditionalFeatureOption.model_validate(
            obj_in, update={"production_order_id": production_order_id}
        )
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def get_for_order(
        self, db: AsyncSession, *, production_order_id: uuid.UUID
    ) -> List[prd_models.ProductionOrderItemAdditionalFeatureOption]:
        result = await db.execute(
            select(self.model)
            .where(self.model.production_order_id == production_order_id)
            .order_by(self.model.created_at)
        )
        return result.scalars().all()

    async def change_option(
        self,
        db: AsyncSession,
        *,
        production_order_id: uuid.UUID,
        id: uuid.UUID,
        obj_in: prd_schemas.ProductionOrderItemAdditionalFeatureOptionUpdate,
    ) -> prd_models.ProductionOrderItemAdditionalFeatureOption:
        db_obj = await self.get_in_order(db, production_order_id=production_order_id, id=id)
        await validate_variant(
            db, item_id=db_obj.item_id, item_feature_id=db_obj.item_feature_id, feature_option_id=obj_in.feature_option_id
        )
        duplicate = await self.get_by_pair(
            db,
            production_order_id=production_order_id,
            item_id=db_obj.item_id,
            item_feature_id=db_obj.item_feature_id,
            feature_option_id=obj_in.feature_option_id,
        )
        if duplicate is not None and duplicate.id != db_obj.id:
            raise HTTPException(status_code=409, detail="This feature option is already attached to the production order item.")
        return await self.update(db, db_obj=db_obj, obj_in=obj_in)


#  각 CRUD 클래스의 인스턴스 생성
production_order = ProductionOrderCRUD(prd_models.ProductionOrder)
production_order_item = ProductionOrderItemCRUD(prd_models.ProductionOrderItem)
production_order_status = ProductionOrderStatusCRUD(prd_models.ProductionOrderStatus)
production_order_item_additional_feature_option = ProductionOrderItemAdditionalFeatureOptionCRUD(
    prd_models.ProductionOrderItemAdditionalFeatureOption
)
