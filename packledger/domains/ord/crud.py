# packledger/domains/ord/crud.py

"""
'ord' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.

수요 기록(OrderItem)의 생성/수정/삭제는 할당 규칙과 생산 오더 마감 규칙을 함께 검사해야 하므로
services.allocation_service 를 거칩니다. 여기에는 수요 조회/잠금 메서드만 둡니다.
"""

import uuid
from typing import List, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import HTTPException

from packledger.core.crud_base import CRUDBase, lock_rows
from packledger.domains.cat.crud import validate_variant
from packledger.domains.inv.crud import variant_conditions
from packledger.domains.ord import models as ord_models
from packledger.domains.ord import schemas as ord_schemas
from packledger.services import production_guard


class CustomerCRUD(CRUDBase[ord_models.Customer, ord_schemas.CustomerCreate, ord_schemas.CustomerCreate]):
    pass


class ProjectCRUD(CRUDBase[ord_models.Project, ord_schemas.ProjectCreate, ord_schemas.ProjectCreate]):

    async def create(self, db: AsyncSession, *, obj_in: ord_schemas.ProjectCreate) -> ord_models.Project:
        await customer.get_or_raise(db, obj_in.customer_id)
        return await super().create(db, obj_in=obj_in)


class OrderCRUD(CRUDBase[ord_models.Order, ord_schemas.OrderCreate, ord_schemas.OrderCreate]):
    """Order 모델에 특화된 CRUD 작업을 처리합니다."""

    async def create(self, db: AsyncSession, *, obj_in: ord_schemas.OrderCreate) -> ord_models.Order:
        await project.get_or_raise(db, obj_in.project_id)
        await customer.get_or_raise(db, obj_in.customer_id)
        referral_id = await self.next_referral_id(db)
        db_obj = ord_models.Order.model_validate(obj_in, update={"referral_id": referral_id})
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj


class OrderItemCRUD(CRUDBase[ord_models.OrderItem, ord_schemas.OrderItemCreate, ord_schemas.OrderItemUpdate]):
    """수요 기록 조회"""

    async def get_by_variant(
        self,
        db: AsyncSession,
        *,
        order_id: uuid.UUID,
        item_id: uuid.UUID,
        item_feature_id: Optional[uuid.UUID],
        feature_option_id: Optional[uuid.UUID],
        for_update: bool = False,
    ) -> Optional[ord_models.OrderItem]:
        conditions = [
            self.model.order_id == order_id,
            *variant_conditions(self.model, item_id, item_feature_id, feature_option_id),
        ]
        query = select(self.model).where(*conditions)
        if for_update:
            await db.flush()
            await lock_rows(db, self.model, *conditions)
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_for_order(self, db: AsyncSession, *, order_id: uuid.UUID) -> List[ord_models.OrderItem]:
        result = await db.execute(
            select(self.model).where(self.model.order_id == order_id).order_by(self.model.created_at)
        )
        return result.scalars().all()


class OrderItemAdditionalFeatureOptionCRUD(
    CRUDBase[
        ord_models.OrderItemAdditionalFeatureOption,
        ord_schemas.OrderItemAdditionalFeatureOptionCreate,
        ord_schemas.OrderItemAdditionalFeatureOptionUpdate,
    ]
):
    """
    주문 품목의 보조 (특성, 옵션) 쌍.
    같은 쌍을 다시 추가하면 기존 기록을 반환합니다. 생산 오더가 마감된 프로젝트의 주문에는 쓸 수 없습니다.
    """

    async def get_by_pair(
        self, db: AsyncSession, *, order_id: uuid.UUID, item_id: uuid.UUID, item_feature_id: uuid.UUID, feature_option_id: uuid.UUID
    ) -> Optional[ord_models.OrderItemAdditionalFeatureOption]:
        result = await db.execute(
            select(self.model).where(
                self.model.order_id == order_id,
                self.model.item_id == item_id,
                self.model.item_feature_id == item_feature_id,
                self.model.feature_option_id == feature_option_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(
        self, db: AsyncSession, *, obj_in: ord_schemas.OrderItemAdditionalFeatureOptionCreate
    ) -> ord_models.OrderItemAdditionalFeatureOption:
        db_order = await order.get_or_raise(db, obj_in.order_id)
        await validate_variant(
            db, item_id=obj_in.item_id, item_feature_id=obj_in.item_feature_id, feature_option_id=obj_in.feature_option_id
        )
        await production_guard.ensure_project_writable(db, db_order.project_id, action="change demand options")

        existing = await self.get_by_pair(db, **obj_in.model_dump())
        if existing is not None:
            return existing
        return await super().create(db, obj_in=obj_in)

    async def change_option(
        self, db: AsyncSession, *, id: uuid.UUID, obj_in: ord_schemas.OrderItemAdditionalFeatureOptionUpdate
    ) -> ord_models.OrderItemAdditionalFeatureOption:
        db_obj = await self.get_or_raise(db, id)
        db_order = await order.get_or_raise(db, db_obj.order_id)
        await validate_variant(
            db, item_id=db_obj.item_id, item_feature_id=db_obj.item_feature_id, feature_option_id=obj_in.feature_option_id
        )
        await production_guard.ensure_project_writable(db, db_order.project_id, action="change demand options")

        duplicate = await self.get_by_pair(
            db,
            order_id=db_obj.order_id,
            item_id=db_obj.item_id,
            item_feature_id=db_obj.item_feature_id,
            feature_option_id=obj_in.feature_option_id,
        )
        if duplicate is not None and duplicate.id != db_obj.id:
            raise HTTPException(status_code=409, detail="This feature option is already attached to the order item.")
        return await self.update(db, db_obj=db_obj, obj_in=obj_in)

    async def remove(self, db: AsyncSession, *, id: uuid.UUID) -> None:
        db_obj = await self.get_or_raise(db, id)
        db_order = await order.get_or_raise(db, db_obj.order_id)
        await production_guard.ensure_project_writable(db, db_order.project_id, action="change demand options")
        await self.delete(db, id=id)


#  각 CRUD 클래스의 인스턴스 생성
customer = CustomerCRUD(ord_models.Customer)
project = ProjectCRUD(ord_models.Project)
order = OrderCRUD(ord_models.Order)
order_item = OrderItemCRUD(ord_models.OrderItem)
order_item_additional_feature_option = OrderItemAdditionalFeatureOptionCRUD(ord_models.OrderItemAdditionalFeatureOption)
