# packledger/domains/exp/crud.py

"""
'exp' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.

박스 항목(할당)과 납품서 소속 변경은 재고/롤업과 함께 처리해야 하므로
services.allocation_service / services.rollup_service 를 거칩니다.
여기의 조회/보조 메서드는 커밋하지 않습니다. (마스터 데이터 create 제외)
"""

import logging
import uuid
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.crud_base import CRUDBase
from packledger.core.exceptions import AllocationConflict
from packledger.domains.exp import models as exp_models
from packledger.domains.exp import schemas as exp_schemas
from packledger.domains.ord import crud as ord_crud

logger = logging.getLogger(__name__)


class PackageCRUD(CRUDBase[exp_models.Package, exp_schemas.PackageCreate, exp_schemas.PackageCreate]):
    pass


class BoxCRUD(CRUDBase[exp_models.Box, exp_schemas.BoxCreate, exp_schemas.BoxCreate]):
    """Box 모델에 특화된 CRUD 작업을 처리합니다."""

    async def create(
        self, db: AsyncSession, *, obj_in: exp_schemas.BoxCreate, user_id: Optional[uuid.UUID] = None
    ) -> exp_models.Box:
        await ord_crud.project.get_or_raise(db, obj_in.project_id)
        await ord_crud.customer.get_or_raise(db, obj_in.customer_id)
        if obj_in.order_id:
            await ord_crud.order.get_or_raise(db, obj_in.order_id)
        if obj_in.package_id:
            await package.get_or_raise(db, obj_in.package_id)

        db_obj = exp_models.Box(
            referral_id=await self.next_referral_id(db),
            project_id=obj_in.project_id,
            customer_id=obj_in.customer_id,
            order_id=obj_in.order_id,
            package_id=obj_in.package_id,
            user_id=user_id,
            total_quantity=0,
        )
        if obj_in.date is not None:
            db_obj.date = obj_in.date
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def get_with_items(self, db: AsyncSession, id: uuid.UUID) -> Optional[exp_models.Box]:
        query = (
            select(self.model)
            .where(self.model.id == id)
            .options(selectinload(self.model.items))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_for_delivery_note(self, db: AsyncSession, *, delivery_note_id: uuid.UUID) -> List[exp_models.Box]:
        result = await db.execute(
            select(self.model)
            .join(exp_models.DeliveryNoteItem, exp_models.DeliveryNoteItem.box_id == self.model.id)
            .where(exp_models.DeliveryNoteItem.delivery_note_id == delivery_note_id)
            .order_by(self.model.referral_id)
        )
        return result.scalars().all()


class BoxItemCRUD(CRUDBase[exp_models.BoxItem, exp_schemas.BoxItemCreate, exp_schemas.BoxItemUpdate]):
    """할당 기록 조회"""

    async def sum_for_demand(
        self,
        db: AsyncSession,
        *,
        order_item_id: uuid.UUID,
        feature_option_id: Optional[uuid.UUID],
    ) -> int:
        """수요 기록에 대한 활성 할당 합계. (order_item_id, feature_option_id) 가 모두 일치하는 행만 셉니다."""
        await db.flush()
        option_condition = (
            self.model.feature_option_id.is_(None)
            if feature_option_id is None
            else self.model.feature_option_id == feature_option_id
        )
        result = await db.execute(
            select(func.coalesce(func.sum(self.model.quantity), 0)).where(
                self.model.order_item_id == order_item_id, option_condition
            )
        )
        return int(result.scalar_one())

    async def sums_for_demands(
        self, db: AsyncSession, *, order_item_ids: List[uuid.UUID]
    ) -> Dict[Tuple[uuid.UUID, Optional[uuid.UUID]], int]:
        """여러 수요의 할당 합계를 한 번에 구합니다. {(order_item_id, feature_option_id): 합계}"""
        if not order_item_ids:
            return {}
        await db.flush()
        result = await db.execute(
            select(self.model.order_item_id, self.model.feature_option_id, func.sum(self.model.quantity))
            .where(self.model.order_item_id.in_(order_item_ids))
            .group_by(self.model.order_item_id, self.model.feature_option_id)
        )
        return {(order_item_id, feature_option_id): int(total) for order_item_id, feature_option_id, total in result.all()}

    async def count_for_demand(self, db: AsyncSession, *, order_item_id: uuid.UUID) -> int:
        await db.flush()
        result = await db.execute(
            select(func.count()).select_from(self.model).where(self.model.order_item_id == order_item_id)
        )
        return int(result.scalar_one())

    async def get_for_box(self, db: AsyncSession, *, box_id: uuid.UUID) -> List[exp_models.BoxItem]:
        await db.flush()
        result = await db.execute(
            select(self.model).where(self.model.box_id == box_id).order_by(self.model.created_at)
        )
        return result.scalars().all()


class DeliveryNoteCRUD(CRUDBase[exp_models.DeliveryNote, exp_schemas.DeliveryNoteCreate, exp_schemas.DeliveryNoteUpdate]):
    """납품서 헤더. 박스 소속과 합계는 rollup_service 가 관리합니다."""

    async def build(self, db: AsyncSession, *, obj_in: exp_schemas.DeliveryNoteCreate) -> exp_models.DeliveryNote:
        """참조를 검증하고 새 납품서를 세션에 추가합니다. (커밋하지 않음)"""
        await ord_crud.project.get_or_raise(db, obj_in.project_id)
        await ord_crud.customer.get_or_raise(db, obj_in.customer_id)
        await self._check_references(db, obj_in)

        db_obj = exp_models.DeliveryNote(
            referral_id=await self.next_referral_id(db),
            project_id=obj_in.project_id,
            customer_id=obj_in.customer_id,
            order_id=obj_in.order_id,
            invoice_id=obj_in.invoice_id,
            expedition_id=obj_in.expedition_id,
            box_quantity=0,
            total_quantity=0,
        )
        db.add(db_obj)
        await db.flush()
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: exp_models.DeliveryNote, obj_in: exp_schemas.DeliveryNoteUpdate
    ) -> exp_models.DeliveryNote:
        await self._check_references(db, obj_in)
        # box_quantity / total_quantity 는 여기서 바꿀 수 없습니다.
        return await super().update(db, db_obj=db_obj, obj_in=obj_in.model_dump(exclude_unset=True))

    async def _check_references(self, db: AsyncSession, obj_in) -> None:
        if obj_in.order_id:
            await ord_crud.order.get_or_raise(db, obj_in.order_id)
        if obj_in.invoice_id:
            await invoice.get_or_raise(db, obj_in.invoice_id)
        if obj_in.expedition_id:
            await expedition.get_or_raise(db, obj_in.expedition_id)


class DeliveryNoteItemCRUD(
    CRUDBase[exp_models.DeliveryNoteItem, exp_models.DeliveryNoteItem, exp_models.DeliveryNoteItem]
):

    async def get_by_box(self, db: AsyncSession, *, box_id: uuid.UUID) -> Optional[exp_models.DeliveryNoteItem]:
        result = await db.execute(select(self.model).where(self.model.box_id == box_id))
        return result.scalar_one_or_none()

    async def get_for_delivery_note(
        self, db: AsyncSession, *, delivery_note_id: uuid.UUID
    ) -> List[exp_models.DeliveryNoteItem]:
        await db.flush()
        result = await db.execute(select(self.model).where(self.model.delivery_note_id == delivery_note_id))
        return result.scalars().all()


class ExpeditionCRUD(CRUDBase[exp_models.Expedition, exp_schemas.ExpeditionCreate, exp_schemas.ExpeditionCreate]):

    async def create(self, db: AsyncSession, *, obj_in: exp_schemas.ExpeditionCreate) -> exp_models.Expedition:
        await ord_crud.project.get_or_raise(db, obj_in.project_id)
        await ord_crud.customer.get_or_raise(db, obj_in.main_customer_id)
        db_obj = exp_models.Expedition(
            referral_id=await self.next_referral_id(db),
            project_id=obj_in.project_id,
            main_customer_id=obj_in.main_customer_id,
        )
        if obj_in.date is not None:
            db_obj.date = obj_in.date
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj


class InvoiceCRUD(CRUDBase[exp_models.Invoice, exp_schemas.InvoiceCreate, exp_schemas.InvoiceCreate]):

    async def create(self, db: AsyncSession, *, obj_in: exp_schemas.InvoiceCreate) -> exp_models.Invoice:
        await ord_crud.project.get_or_raise(db, obj_in.project_id)
        await ord_crud.customer.get_or_raise(db, obj_in.customer_id)
        db_obj = exp_models.Invoice(
            referral_id=await self.next_referral_id(db),
            project_id=obj_in.project_id,
            customer_id=obj_in.customer_id,
            number=obj_in.number,
        )
        if obj_in.issue_date is not None:
            db_obj.issue_date = obj_in.issue_date
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj


class MovementLogEntityCRUD(
    CRUDBase[exp_models.MovementLogEntity, exp_schemas.MovementLogEntityCreate, exp_schemas.MovementLogEntityCreate]
):
    """
    엔티티 이동 로그 세션.
    열린(aberto) 세션에만 라인을 추가할 수 있으며, finalize 이후에는 닫힙니다.
    """

    async def open(
        self, db: AsyncSession, *, obj_in: exp_schemas.MovementLogEntityCreate, user_id: Optional[uuid.UUID]
    ) -> exp_models.MovementLogEntity:
        db_obj = exp_models.MovementLogEntity(
            method=obj_in.method,
            entity=obj_in.target.kind,
            entity_id=obj_in.target.id,
            user_id=user_id,
        )
        db.add(db_obj)
        await db.commit()
        return await self.get_with_items(db, db_obj.id)

    async def get_with_items(self, db: AsyncSession, id: uuid.UUID) -> Optional[exp_models.MovementLogEntity]:
        query = (
            select(self.model)
            .where(self.model.id == id)
            .options(selectinload(self.model.items))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def latest_for_entity(
        self, db: AsyncSession, *, entity: exp_models.EntityKind, entity_id: uuid.UUID
    ) -> Optional[exp_models.MovementLogEntity]:
        result = await db.execute(
            select(self.model)
            .where(self.model.entity == entity, self.model.entity_id == entity_id)
            .options(selectinload(self.model.items))
            .order_by(self.model.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def add_line(
        self,
        db: AsyncSession,
        *,
        movement_log_entity_id: uuid.UUID,
        entity: exp_models.EntityKind,
        entity_id: uuid.UUID,
        quantity: int,
    ) -> exp_models.MovementLogEntityItem:
        """열린 로그 세션에 라인을 추가합니다. (커밋하지 않음)"""
        db_log = await self.get_or_raise(db, movement_log_entity_id)
        if db_log.status != exp_models.LogStatus.OPEN:
            raise AllocationConflict(
                f"Movement log {movement_log_entity_id} is already finalized",
                movement_log_entity_id=movement_log_entity_id,
            )
        db_line = exp_models.MovementLogEntityItem(
            movement_log_entity_id=movement_log_entity_id,
            entity=entity,
            entity_id=entity_id,
            quantity=quantity,
        )
        db.add(db_line)
        await db.flush()
        return db_line

    async def finalize(self, db: AsyncSession, *, id: uuid.UUID) -> exp_models.MovementLogEntity:
        db_log = await self.get_or_raise(db, id)
        if db_log.status != exp_models.LogStatus.FINISHED:
            db_log.status = exp_models.LogStatus.FINISHED
            db.add(db_log)
            await db.commit()
        return await self.get_with_items(db, id)


#  각 CRUD 클래스의 인스턴스 생성
package = PackageCRUD(exp_models.Package)
box = BoxCRUD(exp_models.Box)
box_item = BoxItemCRUD(exp_models.BoxItem)
delivery_note = DeliveryNoteCRUD(exp_models.DeliveryNote)
delivery_note_item = DeliveryNoteItemCRUD(exp_models.DeliveryNoteItem)
expedition = ExpeditionCRUD(exp_models.Expedition)
invoice = InvoiceCRUD(exp_models.Invoice)
movement_log_entity = MovementLogEntityCRUD(exp_models.MovementLogEntity)
