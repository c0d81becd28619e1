# packledger/services/rollup_service.py

"""
박스(Box)와 납품서(DeliveryNote)의 파생 합계를 재계산하는 서비스 모듈입니다.

재계산은 항상 현재 자식 행을 다시 읽어 부모에 접어 넣는 방식입니다. (증분 카운터를 쓰지 않음)
- Box.total_quantity          = Σ BoxItem.quantity
- DeliveryNote.box_quantity   = 연결된 박스 수
- DeliveryNote.total_quantity = Σ 연결된 Box.total_quantity

납품서 소속 변경은 재고를 건드리지 않습니다. 재고 소비는 할당 시점에 이미 끝났습니다.
"""

import logging
import uuid
from typing import Iterable

from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.database import transactional
from packledger.core.exceptions import AllocationConflict, NotFound
from packledger.domains.exp import crud as exp_crud
from packledger.domains.exp import models as exp_models
from packledger.domains.exp import schemas as exp_schemas

logger = logging.getLogger(__name__)


class RollupService:
    """
    컨테이너 롤업 서비스.
    recompute_* 메서드는 호출 측 트랜잭션 안에서 동작하며 커밋하지 않습니다.
    add_boxes / remove_boxes / create / delete 는 각각 하나의 트랜잭션으로 실행됩니다.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # 재계산
    # =========================================================================
    async def recompute_box(self, box_id: uuid.UUID) -> exp_models.Box:
        db_box = await exp_crud.box.get_or_raise(self.db, box_id)
        box_items = await exp_crud.box_item.get_for_box(self.db, box_id=box_id)
        db_box.total_quantity = sum(box_item.quantity for box_item in box_items)
        self.db.add(db_box)
        await self.db.flush()

        if db_box.delivery_note_id is not None:
            await self.recompute_delivery_note(db_box.delivery_note_id)
        return db_box

    async def recompute_delivery_note(self, delivery_note_id: uuid.UUID) -> exp_models.DeliveryNote:
        db_note = await exp_crud.delivery_note.get_or_raise(self.db, delivery_note_id)
        await self.db.flush()
        boxes = await exp_crud.box.get_for_delivery_note(self.db, delivery_note_id=delivery_note_id)
        db_note.box_quantity = len(boxes)
        db_note.total_quantity = sum(db_box.total_quantity for db_box in boxes)
        self.db.add(db_note)
        await self.db.flush()
        return db_note

    # =========================================================================
    # 납품서 소속 변경
    # =========================================================================
    async def add_boxes(self, delivery_note_id: uuid.UUID, box_ids: Iterable[uuid.UUID]) -> exp_models.DeliveryNote:
        async with transactional(self.db):
            db_note = await self._add_boxes(delivery_note_id, box_ids)
        logger.info("Delivery note %s: %d boxes linked", delivery_note_id, db_note.box_quantity)
        return db_note

    async def remove_boxes(self, delivery_note_id: uuid.UUID, box_ids: Iterable[uuid.UUID]) -> exp_models.DeliveryNote:
        async with transactional(self.db):
            await exp_crud.delivery_note.get_or_raise(self.db, delivery_note_id)
            for box_id in dict.fromkeys(box_ids):
                link = await exp_crud.delivery_note_item.get_by_box(self.db, box_id=box_id)
                if link is None or link.delivery_note_id != delivery_note_id:
                    raise NotFound("DeliveryNoteItem", box_id)
                await self._unlink(link)
            db_note = await self.recompute_delivery_note(delivery_note_id)
        return db_note

    async def _add_boxes(self, delivery_note_id: uuid.UUID, box_ids: Iterable[uuid.UUID]) -> exp_models.DeliveryNote:
        await exp_crud.delivery_note.get_or_raise(self.db, delivery_note_id)
        for box_id in dict.fromkeys(box_ids):
            db_box = await exp_crud.box.get_or_raise(self.db, box_id)
            link = await exp_crud.delivery_note_item.get_by_box(self.db, box_id=box_id)
            if link is not None:
                if link.delivery_note_id == delivery_note_id:
                    continue
                logger.warning("Box %s is already linked to delivery note %s", box_id, link.delivery_note_id)
                raise AllocationConflict(
                    f"Box {box_id} already belongs to delivery note {link.delivery_note_id}",
                    box_id=box_id, delivery_note_id=link.delivery_note_id,
                )
            self.db.add(exp_models.DeliveryNoteItem(delivery_note_id=delivery_note_id, box_id=box_id))
            db_box.delivery_note_id = delivery_note_id
            self.db.add(db_box)
        return await self.recompute_delivery_note(delivery_note_id)

    async def _unlink(self, link: exp_models.DeliveryNoteItem) -> None:
        db_box = await exp_crud.box.get(self.db, link.box_id)
        if db_box is not None:
            db_box.delivery_note_id = None
            self.db.add(db_box)
        await self.db.delete(link)

    # =========================================================================
    # 납품서 생성 / 삭제
    # =========================================================================
    async def create_delivery_note(self, obj_in: exp_schemas.DeliveryNoteCreate) -> exp_models.DeliveryNote:
        async with transactional(self.db):
            db_note = await exp_crud.delivery_note.build(self.db, obj_in=obj_in)
            if obj_in.box_ids:
                await self._add_boxes(db_note.id, obj_in.box_ids)
        logger.info("Delivery note %s created (referral %s)", db_note.id, db_note.referral_id)
        return db_note

    async def delete_delivery_note(self, delivery_note_id: uuid.UUID) -> None:
        """모든 박스 연결을 먼저 해제한 뒤 납품서를 삭제합니다. 박스 자체는 남습니다."""
        async with transactional(self.db):
            db_note = await exp_crud.delivery_note.get_or_raise(self.db, delivery_note_id)
            links = await exp_crud.delivery_note_item.get_for_delivery_note(self.db, delivery_note_id=delivery_note_id)
            for link in links:
                await self._unlink(link)
            await self.db.flush()
            await self.db.delete(db_note)
        logger.info("Delivery note %s deleted", delivery_note_id)
