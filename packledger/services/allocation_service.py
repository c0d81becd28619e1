# packledger/services/allocation_service.py

"""
수요(OrderItem)와 할당(BoxItem)을 다루는 서비스 모듈입니다.

- 수요 기록: 같은 (주문, 변형 키) 요청은 기존 수량에 더합니다.
- 할당: 기존 수요만 소비합니다. 할당이 수요를 만들거나 늘리지 않습니다.
  할당 합계가 수요 수량을 넘으면 AllocationConflict, 변형 재고가 모자라면 InsufficientStock.
- 잔여 수량 = 수요 수량 − Σ 활성 할당 (order_item_id, feature_option_id 일치). 항상 조회 시 계산합니다.
- 할당/해제 후에는 박스(및 박스가 속한 납품서) 합계를 다시 계산합니다.

공개 메서드 하나가 하나의 트랜잭션입니다. 배치 메서드는 전체가 하나의 트랜잭션이며,
건드린 박스는 마지막에 한 번씩만 재계산합니다.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Tuple

from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.database import transactional
from packledger.core.exceptions import AllocationConflict, InsufficientStock, NotFound, ValidationError
from packledger.domains.cat.crud import validate_variant
from packledger.domains.exp import crud as exp_crud
from packledger.domains.exp import models as exp_models
from packledger.domains.exp import schemas as exp_schemas
from packledger.domains.inv import crud as inv_crud
from packledger.domains.inv import schemas as inv_schemas
from packledger.domains.ord import crud as ord_crud
from packledger.domains.ord import models as ord_models
from packledger.domains.ord import schemas as ord_schemas
from packledger.services import production_guard
from packledger.services.rollup_service import RollupService

logger = logging.getLogger(__name__)


class AllocationService:
    """수요/할당 서비스"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.rollup = RollupService(db)

    # =========================================================================
    # 1. 수요 기록 (Demand Record)
    # =========================================================================
    async def record_demand(self, obj_in: ord_schemas.OrderItemCreate) -> ord_models.OrderItem:
        async with transactional(self.db):
            db_order_item = await self._record_demand(obj_in)
        return db_order_item

    async def record_demands(self, items: Iterable[ord_schemas.OrderItemCreate]) -> List[ord_models.OrderItem]:
        """배치 수요 기록. 하나라도 실패하면 전체를 되돌립니다."""
        async with transactional(self.db):
            results = [await self._record_demand(obj_in) for obj_in in items]
        # 같은 변형을 여러 번 요청하면 같은 행이 반복되므로 중복을 제거합니다.
        return list({db_order_item.id: db_order_item for db_order_item in results}.values())

    async def update_demand(self, order_item_id: uuid.UUID, quantity: int) -> ord_models.OrderItem:
        if quantity <= 0:
            raise ValidationError("Demand quantity must be positive", order_item_id=order_item_id)

        async with transactional(self.db):
            db_order_item = await ord_crud.order_item.get_or_raise(self.db, order_item_id, for_update=True)
            await self._ensure_order_writable(db_order_item.order_id, action="change demand")

            allocated = await exp_crud.box_item.sum_for_demand(
                self.db, order_item_id=order_item_id, feature_option_id=db_order_item.feature_option_id
            )
            if quantity < allocated:
                raise AllocationConflict(
                    f"Demand {order_item_id} cannot be lowered to {quantity}: {allocated} already allocated",
                    order_item_id=order_item_id, requested=quantity, allocated=allocated,
                )
            db_order_item.quantity = quantity
            self.db.add(db_order_item)

        logger.info("Demand %s set to %d", order_item_id, quantity)
        return db_order_item

    async def delete_demand(self, order_item_id: uuid.UUID) -> None:
        async with transactional(self.db):
            db_order_item = await ord_crud.order_item.get_or_raise(self.db, order_item_id, for_update=True)
            await self._ensure_order_writable(db_order_item.order_id, action="delete demand")

            if await exp_crud.box_item.count_for_demand(self.db, order_item_id=order_item_id):
                raise AllocationConflict(
                    f"Demand {order_item_id} has allocations; deallocate them first",
                    order_item_id=order_item_id,
                )
            await self.db.delete(db_order_item)

        logger.info("Demand %s deleted", order_item_id)

    async def describe_demand(self, db_order_item: ord_models.OrderItem) -> ord_schemas.OrderItemResponse:
        """수요 기록에 할당 합계와 잔여 수량을 붙여 응답 스키마로 만듭니다."""
        allocated = await exp_crud.box_item.sum_for_demand(
            self.db, order_item_id=db_order_item.id, feature_option_id=db_order_item.feature_option_id
        )
        return ord_schemas.OrderItemResponse.model_validate(
            db_order_item,
            update={"allocated_quantity": allocated, "remaining_quantity": db_order_item.quantity - allocated},
        )

    async def describe_demands(
        self, order_items: Iterable[ord_models.OrderItem]
    ) -> List[ord_schemas.OrderItemResponse]:
        order_items = list(order_items)
        sums = await exp_crud.box_item.sums_for_demands(
            self.db, order_item_ids=[db_order_item.id for db_order_item in order_items]
        )
        responses = []
        for db_order_item in order_items:
            allocated = sums.get((db_order_item.id, db_order_item.feature_option_id), 0)
            responses.append(
                ord_schemas.OrderItemResponse.model_validate(
                    db_order_item,
                    update={"allocated_quantity": allocated, "remaining_quantity": db_order_item.quantity - allocated},
                )
            )
        return responses

    async def _record_demand(self, obj_in: ord_schemas.OrderItemCreate) -> ord_models.OrderItem:
        await ord_crud.order.get_or_raise(self.db, obj_in.order_id)
        await validate_variant(
            self.db,
            item_id=obj_in.item_id,
            item_feature_id=obj_in.item_feature_id,
            feature_option_id=obj_in.feature_option_id,
        )
        await self._ensure_order_writable(obj_in.order_id, action="change demand")

        async def locked() -> Optional[ord_models.OrderItem]:
            return await ord_crud.order_item.get_by_variant(
                self.db,
                order_id=obj_in.order_id,
                item_id=obj_in.item_id,
                item_feature_id=obj_in.item_feature_id,
                feature_option_id=obj_in.feature_option_id,
                for_update=True,
            )

        db_order_item = await locked()
        if db_order_item is None:
            new_order_item = ord_models.OrderItem.model_validate(obj_in)
            db_order_item = await ord_crud.order_item.add_or_refetch(self.db, new_order_item, locked)
            if db_order_item is new_order_item:
                return db_order_item
        db_order_item.quantity += obj_in.quantity
        self.db.add(db_order_item)
        await self.db.flush()
        return db_order_item

    # =========================================================================
    # 2. 할당 (Allocation Record)
    # =========================================================================
    async def allocate(
        self, obj_in: exp_schemas.BoxItemCreate, *, user_id: Optional[uuid.UUID] = None
    ) -> exp_models.BoxItem:
        async with transactional(self.db):
            db_box_item = await self._allocate(obj_in, user_id=user_id)
            await self.rollup.recompute_box(db_box_item.box_id)
        logger.info("Allocated %d of demand %s into box %s", db_box_item.quantity, db_box_item.order_item_id, db_box_item.box_id)
        return db_box_item

    async def allocate_batch(
        self, items: Iterable[exp_schemas.BoxItemCreate], *, user_id: Optional[uuid.UUID] = None
    ) -> List[exp_models.BoxItem]:
        async with transactional(self.db):
            results = [await self._allocate(obj_in, user_id=user_id) for obj_in in items]
            await self._recompute_boxes(db_box_item.box_id for db_box_item in results)
        logger.info("Allocated %d box items in batch", len(results))
        return results

    async def update_allocation(
        self, box_item_id: uuid.UUID, quantity: int, *, movement_log_entity_id: Optional[uuid.UUID] = None
    ) -> exp_models.BoxItem:
        async with transactional(self.db):
            db_box_item = await self._update_allocation(box_item_id, quantity, movement_log_entity_id)
            await self.rollup.recompute_box(db_box_item.box_id)
        return db_box_item

    async def update_allocation_batch(
        self, entries: Iterable[exp_schemas.BoxItemBatchUpdateEntry]
    ) -> List[exp_models.BoxItem]:
        async with transactional(self.db):
            results = [
                await self._update_allocation(entry.id, entry.quantity, entry.movement_log_entity_id)
                for entry in entries
            ]
            await self._recompute_boxes(db_box_item.box_id for db_box_item in results)
        return results

    async def deallocate(
        self, box_item_id: uuid.UUID, *, movement_log_entity_id: Optional[uuid.UUID] = None
    ) -> exp_models.Box:
        """할당 수량을 변형 재고로 돌려주고 할당 기록을 삭제합니다. 갱신된 박스를 반환합니다."""
        async with transactional(self.db):
            box_id = await self._deallocate(box_item_id, movement_log_entity_id)
            db_box = await self.rollup.recompute_box(box_id)
        return db_box

    async def deallocate_batch(
        self, box_item_ids: Iterable[uuid.UUID], *, movement_log_entity_id: Optional[uuid.UUID] = None
    ) -> List[exp_models.Box]:
        async with transactional(self.db):
            box_ids = [
                await self._deallocate(box_item_id, movement_log_entity_id)
                for box_item_id in dict.fromkeys(box_item_ids)
            ]
            boxes = await self._recompute_boxes(box_ids)
        return boxes

    async def delete_box(self, box_id: uuid.UUID, *, movement_log_entity_id: Optional[uuid.UUID] = None) -> None:
        """
        박스를 삭제합니다.
        모든 할당 수량을 재고로 돌려주고, 할당 기록을 지우고, 납품서 연결을 끊은 뒤(납품서 재계산) 박스를 지웁니다.
        """
        async with transactional(self.db):
            db_box = await exp_crud.box.get_or_raise(self.db, box_id)
            for db_box_item in await exp_crud.box_item.get_for_box(self.db, box_id=box_id):
                await self._release(db_box_item, movement_log_entity_id)
            await self.db.flush()

            delivery_note_id = db_box.delivery_note_id
            link = await exp_crud.delivery_note_item.get_by_box(self.db, box_id=box_id)
            if link is not None:
                await self.db.delete(link)
            await self.db.delete(db_box)
            await self.db.flush()

            if delivery_note_id is not None:
                await self.rollup.recompute_delivery_note(delivery_note_id)

        logger.info("Box %s deleted, allocations returned to stock", box_id)

    async def describe_allocation(self, db_box_item: exp_models.BoxItem) -> exp_schemas.BoxItemResponse:
        return (await self.describe_allocations([db_box_item]))[0]

    async def describe_allocations(
        self, box_items: Iterable[exp_models.BoxItem]
    ) -> List[exp_schemas.BoxItemResponse]:
        """할당 목록에 수요 잔여 수량을 붙입니다. 수요와 할당 합계는 각각 한 번의 쿼리로 읽습니다."""
        box_items = list(box_items)
        order_item_ids = list(dict.fromkeys(db_box_item.order_item_id for db_box_item in box_items))
        demands = await ord_crud.order_item.get_many(self.db, order_item_ids)
        sums = await exp_crud.box_item.sums_for_demands(self.db, order_item_ids=order_item_ids)

        responses = []
        for db_box_item in box_items:
            db_order_item = demands.get(db_box_item.order_item_id)
            if db_order_item is None:
                raise NotFound("OrderItem", db_box_item.order_item_id)
            allocated = sums.get((db_order_item.id, db_order_item.feature_option_id), 0)
            responses.append(
                exp_schemas.BoxItemResponse.model_validate(
                    db_box_item, update={"remaining_quantity": db_order_item.quantity - allocated}
                )
            )
        return responses

    async def remaining_for(self, order_item_id: uuid.UUID) -> Tuple[int, int]:
        """(할당 합계, 잔여 수량)"""
        db_order_item = await ord_crud.order_item.get_or_raise(self.db, order_item_id)
        allocated = await exp_crud.box_item.sum_for_demand(
            self.db, order_item_id=order_item_id, feature_option_id=db_order_item.feature_option_id
        )
        return allocated, db_order_item.quantity - allocated

    # -------------------------------------------------------------------------
    # 내부 구현 (커밋하지 않음)
    # -------------------------------------------------------------------------
    async def _allocate(
        self, obj_in: exp_schemas.BoxItemCreate, *, user_id: Optional[uuid.UUID]
    ) -> exp_models.BoxItem:
        db_box = await exp_crud.box.get_or_raise(self.db, obj_in.box_id)
        db_order_item = await self._resolve_demand(obj_in)
        if db_box.order_id is not None and db_box.order_id != db_order_item.order_id:
            raise ValidationError(
                f"Box {db_box.id} belongs to order {db_box.order_id}, not {db_order_item.order_id}",
                box_id=db_box.id, order_id=db_order_item.order_id,
            )
        await self._ensure_order_writable(db_order_item.order_id, action="allocate")

        # 합계는 수요 행을 잠근 뒤(_resolve_demand)에 읽습니다.
        allocated = await exp_crud.box_item.sum_for_demand(
            self.db, order_item_id=db_order_item.id, feature_option_id=db_order_item.feature_option_id
        )
        if allocated + obj_in.quantity > db_order_item.quantity:
            logger.warning(
                "Rejected over-allocation on demand %s: %d + %d > %d",
                db_order_item.id, allocated, obj_in.quantity, db_order_item.quantity,
            )
            raise AllocationConflict(
                f"Allocation exceeds demand {db_order_item.id}: "
                f"remaining {db_order_item.quantity - allocated}, requested {obj_in.quantity}",
                order_item_id=db_order_item.id,
                requested=obj_in.quantity,
                remaining=db_order_item.quantity - allocated,
            )

        key = self._variant_of(db_order_item)
        await self._take_stock(key, obj_in.quantity)

        db_box_item = exp_models.BoxItem(
            box_id=db_box.id,
            order_item_id=db_order_item.id,
            item_id=db_order_item.item_id,
            item_feature_id=db_order_item.item_feature_id,
            feature_option_id=db_order_item.feature_option_id,
            quantity=obj_in.quantity,
            user_id=user_id,
        )
        self.db.add(db_box_item)
        await self.db.flush()

        await self._log(obj_in.movement_log_entity_id, db_box_item.id, obj_in.quantity)
        return db_box_item

    async def _update_allocation(
        self, box_item_id: uuid.UUID, quantity: int, movement_log_entity_id: Optional[uuid.UUID]
    ) -> exp_models.BoxItem:
        if quantity <= 0:
            raise ValidationError("Allocation quantity must be positive; use deallocate instead", box_item_id=box_item_id)

        db_box_item = await exp_crud.box_item.get_or_raise(self.db, box_item_id)
        # 잠금 순서: 수요 → 할당 → 변형 재고
        db_order_item = await ord_crud.order_item.get_or_raise(self.db, db_box_item.order_item_id, for_update=True)
        db_box_item = await exp_crud.box_item.get_or_raise(self.db, box_item_id, for_update=True)
        await self._ensure_order_writable(db_order_item.order_id, action="update allocation")

        delta = quantity - db_box_item.quantity
        if delta == 0:
            return db_box_item

        allocated = await exp_crud.box_item.sum_for_demand(
            self.db, order_item_id=db_order_item.id, feature_option_id=db_order_item.feature_option_id
        )
        if allocated + delta > db_order_item.quantity:
            raise AllocationConflict(
                f"Allocation exceeds demand {db_order_item.id}: "
                f"remaining {db_order_item.quantity - allocated}, requested {delta} more",
                order_item_id=db_order_item.id,
                requested=delta,
                remaining=db_order_item.quantity - allocated,
            )

        key = self._variant_of(db_box_item)
        if delta > 0:
            await self._take_stock(key, delta)
        else:
            await self._give_back(key, -delta)

        db_box_item.quantity = quantity
        self.db.add(db_box_item)
        await self._log(movement_log_entity_id, db_box_item.id, delta)
        return db_box_item

    async def _deallocate(self, box_item_id: uuid.UUID, movement_log_entity_id: Optional[uuid.UUID]) -> uuid.UUID:
        db_box_item = await exp_crud.box_item.get_or_raise(self.db, box_item_id, for_update=True)
        box_id = db_box_item.box_id
        await self._release(db_box_item, movement_log_entity_id)
        await self.db.flush()
        return box_id

    async def _release(self, db_box_item: exp_models.BoxItem, movement_log_entity_id: Optional[uuid.UUID]) -> None:
        await self._give_back(self._variant_of(db_box_item), db_box_item.quantity)
        await self._log(movement_log_entity_id, db_box_item.id, -db_box_item.quantity)
        await self.db.delete(db_box_item)

    async def _resolve_demand(self, obj_in: exp_schemas.BoxItemCreate) -> ord_models.OrderItem:
        if obj_in.order_item_id is not None:
            return await ord_crud.order_item.get_or_raise(self.db, obj_in.order_item_id, for_update=True)

        await ord_crud.order.get_or_raise(self.db, obj_in.order_id)
        db_order_item = await ord_crud.order_item.get_by_variant(
            self.db,
            order_id=obj_in.order_id,
            item_id=obj_in.item_id,
            item_feature_id=obj_in.item_feature_id,
            feature_option_id=obj_in.feature_option_id,
            for_update=True,
        )
        if db_order_item is None:
            raise NotFound(f"OrderItem of order {obj_in.order_id} for item", obj_in.item_id)
        return db_order_item

    async def _take_stock(self, key: inv_schemas.VariantKey, quantity: int) -> None:
        """변형 재고 행을 잠그고 quantity 만큼 차감합니다."""
        db_stock_item = await inv_crud.stock_item.get_by_variant(
            self.db,
            item_id=key.item_id,
            item_feature_id=key.item_feature_id,
            feature_option_id=key.feature_option_id,
            for_update=True,
        )
        available = db_stock_item.quantity if db_stock_item is not None else 0
        if db_stock_item is None or available < quantity:
            logger.warning("Rejected allocation of %d for item %s: %d available", quantity, key.item_id, available)
            raise InsufficientStock(key.item_id, quantity, available)

        db_stock_item.quantity -= quantity
        self.db.add(db_stock_item)
        await inv_crud.stock.recompute_total(self.db, item_id=key.item_id)

    async def _give_back(self, key: inv_schemas.VariantKey, quantity: int) -> None:
        db_stock = await inv_crud.stock.get_or_create(self.db, item_id=key.item_id)
        db_stock_item = await inv_crud.stock_item.get_or_create(self.db, stock=db_stock, key=key)
        db_stock_item.quantity += quantity
        self.db.add(db_stock_item)
        await inv_crud.stock.recompute_total(self.db, item_id=key.item_id)

    async def _log(self, movement_log_entity_id: Optional[uuid.UUID], box_item_id: uuid.UUID, quantity: int) -> None:
        if movement_log_entity_id is None:
            return
        await exp_crud.movement_log_entity.add_line(
            self.db,
            movement_log_entity_id=movement_log_entity_id,
            entity=exp_models.EntityKind.BOX_ITEM,
            entity_id=box_item_id,
            quantity=quantity,
        )

    async def _recompute_boxes(self, box_ids: Iterable[uuid.UUID]) -> List[exp_models.Box]:
        return [await self.rollup.recompute_box(box_id) for box_id in dict.fromkeys(box_ids)]

    async def _ensure_order_writable(self, order_id: uuid.UUID, *, action: str) -> None:
        db_order = await ord_crud.order.get_or_raise(self.db, order_id)
        await production_guard.ensure_project_writable(self.db, db_order.project_id, action=action)

    @staticmethod
    def _variant_of(record) -> inv_schemas.VariantKey:
        return inv_schemas.VariantKey(
            item_id=record.item_id,
            item_feature_id=record.item_feature_id,
            feature_option_id=record.feature_option_id,
        )
