# packledger/services/movement_service.py

"""
재고 원장(Movement Ledger) 기록 서비스 모듈입니다.

원장 항목(MovementItem)은 추가만 가능하며, 항목 하나를 기록할 때마다 같은 트랜잭션 안에서
- 변형 단위 재고(StockItem)에 부호 있는 수량을 더하고,
- 보조 특성 연결(StockAdditionalItem)을 중복 없이 만들고,
- 품목 단위 재고(Stock)를 전체 합산으로 다시 계산하고,
- 생산 오더가 지정된 경우 delivered_quantity 를 누적합니다.

출고(음수)는 변형 재고 행을 잠근 뒤 잔량을 확인하며, 부족하면 InsufficientStock 으로 전체를 되돌립니다.
"""

import logging
import uuid
from typing import List, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.database import transactional
from packledger.core.exceptions import InsufficientStock, ValidationError
from packledger.domains.cat.crud import validate_variant
from packledger.domains.inv import crud as inv_crud
from packledger.domains.inv import models as inv_models
from packledger.domains.inv import schemas as inv_schemas
from packledger.domains.prd import crud as prd_crud
from packledger.domains.prd import models as prd_models

logger = logging.getLogger(__name__)


class MovementService:
    """원장 기록 서비스. FastAPI 라우터 또는 태스크에서 세션을 주입받아 사용합니다."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_movement(
        self,
        key: inv_schemas.VariantKey,
        quantity: int,
        *,
        production_order_id: Optional[uuid.UUID] = None,
        additional_features: Optional[List[inv_schemas.AdditionalFeature]] = None,
        user_id: Optional[uuid.UUID] = None,
        observation: Optional[str] = None,
    ) -> inv_models.MovementItem:
        """원장 항목 하나를 기록하고 생성된 MovementItem 을 반환합니다."""
        if quantity == 0:
            raise ValidationError("Movement quantity must not be zero", item_id=key.item_id)

        movement_in = inv_schemas.MovementCreate(
            production_order_id=production_order_id,
            observation=observation,
            items=[
                inv_schemas.MovementItemCreate(
                    item_id=key.item_id,
                    item_feature_id=key.item_feature_id,
                    feature_option_id=key.feature_option_id,
                    quantity=quantity,
                    additional_features=additional_features or [],
                )
            ],
        )
        db_movement = await self.record_movements(movement_in, user_id=user_id)
        return db_movement.items[0]

    async def record_movements(
        self, movement_in: inv_schemas.MovementCreate, *, user_id: Optional[uuid.UUID] = None
    ) -> inv_models.Movement:
        """
        헤더 하나와 항목 N개를 하나의 트랜잭션으로 기록합니다.
        항목은 순서대로 적용되며, 하나라도 실패하면 배치 전체가 롤백됩니다.
        """
        async with transactional(self.db):
            db_movement = await self._open_movement(movement_in, user_id=user_id)
            for entry in movement_in.items:
                await self._apply_entry(db_movement, entry)

        logger.info(
            "Movement %s recorded: %d entries (%s)",
            db_movement.referral_id, len(movement_in.items), db_movement.movement_type.value,
        )
        return await inv_crud.movement.get_with_items(self.db, db_movement.id)

    async def _open_movement(
        self, movement_in: inv_schemas.MovementCreate, *, user_id: Optional[uuid.UUID]
    ) -> inv_models.Movement:
        if movement_in.production_order_id is not None:
            await prd_crud.production_order.get_or_raise(self.db, movement_in.production_order_id)

        db_movement = inv_models.Movement(
            referral_id=await inv_crud.movement.next_referral_id(self.db),
            movement_type=(
                inv_models.MovementType.PRODUCTION_ORDER
                if movement_in.production_order_id is not None
                else inv_models.MovementType.MANUAL
            ),
            production_order_id=movement_in.production_order_id,
            user_id=user_id,
            observation=movement_in.observation,
        )
        if movement_in.date is not None:
            db_movement.date = movement_in.date
        self.db.add(db_movement)
        await self.db.flush()
        return db_movement

    async def _apply_entry(self, db_movement: inv_models.Movement, entry: inv_schemas.MovementItemCreate) -> None:
        await validate_variant(
            self.db,
            item_id=entry.item_id,
            item_feature_id=entry.item_feature_id,
            feature_option_id=entry.feature_option_id,
        )
        for extra in entry.additional_features:
            await validate_variant(
                self.db,
                item_id=entry.item_id,
                item_feature_id=extra.item_feature_id,
                feature_option_id=extra.feature_option_id,
            )

        if entry.quantity < 0:
            db_stock_item = await inv_crud.stock_item.get_by_variant(
                self.db,
                item_id=entry.item_id,
                item_feature_id=entry.item_feature_id,
                feature_option_id=entry.feature_option_id,
                for_update=True,
            )
            available = db_stock_item.quantity if db_stock_item is not None else 0
            if db_stock_item is None or available < -entry.quantity:
                logger.warning(
                    "Rejected debit of %d for item %s: %d available", -entry.quantity, entry.item_id, available
                )
                raise InsufficientStock(entry.item_id, -entry.quantity, available)
        else:
            db_stock = await inv_crud.stock.get_or_create(self.db, item_id=entry.item_id)
            db_stock_item = await inv_crud.stock_item.get_or_create(self.db, stock=db_stock, key=entry)

        db_movement_item = inv_models.MovementItem(
            movement_id=db_movement.id,
            item_id=entry.item_id,
            item_feature_id=entry.item_feature_id,
            feature_option_id=entry.feature_option_id,
            quantity=entry.quantity,
        )
        self.db.add(db_movement_item)
        await self.db.flush()

        db_stock_item.quantity += entry.quantity
        self.db.add(db_stock_item)

        for extra in entry.additional_features:
            await inv_crud.stock_additional_item.link(
                self.db,
                stock_item_id=db_stock_item.id,
                movement_item_id=db_movement_item.id,
                item_feature_id=extra.item_feature_id,
                feature_option_id=extra.feature_option_id,
            )

        await inv_crud.stock.recompute_total(self.db, item_id=entry.item_id)

        if db_movement.production_order_id is not None:
            db_order: prd_models.ProductionOrder = await prd_crud.production_order.get_or_raise(
                self.db, db_movement.production_order_id, for_update=True
            )
            db_order.delivered_quantity = (db_order.delivered_quantity or 0) + entry.quantity
            self.db.add(db_order)
