# packledger/domains/inv/crud.py

"""
'inv' 도메인의 CRUD 작업을 위한 함수들을 정의하는 모듈입니다.

여기의 메서드들은 커밋하지 않습니다. (flush까지만 수행)
재고 집계를 바꾸는 연산은 services.movement_service / services.allocation_service 에서
transactional() 블록 안에서 호출합니다.
"""

import logging
import uuid
from typing import Any, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import selectinload
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.crud_base import CRUDBase, lock_rows
from packledger.domains.cat import models as cat_models
from packledger.domains.inv import models as inv_models
from packledger.domains.inv import schemas as inv_schemas

logger = logging.getLogger(__name__)


def variant_conditions(
    model: Any,
    item_id: uuid.UUID,
    item_feature_id: Optional[uuid.UUID],
    feature_option_id: Optional[uuid.UUID],
) -> list:
    """
    변형 키 일치 조건을 만듭니다. None 값은 `IS NULL`로 비교합니다.
    (SQL에서 `col = NULL`은 항상 거짓이므로 그대로 쓰면 안 됩니다.)
    """
    conditions = [model.item_id == item_id]
    for column, value in (
        (model.item_feature_id, item_feature_id),
        (model.feature_option_id, feature_option_id),
    ):
        conditions.append(column.is_(None) if value is None else column == value)
    return conditions


class StockCRUD(CRUDBase[inv_models.Stock, inv_models.Stock, inv_models.Stock]):
    """품목 단위 재고 (Stock)"""

    async def get_by_item(self, db: AsyncSession, *, item_id: uuid.UUID) -> Optional[inv_models.Stock]:
        result = await db.execute(select(self.model).where(self.model.item_id == item_id))
        return result.scalar_one_or_none()

    async def get_or_create(self, db: AsyncSession, *, item_id: uuid.UUID) -> inv_models.Stock:
        db_stock = await self.get_by_item(db, item_id=item_id)
        if db_stock is None:
            db_stock = await self.add_or_refetch(
                db,
                inv_models.Stock(item_id=item_id, quantity=0),
                lambda: self.get_by_item(db, item_id=item_id),
            )
        return db_stock

    async def recompute_total(self, db: AsyncSession, *, item_id: uuid.UUID) -> Optional[inv_models.Stock]:
        """Stock.quantity = Σ StockItem.quantity (품목 전체 합산)"""
        db_stock = await self.get_by_item(db, item_id=item_id)
        if db_stock is None:
            return None
        await db.flush()
        result = await db.execute(
            select(func.coalesce(func.sum(inv_models.StockItem.quantity), 0))
            .where(inv_models.StockItem.item_id == item_id)
        )
        db_stock.quantity = int(result.scalar_one())
        db.add(db_stock)
        await db.flush()
        return db_stock

    async def get_multi_with_thresholds(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100, below_min_only: bool = False
    ) -> List[Tuple[inv_models.Stock, Optional[int]]]:
        """재고와 품목의 최소 재고(min_stock)를 함께 조회합니다."""
        query = (
            select(self.model, cat_models.Item.min_stock)
            .join(cat_models.Item, cat_models.Item.id == self.model.item_id)
            .order_by(cat_models.Item.code)
        )
        if below_min_only:
            query = query.where(
                cat_models.Item.min_stock.is_not(None), self.model.quantity < cat_models.Item.min_stock
            )
        result = await db.execute(query.offset(skip).limit(limit))
        return [(row[0], row[1]) for row in result.all()]


class StockItemCRUD(CRUDBase[inv_models.StockItem, inv_models.StockItem, inv_models.StockItem]):
    """변형 단위 재고 (StockItem)"""

    async def get_by_variant(
        self,
        db: AsyncSession,
        *,
        item_id: uuid.UUID,
        item_feature_id: Optional[uuid.UUID] = None,
        feature_option_id: Optional[uuid.UUID] = None,
        for_update: bool = False,
    ) -> Optional[inv_models.StockItem]:
        """
        변형 키로 재고 행을 조회합니다.
        for_update=True 이면 행 잠금(SELECT ... FOR UPDATE)을 걸고 DB의 최신 값으로 다시 읽습니다.
        """
        conditions = variant_conditions(self.model, item_id, item_feature_id, feature_option_id)
        query = select(self.model).where(*conditions)
        if for_update:
            await db.flush()
            await lock_rows(db, self.model, *conditions)
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_or_create(
        self, db: AsyncSession, *, stock: inv_models.Stock, key: inv_schemas.VariantKey
    ) -> inv_models.StockItem:
        """잠금을 건 변형 재고 행을 반환합니다. 없으면 수량 0으로 만듭니다."""
        async def locked() -> Optional[inv_models.StockItem]:
            return await self.get_by_variant(
                db,
                item_id=key.item_id,
                item_feature_id=key.item_feature_id,
                feature_option_id=key.feature_option_id,
                for_update=True,
            )

        db_stock_item = await locked()
        if db_stock_item is None:
            db_stock_item = await self.add_or_refetch(
                db,
                inv_models.StockItem(
                    stock_id=stock.id,
                    item_id=key.item_id,
                    item_feature_id=key.item_feature_id,
                    feature_option_id=key.feature_option_id,
                    quantity=0,
                ),
                locked,
            )
        return db_stock_item

    async def get_for_item(self, db: AsyncSession, *, item_id: uuid.UUID) -> List[inv_models.StockItem]:
        result = await db.execute(
            select(self.model).where(self.model.item_id == item_id).order_by(self.model.created_at)
        )
        return result.scalars().all()


class MovementCRUD(CRUDBase[inv_models.Movement, inv_schemas.MovementCreate, inv_schemas.MovementCreate]):
    """원장 헤더 (Movement). 수정/삭제 경로는 제공하지 않습니다."""

    async def get_with_items(self, db: AsyncSession, id: uuid.UUID) -> Optional[inv_models.Movement]:
        query = (
            select(self.model)
            .where(self.model.id == id)
            .options(selectinload(self.model.items))
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def get_multi_with_items(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        production_order_id: Optional[uuid.UUID] = None,
    ) -> List[inv_models.Movement]:
        query = select(self.model).options(selectinload(self.model.items))
        if production_order_id is not None:
            query = query.where(self.model.production_order_id == production_order_id)
        query = query.order_by(self.model.referral_id.desc()).offset(skip).limit(limit)
        result = await db.execute(query)
        return result.scalars().all()

    async def sum_for_variant(
        self,
        db: AsyncSession,
        *,
        item_id: uuid.UUID,
        item_feature_id: Optional[uuid.UUID],
        feature_option_id: Optional[uuid.UUID],
    ) -> int:
        """해당 변형 키의 원장 항목 수량 합계"""
        result = await db.execute(
            select(func.coalesce(func.sum(inv_models.MovementItem.quantity), 0)).where(
                *variant_conditions(inv_models.MovementItem, item_id, item_feature_id, feature_option_id)
            )
        )
        return int(result.scalar_one())


class StockAdditionalItemCRUD(
    CRUDBase[inv_models.StockAdditionalItem, inv_models.StockAdditionalItem, inv_models.StockAdditionalItem]
):
    """StockItem에 붙는 보조 특성 연결. 같은 (특성, 옵션) 쌍은 한 번만 연결됩니다."""

    async def link(
        self,
        db: AsyncSession,
        *,
        stock_item_id: uuid.UUID,
        movement_item_id: uuid.UUID,
        item_feature_id: uuid.UUID,
        feature_option_id: uuid.UUID,
    ) -> Tuple[inv_models.StockAdditionalItem, bool]:
        result = await db.execute(
            select(self.model).where(
                self.model.stock_item_id == stock_item_id,
                self.model.item_feature_id == item_feature_id,
                self.model.feature_option_id == feature_option_id,
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            return existing, False

        db_link = inv_models.StockAdditionalItem(
            stock_item_id=stock_item_id,
            movement_item_id=movement_item_id,
            item_feature_id=item_feature_id,
            feature_option_id=feature_option_id,
        )
        db.add(db_link)
        await db.flush()
        return db_link, True

    async def get_for_stock_item(
        self, db: AsyncSession, *, stock_item_id: uuid.UUID
    ) -> List[inv_models.StockAdditionalItem]:
        result = await db.execute(select(self.model).where(self.model.stock_item_id == stock_item_id))
        return result.scalars().all()


#  각 CRUD 클래스의 인스턴스 생성
stock = StockCRUD(inv_models.Stock)
stock_item = StockItemCRUD(inv_models.StockItem)
movement = MovementCRUD(inv_models.Movement)
stock_additional_item = StockAdditionalItemCRUD(inv_models.StockAdditionalItem)
