# packledger/domains/inv/models.py

"""
'inv' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

재고 집계(Stock, StockItem)는 직접 수정하지 않습니다.
원장 항목 추가(movement_service) 또는 할당 변경(allocation_service)의 부수 효과로만 바뀝니다.
"""

import uuid
from enum import Enum
from typing import List, Optional
from datetime import datetime, UTC

from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import Index, UniqueConstraint, text
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


class MovementType(str, Enum):
    PRODUCTION_ORDER = "productionOrder"
    MANUAL = "manual"


# =============================================================================
# 1. stocks 테이블 모델 (품목 단위 집계)
# =============================================================================
class Stock(SQLModel, table=True):
    """품목 단위 재고. quantity == 해당 품목의 모든 StockItem.quantity 합"""
    __tablename__ = "stocks"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE", unique=True, index=True)
    quantity: int = Field(default=0)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=lambda: datetime.now(UTC)),
        description="레코드 마지막 업데이트 일시"
    )


# =============================================================================
# 2. stock_items 테이블 모델 (변형 단위 집계)
# =============================================================================
class StockItem(SQLModel, table=True):
    """
    변형 키 (item_id, item_feature_id, feature_option_id) 단위 재고.
    quantity == Σ 원장 항목 수량 − Σ 활성 할당(BoxItem) 수량
    """
    __tablename__ = "stock_items"
    # NULL 변형 값끼리도 같은 키로 취급 (빈 문자열로 바꾼 식 인덱스)
    __table_args__ = (
        Index(
            "uq_stock_items_variant",
            "stock_id",
            text("coalesce(CAST(item_feature_id AS VARCHAR), '')"),
            text("coalesce(CAST(feature_option_id AS VARCHAR), '')"),
            unique=True,
        ),
    )

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    stock_id: uuid.UUID = Field(foreign_key="stocks.id", ondelete="CASCADE", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE", index=True)
    item_feature_id: Optional[uuid.UUID] = Field(default=None, foreign_key="item_features.id", ondelete="CASCADE")
    feature_option_id: Optional[uuid.UUID] = Field(default=None, foreign_key="feature_options.id", ondelete="CASCADE")
    quantity: int = Field(default=0)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=lambda: datetime.now(UTC)),
        description="레코드 마지막 업데이트 일시"
    )


# =============================================================================
# 3. movements 테이블 모델 (원장 헤더)
# =============================================================================
class Movement(SQLModel, table=True):
    __tablename__ = "movements"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    referral_id: int = Field(unique=True, index=True, description="순차 입출고 번호")
    movement_type: MovementType = Field(default=MovementType.MANUAL)
    production_order_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="production_orders.id", ondelete="SET NULL", index=True
    )
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    observation: Optional[str] = Field(default=None)
    date: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

    items: List["MovementItem"] = Relationship(
        back_populates="movement",
        sa_relationship_kwargs={"order_by": "MovementItem.created_at"},
    )


# =============================================================================
# 4. movement_items 테이블 모델 (원장 항목, 불변)
# =============================================================================
class MovementItem(SQLModel, table=True):
    __tablename__ = "movement_items"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    movement_id: uuid.UUID = Field(foreign_key="movements.id", ondelete="CASCADE", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE", index=True)
    item_feature_id: Optional[uuid.UUID] = Field(default=None, foreign_key="item_features.id", ondelete="CASCADE")
    feature_option_id: Optional[uuid.UUID] = Field(default=None, foreign_key="feature_options.id", ondelete="CASCADE")
    quantity: int = Field(description="부호 있는 수량 (입고 +, 출고 -)")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

    movement: Optional[Movement] = Relationship(back_populates="items")


# =============================================================================
# 5. stock_additional_items 테이블 모델 (보조 특성 연결)
# =============================================================================
class StockAdditionalItem(SQLModel, table=True):
    __tablename__ = "stock_additional_items"
    __table_args__ = (
        UniqueConstraint("stock_item_id", "item_feature_id", "feature_option_id", name="uq_stock_additional_items_link"),
    )

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    stock_item_id: uuid.UUID = Field(foreign_key="stock_items.id", ondelete="CASCADE", index=True)
    movement_item_id: uuid.UUID = Field(foreign_key="movement_items.id", ondelete="CASCADE")
    item_feature_id: uuid.UUID = Field(foreign_key="item_features.id", ondelete="CASCADE")
    feature_option_id: uuid.UUID = Field(foreign_key="feature_options.id", ondelete="CASCADE")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
