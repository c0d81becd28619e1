# packledger/domains/prd/models.py

"""
'prd' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

import uuid
from enum import Enum
from typing import Optional
from datetime import date, datetime, UTC

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP, DATE


class ProductionOrderType(str, Enum):
    NORMAL = "Normal"
    REPLENISHMENT = "Reposição"


class ProductionStatus(str, Enum):
    """생산 오더 상태. FINALIZADA는 종료 상태입니다."""
    ABERTO = "Aberto"
    PARCIAL = "Parcial"
    FINALIZADA = "Finalizada"


# =============================================================================
# 1. production_orders 테이블 모델
# =============================================================================
class ProductionOrder(SQLModel, table=True):
    __tablename__ = "production_orders"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    referral_id: int = Field(index=True, description="순차 생산 오더 번호")
    project_id: uuid.UUID = Field(foreign_key="projects.id", ondelete="RESTRICT", index=True)
    supplier_id: Optional[uuid.UUID] = Field(default=None, foreign_key="customers.id", ondelete="SET NULL")
    main_customer_id: Optional[uuid.UUID] = Field(default=None, foreign_key="customers.id", ondelete="SET NULL")
    type: ProductionOrderType = Field(default=ProductionOrderType.NORMAL)
    planned_quantity: int = Field(default=0)
    delivered_quantity: int = Field(default=0)
    issue_date: date = Field(default_factory=lambda: datetime.now(UTC).date(), sa_column=Column(DATE))
    close_date: Optional[date] = Field(default=None, sa_column=Column(DATE))
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
# 2. production_order_items 테이블 모델
# =============================================================================
class ProductionOrderItem(SQLModel, table=True):
    __tablename__ = "production_order_items"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    production_order_id: uuid.UUID = Field(foreign_key="production_orders.id", ondelete="CASCADE", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE")
    item_feature_id: Optional[uuid.UUID] = Field(default=None, foreign_key="item_features.id", ondelete="CASCADE")
    feature_option_id: Optional[uuid.UUID] = Field(default=None, foreign_key="feature_options.id", ondelete="CASCADE")
    quantity: int = Field(default=1)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 3. production_order_statuses 테이블 모델 (상태 이벤트)
# =============================================================================
class ProductionOrderStatus(SQLModel, table=True):
    __tablename__ = "production_order_statuses"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    production_order_id: uuid.UUID = Field(foreign_key="production_orders.id", ondelete="CASCADE", index=True)
    status: ProductionStatus
    date: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 4. production_order_item_additional_feature_options 테이블 모델 (보조 특성)
# =============================================================================
class ProductionOrderItemAdditionalFeatureOption(SQLModel, table=True):
    """생산 오더의 한 품목에 붙는 보조 (특성, 옵션) 쌍. 입고 시 원장 항목의 additional_features 와 대응합니다."""
    __tablename__ = "production_order_item_additional_feature_options"
    __table_args__ = (
        UniqueConstraint(
            "production_order_id", "item_id", "item_feature_id", "feature_option_id",
            name="uq_production_order_item_additional_options",
        ),
    )

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    production_order_id: uuid.UUID = Field(foreign_key="production_orders.id", ondelete="CASCADE", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE")
    item_feature_id: uuid.UUID = Field(foreign_key="item_features.id", ondelete="CASCADE")
    feature_option_id: uuid.UUID = Field(foreign_key="feature_options.id", ondelete="CASCADE")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
