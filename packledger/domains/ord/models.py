# packledger/domains/ord/models.py

"""
'ord' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.
"""

import uuid
from typing import Optional
from datetime import datetime, UTC

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import Index, UniqueConstraint, text
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 1. customers 테이블 모델
# =============================================================================
class CustomerBase(SQLModel):
    name: str = Field(max_length=150)
    document: Optional[str] = Field(default=None, max_length=30, description="사업자/주민 번호")
    email: Optional[str] = Field(default=None, max_length=100)


class Customer(CustomerBase, table=True):
    __tablename__ = "customers"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 2. projects 테이블 모델
# =============================================================================
class ProjectBase(SQLModel):
    name: str = Field(max_length=150)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", ondelete="RESTRICT", index=True)


class Project(ProjectBase, table=True):
    __tablename__ = "projects"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 3. orders 테이블 모델
# =============================================================================
class OrderBase(SQLModel):
    project_id: uuid.UUID = Field(foreign_key="projects.id", ondelete="RESTRICT", index=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", ondelete="RESTRICT", index=True)
    observation: Optional[str] = Field(default=None)


class Order(OrderBase, table=True):
    __tablename__ = "orders"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    referral_id: Optional[int] = Field(default=None, index=True, description="순차 주문 번호")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 4. order_items 테이블 모델 (수요 기록)
# =============================================================================
class OrderItem(SQLModel, table=True):
    """
    주문 내 변형 단위 요청 수량.
    (order_id, item_id, item_feature_id, feature_option_id) 조합당 최대 한 건이며,
    같은 조합을 다시 요청하면 기존 수량에 더합니다.
    """
    __tablename__ = "order_items"
    # NULL item_feature_id 끼리도 같은 키로 취급 (식 인덱스)
    __table_args__ = (
        Index(
            "uq_order_items_variant",
            "order_id",
            "item_id",
            text("coalesce(CAST(item_feature_id AS VARCHAR), '')"),
            "feature_option_id",
            unique=True,
        ),
    )

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="orders.id", ondelete="CASCADE", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE", index=True)
    item_feature_id: Optional[uuid.UUID] = Field(default=None, foreign_key="item_features.id", ondelete="CASCADE")
    feature_option_id: uuid.UUID = Field(foreign_key="feature_options.id", ondelete="CASCADE")
    quantity: int = Field(default=1)
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
# 5. order_item_additional_feature_options 테이블 모델 (보조 특성)
# =============================================================================
class OrderItemAdditionalFeatureOption(SQLModel, table=True):
    """
    주문의 한 품목에 붙는 보조 (특성, 옵션) 쌍. 예: 사이즈별 수요에 공통으로 붙는 색상.
    수요 수량과 할당에는 영향을 주지 않습니다.
    """
    __tablename__ = "order_item_additional_feature_options"
    __table_args__ = (
        UniqueConstraint(
            "order_id", "item_id", "item_feature_id", "feature_option_id", name="uq_order_item_additional_options"
        ),
    )

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="orders.id", ondelete="CASCADE", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE")
    item_feature_id: uuid.UUID = Field(foreign_key="item_features.id", ondelete="CASCADE")
    feature_option_id: uuid.UUID = Field(foreign_key="feature_options.id", ondelete="CASCADE")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
