# packledger/domains/cat/models.py

"""
'cat' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

변형 키(variant key) = (item_id, item_feature_id?, feature_option_id?) 의 각 구성 요소가
이 모듈의 테이블을 참조합니다.
"""

import uuid
from typing import Optional
from datetime import datetime, UTC

from sqlmodel import Field, SQLModel, Column
from sqlalchemy import UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 1. items 테이블 모델
# =============================================================================
class ItemBase(SQLModel):
    code: str = Field(max_length=50, unique=True, index=True, description="품목 코드 (사람이 식별하는 용도)")
    name: str = Field(max_length=150, description="품목명")
    description: Optional[str] = Field(default=None, description="품목 설명")
    unit_of_measure: str = Field(default="EA", max_length=20, description="EA, KG 등")
    weight: float = Field(default=0, ge=0, description="단위 중량 (kg). 박스 총중량 계산에 사용")
    price: Optional[float] = Field(default=None, ge=0, description="단가")
    min_stock: Optional[int] = Field(default=None, ge=0, description="최소 재고 기준")
    max_stock: Optional[int] = Field(default=None, ge=0, description="최대 재고 기준")
    is_active: bool = Field(default=True)


class Item(ItemBase, table=True):
    __tablename__ = "items"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
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
# 2. features 테이블 모델 (예: 사이즈, 색상)
# =============================================================================
class FeatureBase(SQLModel):
    name: str = Field(max_length=100, unique=True, description="특성명")


class Feature(FeatureBase, table=True):
    __tablename__ = "features"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 3. item_features 테이블 모델 (품목 ↔ 특성)
# =============================================================================
class ItemFeatureBase(SQLModel):
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="CASCADE", index=True)
    feature_id: uuid.UUID = Field(foreign_key="features.id", ondelete="CASCADE")


class ItemFeature(ItemFeatureBase, table=True):
    __tablename__ = "item_features"
    __table_args__ = (UniqueConstraint("item_id", "feature_id", name="uq_item_features_item_feature"),)

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 4. feature_options 테이블 모델 (예: P, M, G / 빨강, 파랑)
# =============================================================================
class FeatureOptionBase(SQLModel):
    feature_id: uuid.UUID = Field(foreign_key="features.id", ondelete="CASCADE", index=True)
    name: str = Field(max_length=100, description="옵션명")


class FeatureOption(FeatureOptionBase, table=True):
    __tablename__ = "feature_options"
    __table_args__ = (UniqueConstraint("feature_id", "name", name="uq_feature_options_feature_name"),)

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )
