# packledger/domains/inv/schemas.py

"""
'inv' 도메인 (재고 원장)의 Pydantic 스키마를 정의하는 모듈입니다.

API 요청 본문의 유효성 검사와 응답 데이터의 직렬화를 담당합니다.
"""

import uuid
from typing import List, Optional
from datetime import datetime
from pydantic import Field, field_validator
from sqlmodel import SQLModel

from packledger.domains.inv.models import MovementType


# =============================================================================
# 0. 변형 키 (Variant Key)
# =============================================================================
class VariantKey(SQLModel):
    """
    재고를 구분하는 값 타입입니다. (item_id, item_feature_id?, feature_option_id?)
    None 끼리는 같은 값으로 취급합니다.
    """
    item_id: uuid.UUID
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: Optional[uuid.UUID] = None

    def as_tuple(self):
        return (self.item_id, self.item_feature_id, self.feature_option_id)


class AdditionalFeature(SQLModel):
    item_feature_id: uuid.UUID
    feature_option_id: uuid.UUID


# =============================================================================
# 1. movements / movement_items 스키마
# =============================================================================
class MovementItemCreate(VariantKey):
    quantity: int = Field(..., description="부호 있는 수량 (입고 +, 출고 -)")
    additional_features: List[AdditionalFeature] = Field(default_factory=list)

    @field_validator("quantity")
    @classmethod
    def quantity_must_not_be_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("quantity must not be zero")
        return v


class MovementCreate(SQLModel):
    production_order_id: Optional[uuid.UUID] = None
    observation: Optional[str] = None
    date: Optional[datetime] = None
    items: List[MovementItemCreate] = Field(..., min_length=1)


class MovementItemResponse(SQLModel):
    id: uuid.UUID
    movement_id: uuid.UUID
    item_id: uuid.UUID
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: Optional[uuid.UUID] = None
    quantity: int
    created_at: datetime

    class Config:
        from_attributes = True


class MovementResponse(SQLModel):
    id: uuid.UUID
    referral_id: int
    movement_type: MovementType
    production_order_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    observation: Optional[str] = None
    date: Optional[datetime] = None
    created_at: datetime
    items: List[MovementItemResponse] = []

    class Config:
        from_attributes = True


# =============================================================================
# 2. stocks / stock_items 스키마
# =============================================================================
class StockItemResponse(SQLModel):
    id: uuid.UUID
    stock_id: uuid.UUID
    item_id: uuid.UUID
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: Optional[uuid.UUID] = None
    quantity: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StockResponse(SQLModel):
    id: uuid.UUID
    item_id: uuid.UUID
    quantity: int
    below_min_stock: bool = False
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StockDetailResponse(StockResponse):
    variants: List[StockItemResponse] = []


class StockAdditionalItemResponse(SQLModel):
    id: uuid.UUID
    stock_item_id: uuid.UUID
    movement_item_id: uuid.UUID
    item_feature_id: uuid.UUID
    feature_option_id: uuid.UUID

    class Config:
        from_attributes = True


# =============================================================================
# 3. 재고 정합성 점검 (reconcile) 스키마
# =============================================================================
class StockDrift(SQLModel):
    """저장된 값(stored)과 원장/할당으로 재계산한 값(expected)이 다른 행"""
    kind: str = Field(..., description="'stock' 또는 'stock_item'")
    id: uuid.UUID
    item_id: uuid.UUID
    stored: int
    expected: int


class ReconcileReport(SQLModel):
    checked_stocks: int = 0
    checked_stock_items: int = 0
    drifts: List[StockDrift] = []
    job_id: Optional[str] = None
