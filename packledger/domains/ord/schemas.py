# packledger/domains/ord/schemas.py

"""
'ord' 도메인 (고객 주문)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

import uuid
from typing import List, Optional
from datetime import datetime
from pydantic import Field
from sqlmodel import SQLModel


# =============================================================================
# 1. customers / projects 스키마
# =============================================================================
class CustomerCreate(SQLModel):
    name: str = Field(..., max_length=150)
    document: Optional[str] = Field(None, max_length=30)
    email: Optional[str] = Field(None, max_length=100)


class CustomerResponse(CustomerCreate):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


class ProjectCreate(SQLModel):
    name: str = Field(..., max_length=150)
    customer_id: uuid.UUID


class ProjectResponse(ProjectCreate):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 2. orders 스키마
# =============================================================================
class OrderCreate(SQLModel):
    project_id: uuid.UUID
    customer_id: uuid.UUID
    observation: Optional[str] = None


class OrderResponse(OrderCreate):
    id: uuid.UUID
    referral_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 3. order_items (수요 기록) 스키마
# =============================================================================
class OrderItemCreate(SQLModel):
    order_id: uuid.UUID
    item_id: uuid.UUID
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: uuid.UUID
    quantity: int = Field(..., gt=0)


class OrderItemBatchCreate(SQLModel):
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderItemUpdate(SQLModel):
    quantity: int = Field(..., gt=0)


class OrderItemResponse(SQLModel):
    id: uuid.UUID
    order_id: uuid.UUID
    item_id: uuid.UUID
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: uuid.UUID
    quantity: int
    allocated_quantity: int = 0
    remaining_quantity: int = Field(..., description="요청 수량 − 할당 합계 (조회 시 계산)")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderDetailResponse(OrderResponse):
    items: List[OrderItemResponse] = []


# =============================================================================
# 4. order_item_additional_feature_options (보조 특성) 스키마
# =============================================================================
class OrderItemAdditionalFeatureOptionCreate(SQLModel):
    order_id: uuid.UUID
    item_id: uuid.UUID
    item_feature_id: uuid.UUID
    feature_option_id: uuid.UUID


class OrderItemAdditionalFeatureOptionUpdate(SQLModel):
    feature_option_id: uuid.UUID


class OrderItemAdditionalFeatureOptionResponse(OrderItemAdditionalFeatureOptionCreate):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True
