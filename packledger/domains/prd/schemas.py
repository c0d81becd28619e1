# packledger/domains/prd/schemas.py

"""
'prd' 도메인 (생산 오더)의 Pydantic 스키마를 정의하는 모듈입니다.

planned_quantity는 생성 시에만 설정하며, delivered_quantity는 원장 입고로만 누적되므로
요청 스키마에 포함하지 않습니다.
"""

import uuid
from typing import Optional
from datetime import date, datetime
from pydantic import Field
from sqlmodel import SQLModel

from packledger.domains.prd.models import ProductionOrderType, ProductionStatus


# =============================================================================
# 1. production_orders 스키마
# =============================================================================
class ProductionOrderCreate(SQLModel):
    project_id: uuid.UUID
    supplier_id: Optional[uuid.UUID] = None
    main_customer_id: Optional[uuid.UUID] = None
    type: ProductionOrderType = ProductionOrderType.NORMAL
    planned_quantity: int = Field(0, ge=0)
    issue_date: Optional[date] = None


class ProductionOrderResponse(SQLModel):
    id: uuid.UUID
    referral_id: int
    project_id: uuid.UUID
    supplier_id: Optional[uuid.UUID] = None
    main_customer_id: Optional[uuid.UUID] = None
    type: ProductionOrderType
    planned_quantity: int
    delivered_quantity: int
    issue_date: Optional[date] = None
    close_date: Optional[date] = None
    current_status: Optional[ProductionStatus] = None
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 2. production_order_items 스키마
# =============================================================================
class ProductionOrderItemCreate(SQLModel):
    item_id: uuid.UUID
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: Optional[uuid.UUID] = None
    quantity: int = Field(..., gt=0)


class ProductionOrderItemResponse(ProductionOrderItemCreate):
    id: uuid.UUID
    production_order_id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 3. production_order_statuses 스키마
# =============================================================================
class ProductionOrderStatusCreate(SQLModel):
    status: ProductionStatus
    date: Optional[datetime] = None


class ProductionOrderStatusResponse(SQLModel):
    id: uuid.UUID
    production_order_id: uuid.UUID
    status: ProductionStatus
    date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 4. production_order_item_additional_feature_options (보조 특성) 스키마
# =============================================================================
class ProductionOrderItemAdditionalFeatureOptionCreate(SQLModel):
    item_id: uuid.UUID
    item_feature_id: uuid.UUID
    feature_option_id: uuid.UUID


class ProductionOrderItemAdditionalFeatureOptionUpdate(SQLModel):
    feature_option_id: uuid.UUID


class ProductionOrderItemAdditionalFeatureOptionResponse(ProductionOrderItemAdditionalFeatureOptionCreate):
    id: uuid.UUID
    production_order_id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True
