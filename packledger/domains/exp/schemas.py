# packledger/domains/exp/schemas.py

"""
'exp' 도메인 (출하)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

import uuid
from typing import List, Optional
from datetime import date, datetime
from pydantic import Field, model_validator
from sqlmodel import SQLModel

from packledger.domains.exp.models import EntityKind, LogMethod, LogStatus


class EntityRef(SQLModel):
    """이동 로그가 가리키는 엔티티에 대한 타입 있는 참조"""
    kind: EntityKind
    id: uuid.UUID


# =============================================================================
# 1. packages 스키마
# =============================================================================
class PackageCreate(SQLModel):
    name: str = Field(..., max_length=100)
    type: Optional[str] = Field(None, max_length=50)
    material: Optional[str] = Field(None, max_length=50)
    width: Optional[float] = Field(None, ge=0)
    height: Optional[float] = Field(None, ge=0)
    length: Optional[float] = Field(None, ge=0)
    weight: float = Field(0, ge=0)


class PackageResponse(PackageCreate):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 2. movement_log_entities 스키마
# =============================================================================
class MovementLogEntityCreate(SQLModel):
    method: LogMethod
    target: EntityRef


class MovementLogEntityItemResponse(SQLModel):
    id: uuid.UUID
    entity: EntityKind
    entity_id: uuid.UUID
    quantity: int
    created_at: datetime

    class Config:
        from_attributes = True


class MovementLogEntityResponse(SQLModel):
    id: uuid.UUID
    status: LogStatus
    method: LogMethod
    entity: EntityKind
    entity_id: uuid.UUID
    user_id: Optional[uuid.UUID] = None
    date: Optional[datetime] = None
    items: List[MovementLogEntityItemResponse] = []

    class Config:
        from_attributes = True


# =============================================================================
# 3. box_items (할당 기록) 스키마
# =============================================================================
class BoxItemCreate(SQLModel):
    """
    수요 기록은 order_item_id 로 지정하거나,
    order_id + 변형 키 (item_id, item_feature_id, feature_option_id) 로 지정합니다.
    """
    box_id: uuid.UUID
    quantity: int = Field(..., gt=0)
    order_item_id: Optional[uuid.UUID] = None
    order_id: Optional[uuid.UUID] = None
    item_id: Optional[uuid.UUID] = None
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: Optional[uuid.UUID] = None
    movement_log_entity_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def check_demand_reference(self):
        if self.order_item_id is None and (self.order_id is None or self.item_id is None):
            raise ValueError("either order_item_id or order_id with item_id is required")
        return self


class BoxItemUpdate(SQLModel):
    quantity: int = Field(..., gt=0)
    movement_log_entity_id: Optional[uuid.UUID] = None


class BoxItemBatchCreate(SQLModel):
    items: List[BoxItemCreate] = Field(..., min_length=1)


class BoxItemBatchUpdateEntry(BoxItemUpdate):
    id: uuid.UUID


class BoxItemBatchUpdate(SQLModel):
    items: List[BoxItemBatchUpdateEntry] = Field(..., min_length=1)


class BoxItemBatchDelete(SQLModel):
    ids: List[uuid.UUID] = Field(..., min_length=1)
    movement_log_entity_id: Optional[uuid.UUID] = None


class BoxItemResponse(SQLModel):
    id: uuid.UUID
    box_id: uuid.UUID
    order_item_id: uuid.UUID
    item_id: uuid.UUID
    item_feature_id: Optional[uuid.UUID] = None
    feature_option_id: Optional[uuid.UUID] = None
    quantity: int
    user_id: Optional[uuid.UUID] = None
    remaining_quantity: Optional[int] = Field(None, description="해당 수요의 잔여 수량 (조회 시 계산)")
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# 4. boxes 스키마
# =============================================================================
class BoxCreate(SQLModel):
    project_id: uuid.UUID
    customer_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    package_id: Optional[uuid.UUID] = None
    date: Optional[datetime] = None


class BoxResponse(SQLModel):
    id: uuid.UUID
    referral_id: int
    delivery_note_id: Optional[uuid.UUID] = None
    project_id: uuid.UUID
    customer_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    package_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    total_quantity: int
    date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class BoxDetailResponse(BoxResponse):
    items: List[BoxItemResponse] = []
    total_weight: float = 0
    last_log: Optional[MovementLogEntityResponse] = None


# =============================================================================
# 5. delivery_notes / delivery_note_items 스키마
# =============================================================================
class DeliveryNoteCreate(SQLModel):
    project_id: uuid.UUID
    customer_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    invoice_id: Optional[uuid.UUID] = None
    expedition_id: Optional[uuid.UUID] = None
    box_ids: List[uuid.UUID] = []


class DeliveryNoteUpdate(SQLModel):
    order_id: Optional[uuid.UUID] = None
    invoice_id: Optional[uuid.UUID] = None
    expedition_id: Optional[uuid.UUID] = None


class DeliveryNoteResponse(SQLModel):
    id: uuid.UUID
    referral_id: int
    project_id: uuid.UUID
    customer_id: uuid.UUID
    order_id: Optional[uuid.UUID] = None
    invoice_id: Optional[uuid.UUID] = None
    expedition_id: Optional[uuid.UUID] = None
    box_quantity: int
    total_quantity: int
    date: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DeliveryNoteDetailResponse(DeliveryNoteResponse):
    boxes: List[BoxResponse] = []


class DeliveryNoteItemBatch(SQLModel):
    delivery_note_id: uuid.UUID
    box_ids: List[uuid.UUID] = Field(..., min_length=1)


# =============================================================================
# 6. expeditions / invoices 스키마
# =============================================================================
class ExpeditionCreate(SQLModel):
    project_id: uuid.UUID
    main_customer_id: uuid.UUID
    date: Optional[datetime] = None


class ExpeditionResponse(ExpeditionCreate):
    id: uuid.UUID
    referral_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceCreate(SQLModel):
    project_id: uuid.UUID
    customer_id: uuid.UUID
    number: Optional[str] = Field(None, max_length=50)
    issue_date: Optional[date] = None


class InvoiceResponse(InvoiceCreate):
    id: uuid.UUID
    referral_id: int
    created_at: datetime

    class Config:
        from_attributes = True
