# packledger/domains/cat/schemas.py

"""
'cat' 도메인 (품목 카탈로그)의 Pydantic 스키마를 정의하는 모듈입니다.
"""

import uuid
from typing import Optional
from datetime import datetime
from pydantic import Field
from sqlmodel import SQLModel


# =============================================================================
# 1. items 스키마
# =============================================================================
class ItemBase(SQLModel):
    code: str = Field(..., max_length=50, description="품목 코드")
    name: str = Field(..., max_length=150, description="품목명")
    description: Optional[str] = Field(None, description="품목 설명")
    unit_of_measure: str = Field("EA", max_length=20)
    weight: float = Field(0, ge=0, description="단위 중량 (kg)")
    price: Optional[float] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class ItemCreate(ItemBase):
    pass


class ItemUpdate(SQLModel):
    name: Optional[str] = Field(None, max_length=150)
    description: Optional[str] = None
    unit_of_measure: Optional[str] = Field(None, max_length=20)
    weight: Optional[float] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    max_stock: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class ItemResponse(ItemBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 2. features 스키마
# =============================================================================
class FeatureCreate(SQLModel):
    name: str = Field(..., max_length=100)


class FeatureResponse(FeatureCreate):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 3. item_features 스키마
# =============================================================================
class ItemFeatureCreate(SQLModel):
    item_id: uuid.UUID
    feature_id: uuid.UUID


class ItemFeatureResponse(ItemFeatureCreate):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# 4. feature_options 스키마
# =============================================================================
class FeatureOptionCreate(SQLModel):
    feature_id: uuid.UUID
    name: str = Field(..., max_length=100)


class FeatureOptionResponse(FeatureOptionCreate):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True
