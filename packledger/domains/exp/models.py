# packledger/domains/exp/models.py

"""
'exp' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

Box.total_quantity, DeliveryNote.box_quantity / total_quantity 는 파생 값이며
services.rollup_service 의 재계산 함수로만 갱신됩니다.
"""

import uuid
from enum import Enum
from typing import List, Optional
from datetime import date, datetime, UTC

from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP, DATE


class LogStatus(str, Enum):
    OPEN = "aberto"
    FINISHED = "finalizado"


class LogMethod(str, Enum):
    CREATE = "criação"
    EDIT = "edição"
    REMOVE = "remoção"


class EntityKind(str, Enum):
    """이동 로그가 가리킬 수 있는 엔티티 종류 (닫힌 집합)"""
    BOX = "box"
    BOX_ITEM = "box_item"
    DELIVERY_NOTE = "delivery_note"
    INVOICE = "invoice"
    EXPEDITION = "expedition"
    MOVEMENT = "movement"


# =============================================================================
# 1. packages 테이블 모델 (포장 규격)
# =============================================================================
class PackageBase(SQLModel):
    name: str = Field(max_length=100)
    type: Optional[str] = Field(default=None, max_length=50)
    material: Optional[str] = Field(default=None, max_length=50)
    width: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    length: Optional[float] = Field(default=None, ge=0)
    weight: float = Field(default=0, ge=0, description="포장 자체 중량 (kg)")


class Package(PackageBase, table=True):
    __tablename__ = "packages"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 2. boxes / box_items 테이블 모델
# =============================================================================
class Box(SQLModel, table=True):
    __tablename__ = "boxes"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    referral_id: int = Field(index=True)
    delivery_note_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="delivery_notes.id", ondelete="SET NULL", index=True
    )
    project_id: uuid.UUID = Field(foreign_key="projects.id", ondelete="RESTRICT", index=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", ondelete="RESTRICT")
    order_id: Optional[uuid.UUID] = Field(default=None, foreign_key="orders.id", ondelete="SET NULL")
    package_id: Optional[uuid.UUID] = Field(default=None, foreign_key="packages.id", ondelete="SET NULL")
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    total_quantity: int = Field(default=0)
    date: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
    )
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

    items: List["BoxItem"] = Relationship(
        back_populates="box",
        sa_relationship_kwargs={"order_by": "BoxItem.created_at"},
    )


class BoxItem(SQLModel, table=True):
    """할당 기록. 변형 필드는 수요 기록(OrderItem)에서 복사합니다."""
    __tablename__ = "box_items"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    box_id: uuid.UUID = Field(foreign_key="boxes.id", ondelete="CASCADE", index=True)
    order_item_id: uuid.UUID = Field(foreign_key="order_items.id", ondelete="RESTRICT", index=True)
    item_id: uuid.UUID = Field(foreign_key="items.id", ondelete="RESTRICT")
    item_feature_id: Optional[uuid.UUID] = Field(default=None, foreign_key="item_features.id", ondelete="RESTRICT")
    feature_option_id: Optional[uuid.UUID] = Field(default=None, foreign_key="feature_options.id", ondelete="RESTRICT")
    quantity: int
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
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

    box: Optional[Box] = Relationship(back_populates="items")


# =============================================================================
# 3. expeditions / invoices 테이블 모델
# =============================================================================
class Expedition(SQLModel, table=True):
    __tablename__ = "expeditions"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    referral_id: int = Field(index=True)
    project_id: uuid.UUID = Field(foreign_key="projects.id", ondelete="RESTRICT", index=True)
    main_customer_id: uuid.UUID = Field(foreign_key="customers.id", ondelete="RESTRICT")
    date: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


class Invoice(SQLModel, table=True):
    __tablename__ = "invoices"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    referral_id: int = Field(index=True)
    number: Optional[str] = Field(default=None, max_length=50, description="송장 번호")
    project_id: uuid.UUID = Field(foreign_key="projects.id", ondelete="RESTRICT", index=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", ondelete="RESTRICT")
    issue_date: Optional[date] = Field(default_factory=lambda: datetime.now(UTC).date(), sa_column=Column(DATE))
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 4. delivery_notes / delivery_note_items 테이블 모델
# =============================================================================
class DeliveryNote(SQLModel, table=True):
    __tablename__ = "delivery_notes"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    referral_id: int = Field(index=True)
    invoice_id: Optional[uuid.UUID] = Field(default=None, foreign_key="invoices.id", ondelete="SET NULL")
    project_id: uuid.UUID = Field(foreign_key="projects.id", ondelete="RESTRICT", index=True)
    customer_id: uuid.UUID = Field(foreign_key="customers.id", ondelete="RESTRICT")
    order_id: Optional[uuid.UUID] = Field(default=None, foreign_key="orders.id", ondelete="SET NULL")
    expedition_id: Optional[uuid.UUID] = Field(default=None, foreign_key="expeditions.id", ondelete="SET NULL")
    box_quantity: int = Field(default=0)
    total_quantity: int = Field(default=0)
    date: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
    )
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


class DeliveryNoteItem(SQLModel, table=True):
    """박스의 납품서 소속. 박스 하나는 최대 하나의 납품서에만 속합니다. (box_id unique)"""
    __tablename__ = "delivery_note_items"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    delivery_note_id: uuid.UUID = Field(foreign_key="delivery_notes.id", ondelete="CASCADE", index=True)
    box_id: uuid.UUID = Field(foreign_key="boxes.id", ondelete="CASCADE", unique=True)
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )


# =============================================================================
# 5. movement_log_entities / movement_log_entity_items 테이블 모델 (엔티티 이동 로그)
# =============================================================================
class MovementLogEntity(SQLModel, table=True):
    """작업자 한 명의 편집 세션. 열려 있는(aberto) 동안 로그 라인이 쌓입니다."""
    __tablename__ = "movement_log_entities"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    status: LogStatus = Field(default=LogStatus.OPEN)
    method: LogMethod
    entity: EntityKind
    entity_id: uuid.UUID = Field(index=True)
    user_id: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    date: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
    )
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

    items: List["MovementLogEntityItem"] = Relationship(
        back_populates="log",
        sa_relationship_kwargs={"order_by": "MovementLogEntityItem.created_at"},
    )


class MovementLogEntityItem(SQLModel, table=True):
    __tablename__ = "movement_log_entity_items"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True)
    movement_log_entity_id: uuid.UUID = Field(foreign_key="movement_log_entities.id", ondelete="CASCADE", index=True)
    entity: EntityKind
    entity_id: uuid.UUID
    quantity: int = Field(default=0, description="부호 있는 변화량")
    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="레코드 생성 일시"
    )

    log: Optional[MovementLogEntity] = Relationship(back_populates="items")
