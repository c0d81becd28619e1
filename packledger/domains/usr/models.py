# packledger/domains/usr/models.py

"""
'usr' 도메인의 데이터베이스 ORM 모델을 정의하는 모듈입니다.

원장 연산을 수행한 사용자(user_id)를 기록하고, 토큰 로그인을 위한 계정 정보를 담습니다.
"""

import uuid
from typing import Optional
from datetime import datetime, UTC
from enum import IntEnum

from sqlmodel import Field, SQLModel, Column
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 사용자 역할(RBAC)
# =============================================================================
class UserRole(IntEnum):
    """
    사용자 역할을 정의하는 정수형 Enum 클래스입니다.
    DB에는 정수 값으로 저장되며, 값이 작을수록 권한이 높습니다.
    """
    SUPERUSER = 1           # 최고 관리자
    ADMIN = 10              # 시스템 관리자 (카탈로그, 고객, 프로젝트 관리)
    OPERATOR = 100          # 재고/포장 담당자 (입출고, 할당, 출하)
    VIEWER = 200            # 조회 전용


# =============================================================================
# 1. users 테이블 모델
# =============================================================================
class UserBase(SQLModel):
    username: str = Field(max_length=50, sa_column_kwargs={"unique": True}, description="로그인 사용자명")
    email: Optional[str] = Field(default=None, max_length=100, sa_column_kwargs={"unique": True}, description="사용자 이메일")
    full_name: Optional[str] = Field(default=None, max_length=100, description="사용자 전체 이름")
    role: UserRole = Field(default=UserRole.OPERATOR, description="사용자 역할 (권한)")
    is_active: bool = Field(default=True, description="계정 활성 여부")


class User(UserBase, table=True):
    __tablename__ = "users"

    id: Optional[uuid.UUID] = Field(default_factory=uuid.uuid4, primary_key=True, description="사용자 고유 ID")
    password_hash: str = Field(max_length=255, description="해싱된 비밀번호")

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
