# packledger/core/database.py

"""
애플리케이션의 데이터베이스 연결 및 세션 관리를 담당하는 모듈입니다.

- SQLModel의 비동기 엔진을 설정합니다. (운영: asyncpg, 로컬/테스트: aiosqlite)
- 비동기 세션 생성을 위한 유틸리티 함수를 제공합니다.
- 원장 연산 하나를 하나의 트랜잭션으로 묶는 `transactional` 컨텍스트 관리자를 제공합니다.
- 애플리케이션 시작 시 데이터베이스 테이블을 생성하는 함수를 포함합니다 (개발용).
"""

import logging
from typing import Any, AsyncGenerator, Dict
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from packledger.core.config import settings

logger = logging.getLogger(__name__)


def build_engine_kwargs(database_url: str, echo: bool = False) -> Dict[str, Any]:
    """
    DB 종류에 맞는 엔진 인자를 만듭니다.
    SQLite(aiosqlite)는 커넥션 풀 크기 옵션을 받지 않으므로 PostgreSQL에만 적용합니다.
    """
    kwargs: Dict[str, Any] = {"echo": echo, "future": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_recycle=3600,  # 1시간마다 연결 재활용
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    return kwargs


# SQLModel 엔진을 생성합니다.
engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL.get_secret_value(),
    **build_engine_kwargs(settings.DATABASE_URL.get_secret_value(), echo=settings.DEBUG_MODE),
)

# 비동기 세션을 생성하는 '세션 공장'을 정의합니다.
AsyncSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

metadata = SQLModel.metadata


# =============================================================================
# 데이터베이스 초기화 및 테이블 생성 함수
# =============================================================================
async def create_db_and_tables() -> None:
    """
    모든 테이블을 생성합니다. 개발 환경에서만 사용하며, 운영 환경은 Alembic을 사용합니다.
    모든 도메인 모델이 먼저 임포트되어 있어야 합니다. (packledger.domains.models)
    """
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("데이터베이스 테이블 생성 완료 (또는 이미 존재).")


# =============================================================================
# 비동기 데이터베이스 세션 의존성 주입
# =============================================================================
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI 의존성 주입을 위한 비동기 데이터베이스 세션 제너레이터입니다.
    요청마다 새로운 세션을 생성하고, 요청 처리 후 세션을 자동으로 닫습니다.
    """
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_async_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    ARQ Task, CLI 스크립트 등 요청 밖에서 사용할 수 있는
    독립적인 비동기 DB 세션을 제공하는 컨텍스트 관리자입니다.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def transactional(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    원장 연산 하나(또는 배치 하나)를 단일 트랜잭션으로 실행합니다.
    블록이 정상 종료되면 커밋하고, 어떤 예외든 발생하면 전체를 롤백한 뒤 다시 던집니다.
    부분 반영된 상태는 트랜잭션 밖으로 절대 노출되지 않습니다.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
