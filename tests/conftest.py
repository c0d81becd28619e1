# tests/conftest.py

import os
from types import SimpleNamespace
from typing import AsyncGenerator, Callable, Awaitable, Optional
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool, StaticPool
from sqlmodel import SQLModel, select

from packledger.main import app as main_app
from packledger.core import dependencies as deps
from packledger.core.database import get_session
from packledger.core.security import get_password_hash

# --- 모든 모델 임포트 ---
#  SQLModel.metadata.create_all()이 모든 테이블을 인식하려면 모든 모델이 한 번 이상 임포트되어야 합니다.
from packledger.domains.models import *    # noqa: F401, F403

from packledger.domains.usr import models as usr_models
from packledger.domains.inv import models as inv_models
from packledger.domains.inv.crud import variant_conditions
from packledger.domains.cat import crud as cat_crud, schemas as cat_schemas
from packledger.domains.ord import crud as ord_crud, schemas as ord_schemas


# --- 테스트용 데이터베이스 설정 ---
# 기본은 테스트마다 새로 만드는 인메모리 SQLite 입니다.
# TEST_DATABASE_URL 로 PostgreSQL (postgresql+asyncpg://...) 을 지정할 수도 있습니다.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")


def _build_test_engine() -> AsyncEngine:
    if TEST_DATABASE_URL.startswith("sqlite"):
        # 인메모리 DB는 연결이 닫히면 사라지므로 하나의 연결을 공유합니다.
        return create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_async_engine(TEST_DATABASE_URL, echo=False, future=True, poolclass=NullPool)


# --- 데이터베이스 픽스처 ---
@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    테스트마다 모든 테이블을 생성하고, 종료 시 삭제합니다.
    """
    engine = _build_test_engine()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    테스트와 애플리케이션이 함께 사용하는 비동기 세션.
    서비스가 직접 커밋/롤백하므로 실제 트랜잭션 동작을 그대로 검증할 수 있습니다.
    """
    TestingSessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with TestingSessionLocal() as session:
        yield session


# --- 사용자 픽스처 ---
@pytest_asyncio.fixture(scope="function")
def user_factory(db_session: AsyncSession) -> Callable[..., Awaitable[usr_models.User]]:
    """역할과 속성을 지정하여 테스트 사용자를 생성하는 팩토리 함수를 반환합니다."""
    async def _create_user(
        username: str,
        password: str,
        role: usr_models.UserRole,
        is_active: bool = True,
        **kwargs,
    ) -> usr_models.User:
        user = usr_models.User(
            username=username,
            password_hash=get_password_hash(password),
            email=f"{username}@example.com",
            role=role,
            is_active=is_active,
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user
    return _create_user


@pytest_asyncio.fixture(scope="function")
async def test_admin_user(user_factory: Callable) -> usr_models.User:
    """관리자(ADMIN) 사용자를 생성합니다."""
    return await user_factory("sysadm", "sysadmpass123", role=usr_models.UserRole.ADMIN, full_name="Admin Test User")


@pytest_asyncio.fixture(scope="function")
async def test_user(user_factory: Callable) -> usr_models.User:
    """재고/포장 담당자(OPERATOR)를 생성합니다."""
    return await user_factory("operator", "operpass123", role=usr_models.UserRole.OPERATOR, full_name="Operator Test User")


# --- 인증 클라이언트 픽스처 ---
@pytest_asyncio.fixture(scope="function")
def authorized_client_factory(db_session: AsyncSession):
    """
    특정 사용자로 로그인된 AsyncClient를 만드는 비동기 컨텍스트 매니저 팩토리를 반환합니다.
    로그인은 실제 /api/v1/usr/auth/token 엔드포인트를 거칩니다.
    """
    @asynccontextmanager
    async def _create_client_context(user: usr_models.User, password: str) -> AsyncGenerator[AsyncClient, None]:
        def override_get_session():
            yield db_session

        original_overrides = main_app.dependency_overrides.copy()
        try:
            main_app.dependency_overrides.update({
                get_session: override_get_session,
                deps.get_db_session: override_get_session,
            })
            main_app.state.redis = None

            transport = ASGITransport(app=main_app)
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                login_data = {"username": user.username, "password": password}
                res = await client.post("/api/v1/usr/auth/token", data=login_data)
                if res.status_code != 200:
                    pytest.fail(f"Login failed for {user.username}: {res.text}")

                token = res.json()["access_token"]
                client.headers["Authorization"] = f"Bearer {token}"
                yield client
        finally:
            main_app.dependency_overrides.clear()
            main_app.dependency_overrides.update(original_overrides)

    return _create_client_context


@pytest_asyncio.fixture(scope="function")
async def admin_client(authorized_client_factory, test_admin_user: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    """관리자로 인증된 클라이언트를 반환합니다."""
    async with authorized_client_factory(test_admin_user, "sysadmpass123") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def authorized_client(authorized_client_factory, test_user: usr_models.User) -> AsyncGenerator[AsyncClient, None]:
    """일반 담당자(OPERATOR)로 인증된 클라이언트를 반환합니다."""
    async with authorized_client_factory(test_user, "operpass123") as client:
        yield client


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """인증되지 않은 사용자를 위한 AsyncClient. 테스트용 DB 세션을 주입합니다."""
    def override_get_session_and_dependency():
        yield db_session

    original_overrides = main_app.dependency_overrides.copy()
    try:
        main_app.dependency_overrides[get_session] = override_get_session_and_dependency
        main_app.dependency_overrides[deps.get_db_session] = override_get_session_and_dependency
        main_app.state.redis = None

        async with AsyncClient(transport=ASGITransport(app=main_app), base_url="http://test") as async_client:
            yield async_client
    finally:
        main_app.dependency_overrides.clear()
        main_app.dependency_overrides.update(original_overrides)


# --- 도메인 공통 픽스처 ---
# 실패한 연산 뒤에는 세션이 롤백되어 ORM 객체가 만료되므로, 픽스처는 id 값만 돌려줍니다.
@pytest_asyncio.fixture(name="catalog")
async def catalog_fixture(db_session: AsyncSession) -> SimpleNamespace:
    """
    품목 하나와 두 특성(사이즈, 색상), 옵션(M, G, 파랑)을 만듭니다.
    변형 키 예: (item_id, size_id, size_m_id)
    """
    item = await cat_crud.item.create(
        db_session,
        obj_in=cat_schemas.ItemCreate(code="CAM-001", name="Camiseta Polo", weight=0.25, min_stock=50),
    )
    size = await cat_crud.feature.create(db_session, obj_in=cat_schemas.FeatureCreate(name="Tamanho"))
    color = await cat_crud.feature.create(db_session, obj_in=cat_schemas.FeatureCreate(name="Cor"))
    item_size = await cat_crud.item_feature.create(
        db_session, obj_in=cat_schemas.ItemFeatureCreate(item_id=item.id, feature_id=size.id)
    )
    item_color = await cat_crud.item_feature.create(
        db_session, obj_in=cat_schemas.ItemFeatureCreate(item_id=item.id, feature_id=color.id)
    )
    size_m = await cat_crud.feature_option.create(
        db_session, obj_in=cat_schemas.FeatureOptionCreate(feature_id=size.id, name="M")
    )
    size_g = await cat_crud.feature_option.create(
        db_session, obj_in=cat_schemas.FeatureOptionCreate(feature_id=size.id, name="G")
    )
    blue = await cat_crud.feature_option.create(
        db_session, obj_in=cat_schemas.FeatureOptionCreate(feature_id=color.id, name="Azul")
    )
    return SimpleNamespace(
        item_id=item.id,
        size_id=item_size.id,
        color_id=item_color.id,
        size_m_id=size_m.id,
        size_g_id=size_g.id,
        blue_id=blue.id,
    )


@pytest_asyncio.fixture(name="sales")
async def sales_fixture(db_session: AsyncSession) -> SimpleNamespace:
    """고객, 프로젝트, 주문 하나씩을 만듭니다."""
    customer = await ord_crud.customer.create(
        db_session, obj_in=ord_schemas.CustomerCreate(name="Escola Municipal", document="12.345.678/0001-90")
    )
    project = await ord_crud.project.create(
        db_session, obj_in=ord_schemas.ProjectCreate(name="Uniformes 2026", customer_id=customer.id)
    )
    order = await ord_crud.order.create(
        db_session, obj_in=ord_schemas.OrderCreate(project_id=project.id, customer_id=customer.id)
    )
    return SimpleNamespace(customer_id=customer.id, project_id=project.id, order_id=order.id)


@pytest.fixture
def stock_of(db_session: AsyncSession) -> Callable[..., Awaitable[tuple]]:
    """
    (변형 재고 수량, 품목 재고 수량) 을 컬럼 단위로 직접 조회하는 함수를 반환합니다.
    행이 없으면 0 으로 봅니다.
    """
    async def _stock_of(
        item_id, item_feature_id: Optional[object] = None, feature_option_id: Optional[object] = None
    ) -> tuple:
        variant = await db_session.execute(
            select(inv_models.StockItem.quantity).where(
                *variant_conditions(inv_models.StockItem, item_id, item_feature_id, feature_option_id)
            )
        )
        total = await db_session.execute(
            select(inv_models.Stock.quantity).where(inv_models.Stock.item_id == item_id)
        )
        return (variant.scalar_one_or_none() or 0, total.scalar_one_or_none() or 0)
    return _stock_of
