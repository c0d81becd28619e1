# packledger/core/crud_base.py

"""
공통 CRUD(Create, Read, Update, Delete) 작업을 위한 기본 클래스 모듈입니다.
모든 메서드는 비동기(async) 환경에서 동작합니다.

단순 마스터 데이터(카탈로그, 고객, 프로젝트 등)는 이 클래스의 create/update/delete가
바로 커밋합니다. 재고 원장에 영향을 주는 연산은 services 패키지에서
하나의 트랜잭션으로 묶어 처리하므로 여기의 커밋 메서드를 사용하지 않습니다.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from sqlmodel import SQLModel, select
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession
from pydantic import BaseModel

from packledger.core.exceptions import NotFound

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


async def lock_rows(db: AsyncSession, model: Any, *conditions: Any) -> None:
    """
    SELECT ... FOR UPDATE 전에 호출합니다.
    SQLite는 FOR UPDATE를 무시하므로, 값이 바뀌지 않는 UPDATE를 먼저 실행해 데이터베이스 쓰기 잠금을 잡습니다.
    (조건에 맞는 행이 없어도 잠금은 잡힙니다.) 다른 DB에서는 아무것도 하지 않습니다.
    """
    if db.get_bind().dialect.name != "sqlite":
        return
    table = model.__table__
    # onupdate 컬럼(updated_at)도 자기 값으로 지정해야 갱신 시각이 바뀌지 않습니다.
    unchanged = {column: column for column in table.columns if column.primary_key or column.onupdate is not None}
    await db.execute(update(table).where(*conditions).values(unchanged))


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    모든 CRUD 작업에 대한 기본 클래스를 정의합니다.
    """
    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        """ID를 기준으로 단일 레코드를 조회합니다."""
        return await db.get(self.model, id)

    async def get_many(self, db: AsyncSession, ids: Iterable[Any]) -> Dict[Any, ModelType]:
        """여러 ID를 한 번의 쿼리로 조회합니다. {id: 레코드}"""
        ids = list(dict.fromkeys(ids))
        if not ids:
            return {}
        result = await db.execute(select(self.model).where(self.model.id.in_(ids)))
        return {db_obj.id: db_obj for db_obj in result.scalars().all()}

    async def get_or_raise(self, db: AsyncSession, id: Any, *, for_update: bool = False) -> ModelType:
        """
        ID로 조회하고, 없으면 NotFound를 발생시킵니다.
        for_update=True 이면 행 잠금을 건 뒤 DB의 최신 값으로 다시 읽습니다.
        """
        if for_update:
            db_obj = await self.get_for_update(db, id)
        else:
            db_obj = await db.get(self.model, id)
        if db_obj is None:
            raise NotFound(self.model.__name__, id)
        return db_obj

    async def get_for_update(self, db: AsyncSession, id: Any) -> Optional[ModelType]:
        # 세션에 남은 변경을 먼저 반영해야 populate_existing 재조회로 덮어쓰이지 않습니다.
        await db.flush()
        await lock_rows(db, self.model, self.model.id == id)
        result = await db.execute(
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().one_or_none()

    async def add_or_refetch(
        self,
        db: AsyncSession,
        db_obj: ModelType,
        refetch: Callable[[], Awaitable[Optional[ModelType]]],
    ) -> ModelType:
        """
        새 행을 SAVEPOINT 안에서 추가합니다.
        다른 트랜잭션이 같은 유일 키의 행을 먼저 만들어 제약 위반이 나면
        SAVEPOINT만 되돌리고 refetch()로 그 행을 읽어 반환합니다. (호출 측은 `is` 로 구분)
        """
        try:
            async with db.begin_nested():
                db.add(db_obj)
                await db.flush()
        except IntegrityError:
            existing = await refetch()
            if existing is None:
                raise
            logger.info("%s row created concurrently; reusing %s", self.model.__name__, existing.id)
            return existing
        return db_obj

    async def get_multi(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100, **kwargs: Any
    ) -> List[ModelType]:
        """
        여러 레코드를 조회합니다. 값이 None이 아닌 키워드 인자는 동등 조건 필터로 사용합니다.
        """
        query = select(self.model)

        for field, value in kwargs.items():
            if value is not None and hasattr(self.model, field):
                query = query.where(getattr(self.model, field) == value)

        if hasattr(self.model, "created_at"):
            query = query.order_by(self.model.created_at.desc())

        result = await db.execute(query.offset(skip).limit(limit))
        return result.scalars().all()

    async def next_referral_id(self, db: AsyncSession) -> int:
        """referral_id 컬럼을 가진 모델의 다음 순번(max + 1)을 반환합니다."""
        await db.flush()
        result = await db.execute(select(func.max(self.model.referral_id)))
        return (result.scalar_one_or_none() or 0) + 1

    async def get_by_attribute(
        self, db: AsyncSession, *, attribute: str, value: Any
    ) -> Optional[ModelType]:
        statement = select(self.model).where(getattr(self.model, attribute) == value)
        result = await db.execute(statement)
        return result.scalars().first()

    async def create(self, db: AsyncSession, *, obj_in: CreateSchemaType) -> ModelType:
        """새로운 레코드를 생성합니다."""
        db_obj = self.model.model_validate(obj_in)
        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def update(
        self, db: AsyncSession, *, db_obj: ModelType, obj_in: UpdateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """기존 레코드를 업데이트합니다."""
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            if hasattr(db_obj, key):
                setattr(db_obj, key, value)

        db.add(db_obj)
        await db.commit()
        await db.refresh(db_obj)
        return db_obj

    async def delete(self, db: AsyncSession, *, id: Any) -> Optional[ModelType]:
        """ID를 기준으로 레코드를 삭제합니다."""
        db_obj = await db.get(self.model, id)
        if db_obj:
            await db.delete(db_obj)
            await db.commit()
        return db_obj
