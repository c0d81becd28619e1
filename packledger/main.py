# packledger/main.py

import logging
from typing import AsyncGenerator
from contextlib import asynccontextmanager
from arq.connections import create_pool, RedisSettings
from arq.cron import cron

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# 핵심 설정 및 데이터베이스 모듈 임포트
from packledger.core.config import settings
from packledger.core.database import engine, get_session
from packledger.core.exceptions import LedgerError

from packledger import API_PREFIX, APP_NAME, APP_VERSION

# 모든 테이블 모델을 메타데이터에 등록합니다.
import packledger.domains.models  # noqa: F401

# 태스크 모듈 임포트
from packledger.core import tasks as core_tasks
from packledger.domains.inv import tasks as inv_tasks

# 도메인 라우터 임포트
from packledger.domains.usr.routers import router as usr_router
from packledger.domains.cat.routers import router as cat_router
from packledger.domains.inv.routers import router as inv_router
from packledger.domains.ord.routers import router as ord_router
from packledger.domains.prd.routers import router as prd_router
from packledger.domains.exp.routers import router as exp_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ARQ 워커가 실행할 태스크 함수 목록
worker_functions = [
    core_tasks.health_check_database_task,
    inv_tasks.reconcile_stock_balances,
]


# ARQ 워커 설정 클래스 (실행: arq packledger.main.ArqWorkerSettings)
class ArqWorkerSettings:
    redis_settings = RedisSettings(host=settings.REDIS_HOST, port=settings.REDIS_PORT)
    functions = worker_functions
    cron_jobs = [
        # 매일 00:00 데이터베이스 헬스 체크
        cron(core_tasks.health_check_database_task, hour={0}, minute={0}, timeout=300, keep_result=600),
        # 매일 02:00 재고 정합성 점검 (읽기 전용)
        cron(inv_tasks.reconcile_stock_balances, hour={2}, minute={0}, timeout=1800, keep_result=3600),
    ]


# -- 애플리케이션 수명 주기 이벤트 핸들러 --
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI 애플리케이션의 수명 주기 이벤트(데이터베이스, ARQ Redis)를 함께 처리합니다.
    ARQ_ENABLED 가 꺼져 있으면 Redis 풀을 만들지 않고, 백그라운드 작업은 요청 안에서 동기로 실행됩니다.
    """
    logger.info("%s v%s 시작 중...", APP_NAME, APP_VERSION)
    app.state.redis = None
    if settings.ARQ_ENABLED:
        logger.info("ARQ Redis 커넥션 풀을 생성합니다...")
        app.state.redis = await create_pool(ArqWorkerSettings.redis_settings)
        logger.info("ARQ Redis 커넥션 풀 생성 완료.")

    yield  # 애플리케이션 실행

    logger.info("FastAPI 애플리케이션 종료 중...")
    if app.state.redis is not None:
        await app.state.redis.close()
        logger.info("ARQ Redis 연결 풀 종료 완료.")
    await engine.dispose()
    logger.info("데이터베이스 연결 풀 종료 완료.")


# -- FastAPI 애플리케이션 인스턴스 생성 --
app = FastAPI(
    title=APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# -- CORS 미들웨어 설정 --
# 운영 환경에서는 CORS_ORIGINS 를 실제 프론트엔드 도메인으로 제한해야 합니다.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# -- 원장 오류 처리기 --
@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """LedgerError 계열 예외를 {"detail", "code", "context"} 형태의 응답으로 변환합니다."""
    if exc.status_code >= 500:
        logger.error("%s %s -> %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s -> %s (%s)", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# -- 도메인 라우터 포함 --
app.include_router(usr_router, prefix=f"{API_PREFIX}/usr", tags=["User Management (사용자 관리)"])
app.include_router(cat_router, prefix=f"{API_PREFIX}/cat", tags=["Catalog (품목 카탈로그)"])
app.include_router(inv_router, prefix=f"{API_PREFIX}/inv", tags=["Inventory Ledger (재고 원장)"])
app.include_router(ord_router, prefix=f"{API_PREFIX}/ord", tags=["Orders & Demand (주문 및 수요)"])
app.include_router(prd_router, prefix=f"{API_PREFIX}/prd", tags=["Production Orders (생산 오더)"])
app.include_router(exp_router, prefix=f"{API_PREFIX}/exp", tags=["Expedition (출하)"])


# -- 루트 엔드포인트 --
@app.get("/", summary="API Root", response_description="Welcome message and documentation link.")
async def read_root():
    """API의 시작점을 알리고 문서 링크를 제공합니다."""
    return {"message": f"Welcome to {APP_NAME}. Visit /docs for interactive API documentation."}


# -- 헬스 체크 엔드포인트 --
@app.get("/health-check", summary="Health Check", response_description="Status of the application and database connection.")
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    데이터베이스 연결을 테스트하여 서비스의 정상 작동 여부를 확인합니다.
    """
    try:
        result = await session.execute(select(1))
        if result.scalar_one_or_none() == 1:
            return {"status": "ok", "database_connection": "successful"}
    except Exception as e:
        logger.exception("Health check failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Database connection error during health check: {e}"
        )
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Database health check failed: No result from test query"
    )
