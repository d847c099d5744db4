"""
FastAPI 애플리케이션

라우터 등록 및 앱 설정.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config.loader import get_settings
from core.logging import setup_logging

# 로깅 설정 (콘솔 + 파일)
setup_logging("web")

from web.routes import health, reconciliation, sync  # noqa: E402

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """앱 생명주기 관리"""
    from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
    from core.config.loader import ConfigurationError
    from engine.bootstrap import SyncEngine
    from web.dependencies import set_sync_engine

    settings = get_settings()

    # 시작 시 - DB 스키마 자동 초기화
    async with SQLiteAdapter(settings.db_path) as db:
        await init_schema(db)
    logger.info(f"Web: DB 스키마 확인 완료 ({settings.db_path})")

    # 프로세스 공유 SyncEngine (토큰 저장용 DB 연결은 앱 수명 동안 유지)
    engine_db = SQLiteAdapter(settings.db_path)
    await engine_db.connect()
    engine = None
    try:
        engine = SyncEngine(settings, engine_db)
        set_sync_engine(engine)
        logger.info("Web: SyncEngine 초기화 완료")
    except ConfigurationError as e:
        logger.error(f"Web: SyncEngine 초기화 실패, 동기화 API 비활성화: {e}")

    yield

    # 종료 시 - 리소스 정리
    set_sync_engine(None)
    if engine is not None:
        await engine.close()
    await engine_db.close()
    logger.info("Web: DB 연결 종료 완료")


app = FastAPI(
    title="LedgerSync API",
    description="QuickBooks 미러 동기화 / GL 정규화 / 시산표 대사 API",
    version=health.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS 설정 (개발용)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# =========================================================================
# API 라우터 등록
# =========================================================================

app.include_router(health.router)
app.include_router(sync.router)
app.include_router(reconciliation.router)
