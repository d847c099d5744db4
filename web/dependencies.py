"""
의존성 주입

FastAPI의 Depends를 사용한 의존성 관리.
"""

from typing import AsyncGenerator

from fastapi import HTTPException

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings, get_settings
from engine.bootstrap import SyncEngine
from engine.orchestrator import SyncOrchestrator


def get_app_settings() -> Settings:
    """애플리케이션 설정 반환"""
    return get_settings()


async def get_db() -> AsyncGenerator[SQLiteAdapter, None]:
    """DB 세션 반환 (읽기 전용)

    로그/대사 결과 조회용.
    """
    settings = get_settings()
    async with SQLiteAdapter(settings.db_path, readonly=True) as db:
        yield db


# =========================================================================
# SyncEngine (프로세스 공유)
# =========================================================================

# lifespan에서 설정되는 전역 SyncEngine 인스턴스
_sync_engine: SyncEngine | None = None


def set_sync_engine(engine: SyncEngine | None) -> None:
    """SyncEngine 설정 (None이면 해제)"""
    global _sync_engine
    _sync_engine = engine


def get_sync_engine() -> SyncEngine | None:
    return _sync_engine


async def get_orchestrator() -> AsyncGenerator[SyncOrchestrator, None]:
    """요청 단위 SyncOrchestrator

    DB 연결과 저장소는 요청마다 만들고, TokenManager / QBO 클라이언트는
    프로세스 공유 SyncEngine의 것을 쓴다. 같은 테넌트의 동시 요청이
    토큰 갱신을 한 번만 하도록 하기 위함.

    Raises:
        HTTPException: 503 (SyncEngine 미초기화)
    """
    engine = get_sync_engine()
    if engine is None:
        raise HTTPException(status_code=503, detail="Sync engine is not initialized")

    async with SQLiteAdapter(engine.settings.db_path) as db:
        yield engine.orchestrator_for(db)
