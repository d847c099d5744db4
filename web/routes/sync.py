"""
Sync 라우트

동기화 실행 및 로그 조회 API
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import ConfigurationError
from core.types import SyncAction
from engine.orchestrator import SyncOrchestrator
from web.dependencies import get_db, get_orchestrator
from web.models.requests import SyncRequest
from web.models.responses import SyncLogListResponse, SyncLogResponse, SyncRunResponse
from web.services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Sync"])


@router.post("/sync/{action}", response_model=SyncRunResponse)
async def run_sync(
    request: SyncRequest,
    action: SyncAction = Path(..., description="backfill / incremental / reconcile / sync_entity / bank_activity"),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncRunResponse:
    """동기화 실행

    같은 테넌트/동작이 이미 실행 중이면 409.
    엔티티 단위 실패는 200 + status=partial, 실행 전체 실패는 200 + status=failed.
    """
    try:
        outcome = await orchestrator.run(request.tenant_id, action, request.entity_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        logger.error(f"설정 오류로 동기화 실패: {e}")
        raise HTTPException(status_code=500, detail=f"Configuration error: {e}")

    if outcome.is_conflict:
        raise HTTPException(status_code=409, detail=outcome.to_dict())

    return SyncRunResponse(**outcome.to_dict())


@router.get("/sync/{tenant_id}/logs", response_model=SyncLogListResponse)
async def get_sync_logs(
    tenant_id: str = Path(..., description="테넌트 ID"),
    limit: int = Query(default=20, ge=1, le=200, description="조회 제한"),
    db: SQLiteAdapter = Depends(get_db),
) -> SyncLogListResponse:
    """최근 동기화 로그 조회"""
    service = SyncService(db)
    logs = await service.get_logs(tenant_id, limit)
    return SyncLogListResponse(
        tenant_id=tenant_id,
        logs=[SyncLogResponse(**log) for log in logs],
        count=len(logs),
    )
