"""
Reconciliation 라우트

최근 시산표 대사 결과 조회
"""

from fastapi import APIRouter, Depends, HTTPException, Path

from adapters.db.sqlite_adapter import SQLiteAdapter
from web.dependencies import get_db
from web.models.responses import ReconciliationResponse
from web.services.sync_service import SyncService

router = APIRouter(prefix="/api", tags=["Reconciliation"])


@router.get("/reconciliation/{tenant_id}/latest", response_model=ReconciliationResponse)
async def get_latest_reconciliation(
    tenant_id: str = Path(..., description="테넌트 ID"),
    db: SQLiteAdapter = Depends(get_db),
) -> ReconciliationResponse:
    """최근 대사 결과

    대사 이력이 없으면 404.
    """
    service = SyncService(db)
    result = await service.get_latest_reconciliation(tenant_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"No reconciliation for tenant {tenant_id}")
    return ReconciliationResponse(**result)
