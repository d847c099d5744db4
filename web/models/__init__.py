"""
Web 모델 패키지

Pydantic 스키마 정의
"""

from web.models.requests import SyncRequest
from web.models.responses import (
    HealthResponse,
    ReconciliationResponse,
    SyncLogListResponse,
    SyncLogResponse,
    SyncRunResponse,
)

__all__ = [
    # Requests
    "SyncRequest",
    # Responses
    "HealthResponse",
    "ReconciliationResponse",
    "SyncLogListResponse",
    "SyncLogResponse",
    "SyncRunResponse",
]
