"""
응답 스키마 (Pydantic)

Web API 응답 데이터 직렬화.
금액은 Decimal 정밀도 유지를 위해 문자열로 반환.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """헬스 체크 응답"""

    status: str = Field(default="ok", description="서비스 상태")
    environment: str = Field(..., description="QuickBooks 환경 (sandbox/production)")
    version: str = Field(..., description="버전")
    timestamp: datetime = Field(..., description="응답 시간 (UTC)")


class SyncRunResponse(BaseModel):
    """동기화 실행 결과"""

    tenant_id: str = Field(..., description="테넌트 ID")
    action: str = Field(..., description="실행 동작")
    entity_type: str = Field(..., description="대상 엔티티 (ALL 또는 거래 타입)")
    status: str = Field(..., description="succeeded / partial / failed / conflict")
    synced: int = Field(default=0, description="저장된 행 수")
    errors: list[str] = Field(default_factory=list, description="에러 목록")
    duration_ms: int = Field(default=0, description="소요 시간 (ms)")
    result: dict[str, Any] | None = Field(default=None, description="핸들러 상세 결과")
    log_id: int | None = Field(default=None, description="sync_logs ID")


class SyncLogResponse(BaseModel):
    """동기화 로그 항목"""

    id: int
    entity_type: str
    action: str
    status: str
    synced_count: int
    error_count: int
    errors: list[str] = Field(default_factory=list)
    duration_ms: int
    trial_balance_diff: str | None = None
    started_at: str
    created_at: str


class SyncLogListResponse(BaseModel):
    """동기화 로그 목록"""

    tenant_id: str
    logs: list[SyncLogResponse]
    count: int


class ReconciliationResponse(BaseModel):
    """최근 시산표 대사 결과"""

    tenant_id: str = Field(..., description="테넌트 ID")
    check_id: int = Field(..., description="trial_balance_checks ID")
    is_balanced: bool = Field(..., description="허용 오차 이내 여부")
    qb_total: str = Field(..., description="외부 시산표 합계")
    erp_total: str = Field(..., description="내부 GL 합계")
    total_diff: str = Field(..., description="차이 (절대값)")
    ar_diff: str | None = Field(default=None, description="AR 차이")
    ap_diff: str | None = Field(default=None, description="AP 차이")
    unresolved_line_count: int = Field(default=0, description="계정 미해석 GL 라인 수")
    unresolved_party_count: int = Field(default=0, description="고객/공급자 미해석 GL 라인 수")
    account_diffs: list[dict[str, Any]] = Field(default_factory=list, description="계정별 차이")
    open_blocking_tasks: int = Field(default=0, description="미해소 차단성 에스컬레이션 수")
    checked_at: str = Field(..., description="대사 시각 (UTC)")
