"""
동기화 실행 결과 타입

핸들러 결과(SyncResult, ReconcileResult)와
오케스트레이터 최종 결과(RunOutcome).
모두 to_dict()로 JSON 직렬화 가능 (Decimal은 문자열).
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from core.types import RunStatus


def _dec(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


@dataclass
class SyncResult:
    """backfill / incremental / sync_entity / bank_activity 결과

    Attributes:
        synced: 저장된 행 수 합계
        counts: 엔티티별 저장 행 수
        gl_rebuilt: GL 재구성한 거래 수
        skipped: SyncToken 동일로 건너뛴 거래 수
        cdc_flagged: CDC로 삭제/무효 처리된 행 수
        errors: "Entity: message" 형식의 에러 목록
    """

    synced: int = 0
    counts: dict[str, int] = field(default_factory=dict)
    gl_rebuilt: int = 0
    skipped: int = 0
    cdc_flagged: int = 0
    errors: list[str] = field(default_factory=list)

    def add(self, entity: str, count: int) -> None:
        self.counts[entity] = self.counts.get(entity, 0) + count
        self.synced += count

    def fail(self, entity: str, error: Exception | str) -> None:
        self.errors.append(f"{entity}: {error}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "synced": self.synced,
            "counts": dict(self.counts),
            "gl_rebuilt": self.gl_rebuilt,
            "skipped": self.skipped,
            "cdc_flagged": self.cdc_flagged,
            "errors": list(self.errors),
        }


@dataclass
class ReconcileResult:
    """시산표 대사 결과

    qb_total이 None이면 외부 시산표 조회 실패 (비교/에스컬레이션 생략).
    """

    is_balanced: bool | None = None
    qb_total: Decimal | None = None
    erp_total: Decimal | None = None
    total_diff: Decimal | None = None
    ar_diff: Decimal | None = None
    ap_diff: Decimal | None = None
    unresolved_line_count: int = 0
    unresolved_party_count: int = 0
    account_diffs: list[dict[str, Any]] = field(default_factory=list)
    check_id: int | None = None
    escalation_id: int | None = None
    incremental: dict[str, Any] | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def synced(self) -> int:
        """후속 incremental에서 저장된 행 수"""
        if not self.incremental:
            return 0
        return int(self.incremental.get("synced", 0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_balanced": self.is_balanced,
            "qb_total": _dec(self.qb_total),
            "erp_total": _dec(self.erp_total),
            "total_diff": _dec(self.total_diff),
            "ar_diff": _dec(self.ar_diff),
            "ap_diff": _dec(self.ap_diff),
            "unresolved_line_count": self.unresolved_line_count,
            "unresolved_party_count": self.unresolved_party_count,
            "account_diffs": list(self.account_diffs),
            "check_id": self.check_id,
            "escalation_id": self.escalation_id,
            "incremental": self.incremental,
            "errors": list(self.errors),
        }


@dataclass
class RunOutcome:
    """오케스트레이터 실행 결과

    conflict이면 핸들러가 실행되지 않았고 로그도 남지 않는다.
    """

    tenant_id: str
    action: str
    status: RunStatus
    entity_type: str = "ALL"
    synced: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    result: dict[str, Any] | None = None
    log_id: int | None = None

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.SUCCEEDED

    @property
    def is_conflict(self) -> bool:
        return self.status == RunStatus.CONFLICT

    def to_dict(self) -> dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "status": self.status.value,
            "synced": self.synced,
            "errors": list(self.errors),
            "duration_ms": self.duration_ms,
            "result": self.result,
            "log_id": self.log_id,
        }
