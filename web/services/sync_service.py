"""
Sync 서비스

동기화 로그 / 대사 결과 조회 (Web 읽기 전용)
"""

import logging
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.storage.escalation_store import EscalationStore
from core.storage.sync_log_store import SyncLogStore

logger = logging.getLogger(__name__)


def _dec_str(value: Any) -> str | None:
    return str(value) if value is not None else None


class SyncService:
    """Sync 조회 서비스

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db
        self.sync_logs = SyncLogStore(db)
        self.escalations = EscalationStore(db)

    async def get_logs(self, tenant_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """최근 동기화 로그"""
        return await self.sync_logs.get_recent(tenant_id, limit)

    async def get_latest_reconciliation(self, tenant_id: str) -> dict[str, Any] | None:
        """최근 대사 결과 (금액은 문자열)

        Returns:
            대사 결과 dict 또는 None (대사 이력 없음)
        """
        check = await self.escalations.get_latest_check(tenant_id)
        if check is None:
            return None

        return {
            "tenant_id": tenant_id,
            "check_id": check["id"],
            "is_balanced": check["is_balanced"],
            "qb_total": str(check["qb_total"]),
            "erp_total": str(check["erp_total"]),
            "total_diff": str(check["total_diff"]),
            "ar_diff": _dec_str(check["ar_diff"]),
            "ap_diff": _dec_str(check["ap_diff"]),
            "unresolved_line_count": check["unresolved_line_count"],
            "unresolved_party_count": check["unresolved_party_count"],
            "account_diffs": check["account_diffs"],
            "open_blocking_tasks": await self.escalations.count_open_blocking(tenant_id),
            "checked_at": check["checked_at"],
        }
