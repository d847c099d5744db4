"""
EscalationStore - 대사 결과 / 사람 확인 큐 저장소

- trial_balance_checks: 대사 1회당 1행 스냅샷 (insert only)
- human_tasks: 차단성(blocking) 에스컬레이션. 해소 전까지 후속 전기 중단 신호
"""

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.types import EscalationSeverity
from core.utils.money import to_decimal
from core.utils.timezone import now_utc, to_iso

logger = logging.getLogger(__name__)


@dataclass
class TrialBalanceCheck:
    """시산표 대사 스냅샷"""

    tenant_id: str
    qb_total: Decimal
    erp_total: Decimal
    total_diff: Decimal
    is_balanced: bool
    ar_qb: Decimal | None = None
    ar_erp: Decimal | None = None
    ar_diff: Decimal | None = None
    ap_qb: Decimal | None = None
    ap_erp: Decimal | None = None
    ap_diff: Decimal | None = None
    unresolved_line_count: int = 0
    unresolved_party_count: int = 0
    account_diffs: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class HumanTask:
    """사람 확인 필요 작업"""

    tenant_id: str
    title: str
    description: str
    severity: EscalationSeverity
    category: str
    entity_type: str | None = None
    entity_id: str | None = None
    is_blocking: bool = False
    payload: dict[str, Any] | None = None


def _opt(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


class EscalationStore:
    """대사 결과 / 에스컬레이션 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def record_check(self, check: TrialBalanceCheck) -> int:
        """대사 스냅샷 기록

        Returns:
            trial_balance_checks.id
        """
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                INSERT INTO trial_balance_checks (
                    tenant_id, qb_total, erp_total, total_diff,
                    ar_qb, ar_erp, ar_diff, ap_qb, ap_erp, ap_diff,
                    unresolved_line_count, unresolved_party_count, account_diffs_json,
                    is_balanced, checked_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    check.tenant_id,
                    str(check.qb_total),
                    str(check.erp_total),
                    str(check.total_diff),
                    _opt(check.ar_qb),
                    _opt(check.ar_erp),
                    _opt(check.ar_diff),
                    _opt(check.ap_qb),
                    _opt(check.ap_erp),
                    _opt(check.ap_diff),
                    check.unresolved_line_count,
                    check.unresolved_party_count,
                    json.dumps(check.account_diffs, ensure_ascii=False),
                    1 if check.is_balanced else 0,
                    to_iso(now_utc()),
                ),
            )
        return cursor.lastrowid

    async def get_latest_check(self, tenant_id: str) -> dict[str, Any] | None:
        """가장 최근 대사 스냅샷"""
        row = await self.db.fetchone(
            """
            SELECT id, qb_total, erp_total, total_diff, ar_diff, ap_diff,
                   unresolved_line_count, unresolved_party_count, account_diffs_json,
                   is_balanced, checked_at
            FROM trial_balance_checks
            WHERE tenant_id = ?
            ORDER BY id DESC
            LIMIT 1
            """,
            (tenant_id,),
        )
        if row is None:
            return None
        return {
            "id": row[0],
            "qb_total": to_decimal(row[1]),
            "erp_total": to_decimal(row[2]),
            "total_diff": to_decimal(row[3]),
            "ar_diff": to_decimal(row[4]) if row[4] is not None else None,
            "ap_diff": to_decimal(row[5]) if row[5] is not None else None,
            "unresolved_line_count": row[6],
            "unresolved_party_count": row[7],
            "account_diffs": json.loads(row[8]) if row[8] else [],
            "is_balanced": bool(row[9]),
            "checked_at": row[10],
        }

    async def create_task(self, task: HumanTask) -> int:
        """에스컬레이션 생성

        Returns:
            human_tasks.id
        """
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                INSERT INTO human_tasks (
                    tenant_id, title, description, severity, category,
                    entity_type, entity_id, is_blocking, status, payload_json, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'open', ?, ?)
                """,
                (
                    task.tenant_id,
                    task.title,
                    task.description,
                    task.severity.value,
                    task.category,
                    task.entity_type,
                    task.entity_id,
                    1 if task.is_blocking else 0,
                    json.dumps(task.payload, ensure_ascii=False) if task.payload else None,
                    to_iso(now_utc()),
                ),
            )

        logger.warning(
            "에스컬레이션 생성",
            extra={
                "tenant_id": task.tenant_id,
                "title": task.title,
                "severity": task.severity.value,
                "is_blocking": task.is_blocking,
            },
        )
        return cursor.lastrowid

    async def count_open_blocking(self, tenant_id: str) -> int:
        """해소되지 않은 차단성 에스컬레이션 수"""
        row = await self.db.fetchone(
            """
            SELECT COUNT(*) FROM human_tasks
            WHERE tenant_id = ? AND status = 'open' AND is_blocking = 1
            """,
            (tenant_id,),
        )
        return row[0] if row else 0
