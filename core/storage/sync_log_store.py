"""
SyncLogStore - 동기화 실행 감사 로그

실행 1회당 sync_logs 1행 (insert only).
Incremental의 since 기준 시각도 이 테이블에서 결정한다.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import SyncLimits
from core.types import RunStatus, SyncAction
from core.utils.timezone import now_utc, parse_iso, to_iso

logger = logging.getLogger(__name__)


@dataclass
class SyncLogEntry:
    """sync_logs 행"""

    tenant_id: str
    entity_type: str
    action: str
    status: str
    started_at: datetime
    synced_count: int = 0
    errors: list[str] = field(default_factory=list)
    duration_ms: int = 0
    trial_balance_diff: Decimal | None = None

    @property
    def error_count(self) -> int:
        return len(self.errors)


class SyncLogStore:
    """동기화 로그 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def record(self, entry: SyncLogEntry) -> int:
        """로그 1행 기록

        에러 샘플은 최대 20건, 각 500자까지만 저장.

        Returns:
            sync_logs.id
        """
        samples = [
            error[:SyncLimits.ERROR_TRUNCATE_CHARS]
            for error in entry.errors[:SyncLimits.MAX_ERROR_SAMPLES]
        ]
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                INSERT INTO sync_logs (
                    tenant_id, entity_type, action, status,
                    synced_count, error_count, errors_json, duration_ms,
                    trial_balance_diff, started_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.tenant_id,
                    entry.entity_type,
                    entry.action,
                    entry.status,
                    entry.synced_count,
                    entry.error_count,
                    json.dumps(samples, ensure_ascii=False) if samples else None,
                    entry.duration_ms,
                    str(entry.trial_balance_diff) if entry.trial_balance_diff is not None else None,
                    to_iso(entry.started_at),
                    to_iso(now_utc()),
                ),
            )

        logger.info(
            "동기화 로그 기록",
            extra={
                "tenant_id": entry.tenant_id,
                "action": entry.action,
                "status": entry.status,
                "synced_count": entry.synced_count,
                "error_count": entry.error_count,
                "duration_ms": entry.duration_ms,
            },
        )
        return cursor.lastrowid

    async def get_last_sync_time(
        self,
        tenant_id: str,
        actions: tuple[str, ...] = (SyncAction.BACKFILL.value, SyncAction.INCREMENTAL.value),
    ) -> datetime | None:
        """incremental since 기준 시각

        성공한 backfill/incremental 중 가장 최근 실행의 시작 시각.
        성공 기록이 없으면 partial/failed 중 가장 최근 실행의 시작 시각.
        성공 이후의 partial/failed 실행은 건너뛰어 실패 구간을 다시 가져온다.
        """
        placeholders = ", ".join("?" for _ in actions)
        row = await self.db.fetchone(
            f"""
            SELECT started_at FROM sync_logs
            WHERE tenant_id = ? AND action IN ({placeholders}) AND status IN (?, ?, ?)
            ORDER BY (status = ?) DESC, started_at DESC
            LIMIT 1
            """,
            (
                tenant_id,
                *actions,
                RunStatus.SUCCEEDED.value,
                RunStatus.PARTIAL.value,
                RunStatus.FAILED.value,
                RunStatus.SUCCEEDED.value,
            ),
        )
        return parse_iso(row[0]) if row else None

    async def get_recent(self, tenant_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """최근 로그 조회 (Web용)"""
        rows = await self.db.fetchall(
            """
            SELECT id, entity_type, action, status, synced_count, error_count,
                   errors_json, duration_ms, trial_balance_diff, started_at, created_at
            FROM sync_logs
            WHERE tenant_id = ?
            ORDER BY id DESC
            LIMIT ?
            """,
            (tenant_id, limit),
        )
        return [
            {
                "id": row[0],
                "entity_type": row[1],
                "action": row[2],
                "status": row[3],
                "synced_count": row[4],
                "error_count": row[5],
                "errors": json.loads(row[6]) if row[6] else [],
                "duration_ms": row[7],
                "trial_balance_diff": row[8],
                "started_at": row[9],
                "created_at": row[10],
            }
            for row in rows
        ]
