"""
LockStore - 분산 단일 실행 락

sync_locks 테이블의 (tenant_id, operation) 기본키로 상호 배제.
메모리 공유 없이 여러 인스턴스에서 동작해야 하므로 DB 행으로만 판단한다.

획득 절차:
1. 만료된 락 행 삭제
2. INSERT OR IGNORE로 새 락 삽입 (owner 토큰 포함)
3. 저장된 owner가 자신이면 획득 성공, 아니면 충돌
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import SyncLimits
from core.utils.timezone import now_utc, parse_iso, to_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockHandle:
    """획득한 락"""

    tenant_id: str
    operation: str
    owner: str
    expires_at: datetime


class LockStore:
    """동기화 락 저장소

    Args:
        db: SQLiteAdapter 인스턴스
        ttl_sec: 락 만료 시간 (비정상 종료 대비)
    """

    def __init__(self, db: SQLiteAdapter, ttl_sec: int = SyncLimits.LOCK_TTL_SEC):
        self.db = db
        self.ttl = timedelta(seconds=ttl_sec)

    async def purge_expired(self, now: datetime | None = None) -> int:
        """만료된 락 삭제

        Returns:
            삭제된 락 수
        """
        now = now or now_utc()
        async with self.db.transaction():
            cursor = await self.db.execute(
                "DELETE FROM sync_locks WHERE expires_at <= ?",
                (to_iso(now),),
            )
        if cursor.rowcount:
            logger.warning("만료된 동기화 락 정리", extra={"count": cursor.rowcount})
        return cursor.rowcount

    async def acquire(self, tenant_id: str, operation: str) -> LockHandle | None:
        """락 획득 시도 (대기하지 않음)

        Returns:
            LockHandle (획득) 또는 None (다른 실행이 보유 중)
        """
        now = now_utc()
        await self.purge_expired(now)

        owner = uuid.uuid4().hex
        expires_at = now + self.ttl

        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT OR IGNORE INTO sync_locks (tenant_id, operation, owner, locked_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (tenant_id, operation, owner, to_iso(now), to_iso(expires_at)),
            )

        row = await self.db.fetchone(
            "SELECT owner, expires_at FROM sync_locks WHERE tenant_id = ? AND operation = ?",
            (tenant_id, operation),
        )
        if row is None or row[0] != owner:
            logger.info(
                "동기화 락 충돌",
                extra={
                    "tenant_id": tenant_id,
                    "operation": operation,
                    "held_until": row[1] if row else None,
                },
            )
            return None

        logger.debug(
            "동기화 락 획득",
            extra={"tenant_id": tenant_id, "operation": operation, "owner": owner},
        )
        return LockHandle(tenant_id, operation, owner, parse_iso(row[1]))

    async def release(self, handle: LockHandle) -> bool:
        """락 해제 (자신이 보유한 행만 삭제)

        Returns:
            삭제 여부 (만료 후 다른 실행이 가져갔으면 False)
        """
        async with self.db.transaction():
            cursor = await self.db.execute(
                "DELETE FROM sync_locks WHERE tenant_id = ? AND operation = ? AND owner = ?",
                (handle.tenant_id, handle.operation, handle.owner),
            )
        if cursor.rowcount == 0:
            logger.warning(
                "락 해제 대상 없음 (만료 후 재획득됨)",
                extra={"tenant_id": handle.tenant_id, "operation": handle.operation},
            )
            return False
        return True

    async def is_locked(self, tenant_id: str, operation: str) -> bool:
        """만료되지 않은 락 존재 여부"""
        row = await self.db.fetchone(
            "SELECT 1 FROM sync_locks WHERE tenant_id = ? AND operation = ? AND expires_at > ?",
            (tenant_id, operation, to_iso(now_utc())),
        )
        return row is not None
