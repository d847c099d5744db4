"""
SyncLogStore 통합 테스트
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.storage.sync_log_store import SyncLogEntry, SyncLogStore
from core.types import RunStatus

BASE = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def entry(action: str, status: RunStatus, offset_min: int, **kwargs) -> SyncLogEntry:
    return SyncLogEntry(
        tenant_id="T1",
        entity_type="ALL",
        action=action,
        status=status.value,
        started_at=BASE + timedelta(minutes=offset_min),
        **kwargs,
    )


class TestSyncLogStore:
    """SyncLogStore 테스트"""

    @pytest.mark.asyncio
    async def test_record_and_recent(self, db: SQLiteAdapter) -> None:
        logs = SyncLogStore(db)

        log_id = await logs.record(entry(
            "reconcile", RunStatus.PARTIAL, 0,
            synced_count=3,
            errors=["incremental: boom"],
            trial_balance_diff=Decimal("0.02"),
        ))

        recent = await logs.get_recent("T1")
        assert recent[0]["id"] == log_id
        assert recent[0]["status"] == "partial"
        assert recent[0]["error_count"] == 1
        assert recent[0]["errors"] == ["incremental: boom"]
        assert recent[0]["trial_balance_diff"] == "0.02"

    @pytest.mark.asyncio
    async def test_error_samples_truncated(self, db: SQLiteAdapter) -> None:
        """에러 샘플 20건, 각 500자 제한 (error_count는 전체)"""
        logs = SyncLogStore(db)

        await logs.record(entry("backfill", RunStatus.PARTIAL, 0, errors=["x" * 800] * 30))

        recent = (await logs.get_recent("T1"))[0]
        assert recent["error_count"] == 30
        assert len(recent["errors"]) == 20
        assert all(len(e) == 500 for e in recent["errors"])

    @pytest.mark.asyncio
    async def test_last_sync_time_prefers_succeeded(self, db: SQLiteAdapter) -> None:
        """성공 실행 이후의 partial/failed/reconcile 실행은 since 기준이 되지 않음"""
        logs = SyncLogStore(db)
        await logs.record(entry("backfill", RunStatus.SUCCEEDED, 0))
        await logs.record(entry("incremental", RunStatus.PARTIAL, 10))
        await logs.record(entry("incremental", RunStatus.FAILED, 20))
        await logs.record(entry("reconcile", RunStatus.SUCCEEDED, 30))

        assert await logs.get_last_sync_time("T1") == BASE

    @pytest.mark.asyncio
    async def test_last_sync_time_partial_backfill(self, db: SQLiteAdapter) -> None:
        """성공 기록이 없으면 최근 partial/failed 실행 시작 시각"""
        logs = SyncLogStore(db)
        await logs.record(entry("backfill", RunStatus.PARTIAL, 0))
        await logs.record(entry("incremental", RunStatus.FAILED, 10))
        await logs.record(entry("reconcile", RunStatus.PARTIAL, 20))

        assert await logs.get_last_sync_time("T1") == BASE + timedelta(minutes=10)

    @pytest.mark.asyncio
    async def test_last_sync_time_none(self, db: SQLiteAdapter) -> None:
        assert await SyncLogStore(db).get_last_sync_time("T1") is None

    @pytest.mark.asyncio
    async def test_recent_limit_newest_first(self, db: SQLiteAdapter) -> None:
        logs = SyncLogStore(db)
        for i in range(5):
            await logs.record(entry("incremental", RunStatus.SUCCEEDED, i))

        recent = await logs.get_recent("T1", limit=2)

        assert len(recent) == 2
        assert recent[0]["id"] > recent[1]["id"]
