"""
동기화 핸들러 통합 테스트

backfill / incremental / sync_entity / bank_activity를
오케스트레이터 경유로 실행하고 미러와 GL 상태를 검증.
"""

import copy
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.mock.quickbooks_client import MockQuickBooksClient
from adapters.quickbooks.errors import TransientAPIError
from core.ledger.store import GLStore
from core.storage.sync_log_store import SyncLogEntry, SyncLogStore
from core.types import RunStatus
from engine.handlers.bank_activity import REPORT_COLUMNS
from engine.orchestrator import SyncOrchestrator


def bump(raw: dict, amount: str) -> dict:
    """SyncToken 증가 + 모든 라인 금액 변경"""
    changed = copy.deepcopy(raw)
    changed["SyncToken"] = str(int(changed["SyncToken"]) + 1)
    for line in changed["Line"]:
        line["Amount"] = amount
    return changed


class TestBackfill:
    """전체 재동기화"""

    @pytest.mark.asyncio
    async def test_mirrors_and_builds_gl(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
    ) -> None:
        outcome = await orchestrator.backfill("T1")

        assert outcome.status == RunStatus.SUCCEEDED
        counts = outcome.result["counts"]
        assert counts["CompanyInfo"] == 1
        assert counts["Account"] == 2
        assert counts["Item"] == 1
        assert counts["Customer"] == 1
        assert counts["Vendor"] == 1
        assert counts["JournalEntry"] == 1
        assert counts["Invoice"] == 1
        assert outcome.synced == 8
        assert outcome.result["gl_rebuilt"] == 2

        # 인보이스 매출 라인은 품목의 수익 계정(79)으로 대변, SubTotal 라인 제외
        debit, credit = await GLStore(db).get_totals("T1")
        assert debit == Decimal("500.00")
        assert credit == Decimal("600.00")

        row = await db.fetchone(
            "SELECT customer_id FROM qb_transactions WHERE entity_type = 'Invoice' AND qb_id = '130'"
        )
        assert row[0] is not None

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
    ) -> None:
        await orchestrator.backfill("T1")
        await orchestrator.backfill("T1")

        assert (await db.fetchone("SELECT COUNT(*) FROM gl_transactions"))[0] == 2
        assert (await db.fetchone("SELECT COUNT(*) FROM gl_lines"))[0] == 3
        assert (await db.fetchone("SELECT COUNT(*) FROM qb_transactions"))[0] == 2
        assert (await db.fetchone("SELECT COUNT(*) FROM qb_accounts"))[0] == 2

    @pytest.mark.asyncio
    async def test_entity_failure_is_partial(
        self,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        """엔티티 하나가 실패해도 나머지는 계속 진행"""
        qb_client.fail("Vendor", TransientAPIError(503, "Service Unavailable", "query"))

        outcome = await orchestrator.backfill("T1")

        assert outcome.status == RunStatus.PARTIAL
        assert len(outcome.errors) == 1
        assert outcome.errors[0].startswith("Vendor: ")
        assert outcome.result["counts"]["Invoice"] == 1

    @pytest.mark.asyncio
    async def test_partial_backfill_anchors_next_incremental(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        """3일 전 partial backfill 이후의 incremental은 그 시작 시각부터 조회"""
        started_at = datetime.now(timezone.utc) - timedelta(days=3)
        await SyncLogStore(db).record(SyncLogEntry(
            tenant_id="T1",
            entity_type="ALL",
            action="backfill",
            status=RunStatus.PARTIAL.value,
            started_at=started_at,
            errors=["Vendor: 503"],
        ))

        await orchestrator.incremental("T1")

        _, since = qb_client.change_calls[0]
        assert since == started_at
        _, where = qb_client.queries[0]
        assert where == f"MetaData.LastUpdatedTime > '{started_at:%Y-%m-%d}'"


class TestIncremental:
    """증분 동기화"""

    @pytest.mark.asyncio
    async def test_unchanged_sync_tokens_skip_rebuild(
        self,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        await orchestrator.backfill("T1")
        qb_client.queries.clear()

        outcome = await orchestrator.incremental("T1")

        assert outcome.status == RunStatus.SUCCEEDED
        assert outcome.result["skipped"] == 2
        assert outcome.result["gl_rebuilt"] == 0
        assert outcome.result["counts"].get("Invoice") is None
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        for _, where in qb_client.queries:
            assert where == f"MetaData.LastUpdatedTime > '{today}'"

    @pytest.mark.asyncio
    async def test_default_lookback_without_history(
        self,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        """성공 이력이 없으면 24시간 전부터"""
        await orchestrator.incremental("T1")

        entities, since = qb_client.change_calls[0]
        elapsed = datetime.now(timezone.utc) - since
        assert timedelta(hours=23, minutes=59) < elapsed < timedelta(hours=24, minutes=1)
        assert "Invoice" in entities
        assert "Account" in entities

    @pytest.mark.asyncio
    async def test_changed_transaction_rebuilt(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        await orchestrator.backfill("T1")
        original = qb_client.state.entities["JournalEntry"][0]
        qb_client.set_entities("JournalEntry", [bump(original, "75.25")])

        outcome = await orchestrator.incremental("T1")

        assert outcome.result["gl_rebuilt"] == 1
        assert outcome.result["skipped"] == 1
        debit, credit = await GLStore(db).get_totals("T1")
        assert debit == Decimal("75.25")
        assert credit == Decimal("175.25")

    @pytest.mark.asyncio
    async def test_cdc_deleted_and_voided(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        await orchestrator.backfill("T1")
        qb_client.set_changes("Invoice", [{"Id": "130", "status": "Deleted"}])
        qb_client.set_changes("JournalEntry", [
            {"Id": "227", "status": "Voided"},
            {"Id": "999", "status": "Deleted"},
        ])
        qb_client.set_changes("Customer", [{"Id": "58", "status": "Deleted"}])

        outcome = await orchestrator.incremental("T1")

        assert outcome.result["cdc_flagged"] == 3
        rows = await db.fetchall(
            "SELECT qb_id, is_deleted, is_voided FROM qb_transactions ORDER BY qb_id"
        )
        assert rows == [("130", 1, 0), ("227", 0, 1)]
        customer = await db.fetchone("SELECT is_deleted FROM qb_customers WHERE qb_id = '58'")
        assert customer[0] == 1
        assert await GLStore(db).get_totals("T1") == (Decimal("0"), Decimal("0"))

    @pytest.mark.asyncio
    async def test_cdc_failure_continues(
        self,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        qb_client.fail("cdc", TransientAPIError(503, "Service Unavailable", "cdc"))

        outcome = await orchestrator.incremental("T1")

        assert outcome.status == RunStatus.PARTIAL
        assert outcome.errors[0].startswith("CDC: ")
        assert outcome.result["counts"]["Invoice"] == 1


class TestSyncEntity:
    """단일 거래 타입 재동기화"""

    @pytest.mark.asyncio
    async def test_only_requested_type(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        outcome = await orchestrator.sync_entity("T1", "Invoice")

        assert outcome.status == RunStatus.SUCCEEDED
        assert outcome.entity_type == "Invoice"
        assert qb_client.queried_entities() == ["Invoice"]
        assert outcome.synced == 1
        logs = await SyncLogStore(db).get_recent("T1")
        assert logs[0]["entity_type"] == "Invoice"
        assert logs[0]["action"] == "sync_entity"

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
    ) -> None:
        with pytest.raises(ValueError, match="Unsupported entity type"):
            await orchestrator.sync_entity("T1", "Customer")

        assert await SyncLogStore(db).get_recent("T1") == []

    @pytest.mark.asyncio
    async def test_failure_fails_run(
        self,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        qb_client.fail("Invoice", TransientAPIError(503, "Service Unavailable", "query"))

        outcome = await orchestrator.sync_entity("T1", "Invoice")

        assert outcome.status == RunStatus.FAILED
        assert outcome.errors[0].startswith("TransientAPIError: ")


class TestBankActivity:
    """은행 계정 활동 요약"""

    @pytest.mark.asyncio
    async def test_summarizes_cleared_status(
        self,
        db: SQLiteAdapter,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        # Mock은 WHERE를 해석하지 않으므로 은행 계정만 등록
        qb_client.set_entities("Account", [
            {"Id": "33", "SyncToken": "0", "Name": "Checking", "AccountType": "Bank", "CurrentBalance": 1201.0},
            {"Id": "35", "SyncToken": "0", "Name": "Savings", "AccountType": "Bank", "CurrentBalance": 800.0},
        ])
        qb_client.set_report("TransactionList", {
            "Columns": {"Column": [
                {"ColTitle": "Account", "MetaData": [{"Name": "ColKey", "Value": "account_name"}]},
                {"ColTitle": "Clr", "MetaData": [{"Name": "ColKey", "Value": "is_cleared"}]},
                {"ColTitle": "Amount", "MetaData": [{"Name": "ColKey", "Value": "subt_nat_amount"}]},
            ]},
            "Rows": {"Row": [
                {"ColData": [{"value": "Checking", "id": "33"}, {"value": "R"}, {"value": "100.00"}]},
                {"ColData": [{"value": "Checking", "id": "33"}, {"value": ""}, {"value": "-25.50"}]},
                {"ColData": [{"value": "Checking", "id": "33"}, {"value": "C"}, {"value": "10.00"}]},
                {"ColData": [{"value": "Sales", "id": "79"}, {"value": ""}, {"value": "999.00"}]},
            ]},
        })

        outcome = await orchestrator.sync_bank_activity("T1")

        assert outcome.status == RunStatus.SUCCEEDED
        assert outcome.result["counts"]["BankActivity"] == 2
        assert qb_client.queries == [("Account", "AccountType = 'Bank'")]
        assert qb_client.report_calls[0][1]["columns"] == REPORT_COLUMNS

        rows = await db.fetchall(
            """
            SELECT account_qb_id, account_id, current_balance,
                   reconciled_count, unreconciled_count, unreconciled_amount
            FROM qb_bank_activity ORDER BY account_qb_id
            """
        )
        checking, savings = rows
        assert checking[0] == "33"
        assert checking[1] is not None
        assert Decimal(checking[2]) == Decimal("1201")
        assert checking[3:5] == (1, 2)
        assert Decimal(checking[5]) == Decimal("-15.50")
        assert savings[3:5] == (0, 0)

    @pytest.mark.asyncio
    async def test_no_bank_accounts(
        self,
        orchestrator: SyncOrchestrator,
        qb_client: MockQuickBooksClient,
    ) -> None:
        qb_client.set_entities("Account", [])

        outcome = await orchestrator.sync_bank_activity("T1")

        assert outcome.status == RunStatus.SUCCEEDED
        assert outcome.synced == 0
        assert qb_client.report_calls == []
