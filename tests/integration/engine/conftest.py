"""
엔진 통합 테스트 fixture

임시 DB + Mock QBO 클라이언트 + Mock Notifier로 오케스트레이터 구성.
"""

from typing import Any

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.mock.notifier import MockNotifier
from adapters.mock.quickbooks_client import MockQuickBooksClient
from core.crypto.token_vault import TokenVault
from core.storage.connection_store import ConnectionStore
from core.types import Connection
from engine.bootstrap import build_orchestrator
from engine.orchestrator import SyncOrchestrator

VAULT_KEY = "engine-integration-secret-0123456789abcdef"


def journal_entry(qb_id: str, amount: str, sync_token: str = "0", **extra: Any) -> dict[str, Any]:
    """Checking(33) 차변 / Sales(79) 대변 분개"""
    return {
        "Id": qb_id,
        "SyncToken": sync_token,
        "TxnDate": "2024-03-01",
        "Line": [
            {
                "Id": "0",
                "Amount": amount,
                "DetailType": "JournalEntryLineDetail",
                "JournalEntryLineDetail": {"PostingType": "Debit", "AccountRef": {"value": "33"}},
            },
            {
                "Id": "1",
                "Amount": amount,
                "DetailType": "JournalEntryLineDetail",
                "JournalEntryLineDetail": {"PostingType": "Credit", "AccountRef": {"value": "79"}},
            },
        ],
        **extra,
    }


def invoice(qb_id: str, amount: str, sync_token: str = "0") -> dict[str, Any]:
    """품목(1) 매출 인보이스 (SubTotal 라인 포함)"""
    return {
        "Id": qb_id,
        "SyncToken": sync_token,
        "TxnDate": "2024-03-02",
        "DocNumber": "1037",
        "TotalAmt": amount,
        "Balance": amount,
        "CustomerRef": {"value": "58", "name": "Amy's Bird Sanctuary"},
        "Line": [
            {
                "Id": "1",
                "Amount": amount,
                "DetailType": "SalesItemLineDetail",
                "SalesItemLineDetail": {"ItemRef": {"value": "1", "name": "Services"}},
            },
            {"Amount": amount, "DetailType": "SubTotalLineDetail", "SubTotalLineDetail": {}},
        ],
    }


@pytest.fixture
def qb_client() -> MockQuickBooksClient:
    """참조 엔티티 + 거래 2건이 등록된 Mock 클라이언트"""
    client = MockQuickBooksClient()
    client.state.company_info = {"CompanyName": "Sandbox Company_US_1", "Country": "US"}
    client.set_entities("Account", [
        {"Id": "33", "SyncToken": "0", "Name": "Checking", "AccountType": "Bank", "CurrentBalance": 1201.0},
        {"Id": "79", "SyncToken": "0", "Name": "Sales of Product Income", "AccountType": "Income"},
    ])
    client.set_entities("Item", [
        {"Id": "1", "SyncToken": "0", "Name": "Services", "Type": "Service", "IncomeAccountRef": {"value": "79"}},
    ])
    client.set_entities("Customer", [
        {"Id": "58", "SyncToken": "0", "DisplayName": "Amy's Bird Sanctuary", "Balance": 100},
    ])
    client.set_entities("Vendor", [
        {"Id": "41", "SyncToken": "0", "DisplayName": "Brosnahan Insurance Agency"},
    ])
    client.set_entities("JournalEntry", [journal_entry("227", "500.00")])
    client.set_entities("Invoice", [invoice("130", "100.00")])
    return client


@pytest.fixture
def notifier() -> MockNotifier:
    return MockNotifier()


@pytest_asyncio.fixture
async def connections(db: SQLiteAdapter, connection: Connection) -> ConnectionStore:
    """T1 연결이 저장된 ConnectionStore"""
    store = ConnectionStore(db, TokenVault(VAULT_KEY))
    await store.save(connection)
    return store


@pytest.fixture
def orchestrator(
    db: SQLiteAdapter,
    qb_client: MockQuickBooksClient,
    connections: ConnectionStore,
    notifier: MockNotifier,
) -> SyncOrchestrator:
    return build_orchestrator(db, qb_client, connections, notifier)
