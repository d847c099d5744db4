"""
Mock QuickBooks 클라이언트 테스트
"""

from datetime import datetime, timezone

import pytest

from adapters.mock.quickbooks_client import MockQuickBooksClient
from adapters.quickbooks.errors import ExternalAPIError
from core.types import Connection


class TestMockQuickBooksClient:
    """MockQuickBooksClient 테스트"""

    @pytest.mark.asyncio
    async def test_query_all_returns_copies(self, connection: Connection) -> None:
        """반환 레코드를 수정해도 상태는 유지"""
        client = MockQuickBooksClient()
        client.set_entities("Invoice", [{"Id": "1"}])

        rows = await client.query_all(connection, "Invoice", where="x")
        rows[0]["Id"] = "changed"

        assert (await client.query_all(connection, "Invoice"))[0]["Id"] == "1"
        assert client.queries == [("Invoice", "x"), ("Invoice", None)]
        assert client.queried_entities() == ["Invoice", "Invoice"]

    @pytest.mark.asyncio
    async def test_unknown_entity_is_empty(self, connection: Connection) -> None:
        assert await MockQuickBooksClient().query_all(connection, "Bill") == []

    @pytest.mark.asyncio
    async def test_fail(self, connection: Connection) -> None:
        client = MockQuickBooksClient()
        client.fail("TrialBalance", ExternalAPIError(500, "boom"))

        with pytest.raises(ExternalAPIError):
            await client.get_report(connection, "TrialBalance")

        assert client.report_calls == [("TrialBalance", None)]

    @pytest.mark.asyncio
    async def test_changes_filtered_by_requested_entities(self, connection: Connection) -> None:
        client = MockQuickBooksClient()
        client.set_changes("Invoice", [{"Id": "1", "status": "Deleted"}])
        client.set_changes("Customer", [{"Id": "2"}])
        since = datetime(2024, 1, 1, tzinfo=timezone.utc)

        changes = await client.get_changes(connection, ["Invoice"], since)

        assert changes == {"Invoice": [{"Id": "1", "status": "Deleted"}]}
        assert client.change_calls == [(("Invoice",), since)]

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        client = MockQuickBooksClient()
        await client.close()
        assert client.closed is True
