"""
QuickBooks REST 클라이언트 테스트

재시도/타임아웃/401 갱신/페이지네이션/CDC 파싱 (httpx mock 사용)
"""

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from adapters.quickbooks.errors import (
    ExternalAPIError,
    ReauthorizationRequired,
    RequestTimeoutError,
    TransientAPIError,
)
from adapters.quickbooks.rest_client import QuickBooksRestClient
from core.types import Connection


def make_connection(refresh_token: str | None = "refresh-1") -> Connection:
    return Connection(
        tenant_id="T1",
        realm_id="9130000000",
        access_token="access-1",
        refresh_token=refresh_token,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )


def make_response(status_code: int, payload: dict[str, Any] | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = str(payload or "")
    response.headers = {}
    return response


def make_client() -> tuple[QuickBooksRestClient, MagicMock]:
    token_manager = MagicMock()
    token_manager.ensure_fresh_access_token = AsyncMock(return_value="access-1")
    token_manager.refresh = AsyncMock()
    client = QuickBooksRestClient(
        base_url="https://sandbox-quickbooks.api.intuit.com/",
        token_manager=token_manager,
    )
    return client, token_manager


@pytest.fixture(autouse=True)
def no_backoff_sleep():
    """재시도 대기 제거"""
    with patch("adapters.quickbooks.rest_client.asyncio.sleep", new=AsyncMock()) as mock_sleep:
        yield mock_sleep


class TestCall:
    """call() 기본 동작"""

    @pytest.mark.asyncio
    async def test_success_builds_url_and_headers(self) -> None:
        """realm 경로 + Bearer 헤더 + minorversion"""
        client, _ = make_client()
        connection = make_connection()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(200, {"ok": True})
            mock_get_client.return_value = mock_http

            result = await client.call(connection, "reports/TrialBalance")

        assert result == {"ok": True}
        args, kwargs = mock_http.request.call_args
        assert args[0] == "GET"
        assert args[1] == (
            "https://sandbox-quickbooks.api.intuit.com/v3/company/9130000000/reports/TrialBalance"
        )
        assert kwargs["headers"]["Authorization"] == "Bearer access-1"
        assert kwargs["params"]["minorversion"] == "75"

    @pytest.mark.asyncio
    async def test_proactive_refresh_failure_is_not_fatal(self) -> None:
        """선제 갱신 실패 시 기존 토큰으로 진행"""
        client, token_manager = make_client()
        token_manager.ensure_fresh_access_token.side_effect = ReauthorizationRequired("T1", "invalid_grant")

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(200, {"ok": True})
            mock_get_client.return_value = mock_http

            assert await client.call(make_connection(), "query") == {"ok": True}

    @pytest.mark.asyncio
    async def test_non_transient_error_not_retried(self) -> None:
        """400은 즉시 ExternalAPIError"""
        client, _ = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(400, {"Fault": "bad query"})
            mock_get_client.return_value = mock_http

            with pytest.raises(ExternalAPIError) as exc_info:
                await client.call(make_connection(), "query")

        assert exc_info.value.status_code == 400
        assert not isinstance(exc_info.value, TransientAPIError)
        assert mock_http.request.call_count == 1


class TestRetry:
    """일시 오류 재시도"""

    @pytest.mark.asyncio
    async def test_transient_then_success(self, no_backoff_sleep: AsyncMock) -> None:
        """429 → 503 → 200"""
        client, _ = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.side_effect = [
                make_response(429),
                make_response(503),
                make_response(200, {"ok": True}),
            ]
            mock_get_client.return_value = mock_http

            result = await client.call(make_connection(), "query")

        assert result == {"ok": True}
        assert mock_http.request.call_count == 3
        assert no_backoff_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_transient_exhausted(self) -> None:
        """최초 1회 + 재시도 3회 후 TransientAPIError"""
        client, _ = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(503)
            mock_get_client.return_value = mock_http

            with pytest.raises(TransientAPIError) as exc_info:
                await client.call(make_connection(), "query")

        assert exc_info.value.status_code == 503
        assert mock_http.request.call_count == 4

    @pytest.mark.asyncio
    async def test_timeout_exhausted(self) -> None:
        """타임아웃 재시도 소진 시 RequestTimeoutError"""
        client, _ = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.side_effect = httpx.ReadTimeout("timed out")
            mock_get_client.return_value = mock_http

            with pytest.raises(RequestTimeoutError):
                await client.call(make_connection(), "query")

        assert mock_http.request.call_count == 4

    @pytest.mark.asyncio
    async def test_timeout_then_success(self) -> None:
        client, _ = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.side_effect = [
                httpx.ConnectTimeout("connect timed out"),
                make_response(200, {"ok": True}),
            ]
            mock_get_client.return_value = mock_http

            assert await client.call(make_connection(), "query") == {"ok": True}


class TestUnauthorized:
    """401 반응형 갱신"""

    @pytest.mark.asyncio
    async def test_refresh_and_replay_once(self) -> None:
        """401 → 갱신 → 새 토큰으로 재호출"""
        client, token_manager = make_client()
        connection = make_connection()

        async def fake_refresh(conn: Connection) -> str:
            conn.access_token = "access-2"
            return conn.access_token

        token_manager.refresh.side_effect = fake_refresh

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.side_effect = [
                make_response(401),
                make_response(200, {"ok": True}),
            ]
            mock_get_client.return_value = mock_http

            result = await client.call(connection, "query")

        assert result == {"ok": True}
        token_manager.refresh.assert_awaited_once()
        second_headers = mock_http.request.call_args_list[1].kwargs["headers"]
        assert second_headers["Authorization"] == "Bearer access-2"

    @pytest.mark.asyncio
    async def test_second_401_fails(self) -> None:
        """재호출도 401이면 실패 (갱신은 1회만)"""
        client, token_manager = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(401)
            mock_get_client.return_value = mock_http

            with pytest.raises(ExternalAPIError) as exc_info:
                await client.call(make_connection(), "query")

        assert exc_info.value.status_code == 401
        assert token_manager.refresh.await_count == 1
        assert mock_http.request.call_count == 2

    @pytest.mark.asyncio
    async def test_no_refresh_token(self) -> None:
        """refresh token이 없으면 갱신 시도 없이 실패"""
        client, token_manager = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(401)
            mock_get_client.return_value = mock_http

            with pytest.raises(ExternalAPIError):
                await client.call(make_connection(refresh_token=None), "query")

        token_manager.refresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_refresh_rejected_propagates(self) -> None:
        """갱신 거부는 ReauthorizationRequired로 전파"""
        client, token_manager = make_client()
        token_manager.refresh.side_effect = ReauthorizationRequired("T1", "invalid_grant")

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(401)
            mock_get_client.return_value = mock_http

            with pytest.raises(ReauthorizationRequired):
                await client.call(make_connection(), "query")


class TestQueryAll:
    """페이지네이션"""

    @pytest.mark.asyncio
    async def test_pages_until_short_page(self) -> None:
        """2, 2, 1건 → 3회 호출, STARTPOSITION 증가"""
        client, _ = make_client()
        pages = [
            {"QueryResponse": {"Invoice": [{"Id": "1"}, {"Id": "2"}]}},
            {"QueryResponse": {"Invoice": [{"Id": "3"}, {"Id": "4"}]}},
            {"QueryResponse": {"Invoice": [{"Id": "5"}]}},
        ]

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.side_effect = [make_response(200, p) for p in pages]
            mock_get_client.return_value = mock_http

            rows = await client.query_all(make_connection(), "Invoice", page_size=2)

        assert [r["Id"] for r in rows] == ["1", "2", "3", "4", "5"]
        statements = [c.kwargs["params"]["query"] for c in mock_http.request.call_args_list]
        assert statements[0] == "SELECT * FROM Invoice STARTPOSITION 1 MAXRESULTS 2"
        assert statements[1].endswith("STARTPOSITION 3 MAXRESULTS 2")
        assert statements[2].endswith("STARTPOSITION 5 MAXRESULTS 2")

    @pytest.mark.asyncio
    async def test_exact_multiple_needs_empty_page(self) -> None:
        """마지막 페이지가 꽉 차면 빈 페이지까지 조회"""
        client, _ = make_client()
        pages = [
            {"QueryResponse": {"Bill": [{"Id": "1"}, {"Id": "2"}]}},
            {"QueryResponse": {}},
        ]

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.side_effect = [make_response(200, p) for p in pages]
            mock_get_client.return_value = mock_http

            rows = await client.query_all(make_connection(), "Bill", page_size=2)

        assert len(rows) == 2
        assert mock_http.request.call_count == 2

    @pytest.mark.asyncio
    async def test_where_clause(self) -> None:
        client, _ = make_client()

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(200, {"QueryResponse": {}})
            mock_get_client.return_value = mock_http

            rows = await client.query_all(
                make_connection(), "Account", where="AccountType = 'Bank'"
            )

        assert rows == []
        statement = mock_http.request.call_args.kwargs["params"]["query"]
        assert "WHERE AccountType = 'Bank' STARTPOSITION 1" in statement


class TestGetChanges:
    """CDC 응답 파싱"""

    @pytest.mark.asyncio
    async def test_meta_keys_skipped(self) -> None:
        """startPosition 등 메타 키는 엔티티로 취급하지 않음"""
        client, _ = make_client()
        payload = {
            "CDCResponse": [{
                "QueryResponse": [
                    {
                        "Invoice": [{"Id": "10", "status": "Deleted"}],
                        "startPosition": 1,
                        "maxResults": 1,
                        "totalCount": 1,
                    },
                    {"Customer": [{"Id": "7"}]},
                ],
            }],
        }

        with patch.object(client, "_get_client") as mock_get_client:
            mock_http = AsyncMock()
            mock_http.request.return_value = make_response(200, payload)
            mock_get_client.return_value = mock_http

            changes = await client.get_changes(
                make_connection(),
                ["Invoice", "Customer"],
                datetime(2024, 1, 1, tzinfo=timezone.utc),
            )

        assert set(changes) == {"Invoice", "Customer"}
        assert changes["Invoice"][0]["status"] == "Deleted"
        params = mock_http.request.call_args.kwargs["params"]
        assert params["entities"] == "Invoice,Customer"
        assert params["changedSince"].startswith("2024-01-01")
