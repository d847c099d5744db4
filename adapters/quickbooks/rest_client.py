"""
QuickBooks Online REST API 클라이언트

호출 단위 처리 순서:
1. 선제 토큰 갱신 (best-effort, 실패해도 기존 토큰으로 진행)
2. 하드 타임아웃 (기본 15초)
3. 타임아웃 / 429·502·503·504 → 지수 백오프 + 지터로 최대 3회 재시도
4. 첫 시도 401 → 반응형 토큰 갱신 후 1회 재호출 (두 번째 401은 실패)
5. 기타 non-2xx → ExternalAPIError

모든 호출은 구조화된 호출 기록(endpoint, duration, status, retry count)을 남긴다.
토큰 값은 로그에 남기지 않는다.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any

import httpx

from adapters.quickbooks.errors import (
    ExternalAPIError,
    QuickBooksError,
    RequestTimeoutError,
    TransientAPIError,
    backoff_with_jitter,
    is_transient_status,
)
from adapters.quickbooks.token_manager import TokenManager
from core.constants import QuickBooksEndpoints, SyncLimits
from core.types import Connection
from core.utils.timezone import to_qbo_timestamp

logger = logging.getLogger(__name__)


# CDC QueryResponse에서 엔티티 목록이 아닌 메타 키
_CDC_META_KEYS = frozenset({"startPosition", "maxResults", "totalCount"})


class QuickBooksRestClient:
    """QuickBooks Online REST API 클라이언트

    Args:
        base_url: API 베이스 URL (production/sandbox)
        token_manager: 토큰 관리자
        timeout: 요청 타임아웃 (초)
        max_retries: 일시 오류 최대 재시도 횟수
        minor_version: QBO minorversion 파라미터
    """

    def __init__(
        self,
        base_url: str,
        token_manager: TokenManager,
        timeout: float = SyncLimits.REQUEST_TIMEOUT_SEC,
        max_retries: int = SyncLimits.MAX_RETRIES,
        minor_version: str = "75",
    ):
        self.base_url = base_url.rstrip("/")
        self.token_manager = token_manager
        self.timeout = timeout
        self.max_retries = max_retries
        self.minor_version = minor_version

        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP 클라이언트 가져오기 (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """HTTP 클라이언트 종료"""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _build_url(self, connection: Connection, path: str) -> str:
        return (
            f"{self.base_url}{QuickBooksEndpoints.API_VERSION_PATH}"
            f"/{connection.realm_id}/{path.lstrip('/')}"
        )

    async def call(
        self,
        connection: Connection,
        path: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """인증된 API 호출

        Args:
            connection: 테넌트 연결 (토큰 갱신 시 in-place 갱신됨)
            path: realm 이하 경로 (예: "query", "reports/TrialBalance")
            method: HTTP 메서드
            params: 쿼리 파라미터
            json_body: 요청 본문

        Returns:
            JSON 응답

        Raises:
            RequestTimeoutError: 타임아웃 재시도 소진
            TransientAPIError: 일시 오류 재시도 소진
            ExternalAPIError: 기타 non-2xx 또는 두 번째 401
            ReauthorizationRequired: 반응형 갱신 시 refresh token 거부
        """
        try:
            await self.token_manager.ensure_fresh_access_token(connection)
        except QuickBooksError as e:
            logger.warning(
                "선제 토큰 갱신 실패, 기존 토큰으로 진행",
                extra={"tenant_id": connection.tenant_id, "error": str(e)},
            )

        url = self._build_url(connection, path)
        query = {"minorversion": self.minor_version, **(params or {})}
        client = await self._get_client()

        started = time.monotonic()
        attempt = 0
        refreshed = False

        while True:
            headers = {
                "Authorization": f"Bearer {connection.access_token}",
                "Accept": "application/json",
            }
            if json_body is not None:
                headers["Content-Type"] = "application/json"

            try:
                response = await client.request(
                    method,
                    url,
                    params=query,
                    json=json_body,
                    headers=headers,
                )
            except httpx.TransportError as e:
                is_timeout = isinstance(e, httpx.TimeoutException)
                if attempt < self.max_retries:
                    await self._backoff(connection, path, attempt, "timeout" if is_timeout else type(e).__name__)
                    attempt += 1
                    continue

                self._log_call(connection, method, path, started, None, attempt, str(e) or type(e).__name__)
                if is_timeout:
                    raise RequestTimeoutError(endpoint=path, timeout=self.timeout) from e
                raise TransientAPIError(status_code=0, body=str(e), endpoint=path) from e

            status = response.status_code

            if is_transient_status(status) and attempt < self.max_retries:
                await self._backoff(connection, path, attempt, f"HTTP {status}")
                attempt += 1
                continue

            if status == 401 and attempt == 0 and not refreshed and connection.refresh_token:
                logger.info(
                    "401 수신, 토큰 갱신 후 재시도",
                    extra={"tenant_id": connection.tenant_id, "endpoint": path},
                )
                refreshed = True
                await self.token_manager.refresh(connection)
                attempt += 1
                continue

            if status < 200 or status >= 300:
                body = response.text
                self._log_call(
                    connection, method, path, started, status, attempt, body,
                    intuit_tid=response.headers.get("intuit_tid"),
                )
                error_cls = TransientAPIError if is_transient_status(status) else ExternalAPIError
                raise error_cls(status_code=status, body=body, endpoint=path)

            self._log_call(
                connection, method, path, started, status, attempt, None,
                intuit_tid=response.headers.get("intuit_tid"),
            )
            return response.json()

    async def _backoff(
        self,
        connection: Connection,
        path: str,
        attempt: int,
        reason: str,
    ) -> None:
        delay_ms = backoff_with_jitter(attempt)
        logger.warning(
            "QBO 일시 오류, 재시도 대기",
            extra={
                "tenant_id": connection.tenant_id,
                "endpoint": path,
                "reason": reason,
                "attempt": attempt + 1,
                "delay_ms": round(delay_ms),
            },
        )
        await asyncio.sleep(delay_ms / 1000)

    def _log_call(
        self,
        connection: Connection,
        method: str,
        path: str,
        started: float,
        status_code: int | None,
        retry_count: int,
        error: str | None,
        intuit_tid: str | None = None,
    ) -> None:
        """구조화된 호출 기록"""
        record = {
            "tenant_id": connection.tenant_id,
            "realm_id": connection.realm_id,
            "method": method,
            "endpoint": path,
            "duration_ms": int((time.monotonic() - started) * 1000),
            "status_code": status_code,
            "retry_count": retry_count,
            "intuit_tid": intuit_tid,
        }
        if error is not None:
            record["error"] = error[:SyncLimits.ERROR_TRUNCATE_CHARS]
            logger.error("QBO API 호출 실패", extra=record)
        else:
            logger.info("QBO API 호출", extra=record)

    # -------------------------------------------------------------------------
    # 조회 헬퍼
    # -------------------------------------------------------------------------

    async def query(self, connection: Connection, statement: str) -> dict[str, Any]:
        """QBO query 언어 실행 → QueryResponse"""
        data = await self.call(connection, "query", params={"query": statement})
        return data.get("QueryResponse") or {}

    async def query_all(
        self,
        connection: Connection,
        entity: str,
        where: str | None = None,
        page_size: int = SyncLimits.QUERY_PAGE_SIZE,
    ) -> list[dict[str, Any]]:
        """페이지 단위 전체 조회

        페이지 결과가 page_size보다 적으면 종료. 정렬을 가정하지 않는다.

        Args:
            connection: 테넌트 연결
            entity: 엔티티 이름 (예: "Invoice")
            where: WHERE 절 (선택)
            page_size: MAXRESULTS

        Returns:
            원본 엔티티 목록 (0건 허용)
        """
        results: list[dict[str, Any]] = []
        start_position = 1

        while True:
            statement = f"SELECT * FROM {entity}"
            if where:
                statement += f" WHERE {where}"
            statement += f" STARTPOSITION {start_position} MAXRESULTS {page_size}"

            page = (await self.query(connection, statement)).get(entity) or []
            results.extend(page)

            if len(page) < page_size:
                break
            start_position += page_size

        logger.debug(
            "QBO 전체 조회 완료",
            extra={"entity": entity, "count": len(results), "filtered": where is not None},
        )
        return results

    async def get_company_info(self, connection: Connection) -> dict[str, Any]:
        data = await self.call(connection, f"companyinfo/{connection.realm_id}")
        return data.get("CompanyInfo") or {}

    async def get_report(
        self,
        connection: Connection,
        report_name: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """리포트 조회 (TrialBalance, AgedReceivables, TransactionList 등)"""
        return await self.call(connection, f"reports/{report_name}", params=params)

    async def get_changes(
        self,
        connection: Connection,
        entities: list[str] | tuple[str, ...],
        changed_since: datetime,
    ) -> dict[str, list[dict[str, Any]]]:
        """CDC(change data capture) 조회

        Returns:
            엔티티 이름 → 변경 레코드 목록 (삭제 건은 status="Deleted")
        """
        data = await self.call(
            connection,
            "cdc",
            params={
                "entities": ",".join(entities),
                "changedSince": to_qbo_timestamp(changed_since),
            },
        )

        changes: dict[str, list[dict[str, Any]]] = {}
        for cdc_response in data.get("CDCResponse") or []:
            for query_response in cdc_response.get("QueryResponse") or []:
                for key, records in query_response.items():
                    if key in _CDC_META_KEYS or not isinstance(records, list):
                        continue
                    changes.setdefault(key, []).extend(records)
        return changes
