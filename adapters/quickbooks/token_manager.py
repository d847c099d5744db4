"""
QuickBooks OAuth 토큰 수명 관리

- 만료 5분 전 선제 갱신 (proactive)
- 401 응답 시 반응형 갱신 (reactive, rest_client에서 호출)
- 동일 연결에 대한 동시 갱신 요청은 하나의 갱신 작업을 공유 (single-flight)

연결 레코드 변경은 이 모듈만 수행한다.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Protocol

import httpx

from adapters.quickbooks.errors import (
    ExternalAPIError,
    ReauthorizationRequired,
    RequestTimeoutError,
    TransientAPIError,
    is_transient_status,
)
from core.constants import SyncLimits
from core.types import Connection, ConnectionStatus
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)


class ConnectionRepository(Protocol):
    """TokenManager가 사용하는 연결 저장소 (ConnectionStore 호환)"""

    async def save(self, connection: Connection) -> None:
        ...

    async def mark_reauth_required(self, tenant_id: str) -> None:
        ...


@dataclass(frozen=True)
class TokenPair:
    """갱신 결과"""

    access_token: str
    refresh_token: str
    expires_at: datetime


class TokenManager:
    """OAuth 토큰 관리자

    Args:
        token_url: Intuit 토큰 엔드포인트
        client_id: OAuth 클라이언트 ID
        client_secret: OAuth 클라이언트 시크릿
        connections: 연결 저장소
        timeout: 토큰 요청 타임아웃 (초)
        refresh_margin_sec: 만료 전 선제 갱신 여유 (초)
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        connections: ConnectionRepository,
        timeout: float = SyncLimits.REQUEST_TIMEOUT_SEC,
        refresh_margin_sec: int = SyncLimits.TOKEN_REFRESH_MARGIN_SEC,
    ):
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.connections = connections
        self.timeout = timeout
        self.refresh_margin = timedelta(seconds=refresh_margin_sec)

        self._client: httpx.AsyncClient | None = None

        # 연결 키(tenant_id) → 진행 중인 갱신 작업
        self._inflight: dict[str, asyncio.Task[TokenPair]] = {}
        self._registry_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTP 클라이언트 가져오기 (lazy initialization)"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def needs_refresh(self, connection: Connection, now: datetime | None = None) -> bool:
        """선제 갱신 필요 여부 (refresh token이 있고 만료까지 5분 미만)"""
        if not connection.refresh_token:
            return False
        now = now or now_utc()
        return connection.expires_at - now < self.refresh_margin

    async def ensure_fresh_access_token(self, connection: Connection) -> str:
        """유효한 access token 반환 (필요 시 갱신)

        Raises:
            ReauthorizationRequired: refresh token 거부
            ExternalAPIError: 토큰 엔드포인트 오류
        """
        if self.needs_refresh(connection):
            await self.refresh(connection)
        return connection.access_token

    async def refresh(self, connection: Connection) -> str:
        """토큰 갱신 (single-flight)

        같은 tenant_id에 대해 진행 중인 갱신이 있으면 그 결과를 기다린다.
        결과(또는 실패)는 모든 대기자에게 동일하게 전달된다.
        """
        if not connection.refresh_token:
            connection.status = ConnectionStatus.REAUTH_REQUIRED
            raise ReauthorizationRequired(connection.tenant_id, "refresh token 없음")

        key = connection.tenant_id
        async with self._registry_lock:
            task = self._inflight.get(key)
            if task is None:
                task = asyncio.create_task(self._refresh_and_persist(replace(connection)))
                self._inflight[key] = task
                task.add_done_callback(lambda t, k=key: self._clear_slot(k, t))
            else:
                logger.debug("진행 중인 토큰 갱신 대기", extra={"tenant_id": key})

        try:
            # 대기자 하나가 취소되어도 공유 작업은 계속 진행
            tokens = await asyncio.shield(task)
        except ReauthorizationRequired:
            connection.status = ConnectionStatus.REAUTH_REQUIRED
            raise

        connection.access_token = tokens.access_token
        connection.refresh_token = tokens.refresh_token
        connection.expires_at = tokens.expires_at
        connection.status = ConnectionStatus.CONNECTED
        return connection.access_token

    def _clear_slot(self, key: str, task: asyncio.Task[TokenPair]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _refresh_and_persist(self, snapshot: Connection) -> TokenPair:
        """토큰 엔드포인트 호출 후 연결 저장 (공유 작업 본체)"""
        tokens = await self._request_tokens(snapshot)

        updated = replace(
            snapshot,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
            status=ConnectionStatus.CONNECTED,
        )
        await self.connections.save(updated)

        logger.info(
            "QuickBooks 토큰 갱신 완료",
            extra={
                "tenant_id": snapshot.tenant_id,
                "realm_id": snapshot.realm_id,
                "rotated": tokens.refresh_token != snapshot.refresh_token,
                "expires_at": tokens.expires_at.isoformat(),
            },
        )
        return tokens

    async def _request_tokens(self, snapshot: Connection) -> TokenPair:
        """refresh_token grant 요청

        Raises:
            ReauthorizationRequired: 400/401 (invalid_grant 등)
            RequestTimeoutError: 타임아웃
            TransientAPIError / ExternalAPIError: 기타 실패
        """
        client = await self._get_client()
        try:
            response = await client.post(
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": snapshot.refresh_token,
                },
                auth=(self.client_id, self.client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(endpoint="oauth2/tokens", timeout=self.timeout) from e

        if response.status_code in (400, 401):
            reason = _error_reason(response)
            logger.error(
                "refresh token 거부, 재인증 필요",
                extra={
                    "tenant_id": snapshot.tenant_id,
                    "status_code": response.status_code,
                    "reason": reason,
                },
            )
            await self.connections.mark_reauth_required(snapshot.tenant_id)
            raise ReauthorizationRequired(snapshot.tenant_id, reason)

        if response.status_code >= 300:
            error_cls = TransientAPIError if is_transient_status(response.status_code) else ExternalAPIError
            raise error_cls(
                status_code=response.status_code,
                body=response.text,
                endpoint="oauth2/tokens",
            )

        data: dict[str, Any] = response.json()
        expires_in = int(data.get("expires_in", 3600))
        return TokenPair(
            access_token=data["access_token"],
            # 회전되지 않았으면 기존 refresh token 유지
            refresh_token=data.get("refresh_token") or snapshot.refresh_token or "",
            expires_at=now_utc() + timedelta(seconds=expires_in),
        )


def _error_reason(response: httpx.Response) -> str:
    """토큰 엔드포인트 에러 사유 (토큰 값은 포함하지 않음)"""
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("error") or body.get("error_description") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"
