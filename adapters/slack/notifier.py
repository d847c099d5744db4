"""
Slack 알림 서비스

Incoming Webhook으로 운영 알림과 시산표 불일치 알림을 전송.
INotifier Protocol 준수. 전송 실패는 예외 대신 False로 반환한다.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_EMOJI = ":bell:"
DEFAULT_COLOR = "#808080"

# 레벨 → (이모지, attachment 색상)
_LEVEL_STYLES: dict[str, tuple[str, str]] = {
    "INFO": (":white_check_mark:", "#36A64F"),
    "WARNING": (":warning:", "#FFA500"),
    "ERROR": (":x:", "#FF0000"),
    "CRITICAL": (":rotating_light:", "#8B0000"),
}

LEVEL_EMOJI = {level: style[0] for level, style in _LEVEL_STYLES.items()}
LEVEL_COLOR = {level: style[1] for level, style in _LEVEL_STYLES.items()}


def _fields(pairs: Iterable[tuple[str, Any]]) -> list[dict[str, Any]]:
    """(제목, 값) 목록 → attachment fields"""
    return [{"title": title, "value": str(value), "short": True} for title, value in pairs]


class SlackNotifier:
    """Slack Webhook 알림

    사용 예시:
    ```python
    async with SlackNotifier(webhook_url="https://hooks.slack.com/...") as notifier:
        await notifier.send_reconciliation_alert(
            tenant_id="acme", total_diff="0.02", qb_total="1000.00", erp_total="1000.02",
        )
    ```

    Args:
        webhook_url: Slack Incoming Webhook URL
        channel: 채널 오버라이드 (None이면 Webhook 기본 채널)
        username: 발송자 표시 이름
        timeout: HTTP 타임아웃 (초)
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str | None = None,
        username: str = "LedgerSync",
        timeout: float = 10.0,
    ):
        if not webhook_url:
            raise ValueError("webhook_url은 필수입니다")

        self.webhook_url = webhook_url
        self.channel = channel
        self.username = username
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "SlackNotifier":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # INotifier
    # -------------------------------------------------------------------------

    async def send(
        self,
        message: str,
        level: str = "INFO",
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """일반 알림 (extra는 attachment fields로 표시)"""
        emoji, color = _LEVEL_STYLES.get(level, (DEFAULT_EMOJI, DEFAULT_COLOR))
        return await self._post(
            text=f"{emoji} *[{level}]* {message}",
            color=color,
            fields=_fields(extra.items()) if extra else None,
        )

    async def send_reconciliation_alert(
        self,
        tenant_id: str,
        total_diff: str,
        qb_total: str,
        erp_total: str,
        escalation_id: int | None = None,
    ) -> bool:
        """시산표 불일치 알림 (금액은 호출자가 문자열로 전달)"""
        pairs: list[tuple[str, Any]] = [
            ("Tenant", tenant_id),
            ("Difference", f"${total_diff}"),
            ("QuickBooks", qb_total),
            ("ERP GL", erp_total),
        ]
        if escalation_id is not None:
            pairs.append(("Task", f"#{escalation_id}"))

        emoji, color = _LEVEL_STYLES["CRITICAL"]
        return await self._post(
            text=f"{emoji} *Trial Balance Mismatch*",
            color=color,
            fields=_fields(pairs),
        )

    # -------------------------------------------------------------------------
    # 내부
    # -------------------------------------------------------------------------

    async def _post(
        self,
        text: str,
        color: str,
        fields: list[dict[str, Any]] | None = None,
    ) -> bool:
        attachment: dict[str, Any] = {
            "color": color,
            "text": text,
            "footer": f"LedgerSync | {datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} UTC",
        }
        if fields:
            attachment["fields"] = fields

        payload: dict[str, Any] = {"username": self.username, "attachments": [attachment]}
        if self.channel:
            payload["channel"] = self.channel

        try:
            client = await self._get_client()
            response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(
                "Slack 알림 전송 실패",
                extra={"error": str(e), "timeout": isinstance(e, httpx.TimeoutException)},
            )
            return False

        if response.status_code != 200:
            logger.warning(
                "Slack 알림 응답 오류",
                extra={"status_code": response.status_code, "body": response.text[:200]},
            )
            return False

        logger.debug("Slack 알림 전송 성공")
        return True
