"""
QuickBooks API 에러 및 재시도 정책

에러 분류(is_transient_status)와 백오프 계산(backoff_with_jitter)은
상태 없는 순수 함수로 유지한다.
"""

import random
from typing import Callable

from core.constants import SyncLimits


TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({429, 502, 503, 504})


class QuickBooksError(Exception):
    """QuickBooks 연동 에러 기본 클래스"""

    pass


class ExternalAPIError(QuickBooksError):
    """QBO API 비정상 응답

    재시도 대상이 아닌 non-2xx 또는 재시도 소진 후 발생.
    """

    def __init__(self, status_code: int, body: str, endpoint: str | None = None):
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint
        super().__init__(
            f"QuickBooks API Error [{status_code}] {endpoint or ''}: "
            f"{body[:SyncLimits.ERROR_TRUNCATE_CHARS]}"
        )


class TransientAPIError(ExternalAPIError):
    """일시적 오류 (429/502/503/504) 재시도 소진"""

    pass


class RequestTimeoutError(TransientAPIError, TimeoutError):
    """요청 타임아웃 (재시도 소진)"""

    def __init__(self, endpoint: str | None = None, timeout: float | None = None):
        self.timeout = timeout
        super().__init__(status_code=0, body=f"timeout after {timeout}s", endpoint=endpoint)


class ReauthorizationRequired(QuickBooksError):
    """refresh token 거부 (invalid_grant 등)

    자동 재시도하지 않는다. 사용자가 OAuth 연결을 다시 해야 한다.
    """

    def __init__(self, tenant_id: str, reason: str):
        self.tenant_id = tenant_id
        self.reason = reason
        super().__init__(f"QuickBooks 재인증 필요 [{tenant_id}]: {reason}")


def is_transient_status(status_code: int) -> bool:
    """재시도 대상 HTTP 상태 여부"""
    return status_code in TRANSIENT_STATUS_CODES


def backoff_base_ms(attempt: int) -> int:
    """지수 백오프 기준값: min(1000 * 2^attempt, 10000) ms"""
    return min(SyncLimits.BACKOFF_BASE_MS * (2 ** attempt), SyncLimits.BACKOFF_CAP_MS)


def backoff_with_jitter(
    attempt: int,
    rand: Callable[[], float] = random.random,
) -> float:
    """지터 포함 백오프 지연 (ms)

    결과는 [0.5 * base, 1.0 * base] 범위.

    Args:
        attempt: 0부터 시작하는 재시도 번호
        rand: [0, 1) 난수 함수 (테스트 주입용)
    """
    base = backoff_base_ms(attempt)
    return base * (0.5 + 0.5 * rand())
