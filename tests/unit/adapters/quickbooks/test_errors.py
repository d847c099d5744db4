"""
QuickBooks 에러 분류 / 백오프 테스트
"""

import pytest

from adapters.quickbooks.errors import (
    TRANSIENT_STATUS_CODES,
    ExternalAPIError,
    RequestTimeoutError,
    TransientAPIError,
    backoff_base_ms,
    backoff_with_jitter,
    is_transient_status,
)


class TestIsTransientStatus:
    """재시도 대상 상태 코드 분류"""

    @pytest.mark.parametrize("status", [429, 502, 503, 504])
    def test_transient(self, status: int) -> None:
        assert is_transient_status(status) is True

    def test_everything_else_is_permanent(self) -> None:
        """400~599 중 나머지는 모두 재시도 대상 아님"""
        permanent = [s for s in range(400, 600) if s not in TRANSIENT_STATUS_CODES]

        assert len(permanent) == 196
        assert not any(is_transient_status(s) for s in permanent)

    @pytest.mark.parametrize("status", [200, 201, 301, 401, 500])
    def test_common_non_transient(self, status: int) -> None:
        assert is_transient_status(status) is False


class TestBackoff:
    """지수 백오프 + 지터"""

    def test_base_growth_and_cap(self) -> None:
        """1000ms부터 두 배씩, 10000ms 상한"""
        assert backoff_base_ms(0) == 1000
        assert backoff_base_ms(1) == 2000
        assert backoff_base_ms(2) == 4000
        assert backoff_base_ms(3) == 8000
        assert backoff_base_ms(4) == 10000
        assert backoff_base_ms(10) == 10000

    def test_jitter_bounds(self) -> None:
        """rand=0이면 절반, rand→1이면 기준값"""
        assert backoff_with_jitter(0, rand=lambda: 0.0) == 500
        assert backoff_with_jitter(0, rand=lambda: 1.0) == 1000
        assert backoff_with_jitter(5, rand=lambda: 0.0) == 5000

    @pytest.mark.parametrize("attempt", [0, 1, 2, 3, 4])
    def test_random_within_range(self, attempt: int) -> None:
        base = backoff_base_ms(attempt)
        for _ in range(50):
            delay = backoff_with_jitter(attempt)
            assert base * 0.5 <= delay <= base


class TestErrorTypes:
    """에러 계층"""

    def test_timeout_is_transient_and_timeout_error(self) -> None:
        error = RequestTimeoutError(endpoint="query", timeout=15.0)

        assert isinstance(error, TransientAPIError)
        assert isinstance(error, ExternalAPIError)
        assert isinstance(error, TimeoutError)
        assert error.status_code == 0

    def test_body_truncated_in_message(self) -> None:
        error = ExternalAPIError(status_code=400, body="x" * 2000, endpoint="query")

        assert error.body == "x" * 2000
        assert len(str(error)) < 600
        assert "[400]" in str(error)
