"""
엔진 에러 분류

엔티티 단위로 수집하고 다음 엔티티를 계속 진행하는 실패 유형.
ReauthorizationRequired / ConfigurationError는 포함하지 않는다 (실행 전체 중단).
"""

import aiosqlite

from adapters.quickbooks.errors import ExternalAPIError

ENTITY_ERRORS: tuple[type[Exception], ...] = (
    ExternalAPIError,
    aiosqlite.Error,
    KeyError,
    TypeError,
    ValueError,
    ArithmeticError,
)
