"""
QuickBooks Online 어댑터

OAuth 토큰 관리, 재시도/백오프가 포함된 REST 클라이언트, 응답 변환.
"""

from adapters.quickbooks.errors import (
    ExternalAPIError,
    QuickBooksError,
    ReauthorizationRequired,
    RequestTimeoutError,
    TransientAPIError,
    backoff_with_jitter,
    is_transient_status,
)
from adapters.quickbooks.rest_client import QuickBooksRestClient
from adapters.quickbooks.token_manager import TokenManager, TokenPair

__all__ = [
    "QuickBooksRestClient",
    "TokenManager",
    "TokenPair",
    "QuickBooksError",
    "ExternalAPIError",
    "TransientAPIError",
    "RequestTimeoutError",
    "ReauthorizationRequired",
    "backoff_with_jitter",
    "is_transient_status",
]
