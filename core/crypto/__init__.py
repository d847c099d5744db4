"""
토큰 암호화 모듈

OAuth 토큰을 저장 전 AES-256-GCM으로 암호화한다.
"""

from core.crypto.token_vault import CryptoError, TokenVault

__all__ = [
    "CryptoError",
    "TokenVault",
]
