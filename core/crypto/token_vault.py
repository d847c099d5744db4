"""
토큰 보관소 (Token Vault)

OAuth access/refresh 토큰을 DB에 저장하기 전 암호화.
- 알고리즘: AES-256-GCM (인증 암호화)
- 키: 설정된 비밀 문자열의 SHA-256 다이제스트 (32바이트)
- 형식: base64(nonce) + ":" + base64(ciphertext + tag)

복호화 실패는 CryptoError (ConfigurationError 하위)로 올린다.
손상된 토큰을 평문처럼 반환하는 일은 없어야 한다.
"""

import base64
import binascii
import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core.config.loader import ConfigurationError


NONCE_SIZE = 12
MIN_SECRET_LENGTH = 32
SEPARATOR = ":"


class CryptoError(ConfigurationError):
    """토큰 암호화/복호화 실패"""

    pass


class TokenVault:
    """토큰 암호화기

    Args:
        secret: 암호화 키 원문 (최소 32자)

    Raises:
        CryptoError: secret이 없거나 너무 짧은 경우
    """

    def __init__(self, secret: str | None):
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise CryptoError(
                f"token_encryption_key는 최소 {MIN_SECRET_LENGTH}자 이상이어야 합니다"
            )
        key = hashlib.sha256(secret.encode("utf-8")).digest()
        self._aesgcm = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """평문 암호화 (호출마다 새 nonce)"""
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return (
            base64.b64encode(nonce).decode("ascii")
            + SEPARATOR
            + base64.b64encode(ciphertext).decode("ascii")
        )

    def decrypt(self, token: str) -> str:
        """암호문 복호화

        Raises:
            CryptoError: 형식 오류, base64 오류, nonce 길이 오류, 인증 실패
        """
        if not token or SEPARATOR not in token:
            raise CryptoError("암호문 형식 오류: 구분자가 없습니다")

        nonce_part, _, cipher_part = token.partition(SEPARATOR)
        try:
            nonce = base64.b64decode(nonce_part, validate=True)
            ciphertext = base64.b64decode(cipher_part, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError(f"암호문 형식 오류: base64 디코딩 실패 ({e})") from e

        if len(nonce) != NONCE_SIZE or not ciphertext:
            raise CryptoError("암호문 형식 오류: nonce 또는 본문 길이가 올바르지 않습니다")

        try:
            plaintext = self._aesgcm.decrypt(nonce, ciphertext, None)
        except InvalidTag as e:
            raise CryptoError("토큰 복호화 실패: 인증 태그 불일치 (키 또는 데이터 손상)") from e

        return plaintext.decode("utf-8")
