"""
ConnectionStore - QuickBooks 연결 저장소

qb_connection 테이블 조회/저장.
토큰은 TokenVault로 암호화된 형태로만 DB에 기록된다.
"""

import logging

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.crypto.token_vault import TokenVault
from core.types import Connection, ConnectionStatus
from core.utils.timezone import now_utc, parse_iso, to_iso

logger = logging.getLogger(__name__)


class ConnectionNotFoundError(Exception):
    """테넌트의 QuickBooks 연결 없음"""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"QuickBooks 연결이 없습니다: tenant={tenant_id}")


class ConnectionStore:
    """QuickBooks 연결 저장소

    Args:
        db: SQLiteAdapter 인스턴스
        vault: 토큰 암호화기
    """

    def __init__(self, db: SQLiteAdapter, vault: TokenVault):
        self.db = db
        self.vault = vault

    async def get(self, tenant_id: str) -> Connection:
        """연결 조회 (토큰 복호화)

        Raises:
            ConnectionNotFoundError: 연결이 없는 경우
            CryptoError: 토큰 복호화 실패
        """
        row = await self.db.fetchone(
            """
            SELECT realm_id, access_token_enc, refresh_token_enc, expires_at, status
            FROM qb_connection
            WHERE tenant_id = ?
            """,
            (tenant_id,),
        )
        if row is None:
            raise ConnectionNotFoundError(tenant_id)

        realm_id, access_enc, refresh_enc, expires_at, status = row
        return Connection(
            tenant_id=tenant_id,
            realm_id=realm_id,
            access_token=self.vault.decrypt(access_enc),
            refresh_token=self.vault.decrypt(refresh_enc) if refresh_enc else None,
            expires_at=parse_iso(expires_at),
            status=ConnectionStatus(status),
        )

    async def save(self, connection: Connection) -> None:
        """연결 저장 (생성 또는 갱신)

        온보딩 시 최초 생성과 토큰 갱신 후 저장에 공통 사용.
        """
        now = to_iso(now_utc())
        access_enc = self.vault.encrypt(connection.access_token)
        refresh_enc = (
            self.vault.encrypt(connection.refresh_token)
            if connection.refresh_token
            else None
        )

        async with self.db.transaction():
            await self.db.execute(
                """
                INSERT INTO qb_connection (
                    tenant_id, realm_id, access_token_enc, refresh_token_enc,
                    expires_at, status, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(tenant_id) DO UPDATE SET
                    realm_id = excluded.realm_id,
                    access_token_enc = excluded.access_token_enc,
                    refresh_token_enc = excluded.refresh_token_enc,
                    expires_at = excluded.expires_at,
                    status = excluded.status,
                    updated_at = excluded.updated_at
                """,
                (
                    connection.tenant_id,
                    connection.realm_id,
                    access_enc,
                    refresh_enc,
                    to_iso(connection.expires_at),
                    connection.status.value,
                    now,
                    now,
                ),
            )

        logger.info(
            "QuickBooks 연결 저장",
            extra={
                "tenant_id": connection.tenant_id,
                "realm_id": connection.realm_id,
                "expires_at": to_iso(connection.expires_at),
            },
        )

    async def mark_reauth_required(self, tenant_id: str) -> None:
        """재인증 필요 상태로 표시"""
        async with self.db.transaction():
            await self.db.execute(
                """
                UPDATE qb_connection
                SET status = ?, updated_at = ?
                WHERE tenant_id = ?
                """,
                (ConnectionStatus.REAUTH_REQUIRED.value, to_iso(now_utc()), tenant_id),
            )

        logger.warning(
            "QuickBooks 연결 재인증 필요로 표시",
            extra={"tenant_id": tenant_id},
        )
