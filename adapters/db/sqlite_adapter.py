"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
Engine(cron)과 Web이 동시에 접근 가능하도록 설정.

금액 컬럼은 모두 TEXT (Decimal 문자열), 시각 컬럼은 UTC ISO 문자열.
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로 (":memory:" 허용)
        readonly: 읽기 전용 여부

    Returns:
        aiosqlite 연결 객체
    """
    db_path_str = str(db_path)

    if db_path_str != ":memory:":
        Path(db_path_str).parent.mkdir(parents=True, exist_ok=True)

    if readonly:
        conn = await aiosqlite.connect(f"file:{db_path_str}?mode=ro", uri=True)
    else:
        conn = await aiosqlite.connect(db_path_str)

    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA busy_timeout=30000")  # 30초 대기
    await conn.execute("PRAGMA foreign_keys=ON")

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부 (Web 조회용)

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        async with db.transaction() as conn:
            await conn.execute("INSERT INTO ...")
    ```
    """

    def __init__(self, db_path: Path | str, readonly: bool = False):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.readonly = readonly
        self._conn: aiosqlite.Connection | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Not connected to database")
        return self._conn

    async def connect(self) -> None:
        if self._conn is not None:
            return
        self._conn = await create_connection(self.db_path, self.readonly)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료")

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        conn = self._require_conn()
        if parameters:
            return await conn.execute(sql, parameters)
        return await conn.execute(sql)

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        return await self._require_conn().executemany(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        if self._conn is not None:
            await self._conn.commit()

    async def rollback(self) -> None:
        if self._conn is not None:
            await self._conn.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백 후 재발생.
        """
        conn = self._require_conn()
        try:
            yield conn
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise

    async def table_exists(self, table_name: str) -> bool:
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


# 미러 엔티티 테이블 공통 컬럼 외 추가 컬럼
_MIRROR_ENTITY_COLUMNS: dict[str, str] = {
    "qb_accounts": """
            name              TEXT,
            fully_qualified_name TEXT,
            account_type      TEXT,
            account_sub_type  TEXT,
            classification    TEXT,
            current_balance   TEXT,
    """,
    "qb_customers": """
            display_name      TEXT,
            company_name      TEXT,
            email             TEXT,
            balance           TEXT,
    """,
    "qb_vendors": """
            display_name      TEXT,
            company_name      TEXT,
            email             TEXT,
            balance           TEXT,
    """,
    "qb_items": """
            name              TEXT,
            item_type         TEXT,
            unit_price        TEXT,
            description       TEXT,
            income_account_qb_id  TEXT,
            expense_account_qb_id TEXT,
    """,
    "qb_classes": """
            name              TEXT,
            fully_qualified_name TEXT,
    """,
    "qb_departments": """
            name              TEXT,
            fully_qualified_name TEXT,
    """,
}


async def init_schema(adapter: SQLiteAdapter) -> None:
    """스키마 초기화 (테이블 생성)

    CREATE TABLE IF NOT EXISTS로 여러 번 호출해도 안전.
    GL 테이블은 core.ledger.schema에서 생성.

    Args:
        adapter: 연결된 SQLiteAdapter
    """
    # 테넌트별 QuickBooks 연결 (토큰은 암호화 저장)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS qb_connection (
            tenant_id          TEXT PRIMARY KEY,
            realm_id           TEXT NOT NULL,
            access_token_enc   TEXT NOT NULL,
            refresh_token_enc  TEXT,
            expires_at         TEXT NOT NULL,
            status             TEXT NOT NULL DEFAULT 'connected',
            created_at         TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at         TEXT NOT NULL DEFAULT (datetime('now'))
        )
    """)

    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS qb_company_info (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id        TEXT NOT NULL,
            realm_id         TEXT NOT NULL,
            company_name     TEXT,
            legal_name       TEXT,
            country          TEXT,
            fiscal_year_start_month TEXT,
            raw_json         TEXT NOT NULL,
            last_synced_at   TEXT NOT NULL,
            UNIQUE(tenant_id, realm_id)
        )
    """)

    # 미러 엔티티 (계정/고객/거래처/품목/클래스/부서)
    for table, extra_columns in _MIRROR_ENTITY_COLUMNS.items():
        await adapter.execute(f"""
            CREATE TABLE IF NOT EXISTS {table} (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id        TEXT NOT NULL,
                realm_id         TEXT NOT NULL,
                qb_id            TEXT NOT NULL,
                sync_token       TEXT,
                {extra_columns.strip()}
                is_active        INTEGER NOT NULL DEFAULT 1,
                is_deleted       INTEGER NOT NULL DEFAULT 0,
                raw_json         TEXT NOT NULL,
                last_synced_at   TEXT NOT NULL,
                UNIQUE(tenant_id, qb_id)
            )
        """)

    # 거래 미러 (엔티티 타입별로 qb_id 네임스페이스가 다름)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS qb_transactions (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id        TEXT NOT NULL,
            realm_id         TEXT NOT NULL,
            qb_id            TEXT NOT NULL,
            entity_type      TEXT NOT NULL,
            sync_token       TEXT,
            txn_date         TEXT,
            doc_number       TEXT,
            total_amt        TEXT,
            balance          TEXT,
            customer_qb_id   TEXT,
            vendor_qb_id     TEXT,
            customer_id      INTEGER,
            vendor_id        INTEGER,
            is_voided        INTEGER NOT NULL DEFAULT 0,
            is_deleted       INTEGER NOT NULL DEFAULT 0,
            raw_json         TEXT NOT NULL,
            last_synced_at   TEXT NOT NULL,
            UNIQUE(tenant_id, qb_id, entity_type)
        )
    """)

    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS qb_bank_activity (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id           TEXT NOT NULL,
            account_qb_id       TEXT NOT NULL,
            account_id          INTEGER,
            account_name        TEXT,
            current_balance     TEXT,
            reconciled_count    INTEGER NOT NULL DEFAULT 0,
            unreconciled_count  INTEGER NOT NULL DEFAULT 0,
            unreconciled_amount TEXT NOT NULL DEFAULT '0',
            last_synced_at      TEXT NOT NULL,
            UNIQUE(tenant_id, account_qb_id)
        )
    """)

    # 분산 단일 실행 락 (만료 시각 기반)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS sync_locks (
            tenant_id        TEXT NOT NULL,
            operation        TEXT NOT NULL,
            owner            TEXT NOT NULL,
            locked_at        TEXT NOT NULL,
            expires_at       TEXT NOT NULL,
            PRIMARY KEY (tenant_id, operation)
        )
    """)

    # 실행 감사 로그 (insert only)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS sync_logs (
            id                  INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id           TEXT NOT NULL,
            entity_type         TEXT NOT NULL,
            action              TEXT NOT NULL,
            status              TEXT NOT NULL,
            synced_count        INTEGER NOT NULL DEFAULT 0,
            error_count         INTEGER NOT NULL DEFAULT 0,
            errors_json         TEXT,
            duration_ms         INTEGER NOT NULL DEFAULT 0,
            trial_balance_diff  TEXT,
            started_at          TEXT NOT NULL,
            created_at          TEXT NOT NULL
        )
    """)

    # 사람 확인 필요 큐 (대사 불일치 등)
    await adapter.execute("""
        CREATE TABLE IF NOT EXISTS human_tasks (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id        TEXT NOT NULL,
            title            TEXT NOT NULL,
            description      TEXT,
            severity         TEXT NOT NULL,
            category         TEXT NOT NULL,
            entity_type      TEXT,
            entity_id        TEXT,
            is_blocking      INTEGER NOT NULL DEFAULT 0,
            status           TEXT NOT NULL DEFAULT 'open',
            payload_json     TEXT,
            created_at       TEXT NOT NULL,
            resolved_at      TEXT
        )
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_qb_transactions_type
        ON qb_transactions(tenant_id, entity_type)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_sync_logs_tenant_action
        ON sync_logs(tenant_id, action, started_at)
    """)

    await adapter.execute("""
        CREATE INDEX IF NOT EXISTS ix_human_tasks_open
        ON human_tasks(tenant_id, status, is_blocking)
    """)

    from core.ledger.schema import init_ledger_schema

    await init_ledger_schema(adapter)

    await adapter.commit()

    logger.info("스키마 초기화 완료")
