"""
GL 스키마 초기화

init_schema()에서 호출되어 GL 테이블과 조회용 View 생성.
CREATE IF NOT EXISTS / DROP VIEW IF EXISTS 패턴으로 안전하게 동작.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """GL 스키마 초기화 (테이블 + View)

    Args:
        db: SQLiteAdapter 인스턴스
    """
    await _create_ledger_tables(db)
    await _create_ledger_views(db)
    logger.info("GL 스키마 초기화 완료")


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    # 거래 미러 1건당 최대 1건
    await db.execute("""
        CREATE TABLE IF NOT EXISTS gl_transactions (
            id                 INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id          TEXT NOT NULL,
            qb_transaction_id  INTEGER NOT NULL UNIQUE,
            source             TEXT NOT NULL DEFAULT 'quickbooks',
            entity_type        TEXT NOT NULL,
            txn_date           TEXT,
            currency           TEXT NOT NULL DEFAULT 'USD',
            memo               TEXT,
            is_balanced        INTEGER NOT NULL DEFAULT 1,
            created_at         TEXT NOT NULL,
            FOREIGN KEY (qb_transaction_id) REFERENCES qb_transactions(id) ON DELETE CASCADE
        )
    """)

    # debit/credit 중 하나만 0이 아님
    await db.execute("""
        CREATE TABLE IF NOT EXISTS gl_lines (
            id                 INTEGER PRIMARY KEY AUTOINCREMENT,
            gl_transaction_id  INTEGER NOT NULL,
            tenant_id          TEXT NOT NULL,
            account_id         INTEGER,
            account_qb_id      TEXT,
            debit              TEXT NOT NULL DEFAULT '0',
            credit             TEXT NOT NULL DEFAULT '0',
            customer_id        INTEGER,
            vendor_id          INTEGER,
            customer_qb_id     TEXT,
            vendor_qb_id       TEXT,
            description        TEXT,
            line_order         INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (gl_transaction_id) REFERENCES gl_transactions(id) ON DELETE CASCADE
        )
    """)

    # 대사 결과 스냅샷 (insert only)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS trial_balance_checks (
            id                     INTEGER PRIMARY KEY AUTOINCREMENT,
            tenant_id              TEXT NOT NULL,
            qb_total               TEXT NOT NULL,
            erp_total              TEXT NOT NULL,
            total_diff             TEXT NOT NULL,
            ar_qb                  TEXT,
            ar_erp                 TEXT,
            ar_diff                TEXT,
            ap_qb                  TEXT,
            ap_erp                 TEXT,
            ap_diff                TEXT,
            unresolved_line_count  INTEGER NOT NULL DEFAULT 0,
            unresolved_party_count INTEGER NOT NULL DEFAULT 0,
            account_diffs_json     TEXT,
            is_balanced            INTEGER NOT NULL,
            checked_at             TEXT NOT NULL
        )
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_gl_lines_txn
        ON gl_lines(gl_transaction_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_gl_lines_account
        ON gl_lines(tenant_id, account_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_trial_balance_checks_tenant
        ON trial_balance_checks(tenant_id, checked_at)
    """)


async def _create_ledger_views(db: "SQLiteAdapter") -> None:
    """대시보드 조회용 View

    REAL 집계이므로 표시용. 대사는 GLStore의 Decimal 집계를 사용한다.
    """
    await db.execute("DROP VIEW IF EXISTS v_gl_account_activity")
    await db.execute("""
        CREATE VIEW v_gl_account_activity AS
        SELECT
            gl.tenant_id,
            gl.account_id,
            a.qb_id AS account_qb_id,
            a.name AS account_name,
            a.account_type,
            SUM(CAST(gl.debit AS REAL)) AS total_debit,
            SUM(CAST(gl.credit AS REAL)) AS total_credit,
            COUNT(*) AS line_count
        FROM gl_lines gl
        JOIN gl_transactions gt ON gt.id = gl.gl_transaction_id
        JOIN qb_transactions qt ON qt.id = gt.qb_transaction_id
        LEFT JOIN qb_accounts a ON a.id = gl.account_id
        WHERE qt.is_deleted = 0 AND qt.is_voided = 0
        GROUP BY gl.tenant_id, gl.account_id
    """)
