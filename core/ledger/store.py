"""
GL 저장소

gl_transactions / gl_lines 재구성 및 대사용 집계 조회
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from core.ledger.types import GLTransaction
from core.utils.money import ZERO, to_decimal
from core.utils.timezone import now_utc, to_iso

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


# 삭제/무효화된 원본 거래의 GL은 집계에서 제외
_ACTIVE_LINES_SQL = """
    FROM gl_lines gl
    JOIN gl_transactions gt ON gt.id = gl.gl_transaction_id
    JOIN qb_transactions qt ON qt.id = gt.qb_transaction_id
    WHERE gt.tenant_id = ?
      AND qt.is_deleted = 0
      AND qt.is_voided = 0
"""


class GLStore:
    """GL 저장소

    GL 거래는 항상 삭제 후 재삽입으로만 변경된다.

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def replace_transaction(
        self,
        tenant_id: str,
        qb_transaction_id: int,
        gl_txn: GLTransaction | None,
    ) -> int:
        """거래 미러 1건의 GL 재구성 (단일 트랜잭션)

        Args:
            tenant_id: 테넌트 ID
            qb_transaction_id: qb_transactions.id
            gl_txn: 새 GL 거래 (None이면 삭제만 수행)

        Returns:
            삽입된 GL 라인 수
        """
        async with self.db.transaction():
            await self.db.execute(
                """
                DELETE FROM gl_lines WHERE gl_transaction_id IN (
                    SELECT id FROM gl_transactions
                    WHERE tenant_id = ? AND qb_transaction_id = ?
                )
                """,
                (tenant_id, qb_transaction_id),
            )
            await self.db.execute(
                "DELETE FROM gl_transactions WHERE tenant_id = ? AND qb_transaction_id = ?",
                (tenant_id, qb_transaction_id),
            )

            if gl_txn is None:
                return 0

            cursor = await self.db.execute(
                """
                INSERT INTO gl_transactions (
                    tenant_id, qb_transaction_id, source, entity_type,
                    txn_date, currency, memo, is_balanced, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    tenant_id,
                    qb_transaction_id,
                    gl_txn.source,
                    gl_txn.entity_type,
                    gl_txn.txn_date,
                    gl_txn.currency,
                    gl_txn.memo,
                    1 if gl_txn.is_balanced() else 0,
                    to_iso(now_utc()),
                ),
            )
            gl_transaction_id = cursor.lastrowid

            if gl_txn.lines:
                await self.db.executemany(
                    """
                    INSERT INTO gl_lines (
                        gl_transaction_id, tenant_id, account_id, account_qb_id,
                        debit, credit, customer_id, vendor_id,
                        customer_qb_id, vendor_qb_id, description, line_order
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            gl_transaction_id,
                            tenant_id,
                            line.account_id,
                            line.account_qb_id,
                            str(line.debit),
                            str(line.credit),
                            line.customer_id,
                            line.vendor_id,
                            line.customer_qb_id,
                            line.vendor_qb_id,
                            line.description,
                            i,
                        )
                        for i, line in enumerate(gl_txn.lines)
                    ],
                )

        logger.debug(
            "GL 재구성",
            extra={
                "qb_transaction_id": qb_transaction_id,
                "line_count": len(gl_txn.lines),
            },
        )
        return len(gl_txn.lines)

    # -------------------------------------------------------------------------
    # 대사용 집계
    # -------------------------------------------------------------------------

    async def get_totals(self, tenant_id: str) -> tuple[Decimal, Decimal]:
        """유효 GL 라인의 (차변 합계, 대변 합계)

        TEXT 금액을 Decimal로 합산 (SQL SUM은 REAL 변환으로 오차 발생).
        """
        rows = await self.db.fetchall(
            f"SELECT gl.debit, gl.credit {_ACTIVE_LINES_SQL}",
            (tenant_id,),
        )
        total_debit = ZERO
        total_credit = ZERO
        for debit, credit in rows:
            total_debit += to_decimal(debit)
            total_credit += to_decimal(credit)
        return total_debit, total_credit

    async def get_account_nets(self, tenant_id: str) -> dict[str | None, Decimal]:
        """계정별 순액 (차변 - 대변), 키는 계정 qb_id (미해결은 None)"""
        rows = await self.db.fetchall(
            f"SELECT gl.account_qb_id, gl.account_id, gl.debit, gl.credit {_ACTIVE_LINES_SQL}",
            (tenant_id,),
        )
        nets: dict[str | None, Decimal] = {}
        for account_qb_id, account_id, debit, credit in rows:
            key = account_qb_id if account_id is not None else None
            nets[key] = nets.get(key, ZERO) + to_decimal(debit) - to_decimal(credit)
        return nets

    async def count_unresolved_lines(self, tenant_id: str) -> int:
        """계정 NULL로 전기된 유효 라인 수"""
        row = await self.db.fetchone(
            f"SELECT COUNT(*) {_ACTIVE_LINES_SQL} AND gl.account_id IS NULL",
            (tenant_id,),
        )
        return row[0] if row else 0

    async def count_unresolved_party_lines(self, tenant_id: str) -> int:
        """고객/공급자 참조를 찾지 못한 유효 라인 수"""
        row = await self.db.fetchone(
            f"""
            SELECT COUNT(*) {_ACTIVE_LINES_SQL}
            AND ((gl.customer_qb_id IS NOT NULL AND gl.customer_id IS NULL)
                 OR (gl.vendor_qb_id IS NOT NULL AND gl.vendor_id IS NULL))
            """,
            (tenant_id,),
        )
        return row[0] if row else 0
