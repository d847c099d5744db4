"""
MirrorStore - QBO 미러 저장소

참조 엔티티(계정/고객/거래처/품목/클래스/부서)와 거래를
(tenant_id, qb_id[, entity_type]) 키로 배치 upsert.

- 배치 크기: 100
- 배치 단위 트랜잭션. 실패한 배치는 롤백 후 로그/에러 목록에 기록하고 다음 배치 진행
- 원본 JSON은 raw_json에 그대로 보관 (GL 재구성용)
- 삭제는 is_deleted 플래그로만 표현 (hard delete 없음)
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Iterable

import aiosqlite

from adapters.db.sqlite_adapter import SQLiteAdapter
from adapters.models import BankActivityRow, CompanyInfoRow, TransactionRow
from adapters.quickbooks.models import (
    parse_account,
    parse_item,
    parse_named,
    parse_party,
    parse_transaction,
)
from core.constants import SyncLimits
from core.ledger.types import LookupTables
from core.types import MirrorEntity
from core.utils.money import ZERO, decimal_to_str, to_decimal
from core.utils.timezone import now_utc, to_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _EntityTable:
    """참조 엔티티 테이블 정의"""

    table: str
    columns: tuple[str, ...]
    to_values: Callable[[dict[str, Any]], tuple[str, str | None, tuple[Any, ...], bool]]


def _account_values(raw: dict[str, Any]) -> tuple[str, str | None, tuple[Any, ...], bool]:
    row = parse_account(raw)
    return row.qb_id, row.sync_token, (
        row.name,
        row.fully_qualified_name,
        row.account_type,
        row.account_sub_type,
        row.classification,
        decimal_to_str(row.current_balance),
    ), row.is_active


def _party_values(raw: dict[str, Any]) -> tuple[str, str | None, tuple[Any, ...], bool]:
    row = parse_party(raw)
    return row.qb_id, row.sync_token, (
        row.display_name,
        row.company_name,
        row.email,
        decimal_to_str(row.balance),
    ), row.is_active


def _item_values(raw: dict[str, Any]) -> tuple[str, str | None, tuple[Any, ...], bool]:
    row = parse_item(raw)
    return row.qb_id, row.sync_token, (
        row.name,
        row.item_type,
        decimal_to_str(row.unit_price),
        row.description,
        row.income_account_qb_id,
        row.expense_account_qb_id,
    ), row.is_active


def _named_values(raw: dict[str, Any]) -> tuple[str, str | None, tuple[Any, ...], bool]:
    row = parse_named(raw)
    return row.qb_id, row.sync_token, (row.name, row.fully_qualified_name), row.is_active


_PARTY_COLUMNS = ("display_name", "company_name", "email", "balance")
_NAMED_COLUMNS = ("name", "fully_qualified_name")

ENTITY_TABLES: dict[MirrorEntity, _EntityTable] = {
    MirrorEntity.ACCOUNT: _EntityTable(
        "qb_accounts",
        ("name", "fully_qualified_name", "account_type", "account_sub_type",
         "classification", "current_balance"),
        _account_values,
    ),
    MirrorEntity.CUSTOMER: _EntityTable("qb_customers", _PARTY_COLUMNS, _party_values),
    MirrorEntity.VENDOR: _EntityTable("qb_vendors", _PARTY_COLUMNS, _party_values),
    MirrorEntity.ITEM: _EntityTable(
        "qb_items",
        ("name", "item_type", "unit_price", "description",
         "income_account_qb_id", "expense_account_qb_id"),
        _item_values,
    ),
    MirrorEntity.CLASS: _EntityTable("qb_classes", _NAMED_COLUMNS, _named_values),
    MirrorEntity.DEPARTMENT: _EntityTable("qb_departments", _NAMED_COLUMNS, _named_values),
}


def _upsert_sql(table: str, columns: tuple[str, ...], conflict: tuple[str, ...]) -> str:
    placeholders = ", ".join("?" for _ in columns)
    updates = ", ".join(
        f"{col} = excluded.{col}" for col in columns if col not in conflict
    )
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders}) "
        f"ON CONFLICT({', '.join(conflict)}) DO UPDATE SET {updates}"
    )


_TRANSACTION_COLUMNS = (
    "tenant_id", "realm_id", "qb_id", "entity_type", "sync_token",
    "txn_date", "doc_number", "total_amt", "balance",
    "customer_qb_id", "vendor_qb_id", "customer_id", "vendor_id",
    "is_voided", "is_deleted", "raw_json", "last_synced_at",
)

# 무효화는 되돌릴 수 없으므로 기존 플래그 유지
_TRANSACTION_UPSERT_SQL = _upsert_sql(
    "qb_transactions", _TRANSACTION_COLUMNS, ("tenant_id", "qb_id", "entity_type"),
).replace(
    "is_voided = excluded.is_voided",
    "is_voided = MAX(qb_transactions.is_voided, excluded.is_voided)",
)


class MirrorStore:
    """QBO 미러 저장소

    Args:
        db: SQLiteAdapter 인스턴스
        batch_size: upsert 배치 크기
    """

    def __init__(self, db: SQLiteAdapter, batch_size: int = SyncLimits.UPSERT_BATCH_SIZE):
        self.db = db
        self.batch_size = batch_size

    async def _execute_batched(
        self,
        label: str,
        sql: str,
        params: list[tuple[Any, ...]],
        errors: list[str] | None,
    ) -> int:
        """배치 단위 실행 (실패 배치는 건너뜀)

        Returns:
            성공한 행 수
        """
        written = 0
        for start in range(0, len(params), self.batch_size):
            batch = params[start:start + self.batch_size]
            try:
                async with self.db.transaction():
                    await self.db.executemany(sql, batch)
                written += len(batch)
            except aiosqlite.Error as e:
                batch_no = start // self.batch_size + 1
                logger.error(
                    "미러 upsert 배치 실패",
                    extra={"label": label, "batch": batch_no, "size": len(batch), "error": str(e)},
                )
                if errors is not None:
                    errors.append(f"{label}: batch {batch_no} failed: {e}")
        return written

    # -------------------------------------------------------------------------
    # 참조 엔티티
    # -------------------------------------------------------------------------

    async def upsert_company_info(self, tenant_id: str, row: CompanyInfoRow) -> None:
        async with self.db.transaction():
            await self.db.execute(
                _upsert_sql(
                    "qb_company_info",
                    ("tenant_id", "realm_id", "company_name", "legal_name", "country",
                     "fiscal_year_start_month", "raw_json", "last_synced_at"),
                    ("tenant_id", "realm_id"),
                ),
                (
                    tenant_id,
                    row.realm_id,
                    row.company_name,
                    row.legal_name,
                    row.country,
                    row.fiscal_year_start_month,
                    json.dumps(row.raw, ensure_ascii=False),
                    to_iso(now_utc()),
                ),
            )

    async def upsert_entities(
        self,
        tenant_id: str,
        realm_id: str,
        entity: MirrorEntity,
        raws: Iterable[dict[str, Any]],
        errors: list[str] | None = None,
    ) -> int:
        """참조 엔티티 배치 upsert

        Returns:
            저장된 행 수
        """
        definition = ENTITY_TABLES[entity]
        columns = (
            "tenant_id", "realm_id", "qb_id", "sync_token", *definition.columns,
            "is_active", "is_deleted", "raw_json", "last_synced_at",
        )
        synced_at = to_iso(now_utc())

        params: list[tuple[Any, ...]] = []
        for raw in raws:
            try:
                qb_id, sync_token, values, is_active = definition.to_values(raw)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(
                    "엔티티 변환 실패, 건너뜀",
                    extra={"entity": entity.value, "qb_id": raw.get("Id"), "error": str(e)},
                )
                if errors is not None:
                    errors.append(f"{entity.value} {raw.get('Id')}: {e}")
                continue
            params.append((
                tenant_id, realm_id, qb_id, sync_token, *values,
                1 if is_active else 0, 0,
                json.dumps(raw, ensure_ascii=False), synced_at,
            ))

        return await self._execute_batched(
            entity.value,
            _upsert_sql(definition.table, columns, ("tenant_id", "qb_id")),
            params,
            errors,
        )

    async def upsert_accounts(self, tenant_id: str, realm_id: str, raws: list[dict[str, Any]], errors: list[str] | None = None) -> int:
        return await self.upsert_entities(tenant_id, realm_id, MirrorEntity.ACCOUNT, raws, errors)

    async def upsert_customers(self, tenant_id: str, realm_id: str, raws: list[dict[str, Any]], errors: list[str] | None = None) -> int:
        return await self.upsert_entities(tenant_id, realm_id, MirrorEntity.CUSTOMER, raws, errors)

    async def upsert_vendors(self, tenant_id: str, realm_id: str, raws: list[dict[str, Any]], errors: list[str] | None = None) -> int:
        return await self.upsert_entities(tenant_id, realm_id, MirrorEntity.VENDOR, raws, errors)

    async def upsert_items(self, tenant_id: str, realm_id: str, raws: list[dict[str, Any]], errors: list[str] | None = None) -> int:
        return await self.upsert_entities(tenant_id, realm_id, MirrorEntity.ITEM, raws, errors)

    async def upsert_classes(self, tenant_id: str, realm_id: str, raws: list[dict[str, Any]], errors: list[str] | None = None) -> int:
        return await self.upsert_entities(tenant_id, realm_id, MirrorEntity.CLASS, raws, errors)

    async def upsert_departments(self, tenant_id: str, realm_id: str, raws: list[dict[str, Any]], errors: list[str] | None = None) -> int:
        return await self.upsert_entities(tenant_id, realm_id, MirrorEntity.DEPARTMENT, raws, errors)

    async def mark_entity_deleted(self, tenant_id: str, entity: MirrorEntity, qb_id: str) -> bool:
        """참조 엔티티 삭제 플래그 (CDC)

        Returns:
            대상 행이 존재했는지 여부
        """
        table = ENTITY_TABLES[entity].table
        async with self.db.transaction():
            cursor = await self.db.execute(
                f"UPDATE {table} SET is_deleted = 1, last_synced_at = ? WHERE tenant_id = ? AND qb_id = ?",
                (to_iso(now_utc()), tenant_id, qb_id),
            )
        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # 거래
    # -------------------------------------------------------------------------

    async def upsert_transactions(
        self,
        tenant_id: str,
        realm_id: str,
        entity_type: str,
        raws: Iterable[dict[str, Any]],
        lookups: LookupTables | None = None,
        errors: list[str] | None = None,
    ) -> int:
        """거래 배치 upsert

        Args:
            lookups: 고객/거래처 로컬 id 해석용 (None이면 NULL)

        Returns:
            저장된 행 수
        """
        synced_at = to_iso(now_utc())
        params: list[tuple[Any, ...]] = []

        for raw in raws:
            try:
                row = parse_transaction(entity_type, raw)
            except (KeyError, TypeError, ValueError) as e:
                if errors is not None:
                    errors.append(f"{entity_type} {raw.get('Id')}: {e}")
                continue
            params.append(self._transaction_params(tenant_id, realm_id, row, lookups, synced_at))

        return await self._execute_batched(entity_type, _TRANSACTION_UPSERT_SQL, params, errors)

    @staticmethod
    def _transaction_params(
        tenant_id: str,
        realm_id: str,
        row: TransactionRow,
        lookups: LookupTables | None,
        synced_at: str,
    ) -> tuple[Any, ...]:
        customer_id = None
        vendor_id = None
        if lookups is not None:
            if row.customer_qb_id:
                customer_id = lookups.customers.get(row.customer_qb_id)
            if row.vendor_qb_id:
                vendor_id = lookups.vendors.get(row.vendor_qb_id)

        return (
            tenant_id,
            realm_id,
            row.qb_id,
            row.entity_type,
            row.sync_token,
            row.txn_date,
            row.doc_number,
            decimal_to_str(row.total_amt),
            decimal_to_str(row.balance),
            row.customer_qb_id,
            row.vendor_qb_id,
            customer_id,
            vendor_id,
            1 if row.is_voided else 0,
            0,
            json.dumps(row.raw, ensure_ascii=False),
            synced_at,
        )

    async def get_transaction_ids(
        self,
        tenant_id: str,
        entity_type: str,
        qb_ids: list[str] | None = None,
    ) -> dict[str, int]:
        """qb_id → qb_transactions.id (qb_ids가 None이면 해당 타입 전체)"""
        rows = await self._select_by_qb_ids(
            "SELECT qb_id, id FROM qb_transactions WHERE tenant_id = ? AND entity_type = ?",
            (tenant_id, entity_type),
            qb_ids,
        )
        return {row[0]: row[1] for row in rows}

    async def get_sync_tokens(
        self,
        tenant_id: str,
        entity_type: str,
        qb_ids: list[str],
    ) -> dict[str, str | None]:
        """저장된 SyncToken 조회 (변경 없는 거래 건너뛰기용)"""
        rows = await self._select_by_qb_ids(
            "SELECT qb_id, sync_token FROM qb_transactions WHERE tenant_id = ? AND entity_type = ?",
            (tenant_id, entity_type),
            qb_ids,
        )
        return {row[0]: row[1] for row in rows}

    async def _select_by_qb_ids(
        self,
        base_sql: str,
        base_params: tuple[Any, ...],
        qb_ids: list[str] | None,
    ) -> list[tuple[Any, ...]]:
        if qb_ids is None:
            return await self.db.fetchall(base_sql, base_params)

        rows: list[tuple[Any, ...]] = []
        # SQLite 변수 개수 제한 대비 분할 조회
        for start in range(0, len(qb_ids), 500):
            chunk = qb_ids[start:start + 500]
            placeholders = ", ".join("?" for _ in chunk)
            rows.extend(await self.db.fetchall(
                f"{base_sql} AND qb_id IN ({placeholders})",
                (*base_params, *chunk),
            ))
        return rows

    async def mark_transaction_flags(
        self,
        tenant_id: str,
        entity_type: str,
        qb_id: str,
        deleted: bool = False,
        voided: bool = False,
    ) -> bool:
        """거래 삭제/무효 플래그 설정 (CDC)

        Returns:
            대상 행이 존재했는지 여부
        """
        assignments = []
        if deleted:
            assignments.append("is_deleted = 1")
        if voided:
            assignments.append("is_voided = 1")
        if not assignments:
            return False

        async with self.db.transaction():
            cursor = await self.db.execute(
                f"""
                UPDATE qb_transactions SET {', '.join(assignments)}, last_synced_at = ?
                WHERE tenant_id = ? AND entity_type = ? AND qb_id = ?
                """,
                (to_iso(now_utc()), tenant_id, entity_type, qb_id),
            )
        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # 조회 테이블 / 보조 원장
    # -------------------------------------------------------------------------

    async def build_lookups(self, tenant_id: str) -> LookupTables:
        """GL 정규화용 qb_id → 로컬 id 조회 테이블"""
        lookups = LookupTables()

        for qb_id, local_id in await self.db.fetchall(
            "SELECT qb_id, id FROM qb_accounts WHERE tenant_id = ?", (tenant_id,)
        ):
            lookups.accounts[qb_id] = local_id

        for qb_id, local_id in await self.db.fetchall(
            "SELECT qb_id, id FROM qb_customers WHERE tenant_id = ?", (tenant_id,)
        ):
            lookups.customers[qb_id] = local_id

        for qb_id, local_id in await self.db.fetchall(
            "SELECT qb_id, id FROM qb_vendors WHERE tenant_id = ?", (tenant_id,)
        ):
            lookups.vendors[qb_id] = local_id

        for qb_id, income_qb_id, expense_qb_id in await self.db.fetchall(
            "SELECT qb_id, income_account_qb_id, expense_account_qb_id FROM qb_items WHERE tenant_id = ?",
            (tenant_id,),
        ):
            lookups.item_accounts[qb_id] = (income_qb_id, expense_qb_id)

        logger.debug(
            "조회 테이블 구성",
            extra={
                "tenant_id": tenant_id,
                "accounts": len(lookups.accounts),
                "customers": len(lookups.customers),
                "vendors": len(lookups.vendors),
                "items": len(lookups.item_accounts),
            },
        )
        return lookups

    async def get_open_balance(
        self,
        tenant_id: str,
        positive_types: tuple[str, ...],
        negative_types: tuple[str, ...] = (),
    ) -> Decimal:
        """미결 잔액 합계 (positive_types 합 - negative_types 합)

        예: AR = Invoice - CreditMemo, AP = Bill - VendorCredit
        """
        entity_types = (*positive_types, *negative_types)
        placeholders = ", ".join("?" for _ in entity_types)
        rows = await self.db.fetchall(
            f"""
            SELECT entity_type, balance FROM qb_transactions
            WHERE tenant_id = ? AND entity_type IN ({placeholders})
              AND is_deleted = 0 AND is_voided = 0
            """,
            (tenant_id, *entity_types),
        )
        total = ZERO
        for entity_type, balance in rows:
            amount = to_decimal(balance)
            total += -amount if entity_type in negative_types else amount
        return total

    async def get_accounts(
        self,
        tenant_id: str,
        account_types: tuple[str, ...] | None = None,
    ) -> list[dict[str, Any]]:
        """계정 목록 (삭제 제외)"""
        sql = """
            SELECT id, qb_id, name, account_type, current_balance
            FROM qb_accounts WHERE tenant_id = ? AND is_deleted = 0
        """
        params: tuple[Any, ...] = (tenant_id,)
        if account_types:
            sql += f" AND account_type IN ({', '.join('?' for _ in account_types)})"
            params = (tenant_id, *account_types)

        rows = await self.db.fetchall(sql, params)
        return [
            {
                "id": row[0],
                "qb_id": row[1],
                "name": row[2],
                "account_type": row[3],
                "current_balance": to_decimal(row[4]),
            }
            for row in rows
        ]

    async def upsert_bank_activity(
        self,
        tenant_id: str,
        rows: list[BankActivityRow],
        account_ids: dict[str, int] | None = None,
    ) -> int:
        """은행 계정 활동 요약 upsert"""
        synced_at = to_iso(now_utc())
        account_ids = account_ids or {}
        params = [
            (
                tenant_id,
                row.account_qb_id,
                account_ids.get(row.account_qb_id),
                row.account_name,
                decimal_to_str(row.current_balance),
                row.reconciled_count,
                row.unreconciled_count,
                decimal_to_str(row.unreconciled_amount),
                synced_at,
            )
            for row in rows
        ]
        return await self._execute_batched(
            "BankActivity",
            _upsert_sql(
                "qb_bank_activity",
                ("tenant_id", "account_qb_id", "account_id", "account_name", "current_balance",
                 "reconciled_count", "unreconciled_count", "unreconciled_amount", "last_synced_at"),
                ("tenant_id", "account_qb_id"),
            ),
            params,
            None,
        )
