"""
은행 계정 활동 요약 핸들러

계정마다 호출하지 않고 벌크 조회 2회로 처리:
1. AccountType = 'Bank' 계정 페이지 조회 (잔액)
2. TransactionList 리포트 1회 (cleared 상태 컬럼)

리포트의 is_cleared 값이 "R"(Reconciled)이면 대사 완료, 그 외는 미대사.
"""

import logging
from datetime import timedelta
from typing import Any, Iterator

from adapters.models import BankActivityRow
from core.types import Connection, MirrorEntity, SyncAction
from core.utils.money import ZERO, to_decimal
from core.utils.timezone import now_utc, to_qbo_date
from engine.handlers.base import SyncHandler
from engine.results import SyncResult

logger = logging.getLogger(__name__)

BANK_ACCOUNT_FILTER = "AccountType = 'Bank'"
REPORT_NAME = "TransactionList"
REPORT_COLUMNS = "account_name,is_cleared,subt_nat_amount"
RECONCILED_MARKERS = frozenset({"R", "Reconciled"})
REPORT_LOOKBACK_DAYS = 365


def _column_keys(report: dict[str, Any]) -> list[str]:
    """리포트 컬럼 키 목록 (MetaData ColKey, 없으면 ColTitle)"""
    keys = []
    for column in (report.get("Columns") or {}).get("Column") or []:
        key = None
        for meta in column.get("MetaData") or []:
            if meta.get("Name") == "ColKey":
                key = meta.get("Value")
        keys.append(key or str(column.get("ColTitle", "")).lower())
    return keys


def _iter_data_rows(rows: dict[str, Any] | None) -> Iterator[list[dict[str, Any]]]:
    """Section 중첩을 풀어 Data 행의 ColData만 순회"""
    for row in (rows or {}).get("Row") or []:
        if "ColData" in row:
            yield row["ColData"]
        if "Rows" in row:
            yield from _iter_data_rows(row["Rows"])


def summarize_transaction_list(
    report: dict[str, Any],
    bank_accounts: dict[str, BankActivityRow],
) -> None:
    """TransactionList 리포트 → 계정별 대사/미대사 건수 누적

    bank_accounts에 없는 계정(은행 외 계정) 행은 무시.
    """
    keys = _column_keys(report)
    names = {row.account_name: row for row in bank_accounts.values() if row.account_name}

    for col_data in _iter_data_rows(report.get("Rows")):
        cells = dict(zip(keys, col_data))
        account_cell = cells.get("account_name") or cells.get("account") or {}
        target = bank_accounts.get(str(account_cell.get("id"))) or names.get(account_cell.get("value"))
        if target is None:
            continue

        cleared = (cells.get("is_cleared") or {}).get("value") or ""
        if cleared in RECONCILED_MARKERS:
            target.reconciled_count += 1
        else:
            target.unreconciled_count += 1
            amount = (cells.get("subt_nat_amount") or {}).get("value")
            target.unreconciled_amount += to_decimal(amount)


class BankActivityHandler(SyncHandler):
    """은행 계정 잔액 / 대사 현황 갱신"""

    @property
    def action(self) -> str:
        return SyncAction.BANK_ACTIVITY.value

    async def execute(
        self,
        connection: Connection,
        entity_type: str | None = None,
    ) -> SyncResult:
        result = SyncResult()
        tenant_id = connection.tenant_id

        raws = await self.client.query_all(connection, MirrorEntity.ACCOUNT.value, where=BANK_ACCOUNT_FILTER)
        # 계정 잔액도 미러에 반영
        await self.mirror.upsert_accounts(tenant_id, connection.realm_id, raws, errors=result.errors)

        bank_accounts = {
            str(raw["Id"]): BankActivityRow(
                account_qb_id=str(raw["Id"]),
                account_name=raw.get("Name"),
                current_balance=to_decimal(raw.get("CurrentBalance"), default=ZERO),
            )
            for raw in raws
            if raw.get("Id") is not None
        }
        if not bank_accounts:
            logger.info("은행 계정 없음", extra={"tenant_id": tenant_id})
            return result

        today = now_utc()
        report = await self.client.get_report(
            connection,
            REPORT_NAME,
            params={
                "start_date": to_qbo_date(today - timedelta(days=REPORT_LOOKBACK_DAYS)),
                "end_date": to_qbo_date(today),
                "columns": REPORT_COLUMNS,
            },
        )
        summarize_transaction_list(report, bank_accounts)

        account_ids = {
            account["qb_id"]: account["id"]
            for account in await self.mirror.get_accounts(tenant_id, ("Bank",))
        }
        count = await self.mirror.upsert_bank_activity(
            tenant_id, list(bank_accounts.values()), account_ids
        )
        result.add("BankActivity", count)

        logger.info(
            "은행 활동 요약 갱신",
            extra={"tenant_id": tenant_id, "accounts": count},
        )
        return result
