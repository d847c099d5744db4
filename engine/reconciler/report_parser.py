"""
QBO 리포트 파서

TrialBalance / AgedReceivables / AgedPayables 응답에서 합계와 계정별 금액 추출.

리포트 구조:
    Rows.Row[]
      - Data 행: ColData[] (ColData[0]은 계정 {value: 이름, id: qb_id})
      - Section 행: Header / Rows(중첩) / Summary
      - 최상위 Summary 행: 리포트 합계 (TrialBalance는 ColData[1]=차변, ColData[2]=대변)
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterator

from core.utils.money import ZERO, to_decimal


@dataclass
class TrialBalanceReport:
    """파싱된 시산표

    Attributes:
        total: 합계 행의 차변 - 대변 (균형이면 0)
        accounts: qb_id → (차변 - 대변)
        names: qb_id → 계정 이름
    """

    total: Decimal
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO
    accounts: dict[str, Decimal] = field(default_factory=dict)
    names: dict[str, str] = field(default_factory=dict)


def _cell(col_data: list[dict[str, Any]], index: int) -> dict[str, Any]:
    if index < len(col_data):
        return col_data[index] or {}
    return {}


def _iter_rows(rows: dict[str, Any] | None) -> Iterator[dict[str, Any]]:
    """Section 중첩까지 모든 행 순회"""
    for row in (rows or {}).get("Row") or []:
        yield row
        if "Rows" in row:
            yield from _iter_rows(row["Rows"])


def parse_trial_balance(report: dict[str, Any]) -> TrialBalanceReport:
    """TrialBalance 리포트 파싱

    합계는 최상위 행 중 마지막 Summary를 사용한다.
    계정별 금액은 id가 있는 Data 행에서 계산한다.
    """
    total_debit = ZERO
    total_credit = ZERO

    for row in (report.get("Rows") or {}).get("Row") or []:
        summary = row.get("Summary")
        if not summary:
            continue
        col_data = summary.get("ColData") or []
        if len(col_data) >= 3:
            total_debit = to_decimal(_cell(col_data, 1).get("value"))
            total_credit = to_decimal(_cell(col_data, 2).get("value"))

    parsed = TrialBalanceReport(
        total=total_debit - total_credit,
        total_debit=total_debit,
        total_credit=total_credit,
    )

    for row in _iter_rows(report.get("Rows")):
        col_data = row.get("ColData")
        if not col_data:
            continue
        account = _cell(col_data, 0)
        qb_id = account.get("id")
        if not qb_id:
            continue
        debit = to_decimal(_cell(col_data, 1).get("value"))
        credit = to_decimal(_cell(col_data, 2).get("value"))
        qb_id = str(qb_id)
        parsed.accounts[qb_id] = parsed.accounts.get(qb_id, ZERO) + debit - credit
        parsed.names[qb_id] = account.get("value") or ""

    return parsed


def parse_report_total(report: dict[str, Any]) -> Decimal | None:
    """Aged 리포트 총액 (최상위 마지막 Summary 행의 마지막 컬럼)

    Returns:
        총액 또는 None (Summary 없음)
    """
    total = None
    for row in (report.get("Rows") or {}).get("Row") or []:
        summary = row.get("Summary")
        if not summary:
            continue
        col_data = summary.get("ColData") or []
        if col_data:
            total = to_decimal(_cell(col_data, len(col_data) - 1).get("value"))
    return total
