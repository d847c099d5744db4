"""
미러 행 모델

QBO 응답을 로컬 미러 테이블에 저장하기 위한 표준 모델.
모든 금액은 Decimal, 원본 payload는 raw로 그대로 보관.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass
class CompanyInfoRow:
    """회사 정보"""

    realm_id: str
    company_name: str | None
    legal_name: str | None
    country: str | None
    fiscal_year_start_month: str | None
    raw: dict[str, Any] = field(repr=False)


@dataclass
class AccountRow:
    """계정과목"""

    qb_id: str
    sync_token: str | None
    name: str | None
    fully_qualified_name: str | None
    account_type: str | None
    account_sub_type: str | None
    classification: str | None
    current_balance: Decimal
    is_active: bool
    raw: dict[str, Any] = field(repr=False)


@dataclass
class PartyRow:
    """고객 / 거래처 공통"""

    qb_id: str
    sync_token: str | None
    display_name: str | None
    company_name: str | None
    email: str | None
    balance: Decimal
    is_active: bool
    raw: dict[str, Any] = field(repr=False)


@dataclass
class ItemRow:
    """품목 (상품/서비스)"""

    qb_id: str
    sync_token: str | None
    name: str | None
    item_type: str | None
    unit_price: Decimal | None
    description: str | None
    income_account_qb_id: str | None
    expense_account_qb_id: str | None
    is_active: bool
    raw: dict[str, Any] = field(repr=False)


@dataclass
class NamedRow:
    """클래스 / 부서 (이름 계층만 가진 엔티티)"""

    qb_id: str
    sync_token: str | None
    name: str | None
    fully_qualified_name: str | None
    is_active: bool
    raw: dict[str, Any] = field(repr=False)


@dataclass
class TransactionRow:
    """거래 (Invoice, Bill, Payment, JournalEntry 등)"""

    qb_id: str
    entity_type: str
    sync_token: str | None
    txn_date: str | None
    doc_number: str | None
    total_amt: Decimal | None
    balance: Decimal | None
    customer_qb_id: str | None
    vendor_qb_id: str | None
    is_voided: bool
    raw: dict[str, Any] = field(repr=False)


@dataclass
class BankActivityRow:
    """은행 계정 활동 요약"""

    account_qb_id: str
    account_name: str | None
    current_balance: Decimal
    reconciled_count: int = 0
    unreconciled_count: int = 0
    unreconciled_amount: Decimal = Decimal("0")
