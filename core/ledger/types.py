"""
GL(총계정원장) 타입 정의

거래 계열(TransactionFamily) 분류, 분개 방향, GL 라인/거래 데이터 구조.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


class TransactionFamily(str, Enum):
    """거래 계열 (닫힌 집합)

    엔티티 타입 문자열을 직접 분기하지 않고 계열로 먼저 분류한 뒤
    계열별 전기(posting) 규칙을 적용한다.
    """

    JOURNAL = "JOURNAL"                      # 수동 분개 (라인별 Debit/Credit 명시)
    REVENUE = "REVENUE"                      # 매출 문서 → 대변
    PAYABLE = "PAYABLE"                      # 매입 문서 → 차변
    CUSTOMER_PAYMENT = "CUSTOMER_PAYMENT"    # 고객 입금 → 차변
    CREDIT_MEMO = "CREDIT_MEMO"              # 대변표 → 차변
    OTHER = "OTHER"                          # 미분류 → 차변 (Fallback)


class JournalSide(str, Enum):
    """분개 방향 (차변/대변)"""

    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


# 엔티티 타입 → 거래 계열
FAMILY_BY_ENTITY: dict[str, TransactionFamily] = {
    "JournalEntry": TransactionFamily.JOURNAL,
    "Invoice": TransactionFamily.REVENUE,
    "SalesReceipt": TransactionFamily.REVENUE,
    "Estimate": TransactionFamily.REVENUE,
    "Bill": TransactionFamily.PAYABLE,
    "VendorCredit": TransactionFamily.PAYABLE,
    "Payment": TransactionFamily.CUSTOMER_PAYMENT,
    "CreditMemo": TransactionFamily.CREDIT_MEMO,
}


def family_for(entity_type: str) -> TransactionFamily:
    """엔티티 타입의 거래 계열 (미등록 타입은 OTHER)"""
    return FAMILY_BY_ENTITY.get(entity_type, TransactionFamily.OTHER)


# 라인 상세 객체 키 (계정 참조 탐색 순서)
LINE_DETAIL_KEYS: tuple[str, ...] = (
    "SalesItemLineDetail",
    "ItemBasedExpenseLineDetail",
    "AccountBasedExpenseLineDetail",
    "DepositLineDetail",
)

SUBTOTAL_DETAIL_TYPE = "SubTotalLineDetail"


@dataclass
class LookupTables:
    """QBO id → 로컬 id 조회 테이블

    GL 정규화 전에 미러 테이블에서 구성한다.
    item_accounts: 품목 qb_id → (수익 계정 qb_id, 비용 계정 qb_id)
    """

    accounts: dict[str, int] = field(default_factory=dict)
    customers: dict[str, int] = field(default_factory=dict)
    vendors: dict[str, int] = field(default_factory=dict)
    item_accounts: dict[str, tuple[str | None, str | None]] = field(default_factory=dict)


@dataclass
class GLLine:
    """GL 라인

    debit/credit 중 정확히 하나만 0이 아니다.
    account_id가 None이면 조회 실패(미해결) 라인.
    """

    account_id: int | None
    debit: Decimal
    credit: Decimal
    customer_id: int | None = None
    vendor_id: int | None = None
    description: str = ""
    account_qb_id: str | None = None
    customer_qb_id: str | None = None
    vendor_qb_id: str | None = None

    @property
    def side(self) -> JournalSide:
        return JournalSide.DEBIT if self.debit > 0 else JournalSide.CREDIT

    @property
    def amount(self) -> Decimal:
        return self.debit if self.debit > 0 else self.credit

    @property
    def is_unresolved(self) -> bool:
        return self.account_id is None

    @property
    def has_unresolved_party(self) -> bool:
        """고객/공급자 참조가 있으나 미러에서 찾지 못한 라인"""
        return (self.customer_qb_id is not None and self.customer_id is None) or (
            self.vendor_qb_id is not None and self.vendor_id is None
        )


@dataclass
class GLTransaction:
    """GL 거래 (거래 미러 1건당 1건)"""

    qb_transaction_id: int
    entity_type: str
    txn_date: str | None
    currency: str
    memo: str | None
    lines: list[GLLine] = field(default_factory=list)
    source: str = "quickbooks"

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    def is_balanced(self) -> bool:
        """차변 합계 == 대변 합계 (정확히 일치)"""
        return self.total_debit == self.total_credit

    @property
    def unresolved_count(self) -> int:
        return sum(1 for line in self.lines if line.is_unresolved)

    @property
    def unresolved_party_count(self) -> int:
        return sum(1 for line in self.lines if line.has_unresolved_party)
