"""
GL 정규화기

QBO 거래 원본(raw JSON) 1건을 균형 잡힌 GL 라인 집합으로 변환.

규칙:
- 기존 GL 거래는 삭제 후 재생성 (증분 패치 없음)
- Line이 없는 거래는 GL 없음
- SubTotalLineDetail 라인과 0원 라인은 건너뜀
- 전기 방향은 거래 계열(TransactionFamily)별 규칙으로 결정
- 계정/고객/거래처 조회 실패 시 NULL 참조로 전기 (대사 단계에서 집계)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

from core.constants import Defaults
from core.ledger.types import (
    LINE_DETAIL_KEYS,
    SUBTOTAL_DETAIL_TYPE,
    GLLine,
    GLTransaction,
    JournalSide,
    LookupTables,
    TransactionFamily,
    family_for,
)
from core.utils.money import ZERO, to_decimal

if TYPE_CHECKING:
    from core.ledger.store import GLStore

logger = logging.getLogger(__name__)


def ref_value(ref: Any) -> str | None:
    """QBO 참조 객체({"value": "42", "name": ...})에서 id 추출"""
    if isinstance(ref, dict):
        value = ref.get("value")
        return str(value) if value not in (None, "") else None
    return None


# -------------------------------------------------------------------------
# 전기 규칙 (계열별)
# -------------------------------------------------------------------------

@dataclass(frozen=True)
class PostingRule:
    """거래 계열별 전기 규칙

    side_for: 라인 → 전기 방향 (None이면 라인 제외)
    use_customer / use_vendor: 거래 수준 고객/거래처 참조를 라인에 싣는지 여부
    """

    side_for: Callable[[dict[str, Any]], JournalSide | None]
    use_customer: bool
    use_vendor: bool


def _always(side: JournalSide) -> Callable[[dict[str, Any]], JournalSide]:
    return lambda line: side


def _journal_side(line: dict[str, Any]) -> JournalSide | None:
    detail = line.get("JournalEntryLineDetail")
    if not detail:
        # 상세가 없는 분개 라인은 Fallback과 동일하게 차변
        return JournalSide.DEBIT
    posting_type = detail.get("PostingType")
    if posting_type == "Debit":
        return JournalSide.DEBIT
    if posting_type == "Credit":
        return JournalSide.CREDIT
    return None


POSTING_RULES: dict[TransactionFamily, PostingRule] = {
    TransactionFamily.JOURNAL: PostingRule(_journal_side, use_customer=True, use_vendor=True),
    TransactionFamily.REVENUE: PostingRule(_always(JournalSide.CREDIT), use_customer=True, use_vendor=False),
    TransactionFamily.PAYABLE: PostingRule(_always(JournalSide.DEBIT), use_customer=False, use_vendor=True),
    TransactionFamily.CUSTOMER_PAYMENT: PostingRule(_always(JournalSide.DEBIT), use_customer=True, use_vendor=False),
    TransactionFamily.CREDIT_MEMO: PostingRule(_always(JournalSide.DEBIT), use_customer=True, use_vendor=False),
    TransactionFamily.OTHER: PostingRule(_always(JournalSide.DEBIT), use_customer=True, use_vendor=True),
}

_missing_rules = set(TransactionFamily) - set(POSTING_RULES)
if _missing_rules:
    raise RuntimeError(f"전기 규칙 누락: {sorted(f.value for f in _missing_rules)}")


# -------------------------------------------------------------------------
# 참조 해석
# -------------------------------------------------------------------------

def resolve_account_qb_id(line: dict[str, Any], lookups: LookupTables) -> str | None:
    """라인의 계정 qb_id 해석

    1. JournalEntryLineDetail.AccountRef
    2. 라인 상세의 AccountRef / ExpenseAccountRef / ItemAccountRef
    3. ItemRef가 있으면 품목의 수익(매출 라인) 또는 비용 계정
    """
    je_detail = line.get("JournalEntryLineDetail")
    if je_detail:
        return ref_value(je_detail.get("AccountRef"))

    for key in LINE_DETAIL_KEYS:
        detail = line.get(key)
        if not detail:
            continue

        for ref_key in ("AccountRef", "ExpenseAccountRef", "ItemAccountRef"):
            account_qb_id = ref_value(detail.get(ref_key))
            if account_qb_id:
                return account_qb_id

        item_qb_id = ref_value(detail.get("ItemRef"))
        if item_qb_id and item_qb_id in lookups.item_accounts:
            income_qb_id, expense_qb_id = lookups.item_accounts[item_qb_id]
            if key == "SalesItemLineDetail":
                return income_qb_id
            return expense_qb_id or income_qb_id
        return None

    return None


def _journal_entity(line: dict[str, Any]) -> tuple[str | None, str | None]:
    """분개 라인의 Entity 참조 (고객 qb_id, 거래처 qb_id)"""
    detail = line.get("JournalEntryLineDetail") or {}
    entity = detail.get("Entity") or {}
    entity_ref = ref_value(entity.get("EntityRef"))
    entity_type = entity.get("Type")
    if entity_type == "Customer":
        return entity_ref, None
    if entity_type == "Vendor":
        return None, entity_ref
    return None, None


def _resolve_party(
    kind: str,
    party_qb_id: str | None,
    table: dict[str, int],
    entity_type: str,
    raw: dict[str, Any],
) -> int | None:
    """고객/공급자 qb_id → 로컬 id (미러에 없으면 경고 후 None)"""
    if not party_qb_id:
        return None
    local_id = table.get(party_qb_id)
    if local_id is None:
        logger.warning(
            f"{kind} 조회 실패, NULL 참조로 전기",
            extra={
                "entity_type": entity_type,
                "qb_id": raw.get("Id"),
                f"{kind.lower()}_qb_id": party_qb_id,
            },
        )
    return local_id


def build_gl_transaction(
    qb_transaction_id: int,
    entity_type: str,
    raw: dict[str, Any],
    lookups: LookupTables,
) -> GLTransaction | None:
    """거래 원본 → GL 거래 (순수 함수, DB 접근 없음)

    Returns:
        Line이 없으면 None. 전기 가능한 라인이 없어도 GL 거래 껍데기는 반환.
    """
    raw_lines = raw.get("Line") or []
    if not raw_lines:
        return None

    family = family_for(entity_type)
    rule = POSTING_RULES[family]

    customer_qb_id = ref_value(raw.get("CustomerRef"))
    vendor_qb_id = ref_value(raw.get("VendorRef"))

    gl_txn = GLTransaction(
        qb_transaction_id=qb_transaction_id,
        entity_type=entity_type,
        txn_date=raw.get("TxnDate") or None,
        currency=ref_value(raw.get("CurrencyRef")) or Defaults.CURRENCY,
        memo=raw.get("PrivateNote") or None,
    )

    for line in raw_lines:
        if line.get("DetailType") == SUBTOTAL_DETAIL_TYPE:
            continue

        amount = to_decimal(line.get("Amount"))
        if amount == ZERO:
            continue

        side = rule.side_for(line)
        if side is None:
            logger.warning(
                "PostingType 해석 불가, 라인 제외",
                extra={
                    "entity_type": entity_type,
                    "qb_id": raw.get("Id"),
                    "line_id": line.get("Id"),
                },
            )
            continue

        line_customer_qb_id = customer_qb_id if rule.use_customer else None
        line_vendor_qb_id = vendor_qb_id if rule.use_vendor else None
        if family == TransactionFamily.JOURNAL:
            je_customer, je_vendor = _journal_entity(line)
            line_customer_qb_id = je_customer or line_customer_qb_id
            line_vendor_qb_id = je_vendor or line_vendor_qb_id

        account_qb_id = resolve_account_qb_id(line, lookups)
        account_id = lookups.accounts.get(account_qb_id) if account_qb_id else None
        if account_id is None:
            logger.warning(
                "계정 조회 실패, NULL 계정으로 전기",
                extra={
                    "entity_type": entity_type,
                    "qb_id": raw.get("Id"),
                    "account_qb_id": account_qb_id,
                },
            )

        # 음수 금액은 반대 방향 양수로 기록
        if amount < ZERO:
            amount = -amount
            side = JournalSide.CREDIT if side == JournalSide.DEBIT else JournalSide.DEBIT

        gl_txn.lines.append(GLLine(
            account_id=account_id,
            account_qb_id=account_qb_id,
            debit=amount if side == JournalSide.DEBIT else Decimal("0"),
            credit=amount if side == JournalSide.CREDIT else Decimal("0"),
            customer_id=_resolve_party("Customer", line_customer_qb_id, lookups.customers, entity_type, raw),
            vendor_id=_resolve_party("Vendor", line_vendor_qb_id, lookups.vendors, entity_type, raw),
            description=str(line.get("Description") or ""),
            customer_qb_id=line_customer_qb_id,
            vendor_qb_id=line_vendor_qb_id,
        ))

    if family == TransactionFamily.JOURNAL and not gl_txn.is_balanced():
        logger.warning(
            "분개 불균형",
            extra={
                "qb_id": raw.get("Id"),
                "total_debit": str(gl_txn.total_debit),
                "total_credit": str(gl_txn.total_credit),
            },
        )

    return gl_txn


class GLNormalizer:
    """거래 미러 → GL 재구성

    Args:
        store: GLStore (삭제 후 재삽입 담당)
    """

    def __init__(self, store: GLStore):
        self.store = store

    async def normalize(
        self,
        tenant_id: str,
        qb_transaction_id: int,
        entity_type: str,
        raw: dict[str, Any],
        lookups: LookupTables,
    ) -> int:
        """GL 재구성

        Returns:
            생성된 GL 라인 수
        """
        gl_txn = build_gl_transaction(qb_transaction_id, entity_type, raw, lookups)
        return await self.store.replace_transaction(tenant_id, qb_transaction_id, gl_txn)
