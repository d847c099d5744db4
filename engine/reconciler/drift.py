"""
Account Drift Detector

외부 시산표의 계정별 잔액과 내부 GL 계정별 순액 비교
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from core.constants import ReconcileThresholds
from core.utils.money import ZERO

logger = logging.getLogger(__name__)


@dataclass
class AccountDrift:
    """계정별 불일치"""
    account_qb_id: str
    account_name: str | None
    qb_amount: Decimal
    erp_amount: Decimal

    @property
    def diff(self) -> Decimal:
        return self.qb_amount - self.erp_amount

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_qb_id": self.account_qb_id,
            "account_name": self.account_name,
            "qb": str(self.qb_amount),
            "erp": str(self.erp_amount),
            "diff": str(self.diff),
        }


def exceeds_tolerance(diff: Decimal, tolerance: Decimal = ReconcileThresholds.TOLERANCE) -> bool:
    """허용 오차 초과 여부 (같으면 일치로 본다)"""
    return abs(diff) > tolerance


def detect_account_drift(
    qb_accounts: dict[str, Decimal],
    erp_accounts: dict[str | None, Decimal],
    names: dict[str, str] | None = None,
    tolerance: Decimal = ReconcileThresholds.TOLERANCE,
) -> list[AccountDrift]:
    """계정별 불일치 감지

    계정이 해석되지 않은 GL 라인(None 키)은 비교에서 제외한다.
    unresolved_line_count로 따로 보고된다.

    Returns:
        차이 절대값 내림차순 AccountDrift 목록
    """
    names = names or {}
    keys = set(qb_accounts) | {key for key in erp_accounts if key is not None}

    drifts = []
    for qb_id in keys:
        drift = AccountDrift(
            account_qb_id=qb_id,
            account_name=names.get(qb_id),
            qb_amount=qb_accounts.get(qb_id, ZERO),
            erp_amount=erp_accounts.get(qb_id, ZERO),
        )
        if exceeds_tolerance(drift.diff, tolerance):
            drifts.append(drift)

    drifts.sort(key=lambda d: (-abs(d.diff), d.account_qb_id))
    if drifts:
        logger.info("계정별 불일치 감지", extra={"count": len(drifts)})
    return drifts
