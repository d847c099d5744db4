"""
Reconciler 모듈

외부 시산표 / AR / AP와 내부 GL 비교
"""

from engine.reconciler.drift import AccountDrift, detect_account_drift, exceeds_tolerance
from engine.reconciler.report_parser import (
    TrialBalanceReport,
    parse_report_total,
    parse_trial_balance,
)

__all__ = [
    "AccountDrift",
    "detect_account_drift",
    "exceeds_tolerance",
    "TrialBalanceReport",
    "parse_report_total",
    "parse_trial_balance",
]
