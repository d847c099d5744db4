"""
유틸리티 패키지

타임존/금액 처리 등 공통 유틸리티
"""

from core.utils.money import ZERO, decimal_to_str, quantize_cents, to_decimal
from core.utils.timezone import (
    ensure_utc,
    now_utc,
    parse_iso,
    to_iso,
    to_qbo_date,
    to_qbo_timestamp,
)

__all__ = [
    "ZERO",
    "decimal_to_str",
    "quantize_cents",
    "to_decimal",
    "ensure_utc",
    "now_utc",
    "parse_iso",
    "to_iso",
    "to_qbo_date",
    "to_qbo_timestamp",
]
