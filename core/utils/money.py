"""
금액 유틸리티

모든 금액은 Decimal로 다루고 DB에는 TEXT로 저장한다.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
CENT = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    """QBO 응답 값(숫자/문자열/None)을 Decimal로 변환

    float는 str()을 거쳐 이진 오차 없이 변환한다.
    빈 문자열이나 변환 불가 값은 default 반환.
    """
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).replace(",", ""))
    except (InvalidOperation, ValueError):
        return default


def decimal_to_str(value: Decimal | None) -> str | None:
    """DB 저장용 문자열 (None 유지)"""
    if value is None:
        return None
    return str(value)


def quantize_cents(value: Decimal) -> Decimal:
    """센트 단위 반올림 (표시/비교용)"""
    return value.quantize(CENT)
