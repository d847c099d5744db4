"""금액 유틸리티 테스트"""

from decimal import Decimal

import pytest

from core.utils.money import decimal_to_str, quantize_cents, to_decimal


class TestToDecimal:
    """QBO 값 → Decimal"""

    @pytest.mark.parametrize("value,expected", [
        (169.5, Decimal("169.5")),
        (0.1, Decimal("0.1")),
        ("1,234.56", Decimal("1234.56")),
        (42, Decimal("42")),
        (Decimal("7.01"), Decimal("7.01")),
    ])
    def test_conversion(self, value: object, expected: Decimal) -> None:
        assert to_decimal(value) == expected

    def test_float_has_no_binary_error(self) -> None:
        assert to_decimal(0.1) + to_decimal(0.2) == Decimal("0.3")

    @pytest.mark.parametrize("value", [None, "", "abc"])
    def test_default(self, value: object) -> None:
        assert to_decimal(value) == Decimal("0")
        assert to_decimal(value, default=Decimal("-1")) == Decimal("-1")


class TestFormatting:
    def test_decimal_to_str(self) -> None:
        assert decimal_to_str(Decimal("1.10")) == "1.10"
        assert decimal_to_str(None) is None

    def test_quantize_cents(self) -> None:
        assert quantize_cents(Decimal("0.015")) == Decimal("0.02")
        assert quantize_cents(Decimal("5")) == Decimal("5.00")
