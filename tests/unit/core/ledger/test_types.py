"""GL 타입 테스트"""

from decimal import Decimal

from core.ledger.types import GLLine, GLTransaction, JournalSide, LookupTables


class TestGLLine:
    """GLLine 속성"""

    def test_debit_line(self) -> None:
        line = GLLine(account_id=1, debit=Decimal("10.50"), credit=Decimal("0"))

        assert line.side == JournalSide.DEBIT
        assert line.amount == Decimal("10.50")
        assert line.is_unresolved is False

    def test_credit_line(self) -> None:
        line = GLLine(account_id=None, debit=Decimal("0"), credit=Decimal("3"))

        assert line.side == JournalSide.CREDIT
        assert line.amount == Decimal("3")
        assert line.is_unresolved is True


class TestGLTransaction:
    """GLTransaction 합계"""

    def make(self, *lines: GLLine) -> GLTransaction:
        return GLTransaction(
            qb_transaction_id=1,
            entity_type="JournalEntry",
            txn_date="2024-01-01",
            currency="USD",
            memo=None,
            lines=list(lines),
        )

    def test_empty_is_balanced(self) -> None:
        gl_txn = self.make()

        assert gl_txn.total_debit == Decimal("0")
        assert gl_txn.is_balanced()

    def test_exact_balance(self) -> None:
        """0.1 + 0.2 == 0.3 (Decimal 정확 비교)"""
        gl_txn = self.make(
            GLLine(account_id=1, debit=Decimal("0.1"), credit=Decimal("0")),
            GLLine(account_id=1, debit=Decimal("0.2"), credit=Decimal("0")),
            GLLine(account_id=2, debit=Decimal("0"), credit=Decimal("0.3")),
        )

        assert gl_txn.is_balanced()
        assert gl_txn.unresolved_count == 0

    def test_unbalanced_by_a_cent(self) -> None:
        gl_txn = self.make(
            GLLine(account_id=None, debit=Decimal("100.00"), credit=Decimal("0")),
            GLLine(account_id=2, debit=Decimal("0"), credit=Decimal("99.99")),
        )

        assert not gl_txn.is_balanced()
        assert gl_txn.unresolved_count == 1


class TestLookupTables:
    def test_defaults_are_independent(self) -> None:
        first = LookupTables()
        second = LookupTables()
        first.accounts["1"] = 10

        assert second.accounts == {}
