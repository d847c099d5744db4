"""
core/types.py 테스트

모든 Enum이 문자열 직렬화 가능하고, Connection이 토큰을 노출하지 않는지 확인
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.types import (
    TXN_TYPES,
    Connection,
    ConnectionStatus,
    Environment,
    EscalationSeverity,
    MirrorEntity,
    RunStatus,
    SyncAction,
)


class TestEnums:
    """str Enum 직렬화"""

    @pytest.mark.parametrize("enum_cls", [
        Environment, SyncAction, RunStatus, ConnectionStatus, MirrorEntity, EscalationSeverity,
    ])
    def test_values_are_strings(self, enum_cls: type) -> None:
        for member in enum_cls:
            assert isinstance(member.value, str)
            assert member == member.value

    def test_sync_actions(self) -> None:
        assert {a.value for a in SyncAction} == {
            "backfill", "incremental", "reconcile", "sync_entity", "bank_activity",
        }

    def test_invalid_action(self) -> None:
        with pytest.raises(ValueError):
            SyncAction("full_resync")

    def test_mirror_entity_names_match_qbo(self) -> None:
        assert MirrorEntity.ACCOUNT.value == "Account"
        assert MirrorEntity.DEPARTMENT.value == "Department"


class TestTxnTypes:
    def test_fixed_order(self) -> None:
        assert TXN_TYPES[0] == "Invoice"
        assert TXN_TYPES[-1] == "SalesReceipt"
        assert len(TXN_TYPES) == 11
        assert len(set(TXN_TYPES)) == 11


class TestConnection:
    """Connection 테스트"""

    def make(self, expires_at: datetime) -> Connection:
        return Connection(
            tenant_id="T1",
            realm_id="123",
            access_token="super-secret-access",
            refresh_token="super-secret-refresh",
            expires_at=expires_at,
        )

    def test_repr_hides_tokens(self) -> None:
        text = repr(self.make(datetime.now(timezone.utc)))

        assert "super-secret" not in text
        assert "T1" in text

    def test_seconds_until_expiry(self) -> None:
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        connection = self.make(now + timedelta(minutes=10))

        assert connection.seconds_until_expiry(now) == 600
        assert connection.status == ConnectionStatus.CONNECTED
