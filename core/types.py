"""
타입 정의 모듈

Enum, Dataclass 등 핵심 타입 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum


class Environment(str, Enum):
    """QuickBooks 환경 (실운영 / 샌드박스)"""

    PRODUCTION = "production"
    SANDBOX = "sandbox"


class SyncAction(str, Enum):
    """오케스트레이터 동작"""

    BACKFILL = "backfill"
    INCREMENTAL = "incremental"
    RECONCILE = "reconcile"
    SYNC_ENTITY = "sync_entity"
    BANK_ACTIVITY = "bank_activity"


class RunStatus(str, Enum):
    """동기화 실행 결과 상태"""

    SUCCEEDED = "succeeded"
    PARTIAL = "partial"      # 일부 엔티티 실패
    FAILED = "failed"
    CONFLICT = "conflict"


class ConnectionStatus(str, Enum):
    """QuickBooks 연결 상태"""

    CONNECTED = "connected"
    REAUTH_REQUIRED = "reauth_required"


class MirrorEntity(str, Enum):
    """참조 엔티티 (거래 이전에 동기화되는 마스터 데이터)

    값은 QBO query 언어의 엔티티 이름과 동일
    """

    ACCOUNT = "Account"
    ITEM = "Item"
    CUSTOMER = "Customer"
    VENDOR = "Vendor"
    CLASS = "Class"
    DEPARTMENT = "Department"


# 동기화 대상 거래 타입 (고정 순서)
TXN_TYPES: tuple[str, ...] = (
    "Invoice",
    "Bill",
    "Payment",
    "CreditMemo",
    "JournalEntry",
    "Estimate",
    "PurchaseOrder",
    "Deposit",
    "Transfer",
    "VendorCredit",
    "SalesReceipt",
)


class EscalationSeverity(str, Enum):
    """human_tasks 심각도"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class Connection:
    """테넌트-QuickBooks 연결 (복호화된 인메모리 표현)

    토큰 갱신 시 TokenManager만 변경한다.
    DB에는 암호화된 형태로만 저장된다.
    """

    tenant_id: str
    realm_id: str
    access_token: str
    refresh_token: str | None
    expires_at: datetime
    status: ConnectionStatus = ConnectionStatus.CONNECTED

    def seconds_until_expiry(self, now: datetime | None = None) -> float:
        """만료까지 남은 시간 (초, 음수면 이미 만료)"""
        now = now or datetime.now(timezone.utc)
        return (self.expires_at - now).total_seconds()

    def __repr__(self) -> str:
        # 토큰 값은 repr/로그에 노출하지 않음
        return (
            f"Connection(tenant_id={self.tenant_id!r}, realm_id={self.realm_id!r}, "
            f"expires_at={self.expires_at.isoformat()}, status={self.status.value})"
        )
