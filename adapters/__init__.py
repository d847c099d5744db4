"""
어댑터 레이어

외부 서비스(QuickBooks, DB, 알림 등)와의 연동을 담당.
Protocol 기반 인터페이스로 Mock 교체 가능.
"""

from adapters.interfaces import (
    INotifier,
    IQuickBooksClient,
)
from adapters.models import (
    AccountRow,
    BankActivityRow,
    CompanyInfoRow,
    ItemRow,
    NamedRow,
    PartyRow,
    TransactionRow,
)

__all__ = [
    # Interfaces
    "IQuickBooksClient",
    "INotifier",
    # Models
    "CompanyInfoRow",
    "AccountRow",
    "PartyRow",
    "ItemRow",
    "NamedRow",
    "TransactionRow",
    "BankActivityRow",
]
