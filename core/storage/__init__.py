"""
스토리지 모듈

연결, 미러, 락, 동기화 로그, 에스컬레이션 저장소
"""

from core.storage.connection_store import ConnectionNotFoundError, ConnectionStore
from core.storage.escalation_store import EscalationStore, HumanTask, TrialBalanceCheck
from core.storage.lock_store import LockHandle, LockStore
from core.storage.mirror_store import MirrorStore
from core.storage.sync_log_store import SyncLogEntry, SyncLogStore

__all__ = [
    "ConnectionNotFoundError",
    "ConnectionStore",
    "EscalationStore",
    "HumanTask",
    "TrialBalanceCheck",
    "LockHandle",
    "LockStore",
    "MirrorStore",
    "SyncLogEntry",
    "SyncLogStore",
]
