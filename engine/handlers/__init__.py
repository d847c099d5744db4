"""
Sync Handlers

SyncAction별 핸들러 구현
"""

from engine.handlers.backfill import BackfillHandler
from engine.handlers.bank_activity import BankActivityHandler
from engine.handlers.base import SyncHandler
from engine.handlers.entity import EntitySyncHandler, validate_entity_type
from engine.handlers.incremental import IncrementalHandler
from engine.handlers.reconcile import ReconcileHandler

__all__ = [
    "SyncHandler",
    "BackfillHandler",
    "IncrementalHandler",
    "EntitySyncHandler",
    "BankActivityHandler",
    "ReconcileHandler",
    "validate_entity_type",
]
