"""
Reconcile 핸들러

시산표 대사 후 항상 incremental을 실행하여 누락 변경분을 보정한다.
incremental은 오케스트레이터를 통해 자체 락(tenant, "incremental")으로 실행되며
락 충돌은 중첩 결과로만 보고된다.
"""

import logging
from typing import Any, Awaitable, Callable

from adapters.quickbooks.rest_client import QuickBooksRestClient
from core.ledger.normalizer import GLNormalizer
from core.storage.mirror_store import MirrorStore
from core.types import Connection, SyncAction
from engine.handlers.base import SyncHandler
from engine.reconciler.trial_balance import TrialBalanceReconciler
from engine.results import ReconcileResult

logger = logging.getLogger(__name__)

# async def runner(tenant_id) -> RunOutcome 와 같은 형태 (to_dict 지원)
IncrementalRunner = Callable[[str], Awaitable[Any]]


class ReconcileHandler(SyncHandler):
    """대사 + 후속 incremental

    Args:
        reconciler: 시산표 대사기
        incremental_runner: 오케스트레이터가 주입 (set_incremental_runner)
    """

    def __init__(
        self,
        client: QuickBooksRestClient,
        mirror: MirrorStore,
        normalizer: GLNormalizer,
        reconciler: TrialBalanceReconciler,
    ):
        super().__init__(client, mirror, normalizer)
        self.reconciler = reconciler
        self.incremental_runner: IncrementalRunner | None = None

    @property
    def action(self) -> str:
        return SyncAction.RECONCILE.value

    async def execute(
        self,
        connection: Connection,
        entity_type: str | None = None,
    ) -> ReconcileResult:
        result = await self.reconciler.reconcile(connection)

        if self.incremental_runner is None:
            logger.warning("incremental runner 미설정, 후속 동기화 생략")
            result.errors.append("incremental: runner not configured")
            return result

        outcome = await self.incremental_runner(connection.tenant_id)
        result.incremental = outcome.to_dict()

        logger.info(
            "Reconcile 완료",
            extra={
                "tenant_id": connection.tenant_id,
                "is_balanced": result.is_balanced,
                "total_diff": str(result.total_diff) if result.total_diff is not None else None,
                "incremental_status": result.incremental.get("status"),
            },
        )
        return result
