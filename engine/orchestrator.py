"""
Sync Orchestrator

SyncAction을 해당 핸들러로 라우팅하고 실행 수명주기를 관리.

상태 흐름: idle → locked → running → (succeeded | partial | failed) → unlocked

- (tenant_id, action) 락을 획득하지 못하면 conflict 결과 반환 (로그 없음)
- 실행 결과와 무관하게 sync_logs 1행 기록 후 락 해제 (finally)
- ConfigurationError는 기록/해제 후 재발생
"""

import logging
import time

from adapters.quickbooks.errors import ReauthorizationRequired
from core.config.loader import ConfigurationError
from core.storage.connection_store import ConnectionStore
from core.storage.lock_store import LockStore
from core.storage.sync_log_store import SyncLogEntry, SyncLogStore
from core.types import ConnectionStatus, RunStatus, SyncAction
from core.utils.timezone import now_utc
from engine.handlers.base import SyncHandler
from engine.handlers.entity import validate_entity_type
from engine.handlers.reconcile import ReconcileHandler
from engine.results import RunOutcome

logger = logging.getLogger(__name__)

ALL_ENTITIES = "ALL"


class SyncOrchestrator:
    """동기화 오케스트레이터

    Args:
        connections: 테넌트 연결 저장소
        locks: 동기화 락 저장소
        sync_logs: 동기화 로그 저장소
        handlers: 등록할 핸들러 목록
    """

    def __init__(
        self,
        connections: ConnectionStore,
        locks: LockStore,
        sync_logs: SyncLogStore,
        handlers: list[SyncHandler] | None = None,
    ):
        self.connections = connections
        self.locks = locks
        self.sync_logs = sync_logs
        self._handlers: dict[str, SyncHandler] = {}

        for handler in handlers or []:
            self.register_handler(handler)

    def register_handler(self, handler: SyncHandler) -> None:
        """핸들러 등록

        ReconcileHandler에는 후속 incremental 실행 함수를 주입한다.
        """
        self._handlers[handler.action] = handler
        if isinstance(handler, ReconcileHandler):
            handler.incremental_runner = self.incremental
        logger.debug(f"Handler registered: {handler.action}")

    @property
    def supported_actions(self) -> list[str]:
        return list(self._handlers.keys())

    async def run(
        self,
        tenant_id: str,
        action: SyncAction | str,
        entity_type: str | None = None,
    ) -> RunOutcome:
        """동기화 실행

        Args:
            tenant_id: 테넌트 ID
            action: SyncAction 또는 그 값
            entity_type: sync_entity 대상 거래 타입

        Returns:
            RunOutcome (conflict 포함)

        Raises:
            ValueError: 알 수 없는 action, 지원하지 않는 entity_type
            ConfigurationError: 설정/암호화 오류 (로그 기록 후 재발생)
        """
        action = SyncAction(action)
        if action == SyncAction.SYNC_ENTITY:
            entity_type = validate_entity_type(entity_type)

        handler = self._handlers.get(action.value)
        if handler is None:
            raise ValueError(f"No handler for action: {action.value}")

        log_entity = entity_type if action == SyncAction.SYNC_ENTITY else ALL_ENTITIES

        handle = await self.locks.acquire(tenant_id, action.value)
        if handle is None:
            logger.warning(
                "동기화 락 충돌, 실행 생략",
                extra={"tenant_id": tenant_id, "action": action.value},
            )
            return RunOutcome(
                tenant_id=tenant_id,
                action=action.value,
                status=RunStatus.CONFLICT,
                entity_type=log_entity,
                errors=[f"{action.value} already running for tenant {tenant_id}"],
            )

        started_at = now_utc()
        started = time.monotonic()
        outcome = RunOutcome(
            tenant_id=tenant_id,
            action=action.value,
            status=RunStatus.FAILED,
            entity_type=log_entity,
        )
        trial_balance_diff = None

        logger.info(
            "동기화 시작",
            extra={"tenant_id": tenant_id, "action": action.value, "entity_type": log_entity},
        )

        try:
            connection = await self.connections.get(tenant_id)
            if connection.status == ConnectionStatus.REAUTH_REQUIRED:
                # 재인증 전까지 토큰 엔드포인트/QBO 호출 없이 실패 처리
                raise ReauthorizationRequired(tenant_id, "연결이 재인증 필요 상태")
            result = await handler.execute(connection, entity_type)

            outcome.synced = result.synced
            outcome.errors = list(result.errors)
            outcome.result = result.to_dict()
            outcome.status = RunStatus.PARTIAL if result.errors else RunStatus.SUCCEEDED
            trial_balance_diff = getattr(result, "total_diff", None)

        except ConfigurationError as e:
            outcome.errors.append(f"{type(e).__name__}: {e}")
            logger.error(
                "설정 오류로 동기화 중단",
                extra={"tenant_id": tenant_id, "action": action.value, "error": str(e)},
            )
            raise

        except Exception as e:
            outcome.errors.append(f"{type(e).__name__}: {e}")
            logger.error(
                "동기화 실패",
                extra={"tenant_id": tenant_id, "action": action.value, "error": str(e)},
                exc_info=True,
            )

        finally:
            outcome.duration_ms = int((time.monotonic() - started) * 1000)
            try:
                outcome.log_id = await self.sync_logs.record(
                    SyncLogEntry(
                        tenant_id=tenant_id,
                        entity_type=log_entity,
                        action=action.value,
                        status=outcome.status.value,
                        started_at=started_at,
                        synced_count=outcome.synced,
                        errors=outcome.errors,
                        duration_ms=outcome.duration_ms,
                        trial_balance_diff=trial_balance_diff,
                    )
                )
            finally:
                await self.locks.release(handle)

        logger.info(
            "동기화 종료",
            extra={
                "tenant_id": tenant_id,
                "action": action.value,
                "status": outcome.status.value,
                "synced": outcome.synced,
                "errors": len(outcome.errors),
                "duration_ms": outcome.duration_ms,
            },
        )
        return outcome

    # -------------------------------------------------------------------------
    # 편의 메서드
    # -------------------------------------------------------------------------

    async def backfill(self, tenant_id: str) -> RunOutcome:
        return await self.run(tenant_id, SyncAction.BACKFILL)

    async def incremental(self, tenant_id: str) -> RunOutcome:
        return await self.run(tenant_id, SyncAction.INCREMENTAL)

    async def reconcile(self, tenant_id: str) -> RunOutcome:
        return await self.run(tenant_id, SyncAction.RECONCILE)

    async def sync_entity(self, tenant_id: str, entity_type: str) -> RunOutcome:
        return await self.run(tenant_id, SyncAction.SYNC_ENTITY, entity_type)

    async def sync_bank_activity(self, tenant_id: str) -> RunOutcome:
        return await self.run(tenant_id, SyncAction.BANK_ACTIVITY)
