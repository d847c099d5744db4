"""
단일 거래 타입 재동기화 핸들러
"""

import logging

from core.types import TXN_TYPES, Connection, SyncAction
from engine.handlers.base import SyncHandler
from engine.results import SyncResult

logger = logging.getLogger(__name__)


def validate_entity_type(entity_type: str | None) -> str:
    """sync_entity 대상 검증

    Raises:
        ValueError: TXN_TYPES에 없는 타입
    """
    if entity_type not in TXN_TYPES:
        raise ValueError(
            f"Unsupported entity type: {entity_type!r} (expected one of {', '.join(TXN_TYPES)})"
        )
    return entity_type


class EntitySyncHandler(SyncHandler):
    """한 거래 타입 전체 조회 → upsert → GL 재구성

    엔티티 하나만 다루므로 실패는 그대로 전파하여 실행 전체를 실패로 기록한다.
    """

    @property
    def action(self) -> str:
        return SyncAction.SYNC_ENTITY.value

    async def execute(
        self,
        connection: Connection,
        entity_type: str | None = None,
    ) -> SyncResult:
        entity_type = validate_entity_type(entity_type)
        result = SyncResult()

        lookups = await self.mirror.build_lookups(connection.tenant_id)
        raws = await self.client.query_all(connection, entity_type)
        await self.store_transactions(connection, entity_type, raws, lookups, result)

        logger.info(
            "단일 엔티티 동기화 완료",
            extra={
                "tenant_id": connection.tenant_id,
                "entity_type": entity_type,
                "synced": result.synced,
                "errors": len(result.errors),
            },
        )
        return result
