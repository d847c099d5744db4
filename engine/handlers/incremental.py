"""
Incremental 핸들러

마지막 동기화 이후 변경분만 반영.

- since: 최근 성공한 backfill/incremental 로그의 started_at
  (성공 기록이 없으면 최근 partial/failed 로그, 로그가 없으면 now - 24h)
- 조회 조건: MetaData.LastUpdatedTime > 'YYYY-MM-DD'
- SyncToken이 저장값과 같으면 upsert/GL 재구성 생략
- CDC로 삭제/무효 플래그 반영 (실패해도 실행은 계속)
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from adapters.quickbooks.rest_client import QuickBooksRestClient
from core.constants import SyncLimits
from core.ledger.normalizer import GLNormalizer
from core.storage.mirror_store import MirrorStore
from core.storage.sync_log_store import SyncLogStore
from core.types import TXN_TYPES, Connection, MirrorEntity, SyncAction
from core.utils.timezone import now_utc, to_qbo_date
from engine.errors import ENTITY_ERRORS
from engine.handlers.base import SyncHandler
from engine.results import SyncResult

logger = logging.getLogger(__name__)

CDC_DELETED = "Deleted"
CDC_VOIDED = "Voided"

_MIRROR_ENTITY_NAMES = {entity.value: entity for entity in MirrorEntity}


def changed_since_filter(since: datetime) -> str:
    """QBO query WHERE 절 (날짜 단위)"""
    return f"MetaData.LastUpdatedTime > '{to_qbo_date(since)}'"


def _token(value: Any) -> str | None:
    return str(value) if value is not None else None


class IncrementalHandler(SyncHandler):
    """증분 동기화 핸들러

    Args:
        sync_logs: since 기준 시각 조회용
        lookback_hours: 이전 성공 로그가 없을 때 조회 구간
    """

    def __init__(
        self,
        client: QuickBooksRestClient,
        mirror: MirrorStore,
        normalizer: GLNormalizer,
        sync_logs: SyncLogStore,
        lookback_hours: int = SyncLimits.INCREMENTAL_DEFAULT_LOOKBACK_HOURS,
    ):
        super().__init__(client, mirror, normalizer)
        self.sync_logs = sync_logs
        self.lookback = timedelta(hours=lookback_hours)

    @property
    def action(self) -> str:
        return SyncAction.INCREMENTAL.value

    async def resolve_since(self, tenant_id: str) -> datetime:
        last = await self.sync_logs.get_last_sync_time(tenant_id)
        return last or (now_utc() - self.lookback)

    async def execute(
        self,
        connection: Connection,
        entity_type: str | None = None,
    ) -> SyncResult:
        result = SyncResult()
        tenant_id = connection.tenant_id
        since = await self.resolve_since(tenant_id)
        where = changed_since_filter(since)

        logger.info(
            "Incremental 시작",
            extra={"tenant_id": tenant_id, "since": since.isoformat()},
        )

        for entity in MirrorEntity:
            try:
                raws = await self.client.query_all(connection, entity.value, where=where)
                if raws:
                    count = await self.mirror.upsert_entities(
                        tenant_id, connection.realm_id, entity, raws, errors=result.errors
                    )
                    result.add(entity.value, count)
            except ENTITY_ERRORS as e:
                logger.warning(
                    "참조 엔티티 증분 동기화 실패",
                    extra={"tenant_id": tenant_id, "entity": entity.value, "error": str(e)},
                )
                result.fail(entity.value, e)

        lookups = await self.mirror.build_lookups(tenant_id)

        for txn_type in TXN_TYPES:
            try:
                raws = await self.client.query_all(connection, txn_type, where=where)
                changed = await self._filter_changed(tenant_id, txn_type, raws)
                result.skipped += len(raws) - len(changed)
                if changed:
                    await self.store_transactions(connection, txn_type, changed, lookups, result)
            except ENTITY_ERRORS as e:
                logger.warning(
                    "거래 증분 동기화 실패",
                    extra={"tenant_id": tenant_id, "entity": txn_type, "error": str(e)},
                )
                result.fail(txn_type, e)

        try:
            changes = await self.client.get_changes(
                connection,
                [*_MIRROR_ENTITY_NAMES, *TXN_TYPES],
                since,
            )
            result.cdc_flagged += await self.apply_changes(tenant_id, changes)
        except ENTITY_ERRORS as e:
            logger.warning("CDC 조회 실패 (계속 진행)", extra={"tenant_id": tenant_id, "error": str(e)})
            result.fail("CDC", e)

        logger.info(
            "Incremental 완료",
            extra={
                "tenant_id": tenant_id,
                "synced": result.synced,
                "skipped": result.skipped,
                "cdc_flagged": result.cdc_flagged,
                "errors": len(result.errors),
            },
        )
        return result

    async def _filter_changed(
        self,
        tenant_id: str,
        entity_type: str,
        raws: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """저장된 SyncToken과 다른 거래만 반환 (신규 포함)"""
        if not raws:
            return []
        stored = await self.mirror.get_sync_tokens(
            tenant_id,
            entity_type,
            [str(raw["Id"]) for raw in raws if raw.get("Id") is not None],
        )
        changed = []
        for raw in raws:
            qb_id = str(raw.get("Id"))
            if qb_id in stored and _token(stored[qb_id]) == _token(raw.get("SyncToken")):
                continue
            changed.append(raw)
        return changed

    async def apply_changes(
        self,
        tenant_id: str,
        changes: dict[str, list[dict[str, Any]]],
    ) -> int:
        """CDC 결과의 삭제/무효 상태를 플래그로 반영

        Returns:
            플래그가 변경된 행 수
        """
        flagged = 0
        for entity_name, records in changes.items():
            mirror_entity = _MIRROR_ENTITY_NAMES.get(entity_name)
            for record in records:
                status = record.get("status")
                qb_id = record.get("Id")
                if qb_id is None or status not in (CDC_DELETED, CDC_VOIDED):
                    continue

                if entity_name in TXN_TYPES:
                    updated = await self.mirror.mark_transaction_flags(
                        tenant_id,
                        entity_name,
                        str(qb_id),
                        deleted=status == CDC_DELETED,
                        voided=status == CDC_VOIDED,
                    )
                elif mirror_entity is not None and status == CDC_DELETED:
                    updated = await self.mirror.mark_entity_deleted(
                        tenant_id, mirror_entity, str(qb_id)
                    )
                else:
                    continue

                if updated:
                    flagged += 1
                    logger.info(
                        "CDC 플래그 반영",
                        extra={
                            "tenant_id": tenant_id,
                            "entity": entity_name,
                            "qb_id": qb_id,
                            "status": status,
                        },
                    )
        return flagged
