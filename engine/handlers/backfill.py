"""
Backfill 핸들러

전체 재동기화. 재실행 가능(upsert + GL 재구성).

순서:
1. 회사 정보
2. 참조 엔티티 (Account → Item → Customer → Vendor → Class → Department)
3. 조회 테이블 구성
4. 거래 타입별 전체 조회 → upsert → GL 재구성
"""

import logging

from adapters.quickbooks.models import parse_company_info
from core.types import TXN_TYPES, Connection, MirrorEntity, SyncAction
from engine.errors import ENTITY_ERRORS
from engine.handlers.base import SyncHandler
from engine.results import SyncResult

logger = logging.getLogger(__name__)


class BackfillHandler(SyncHandler):
    """전체 재동기화 핸들러"""

    @property
    def action(self) -> str:
        return SyncAction.BACKFILL.value

    async def execute(
        self,
        connection: Connection,
        entity_type: str | None = None,
    ) -> SyncResult:
        result = SyncResult()
        tenant_id = connection.tenant_id

        logger.info("Backfill 시작", extra={"tenant_id": tenant_id})

        try:
            company = await self.client.get_company_info(connection)
            if company:
                await self.mirror.upsert_company_info(
                    tenant_id, parse_company_info(connection.realm_id, company)
                )
                result.add("CompanyInfo", 1)
        except ENTITY_ERRORS as e:
            logger.warning("회사 정보 동기화 실패", extra={"tenant_id": tenant_id, "error": str(e)})
            result.fail("CompanyInfo", e)

        for entity in MirrorEntity:
            try:
                raws = await self.client.query_all(connection, entity.value)
                count = await self.mirror.upsert_entities(
                    tenant_id, connection.realm_id, entity, raws, errors=result.errors
                )
                result.add(entity.value, count)
            except ENTITY_ERRORS as e:
                logger.warning(
                    "참조 엔티티 동기화 실패",
                    extra={"tenant_id": tenant_id, "entity": entity.value, "error": str(e)},
                )
                result.fail(entity.value, e)

        lookups = await self.mirror.build_lookups(tenant_id)

        for txn_type in TXN_TYPES:
            try:
                raws = await self.client.query_all(connection, txn_type)
                await self.store_transactions(connection, txn_type, raws, lookups, result)
            except ENTITY_ERRORS as e:
                logger.warning(
                    "거래 동기화 실패",
                    extra={"tenant_id": tenant_id, "entity": txn_type, "error": str(e)},
                )
                result.fail(txn_type, e)

        logger.info(
            "Backfill 완료",
            extra={
                "tenant_id": tenant_id,
                "synced": result.synced,
                "gl_rebuilt": result.gl_rebuilt,
                "errors": len(result.errors),
            },
        )
        return result
