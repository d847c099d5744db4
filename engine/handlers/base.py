"""
동기화 핸들러 기본 클래스

모든 SyncAction 핸들러가 구현해야 할 인터페이스와
거래 저장 + GL 재구성 공통 루틴.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from adapters.quickbooks.rest_client import QuickBooksRestClient
from core.ledger.normalizer import GLNormalizer
from core.ledger.types import LookupTables
from core.storage.mirror_store import MirrorStore
from core.types import Connection
from engine.results import ReconcileResult, SyncResult

logger = logging.getLogger(__name__)


class SyncHandler(ABC):
    """동기화 핸들러 추상 클래스

    각 SyncAction별로 이 클래스를 상속하여 구현.
    핸들러는 엔티티 단위 실패를 result.errors에 모으고 계속 진행한다.
    오케스트레이터 수준 실패(설정 오류, 재인증 필요)는 예외로 전파한다.
    """

    def __init__(
        self,
        client: QuickBooksRestClient,
        mirror: MirrorStore,
        normalizer: GLNormalizer,
    ):
        self.client = client
        self.mirror = mirror
        self.normalizer = normalizer

    @abstractmethod
    async def execute(
        self,
        connection: Connection,
        entity_type: str | None = None,
    ) -> SyncResult | ReconcileResult:
        """동기화 실행

        Args:
            connection: 복호화된 테넌트 연결
            entity_type: sync_entity 대상 타입 (그 외 무시)
        """
        pass

    @property
    @abstractmethod
    def action(self) -> str:
        """처리하는 SyncAction 값"""
        pass

    async def store_transactions(
        self,
        connection: Connection,
        entity_type: str,
        raws: list[dict[str, Any]],
        lookups: LookupTables,
        result: SyncResult,
    ) -> int:
        """거래 upsert 후 각 거래의 GL 재구성

        Returns:
            저장된 거래 수
        """
        tenant_id = connection.tenant_id
        count = await self.mirror.upsert_transactions(
            tenant_id,
            connection.realm_id,
            entity_type,
            raws,
            lookups=lookups,
            errors=result.errors,
        )
        result.add(entity_type, count)
        if not raws:
            return count

        ids = await self.mirror.get_transaction_ids(
            tenant_id,
            entity_type,
            [str(raw["Id"]) for raw in raws if raw.get("Id") is not None],
        )
        for raw in raws:
            qb_transaction_id = ids.get(str(raw.get("Id")))
            if qb_transaction_id is None:
                # upsert 실패 배치에 속한 거래
                continue
            await self.normalizer.normalize(
                tenant_id, qb_transaction_id, entity_type, raw, lookups
            )
            result.gl_rebuilt += 1

        logger.debug(
            "거래 저장 및 GL 재구성",
            extra={
                "tenant_id": tenant_id,
                "entity_type": entity_type,
                "count": count,
            },
        )
        return count

