"""
Engine Bootstrap

설정 로드, 의존성 주입, CLI 진입점.

구성 순서:
1. Settings (secrets.yaml)
2. SQLite 연결 + 스키마
3. TokenVault → ConnectionStore → TokenManager → QuickBooksRestClient
4. 저장소 (미러, GL, 락, 로그, 에스컬레이션)
5. 핸들러 등록 → SyncOrchestrator
"""

import argparse
import asyncio
import logging
from typing import Any

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from adapters.interfaces import INotifier, IQuickBooksClient
from adapters.quickbooks.rest_client import QuickBooksRestClient
from adapters.quickbooks.token_manager import TokenManager
from adapters.slack.notifier import SlackNotifier
from core.config.loader import ConfigurationError, get_settings
from core.crypto.token_vault import TokenVault
from core.ledger.normalizer import GLNormalizer
from core.ledger.store import GLStore
from core.logging import setup_logging
from core.storage.connection_store import ConnectionStore
from core.storage.escalation_store import EscalationStore
from core.storage.lock_store import LockStore
from core.storage.mirror_store import MirrorStore
from core.storage.sync_log_store import SyncLogStore
from core.types import RunStatus, SyncAction
from engine.handlers import (
    BackfillHandler,
    BankActivityHandler,
    EntitySyncHandler,
    IncrementalHandler,
    ReconcileHandler,
)
from engine.orchestrator import SyncOrchestrator
from engine.reconciler.trial_balance import TrialBalanceReconciler

logger = logging.getLogger("engine")

# CLI 종료 코드
EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFLICT = 2


def build_orchestrator(
    db: SQLiteAdapter,
    client: IQuickBooksClient,
    connections: ConnectionStore,
    notifier: INotifier | None = None,
) -> SyncOrchestrator:
    """저장소/핸들러를 묶어 오케스트레이터 생성

    테스트에서는 MockQuickBooksClient / MockNotifier를 주입한다.
    """
    mirror = MirrorStore(db)
    gl_store = GLStore(db)
    normalizer = GLNormalizer(gl_store)
    sync_logs = SyncLogStore(db)

    reconciler = TrialBalanceReconciler(
        client=client,
        mirror=mirror,
        gl_store=gl_store,
        escalations=EscalationStore(db),
        notifier=notifier,
    )

    return SyncOrchestrator(
        connections=connections,
        locks=LockStore(db),
        sync_logs=sync_logs,
        handlers=[
            BackfillHandler(client, mirror, normalizer),
            IncrementalHandler(client, mirror, normalizer, sync_logs),
            EntitySyncHandler(client, mirror, normalizer),
            BankActivityHandler(client, mirror, normalizer),
            ReconcileHandler(client, mirror, normalizer, reconciler),
        ],
    )


class SyncEngine:
    """동기화 엔진

    TokenManager / QBO 클라이언트 / 알림은 프로세스당 하나만 만든다.
    토큰 갱신 single-flight 레지스트리가 TokenManager 인스턴스 단위이기 때문.
    요청마다 DB 연결을 따로 여는 Web은 orchestrator_for()로 오케스트레이터를 만든다.

    Args:
        settings: 설정 객체
        db: SQLite 어댑터 (토큰 저장용, 엔진 수명 동안 유지)
    """

    def __init__(self, settings: Any, db: SQLiteAdapter):
        self.settings = settings
        self.db = db

        # 토큰 암호화 키 누락/길이 부족이면 CryptoError (치명적)
        self.vault = TokenVault(settings.token_encryption_key)
        self.connections = ConnectionStore(db, self.vault)

        qb_config = settings.quickbooks_config
        self.token_manager = TokenManager(
            token_url=qb_config.token_url,
            client_id=qb_config.client_id,
            client_secret=qb_config.client_secret,
            connections=self.connections,
        )
        self.client = QuickBooksRestClient(
            base_url=qb_config.api_url,
            token_manager=self.token_manager,
        )
        self.notifier = self._create_notifier()

        self.orchestrator = build_orchestrator(
            db, self.client, self.connections, self.notifier
        )

    def orchestrator_for(self, db: SQLiteAdapter) -> SyncOrchestrator:
        """다른 DB 연결을 쓰는 오케스트레이터 (토큰 관리자/클라이언트는 공유)"""
        if db is self.db:
            return self.orchestrator
        return build_orchestrator(
            db, self.client, ConnectionStore(db, self.vault), self.notifier
        )

    def _create_notifier(self) -> SlackNotifier | None:
        """Slack 알림 생성 (webhook 미설정이면 None)"""
        webhook_url = self.settings.slack_webhook_url
        if not webhook_url:
            logger.info("Slack webhook 미설정, 알림 비활성화")
            return None
        return SlackNotifier(webhook_url=webhook_url)

    async def close(self) -> None:
        """HTTP 클라이언트 정리"""
        await self.client.close()
        await self.token_manager.close()
        if self.notifier is not None:
            await self.notifier.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="engine",
        description="QuickBooks 미러 동기화 / GL 정규화 / 시산표 대사",
    )
    parser.add_argument(
        "action",
        choices=[action.value for action in SyncAction],
        help="실행할 동작",
    )
    parser.add_argument("--tenant", required=True, help="테넌트 ID")
    parser.add_argument(
        "--entity-type",
        default=None,
        help="sync_entity 대상 거래 타입 (예: Invoice)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="콘솔 로그 레벨",
    )
    return parser


def exit_code_for(status: RunStatus) -> int:
    """실행 결과 → 종료 코드 (partial은 성공으로 본다)"""
    if status == RunStatus.CONFLICT:
        return EXIT_CONFLICT
    if status == RunStatus.FAILED:
        return EXIT_FAILED
    return EXIT_OK


async def run_once(action: str, tenant_id: str, entity_type: str | None = None) -> int:
    """동기화 1회 실행

    Returns:
        CLI 종료 코드
    """
    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error(f"설정 로드 실패: {e}")
        return EXIT_FAILED

    logger.info(f"Environment: {settings.environment.value}")
    logger.info(f"DB: {settings.db_path}")

    async with SQLiteAdapter(settings.db_path) as db:
        await init_schema(db)

        engine = SyncEngine(settings, db)
        try:
            outcome = await engine.orchestrator.run(tenant_id, action, entity_type)
        finally:
            await engine.close()

    logger.info(
        f"{outcome.action} {outcome.status.value}: "
        f"synced={outcome.synced} errors={len(outcome.errors)} duration_ms={outcome.duration_ms}"
    )
    for error in outcome.errors:
        logger.warning(f"  {error}")

    return exit_code_for(outcome.status)


def main(argv: list[str] | None = None) -> int:
    """CLI 메인 함수"""
    args = build_parser().parse_args(argv)
    setup_logging("engine", console_level=getattr(logging, args.log_level))

    try:
        return asyncio.run(run_once(args.action, args.tenant, args.entity_type))
    except ValueError as e:
        logger.error(str(e))
        return EXIT_FAILED
    except ConfigurationError as e:
        logger.error(f"설정 오류: {e}")
        return EXIT_FAILED
    except KeyboardInterrupt:
        logger.info("Ctrl+C 감지")
        return EXIT_FAILED
