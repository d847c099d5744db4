"""
core/constants.py 테스트

모든 경로가 pathlib.Path 타입이고, 상수가 정상적으로 접근 가능한지 확인
"""

from decimal import Decimal
from pathlib import Path

from core.constants import (
    PROJECT_ROOT,
    Paths,
    QuickBooksEndpoints,
    ReconcileThresholds,
    SyncLimits,
)


class TestProjectRoot:
    """PROJECT_ROOT 테스트"""

    def test_project_root_is_absolute(self) -> None:
        assert isinstance(PROJECT_ROOT, Path)
        assert PROJECT_ROOT.is_absolute()

    def test_project_root_contains_core_directory(self) -> None:
        assert (PROJECT_ROOT / "core").is_dir()


class TestPaths:
    """Paths 테스트"""

    def test_all_paths_are_path_type(self) -> None:
        for value in (Paths.CONFIG_DIR, Paths.DATA_DIR, Paths.LOGS_DIR, Paths.SECRETS_FILE, Paths.DEFAULT_DB):
            assert isinstance(value, Path)

    def test_paths_under_project_root(self) -> None:
        assert Paths.SECRETS_FILE.parent == Paths.CONFIG_DIR
        assert Paths.DEFAULT_DB.parent == Paths.DATA_DIR


class TestQuickBooksEndpoints:
    def test_https(self) -> None:
        for url in (
            QuickBooksEndpoints.PROD_API_URL,
            QuickBooksEndpoints.SANDBOX_API_URL,
            QuickBooksEndpoints.TOKEN_URL,
        ):
            assert url.startswith("https://")

    def test_sandbox_differs_from_production(self) -> None:
        assert QuickBooksEndpoints.PROD_API_URL != QuickBooksEndpoints.SANDBOX_API_URL


class TestLimits:
    def test_retry_policy(self) -> None:
        assert SyncLimits.MAX_RETRIES == 3
        assert SyncLimits.BACKOFF_BASE_MS == 1000
        assert SyncLimits.BACKOFF_CAP_MS == 10000
        assert SyncLimits.REQUEST_TIMEOUT_SEC == 15.0

    def test_page_size(self) -> None:
        assert SyncLimits.QUERY_PAGE_SIZE == 1000

    def test_tolerance(self) -> None:
        assert ReconcileThresholds.TOLERANCE == Decimal("0.01")
