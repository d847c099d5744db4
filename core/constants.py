"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → ledgersync/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class QuickBooksEndpoints:
    """QuickBooks Online API 엔드포인트 (고정값)

    공식 문서: https://developer.intuit.com/app/developer/qbo/docs/api/accounting/all-entities/account
    """

    PROD_API_URL: str = "https://quickbooks.api.intuit.com"
    SANDBOX_API_URL: str = "https://sandbox-quickbooks.api.intuit.com"

    # OAuth2 토큰 엔드포인트 (환경 공통)
    TOKEN_URL: str = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"

    API_VERSION_PATH: str = "/v3/company"


class Defaults:
    """기본값 상수"""

    ENVIRONMENT: str = "sandbox"
    CURRENCY: str = "USD"

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8000

    LOG_LEVEL: str = "INFO"


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    SECRETS_FILE: Path = CONFIG_DIR / "secrets.yaml"

    # DB 파일
    DEFAULT_DB: Path = DATA_DIR / "ledgersync.db"


class SyncLimits:
    """동기화 한도 / 타이밍 상수"""

    QUERY_PAGE_SIZE: int = 1000     # QBO query MAXRESULTS 상한
    UPSERT_BATCH_SIZE: int = 100

    REQUEST_TIMEOUT_SEC: float = 15.0
    MAX_RETRIES: int = 3
    BACKOFF_BASE_MS: int = 1000
    BACKOFF_CAP_MS: int = 10000

    TOKEN_REFRESH_MARGIN_SEC: int = 300  # 만료 5분 전 선제 갱신
    LOCK_TTL_SEC: int = 600              # 비정상 종료 대비 락 만료
    INCREMENTAL_DEFAULT_LOOKBACK_HOURS: int = 24

    MAX_ERROR_SAMPLES: int = 20
    ERROR_TRUNCATE_CHARS: int = 500


class ReconcileThresholds:
    """시산표 대사 허용 오차"""

    TOLERANCE: Decimal = Decimal("0.01")
