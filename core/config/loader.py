"""
설정 로더

secrets.yaml 로드 및 QuickBooks 연동 설정 생성
"""

from dataclasses import dataclass
from pathlib import Path

import yaml

from core.constants import Paths, QuickBooksEndpoints
from core.types import Environment


class ConfigurationError(Exception):
    """설정 누락/오류 예외

    재시도 대상이 아닌 치명적 오류. 실행을 즉시 중단한다.
    """

    pass


@dataclass(frozen=True)
class Secrets:
    """보안 설정 (secrets.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    environment: Environment
    client_id: str
    client_secret: str
    token_encryption_key: str
    db_path: Path
    slack_webhook_url: str | None = None

    def __repr__(self) -> str:
        return (
            f"Secrets(environment={self.environment.value}, "
            f"client_id={self.client_id[:4]}***, db_path={self.db_path})"
        )


@dataclass(frozen=True)
class QuickBooksConfig:
    """QuickBooks API 연결 설정

    OAuth 클라이언트 정보와 엔드포인트 포함
    """

    api_url: str
    token_url: str
    client_id: str
    client_secret: str


def load_secrets(path: Path | None = None) -> Secrets:
    """secrets.yaml 파일 로드

    예시:
    ```yaml
    quickbooks:
      environment: sandbox
      client_id: "..."
      client_secret: "..."
    token_encryption_key: "32자 이상의 임의 문자열"
    database:
      path: data/ledgersync.db
    slack:
      webhook_url: "https://hooks.slack.com/services/..."
    ```

    Args:
        path: secrets.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Secrets 인스턴스

    Raises:
        ConfigurationError: 파일이 없거나 형식/값이 잘못된 경우
    """
    if path is None:
        path = Paths.SECRETS_FILE

    if not path.exists():
        raise ConfigurationError(f"secrets.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"secrets.yaml 파싱 실패: {e}") from e

    if data is None:
        raise ConfigurationError("secrets.yaml이 비어 있습니다")

    qb_config = data.get("quickbooks")
    if not qb_config:
        raise ConfigurationError("secrets.yaml에 'quickbooks' 섹션이 없습니다")

    env_str = qb_config.get("environment", Environment.SANDBOX.value)
    try:
        environment = Environment(str(env_str).lower())
    except ValueError as e:
        valid = [m.value for m in Environment]
        raise ConfigurationError(
            f"유효하지 않은 environment입니다: '{env_str}'. 유효한 값: {valid}"
        ) from e

    client_id = qb_config.get("client_id")
    client_secret = qb_config.get("client_secret")
    if not client_id:
        raise ConfigurationError("quickbooks 섹션에 'client_id'가 없습니다")
    if not client_secret:
        raise ConfigurationError("quickbooks 섹션에 'client_secret'가 없습니다")

    token_key = data.get("token_encryption_key")
    if not token_key:
        raise ConfigurationError("secrets.yaml에 'token_encryption_key'가 없습니다")

    db_config = data.get("database") or {}
    db_path_value = db_config.get("path")
    if db_path_value:
        db_path = Path(db_path_value)
        if not db_path.is_absolute():
            db_path = Paths.DATA_DIR.parent / db_path
    else:
        db_path = Paths.DEFAULT_DB

    slack_config = data.get("slack") or {}

    return Secrets(
        environment=environment,
        client_id=client_id,
        client_secret=client_secret,
        token_encryption_key=str(token_key),
        db_path=db_path,
        slack_webhook_url=slack_config.get("webhook_url") or None,
    )


def get_quickbooks_config(secrets: Secrets) -> QuickBooksConfig:
    """환경에 따른 QuickBooks 설정 반환

    Args:
        secrets: Secrets 인스턴스

    Returns:
        QuickBooksConfig 인스턴스 (Production 또는 Sandbox)
    """
    if secrets.environment == Environment.PRODUCTION:
        api_url = QuickBooksEndpoints.PROD_API_URL
    else:
        api_url = QuickBooksEndpoints.SANDBOX_API_URL

    return QuickBooksConfig(
        api_url=api_url,
        token_url=QuickBooksEndpoints.TOKEN_URL,
        client_id=secrets.client_id,
        client_secret=secrets.client_secret,
    )


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    secrets.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _secrets: Secrets | None = None

    def __new__(cls, secrets_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, secrets_path: Path | None = None) -> None:
        if self._secrets is None:
            self._secrets = load_secrets(secrets_path)

    @property
    def secrets(self) -> Secrets:
        assert self._secrets is not None
        return self._secrets

    @property
    def environment(self) -> Environment:
        """현재 QuickBooks 환경"""
        return self.secrets.environment

    @property
    def quickbooks_config(self) -> QuickBooksConfig:
        """현재 환경의 QuickBooks 설정"""
        return get_quickbooks_config(self.secrets)

    @property
    def token_encryption_key(self) -> str:
        return self.secrets.token_encryption_key

    @property
    def db_path(self) -> Path:
        """DB 경로"""
        return self.secrets.db_path

    @property
    def slack_webhook_url(self) -> str | None:
        return self.secrets.slack_webhook_url

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._secrets = None


def get_settings(secrets_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        secrets_path: secrets.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(secrets_path)
