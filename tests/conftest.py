"""
pytest 공통 fixture 정의

설정 파일 / 임시 DB 등 전 계층 공용 fixture
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, init_schema
from core.types import Connection

TEST_TOKEN_KEY = "test-token-encryption-key-0123456789abcdef"


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_secrets_file(temp_dir: Path) -> Path:
    """테스트용 secrets.yaml 파일 생성 (sandbox)"""
    secrets_content = f"""# 테스트용 secrets.yaml
quickbooks:
  environment: sandbox
  client_id: "sandbox_client_id_12345"
  client_secret: "sandbox_client_secret_67890"

token_encryption_key: "{TEST_TOKEN_KEY}"

database:
  path: "{(temp_dir / 'ledgersync.db').as_posix()}"

slack:
  webhook_url: "https://hooks.slack.com/services/T000/B000/XXXX"
"""
    secrets_path = temp_dir / "secrets.yaml"
    secrets_path.write_text(secrets_content, encoding="utf-8")
    return secrets_path


@pytest.fixture
def temp_secrets_file_production(temp_dir: Path) -> Path:
    """테스트용 secrets.yaml 파일 생성 (production, slack 없음)"""
    secrets_content = f"""quickbooks:
  environment: production
  client_id: "prod_client_id_12345"
  client_secret: "prod_client_secret_67890"

token_encryption_key: "{TEST_TOKEN_KEY}"
"""
    secrets_path = temp_dir / "secrets_prod.yaml"
    secrets_path.write_text(secrets_content, encoding="utf-8")
    return secrets_path


@pytest.fixture
def temp_secrets_file_invalid_environment(temp_dir: Path) -> Path:
    """잘못된 environment의 secrets.yaml 파일 생성"""
    secrets_content = f"""quickbooks:
  environment: staging
  client_id: "client_id"
  client_secret: "client_secret"

token_encryption_key: "{TEST_TOKEN_KEY}"
"""
    secrets_path = temp_dir / "secrets_invalid.yaml"
    secrets_path.write_text(secrets_content, encoding="utf-8")
    return secrets_path


@pytest_asyncio.fixture
async def db(temp_dir: Path) -> AsyncGenerator[SQLiteAdapter, None]:
    """스키마가 초기화된 임시 파일 DB"""
    adapter = SQLiteAdapter(temp_dir / "test.db")
    await adapter.connect()
    await init_schema(adapter)
    yield adapter
    await adapter.close()


@pytest.fixture
def connection() -> Connection:
    """만료까지 여유가 있는 테넌트 연결"""
    return Connection(
        tenant_id="T1",
        realm_id="9130000000",
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
