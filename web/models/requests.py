"""
요청 스키마 (Pydantic)

Web API 요청 데이터 검증
"""

from pydantic import BaseModel, Field


class SyncRequest(BaseModel):
    """동기화 실행 요청"""

    tenant_id: str = Field(..., min_length=1, description="테넌트 ID")
    entity_type: str | None = Field(
        default=None,
        description="sync_entity 대상 거래 타입 (예: Invoice)",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"tenant_id": "acme"},
                {"tenant_id": "acme", "entity_type": "Invoice"},
            ]
        }
    }
