"""
Mock QuickBooks 클라이언트

테스트용 Mock QBO REST 클라이언트.
IQuickBooksClient Protocol 준수.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from core.types import Connection


@dataclass
class MockQBOState:
    """Mock 상태 (메모리 내 저장)"""

    # 엔티티 이름 -> 원본 레코드 목록
    entities: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    # 리포트 이름 -> 응답
    reports: dict[str, dict[str, Any]] = field(default_factory=dict)

    # CDC 응답 (엔티티 이름 -> 변경 레코드)
    changes: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    company_info: dict[str, Any] = field(default_factory=dict)

    # 엔티티/리포트/"cdc" -> 발생시킬 예외
    failures: dict[str, Exception] = field(default_factory=dict)


class MockQuickBooksClient:
    """Mock QBO 클라이언트

    IQuickBooksClient Protocol 구현.
    WHERE 조건은 해석하지 않고 기록만 한다 (등록된 레코드 전체 반환).

    사용 예시:
    ```python
    client = MockQuickBooksClient()
    client.set_entities("Invoice", [{"Id": "1", "SyncToken": "0", ...}])
    client.set_report("TrialBalance", {...})

    rows = await client.query_all(connection, "Invoice")
    assert client.queries == [("Invoice", None)]
    ```
    """

    def __init__(self, state: MockQBOState | None = None):
        self.state = state or MockQBOState()
        self.queries: list[tuple[str, str | None]] = []
        self.report_calls: list[tuple[str, dict[str, Any] | None]] = []
        self.change_calls: list[tuple[tuple[str, ...], datetime]] = []
        self.closed = False

    # -------------------------------------------------------------------------
    # 테스트 헬퍼 메서드
    # -------------------------------------------------------------------------

    def set_entities(self, entity: str, records: list[dict[str, Any]]) -> None:
        self.state.entities[entity] = records

    def set_report(self, report_name: str, report: dict[str, Any]) -> None:
        self.state.reports[report_name] = report

    def set_changes(self, entity: str, records: list[dict[str, Any]]) -> None:
        self.state.changes[entity] = records

    def fail(self, key: str, error: Exception) -> None:
        """key(엔티티/리포트 이름 또는 "cdc") 호출 시 error 발생"""
        self.state.failures[key] = error

    def _raise_if_failing(self, key: str) -> None:
        error = self.state.failures.get(key)
        if error is not None:
            raise error

    # -------------------------------------------------------------------------
    # IQuickBooksClient
    # -------------------------------------------------------------------------

    async def call(
        self,
        connection: Connection,
        path: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self._raise_if_failing(path)
        return {}

    async def query_all(
        self,
        connection: Connection,
        entity: str,
        where: str | None = None,
        page_size: int = 1000,
    ) -> list[dict[str, Any]]:
        self.queries.append((entity, where))
        self._raise_if_failing(entity)
        return [dict(record) for record in self.state.entities.get(entity, [])]

    async def get_company_info(self, connection: Connection) -> dict[str, Any]:
        self._raise_if_failing("CompanyInfo")
        return dict(self.state.company_info)

    async def get_report(
        self,
        connection: Connection,
        report_name: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.report_calls.append((report_name, params))
        self._raise_if_failing(report_name)
        return self.state.reports.get(report_name, {})

    async def get_changes(
        self,
        connection: Connection,
        entities: list[str] | tuple[str, ...],
        changed_since: datetime,
    ) -> dict[str, list[dict[str, Any]]]:
        self.change_calls.append((tuple(entities), changed_since))
        self._raise_if_failing("cdc")
        return {
            entity: list(records)
            for entity, records in self.state.changes.items()
            if entity in entities
        }

    async def close(self) -> None:
        self.closed = True

    def queried_entities(self) -> list[str]:
        return [entity for entity, _ in self.queries]
