"""
어댑터 인터페이스 정의

Protocol 기반으로 정의하여 의존성 주입 및 Mock 교체 가능.
모든 구현체는 이 Protocol을 준수해야 함.
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from core.types import Connection


@runtime_checkable
class IQuickBooksClient(Protocol):
    """QuickBooks Online REST 클라이언트 인터페이스

    QuickBooksRestClient와 MockQuickBooksClient가 구현.
    응답은 QBO JSON 그대로 반환 (변환은 adapters.quickbooks.models).
    """

    async def call(
        self,
        connection: Connection,
        path: str,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """단일 API 호출 (토큰 갱신/재시도 포함)"""
        ...

    async def query_all(
        self,
        connection: Connection,
        entity: str,
        where: str | None = None,
        page_size: int = 1000,
    ) -> list[dict[str, Any]]:
        """엔티티 전체 조회 (페이지 반복)

        Returns:
            원본 엔티티 목록 (0건 허용)
        """
        ...

    async def get_company_info(self, connection: Connection) -> dict[str, Any]:
        """회사 정보"""
        ...

    async def get_report(
        self,
        connection: Connection,
        report_name: str,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """리포트 조회"""
        ...

    async def get_changes(
        self,
        connection: Connection,
        entities: list[str] | tuple[str, ...],
        changed_since: datetime,
    ) -> dict[str, list[dict[str, Any]]]:
        """CDC 조회

        Returns:
            엔티티 이름 → 변경 레코드 목록
        """
        ...

    async def close(self) -> None:
        """HTTP 클라이언트 종료"""
        ...


@runtime_checkable
class INotifier(Protocol):
    """알림 서비스 인터페이스

    대사 불일치, 에러 알림 등을 외부 서비스로 전송.
    전송 실패는 예외 대신 False 반환 (best-effort).
    """

    async def send(
        self,
        message: str,
        level: str = "INFO",
        extra: dict[str, Any] | None = None,
    ) -> bool:
        """알림 전송

        Args:
            message: 알림 메시지
            level: 알림 레벨 (INFO, WARNING, ERROR, CRITICAL)
            extra: 추가 데이터 (선택)

        Returns:
            전송 성공 여부
        """
        ...

    async def send_reconciliation_alert(
        self,
        tenant_id: str,
        total_diff: str,
        qb_total: str,
        erp_total: str,
        escalation_id: int | None = None,
    ) -> bool:
        """시산표 불일치 알림 (포맷팅된 메시지)

        Args:
            tenant_id: 테넌트 ID
            total_diff: 차이 (절대값)
            qb_total: 외부 시산표 합계
            erp_total: 내부 GL 합계
            escalation_id: human_tasks ID (선택)

        Returns:
            전송 성공 여부
        """
        ...
