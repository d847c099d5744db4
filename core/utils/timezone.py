"""
타임존 유틸리티

내부 저장은 항상 UTC ISO-8601 문자열.
문자열 비교로 시간 순서를 판단하므로 반드시 이 모듈의 포맷터를 사용한다.
"""

from datetime import datetime, timezone


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)"""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """naive datetime은 UTC로 간주하여 tzinfo 부여"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    """DB 저장용 ISO 문자열 (UTC, 마이크로초 고정 자릿수)

    Example:
        >>> to_iso(datetime(2026, 10, 19, 1, 2, 3, tzinfo=timezone.utc))
        '2026-10-19T01:02:03.000000+00:00'
    """
    return ensure_utc(dt).isoformat(timespec="microseconds")


def parse_iso(value: str) -> datetime:
    """to_iso()로 저장된 문자열 또는 QBO 타임스탬프 파싱

    QBO는 '2026-10-19T01:02:03-07:00' 형식을 반환한다.
    """
    normalized = value.replace("Z", "+00:00")
    return ensure_utc(datetime.fromisoformat(normalized))


def to_qbo_date(dt: datetime) -> str:
    """QBO query WHERE 절용 날짜 (YYYY-MM-DD)"""
    return ensure_utc(dt).strftime("%Y-%m-%d")


def to_qbo_timestamp(dt: datetime) -> str:
    """QBO CDC changedSince 파라미터용 타임스탬프 (초 단위, UTC)"""
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")
