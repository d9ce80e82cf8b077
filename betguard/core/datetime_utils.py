"""UTC 시간 처리 유틸리티

DB에는 타임존 정보 없는(naive) UTC datetime을 저장한다.
SQLite는 타임존을 보존하지 않으므로 모든 비교도 naive UTC 기준으로 수행한다.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """현재 UTC 시각 (타임존 정보 없음)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """aware datetime은 UTC로 변환 후 tzinfo 제거, naive는 UTC로 간주하고 그대로 반환"""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def start_of_utc_day(dt: Optional[datetime] = None) -> datetime:
    dt = to_naive_utc(dt) if dt is not None else utcnow()
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)
