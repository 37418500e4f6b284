"""시계 + 타임존 해석기

플레이어의 IANA 타임존 기준으로 "오늘", 하루 경계, 하루 단계(phase)를 계산한다.
모든 순간(instant)은 UTC aware datetime, 모든 날짜는 로컬 달력 날짜(date).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"


class DayPhase(str, Enum):
    MORNING = "morning"
    MIDDAY = "midday"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"
    CLOSED = "closed"


PHASE_ORDER: tuple[DayPhase, ...] = (
    DayPhase.MORNING,
    DayPhase.MIDDAY,
    DayPhase.AFTERNOON,
    DayPhase.EVENING,
    DayPhase.NIGHT,
    DayPhase.CLOSED,
)

# (시작 시각, phase). 로컬 자정에 새 하루가 morning으로 열린다
PHASE_BOUNDARIES: tuple[tuple[int, DayPhase], ...] = (
    (0, DayPhase.MORNING),
    (10, DayPhase.MIDDAY),
    (16, DayPhase.AFTERNOON),
    (20, DayPhase.EVENING),
    (22, DayPhase.NIGHT),
)


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """실제 벽시계 (UTC)"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """테스트/리플레이용 고정 시계"""

    def __init__(self, instant: datetime) -> None:
        self._now = ensure_utc(instant)

    def now(self) -> datetime:
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = ensure_utc(instant)

    def advance(self, **kwargs: float) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now


def ensure_utc(instant: datetime) -> datetime:
    """naive datetime은 UTC로 간주 (SQLite는 tzinfo를 보존하지 않음)"""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def safe_timezone(name: str | None) -> ZoneInfo:
    """알 수 없는 타임존은 UTC로 대체"""
    if not name:
        return ZoneInfo(DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to UTC", name)
        return ZoneInfo(DEFAULT_TIMEZONE)


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def to_local(instant: datetime, tz_name: str | None) -> datetime:
    return ensure_utc(instant).astimezone(safe_timezone(tz_name))


def local_date(instant: datetime, tz_name: str | None) -> date:
    return to_local(instant, tz_name).date()


def start_of_day(day: date, tz_name: str | None) -> datetime:
    """로컬 자정의 UTC 순간"""
    local_midnight = datetime.combine(day, time.min, tzinfo=safe_timezone(tz_name))
    return local_midnight.astimezone(timezone.utc)


def end_of_day(day: date, tz_name: str | None) -> datetime:
    """다음 로컬 자정의 UTC 순간 (배타적 경계)"""
    return start_of_day(day + timedelta(days=1), tz_name)


def minutes_to_midnight(instant: datetime, tz_name: str | None) -> int:
    today = local_date(instant, tz_name)
    remaining = end_of_day(today, tz_name) - ensure_utc(instant)
    return max(0, int(remaining.total_seconds() // 60))


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def phase_for_hour(hour: int) -> DayPhase:
    phase = PHASE_BOUNDARIES[0][1]
    for start, candidate in PHASE_BOUNDARIES:
        if hour >= start:
            phase = candidate
    return phase


def phase_at(record_date: date, instant: datetime, tz_name: str | None) -> DayPhase:
    """record_date 하루의 현재 phase. 날짜가 지났으면 night, 아직 안 왔으면 morning."""
    local = to_local(instant, tz_name)
    if local.date() > record_date:
        return DayPhase.NIGHT
    if local.date() < record_date:
        return DayPhase.MORNING
    return phase_for_hour(local.hour)


def phase_index(phase: DayPhase) -> int:
    return PHASE_ORDER.index(phase)


def later_phase(a: DayPhase, b: DayPhase) -> DayPhase:
    return a if phase_index(a) >= phase_index(b) else b
