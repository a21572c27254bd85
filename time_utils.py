from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Optional


@dataclass(frozen=True)
class DateRange:
    min: datetime
    max: datetime


def is_date_in_range(date: datetime, date_range: DateRange) -> bool:
    """Half-open check: ``min`` inclusive, ``max`` exclusive."""
    return date_range.min <= date < date_range.max


def local_timezone() -> tzinfo:
    return datetime.now().astimezone().tzinfo  # type: ignore[return-value]


def now_in_tz(tz: Optional[tzinfo]) -> datetime:
    if tz:
        return datetime.now(tz)
    return datetime.now().astimezone()


def ensure_tz(dt: datetime, tz: Optional[tzinfo] = None) -> datetime:
    if dt.tzinfo:
        return dt
    return dt.replace(tzinfo=tz or local_timezone())


def parse_timestamp(raw: str, tz: Optional[tzinfo] = None) -> datetime:
    # fromisoformat only accepts a trailing "Z" from 3.11 on
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return ensure_tz(datetime.fromisoformat(raw), tz)
