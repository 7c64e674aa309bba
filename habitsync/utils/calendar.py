from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

from ..config import settings


def resolve_zone(tz_name: Optional[str]) -> ZoneInfo | timezone:
    """
    Returns the calendar zone for tz_name; a missing or invalid name falls back to UTC.
    """
    if not tz_name:
        return timezone.utc
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning("Invalid calendar timezone '{}', falling back to UTC: {}", tz_name, e)
        return timezone.utc


def today_in_zone(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> date:
    """Calendar day at `now` (default: current time) in the configured zone."""
    now_utc = now or datetime.now(timezone.utc)
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(resolve_zone(tz_name or settings.CALENDAR_TIMEZONE)).date()


def days_between(start: date, end: date) -> Iterator[date]:
    """Yields every day strictly after start and strictly before end."""
    day = start + timedelta(days=1)
    while day < end:
        yield day
        day += timedelta(days=1)
