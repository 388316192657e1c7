"""Time helpers: rolling-total bucket tags and report window derivation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shared.errors import InvalidTimezone

DEFAULT_TIMEZONE = "UTC"


@dataclass(frozen=True)
class PeriodKeys:
    """Bucket tags of one instant: ``YYYY-MM-DD``, ISO ``YYYY-WW`` and ``YYYY-MM``."""

    day: str
    week: str
    month: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Interpret naive datetimes as UTC and convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def period_keys(moment: datetime) -> PeriodKeys:
    """Compute the UTC bucket tags used by the rolling totals."""
    moment = ensure_utc(moment)
    iso_year, iso_week, _ = moment.isocalendar()
    return PeriodKeys(
        day=moment.strftime("%Y-%m-%d"),
        week=f"{iso_year}-{iso_week:02d}",
        month=moment.strftime("%Y-%m"),
    )


def validate_timezone(name: str | None) -> str:
    """Return the canonical timezone name or raise :class:`InvalidTimezone`."""
    if not name or not name.strip():
        raise InvalidTimezone(name or "")
    name = name.strip()
    if name.upper() == DEFAULT_TIMEZONE:
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimezone(name) from e
    return name


def get_zone(name: str | None) -> ZoneInfo:
    return ZoneInfo(name or DEFAULT_TIMEZONE)


def hourly_window(now: datetime, hours: int = 1) -> tuple[datetime, datetime]:
    """The hour that just elapsed: ``[now - 1h, now)``."""
    now = ensure_utc(now)
    return now - timedelta(hours=hours), now


def local_date(now: datetime, tz_name: str | None) -> date:
    return ensure_utc(now).astimezone(get_zone(tz_name)).date()


def daily_window(now: datetime, tz_name: str | None) -> tuple[datetime, datetime]:
    """The previous full calendar day in ``tz_name``, returned as UTC bounds.

    The end bound is local midnight of the current day, so the window is
    ``[yesterday 00:00, today 00:00)`` and never includes the in-progress day.
    DST transitions make such a day 23 or 25 hours long.
    """
    zone = get_zone(tz_name)
    today = ensure_utc(now).astimezone(zone).date()
    yesterday = today - timedelta(days=1)
    start = datetime.combine(yesterday, time.min, tzinfo=zone)
    end = datetime.combine(today, time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def format_minutes(minutes: float) -> str:
    """Format minutes as ``Xh Ym``."""
    if minutes < 1:
        return "0m"
    hours = int(minutes // 60)
    remaining = int(minutes % 60)
    if hours == 0:
        return f"{remaining}m"
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"


def format_seconds(seconds: int, interrupted: bool = False) -> str:
    if interrupted:
        return "Interrupted"
    return format_minutes(seconds / 60)
