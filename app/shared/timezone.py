"""Conversions between the fixed civil zone and UTC instants.

All timestamps are stored and compared as aware UTC datetimes. Date-only
reasoning (due offsets, month boundaries, "at least a minute from now")
happens in the civil zone configured by ``settings.civil_timezone``.
"""

from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from app.core.config import settings
from app.exceptions.base import ValidationError

MIN_LEAD = timedelta(minutes=1)


@lru_cache(maxsize=8)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def civil_zone() -> ZoneInfo:
    return _zone(settings.civil_timezone)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_civil() -> datetime:
    return now_utc().astimezone(civil_zone())


def parse_instant(value: str | datetime | None) -> datetime | None:
    """
    Parse an ISO-8601 string or datetime into an aware UTC datetime.

    Naive input is interpreted as civil wall-clock time. Returns ``None`` when
    the value is empty or cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=civil_zone())
    return parsed.astimezone(timezone.utc)


def to_utc(value: str | datetime) -> datetime:
    """Like :func:`parse_instant` but raises ``ValidationError`` on bad input."""
    parsed = parse_instant(value)
    if parsed is None:
        raise ValidationError("Invalid date format", details={"value": str(value)})
    return parsed


def to_civil(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(civil_zone())


def is_future(value: datetime, now: datetime | None = None, min_lead: timedelta = MIN_LEAD) -> bool:
    """True when ``value`` is at least ``min_lead`` ahead of ``now``."""
    now = now or now_utc()
    return to_civil(value) - to_civil(now) >= min_lead


def month_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """UTC instants for the start of a civil month and the start of the next one."""
    try:
        start = datetime(year, month, 1, tzinfo=civil_zone())
    except ValueError as exc:
        raise ValidationError("Invalid month parameter", details={"year": year, "month": month}) from exc
    end = start + relativedelta(months=1)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def format_civil(value: datetime | None, fmt: str = "%d %b %Y, %I:%M%p") -> str:
    if value is None:
        return "No due date"
    return to_civil(value).strftime(fmt)


def isoformat_civil(value: datetime | None) -> str:
    return "" if value is None else to_civil(value).isoformat()


def to_civil_date(value: str | date | datetime | None) -> date | None:
    """
    Calendar day in the civil zone.

    Plain dates and ``YYYY-MM-DD`` strings are taken as civil days already;
    instants are converted first. Returns ``None`` for unparseable input.
    """
    if isinstance(value, datetime):
        return to_civil(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            instant = parse_instant(value)
            return None if instant is None else to_civil(instant).date()
    return None


def month_days(year: int, month: int) -> tuple[date, date]:
    """First and last civil day of a month."""
    start, end = month_bounds(year, month)
    return to_civil(start).date(), to_civil(end).date() - timedelta(days=1)
