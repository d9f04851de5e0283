"""Next-occurrence calculation for recurring todos.

One calendar unit of the pattern is added in the civil zone, then the result
is converted back to UTC. Month and year steps use calendar arithmetic: when
the source day does not exist in the target month the day is clamped to the
month's last day (Jan 31 + 1 month is Feb 28, or Feb 29 in a leap year;
Feb 29 + 1 year is Feb 28).
"""

from datetime import datetime, timezone
from enum import Enum

from dateutil.relativedelta import relativedelta

from app.shared.timezone import parse_instant, to_civil


class RecurrencePattern(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


_STEPS = {
    RecurrencePattern.daily: relativedelta(days=1),
    RecurrencePattern.weekly: relativedelta(weeks=1),
    RecurrencePattern.monthly: relativedelta(months=1),
    RecurrencePattern.yearly: relativedelta(years=1),
}


def next_due_date(current: str | datetime | None, pattern: str | RecurrencePattern) -> datetime | None:
    """
    Return the next due instant (aware UTC) after ``current``.

    Returns ``None`` when ``current`` cannot be parsed or ``pattern`` is not a
    known recurrence pattern.
    """
    instant = parse_instant(current)
    if instant is None:
        return None
    try:
        step = _STEPS[RecurrencePattern(pattern)]
    except ValueError:
        return None

    # Add on naive wall-clock time, then re-attach the zone so DST shifts
    # keep the local hour instead of the elapsed duration.
    local = to_civil(instant)
    shifted = (local.replace(tzinfo=None) + step).replace(tzinfo=local.tzinfo)
    return shifted.astimezone(timezone.utc)
