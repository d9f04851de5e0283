"""Holiday service layer.

Holidays are civil calendar days shared by every user. Ranges are inclusive
on both ends and always reasoned about in the civil zone.
"""

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.database import atomic, flush_or_raise
from app.domains.holiday.data import HOLIDAYS_BY_YEAR, holiday_seeds_for_year
from app.exceptions.base import ValidationError
from app.shared.timezone import month_days, to_civil_date
from models.holiday import Holiday

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 120

DayLike = Union[str, date, datetime]


def parse_day(value: DayLike, field: str) -> date:
    day = to_civil_date(value)
    if day is None:
        raise ValidationError("Invalid date range provided", details={"field": field})
    return day


class HolidayService:
    """Service class for public holiday lookups."""

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[Holiday]:
        return list(self.db.execute(select(Holiday).order_by(Holiday.date)).scalars().all())

    def list_between(self, start: Optional[DayLike], end: Optional[DayLike]) -> List[Holiday]:
        """Holidays from ``start`` to ``end`` inclusive; both bounds are required."""
        if start is None or end is None:
            raise ValidationError("Both from and to parameters are required")
        first = parse_day(start, "from")
        last = parse_day(end, "to")
        if first > last:
            raise ValidationError(
                "Start of range must not be after its end",
                details={"from": first.isoformat(), "to": last.isoformat()},
            )

        query = (
            select(Holiday)
            .where(Holiday.date >= first, Holiday.date <= last)
            .order_by(Holiday.date)
        )
        return list(self.db.execute(query).scalars().all())

    def list_for_month(self, year: int, month: int) -> List[Holiday]:
        first, last = month_days(year, month)
        return self.list_between(first, last)

    def get_holiday(self, day: DayLike) -> Optional[Holiday]:
        return self.db.execute(
            select(Holiday).where(Holiday.date == parse_day(day, "date"))
        ).scalar_one_or_none()

    def is_holiday(self, day: DayLike) -> bool:
        return self.get_holiday(day) is not None

    def upsert_many(self, seeds: Iterable[Tuple[DayLike, str]]) -> int:
        """
        Insert or rename holidays keyed by day.

        Returns the number of rows written. The whole batch is applied in one
        transaction.
        """
        written = 0
        with atomic(self.db):
            for raw_day, raw_name in seeds:
                day = parse_day(raw_day, "date")
                name = (raw_name or "").strip()
                if not name or len(name) > NAME_MAX_LENGTH:
                    raise ValidationError(
                        f"Holiday name must be 1-{NAME_MAX_LENGTH} characters",
                        details={"date": day.isoformat()},
                    )

                holiday = self.db.execute(
                    select(Holiday).where(Holiday.date == day)
                ).scalar_one_or_none()
                if holiday is None:
                    self.db.add(Holiday(date=day, name=name))
                elif holiday.name != name:
                    holiday.name = name
                else:
                    continue
                written += 1
            flush_or_raise(self.db, "save holidays")

        logger.info(f"Saved {written} holidays")
        return written

    def seed_defaults(self, years: Optional[Iterable[int]] = None) -> int:
        """Load the bundled holiday table, optionally limited to some years."""
        selected = sorted(HOLIDAYS_BY_YEAR) if years is None else sorted(set(years))
        seeds = [seed for year in selected for seed in holiday_seeds_for_year(year)]
        return self.upsert_many(seeds)
