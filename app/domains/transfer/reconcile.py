"""Pure decisions used while merging a snapshot into a live store.

Nothing here touches the database: the transfer service feeds these helpers
with plain values and acts on what they return.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from app.core.config import settings
from app.shared.colors import normalize_hex_color
from app.shared.timezone import parse_instant as _parse_instant
from models.todo import PRIORITIES, RECURRENCE_PATTERNS


@dataclass(frozen=True)
class TagDecision:
    """Either reuse ``existing_id`` or create a tag called ``name``."""

    name: str
    existing_id: Optional[int] = None

    @property
    def reuse(self) -> bool:
        return self.existing_id is not None


@dataclass(frozen=True)
class Schedule:
    priority: str
    is_recurring: bool
    recurrence_pattern: Optional[str]
    due_date: Optional[datetime]
    reminder_minutes: Optional[int]


def decide_tag(name: str, existing_by_lower: Mapping[str, int]) -> TagDecision:
    """Match ``name`` against the owner's tags, ignoring case."""
    name = name.strip()
    return TagDecision(name=name, existing_id=existing_by_lower.get(name.lower()))


def resolve_ref(raw_id: Any, id_map: Mapping[int, int]) -> Optional[int]:
    """
    Translate a snapshot id through ``id_map``.

    Returns ``None`` for anything that should be skipped: a missing or
    malformed id, or one the map does not know.
    """
    if isinstance(raw_id, bool):
        return None
    if isinstance(raw_id, str) and raw_id.strip().isdigit():
        raw_id = int(raw_id.strip())
    if not isinstance(raw_id, int):
        return None
    return id_map.get(raw_id)


def parse_instant(value: Any) -> Optional[datetime]:
    """Aware UTC datetime for an ISO string or datetime, ``None`` otherwise."""
    if isinstance(value, (str, datetime)):
        return _parse_instant(value)
    return None


def sanitize_color(value: Any, fallback: Optional[str] = None) -> str:
    return normalize_hex_color(value) or fallback or settings.default_tag_color


def sanitize_schedule(
    priority: Any,
    is_recurring: Any,
    recurrence_pattern: Any,
    due_date: Optional[datetime],
    reminder_minutes: Any,
) -> Schedule:
    """
    Coerce imported scheduling fields into a consistent combination.

    Unknown priorities fall back to medium. A recurrence without a valid
    pattern or a due date is dropped, and so is a reminder that is not one of
    the configured options or has no due date.
    """
    if priority not in PRIORITIES:
        priority = "medium"
    if recurrence_pattern not in RECURRENCE_PATTERNS:
        recurrence_pattern = None
    recurring = bool(is_recurring) and recurrence_pattern is not None and due_date is not None
    if not recurring:
        recurrence_pattern = None
    if (
        isinstance(reminder_minutes, bool)
        or reminder_minutes not in settings.reminder_options
        or due_date is None
    ):
        reminder_minutes = None
    return Schedule(
        priority=priority,
        is_recurring=recurring,
        recurrence_pattern=recurrence_pattern,
        due_date=due_date,
        reminder_minutes=reminder_minutes,
    )
