"""Snapshot schemas for export/import.

Field names are snake_case in Python and camelCase on the wire; dump with
``by_alias=True`` to produce the exchange format.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.shared.timezone import parse_instant

__all__ = [
    "SnapshotSchema",
    "SnapshotTodo",
    "SnapshotSubtask",
    "SnapshotTag",
    "SnapshotTodoTag",
    "Snapshot",
]


class SnapshotSchema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


class _Timestamped(SnapshotSchema):
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_instant(cls, v: Any) -> datetime | None:
        return parse_instant(v) if isinstance(v, (str, datetime)) else None


class SnapshotTodo(_Timestamped):
    id: int
    title: str = Field(min_length=1)
    description: str = ""
    priority: str = "medium"
    due_date: datetime | None = None
    is_completed: bool = False
    completed_at: datetime | None = None
    is_recurring: bool = False
    recurrence_pattern: str | None = None
    reminder_minutes: int | None = None
    last_notification_sent: datetime | None = None

    @field_validator("due_date", "completed_at", "last_notification_sent", mode="before")
    @classmethod
    def _lenient_optional_instant(cls, v: Any) -> datetime | None:
        return parse_instant(v) if isinstance(v, (str, datetime)) else None

    @field_validator("description", mode="before")
    @classmethod
    def _description_default(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("is_completed", "is_recurring", mode="before")
    @classmethod
    def _flag_default(cls, v: Any) -> bool:
        return bool(v) if isinstance(v, (bool, int)) else False

    @field_validator("priority", mode="before")
    @classmethod
    def _priority_default(cls, v: Any) -> str:
        return v if isinstance(v, str) else "medium"

    @field_validator("recurrence_pattern", mode="before")
    @classmethod
    def _lenient_pattern(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator("reminder_minutes", mode="before")
    @classmethod
    def _lenient_reminder(cls, v: Any) -> int | None:
        return v if isinstance(v, int) and not isinstance(v, bool) else None


class SnapshotSubtask(_Timestamped):
    id: int
    todo_id: int
    title: str = Field(min_length=1)
    position: int = 0
    is_completed: bool = False

    @field_validator("position", mode="before")
    @classmethod
    def _lenient_position(cls, v: Any) -> int:
        return v if isinstance(v, int) and not isinstance(v, bool) else 0

    @field_validator("is_completed", mode="before")
    @classmethod
    def _flag_default(cls, v: Any) -> bool:
        return bool(v) if isinstance(v, (bool, int)) else False


class SnapshotTag(_Timestamped):
    id: int
    name: str = Field(min_length=1)
    color: str = ""
    description: str | None = None

    @field_validator("color", mode="before")
    @classmethod
    def _lenient_color(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("description", mode="before")
    @classmethod
    def _lenient_description(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None


class SnapshotTodoTag(SnapshotSchema):
    todo_id: int
    tag_id: int


class Snapshot(SnapshotSchema):
    """A versioned export of one owner's todo/tag/subtask graph."""

    version: str
    generated_at: datetime
    todos: list[SnapshotTodo] = Field(default_factory=list)
    subtasks: list[SnapshotSubtask] = Field(default_factory=list)
    tags: list[SnapshotTag] = Field(default_factory=list)
    todo_tags: list[SnapshotTodoTag] = Field(default_factory=list)
