"""Todo schemas for request/response serialization."""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field

from .base import BaseModelSchema, BaseSchema
from .subtask import SubtaskProgress, SubtaskResponse
from .tag import TagResponse

__all__ = [
    "TodoCreate",
    "TodoUpdate",
    "TodoResponse",
    "TodoWithRelations",
    "ReminderNotice",
]


class TodoCreate(BaseSchema):
    """Schema for creating a new todo.

    Enumerations are kept as plain strings here; the todo service is the
    authority on which values are allowed.
    """

    title: str
    description: str | None = None
    priority: str = Field(default="medium")
    due_date: datetime | None = None
    is_recurring: bool = Field(default=False)
    recurrence_pattern: str | None = None
    reminder_minutes: int | None = None
    tag_ids: list[int] = Field(default_factory=list)


class TodoUpdate(BaseSchema):
    """Schema for updating a todo.

    Only fields present in the payload are applied; an explicit ``None``
    clears the field.
    """

    title: str | None = None
    description: str | None = None
    priority: str | None = None
    due_date: datetime | None = None
    is_recurring: bool | None = None
    recurrence_pattern: str | None = None
    reminder_minutes: int | None = None


class TodoResponse(BaseModelSchema):
    """Schema for todo response."""

    user_id: int
    title: str
    description: str
    priority: str
    due_date: datetime | None = None
    is_completed: bool
    completed_at: datetime | None = None
    is_recurring: bool
    recurrence_pattern: str | None = None
    reminder_minutes: int | None = None
    last_notification_sent: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class TodoWithRelations(TodoResponse):
    """Schema for todo with its tags, subtasks and progress."""

    tags: list[TagResponse] = []
    subtasks: list[SubtaskResponse] = []
    progress: SubtaskProgress | None = None


class ReminderNotice(BaseSchema):
    """Payload handed to the external notifier for a reminder that is due."""

    id: int
    title: str
    due_date: datetime
    reminder_minutes: int
    priority: str
