"""Template schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from .base import BaseModelSchema, BaseSchema

__all__ = [
    "TemplateSubtaskDefinition",
    "TemplateCreate",
    "TemplateUpdate",
    "TemplateUse",
    "TemplateResponse",
]


class TemplateSubtaskDefinition(BaseSchema):
    title: str = ""
    position: int = 0


class TemplateCreate(BaseSchema):
    """Schema for saving a new template."""

    name: str
    description: str | None = None
    category: str | None = None
    todo_title: str
    todo_description: str | None = None
    priority: str = Field(default="medium")
    recurrence_pattern: str | None = None
    reminder_minutes: int | None = None
    due_offset_days: int | None = None
    estimated_duration_minutes: int | None = None
    tag_ids: list[int] = Field(default_factory=list)
    subtasks: list[TemplateSubtaskDefinition] = Field(default_factory=list)


class TemplateUpdate(BaseSchema):
    """Partial template update; only fields present in the payload are applied."""

    name: str | None = None
    description: str | None = None
    category: str | None = None
    todo_title: str | None = None
    todo_description: str | None = None
    priority: str | None = None
    recurrence_pattern: str | None = None
    reminder_minutes: int | None = None
    due_offset_days: int | None = None
    estimated_duration_minutes: int | None = None
    tag_ids: list[int] | None = None
    subtasks: list[TemplateSubtaskDefinition] | None = None


class TemplateUse(BaseSchema):
    """Options for materializing a template.

    ``due_date`` wins over ``due_offset_days``; with neither, the template's
    own offset is used.
    """

    due_date: datetime | None = None
    due_offset_days: int | None = None


class TemplateResponse(BaseModelSchema):
    user_id: int
    name: str
    description: str | None = None
    category: str | None = None
    todo_title: str
    todo_description: str
    priority: str
    recurrence_pattern: str | None = None
    reminder_minutes: int | None = None
    due_offset_days: int | None = None
    estimated_duration_minutes: int | None = None
    tag_ids: list[int] = []
    subtasks: list[TemplateSubtaskDefinition] = []
