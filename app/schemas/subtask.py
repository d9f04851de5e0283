"""Subtask schemas."""

from .base import BaseModelSchema, BaseSchema

__all__ = ["SubtaskCreate", "SubtaskResponse", "SubtaskProgress"]


class SubtaskCreate(BaseSchema):
    """Schema for adding a subtask; ``position=None`` appends at the end."""

    title: str
    position: int | None = None


class SubtaskResponse(BaseModelSchema):
    todo_id: int
    title: str
    position: int
    is_completed: bool


class SubtaskProgress(BaseSchema):
    """Completion summary for a todo's subtasks."""

    completed: int = 0
    total: int = 0
    percent: int = 0

    @classmethod
    def from_counts(cls, completed: int, total: int) -> "SubtaskProgress":
        if total <= 0:
            return cls(completed=0, total=0, percent=0)
        # half-up rounding
        percent = int(100 * completed / total + 0.5)
        return cls(completed=completed, total=total, percent=percent)
