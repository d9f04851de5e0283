"""Tag schemas."""

from .base import BaseModelSchema, BaseSchema

__all__ = ["TagCreate", "TagUpdate", "TagResponse", "TagWithCount"]


class TagCreate(BaseSchema):
    name: str
    color: str
    description: str | None = None


class TagUpdate(BaseSchema):
    """Partial tag update; an explicit ``description=None`` clears it."""

    name: str | None = None
    color: str | None = None
    description: str | None = None


class TagResponse(BaseModelSchema):
    user_id: int
    name: str
    color: str
    description: str | None = None


class TagWithCount(TagResponse):
    """Tag plus the number of todos it is attached to."""

    todo_count: int = 0
