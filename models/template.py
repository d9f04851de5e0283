"""
Template model: a reusable blueprint for creating a todo.

The referenced tag ids and the subtask definitions are stored serialized as
JSON text; they are plain data, not foreign keys, so a template keeps working
(and reports the gap) after one of its tags is deleted.
"""

import json
from typing import Any

from sqlalchemy import Column, Index, Integer, String, Text, func

from .base import BaseModel


class Template(BaseModel):
    """
    Represents a saved todo blueprint owned by a user.

    :ivar name: Unique (per user, case-insensitive) display name.
    :ivar todo_title: Title given to todos created from the template.
    :ivar due_offset_days: Days from "now" used when no explicit due instant
        is supplied on use; ``None`` leaves the todo undated.
    :ivar tag_ids_json: JSON list of tag ids.
    :ivar subtasks_json: JSON list of ``{"title", "position"}`` objects.
    """

    __tablename__ = "templates"

    user_id = Column(Integer, nullable=False)
    name = Column(String(80), nullable=False)
    description = Column(Text)
    category = Column(String(80))

    todo_title = Column(String(200), nullable=False)
    todo_description = Column(Text, nullable=False, default="")
    priority = Column(String(10), nullable=False, default="medium")
    recurrence_pattern = Column(String(10))
    reminder_minutes = Column(Integer)
    due_offset_days = Column(Integer)
    estimated_duration_minutes = Column(Integer)

    tag_ids_json = Column(Text, nullable=False, default="[]")
    subtasks_json = Column(Text, nullable=False, default="[]")

    @property
    def tag_ids(self) -> list[int]:
        try:
            value = json.loads(self.tag_ids_json or "[]")
        except ValueError:
            return []
        return [int(v) for v in value if isinstance(v, int)] if isinstance(value, list) else []

    @property
    def subtasks(self) -> list[dict[str, Any]]:
        try:
            value = json.loads(self.subtasks_json or "[]")
        except ValueError:
            return []
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    def __repr__(self) -> str:
        return f"<Template id={self.id} user_id={self.user_id}>"


Index("uq_templates_user_lower_name", Template.user_id, func.lower(Template.name), unique=True)
