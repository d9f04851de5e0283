"""
Models package initialization.
"""

from .base import Base, BaseModel
from .holiday import Holiday
from .subtask import Subtask
from .tag import Tag, todo_tags
from .template import Template
from .todo import PRIORITIES, RECURRENCE_PATTERNS, Todo

__all__ = [
    "Base",
    "BaseModel",
    "Todo",
    "Tag",
    "Subtask",
    "Template",
    "Holiday",
    "todo_tags",
    "PRIORITIES",
    "RECURRENCE_PATTERNS",
]
