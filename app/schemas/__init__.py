# ruff: noqa: F403, F401
"""Schemas package initialization."""

from .base import *
from .snapshot import *
from .subtask import *
from .tag import *
from .template import *
from .todo import *
from .todo import TodoWithRelations

# Rebuild models after all schemas are loaded
TodoWithRelations.model_rebuild()
