"""
A module defining the `Todo` ORM model representing a to-do item.

The model carries the scheduling metadata used by the reminder and recurrence
features (due instant, reminder offset, recurrence pattern, last notification)
together with its relationships to subtasks and tags. Deleting a todo removes
its subtasks and tag links, both through ORM cascades and through the
``ON DELETE CASCADE`` foreign keys declared on the child tables.

Classes:
    Todo: Represents a single to-do item owned by a user.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel, UTCDateTime

PRIORITIES = ("high", "medium", "low")
RECURRENCE_PATTERNS = ("daily", "weekly", "monthly", "yearly")


class Todo(BaseModel):
    __tablename__ = "todos"
    __table_args__ = (
        CheckConstraint("priority IN ('high', 'medium', 'low')", name="ck_todos_priority"),
        CheckConstraint(
            "recurrence_pattern IS NULL OR "
            "recurrence_pattern IN ('daily', 'weekly', 'monthly', 'yearly')",
            name="ck_todos_recurrence_pattern",
        ),
        Index("idx_todos_user_id", "user_id"),
        Index("idx_todos_due_date", "due_date"),
        Index("idx_todos_priority", "user_id", "priority"),
    )

    user_id = Column(Integer, nullable=False)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(String(10), nullable=False, default="medium")
    due_date = Column(UTCDateTime())
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(UTCDateTime())
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurrence_pattern = Column(String(10))
    reminder_minutes = Column(Integer)
    last_notification_sent = Column(UTCDateTime())

    # Relationships
    subtasks = relationship(
        "Subtask",
        back_populates="todo",
        cascade="all, delete-orphan",
        order_by="[Subtask.position, Subtask.id]",
    )
    tags = relationship(
        "Tag",
        secondary="todo_tags",
        back_populates="todos",
    )

    def __repr__(self) -> str:
        return f"<Todo id={self.id} user_id={self.user_id} priority={self.priority}>"
