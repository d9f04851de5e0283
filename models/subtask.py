"""
Subtask model: an ordered checklist entry belonging to a todo.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Subtask(BaseModel):
    """
    Represents one step of a todo.

    ``position`` is 1-based; for any todo the positions form a dense ``1..N``
    sequence which the subtask service maintains after every structural change.
    """

    __tablename__ = "subtasks"
    __table_args__ = (Index("idx_subtasks_todo_id", "todo_id"),)

    todo_id = Column(Integer, ForeignKey("todos.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(200), nullable=False)
    position = Column(Integer, nullable=False, default=1)
    is_completed = Column(Boolean, nullable=False, default=False)

    # Relationships
    todo = relationship("Todo", back_populates="subtasks")

    def __repr__(self) -> str:
        return f"<Subtask id={self.id} todo_id={self.todo_id} position={self.position}>"
