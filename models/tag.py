"""
Tag model and the todo/tag association table.
"""

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Table, func
from sqlalchemy.orm import relationship

from .base import Base, BaseModel

todo_tags = Table(
    "todo_tags",
    Base.metadata,
    Column("todo_id", Integer, ForeignKey("todos.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
    Index("idx_todo_tags_tag", "tag_id"),
)


class Tag(BaseModel):
    """
    Represents a user-defined label that can be attached to many todos.

    Names are unique per user regardless of case; the colour is stored as an
    upper-case ``#RRGGBB`` string.
    """

    __tablename__ = "tags"

    user_id = Column(Integer, nullable=False)
    name = Column(String(50), nullable=False)
    color = Column(String(7), nullable=False)
    description = Column(String(200))

    # Relationships
    todos = relationship(
        "Todo",
        secondary=todo_tags,
        back_populates="tags",
    )

    def __repr__(self) -> str:
        return f"<Tag id={self.id} user_id={self.user_id}>"


Index("uq_tags_user_lower_name", Tag.user_id, func.lower(Tag.name), unique=True)
Index("idx_tags_user", Tag.user_id)
