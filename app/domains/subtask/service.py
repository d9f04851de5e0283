"""Subtask service layer.

Subtask positions for a todo always form the dense sequence 1..N. Every
structural change (insert, delete, import) renumbers the todo's subtasks
inside the same transaction.
"""

import logging
from typing import Any, List, Optional, Tuple

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import Session

from app.database import atomic, flush_or_raise
from app.exceptions.base import ValidationError
from app.exceptions.todo import SubtaskNotFoundError, TodoNotFoundError
from app.schemas.subtask import SubtaskCreate, SubtaskProgress
from models.subtask import Subtask
from models.todo import Todo

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200


def clean_subtask_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Subtask title is required", details={"field": "title"})
    title = title.strip()
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            f"Subtask title must be {TITLE_MAX_LENGTH} characters or less",
            details={"field": "title"},
        )
    return title


class SubtaskService:
    """Service class for ordered subtasks."""

    def __init__(self, db: Session):
        self.db = db

    def list_subtasks(self, todo_id: int, user_id: int) -> Tuple[List[Subtask], SubtaskProgress]:
        self._get_owned_todo(todo_id, user_id)
        subtasks = self._ordered(todo_id)
        return subtasks, self._progress_of(subtasks)

    def create_subtask(
        self, todo_id: int, user_id: int, subtask_data: SubtaskCreate
    ) -> Tuple[Subtask, SubtaskProgress]:
        """
        Add a subtask.

        Without a position the subtask is appended. A given position is
        clamped to [1, count + 1] and every subtask at or after it moves down
        one place.
        """
        title = clean_subtask_title(subtask_data.title)
        position = subtask_data.position
        if position is not None and (isinstance(position, bool) or position < 0):
            raise ValidationError(
                "Position must be a non-negative integer", details={"field": "position"}
            )

        self._get_owned_todo(todo_id, user_id)
        with atomic(self.db):
            siblings = self._ordered(todo_id)
            count = len(siblings)
            if position is None:
                position = count + 1
            position = max(1, min(position, count + 1))

            for sibling in siblings:
                if sibling.position >= position:
                    sibling.position += 1

            subtask = Subtask(todo_id=todo_id, title=title, position=position, is_completed=False)
            self.db.add(subtask)
            flush_or_raise(self.db, "create subtask")
            self.renumber(todo_id)

        logger.info(f"Created subtask {subtask.id} on todo {todo_id}")
        return subtask, self.get_progress(todo_id)

    def add_subtask(
        self, todo_id: int, title: Any, position: int, is_completed: bool = False
    ) -> Subtask:
        """Insert a subtask row as-is; the caller renumbers afterwards."""
        subtask = Subtask(
            todo_id=todo_id,
            title=clean_subtask_title(title),
            position=position,
            is_completed=bool(is_completed),
        )
        with atomic(self.db):
            self.db.add(subtask)
            flush_or_raise(self.db, "create subtask")
        return subtask

    def delete_subtask(self, subtask_id: int, user_id: int) -> SubtaskProgress:
        """Remove a subtask and close the gap it leaves."""
        subtask = self._get_owned_subtask(subtask_id, user_id)
        todo_id = subtask.todo_id
        with atomic(self.db):
            self.db.delete(subtask)
            flush_or_raise(self.db, "delete subtask")
            self.renumber(todo_id)

        logger.info(f"Deleted subtask {subtask_id} from todo {todo_id}")
        return self.get_progress(todo_id)

    def toggle_subtask(
        self, subtask_id: int, user_id: int, completed: Optional[bool] = None
    ) -> Tuple[Subtask, SubtaskProgress]:
        """Set completion, or flip it when ``completed`` is omitted."""
        subtask = self._get_owned_subtask(subtask_id, user_id)
        with atomic(self.db):
            subtask.is_completed = (not subtask.is_completed) if completed is None else bool(completed)
            flush_or_raise(self.db, "update subtask")
        return subtask, self.get_progress(subtask.todo_id)

    def update_title(
        self, subtask_id: int, user_id: int, title: Any
    ) -> Tuple[Subtask, SubtaskProgress]:
        subtask = self._get_owned_subtask(subtask_id, user_id)
        with atomic(self.db):
            subtask.title = clean_subtask_title(title)
            flush_or_raise(self.db, "update subtask")
        return subtask, self.get_progress(subtask.todo_id)

    def get_progress(self, todo_id: int) -> SubtaskProgress:
        total, completed = self.db.execute(
            select(
                func.count(Subtask.id),
                func.coalesce(func.sum(case((Subtask.is_completed.is_(True), 1), else_=0)), 0),
            ).where(Subtask.todo_id == todo_id)
        ).one()
        return SubtaskProgress.from_counts(int(completed), int(total))

    def renumber(self, todo_id: int) -> None:
        """Rewrite positions to 1..N, keeping the current relative order."""
        with atomic(self.db):
            for index, subtask in enumerate(self._ordered(todo_id), start=1):
                if subtask.position != index:
                    subtask.position = index
            flush_or_raise(self.db, "renumber subtasks")

    # Private helper methods

    def _ordered(self, todo_id: int) -> List[Subtask]:
        query = (
            select(Subtask)
            .where(Subtask.todo_id == todo_id)
            .order_by(Subtask.position.asc(), Subtask.id.asc())
        )
        return list(self.db.execute(query).scalars().all())

    @staticmethod
    def _progress_of(subtasks: List[Subtask]) -> SubtaskProgress:
        completed = sum(1 for s in subtasks if s.is_completed)
        return SubtaskProgress.from_counts(completed, len(subtasks))

    def _get_owned_todo(self, todo_id: int, user_id: int) -> Todo:
        todo = self.db.execute(
            select(Todo).where(and_(Todo.id == todo_id, Todo.user_id == user_id))
        ).scalar_one_or_none()
        if not todo:
            raise TodoNotFoundError(todo_id=todo_id)
        return todo

    def _get_owned_subtask(self, subtask_id: int, user_id: int) -> Subtask:
        query = (
            select(Subtask)
            .join(Todo, Todo.id == Subtask.todo_id)
            .where(and_(Subtask.id == subtask_id, Todo.user_id == user_id))
        )
        subtask = self.db.execute(query).scalar_one_or_none()
        if not subtask:
            raise SubtaskNotFoundError(subtask_id=subtask_id)
        return subtask
