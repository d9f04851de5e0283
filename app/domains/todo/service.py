"""Todo service layer with business logic."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, case, select
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.database import atomic, flush_or_raise
from app.domains.tag.service import TagService
from app.exceptions.base import ConstraintViolationError, ValidationError
from app.exceptions.todo import InvalidTodoOperationError, TodoNotFoundError
from app.schemas.subtask import SubtaskProgress, SubtaskResponse
from app.schemas.tag import TagResponse
from app.schemas.todo import ReminderNotice, TodoCreate, TodoUpdate, TodoWithRelations
from app.shared.recurrence import next_due_date
from app.shared.timezone import is_future, month_bounds, now_utc, to_utc
from models.todo import PRIORITIES, RECURRENCE_PATTERNS, Todo

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 2000

_PRIORITY_RANK = case(
    {"high": 0, "medium": 1, "low": 2},
    value=Todo.priority,
    else_=3,
)

# Incomplete first, then priority rank, then due instant with undated last,
# then creation order.
TODO_ORDERING = (
    Todo.is_completed.asc(),
    _PRIORITY_RANK,
    Todo.due_date.is_(None),
    Todo.due_date.asc(),
    Todo.created_at.asc(),
    Todo.id.asc(),
)


def validate_priority(priority: Any) -> str:
    if priority not in PRIORITIES:
        raise ConstraintViolationError(
            "Priority must be high, medium, or low",
            details={"field": "priority", "value": priority},
        )
    return priority


def validate_recurrence_pattern(pattern: Any) -> Optional[str]:
    if pattern is None:
        return None
    if pattern not in RECURRENCE_PATTERNS:
        raise ConstraintViolationError(
            "Invalid recurrence pattern",
            details={"field": "recurrence_pattern", "value": pattern},
        )
    return pattern


def validate_reminder(reminder_minutes: Any) -> Optional[int]:
    if reminder_minutes is None:
        return None
    if isinstance(reminder_minutes, bool) or reminder_minutes not in settings.reminder_options:
        raise ConstraintViolationError(
            "Invalid reminder option",
            details={"field": "reminder_minutes", "value": reminder_minutes},
        )
    return reminder_minutes


def clean_title(title: Any, max_length: int = TITLE_MAX_LENGTH) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required", details={"field": "title"})
    title = title.strip()
    if len(title) > max_length:
        raise ValidationError(
            f"Title must be {max_length} characters or less", details={"field": "title"}
        )
    return title


def clean_description(description: Any, max_length: int = DESCRIPTION_MAX_LENGTH) -> str:
    if description is None:
        return ""
    description = str(description).strip()
    if len(description) > max_length:
        raise ValidationError(
            f"Description must be {max_length} characters or less",
            details={"field": "description"},
        )
    return description


def check_schedule(
    is_recurring: bool,
    recurrence_pattern: Optional[str],
    due_date: Optional[datetime],
    reminder_minutes: Optional[int],
) -> None:
    """Recurrence needs a pattern and a due date; a reminder needs a due date."""
    if is_recurring and not recurrence_pattern:
        raise ValidationError(
            "Recurrence pattern is required for recurring todos",
            details={"field": "recurrence_pattern"},
        )
    if is_recurring and due_date is None:
        raise ValidationError(
            "Recurring todos require a due date", details={"field": "due_date"}
        )
    if reminder_minutes is not None and due_date is None:
        raise ValidationError(
            "Reminders require a due date", details={"field": "reminder_minutes"}
        )


def progress_for(todo: Todo) -> SubtaskProgress:
    subtasks = list(todo.subtasks)
    completed = sum(1 for s in subtasks if s.is_completed)
    return SubtaskProgress.from_counts(completed, len(subtasks))


@dataclass
class CompletionResult:
    """Outcome of a completion toggle; ``next_todo`` is the chained occurrence."""

    todo: Todo
    next_todo: Optional[Todo] = None


class TodoService:
    """Service class for todo business logic."""

    def __init__(self, db: Session):
        self.db = db

    def create_todo(self, todo_data: TodoCreate, user_id: int) -> Todo:
        """Create a new todo, attaching any owned tags in the same transaction."""

        due_date = to_utc(todo_data.due_date) if todo_data.due_date else None
        if due_date is not None and not is_future(due_date):
            raise ValidationError(
                "Due date must be at least 1 minute in the future",
                details={"field": "due_date"},
            )

        with atomic(self.db):
            todo = self.add_todo(
                user_id,
                title=todo_data.title,
                description=todo_data.description,
                priority=todo_data.priority,
                due_date=due_date,
                is_recurring=todo_data.is_recurring,
                recurrence_pattern=todo_data.recurrence_pattern,
                reminder_minutes=todo_data.reminder_minutes,
            )
            if todo_data.tag_ids:
                TagService(self.db).attach_many(todo.id, todo_data.tag_ids, user_id)

        logger.info(f"Created todo {todo.id} for user {user_id}")
        return todo

    def add_todo(
        self,
        user_id: int,
        *,
        title: Any,
        description: Any = None,
        priority: Any = "medium",
        due_date: Optional[datetime] = None,
        is_recurring: bool = False,
        recurrence_pattern: Any = None,
        reminder_minutes: Any = None,
        is_completed: bool = False,
        completed_at: Optional[datetime] = None,
        last_notification_sent: Optional[datetime] = None,
    ) -> Todo:
        """
        Insert a todo row without the "due in the future" check.

        Used directly by template materialization, recurrence chaining and
        import, which resolve their own due instants. Enumerations and the
        recurrence/reminder invariants are still enforced.
        """
        priority = validate_priority(priority)
        recurrence_pattern = validate_recurrence_pattern(recurrence_pattern)
        reminder_minutes = validate_reminder(reminder_minutes)
        if not is_recurring:
            recurrence_pattern = None
        check_schedule(is_recurring, recurrence_pattern, due_date, reminder_minutes)

        todo = Todo(
            user_id=user_id,
            title=clean_title(title),
            description=clean_description(description),
            priority=priority,
            due_date=due_date,
            is_completed=bool(is_completed),
            completed_at=completed_at if is_completed else None,
            is_recurring=bool(is_recurring),
            recurrence_pattern=recurrence_pattern,
            reminder_minutes=reminder_minutes,
            last_notification_sent=last_notification_sent,
        )
        with atomic(self.db):
            self.db.add(todo)
            flush_or_raise(self.db, "create todo")
        return todo

    def get_todo_by_id(self, todo_id: int, user_id: int) -> Optional[Todo]:
        """Get a todo by ID for a specific user, with tags and subtasks loaded."""
        return self._get_todo_by_id_and_user(todo_id, user_id, with_relations=True)

    def get_todo_or_404(self, todo_id: int, user_id: int) -> Todo:
        todo = self.get_todo_by_id(todo_id, user_id)
        if not todo:
            raise TodoNotFoundError(todo_id=todo_id)
        return todo

    def get_todos_list(self, user_id: int) -> List[Todo]:
        """All of the user's todos in display order."""
        query = (
            select(Todo)
            .options(selectinload(Todo.tags), selectinload(Todo.subtasks))
            .where(Todo.user_id == user_id)
            .order_by(*TODO_ORDERING)
        )
        return list(self.db.execute(query).scalars().all())

    def get_todos_for_month(self, user_id: int, year: int, month: int) -> List[Todo]:
        """Todos due within a civil calendar month, in display order."""
        start, end = month_bounds(year, month)
        query = (
            select(Todo)
            .options(selectinload(Todo.tags), selectinload(Todo.subtasks))
            .where(
                and_(
                    Todo.user_id == user_id,
                    Todo.due_date.is_not(None),
                    Todo.due_date >= start,
                    Todo.due_date < end,
                )
            )
            .order_by(*TODO_ORDERING)
        )
        return list(self.db.execute(query).scalars().all())

    def get_reminder_candidates(self, user_id: int) -> List[Todo]:
        """Incomplete todos that have both a due date and a reminder offset."""
        query = (
            select(Todo)
            .where(
                and_(
                    Todo.user_id == user_id,
                    Todo.is_completed.is_(False),
                    Todo.due_date.is_not(None),
                    Todo.reminder_minutes.is_not(None),
                )
            )
            .order_by(Todo.due_date.asc(), Todo.id.asc())
        )
        return list(self.db.execute(query).scalars().all())

    def get_due_reminders(
        self, user_id: int, now: Optional[datetime] = None
    ) -> List[ReminderNotice]:
        """Candidates whose reminder window is open and not yet notified."""
        now = to_utc(now) if now else now_utc()
        due = []
        for todo in self.get_reminder_candidates(user_id):
            window_start = todo.due_date - timedelta(minutes=todo.reminder_minutes)
            if not (window_start <= now < todo.due_date):
                continue
            if todo.last_notification_sent and todo.last_notification_sent >= window_start:
                continue
            due.append(ReminderNotice.model_validate(todo))
        return due

    def mark_notifications_sent(
        self, user_id: int, todo_ids: Iterable[int], sent_at: Optional[datetime] = None
    ) -> int:
        """Stamp "last notified" on the given todos; returns how many were updated."""
        ids = {todo_id for todo_id in todo_ids if isinstance(todo_id, int)}
        if not ids:
            return 0
        sent_at = to_utc(sent_at) if sent_at else now_utc()

        with atomic(self.db):
            todos = self.db.execute(
                select(Todo).where(and_(Todo.user_id == user_id, Todo.id.in_(ids)))
            ).scalars().all()
            for todo in todos:
                todo.last_notification_sent = sent_at
            flush_or_raise(self.db, "mark notifications")
        return len(todos)

    def update_todo(self, todo_id: int, todo_data: TodoUpdate, user_id: int) -> Todo:
        """
        Update a todo.

        Only fields present in the payload are applied and an explicit null
        clears the field. Clearing the due date also clears the reminder, the
        recurrence and the last notification. Changing the due date or the
        reminder re-arms the reminder.
        """

        todo = self._get_todo_by_id_and_user(todo_id, user_id)
        if not todo:
            raise TodoNotFoundError(todo_id=todo_id)

        # Include None values to allow unsetting fields
        update_data = todo_data.model_dump(exclude_unset=True, exclude_none=False)

        due_date = todo.due_date
        reminder_minutes = todo.reminder_minutes
        is_recurring = todo.is_recurring
        recurrence_pattern = todo.recurrence_pattern
        reset_notification = False

        # Nothing touches the ORM object until every field has been validated
        title = todo.title
        description = todo.description
        priority = todo.priority

        if "title" in update_data:
            title = clean_title(update_data["title"])
        if "description" in update_data:
            description = clean_description(update_data["description"])
        if "priority" in update_data:
            if update_data["priority"] is None:
                raise ConstraintViolationError(
                    "Priority cannot be cleared", details={"field": "priority"}
                )
            priority = validate_priority(update_data["priority"])

        if "due_date" in update_data:
            if update_data["due_date"] is None:
                due_date = None
                reminder_minutes = None
                is_recurring = False
                recurrence_pattern = None
                reset_notification = True
            else:
                new_due = to_utc(update_data["due_date"])
                if new_due != due_date:
                    if not is_future(new_due):
                        raise ValidationError(
                            "Due date must be at least 1 minute in the future",
                            details={"field": "due_date"},
                        )
                    due_date = new_due
                    reset_notification = True

        if "reminder_minutes" in update_data:
            new_reminder = validate_reminder(update_data["reminder_minutes"])
            if new_reminder != reminder_minutes:
                reset_notification = True
            reminder_minutes = new_reminder

        if "recurrence_pattern" in update_data:
            recurrence_pattern = validate_recurrence_pattern(update_data["recurrence_pattern"])
            if recurrence_pattern is None and "is_recurring" not in update_data:
                is_recurring = False
        if "is_recurring" in update_data:
            is_recurring = bool(update_data["is_recurring"])
        if not is_recurring:
            recurrence_pattern = None

        check_schedule(is_recurring, recurrence_pattern, due_date, reminder_minutes)

        with atomic(self.db):
            todo.title = title
            todo.description = description
            todo.priority = priority
            todo.due_date = due_date
            todo.reminder_minutes = reminder_minutes
            todo.is_recurring = is_recurring
            todo.recurrence_pattern = recurrence_pattern
            if reset_notification:
                todo.last_notification_sent = None
            flush_or_raise(self.db, "update todo")

        logger.info(f"Updated todo {todo.id} for user {user_id}")
        return todo

    def delete_todo(self, todo_id: int, user_id: int) -> bool:
        """Delete a todo together with its subtasks and tag links."""

        todo = self._get_todo_by_id_and_user(todo_id, user_id, with_relations=True)
        if not todo:
            raise TodoNotFoundError(todo_id=todo_id)

        with atomic(self.db):
            todo.tags.clear()
            self.db.delete(todo)
            flush_or_raise(self.db, "delete todo")

        logger.info(f"Deleted todo {todo_id} for user {user_id}")
        return True

    def toggle_complete(self, todo_id: int, user_id: int, completed: bool) -> CompletionResult:
        """
        Set or clear completion.

        Completing a recurring todo creates its next occurrence in the same
        transaction. Reopening a todo clears its last notification so it can
        remind again.
        """

        todo = self._get_todo_by_id_and_user(todo_id, user_id, with_relations=True)
        if not todo:
            raise TodoNotFoundError(todo_id=todo_id)

        result = CompletionResult(todo=todo)
        with atomic(self.db):
            if completed and not todo.is_completed:
                todo.is_completed = True
                todo.completed_at = now_utc()
                if todo.is_recurring and todo.recurrence_pattern and todo.due_date:
                    result.next_todo = self._create_next_occurrence(todo)
            elif not completed:
                todo.is_completed = False
                todo.completed_at = None
                todo.last_notification_sent = None
            flush_or_raise(self.db, "toggle todo completion")

        logger.info(f"Set todo {todo_id} completed={completed} for user {user_id}")
        return result

    def build_response(self, todo: Todo) -> TodoWithRelations:
        """Serialize a todo with its tags (sorted by name), subtasks and progress."""
        response = TodoWithRelations.model_validate(todo)
        response.tags = [
            TagResponse.model_validate(tag)
            for tag in sorted(todo.tags, key=lambda t: (t.name.lower(), t.id))
        ]
        response.subtasks = [SubtaskResponse.model_validate(s) for s in todo.subtasks]
        response.progress = progress_for(todo)
        return response

    def to_dict(self, todo: Todo) -> Dict[str, Any]:
        return self.build_response(todo).model_dump(mode="json")

    # Private helper methods

    def _get_todo_by_id_and_user(
        self, todo_id: int, user_id: int, with_relations: bool = False
    ) -> Optional[Todo]:
        """Get todo by ID and user ID."""
        query = select(Todo).where(and_(Todo.id == todo_id, Todo.user_id == user_id))
        if with_relations:
            query = query.options(
                selectinload(Todo.tags), selectinload(Todo.subtasks)
            ).execution_options(populate_existing=True)
        return self.db.execute(query).scalar_one_or_none()

    def _create_next_occurrence(self, todo: Todo) -> Todo:
        next_due = next_due_date(todo.due_date, todo.recurrence_pattern)
        if next_due is None:
            raise InvalidTodoOperationError("Unable to compute the next occurrence")

        next_todo = self.add_todo(
            todo.user_id,
            title=todo.title,
            description=todo.description,
            priority=todo.priority,
            due_date=next_due,
            is_recurring=True,
            recurrence_pattern=todo.recurrence_pattern,
            reminder_minutes=todo.reminder_minutes,
        )
        next_todo.tags.extend(todo.tags)
        flush_or_raise(self.db, "create next occurrence")
        logger.info(f"Created next occurrence {next_todo.id} of recurring todo {todo.id}")
        return next_todo
