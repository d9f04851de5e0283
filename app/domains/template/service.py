"""Template service layer: saved blueprints and their materialization into todos."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.database import atomic, flush_or_raise
from app.domains.subtask.service import SubtaskService, clean_subtask_title
from app.domains.tag.service import TagService
from app.domains.todo.service import (
    TodoService,
    clean_description,
    clean_title,
    validate_priority,
    validate_recurrence_pattern,
    validate_reminder,
)
from app.exceptions.base import ValidationError
from app.exceptions.template import DuplicateTemplateError, TemplateNotFoundError
from app.exceptions.todo import InvalidTodoOperationError
from app.schemas.template import (
    TemplateCreate,
    TemplateSubtaskDefinition,
    TemplateUpdate,
    TemplateUse,
)
from app.shared.timezone import civil_zone, is_future, now_civil, now_utc, to_utc
from models.template import Template
from models.todo import Todo

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 80
CATEGORY_MAX_LENGTH = 80
DESCRIPTION_MAX_LENGTH = 2000


@dataclass
class TemplateUseResult:
    """The todo created from a template and the referenced tags that no longer exist."""

    todo: Todo
    missing_tag_ids: List[int] = field(default_factory=list)


def _optional_text(value: Any, field_name: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    if len(value) > max_length:
        raise ValidationError(
            f"{field_name.capitalize()} must be {max_length} characters or less",
            details={"field": field_name},
        )
    return value or None


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def clean_template_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Template name is required", details={"field": "name"})
    name = name.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"Template name must be {NAME_MAX_LENGTH} characters or less",
            details={"field": "name"},
        )
    return name


def clean_due_offset(value: Any) -> Optional[int]:
    if value is None:
        return None
    if not _is_int(value) or value < 0:
        raise ValidationError(
            "Due offset must be a non-negative integer", details={"field": "due_offset_days"}
        )
    return value


def clean_estimated_duration(value: Any) -> Optional[int]:
    if value is None:
        return None
    if not _is_int(value) or value <= 0:
        raise ValidationError(
            "Estimated duration must be a positive integer",
            details={"field": "estimated_duration_minutes"},
        )
    return value


def normalize_subtask_definitions(
    definitions: List[TemplateSubtaskDefinition],
) -> List[Dict[str, Any]]:
    """Drop blank titles, order by the given position and renumber 1..N."""
    kept = []
    for index, definition in enumerate(definitions):
        if not definition.title or not definition.title.strip():
            continue
        kept.append((definition.position, index, clean_subtask_title(definition.title)))
    kept.sort(key=lambda item: (item[0], item[1]))
    return [
        {"title": title, "position": position}
        for position, (_, _, title) in enumerate(kept, start=1)
    ]


class TemplateService:
    """Service class for todo templates."""

    def __init__(self, db: Session):
        self.db = db
        self.todos = TodoService(db)
        self.tags = TagService(db)
        self.subtasks = SubtaskService(db)

    def create_template(self, template_data: TemplateCreate, user_id: int) -> Template:
        name = clean_template_name(template_data.name)
        values = {
            "description": _optional_text(
                template_data.description, "description", DESCRIPTION_MAX_LENGTH
            ),
            "category": _optional_text(template_data.category, "category", CATEGORY_MAX_LENGTH),
            "todo_title": clean_title(template_data.todo_title),
            "todo_description": clean_description(template_data.todo_description),
            "priority": validate_priority(template_data.priority),
            "recurrence_pattern": validate_recurrence_pattern(template_data.recurrence_pattern),
            "reminder_minutes": validate_reminder(template_data.reminder_minutes),
            "due_offset_days": clean_due_offset(template_data.due_offset_days),
            "estimated_duration_minutes": clean_estimated_duration(
                template_data.estimated_duration_minutes
            ),
            "subtasks_json": json.dumps(normalize_subtask_definitions(template_data.subtasks)),
        }

        with atomic(self.db):
            self._ensure_name_available(user_id, name)
            tags = self.tags.ensure_owned(user_id, template_data.tag_ids)
            template = Template(
                user_id=user_id,
                name=name,
                tag_ids_json=json.dumps([tag.id for tag in tags]),
                **values,
            )
            self.db.add(template)
            flush_or_raise(self.db, "create template")

        logger.info(f"Created template {template.id} for user {user_id}")
        return template

    def get_template(self, template_id: int, user_id: int) -> Optional[Template]:
        query = select(Template).where(
            and_(Template.id == template_id, Template.user_id == user_id)
        )
        return self.db.execute(query).scalar_one_or_none()

    def get_template_or_404(self, template_id: int, user_id: int) -> Template:
        template = self.get_template(template_id, user_id)
        if not template:
            raise TemplateNotFoundError(template_id=template_id)
        return template

    def list_templates(self, user_id: int) -> List[Template]:
        """Templates ordered by category, then name, both ignoring case."""
        query = (
            select(Template)
            .where(Template.user_id == user_id)
            .order_by(
                func.lower(func.coalesce(Template.category, "")),
                func.lower(Template.name),
                Template.id,
            )
        )
        return list(self.db.execute(query).scalars().all())

    def update_template(
        self, template_id: int, template_data: TemplateUpdate, user_id: int
    ) -> Template:
        """Apply the fields present in the payload, validating each one."""
        template = self.get_template_or_404(template_id, user_id)
        update_data = template_data.model_dump(exclude_unset=True, exclude_none=False)

        with atomic(self.db):
            if "name" in update_data:
                name = clean_template_name(update_data["name"])
                if name.lower() != template.name.lower():
                    self._ensure_name_available(user_id, name, exclude_id=template.id)
                template.name = name
            if "description" in update_data:
                template.description = _optional_text(
                    update_data["description"], "description", DESCRIPTION_MAX_LENGTH
                )
            if "category" in update_data:
                template.category = _optional_text(
                    update_data["category"], "category", CATEGORY_MAX_LENGTH
                )
            if "todo_title" in update_data:
                template.todo_title = clean_title(update_data["todo_title"])
            if "todo_description" in update_data:
                template.todo_description = clean_description(update_data["todo_description"])
            if "priority" in update_data:
                template.priority = validate_priority(update_data["priority"])
            if "recurrence_pattern" in update_data:
                template.recurrence_pattern = validate_recurrence_pattern(
                    update_data["recurrence_pattern"]
                )
            if "reminder_minutes" in update_data:
                template.reminder_minutes = validate_reminder(update_data["reminder_minutes"])
            if "due_offset_days" in update_data:
                template.due_offset_days = clean_due_offset(update_data["due_offset_days"])
            if "estimated_duration_minutes" in update_data:
                template.estimated_duration_minutes = clean_estimated_duration(
                    update_data["estimated_duration_minutes"]
                )
            if "tag_ids" in update_data:
                tags = self.tags.ensure_owned(user_id, template_data.tag_ids or [])
                template.tag_ids_json = json.dumps([tag.id for tag in tags])
            if "subtasks" in update_data:
                template.subtasks_json = json.dumps(
                    normalize_subtask_definitions(template_data.subtasks or [])
                )
            flush_or_raise(self.db, "update template")

        logger.info(f"Updated template {template.id} for user {user_id}")
        return template

    def delete_template(self, template_id: int, user_id: int) -> bool:
        template = self.get_template_or_404(template_id, user_id)
        with atomic(self.db):
            self.db.delete(template)
            flush_or_raise(self.db, "delete template")
        logger.info(f"Deleted template {template_id} for user {user_id}")
        return True

    def use_template(
        self, template_id: int, user_id: int, use_data: Optional[TemplateUse] = None
    ) -> TemplateUseResult:
        """
        Create a todo, its tag links and its subtasks from a template.

        An explicit due instant wins and must be at least a minute ahead.
        Otherwise the due instant is now plus the offset in days, nudged a few
        minutes forward when that is not in the future. Tags that no longer
        exist are reported in ``missing_tag_ids``. Everything happens in one
        transaction.
        """
        template = self.get_template_or_404(template_id, user_id)
        use_data = use_data or TemplateUse()

        due_date = self._resolve_due_date(template, use_data)
        if due_date is None and (template.recurrence_pattern or template.reminder_minutes):
            raise InvalidTodoOperationError(
                "A due date is required for templates with recurrence or reminders"
            )

        with atomic(self.db):
            todo = self.todos.add_todo(
                user_id,
                title=template.todo_title,
                description=template.todo_description,
                priority=template.priority,
                due_date=due_date,
                is_recurring=bool(template.recurrence_pattern),
                recurrence_pattern=template.recurrence_pattern,
                reminder_minutes=template.reminder_minutes,
            )

            tags, missing_tag_ids = self.tags.find_owned(user_id, template.tag_ids)
            if tags:
                self.tags.attach_many(todo.id, [tag.id for tag in tags], user_id)

            for definition in template.subtasks:
                title = definition.get("title")
                if not isinstance(title, str) or not title.strip():
                    continue
                position = definition.get("position")
                self.subtasks.add_subtask(
                    todo.id, title, position if _is_int(position) else 0
                )
            self.subtasks.renumber(todo.id)

        if missing_tag_ids:
            logger.warning(
                f"Template {template_id} references missing tags {missing_tag_ids}"
            )
        logger.info(f"Created todo {todo.id} from template {template_id} for user {user_id}")
        return TemplateUseResult(todo=todo, missing_tag_ids=missing_tag_ids)

    # Private helper methods

    def _resolve_due_date(self, template: Template, use_data: TemplateUse) -> Optional[datetime]:
        if use_data.due_date is not None:
            due_date = to_utc(use_data.due_date)
            if not is_future(due_date):
                raise ValidationError(
                    "Due date must be at least 1 minute in the future",
                    details={"field": "due_date"},
                )
            return due_date

        offset = use_data.due_offset_days
        if offset is None:
            offset = template.due_offset_days
        offset = clean_due_offset(offset)
        if offset is None:
            return None

        local = now_civil().replace(tzinfo=None) + timedelta(days=offset)
        due_date = to_utc(local.replace(tzinfo=civil_zone()))
        if not is_future(due_date, now=now_utc()):
            due_date += timedelta(minutes=settings.template_due_nudge_minutes)
        return due_date

    def _ensure_name_available(
        self, user_id: int, name: str, exclude_id: Optional[int] = None
    ) -> None:
        query = select(Template.id).where(
            and_(Template.user_id == user_id, func.lower(Template.name) == name.lower())
        )
        if exclude_id is not None:
            query = query.where(Template.id != exclude_id)
        if self.db.execute(query).first() is not None:
            raise DuplicateTemplateError(name)
