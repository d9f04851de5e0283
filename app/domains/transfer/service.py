"""Export and import of a user's todo graph.

An export is a versioned :class:`~app.schemas.snapshot.Snapshot` carrying the
store-local ids of every todo, subtask, tag and todo/tag link. Importing merges
such a snapshot into the live store for another (or the same) owner: tags are
reused by case-insensitive name, every todo and subtask gets a fresh id, and
links are rebuilt through the old-to-new id maps. Entries that cannot be
resolved are skipped and logged; everything else is applied in one
transaction.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.database import atomic, flush_or_raise
from app.domains.subtask.service import SubtaskService, clean_subtask_title
from app.domains.tag.service import (
    DESCRIPTION_MAX_LENGTH,
    TagService,
    clean_tag_description,
    clean_tag_name,
)
from app.domains.todo.service import TodoService, clean_description, clean_title
from app.domains.transfer.reconcile import (
    decide_tag,
    parse_instant,
    resolve_ref,
    sanitize_color,
    sanitize_schedule,
)
from app.exceptions.base import ValidationError
from app.exceptions.transfer import UnsupportedVersionError
from app.schemas.snapshot import (
    Snapshot,
    SnapshotSubtask,
    SnapshotTag,
    SnapshotTodo,
    SnapshotTodoTag,
)
from app.shared.timezone import isoformat_civil, now_utc
from models.subtask import Subtask
from models.tag import Tag, todo_tags
from models.todo import Todo

logger = logging.getLogger(__name__)

CSV_COLUMNS = [
    "id",
    "title",
    "description",
    "priority",
    "is_completed",
    "due_date",
    "is_recurring",
    "recurrence_pattern",
    "reminder_minutes",
    "created_at",
    "updated_at",
    "tag_names",
    "subtask_titles",
]

_COLLECTIONS = (
    ("todos", "todos"),
    ("subtasks", "subtasks"),
    ("tags", "tags"),
    ("todoTags", "todo_tags"),
)


@dataclass
class ImportResult:
    """Ids of the rows an import created. Reused tags are not listed."""

    created_todo_ids: List[int] = field(default_factory=list)
    created_subtask_ids: List[int] = field(default_factory=list)
    created_tag_ids: List[int] = field(default_factory=list)

    @property
    def todos_created(self) -> int:
        return len(self.created_todo_ids)

    @property
    def subtasks_created(self) -> int:
        return len(self.created_subtask_ids)

    @property
    def tags_created(self) -> int:
        return len(self.created_tag_ids)


class TransferService:
    """Service class for snapshot export/import and CSV export."""

    def __init__(self, db: Session):
        self.db = db
        self.todos = TodoService(db)
        self.tags = TagService(db)
        self.subtasks = SubtaskService(db)

    # Export

    def export_snapshot(self, user_id: int) -> Snapshot:
        todos = self._owned_todos(user_id)
        todo_ids = [todo.id for todo in todos]

        subtasks: List[Subtask] = []
        links: List[Tuple[int, int]] = []
        if todo_ids:
            subtasks = list(
                self.db.execute(
                    select(Subtask)
                    .where(Subtask.todo_id.in_(todo_ids))
                    .order_by(Subtask.todo_id, Subtask.position, Subtask.id)
                ).scalars()
            )
            links = [
                (row.todo_id, row.tag_id)
                for row in self.db.execute(
                    select(todo_tags.c.todo_id, todo_tags.c.tag_id)
                    .where(todo_tags.c.todo_id.in_(todo_ids))
                    .order_by(todo_tags.c.todo_id, todo_tags.c.tag_id)
                )
            ]
        tags = self.db.execute(
            select(Tag).where(Tag.user_id == user_id).order_by(Tag.id)
        ).scalars()

        return Snapshot(
            version=settings.export_version,
            generated_at=now_utc(),
            todos=[SnapshotTodo.model_validate(todo) for todo in todos],
            subtasks=[SnapshotSubtask.model_validate(subtask) for subtask in subtasks],
            tags=[SnapshotTag.model_validate(tag) for tag in tags],
            todo_tags=[SnapshotTodoTag(todo_id=t, tag_id=g) for t, g in links],
        )

    def export_json(self, user_id: int) -> str:
        return self.export_snapshot(user_id).model_dump_json(by_alias=True, indent=2)

    def export_csv(self, user_id: int) -> str:
        """Todos as CSV with civil-zone timestamps and ``;``-joined tags and subtasks."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_COLUMNS)
        for todo in self._owned_todos(user_id, with_relations=True):
            tag_names = sorted((tag.name for tag in todo.tags), key=str.lower)
            writer.writerow(
                [
                    todo.id,
                    todo.title,
                    todo.description,
                    todo.priority,
                    todo.is_completed,
                    isoformat_civil(todo.due_date),
                    todo.is_recurring,
                    todo.recurrence_pattern or "",
                    "" if todo.reminder_minutes is None else todo.reminder_minutes,
                    isoformat_civil(todo.created_at),
                    isoformat_civil(todo.updated_at),
                    ";".join(tag_names),
                    ";".join(subtask.title for subtask in todo.subtasks),
                ]
            )
        return buffer.getvalue()

    # Import

    def import_json(self, user_id: int, raw: Union[str, bytes]) -> ImportResult:
        """Parse and import a JSON snapshot, enforcing the size limit first."""
        data = raw.encode("utf-8") if isinstance(raw, str) else raw
        if len(data) > settings.max_import_bytes:
            raise ValidationError(
                "Import file is too large",
                details={"max_bytes": settings.max_import_bytes, "size": len(data)},
            )
        try:
            payload = json.loads(data)
        except ValueError as e:
            raise ValidationError("Invalid JSON in import file") from e
        return self.import_snapshot(user_id, payload)

    def import_snapshot(self, user_id: int, payload: Union[Dict[str, Any], Snapshot]) -> ImportResult:
        """
        Merge a snapshot into ``user_id``'s store.

        The version is checked before anything is written. Malformed or
        unresolvable entries are skipped; all created rows commit together or
        not at all.
        """
        if isinstance(payload, Snapshot):
            payload = payload.model_dump(by_alias=True)
        collections = self._validate_structure(payload)

        result = ImportResult()
        with atomic(self.db):
            tag_map = self._import_tags(user_id, collections["tags"], result)
            todo_map = self._import_todos(user_id, collections["todos"], result)
            self._import_subtasks(collections["subtasks"], todo_map, result)
            self._import_links(collections["todo_tags"], todo_map, tag_map)

        logger.info(
            f"Imported snapshot for user {user_id}: {result.todos_created} todos, "
            f"{result.subtasks_created} subtasks, {result.tags_created} tags"
        )
        return result

    # Private helper methods

    def _owned_todos(self, user_id: int, with_relations: bool = False) -> List[Todo]:
        query = select(Todo).where(Todo.user_id == user_id).order_by(Todo.id)
        if with_relations:
            query = query.options(
                selectinload(Todo.tags), selectinload(Todo.subtasks)
            ).execution_options(populate_existing=True)
        return list(self.db.execute(query).scalars().all())

    def _validate_structure(self, payload: Any) -> Dict[str, List[Any]]:
        if not isinstance(payload, dict):
            raise ValidationError("Invalid snapshot format")

        version = payload.get("version")
        if not isinstance(version, str) or not version:
            raise ValidationError("Snapshot version is required", details={"field": "version"})
        if version != settings.export_version:
            raise UnsupportedVersionError(version, settings.export_version)

        generated_at = payload.get("generatedAt", payload.get("generated_at"))
        if parse_instant(generated_at) is None:
            raise ValidationError(
                "generatedAt must be an ISO string", details={"field": "generatedAt"}
            )

        collections = {}
        for alias, name in _COLLECTIONS:
            value = payload.get(alias, payload.get(name))
            if not isinstance(value, list):
                raise ValidationError(
                    "Snapshot is missing required collections", details={"field": alias}
                )
            collections[name] = value
        return collections

    def _import_tags(
        self, user_id: int, entries: List[Any], result: ImportResult
    ) -> Dict[int, int]:
        existing = self.tags.find_by_lower_name(user_id)
        tag_map: Dict[int, int] = {}
        for raw in entries:
            try:
                entry = SnapshotTag.model_validate(raw)
                decision = decide_tag(clean_tag_name(entry.name), existing)
            except (PydanticValidationError, ValidationError) as e:
                logger.warning(f"Skipping tag entry during import: {_reason(e)}")
                continue

            if decision.reuse:
                tag_map[entry.id] = decision.existing_id
                continue

            description = entry.description.strip()[:DESCRIPTION_MAX_LENGTH] if entry.description else None
            tag = Tag(
                user_id=user_id,
                name=decision.name,
                color=sanitize_color(entry.color),
                description=clean_tag_description(description),
            )
            self.db.add(tag)
            flush_or_raise(self.db, "import tag")
            existing[decision.name.lower()] = tag.id
            tag_map[entry.id] = tag.id
            result.created_tag_ids.append(tag.id)
        return tag_map

    def _import_todos(
        self, user_id: int, entries: List[Any], result: ImportResult
    ) -> Dict[int, int]:
        todo_map: Dict[int, int] = {}
        for raw in entries:
            try:
                entry = SnapshotTodo.model_validate(raw)
                title = clean_title(entry.title)
                description = clean_description(entry.description)
            except (PydanticValidationError, ValidationError) as e:
                logger.warning(f"Skipping todo entry during import: {_reason(e)}")
                continue

            schedule = sanitize_schedule(
                entry.priority,
                entry.is_recurring,
                entry.recurrence_pattern,
                entry.due_date,
                entry.reminder_minutes,
            )
            todo = self.todos.add_todo(
                user_id,
                title=title,
                description=description,
                priority=schedule.priority,
                due_date=schedule.due_date,
                is_recurring=schedule.is_recurring,
                recurrence_pattern=schedule.recurrence_pattern,
                reminder_minutes=schedule.reminder_minutes,
                is_completed=entry.is_completed,
                completed_at=entry.completed_at or (now_utc() if entry.is_completed else None),
                last_notification_sent=entry.last_notification_sent,
            )
            todo_map[entry.id] = todo.id
            result.created_todo_ids.append(todo.id)
        return todo_map

    def _import_subtasks(
        self, entries: List[Any], todo_map: Dict[int, int], result: ImportResult
    ) -> None:
        parents: Set[int] = set()
        for raw in entries:
            try:
                entry = SnapshotSubtask.model_validate(raw)
                title = clean_subtask_title(entry.title)
            except (PydanticValidationError, ValidationError) as e:
                logger.warning(f"Skipping subtask entry during import: {_reason(e)}")
                continue

            parent_id = resolve_ref(entry.todo_id, todo_map)
            if parent_id is None:
                logger.warning(
                    f"Skipping subtask {entry.id} during import: unknown todo {entry.todo_id}"
                )
                continue

            subtask = self.subtasks.add_subtask(
                parent_id, title, entry.position, is_completed=entry.is_completed
            )
            parents.add(parent_id)
            result.created_subtask_ids.append(subtask.id)

        for parent_id in sorted(parents):
            self.subtasks.renumber(parent_id)

    def _import_links(
        self, entries: List[Any], todo_map: Dict[int, int], tag_map: Dict[int, int]
    ) -> None:
        seen: Set[Tuple[int, int]] = set()
        for raw in entries:
            try:
                entry = SnapshotTodoTag.model_validate(raw)
            except PydanticValidationError as e:
                logger.warning(f"Skipping todo/tag link during import: {_reason(e)}")
                continue

            todo_id = resolve_ref(entry.todo_id, todo_map)
            tag_id = resolve_ref(entry.tag_id, tag_map)
            if todo_id is None or tag_id is None:
                logger.warning(
                    f"Skipping todo/tag link {entry.todo_id}->{entry.tag_id}: unresolved reference"
                )
                continue
            if (todo_id, tag_id) in seen:
                continue
            seen.add((todo_id, tag_id))
            self.db.execute(todo_tags.insert().values(todo_id=todo_id, tag_id=tag_id))


def _reason(error: Exception) -> str:
    if isinstance(error, PydanticValidationError):
        return "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in error.errors()
        )
    return str(error)
