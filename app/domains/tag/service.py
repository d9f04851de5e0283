"""Tag service layer with business logic."""

import logging
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session, selectinload

from app.database import atomic, flush_or_raise
from app.exceptions.base import ValidationError
from app.exceptions.tag import DuplicateTagError, TagNotFoundError
from app.exceptions.todo import TodoNotFoundError
from app.schemas.tag import TagCreate, TagUpdate, TagWithCount
from app.shared.colors import normalize_hex_color
from models.tag import Tag, todo_tags
from models.todo import Todo

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 50
DESCRIPTION_MAX_LENGTH = 200


def clean_tag_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Tag name is required", details={"field": "name"})
    name = name.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"Tag name must be {NAME_MAX_LENGTH} characters or less",
            details={"field": "name"},
        )
    return name


def clean_tag_color(color: Any) -> str:
    normalized = normalize_hex_color(color)
    if normalized is None:
        raise ValidationError(
            "Color must be a valid hex code (e.g. #FF5733)",
            details={"field": "color", "value": color},
        )
    return normalized


def clean_tag_description(description: Any) -> Optional[str]:
    if description is None:
        return None
    description = str(description).strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be {DESCRIPTION_MAX_LENGTH} characters or less",
            details={"field": "description"},
        )
    return description or None


class TagService:
    """Service class for tags and the todo/tag association."""

    def __init__(self, db: Session):
        self.db = db

    def create_tag(self, tag_data: TagCreate, user_id: int) -> Tag:
        """Create a tag; names are unique per user regardless of case."""

        name = clean_tag_name(tag_data.name)
        color = clean_tag_color(tag_data.color)
        description = clean_tag_description(tag_data.description)

        with atomic(self.db):
            self._ensure_name_available(user_id, name)
            tag = Tag(user_id=user_id, name=name, color=color, description=description)
            self.db.add(tag)
            flush_or_raise(self.db, "create tag")

        logger.info(f"Created tag {tag.id} for user {user_id}")
        return tag

    def get_tag(self, tag_id: int, user_id: int) -> Optional[Tag]:
        query = select(Tag).where(and_(Tag.id == tag_id, Tag.user_id == user_id))
        return self.db.execute(query).scalar_one_or_none()

    def get_tag_or_404(self, tag_id: int, user_id: int) -> Tag:
        tag = self.get_tag(tag_id, user_id)
        if not tag:
            raise TagNotFoundError(tag_id=tag_id)
        return tag

    def list_tags(self, user_id: int) -> List[Tag]:
        """The user's tags ordered by name, ignoring case."""
        query = (
            select(Tag)
            .where(Tag.user_id == user_id)
            .order_by(func.lower(Tag.name), Tag.id)
        )
        return list(self.db.execute(query).scalars().all())

    def list_with_counts(self, user_id: int) -> List[TagWithCount]:
        """Tags with the number of todos each one is attached to."""
        query = (
            select(Tag, func.count(todo_tags.c.todo_id))
            .outerjoin(todo_tags, todo_tags.c.tag_id == Tag.id)
            .where(Tag.user_id == user_id)
            .group_by(Tag.id)
            .order_by(func.lower(Tag.name), Tag.id)
        )
        results = []
        for tag, count in self.db.execute(query).all():
            item = TagWithCount.model_validate(tag)
            item.todo_count = count
            results.append(item)
        return results

    def update_tag(self, tag_id: int, tag_data: TagUpdate, user_id: int) -> Tag:
        """Update a tag; an explicit null description clears it."""

        tag = self.get_tag_or_404(tag_id, user_id)
        update_data = tag_data.model_dump(exclude_unset=True, exclude_none=False)

        with atomic(self.db):
            if "name" in update_data:
                name = clean_tag_name(update_data["name"])
                if name.lower() != tag.name.lower():
                    self._ensure_name_available(user_id, name, exclude_id=tag.id)
                tag.name = name
            if "color" in update_data:
                tag.color = clean_tag_color(update_data["color"])
            if "description" in update_data:
                tag.description = clean_tag_description(update_data["description"])
            flush_or_raise(self.db, "update tag")

        logger.info(f"Updated tag {tag.id} for user {user_id}")
        return tag

    def delete_tag(self, tag_id: int, user_id: int) -> bool:
        """Delete a tag; its todo links go with it, the todos stay."""

        tag = self.get_tag_or_404(tag_id, user_id)
        with atomic(self.db):
            tag.todos.clear()
            self.db.delete(tag)
            flush_or_raise(self.db, "delete tag")

        logger.info(f"Deleted tag {tag_id} for user {user_id}")
        return True

    def ensure_owned(self, user_id: int, tag_ids: Iterable[int]) -> List[Tag]:
        """Return the tags for ``tag_ids``, raising if any is missing or not owned."""
        wanted = list(dict.fromkeys(tag_ids))
        if not wanted:
            return []
        found = {
            tag.id: tag
            for tag in self.db.execute(
                select(Tag).where(and_(Tag.user_id == user_id, Tag.id.in_(wanted)))
            ).scalars()
        }
        for tag_id in wanted:
            if tag_id not in found:
                raise TagNotFoundError("One or more tags not found", tag_id=tag_id)
        return [found[tag_id] for tag_id in wanted]

    def find_owned(self, user_id: int, tag_ids: Iterable[int]) -> Tuple[List[Tag], List[int]]:
        """Split ``tag_ids`` into the owned tags and the ids that do not resolve."""
        wanted = list(dict.fromkeys(tag_ids))
        found = {}
        if wanted:
            found = {
                tag.id: tag
                for tag in self.db.execute(
                    select(Tag).where(and_(Tag.user_id == user_id, Tag.id.in_(wanted)))
                ).scalars()
            }
        missing = [tag_id for tag_id in wanted if tag_id not in found]
        return [found[tag_id] for tag_id in wanted if tag_id in found], missing

    def list_tags_for_todo(self, todo_id: int, user_id: int) -> List[Tag]:
        todo = self._get_owned_todo(todo_id, user_id)
        return sorted(todo.tags, key=lambda t: (t.name.lower(), t.id))

    def attach_tag(self, todo_id: int, tag_id: int, user_id: int) -> List[Tag]:
        """Link a tag to a todo. Attaching an already linked tag is a no-op."""
        return self.attach_many(todo_id, [tag_id], user_id)

    def attach_many(self, todo_id: int, tag_ids: Iterable[int], user_id: int) -> List[Tag]:
        todo = self._get_owned_todo(todo_id, user_id)
        with atomic(self.db):
            tags = self.ensure_owned(user_id, tag_ids)
            linked = {tag.id for tag in todo.tags}
            for tag in tags:
                if tag.id not in linked:
                    todo.tags.append(tag)
                    linked.add(tag.id)
            flush_or_raise(self.db, "attach tag")
        return sorted(todo.tags, key=lambda t: (t.name.lower(), t.id))

    def detach_tag(self, todo_id: int, tag_id: int, user_id: int) -> List[Tag]:
        """Unlink a tag from a todo; both must exist and be owned."""
        todo = self._get_owned_todo(todo_id, user_id)
        tag = self.get_tag_or_404(tag_id, user_id)
        with atomic(self.db):
            if tag in todo.tags:
                todo.tags.remove(tag)
            flush_or_raise(self.db, "detach tag")
        return sorted(todo.tags, key=lambda t: (t.name.lower(), t.id))

    def find_by_lower_name(self, user_id: int) -> dict:
        """Map of lower-cased name to tag id for the user's tags."""
        rows = self.db.execute(
            select(Tag.id, Tag.name).where(Tag.user_id == user_id)
        ).all()
        return {name.lower(): tag_id for tag_id, name in rows}

    # Private helper methods

    def _get_owned_todo(self, todo_id: int, user_id: int) -> Todo:
        query = (
            select(Todo)
            .options(selectinload(Todo.tags))
            .where(and_(Todo.id == todo_id, Todo.user_id == user_id))
            .execution_options(populate_existing=True)
        )
        todo = self.db.execute(query).scalar_one_or_none()
        if not todo:
            raise TodoNotFoundError(todo_id=todo_id)
        return todo

    def _ensure_name_available(
        self, user_id: int, name: str, exclude_id: Optional[int] = None
    ) -> None:
        query = select(Tag.id).where(
            and_(Tag.user_id == user_id, func.lower(Tag.name) == name.lower())
        )
        if exclude_id is not None:
            query = query.where(Tag.id != exclude_id)
        if self.db.execute(query).first() is not None:
            raise DuplicateTagError(name)
