"""Tag-related exceptions."""

from .base import NameConflictError, NotFoundError


class TagNotFoundError(NotFoundError):
    """Raised when a tag is not found or not owned by the caller."""

    def __init__(self, message: str = "Tag not found", tag_id: int | None = None):
        details = {"tag_id": tag_id} if tag_id is not None else None
        super().__init__(message=message, details=details, error_code="TAG_NOT_FOUND")


class DuplicateTagError(NameConflictError):
    """Raised when a tag name (compared case-insensitively) is already used."""

    def __init__(self, name: str):
        super().__init__(message="Tag name already exists", details={"name": name})
