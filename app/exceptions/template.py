"""Template-related exceptions."""

from .base import NameConflictError, NotFoundError


class TemplateNotFoundError(NotFoundError):
    """Raised when a template is not found or not owned by the caller."""

    def __init__(self, message: str = "Template not found", template_id: int | None = None):
        details = {"template_id": template_id} if template_id is not None else None
        super().__init__(message=message, details=details, error_code="TEMPLATE_NOT_FOUND")


class DuplicateTemplateError(NameConflictError):
    """Raised when a template name is already used by the same owner."""

    def __init__(self, name: str):
        super().__init__(message="A template with this name already exists", details={"name": name})
