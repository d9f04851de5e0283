"""Todo- and subtask-related exceptions."""

from .base import BaseAppException, NotFoundError


class TodoNotFoundError(NotFoundError):
    """Raised when a todo is not found."""

    def __init__(self, message: str = "Todo not found", todo_id: int | None = None):
        details = {"todo_id": todo_id} if todo_id is not None else None
        super().__init__(message=message, details=details, error_code="TODO_NOT_FOUND")


class SubtaskNotFoundError(NotFoundError):
    """Raised when a subtask is not found or its todo belongs to someone else."""

    def __init__(self, message: str = "Subtask not found", subtask_id: int | None = None):
        details = {"subtask_id": subtask_id} if subtask_id is not None else None
        super().__init__(message=message, details=details, error_code="SUBTASK_NOT_FOUND")


class InvalidTodoOperationError(BaseAppException):
    """Raised when an invalid operation is performed on a todo."""

    def __init__(self, message: str = "Invalid todo operation"):
        super().__init__(message=message, status_code=400, error_code="INVALID_TODO_OPERATION")
