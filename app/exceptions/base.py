# ruff: noqa: D107
"""Base exception classes."""

from typing import Any

from fastapi import HTTPException


class BaseAppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={"message": message, "error_code": error_code, "details": self.details},
        )

    def __str__(self) -> str:
        return self.message


class NotFoundError(BaseAppException):
    """Exception raised when a resource is not found or not owned by the caller."""

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
        error_code: str = "NOT_FOUND",
    ):
        super().__init__(message=message, status_code=404, error_code=error_code, details=details)


class ValidationError(BaseAppException):
    """Exception raised when input is malformed or out of range."""

    def __init__(
        self,
        message: str = "Validation failed",
        details: dict[str, Any] | None = None,
        status_code: int = 400,
        error_code: str = "VALIDATION_ERROR",
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class ConstraintViolationError(ValidationError):
    """Exception raised when an enumeration or storage constraint is violated."""

    def __init__(
        self,
        message: str = "Constraint violated",
        details: dict[str, Any] | None = None,
        status_code: int = 400,
        error_code: str = "CONSTRAINT_VIOLATION",
    ):
        super().__init__(
            message=message,
            details=details,
            status_code=status_code,
            error_code=error_code,
        )


class NameConflictError(ConstraintViolationError):
    """Exception raised when a per-user unique name is already taken."""

    def __init__(
        self,
        message: str = "Name already exists",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            details=details,
            status_code=409,
            error_code="NAME_CONFLICT",
        )
