"""Export/import exceptions."""

from .base import ValidationError


class UnsupportedVersionError(ValidationError):
    """Raised when a snapshot was produced by an incompatible exporter."""

    def __init__(self, version: str, supported: str):
        super().__init__(
            message="Unsupported export version",
            details={"version": version, "supported": supported},
            error_code="UNSUPPORTED_VERSION",
        )
