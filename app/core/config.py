# python
# app/core/config.py
"""Configuration settings for the todo core.

Uses Pydantic BaseSettings for environment variable management.
"""
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="Todo Core", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # ===== Database Settings =====
    database_url: str = Field(
        default="sqlite:///./todos.db", description="Database connection URL"
    )
    test_database_url: str = Field(default="sqlite://", description="Test database URL")
    db_echo: bool = Field(default=False, description="Echo SQL statements")

    # ===== Time Settings =====
    civil_timezone: str = Field(
        default="Asia/Singapore", description="Zone used for all date-only reasoning"
    )

    # ===== Todo Rules =====
    reminder_options: list[int] = Field(
        default=[15, 30, 60, 120, 1440, 2880, 10080],
        description="Allowed reminder offsets in minutes",
    )
    template_due_nudge_minutes: int = Field(
        default=5, description="Minutes added when a template due date lands in the past"
    )

    # ===== Export / Import =====
    export_version: str = Field(default="1.0", description="Snapshot format version")
    max_import_bytes: int = Field(
        default=5 * 1024 * 1024, description="Maximum size of an import payload (5MB)"
    )
    default_tag_color: str = Field(
        default="#3B82F6", description="Colour used when an imported tag colour is malformed"
    )

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.simple, description="Log format")

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def is_testing(self) -> bool:
        return self.environment == EnvironmentEnum.testing

    @property
    def active_database_url(self) -> str:
        return self.test_database_url if self.is_testing else self.database_url

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
            if lv in ["test"]:
                return "testing"
            return lv
        return v

    @field_validator("civil_timezone")
    @classmethod
    def validate_civil_timezone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown time zone: {v}") from exc
        return v

    @field_validator("reminder_options")
    @classmethod
    def validate_reminder_options(cls, v):
        if not v or any(minutes <= 0 for minutes in v):
            raise ValueError("Reminder options must be positive minute values")
        return sorted(set(v))

    @field_validator("default_tag_color")
    @classmethod
    def validate_default_tag_color(cls, v):
        from app.shared.colors import normalize_hex_color

        color = normalize_hex_color(v)
        if color is None:
            raise ValueError("default_tag_color must look like #3366FF")
        return color


settings = Settings()


def get_config_summary() -> dict:
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "database_configured": bool(settings.database_url),
        "civil_timezone": settings.civil_timezone,
        "export_version": settings.export_version,
    }


__all__ = [
    "settings",
    "Settings",
    "get_config_summary",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
]
