"""Base schemas for the application."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base schema class with common configuration."""
    model_config = ConfigDict(from_attributes=True, str_strip_whitespace=True)


class BaseModelSchema(BaseSchema):
    """Base schema for database models."""
    id: int
    created_at: datetime
    updated_at: datetime
