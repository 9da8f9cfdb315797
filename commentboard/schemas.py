from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Response models serialise as camelCase (``createdAt``)."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("created_at", "updated_at", check_fields=False)
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # SQLite hands timestamps back without tzinfo; they were written as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# --- User ---

class UserCreate(BaseModel):
    # Presence and length bounds are checked by the service so that both the
    # HTTP handler and the populate path report them the same way.
    name: str | None = None
    password: str | None = None


class UserId(_CamelModel):
    id: int


class UserSummary(_CamelModel):
    id: int
    name: str


class UserSafe(_CamelModel):
    id: int
    name: str
    created_at: datetime
    updated_at: datetime


class PopulateResponse(BaseModel):
    message: str
    users: list[UserSafe]


# --- Comment ---

class CommentCreate(BaseModel):
    # Left untyped: the body may be JSON or raw text, and the service reports
    # a missing or non-string value as "Comment content is required".
    content: Any = None


class CommentResponse(_CamelModel):
    id: int
    content: str
    created_at: datetime


class CommentCreated(BaseModel):
    success: bool = True
    comment: CommentResponse


class CommentDeleted(BaseModel):
    success: bool = True
    message: str


# --- Misc ---

class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    environment: str


class ErrorResponse(BaseModel):
    error: str
