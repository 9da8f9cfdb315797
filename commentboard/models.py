from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, validates

from commentboard.database import Base


class FieldValidationError(ValueError):
    """Raised by model validators before a violating row can be written."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_length(field: str, value, minimum: int, maximum: int, message: str) -> str:
    if value is None or not isinstance(value, str):
        raise FieldValidationError(field, f"{field} is required")
    if value == "":
        raise FieldValidationError(field, f"{field} must not be empty")
    if not minimum <= len(value) <= maximum:
        raise FieldValidationError(field, message)
    return value


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Only ever holds the output of PasswordHasher.hash.
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    @validates("name")
    def _validate_name(self, key: str, value):
        return _check_length(key, value, 2, 255, "name must be between 2 and 255 characters")

    @validates("password_hash")
    def _validate_password_hash(self, key: str, value):
        return _check_length(key, value, 1, 255, "password hash must be at most 255 characters")


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    @validates("content")
    def _validate_content(self, key: str, value):
        return _check_length(key, value, 1, 5000, "content must be between 1 and 5000 characters")
