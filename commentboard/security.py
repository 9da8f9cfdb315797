"""Password hashing and output escaping helpers."""
from __future__ import annotations

from passlib.context import CryptContext

_password_context = CryptContext(schemes=["argon2"], deprecated="auto")

_HTML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "/": "&#x2F;",
    }
)


class PasswordHasher:
    """Hash and verify user passwords using Argon2id (salted per hash)."""

    @staticmethod
    def hash(password: str) -> str:
        return _password_context.hash(password)

    @staticmethod
    def verify(password: str, hashed: str) -> bool:
        return _password_context.verify(password, hashed)


def escape_html(text: str | None) -> str:
    """Escape ``& < > " ' /`` so *text* renders as literal text, never markup."""
    if not text:
        return ""
    return str(text).translate(_HTML_ESCAPES)
