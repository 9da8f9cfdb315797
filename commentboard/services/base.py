"""Helpers shared by the service modules."""
import functools
import logging
import re

from sqlalchemy.exc import SQLAlchemyError

from commentboard.errors import InvalidInput, StorageFailure
from commentboard.models import FieldValidationError

logger = logging.getLogger(__name__)

# Largest value an INTEGER primary key can hold.
MAX_ID = 2**31 - 1
_MAX_ID_DIGITS = len(str(MAX_ID))

_ID_RE = re.compile(r"[0-9]+")


def parse_positive_id(value, label: str = "id") -> int:
    """
    Return *value* as a positive ``int``.

    Accepts ints and decimal strings (surrounding whitespace is ignored);
    anything else, zero and negatives raise ``InvalidInput``.
    """
    if isinstance(value, bool):
        raise InvalidInput(f"Invalid {label}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and _ID_RE.fullmatch(value.strip()):
        digits = value.strip().lstrip("0") or "0"
        # Too many digits to be a stored id; skip int(), which caps string length.
        parsed = MAX_ID + 1 if len(digits) > _MAX_ID_DIGITS else int(digits)
    else:
        raise InvalidInput(f"Invalid {label}")
    if parsed < 1:
        raise InvalidInput(f"Invalid {label}")
    return parsed


def translate_errors(action: str):
    """
    Decorator for async service functions.

    Model validation failures become ``InvalidInput``; any other
    SQLAlchemy error is logged and re-raised as ``StorageFailure``.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except FieldValidationError as exc:
                raise InvalidInput(str(exc)) from exc
            except SQLAlchemyError as exc:
                logger.error("Storage failure while %s: %s", action, exc)
                raise StorageFailure(f"Storage failure while {action}") from exc

        return wrapper

    return decorator
