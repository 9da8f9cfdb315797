"""
Domain failure kinds raised by the service layer.

Each failure carries the HTTP status it maps to and a message written for
API clients.  The exception handler registered in ``commentboard.main``
turns these into ``{"error": message}`` JSON responses.
"""


class DomainError(Exception):
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(DomainError):
    """Malformed, missing or out-of-bounds fields or ids."""

    status_code = 400


class NotFound(DomainError):
    """A well-formed id that matches no row."""

    status_code = 404


class UpstreamFailure(DomainError):
    """The random identity service was unreachable or answered garbage."""

    status_code = 500


class StorageFailure(DomainError):
    status_code = 500
