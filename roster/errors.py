"""
Domain errors raised by the service layer.

Mutations fail loud with one of these; queries return empty results instead.
Each subclass carries the HTTP status the API layer maps it to.
"""
from typing import Optional


class RosterError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(RosterError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class NotFound(RosterError):
    status_code = 404


class Forbidden(RosterError):
    status_code = 403


class InvariantViolation(RosterError):
    """The action would break a structural rule no matter who asks."""
    status_code = 409


class ValidationFailed(RosterError):
    status_code = 400


class RateLimited(RosterError):
    status_code = 429

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class UniquenessExhausted(RosterError):
    status_code = 503
