"""
Error types raised by the user query engine.

The request layer maps each one to a distinct HTTP status; nothing in the
engine retries or swallows them.
"""

from typing import Iterable, List, Optional


class UserServiceError(Exception):
    """Base class for every error the user service raises on purpose."""


class ValidationError(UserServiceError):
    """Raised before any store call when request input cannot be compiled.

    ``invalid`` carries the offending values and ``allowed`` the permitted set,
    when there is one.
    """

    def __init__(
        self,
        message: str,
        invalid: Optional[Iterable[str]] = None,
        allowed: Optional[Iterable[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.invalid: List[str] = list(invalid or [])
        self.allowed: List[str] = list(allowed or [])


class ConflictError(UserServiceError):
    """Raised when a write collides with the unique emailLower index."""


class NotFoundError(UserServiceError):
    """Raised when an identity-targeted operation matches no record."""
