"""Domain errors raised by the membership engine.

Every error carries a stable ``code`` for programmatic handling and a
``status_code`` hint that the HTTP layer uses when rendering it. Services
raise these before any write is committed, so a raised error implies that
the surrounding transaction left no side effects.
"""

from __future__ import annotations


class CommuneError(RuntimeError):
    """Base exception for all domain failures.

    Attributes:
        message: Human readable error message.
        code: Error code for programmatic handling.
        status_code: HTTP status hint for transport layers.
    """

    code = "commune_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(CommuneError):
    """A referenced application, membership, profile, user or community is missing."""

    code = "not_found"
    status_code = 404


class ConflictError(CommuneError):
    """The request collides with existing state, or lost a race for it."""

    code = "conflict"
    status_code = 409


class ForbiddenError(CommuneError):
    """The acting user lacks the role or capability the mutation requires."""

    code = "forbidden"
    status_code = 403


class InvalidStateError(CommuneError):
    """The entity is not in a state that permits the requested transition."""

    code = "invalid_state"
    status_code = 400


class ValidationError(CommuneError):
    """Caller supplied malformed input."""

    code = "validation_error"
    status_code = 422


__all__ = [
    "CommuneError",
    "ConflictError",
    "ForbiddenError",
    "InvalidStateError",
    "NotFoundError",
    "ValidationError",
]
