"""Domain error taxonomy.

Every error carries the HTTP status it maps to and a detail string that is
safe to show to the caller. The global handlers in
``questlog.middleware.error_handler`` turn them into ``{"detail": ...}`` bodies.
"""

from __future__ import annotations


class QuestlogError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(QuestlogError):
    """Entity is absent, or exists but belongs to someone else.

    Both cases deliberately produce the same error.
    """

    status_code = 404
    default_detail = "Not found"


class ConflictError(QuestlogError):
    """The requested transition is not allowed from the current state."""

    status_code = 409
    default_detail = "Conflict"


class ValidationError(QuestlogError):
    """Input was well-formed JSON but semantically invalid."""

    status_code = 422
    default_detail = "Validation error"


class PersistenceError(QuestlogError):
    """The underlying store failed. Never retried automatically."""

    status_code = 503
    default_detail = "Storage unavailable"
