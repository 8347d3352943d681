# rental_lifecycle/errors.py
from __future__ import annotations

from typing import Any, Optional


class LifecycleError(Exception):
    """
    Expected, typed outcome of a lifecycle operation.

    Every subclass carries a stable `code` (what API clients switch on) and the
    HTTP status the adapter maps it to. `context` holds structured details
    (ids, statuses) that are safe to return to the caller.
    """

    code: str = "lifecycle_error"
    http_status: int = 400

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.context:
            out["context"] = self.context
        return out


class InvalidRange(LifecycleError):
    code = "invalid_range"
    http_status = 400


class PropertyUnavailable(LifecycleError):
    code = "property_unavailable"
    http_status = 409


class SelfBooking(LifecycleError):
    code = "self_booking"
    http_status = 400


class DateConflict(LifecycleError):
    code = "date_conflict"
    http_status = 409


class NotFound(LifecycleError):
    code = "not_found"
    http_status = 404


class Forbidden(LifecycleError):
    code = "forbidden"
    http_status = 403


class IllegalTransition(LifecycleError):
    code = "illegal_transition"
    http_status = 409

    def __init__(self, entity_type: str, current: str, requested: str, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"{entity_type} cannot move from {current} to {requested}",
            entity_type=entity_type,
            current=current,
            requested=requested,
        )
        self.entity_type = entity_type
        self.current = current
        self.requested = requested


class ConflictingUpdate(LifecycleError):
    code = "conflicting_update"
    http_status = 409


class InvalidTerms(LifecycleError):
    code = "invalid_terms"
    http_status = 422


class PersistenceUnavailable(Exception):
    """Infrastructure failure (database unreachable, lock timeout). Not part of the business taxonomy."""

    http_status = 503
