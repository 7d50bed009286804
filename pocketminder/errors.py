# pocketminder/errors.py
"""
Error kinds raised inside the engine.

Every error carries:
- kind: stable string used in API responses and logs
- retryable: whether calling again later can succeed

Pure code (recurrence, categorize) only ever raises InvalidDefinition.
Adapters translate their own failures into StoreUnavailable / NotifierUnavailable.
"""

from __future__ import annotations

__all__ = [
    "EngineError",
    "InvalidDefinition",
    "StoreUnavailable",
    "PermissionDenied",
    "NotifierUnavailable",
    "DeadlineExceeded",
    "ConstraintViolation",
]


class EngineError(Exception):
    kind = "engine_error"
    retryable = False

    def to_dict(self) -> dict:
        return {"kind": self.kind, "retryable": self.retryable, "detail": str(self)}


class InvalidDefinition(EngineError, ValueError):
    """A recurring definition breaks a field rule (bad frequency, end before start, ...)."""

    kind = "invalid_definition"


class StoreUnavailable(EngineError):
    kind = "store_unavailable"
    retryable = True


class PermissionDenied(EngineError):
    """The caller may not touch this user's data (or the user does not exist)."""

    kind = "permission_denied"


class NotifierUnavailable(EngineError):
    kind = "notifier_unavailable"
    retryable = True


class DeadlineExceeded(EngineError):
    kind = "deadline_exceeded"
    retryable = True


class ConstraintViolation(EngineError):
    """The store refused a write, e.g. a duplicate key or an unknown user id."""

    kind = "constraint_violation"
