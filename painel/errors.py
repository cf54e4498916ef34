"""Domain exceptions raised by workflow and service code.

Route handlers do not catch these; ``register_error_handlers`` maps each one
to a JSON error response.
"""

from __future__ import annotations


class PainelError(Exception):
    """Base class for application errors with an HTTP mapping."""

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.error, "status": self.status_code, "message": self.message}


class ValidationFailure(PainelError):
    """User-correctable input problem; nothing was changed."""

    status_code = 400
    error = "validation_error"

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.field:
            payload["field"] = self.field
        return payload


class NotFoundError(PainelError):
    status_code = 404
    error = "not_found"


class PermissionDenied(PainelError):
    status_code = 403
    error = "forbidden"


class TransitionNotAllowed(PainelError):
    """Workflow event not permitted from the task's current state."""

    status_code = 409
    error = "transition_not_allowed"


class StorageError(PainelError):
    """Object storage call failed."""

    status_code = 502
    error = "storage_error"
