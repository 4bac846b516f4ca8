"""
core/errors.py -- Application error taxonomy.

Domain code raises these instead of HTTPException so stores, the auth core
and route handlers share one vocabulary. api/main.py is the single boundary
that turns an AppError into a JSON response:

    {"code": "<code>", "message": "<message>"}

The message is always safe to show to a client. Internal details belong in
the log, never in the message.

Layer rule: core/ is the kernel. No imports from api/, auth/, audit/, inventory/.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for every error that maps to an HTTP status."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationFailed(AppError):
    status_code = 400
    code = "validation_failed"
    default_message = "Validation failed"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    default_message = "Not authorized"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "You do not have permission to perform this action"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Resource already exists"


class Internal(AppError):
    status_code = 500
    code = "internal_error"
    default_message = "Something went wrong"
