"""
core/errors.py -- Error taxonomy shared by the API server and the client.

Every failure the portal reports has exactly one ErrorKind. The server raises
PortalError subclasses from domain code and renders them in one exception
handler (api/main.py); the client maps HTTP responses back onto the same
kinds (client/http.py), so both sides agree on what a failure means.

Layer rule: core/ is the kernel -- no imports from api/, auth/, homework/,
client/, or cache/.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    MISSING_TOKEN = "missing_token"
    INVALID_TOKEN = "invalid_token"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation_error"
    CONFLICT = "conflict"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network_error"
    SERVER = "server_error"


# HTTP status per kind. NETWORK has none: the request never got a response.
STATUS_FOR_KIND: dict[ErrorKind, int | None] = {
    ErrorKind.INVALID_CREDENTIALS: 401,
    ErrorKind.MISSING_TOKEN: 401,
    ErrorKind.INVALID_TOKEN: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.NETWORK: None,
    ErrorKind.SERVER: 500,
}


class PortalError(Exception):
    """Base class for every failure the API reports to a caller.

    message is safe to show to the end user. message_key is the translation
    key the front-end looks up (auth.invalid_credentials, ...).
    """

    kind: ErrorKind = ErrorKind.SERVER
    default_message = "Internal server error"
    default_key = "error.server"

    def __init__(
        self,
        message: str | None = None,
        message_key: str | None = None,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.message_key = message_key or self.default_key
        self.details = details or []
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_FOR_KIND[self.kind] or 500

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "code": self.kind.value,
            "message": self.message,
            "messageKey": self.message_key,
        }
        if self.details:
            body["errors"] = self.details
        return body


class InvalidCredentialsError(PortalError):
    # One message for unknown email, wrong password and inactive account.
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid email or password"
    default_key = "auth.invalid_credentials"


class MissingTokenError(PortalError):
    kind = ErrorKind.MISSING_TOKEN
    default_message = "Access token required"
    default_key = "auth.token_required"


class InvalidTokenError(PortalError):
    kind = ErrorKind.INVALID_TOKEN
    default_message = "Invalid or expired token"
    default_key = "auth.token_invalid"


class ForbiddenError(PortalError):
    kind = ErrorKind.FORBIDDEN
    default_message = "Insufficient permissions"
    default_key = "auth.insufficient_permissions"


class NotFoundError(PortalError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"
    default_key = "error.not_found"


class ValidationFailedError(PortalError):
    kind = ErrorKind.VALIDATION
    default_message = "Validation failed"
    default_key = "auth.validation_failed"


class ConflictError(PortalError):
    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists"
    default_key = "error.conflict"


class RateLimitedError(PortalError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "Too many requests. Try again later."
    default_key = "error.rate_limited"
