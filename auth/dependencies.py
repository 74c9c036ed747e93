"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The only accepted credential is an Authorization: Bearer <token> header.
Outcomes:
  - no header (or not a Bearer header) -> MissingTokenError
  - header present but token fails verification -> InvalidTokenError
  - verified -> Identity attached to request.state.identity

get_optional_identity() is the soft variant: anonymous callers get None, but
a presented-and-broken token is still rejected.
get_current_identity() raises on anything but a verified token.
require_roles(...) builds a dependency that also checks the role.

Layer rule: no imports from api/, homework/, client/, or cache/.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.models import Identity
from auth.tokens import verify_access_token
from core.errors import ForbiddenError, MissingTokenError


def extract_bearer_token(request: Request) -> str | None:
    """Return the raw token from the Authorization header, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_identity(request: Request) -> Identity | None:
    """Verify the bearer token if one is present.

    Returns None for anonymous requests. Raises InvalidTokenError if a token
    was presented but is bad -- a broken credential never degrades silently
    to anonymous access.
    """
    token = extract_bearer_token(request)
    if token is None:
        return None
    identity = verify_access_token(token)
    request.state.identity = identity
    return identity


def get_current_identity(request: Request) -> Identity:
    """Require a verified token. Use as a FastAPI dependency:

    @router.get("/protected")
    def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = get_optional_identity(request)
    if identity is None:
        raise MissingTokenError()
    return identity


def require_roles(*roles: str) -> Callable[[Request], Identity]:
    """Build a dependency that requires one of the given roles (403 otherwise)."""

    def dependency(request: Request) -> Identity:
        identity = get_current_identity(request)
        if identity.role not in roles:
            raise ForbiddenError()
        return identity

    return dependency


require_admin = require_roles("admin")
