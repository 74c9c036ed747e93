"""
api/routes/v1/auth.py -- Registration, login and session endpoints.

Routes:
  POST /api/auth/register         -- create a student account; returns token
  POST /api/auth/login            -- email/password login; returns token
  POST /api/auth/logout           -- requires auth; client discards its token
  GET  /api/auth/me               -- current user wrapped in {success, user}
  GET  /api/auth/user             -- current user, bare object
  POST /api/auth/verify-token     -- is this token still good?
  POST /api/auth/change-password  -- requires auth and the current password

Security:
  Login and register are rate-limited per client IP.
  issue_token() runs bcrypt even for unknown emails and reports every
  failure with the same message; never inline store lookups here.
  Cache-Control: no-store on every response that carries a token.
  There is no server-side revocation: logout is client-side token removal.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter, login_limit, register_limit
from api.models import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MeResponse,
    MessageResponse,
    RegisterRequest,
    UserResponse,
    VerifyTokenRequest,
    VerifyTokenResponse,
)
from auth.dependencies import get_current_identity
from auth.models import Identity, User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password, issue_token, verify_access_token, verify_password
from core.errors import ConflictError, InvalidTokenError, NotFoundError, ValidationFailedError

logger = logging.getLogger("lukamath.api.auth")

router = APIRouter()


def _no_store(content: dict, status_code: int = 200) -> JSONResponse:
    resp = JSONResponse(status_code=status_code, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _load_user(store: UserStore, identity: Identity) -> User:
    """Fetch the account behind a verified token. 404 if it no longer exists."""
    user = store.get_by_id(identity.subject)
    if user is None or not user.is_active:
        raise NotFoundError("User not found", "auth.user_not_found")
    return user


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(register_limit)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a student account and log it in.

    A duplicate email is reported as such (400, auth.email_exists). This
    reveals that the address is registered; see DESIGN.md.
    """
    store: UserStore = request.app.state.user_store
    if store.get_by_email(body.email) is not None:
        raise ConflictError("User with this email already exists", "auth.email_exists")

    new_user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        first_name=body.first_name,
        last_name=body.last_name,
        language=body.language,
        role="student",
        is_email_verified=False,
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError as exc:
        # Lost a race with a concurrent registration for the same address.
        raise ConflictError("User with this email already exists", "auth.email_exists") from exc

    created = store.get_by_id(user_id)
    token = create_access_token(created.id, created.email, created.role)
    logger.info("Registered user %s", created.id)
    return _no_store(
        AuthResponse(
            message="Registration successful",
            message_key="auth.registration_success",
            token=token,
            user=UserResponse.from_user(created),
        ).model_dump(by_alias=True),
        status_code=201,
    )


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(login_limit)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Exchange email and password for a bearer token."""
    store: UserStore = request.app.state.user_store
    token, user = issue_token(store, body.email, body.password)
    # Re-read so lastLoginAt reflects this login.
    user = store.get_by_id(user.id) or user
    return _no_store(
        AuthResponse(
            message="Login successful",
            message_key="auth.login_success",
            token=token,
            user=UserResponse.from_user(user),
        ).model_dump(by_alias=True)
    )


@router.post("/auth/verify-token", response_model=VerifyTokenResponse)
def verify_token(request: Request, body: VerifyTokenRequest) -> VerifyTokenResponse:
    if not body.token:
        raise ValidationFailedError("Token required", "auth.token_required")
    identity = verify_access_token(body.token)
    store: UserStore = request.app.state.user_store
    user = store.get_by_id(identity.subject)
    if user is None or not user.is_active:
        raise InvalidTokenError()
    return VerifyTokenResponse(
        valid=True,
        user=UserResponse.from_user(user),
        message="Token is valid",
        message_key="auth.token_valid",
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(identity: Identity = Depends(get_current_identity)) -> MessageResponse:
    logger.info("Logout for user %s", identity.subject)
    return MessageResponse(message="Logged out successfully", message_key="auth.logout_success")


@router.get("/auth/me", response_model=MeResponse)
def me(request: Request, identity: Identity = Depends(get_current_identity)) -> MeResponse:
    user = _load_user(request.app.state.user_store, identity)
    return MeResponse(
        user=UserResponse.from_user(user),
        message="User retrieved successfully",
        message_key="auth.user_retrieved",
    )


@router.get("/auth/user", response_model=UserResponse)
def current_user(request: Request, identity: Identity = Depends(get_current_identity)) -> UserResponse:
    """Same as /auth/me but returns the bare user object."""
    return UserResponse.from_user(_load_user(request.app.state.user_store, identity))


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Replace the caller's password. Existing tokens stay valid until expiry."""
    store: UserStore = request.app.state.user_store
    user = _load_user(store, identity)
    if not verify_password(body.current_password, user.hashed_password):
        raise ValidationFailedError("Current password is incorrect", "auth.current_password_invalid")
    store.update_user(user.id, hashed_password=hash_password(body.new_password))
    logger.info("Password changed for user %s", user.id)
    return MessageResponse(message="Password updated successfully", message_key="auth.password_updated")
