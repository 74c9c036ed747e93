"""
auth/tokens.py -- Password hashing, token issuance and token verification.

Security design decisions:
  JWT: python-jose with HS256 pinned on decode. Tokens carry sub (user id),
       email, role, iat and exp. verify_access_token() raises
       InvalidTokenError on any failure -- bad signature, malformed token,
       missing claims, unknown role, or expiry. There is no leeway: a token
       is dead the second its exp passes.

  Passwords: bcrypt directly (no passlib wrapper). The _DUMMY_HASH constant
       enables timing equalization in authenticate_user() so response time
       does not reveal whether an email is registered.

  SECRET_KEY: Settings.signing_key() checks it on every sign and verify, so
       a missing or short key fails here, never in client-only code.

Layer rule: no imports from api/, homework/, client/, or cache/. Import from
core/ is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import ROLES, Identity
from core.config import get_settings
from core.errors import InvalidCredentialsError, InvalidTokenError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("lukamath.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only looks at the first 72 bytes; the API caps password length
    well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=12)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


# Computed once at import so the first failed login is not measurably faster
# than later ones.
_DUMMY_HASH: str = hash_password("lukamath_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expire_seconds: int = 0,
    now: datetime | None = None,
) -> str:
    """Encode a signed JWT for the given identity.

    Args:
        user_id:        Stored user id; becomes the sub claim.
        email:          Informational claim, not used for authorization.
        role:           "student", "tutor" or "admin".
        expire_seconds: Lifetime in seconds. 0 (default) uses
                        Settings.token_expire_seconds.
        now:            Issue time. Defaults to the current UTC time; tests
                        pass a past value to mint already-expired tokens.
    """
    settings = get_settings()
    issued_at = now or datetime.now(timezone.utc)
    duration = expire_seconds if expire_seconds > 0 else settings.token_expire_seconds
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=duration),
    }
    return jwt.encode(payload, settings.signing_key(), algorithm=_ALGORITHM)


def verify_access_token(token: str) -> Identity:
    """Verify signature and expiry and return the caller's Identity.

    Pure function of (token, secret key, clock): verifying the same token
    twice before expiry returns equal identities.

    Raises InvalidTokenError on any failure.
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.signing_key(),
            algorithms=[_ALGORITHM],
            options={"require_exp": True, "require_sub": True, "leeway": 0},
        )
    except JWTError as exc:
        logger.debug("Token rejected: %s", exc)
        raise InvalidTokenError() from exc

    # jose accepts a token during the second its exp names; close that gap.
    if int(payload["exp"]) <= calendar.timegm(datetime.now(timezone.utc).utctimetuple()):
        raise InvalidTokenError()

    role = payload.get("role")
    if role not in ROLES or not payload.get("sub"):
        raise InvalidTokenError()
    return Identity(subject=str(payload["sub"]), role=role, email=payload.get("email", ""))


# ---------------------------------------------------------------------------
# Credential check and token issuance
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, email: str, password: str) -> User:
    """Check an email/password pair against the credential store.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash

    Raises InvalidCredentialsError (one message for every failure) or
    returns the User.
    """
    user = store.get_by_email(email)
    if user is None:
        verify_password(password, _DUMMY_HASH)
        raise InvalidCredentialsError()
    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()
    if not user.is_active:
        raise InvalidCredentialsError()
    return user


def issue_token(store: UserStore, email: str, password: str) -> tuple[str, User]:
    """Authenticate and return (token, user). Stamps last_login_at."""
    user = authenticate_user(store, email, password)
    store.update_last_login(user.id)
    token = create_access_token(user.id, user.email, user.role)
    logger.info("Login succeeded for user %s (%s)", user.id, user.role)
    return token, user
