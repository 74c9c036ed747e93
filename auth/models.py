"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in homework/models.py -- dataclasses own domain shape; stores and routes do
the work.

Layer rule: no imports from api/, homework/, client/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("student", "tutor", "admin")
LANGUAGES = ("en", "hr")


@dataclass
class User:
    """A portal account (student, tutor or admin).

    email is stored as entered but matched case-insensitively by the store.
    Accounts are never hard-deleted: is_active=False is the end of the
    lifecycle, and an inactive account cannot log in.

    id is None before the record is written to the database.
    """

    email: str
    hashed_password: str
    role: str = "student"  # "student", "tutor", "admin"
    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    language: str = "en"  # "en", "hr"
    is_email_verified: bool = False
    is_active: bool = True
    last_login_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """The verified caller, as recovered from a session token.

    Built only by auth.tokens.verify_access_token(). Handlers read subject and
    role from here -- never from ids in the request body.
    """

    subject: str  # user id
    role: str
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
