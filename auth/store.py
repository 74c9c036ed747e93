"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

This is the credential store: every auth operation reads from here.

Pattern: Repository + Data Mapper (same as homework/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Email uniqueness is case-insensitive: a functional UNIQUE index on
  lower(email) rejects "Demo@x.com" when "demo@x.com" exists. Lookups use the
  same lower() expression so they hit the index.

Layer rule: no imports from api/, homework/, client/, or cache/.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import User
from core.config import get_settings
from core.db import make_engine, now_iso

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False),
    Column("password", Text, nullable=False),  # bcrypt hash
    Column("first_name", String(255)),
    Column("last_name", String(255)),
    Column("role", String(20), nullable=False, server_default="student"),
    Column("language", String(5), nullable=False, server_default="en"),
    Column("is_email_verified", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

Index("uq_users_email_lower", func.lower(users.c.email), unique=True)

# Columns update_user() may touch. Anything else is a programming error.
_MUTABLE_FIELDS = {
    "first_name",
    "last_name",
    "role",
    "language",
    "is_email_verified",
    "is_active",
    "hashed_password",
}


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///:memory:")
        user_id = store.create_user(User(email="a@b.com", hashed_password=hash_password("secret")))
        user = store.get_by_email("A@B.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(users)).scalar()
        return (result or 0) > 0

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists
        (case-insensitively). Callers translate that into a conflict.
        """
        user_id = user.id or str(uuid.uuid4())
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                users.insert().values(
                    id=user_id,
                    email=user.email.strip(),
                    password=user.hashed_password,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    role=user.role,
                    language=user.language,
                    is_email_verified=1 if user.is_email_verified else 0,
                    is_active=1 if user.is_active else 0,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return user_id

    def get_by_email(self, email: str) -> User | None:
        """Case-insensitive exact match on email. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                users.select().where(func.lower(users.c.email) == email.strip().lower())
            ).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_by_role(self, role: str) -> list[User]:
        """Return all users with the given role, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                users.select().where(users.c.role == role).order_by(users.c.created_at.desc())
            ).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable fields on an existing user.

        Booleans are stored as 0/1; hashed_password maps onto the password
        column. Raises ValueError for unknown fields.

        Returns True if a row was updated, False if user_id was not found.
        """
        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        values: dict = {}
        for key, value in fields.items():
            if key == "hashed_password":
                values["password"] = value
            elif key in ("is_active", "is_email_verified"):
                values[key] = 1 if value else 0
            else:
                values[key] = value
        values["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(users.update().where(users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: str) -> None:
        """Stamp the current UTC time as last_login_at after a successful login."""
        with self.engine.connect() as conn:
            conn.execute(users.update().where(users.c.id == user_id).values(last_login_at=now_iso()))
            conn.commit()

    def count_active_admins(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(users).where((users.c.role == "admin") & (users.c.is_active == 1))
            ).scalar()
        return result or 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.password,
        first_name=row.first_name,
        last_name=row.last_name,
        role=row.role,
        language=row.language,
        is_email_verified=bool(row.is_email_verified),
        is_active=bool(row.is_active),
        last_login_at=row.last_login_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
