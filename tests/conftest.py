"""
tests/conftest.py -- Fixtures shared by the portal's route tests.

  - _make_test_stores(): a user store and a homework store on private in-memory DBs
  - _patch_lifespan(): swaps the app's startup for one that installs those stores
  - portal: a running TestClient plus four seeded accounts and their tokens

Each DB is a named shared-cache SQLite URI
(file:<name>?mode=memory&cache=shared&uri=true). TestClient serves requests
from worker threads, and a bare :memory: database exists per connection, so
worker threads would see an empty schema. A named shared-cache DB stays one
database for every connection in the process.

DEBUG must be in the environment before core.config is first imported:
Settings.signing_key() then makes a throwaway SECRET_KEY instead of raising.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# Must run before the first core.config import (see module docstring).
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from homework.models import Homework
from homework.store import HomeworkStore

# Login-heavy test modules would otherwise trip the per-IP limits.
limiter.enabled = False

# Seeded accounts: key -> (email, password, role)
ACCOUNTS = {
    "student": ("demo@lukamath.com", "Demo123!", "student"),
    "other_student": ("ivan@lukamath.com", "Ivan123!", "student"),
    "tutor": ("tutor@lukamath.com", "Tutor123!", "tutor"),
    "admin": ("admin@lukamath.com", "Admin123!", "admin"),
}


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, HomeworkStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    users_url = f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true"
    homework_url = f"sqlite:///file:test_homework_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=users_url), HomeworkStore(db_url=homework_url)


def _patch_lifespan(user_store: UserStore, homework_store: HomeworkStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.homework_store = homework_store
        yield

    return test_lifespan


@dataclass
class Portal:
    """Everything a route test needs: the client, the stores and who is who."""

    client: TestClient
    users: UserStore
    homework: HomeworkStore
    ids: dict[str, str] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)

    def headers(self, who: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.tokens[who]}"}

    def make_homework(self, **overrides) -> str:
        """Insert homework from the tutor to the demo student, straight into the store."""
        values = dict(
            student_id=self.ids["student"],
            tutor_id=self.ids["tutor"],
            title="Quadratic equations",
            description="Solve exercises 1-10 on page 42.",
            subject="algebra",
            difficulty="medium",
        )
        values.update(overrides)
        return self.homework.create_homework(Homework(**values))


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def portal(request) -> Generator[Portal, None, None]:
    """Yield a Portal backed by fresh stores for the requesting test module.

    The four ACCOUNTS are created before the client starts; each gets a
    long-lived JWT for use in Authorization headers.
    """
    suffix = request.module.__name__.rsplit(".", 1)[-1]
    user_store, homework_store = _make_test_stores(suffix)

    ids: dict[str, str] = {}
    tokens: dict[str, str] = {}
    for key, (email, password, role) in ACCOUNTS.items():
        uid = user_store.create_user(
            User(
                email=email,
                hashed_password=hash_password(password),
                role=role,
                first_name=key.replace("_", " ").title(),
                last_name="Test",
            )
        )
        ids[key] = uid
        tokens[key] = create_access_token(uid, email, role, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, homework_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield Portal(client, user_store, homework_store, ids, tokens)

    homework_store.close()
    user_store.close()
