"""
tests/test_auth_routes.py -- Integration tests for the /api/auth routes.

These tests exercise the full stack: FastAPI routing -> bearer dependency ->
UserStore -> response model serialization -> error envelope.

Coverage:
  - Login scenario: demo@lukamath.com gets a token; /me returns the same email
  - Missing, malformed and expired tokens -> 401 with no user data
  - Login failures share one message whether or not the email exists
  - Registration: 201 + token, duplicate email, weak password, role pinned
  - verify-token, logout, change-password

Fixtures used (from conftest.py):
  - portal: Portal with seeded student/other_student/tutor/admin accounts
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from auth.models import User
from auth.tokens import create_access_token, hash_password, verify_access_token


class TestLogin:
    def test_login_then_me_returns_same_email(self, portal) -> None:
        """The canonical scenario: log in as the demo student, then ask who we are."""
        resp = portal.client.post("/api/auth/login", json={"email": "demo@lukamath.com", "password": "Demo123!"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["token"]
        assert data["user"]["email"] == "demo@lukamath.com"
        assert resp.headers["Cache-Control"] == "no-store"

        me = portal.client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.status_code == 200
        assert me.json()["success"] is True
        assert me.json()["user"]["email"] == "demo@lukamath.com"

    def test_login_token_carries_stored_id_and_role(self, portal) -> None:
        resp = portal.client.post("/api/auth/login", json={"email": "tutor@lukamath.com", "password": "Tutor123!"})
        identity = verify_access_token(resp.json()["token"])
        stored = portal.users.get_by_email("tutor@lukamath.com")
        assert identity.subject == stored.id
        assert identity.role == stored.role == "tutor"

    def test_login_email_is_case_insensitive(self, portal) -> None:
        resp = portal.client.post("/api/auth/login", json={"email": "DEMO@LukaMath.com", "password": "Demo123!"})
        assert resp.status_code == 200

    def test_login_response_uses_camel_case(self, portal) -> None:
        resp = portal.client.post("/api/auth/login", json={"email": "demo@lukamath.com", "password": "Demo123!"})
        user = resp.json()["user"]
        assert "firstName" in user and "first_name" not in user
        assert user["lastLoginAt"] is not None
        assert "password" not in user and "hashedPassword" not in user

    def test_wrong_password_is_401(self, portal) -> None:
        resp = portal.client.post("/api/auth/login", json={"email": "demo@lukamath.com", "password": "Nope123!"})
        assert resp.status_code == 401
        data = resp.json()
        assert data["success"] is False
        assert data["code"] == "invalid_credentials"
        assert data["messageKey"] == "auth.invalid_credentials"
        assert "token" not in data

    def test_unknown_email_looks_like_wrong_password(self, portal) -> None:
        wrong_pw = portal.client.post("/api/auth/login", json={"email": "demo@lukamath.com", "password": "Nope123!"})
        unknown = portal.client.post("/api/auth/login", json={"email": "who@lukamath.com", "password": "Nope123!"})
        assert unknown.status_code == wrong_pw.status_code == 401
        assert unknown.json() == wrong_pw.json()

    def test_inactive_account_cannot_log_in(self, portal) -> None:
        portal.users.create_user(
            User(email="inactive@lukamath.com", hashed_password=hash_password("Sleep123!"), is_active=False)
        )
        resp = portal.client.post("/api/auth/login", json={"email": "inactive@lukamath.com", "password": "Sleep123!"})
        assert resp.status_code == 401

    def test_malformed_body_is_400_with_field_errors(self, portal) -> None:
        resp = portal.client.post("/api/auth/login", json={"email": "not-an-email"})
        assert resp.status_code == 400
        data = resp.json()
        assert data["code"] == "validation_error"
        fields = {e["field"] for e in data["errors"]}
        assert {"email", "password"} <= fields


class TestBearerAuth:
    def test_me_without_header_is_401_and_has_no_user(self, portal) -> None:
        resp = portal.client.get("/api/auth/me")
        assert resp.status_code == 401
        data = resp.json()
        assert data["code"] == "missing_token"
        assert data["messageKey"] == "auth.token_required"
        assert "user" not in data
        assert resp.headers["WWW-Authenticate"] == "Bearer"

    def test_me_with_non_bearer_scheme_is_missing_token(self, portal) -> None:
        resp = portal.client.get("/api/auth/me", headers={"Authorization": "Basic abc"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "missing_token"

    def test_me_with_garbage_token_is_invalid_token(self, portal) -> None:
        resp = portal.client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_token"
        assert "user" not in resp.json()

    def test_me_with_expired_token_is_401(self, portal) -> None:
        past = datetime.now(timezone.utc) - timedelta(days=8)
        token = create_access_token(portal.ids["student"], "demo@lukamath.com", "student", now=past)
        resp = portal.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_token"

    def test_user_endpoint_returns_bare_object(self, portal) -> None:
        resp = portal.client.get("/api/auth/user", headers=portal.headers("tutor"))
        assert resp.status_code == 200
        data = resp.json()
        assert data["email"] == "tutor@lukamath.com"
        assert data["role"] == "tutor"
        assert "success" not in data

    def test_token_for_deleted_account_is_404(self, portal) -> None:
        token = create_access_token("no-such-user", "x@lukamath.com", "student", expire_seconds=60)
        resp = portal.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 404
        assert resp.json()["messageKey"] == "auth.user_not_found"


class TestRegister:
    def _body(self, email: str, **extra) -> dict:
        body = {"email": email, "password": "Secret123!", "firstName": "Ana", "lastName": "Horvat", "language": "hr"}
        body.update(extra)
        return body

    def test_register_creates_student_and_returns_token(self, portal) -> None:
        resp = portal.client.post("/api/auth/register", json=self._body("ana@lukamath.com"))
        assert resp.status_code == 201
        data = resp.json()
        assert data["success"] is True
        assert data["messageKey"] == "auth.registration_success"
        assert data["user"]["role"] == "student"
        assert data["user"]["language"] == "hr"
        assert data["user"]["isEmailVerified"] is False
        assert resp.headers["Cache-Control"] == "no-store"

        me = portal.client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
        assert me.json()["user"]["email"] == "ana@lukamath.com"

    def test_register_ignores_client_chosen_role(self, portal) -> None:
        resp = portal.client.post("/api/auth/register", json=self._body("sneaky@lukamath.com", role="admin"))
        assert resp.status_code == 201
        assert resp.json()["user"]["role"] == "student"

    def test_duplicate_email_is_rejected(self, portal) -> None:
        resp = portal.client.post("/api/auth/register", json=self._body("DEMO@lukamath.com"))
        assert resp.status_code == 400
        data = resp.json()
        assert data["success"] is False
        assert data["message"] == "User with this email already exists"
        assert data["messageKey"] == "auth.email_exists"

    def test_weak_password_is_rejected(self, portal) -> None:
        resp = portal.client.post("/api/auth/register", json=self._body("weak@lukamath.com", password="password"))
        assert resp.status_code == 400
        assert any(e["field"] == "password" for e in resp.json()["errors"])
        assert portal.users.get_by_email("weak@lukamath.com") is None

    def test_unknown_language_is_rejected(self, portal) -> None:
        resp = portal.client.post("/api/auth/register", json=self._body("fr@lukamath.com", language="fr"))
        assert resp.status_code == 400


class TestSessionEndpoints:
    def test_verify_token_valid(self, portal) -> None:
        resp = portal.client.post("/api/auth/verify-token", json={"token": portal.tokens["student"]})
        assert resp.status_code == 200
        data = resp.json()
        assert data["valid"] is True
        assert data["user"]["id"] == portal.ids["student"]

    def test_verify_token_invalid(self, portal) -> None:
        resp = portal.client.post("/api/auth/verify-token", json={"token": "garbage"})
        assert resp.status_code == 401
        assert resp.json()["code"] == "invalid_token"

    def test_verify_token_empty(self, portal) -> None:
        resp = portal.client.post("/api/auth/verify-token", json={})
        assert resp.status_code == 400

    def test_logout_requires_token(self, portal) -> None:
        assert portal.client.post("/api/auth/logout").status_code == 401
        resp = portal.client.post("/api/auth/logout", headers=portal.headers("student"))
        assert resp.status_code == 200
        assert resp.json()["messageKey"] == "auth.logout_success"

    def test_change_password(self, portal) -> None:
        reg = portal.client.post(
            "/api/auth/register",
            json={"email": "pw@lukamath.com", "password": "First123!", "firstName": "P", "lastName": "W"},
        )
        headers = {"Authorization": f"Bearer {reg.json()['token']}"}

        wrong = portal.client.post(
            "/api/auth/change-password",
            json={"currentPassword": "Nope123!", "newPassword": "Second123!"},
            headers=headers,
        )
        assert wrong.status_code == 400
        assert wrong.json()["messageKey"] == "auth.current_password_invalid"

        ok = portal.client.post(
            "/api/auth/change-password",
            json={"currentPassword": "First123!", "newPassword": "Second123!"},
            headers=headers,
        )
        assert ok.status_code == 200

        old = portal.client.post("/api/auth/login", json={"email": "pw@lukamath.com", "password": "First123!"})
        new = portal.client.post("/api/auth/login", json={"email": "pw@lukamath.com", "password": "Second123!"})
        assert old.status_code == 401
        assert new.status_code == 200
