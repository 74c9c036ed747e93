"""
tests/test_admin_routes.py -- Integration tests for /api/admin.

Coverage:
  - Non-admins get 403, anonymous callers 401
  - Listing students and tutors
  - Role assignment and deactivation (deactivated users cannot log in)
  - Guards: no self-demotion, no self-deactivation; an inactive admin
    can be demoted while only one admin is active
"""

from __future__ import annotations

from auth.models import User
from auth.tokens import hash_password


def _make_user(portal, email: str, role: str = "student") -> str:
    return portal.users.create_user(User(email=email, hashed_password=hash_password("Temp123!"), role=role))


def test_admin_routes_require_admin(portal) -> None:
    assert portal.client.get("/api/admin/students").status_code == 401
    for who in ("student", "tutor"):
        resp = portal.client.get("/api/admin/students", headers=portal.headers(who))
        assert resp.status_code == 403, who
        assert resp.json()["code"] == "forbidden"


def test_list_students_and_tutors(portal) -> None:
    students = portal.client.get("/api/admin/students", headers=portal.headers("admin"))
    tutors = portal.client.get("/api/admin/tutors", headers=portal.headers("admin"))
    assert students.status_code == 200
    assert {"demo@lukamath.com", "ivan@lukamath.com"} <= {u["email"] for u in students.json()}
    assert all(u["role"] == "student" for u in students.json())
    assert "tutor@lukamath.com" in {u["email"] for u in tutors.json()}
    assert all(u["role"] == "tutor" for u in tutors.json())


def test_promote_student_to_tutor(portal) -> None:
    uid = _make_user(portal, "promote@lukamath.com")
    resp = portal.client.patch(f"/api/admin/users/{uid}", json={"role": "tutor"}, headers=portal.headers("admin"))
    assert resp.status_code == 200
    assert resp.json()["role"] == "tutor"
    assert portal.users.get_by_id(uid).role == "tutor"


def test_student_cannot_change_roles(portal) -> None:
    uid = _make_user(portal, "stays@lukamath.com")
    resp = portal.client.patch(f"/api/admin/users/{uid}", json={"role": "admin"}, headers=portal.headers("student"))
    assert resp.status_code == 403
    assert portal.users.get_by_id(uid).role == "student"


def test_deactivated_user_cannot_log_in(portal) -> None:
    uid = _make_user(portal, "leaving@lukamath.com")
    resp = portal.client.patch(f"/api/admin/users/{uid}", json={"isActive": False}, headers=portal.headers("admin"))
    assert resp.status_code == 200
    assert resp.json()["isActive"] is False
    login = portal.client.post("/api/auth/login", json={"email": "leaving@lukamath.com", "password": "Temp123!"})
    assert login.status_code == 401


def test_admin_cannot_demote_self(portal) -> None:
    resp = portal.client.patch(
        f"/api/admin/users/{portal.ids['admin']}", json={"role": "tutor"}, headers=portal.headers("admin")
    )
    assert resp.status_code == 400
    assert resp.json()["messageKey"] == "admin.self_demotion"
    assert portal.users.get_by_id(portal.ids["admin"]).role == "admin"


def test_admin_cannot_deactivate_self(portal) -> None:
    resp = portal.client.patch(
        f"/api/admin/users/{portal.ids['admin']}", json={"isActive": False}, headers=portal.headers("admin")
    )
    assert resp.status_code == 400
    assert portal.users.get_by_id(portal.ids["admin"]).is_active is True


def test_demoting_another_admin_is_allowed(portal) -> None:
    uid = _make_user(portal, "second-admin@lukamath.com", role="admin")
    resp = portal.client.patch(f"/api/admin/users/{uid}", json={"role": "tutor"}, headers=portal.headers("admin"))
    assert resp.status_code == 200
    assert portal.users.count_active_admins() == 1


def test_unknown_user_is_404(portal) -> None:
    resp = portal.client.patch("/api/admin/users/nope", json={"role": "tutor"}, headers=portal.headers("admin"))
    assert resp.status_code == 404


def test_empty_patch_is_400(portal) -> None:
    uid = _make_user(portal, "untouched@lukamath.com")
    resp = portal.client.patch(f"/api/admin/users/{uid}", json={}, headers=portal.headers("admin"))
    assert resp.status_code == 400


def test_demoting_an_inactive_admin_is_allowed(portal) -> None:
    uid = portal.users.create_user(
        User(email="retired-admin@lukamath.com", hashed_password=hash_password("Temp123!"), role="admin", is_active=False)
    )
    assert portal.users.count_active_admins() == 1
    resp = portal.client.patch(f"/api/admin/users/{uid}", json={"role": "tutor"}, headers=portal.headers("admin"))
    assert resp.status_code == 200
    assert portal.users.get_by_id(uid).role == "tutor"
    assert portal.users.count_active_admins() == 1
