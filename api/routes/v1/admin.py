"""
api/routes/v1/admin.py -- Account administration (admin role only).

Routes:
  GET   /admin/students        -- all student accounts, newest first
  GET   /admin/tutors          -- all tutor accounts
  PATCH /admin/users/{user_id} -- assign role / activate / deactivate

Accounts are never deleted; deactivation is the end of their lifecycle.
Guards: an admin cannot deactivate or demote themselves, and the last
active admin cannot be deactivated or demoted.
"""

from fastapi import APIRouter, Depends, Request

from api.models import UserPatch, UserResponse
from auth.dependencies import require_admin
from auth.models import Identity
from auth.store import UserStore
from core.errors import NotFoundError, ValidationFailedError

router = APIRouter(dependencies=[Depends(require_admin)])


@router.get("/admin/students", response_model=list[UserResponse])
def list_students(request: Request) -> list[UserResponse]:
    store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in store.list_by_role("student")]


@router.get("/admin/tutors", response_model=list[UserResponse])
def list_tutors(request: Request) -> list[UserResponse]:
    store: UserStore = request.app.state.user_store
    return [UserResponse.from_user(u) for u in store.list_by_role("tutor")]


@router.patch("/admin/users/{user_id}", response_model=UserResponse)
def update_user(
    request: Request,
    user_id: str,
    body: UserPatch,
    identity: Identity = Depends(require_admin),
) -> UserResponse:
    store: UserStore = request.app.state.user_store
    target = store.get_by_id(user_id)
    if target is None:
        raise NotFoundError("User not found", "auth.user_not_found")

    updates = body.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise ValidationFailedError("No fields to update", "error.no_changes")

    losing_admin = target.role == "admin" and (
        updates.get("is_active") is False or updates.get("role", "admin") != "admin"
    )
    if losing_admin and target.id == identity.subject:
        raise ValidationFailedError("You cannot remove your own admin access", "admin.self_demotion")
    # An inactive admin does not count towards the active ones.
    if losing_admin and target.is_active and store.count_active_admins() <= 1:
        raise ValidationFailedError("Cannot remove the last active admin", "admin.last_admin")

    store.update_user(user_id, **updates)
    return UserResponse.from_user(store.get_by_id(user_id))
