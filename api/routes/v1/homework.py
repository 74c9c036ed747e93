"""
api/routes/v1/homework.py -- Homework and attached-file routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /homework                -- list what the caller may see
  POST   /homework                -- assign homework (tutor/admin)
  GET    /homework/{hw_id}        -- detail
  PATCH  /homework/{hw_id}        -- edit / grade / mark complete
  DELETE /homework/{hw_id}        -- remove with files and submissions
  GET    /homework/{hw_id}/files  -- list attached files
  POST   /homework/{hw_id}/files  -- attach a file

Every handler that touches a single homework item does load -> authorize ->
mutate, with the rules in auth/policy.py. Handlers are plain def so FastAPI
runs them (and their DB calls) in its threadpool.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.models import (
    HomeworkCreate,
    HomeworkFileCreate,
    HomeworkFileResponse,
    HomeworkPatch,
    HomeworkResponse,
)
from auth import policy
from auth.dependencies import get_current_identity
from auth.models import Identity
from auth.store import UserStore
from core.errors import NotFoundError, ValidationFailedError
from homework.models import Homework, HomeworkFile
from homework.store import HomeworkStore

# All homework routes require a verified token.
router = APIRouter(dependencies=[Depends(get_current_identity)])


def load_homework(store: HomeworkStore, hw_id: str) -> Homework:
    hw = store.get_homework(hw_id)
    if hw is None:
        raise NotFoundError("Homework not found", "homework.not_found")
    return hw


def _completion_fields(hw: Homework, updates: dict) -> dict:
    """Keep is_completed and status in step whichever of them is sent.

    Reopening (isCompleted false) moves a completed item back to pending; a
    status other than completed clears is_completed. Sending both in
    contradiction is rejected.
    """
    done = updates.get("is_completed")
    status = updates.get("status")
    if done is not None and status is not None:
        if done != (status == "completed"):
            raise ValidationFailedError("isCompleted and status disagree", "homework.completion_conflict")
    elif done is not None:
        if done:
            updates["status"] = "completed"
        elif hw.status == "completed":
            updates["status"] = "pending"
    elif status is not None:
        updates["is_completed"] = status == "completed"
    return updates


# ---------------------------------------------------------------------------
# Homework
# ---------------------------------------------------------------------------


@router.get("/homework", response_model=list[HomeworkResponse])
def list_homework(request: Request, identity: Identity = Depends(get_current_identity)) -> list[HomeworkResponse]:
    """Students see homework addressed to them, tutors what they authored, admins everything."""
    store: HomeworkStore = request.app.state.homework_store
    if identity.role == "student":
        items = store.list_homework(student_id=identity.subject)
    elif identity.role == "tutor":
        items = store.list_homework(tutor_id=identity.subject)
    else:
        items = store.list_homework()
    return [HomeworkResponse.from_homework(hw) for hw in items]


@router.post("/homework", response_model=HomeworkResponse, status_code=201)
def create_homework(
    request: Request,
    body: HomeworkCreate,
    identity: Identity = Depends(get_current_identity),
) -> HomeworkResponse:
    policy.authorize_homework_create(identity)
    users: UserStore = request.app.state.user_store
    store: HomeworkStore = request.app.state.homework_store

    student = users.get_by_id(body.student_id)
    if student is None or student.role != "student":
        raise ValidationFailedError("Student not found", "homework.student_not_found")

    tutor_id = identity.subject
    if identity.is_admin and body.tutor_id:
        tutor = users.get_by_id(body.tutor_id)
        if tutor is None or tutor.role not in ("tutor", "admin"):
            raise ValidationFailedError("Tutor not found", "homework.tutor_not_found")
        tutor_id = tutor.id

    hw_id = store.create_homework(
        Homework(
            student_id=student.id,
            tutor_id=tutor_id,
            title=body.title,
            description=body.description,
            instructions=body.instructions,
            subject=body.subject,
            difficulty=body.difficulty.value,
            due_date=body.due_date,
        )
    )
    return HomeworkResponse.from_homework(store.get_homework(hw_id))


@router.get("/homework/{hw_id}", response_model=HomeworkResponse)
def get_homework(request: Request, hw_id: str, identity: Identity = Depends(get_current_identity)) -> HomeworkResponse:
    hw = load_homework(request.app.state.homework_store, hw_id)
    policy.authorize_homework_read(identity, hw)
    return HomeworkResponse.from_homework(hw)


@router.patch("/homework/{hw_id}", response_model=HomeworkResponse)
def update_homework(
    request: Request,
    hw_id: str,
    body: HomeworkPatch,
    identity: Identity = Depends(get_current_identity),
) -> HomeworkResponse:
    store: HomeworkStore = request.app.state.homework_store
    hw = load_homework(store, hw_id)
    updates = body.model_dump(exclude_unset=True, mode="json")
    if not updates:
        raise ValidationFailedError("No fields to update", "error.no_changes")
    policy.authorize_homework_update(identity, hw, updates.keys())
    store.update_homework(hw_id, **_completion_fields(hw, updates))
    return HomeworkResponse.from_homework(load_homework(store, hw_id))


@router.delete("/homework/{hw_id}", status_code=204)
def delete_homework(request: Request, hw_id: str, identity: Identity = Depends(get_current_identity)) -> Response:
    store: HomeworkStore = request.app.state.homework_store
    hw = load_homework(store, hw_id)
    policy.authorize_homework_delete(identity, hw)
    store.delete_homework(hw_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


@router.get("/homework/{hw_id}/files", response_model=list[HomeworkFileResponse])
def list_files(
    request: Request, hw_id: str, identity: Identity = Depends(get_current_identity)
) -> list[HomeworkFileResponse]:
    store: HomeworkStore = request.app.state.homework_store
    hw = load_homework(store, hw_id)
    policy.authorize_homework_read(identity, hw)
    return [HomeworkFileResponse.from_file(f) for f in store.list_files(hw_id)]


@router.post("/homework/{hw_id}/files", response_model=HomeworkFileResponse, status_code=201)
def add_file(
    request: Request,
    hw_id: str,
    body: HomeworkFileCreate,
    identity: Identity = Depends(get_current_identity),
) -> HomeworkFileResponse:
    store: HomeworkStore = request.app.state.homework_store
    hw = load_homework(store, hw_id)
    policy.authorize_file_upload(identity, hw, body.purpose.value)
    file_id = store.add_file(
        HomeworkFile(
            homework_id=hw_id,
            file_name=body.file_name,
            file_url=body.file_url,
            file_type=body.file_type,
            uploaded_by=identity.subject,
            purpose=body.purpose.value,
        )
    )
    created = next(f for f in store.list_files(hw_id) if f.id == file_id)
    return HomeworkFileResponse.from_file(created)
