"""
api/routes/v1/submissions.py -- Student homework submissions.

Routes:
  GET    /homework/{hw_id}/submissions  -- student: own; tutor/admin: all
  POST   /homework/{hw_id}/submissions  -- addressed student only
  GET    /submissions/{sub_id}
  PATCH  /submissions/{sub_id}          -- owning student or admin
  DELETE /submissions/{sub_id}          -- owning student or admin

The submission's student_id is always the token subject. A studentId sent in
the body is ignored (SubmissionCreate has no such field).
"""

from fastapi import APIRouter, Depends, Request, Response

from api.models import SubmissionCreate, SubmissionPatch, SubmissionResponse
from api.routes.v1.homework import load_homework
from auth import policy
from auth.dependencies import get_current_identity
from auth.models import Identity
from core.errors import NotFoundError, ValidationFailedError
from homework.models import Submission
from homework.store import HomeworkStore

router = APIRouter(dependencies=[Depends(get_current_identity)])


def _load_submission(store: HomeworkStore, sub_id: str) -> Submission:
    sub = store.get_submission(sub_id)
    if sub is None:
        raise NotFoundError("Submission not found", "submission.not_found")
    return sub


@router.get("/homework/{hw_id}/submissions", response_model=list[SubmissionResponse])
def list_submissions(
    request: Request, hw_id: str, identity: Identity = Depends(get_current_identity)
) -> list[SubmissionResponse]:
    store: HomeworkStore = request.app.state.homework_store
    hw = load_homework(store, hw_id)
    policy.authorize_homework_read(identity, hw)
    only_student = identity.subject if identity.role == "student" else None
    return [SubmissionResponse.from_submission(s) for s in store.list_submissions(hw_id, student_id=only_student)]


@router.post("/homework/{hw_id}/submissions", response_model=SubmissionResponse, status_code=201)
def create_submission(
    request: Request,
    hw_id: str,
    body: SubmissionCreate,
    identity: Identity = Depends(get_current_identity),
) -> SubmissionResponse:
    store: HomeworkStore = request.app.state.homework_store
    hw = load_homework(store, hw_id)
    policy.authorize_submission_create(identity, hw)
    sub_id = store.create_submission(
        Submission(
            homework_id=hw_id,
            student_id=identity.subject,
            file_name=body.file_name,
            original_name=body.original_name,
            file_url=body.file_url,
            file_size=body.file_size,
            mime_type=body.mime_type,
            notes=body.notes,
        )
    )
    return SubmissionResponse.from_submission(_load_submission(store, sub_id))


@router.get("/submissions/{sub_id}", response_model=SubmissionResponse)
def get_submission(
    request: Request, sub_id: str, identity: Identity = Depends(get_current_identity)
) -> SubmissionResponse:
    store: HomeworkStore = request.app.state.homework_store
    sub = _load_submission(store, sub_id)
    policy.authorize_submission_read(identity, sub, store.get_homework(sub.homework_id))
    return SubmissionResponse.from_submission(sub)


@router.patch("/submissions/{sub_id}", response_model=SubmissionResponse)
def update_submission(
    request: Request,
    sub_id: str,
    body: SubmissionPatch,
    identity: Identity = Depends(get_current_identity),
) -> SubmissionResponse:
    store: HomeworkStore = request.app.state.homework_store
    sub = _load_submission(store, sub_id)
    policy.authorize_submission_update(identity, sub)
    updates = body.model_dump(exclude_unset=True)
    if not updates:
        raise ValidationFailedError("No fields to update", "error.no_changes")
    store.update_submission(sub_id, **updates)
    return SubmissionResponse.from_submission(_load_submission(store, sub_id))


@router.delete("/submissions/{sub_id}", status_code=204)
def delete_submission(request: Request, sub_id: str, identity: Identity = Depends(get_current_identity)) -> Response:
    store: HomeworkStore = request.app.state.homework_store
    sub = _load_submission(store, sub_id)
    policy.authorize_submission_update(identity, sub)
    store.delete_submission(sub_id)
    return Response(status_code=204)
