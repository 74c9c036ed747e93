"""
api/routes/v1/questions.py -- Questions students ask their tutors.

Routes (fixed paths before /questions/{q_id}):
  GET   /questions                       -- student: own; tutor/admin: all
  POST  /questions                       -- students only
  GET   /questions/unanswered            -- tutor/admin
  GET   /questions/student/{student_id}  -- that student, or tutor/admin
  GET   /questions/{q_id}
  PATCH /questions/{q_id}/answer         -- tutor/admin; answered_by is the token subject

Questions are never edited or deleted by the asker; answering again replaces
the previous answer.
"""

from fastapi import APIRouter, Depends, Request

from api.models import AnswerRequest, QuestionCreate, QuestionResponse
from auth import policy
from auth.dependencies import get_current_identity, require_roles
from auth.models import Identity
from core.errors import NotFoundError
from homework.models import Question
from homework.store import HomeworkStore

router = APIRouter(dependencies=[Depends(get_current_identity)])


def _load_question(store: HomeworkStore, q_id: str) -> Question:
    q = store.get_question(q_id)
    if q is None:
        raise NotFoundError("Question not found", "question.not_found")
    return q


@router.get("/questions", response_model=list[QuestionResponse])
def list_questions(request: Request, identity: Identity = Depends(get_current_identity)) -> list[QuestionResponse]:
    store: HomeworkStore = request.app.state.homework_store
    only_student = identity.subject if identity.role == "student" else None
    return [QuestionResponse.from_question(q) for q in store.list_questions(student_id=only_student)]


@router.post("/questions", response_model=QuestionResponse, status_code=201)
def ask_question(
    request: Request,
    body: QuestionCreate,
    identity: Identity = Depends(get_current_identity),
) -> QuestionResponse:
    policy.authorize_question_create(identity)
    store: HomeworkStore = request.app.state.homework_store
    q_id = store.create_question(
        Question(
            student_id=identity.subject,
            subject=body.subject,
            title=body.title,
            content=body.content,
            priority=body.priority.value,
        )
    )
    return QuestionResponse.from_question(_load_question(store, q_id))


@router.get(
    "/questions/unanswered",
    response_model=list[QuestionResponse],
    dependencies=[Depends(require_roles("tutor", "admin"))],
)
def list_unanswered(request: Request) -> list[QuestionResponse]:
    store: HomeworkStore = request.app.state.homework_store
    return [QuestionResponse.from_question(q) for q in store.list_questions(unanswered=True)]


@router.get("/questions/student/{student_id}", response_model=list[QuestionResponse])
def list_for_student(
    request: Request, student_id: str, identity: Identity = Depends(get_current_identity)
) -> list[QuestionResponse]:
    policy.authorize_question_list(identity, student_id)
    store: HomeworkStore = request.app.state.homework_store
    return [QuestionResponse.from_question(q) for q in store.list_questions(student_id=student_id)]


@router.get("/questions/{q_id}", response_model=QuestionResponse)
def get_question(request: Request, q_id: str, identity: Identity = Depends(get_current_identity)) -> QuestionResponse:
    q = _load_question(request.app.state.homework_store, q_id)
    policy.authorize_question_read(identity, q)
    return QuestionResponse.from_question(q)


@router.patch("/questions/{q_id}/answer", response_model=QuestionResponse)
def answer_question(
    request: Request,
    q_id: str,
    body: AnswerRequest,
    identity: Identity = Depends(get_current_identity),
) -> QuestionResponse:
    store: HomeworkStore = request.app.state.homework_store
    _load_question(store, q_id)
    policy.authorize_question_answer(identity)
    store.answer_question(q_id, body.answer, identity.subject)
    return QuestionResponse.from_question(_load_question(store, q_id))
