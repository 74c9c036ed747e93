"""
auth/policy.py -- Role and ownership rules for homework, submissions and questions.

Every check here is a pure function of (verified Identity, loaded entity).
Route handlers follow the same order for every mutating operation:

    1. load the target        -> NotFoundError if absent (404, not 403)
    2. authorize_*(...)       -> ForbiddenError on denial
    3. mutate via the store

so a denied request never reaches step 3 and leaves the record untouched.

Ownership is always compared against identity.subject from the token, never
against an id the client put in the body.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import Identity
from core.errors import ForbiddenError
from homework.models import Homework, Question, Submission

# Fields an addressed student may change on their own homework.
STUDENT_HOMEWORK_FIELDS = frozenset({"is_completed", "status"})

# File purposes per uploader relationship.
TUTOR_FILE_PURPOSES = frozenset({"assignment", "feedback"})
STUDENT_FILE_PURPOSES = frozenset({"submission"})


def _deny(message: str) -> ForbiddenError:
    return ForbiddenError(message)


# ---------------------------------------------------------------------------
# Homework
# ---------------------------------------------------------------------------


def authorize_homework_create(identity: Identity) -> None:
    if identity.role not in ("tutor", "admin"):
        raise _deny("Only tutors can assign homework")


def can_view_homework(identity: Identity, hw: Homework) -> bool:
    return identity.is_admin or identity.subject in (hw.student_id, hw.tutor_id)


def authorize_homework_read(identity: Identity, hw: Homework) -> None:
    if not can_view_homework(identity, hw):
        raise _deny("You do not have access to this homework")


def authorize_homework_update(identity: Identity, hw: Homework, fields: Iterable[str]) -> None:
    """Authors and admins may change anything; the addressee only completion."""
    if identity.is_admin or identity.subject == hw.tutor_id:
        return
    if identity.subject == hw.student_id:
        extra = set(fields) - STUDENT_HOMEWORK_FIELDS
        if extra:
            raise _deny(f"Students may not change: {', '.join(sorted(extra))}")
        return
    raise _deny("Only the assigning tutor can modify this homework")


def authorize_homework_delete(identity: Identity, hw: Homework) -> None:
    if not (identity.is_admin or identity.subject == hw.tutor_id):
        raise _deny("Only the assigning tutor can delete this homework")


def authorize_file_upload(identity: Identity, hw: Homework, purpose: str) -> None:
    if identity.is_admin:
        return
    if identity.subject == hw.tutor_id and purpose in TUTOR_FILE_PURPOSES:
        return
    if identity.subject == hw.student_id and purpose in STUDENT_FILE_PURPOSES:
        return
    raise _deny(f"You cannot attach a '{purpose}' file to this homework")


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


def authorize_submission_create(identity: Identity, hw: Homework) -> None:
    """Only the addressed student can submit, and only as themselves."""
    if identity.role != "student" or identity.subject != hw.student_id:
        raise _deny("You can only submit homework assigned to you")


def authorize_submission_read(identity: Identity, sub: Submission, hw: Homework | None) -> None:
    if identity.is_admin or identity.subject == sub.student_id:
        return
    if hw is not None and identity.subject == hw.tutor_id:
        return
    raise _deny("You do not have access to this submission")


def authorize_submission_update(identity: Identity, sub: Submission) -> None:
    """Covers edit and delete: the owning student or an admin."""
    if not (identity.is_admin or identity.subject == sub.student_id):
        raise _deny("You can only modify your own submissions")


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


def _answers_questions(identity: Identity) -> bool:
    return identity.role in ("tutor", "admin")


def authorize_question_create(identity: Identity) -> None:
    """Students ask; the asker is always the token subject."""
    if identity.role != "student":
        raise _deny("Only students can ask questions")


def authorize_question_list(identity: Identity, student_id: str) -> None:
    if not (_answers_questions(identity) or identity.subject == student_id):
        raise _deny("You can only list your own questions")


def authorize_question_read(identity: Identity, q: Question) -> None:
    if not (_answers_questions(identity) or identity.subject == q.student_id):
        raise _deny("You do not have access to this question")


def authorize_question_answer(identity: Identity) -> None:
    if not _answers_questions(identity):
        raise _deny("Only tutors can answer questions")
