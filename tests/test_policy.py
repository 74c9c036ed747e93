"""Unit tests for auth/policy.py -- role and ownership rules.

These are pure functions of (Identity, entity), so no client or store is
needed: build the objects and assert allow/deny.
"""

import pytest

from auth import policy
from auth.models import Identity
from core.errors import ForbiddenError
from homework.models import Homework, Question, Submission

STUDENT = Identity(subject="s1", role="student")
OTHER_STUDENT = Identity(subject="s2", role="student")
TUTOR = Identity(subject="t1", role="tutor")
OTHER_TUTOR = Identity(subject="t2", role="tutor")
ADMIN = Identity(subject="a1", role="admin")


@pytest.fixture
def hw():
    return Homework(id="h1", student_id="s1", tutor_id="t1", title="T", description="D", subject="algebra")


@pytest.fixture
def sub():
    return Submission(
        id="x1",
        homework_id="h1",
        student_id="s1",
        file_name="a.pdf",
        original_name="a.pdf",
        file_url="/u/a.pdf",
        file_size=1,
        mime_type="application/pdf",
    )


@pytest.mark.parametrize("identity", [TUTOR, ADMIN])
def test_tutors_and_admins_create_homework(identity):
    policy.authorize_homework_create(identity)


def test_students_cannot_create_homework():
    with pytest.raises(ForbiddenError):
        policy.authorize_homework_create(STUDENT)


@pytest.mark.parametrize("identity,allowed", [(STUDENT, True), (TUTOR, True), (ADMIN, True), (OTHER_STUDENT, False), (OTHER_TUTOR, False)])
def test_homework_visibility(hw, identity, allowed):
    assert policy.can_view_homework(identity, hw) is allowed


def test_student_may_only_touch_completion(hw):
    policy.authorize_homework_update(STUDENT, hw, ["is_completed", "status"])
    with pytest.raises(ForbiddenError) as exc_info:
        policy.authorize_homework_update(STUDENT, hw, ["is_completed", "grade"])
    assert "grade" in exc_info.value.message


def test_author_and_admin_update_anything(hw):
    policy.authorize_homework_update(TUTOR, hw, ["title", "grade", "feedback"])
    policy.authorize_homework_update(ADMIN, hw, ["title"])


@pytest.mark.parametrize("identity", [OTHER_STUDENT, OTHER_TUTOR])
def test_outsiders_cannot_update(hw, identity):
    with pytest.raises(ForbiddenError):
        policy.authorize_homework_update(identity, hw, ["status"])


def test_delete_is_author_or_admin(hw):
    policy.authorize_homework_delete(TUTOR, hw)
    policy.authorize_homework_delete(ADMIN, hw)
    for identity in (STUDENT, OTHER_TUTOR):
        with pytest.raises(ForbiddenError):
            policy.authorize_homework_delete(identity, hw)


@pytest.mark.parametrize(
    "identity,purpose,allowed",
    [
        (TUTOR, "assignment", True),
        (TUTOR, "feedback", True),
        (TUTOR, "submission", False),
        (STUDENT, "submission", True),
        (STUDENT, "feedback", False),
        (OTHER_STUDENT, "submission", False),
        (ADMIN, "feedback", True),
    ],
)
def test_file_upload_purposes(hw, identity, purpose, allowed):
    if allowed:
        policy.authorize_file_upload(identity, hw, purpose)
    else:
        with pytest.raises(ForbiddenError):
            policy.authorize_file_upload(identity, hw, purpose)


def test_only_addressee_submits(hw):
    policy.authorize_submission_create(STUDENT, hw)
    for identity in (OTHER_STUDENT, TUTOR, ADMIN):
        with pytest.raises(ForbiddenError):
            policy.authorize_submission_create(identity, hw)


def test_submission_read(hw, sub):
    for identity in (STUDENT, TUTOR, ADMIN):
        policy.authorize_submission_read(identity, sub, hw)
    for identity in (OTHER_STUDENT, OTHER_TUTOR):
        with pytest.raises(ForbiddenError):
            policy.authorize_submission_read(identity, sub, hw)


def test_submission_read_without_homework_falls_back_to_owner(sub):
    policy.authorize_submission_read(STUDENT, sub, None)
    with pytest.raises(ForbiddenError):
        policy.authorize_submission_read(TUTOR, sub, None)


def test_submission_update_is_owner_or_admin(sub):
    policy.authorize_submission_update(STUDENT, sub)
    policy.authorize_submission_update(ADMIN, sub)
    for identity in (OTHER_STUDENT, TUTOR):
        with pytest.raises(ForbiddenError):
            policy.authorize_submission_update(identity, sub)


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


def test_only_students_ask():
    policy.authorize_question_create(STUDENT)
    for identity in (TUTOR, ADMIN):
        with pytest.raises(ForbiddenError):
            policy.authorize_question_create(identity)


def test_question_listing_and_reading():
    q = Question(id="q1", student_id="s1", subject="algebra", title="T", content="C")
    for identity in (STUDENT, TUTOR, OTHER_TUTOR, ADMIN):
        policy.authorize_question_list(identity, "s1")
        policy.authorize_question_read(identity, q)
    with pytest.raises(ForbiddenError):
        policy.authorize_question_list(OTHER_STUDENT, "s1")
    with pytest.raises(ForbiddenError):
        policy.authorize_question_read(OTHER_STUDENT, q)


def test_tutors_and_admins_answer():
    policy.authorize_question_answer(TUTOR)
    policy.authorize_question_answer(ADMIN)
    with pytest.raises(ForbiddenError):
        policy.authorize_question_answer(STUDENT)
