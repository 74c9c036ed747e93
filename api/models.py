"""
API request and response models for the portal REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
homework/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format is camelCase (firstName, studentId, messageKey) -- the front-end
has always spoken it. Python code uses snake_case; the alias generator
bridges the two, and populate_by_name lets tests build models either way.
"""

import re
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from homework.models import Homework, HomeworkFile, Question, Submission

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

_PASSWORD_RULES = (
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"\d"), "a number"),
    (re.compile(r"[@$!%*?&]"), "a special character (@$!%*?&)"),
)


def _check_password_strength(value: str) -> str:
    missing = [label for pattern, label in _PASSWORD_RULES if not pattern.search(value)]
    if missing:
        raise ValueError("Password must contain " + ", ".join(missing))
    return value


def _reject_null(value):
    # PATCH fields may be omitted, but a required column cannot be set to null.
    if value is None:
        raise ValueError("Field may be omitted but not set to null")
    return value


class _WireModel(BaseModel):
    # Passwords must arrive byte-for-byte; no str_strip_whitespace here.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class DifficultyEnum(str, Enum):
    easy = "easy"
    medium = "medium"
    hard = "hard"


class HomeworkStatusEnum(str, Enum):
    pending = "pending"
    in_progress = "in_progress"
    completed = "completed"


class FilePurposeEnum(str, Enum):
    assignment = "assignment"
    submission = "submission"
    feedback = "feedback"


class PriorityEnum(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    urgent = "urgent"


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(_WireModel):
    """Request body for POST /api/auth/register. Role is never client-chosen."""

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=72)
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    language: Literal["en", "hr"] = "en"

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(_WireModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class ChangePasswordRequest(_WireModel):
    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class VerifyTokenRequest(_WireModel):
    token: str = ""


class UserPatch(_WireModel):
    """Request body for PATCH /api/admin/users/{id}."""

    role: Optional[Literal["student", "tutor", "admin"]] = None
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class UserResponse(_WireModel):
    """Public view of a user. The password hash never leaves the server."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: str
    language: str
    is_email_verified: bool
    is_active: bool
    last_login_at: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            language=user.language,
            is_email_verified=user.is_email_verified,
            is_active=user.is_active,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class MessageResponse(_WireModel):
    success: bool = True
    message: str
    message_key: Optional[str] = None


class AuthResponse(MessageResponse):
    """Response for register and login: the token and the account it is for."""

    token: Optional[str] = None
    user: Optional[UserResponse] = None


class MeResponse(MessageResponse):
    user: UserResponse


class VerifyTokenResponse(MessageResponse):
    valid: bool
    user: Optional[UserResponse] = None


# ---------------------------------------------------------------------------
# Homework
# ---------------------------------------------------------------------------


class HomeworkCreate(_WireModel):
    """Request body for POST /api/homework.

    tutor_id is honoured only for admins; tutors always author as themselves.
    """

    student_id: str = Field(min_length=1, max_length=36)
    tutor_id: Optional[str] = Field(default=None, max_length=36)
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1, max_length=5000)
    instructions: Optional[str] = Field(default=None, max_length=5000)
    subject: str = Field(min_length=1, max_length=50)
    difficulty: DifficultyEnum = DifficultyEnum.medium
    due_date: Optional[str] = Field(default=None, max_length=32)


class HomeworkPatch(_WireModel):
    """Request body for PATCH /api/homework/{id}. Only sent fields are applied.

    Nullable columns (instructions, dueDate, grade, feedback) accept null to
    clear them; the rest reject it.
    """

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    instructions: Optional[str] = Field(default=None, max_length=5000)
    subject: Optional[str] = Field(default=None, min_length=1, max_length=50)
    difficulty: Optional[DifficultyEnum] = None
    due_date: Optional[str] = Field(default=None, max_length=32)
    status: Optional[HomeworkStatusEnum] = None
    is_completed: Optional[bool] = None
    grade: Optional[int] = Field(default=None, ge=0, le=100)
    feedback: Optional[str] = Field(default=None, max_length=5000)

    @field_validator("title", "description", "subject", "difficulty", "status", "is_completed")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class HomeworkResponse(_WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    student_id: str
    tutor_id: str
    title: str
    description: str
    instructions: Optional[str]
    subject: str
    difficulty: str
    due_date: Optional[str]
    status: str
    is_completed: bool
    completed_at: Optional[str]
    grade: Optional[int]
    feedback: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_homework(cls, hw: Homework) -> "HomeworkResponse":
        return cls(
            id=hw.id,
            student_id=hw.student_id,
            tutor_id=hw.tutor_id,
            title=hw.title,
            description=hw.description,
            instructions=hw.instructions,
            subject=hw.subject,
            difficulty=hw.difficulty,
            due_date=hw.due_date,
            status=hw.status,
            is_completed=hw.is_completed,
            completed_at=hw.completed_at,
            grade=hw.grade,
            feedback=hw.feedback,
            created_at=hw.created_at,
            updated_at=hw.updated_at,
        )


class HomeworkFileCreate(_WireModel):
    """Request body for POST /api/homework/{id}/files. Uploader comes from the token."""

    file_name: str = Field(min_length=1, max_length=255)
    file_url: str = Field(min_length=1, max_length=2048)
    file_type: str = Field(min_length=1, max_length=30)
    purpose: FilePurposeEnum = FilePurposeEnum.submission


class HomeworkFileResponse(_WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    homework_id: str
    file_name: str
    file_url: str
    file_type: str
    uploaded_by: str
    purpose: str
    created_at: str

    @classmethod
    def from_file(cls, f: HomeworkFile) -> "HomeworkFileResponse":
        return cls(
            id=f.id,
            homework_id=f.homework_id,
            file_name=f.file_name,
            file_url=f.file_url,
            file_type=f.file_type,
            uploaded_by=f.uploaded_by,
            purpose=f.purpose,
            created_at=f.created_at,
        )


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

_MAX_SUBMISSION_BYTES = 10 * 1024 * 1024  # 10 MB


class SubmissionCreate(_WireModel):
    """Request body for POST /api/homework/{id}/submissions.

    There is deliberately no studentId field: the owner is the token subject.
    """

    file_name: str = Field(min_length=1, max_length=255)
    original_name: str = Field(min_length=1, max_length=255)
    file_url: str = Field(min_length=1, max_length=2048)
    file_size: int = Field(ge=0, le=_MAX_SUBMISSION_BYTES)
    mime_type: str = Field(min_length=1, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=2000)


class SubmissionPatch(_WireModel):
    file_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    original_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    file_url: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    file_size: Optional[int] = Field(default=None, ge=0, le=_MAX_SUBMISSION_BYTES)
    mime_type: Optional[str] = Field(default=None, min_length=1, max_length=100)
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("file_name", "original_name", "file_url", "file_size", "mime_type")
    @classmethod
    def not_null(cls, value):
        return _reject_null(value)


class SubmissionResponse(_WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    homework_id: str
    student_id: str
    file_name: str
    original_name: str
    file_url: str
    file_size: int
    mime_type: str
    notes: Optional[str]
    created_at: str

    @classmethod
    def from_submission(cls, sub: Submission) -> "SubmissionResponse":
        return cls(
            id=sub.id,
            homework_id=sub.homework_id,
            student_id=sub.student_id,
            file_name=sub.file_name,
            original_name=sub.original_name,
            file_url=sub.file_url,
            file_size=sub.file_size,
            mime_type=sub.mime_type,
            notes=sub.notes,
            created_at=sub.created_at,
        )


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------


class QuestionCreate(_WireModel):
    """Request body for POST /api/questions. The asker comes from the token."""

    subject: str = Field(min_length=1, max_length=50)
    title: str = Field(min_length=1, max_length=255)
    content: str = Field(min_length=1, max_length=5000)
    priority: PriorityEnum = PriorityEnum.medium


class AnswerRequest(_WireModel):
    answer: str = Field(max_length=5000)

    @field_validator("answer")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Answer is required")
        return value


class QuestionResponse(_WireModel):
    model_config = ConfigDict(frozen=True)

    id: str
    student_id: str
    subject: str
    title: str
    content: str
    priority: str
    is_answered: bool
    answer: Optional[str]
    answered_by: Optional[str]
    answered_at: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_question(cls, q: Question) -> "QuestionResponse":
        return cls(
            id=q.id,
            student_id=q.student_id,
            subject=q.subject,
            title=q.title,
            content=q.content,
            priority=q.priority,
            is_answered=q.is_answered,
            answer=q.answer,
            answered_by=q.answered_by,
            answered_at=q.answered_at,
            created_at=q.created_at,
            updated_at=q.updated_at,
        )


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
