"""
homework/models.py -- Domain dataclasses for homework, submissions and student questions.

These are pure data containers with zero logic. Ownership rules live in
auth/policy.py; persistence in homework/store.py.

id is None on every model before the record is written to the database.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Homework:
    """An assignment a tutor addresses to one student.

    tutor_id is the author (may modify it); student_id is the addressee
    (may submit against it and toggle completion).
    """

    student_id: str
    tutor_id: str
    title: str
    description: str
    subject: str  # "algebra" | "geometry" | "calculus" | ...
    difficulty: str = "medium"  # "easy" | "medium" | "hard"
    status: str = "pending"  # "pending" | "in_progress" | "completed"
    instructions: Optional[str] = None
    due_date: Optional[str] = None  # ISO 8601
    is_completed: bool = False
    completed_at: Optional[str] = None
    grade: Optional[int] = None  # 0-100
    feedback: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class HomeworkFile:
    """A file attached to homework by its tutor or its student."""

    homework_id: str
    file_name: str
    file_url: str
    file_type: str  # "pdf" | "image" | "doc" | ...
    uploaded_by: str
    purpose: str  # "assignment" | "submission" | "feedback"
    id: Optional[str] = None
    created_at: str = ""


@dataclass
class Submission:
    """A student's uploaded answer to a homework item. student_id owns it."""

    homework_id: str
    student_id: str
    file_name: str
    original_name: str
    file_url: str
    file_size: int
    mime_type: str
    notes: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""


@dataclass
class Question:
    """A question a student asks the tutors. student_id owns it; any tutor
    or admin may answer it."""

    student_id: str
    subject: str
    title: str
    content: str
    priority: str = "medium"  # "low" | "medium" | "high" | "urgent"
    is_answered: bool = False
    answer: Optional[str] = None
    answered_by: Optional[str] = None
    answered_at: Optional[str] = None
    id: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
