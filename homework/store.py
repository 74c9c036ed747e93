"""
homework/store.py -- SQLAlchemy-backed persistence for homework, attached
files, student submissions and student questions.

Uses SQLAlchemy Core (not ORM) so the dataclasses in homework/models.py stay
the authoritative domain representation.

Pattern: Repository + Data Mapper. HomeworkStore is the repository; the
_row_to_* functions are the mappers. Route handlers never touch SQL directly,
and never call a mutating method before auth/policy.py has approved the
caller -- the store itself does no authorization.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = HomeworkStore("sqlite:///:memory:")
    hw_id = store.create_homework(Homework(student_id=..., tutor_id=..., ...))
    store.update_homework(hw_id, grade=92, feedback="Nice work")
    store.close()
"""

import uuid
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine

from core.config import get_settings
from core.db import make_engine, now_iso
from homework.models import Homework, HomeworkFile, Question, Submission

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_homework = Table(
    "homework",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("student_id", String(36), nullable=False, index=True),
    Column("tutor_id", String(36), nullable=False, index=True),
    Column("title", Text, nullable=False),
    Column("description", Text, nullable=False),
    Column("instructions", Text),
    Column("subject", String(50), nullable=False),
    Column("difficulty", String(10), nullable=False, server_default="medium"),
    Column("due_date", String(32)),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("is_completed", Integer, nullable=False, server_default="0"),
    Column("completed_at", String(32)),
    Column("grade", Integer),
    Column("feedback", Text),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_files = Table(
    "homework_files",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("homework_id", String(36), nullable=False, index=True),
    Column("file_name", Text, nullable=False),
    Column("file_url", Text, nullable=False),
    Column("file_type", String(30), nullable=False),
    Column("uploaded_by", String(36), nullable=False),
    Column("purpose", String(20), nullable=False),
    Column("created_at", String(32), nullable=False),
)

_submissions = Table(
    "student_submissions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("homework_id", String(36), nullable=False, index=True),
    Column("student_id", String(36), nullable=False, index=True),
    Column("file_name", Text, nullable=False),
    Column("original_name", Text, nullable=False),
    Column("file_url", Text, nullable=False),
    Column("file_size", Integer, nullable=False),
    Column("mime_type", String(100), nullable=False),
    Column("notes", Text),
    Column("created_at", String(32), nullable=False),
)

_questions = Table(
    "questions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("student_id", String(36), nullable=False, index=True),
    Column("subject", String(50), nullable=False),
    Column("title", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("priority", String(10), nullable=False, server_default="medium"),
    Column("is_answered", Integer, nullable=False, server_default="0"),
    Column("answer", Text),
    Column("answered_by", String(36)),
    Column("answered_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_HOMEWORK_FIELDS = {
    "title",
    "description",
    "instructions",
    "subject",
    "difficulty",
    "due_date",
    "status",
    "is_completed",
    "grade",
    "feedback",
}
_SUBMISSION_FIELDS = {"notes", "file_name", "original_name", "file_url", "file_size", "mime_type"}


class HomeworkStore:
    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Homework
    # ------------------------------------------------------------------

    def create_homework(self, hw: Homework) -> str:
        hw_id = hw.id or str(uuid.uuid4())
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _homework.insert().values(
                    id=hw_id,
                    student_id=hw.student_id,
                    tutor_id=hw.tutor_id,
                    title=hw.title,
                    description=hw.description,
                    instructions=hw.instructions,
                    subject=hw.subject,
                    difficulty=hw.difficulty,
                    due_date=hw.due_date,
                    status=hw.status,
                    is_completed=1 if hw.is_completed else 0,
                    grade=hw.grade,
                    feedback=hw.feedback,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return hw_id

    def get_homework(self, hw_id: str) -> Optional[Homework]:
        with self.engine.connect() as conn:
            row = conn.execute(_homework.select().where(_homework.c.id == hw_id)).fetchone()
        return _row_to_homework(row) if row is not None else None

    def list_homework(self, student_id: Optional[str] = None, tutor_id: Optional[str] = None) -> list[Homework]:
        """Return homework newest first, optionally filtered by addressee and/or author."""
        query = _homework.select()
        if student_id is not None:
            query = query.where(_homework.c.student_id == student_id)
        if tutor_id is not None:
            query = query.where(_homework.c.tutor_id == tutor_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_homework.c.created_at.desc())).fetchall()
        return [_row_to_homework(r) for r in rows]

    def update_homework(self, hw_id: str, **fields) -> bool:
        """Update mutable homework fields. Returns False if hw_id does not exist.

        Marking is_completed also stamps completed_at (and clears it when
        reopened). Raises ValueError for unknown fields.
        """
        unknown = set(fields) - _HOMEWORK_FIELDS
        if unknown:
            raise ValueError(f"Unknown homework fields: {unknown!r}")
        values = dict(fields)
        if "is_completed" in values:
            done = bool(values["is_completed"])
            values["is_completed"] = 1 if done else 0
            values["completed_at"] = now_iso() if done else None
        values["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_homework.update().where(_homework.c.id == hw_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_homework(self, hw_id: str) -> bool:
        """Delete homework together with its files and submissions, atomically."""
        with self.engine.begin() as conn:
            conn.execute(_files.delete().where(_files.c.homework_id == hw_id))
            conn.execute(_submissions.delete().where(_submissions.c.homework_id == hw_id))
            result = conn.execute(_homework.delete().where(_homework.c.id == hw_id))
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def add_file(self, f: HomeworkFile) -> str:
        file_id = f.id or str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                _files.insert().values(
                    id=file_id,
                    homework_id=f.homework_id,
                    file_name=f.file_name,
                    file_url=f.file_url,
                    file_type=f.file_type,
                    uploaded_by=f.uploaded_by,
                    purpose=f.purpose,
                    created_at=now_iso(),
                )
            )
            conn.commit()
        return file_id

    def list_files(self, hw_id: str) -> list[HomeworkFile]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _files.select().where(_files.c.homework_id == hw_id).order_by(_files.c.created_at.desc())
            ).fetchall()
        return [_row_to_file(r) for r in rows]

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def create_submission(self, sub: Submission) -> str:
        sub_id = sub.id or str(uuid.uuid4())
        with self.engine.connect() as conn:
            conn.execute(
                _submissions.insert().values(
                    id=sub_id,
                    homework_id=sub.homework_id,
                    student_id=sub.student_id,
                    file_name=sub.file_name,
                    original_name=sub.original_name,
                    file_url=sub.file_url,
                    file_size=sub.file_size,
                    mime_type=sub.mime_type,
                    notes=sub.notes,
                    created_at=now_iso(),
                )
            )
            conn.commit()
        return sub_id

    def get_submission(self, sub_id: str) -> Optional[Submission]:
        with self.engine.connect() as conn:
            row = conn.execute(_submissions.select().where(_submissions.c.id == sub_id)).fetchone()
        return _row_to_submission(row) if row is not None else None

    def list_submissions(self, hw_id: str, student_id: Optional[str] = None) -> list[Submission]:
        query = _submissions.select().where(_submissions.c.homework_id == hw_id)
        if student_id is not None:
            query = query.where(_submissions.c.student_id == student_id)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_submissions.c.created_at.desc())).fetchall()
        return [_row_to_submission(r) for r in rows]

    def update_submission(self, sub_id: str, **fields) -> bool:
        unknown = set(fields) - _SUBMISSION_FIELDS
        if unknown:
            raise ValueError(f"Unknown submission fields: {unknown!r}")
        if not fields:
            return self.get_submission(sub_id) is not None
        with self.engine.connect() as conn:
            result = conn.execute(_submissions.update().where(_submissions.c.id == sub_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_submission(self, sub_id: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_submissions.delete().where(_submissions.c.id == sub_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def create_question(self, q: Question) -> str:
        q_id = q.id or str(uuid.uuid4())
        stamp = now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _questions.insert().values(
                    id=q_id,
                    student_id=q.student_id,
                    subject=q.subject,
                    title=q.title,
                    content=q.content,
                    priority=q.priority,
                    is_answered=1 if q.is_answered else 0,
                    answer=q.answer,
                    answered_by=q.answered_by,
                    answered_at=q.answered_at,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return q_id

    def get_question(self, q_id: str) -> Optional[Question]:
        with self.engine.connect() as conn:
            row = conn.execute(_questions.select().where(_questions.c.id == q_id)).fetchone()
        return _row_to_question(row) if row is not None else None

    def list_questions(self, student_id: Optional[str] = None, unanswered: bool = False) -> list[Question]:
        """Newest first, optionally only one student's and/or only unanswered ones."""
        query = _questions.select()
        if student_id is not None:
            query = query.where(_questions.c.student_id == student_id)
        if unanswered:
            query = query.where(_questions.c.is_answered == 0)
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_questions.c.created_at.desc())).fetchall()
        return [_row_to_question(r) for r in rows]

    def answer_question(self, q_id: str, answer: str, answered_by: str) -> bool:
        """Record (or replace) the answer. Returns False if q_id does not exist."""
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _questions.update()
                .where(_questions.c.id == q_id)
                .values(answer=answer, answered_by=answered_by, answered_at=stamp, is_answered=1, updated_at=stamp)
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_homework(row) -> Homework:
    return Homework(
        id=row.id,
        student_id=row.student_id,
        tutor_id=row.tutor_id,
        title=row.title,
        description=row.description,
        instructions=row.instructions,
        subject=row.subject,
        difficulty=row.difficulty,
        due_date=row.due_date,
        status=row.status,
        is_completed=bool(row.is_completed),
        completed_at=row.completed_at,
        grade=row.grade,
        feedback=row.feedback,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_file(row) -> HomeworkFile:
    return HomeworkFile(
        id=row.id,
        homework_id=row.homework_id,
        file_name=row.file_name,
        file_url=row.file_url,
        file_type=row.file_type,
        uploaded_by=row.uploaded_by,
        purpose=row.purpose,
        created_at=row.created_at,
    )


def _row_to_submission(row) -> Submission:
    return Submission(
        id=row.id,
        homework_id=row.homework_id,
        student_id=row.student_id,
        file_name=row.file_name,
        original_name=row.original_name,
        file_url=row.file_url,
        file_size=row.file_size,
        mime_type=row.mime_type,
        notes=row.notes,
        created_at=row.created_at,
    )


def _row_to_question(row) -> Question:
    return Question(
        id=row.id,
        student_id=row.student_id,
        subject=row.subject,
        title=row.title,
        content=row.content,
        priority=row.priority,
        is_answered=bool(row.is_answered),
        answer=row.answer,
        answered_by=row.answered_by,
        answered_at=row.answered_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
