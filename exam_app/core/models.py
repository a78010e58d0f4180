"""Domain models for the exam application."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class QuestionType(str, Enum):
    """Supported question formats."""

    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    SHORT_ANSWER = "short-answer"
    ESSAY = "essay"


class ExamStatus(str, Enum):
    """Catalog-level availability of an exam."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"


class SessionStatus(str, Enum):
    """Lifecycle of one student's attempt. Only moves forward."""

    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"


@dataclass(slots=True)
class ExamQuestion:
    """Single gradable question inside an exam."""

    id: str
    type: QuestionType
    text: str
    correct_answer: str
    points: float = 1
    options: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ExamDefinition:
    """Exam as stored in the catalog. Question order drives numbering."""

    id: str
    title: str
    duration_minutes: int
    questions: list[ExamQuestion]
    status: ExamStatus = ExamStatus.SCHEDULED
    teacher_id: str | None = None

    def question_ids(self) -> set[str]:
        return {question.id for question in self.questions}


@dataclass(slots=True)
class ExamSession:
    """Server-owned record of one (exam, student) attempt."""

    id: str
    exam_id: str
    student_id: str
    status: SessionStatus = SessionStatus.NOT_STARTED
    progress: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None
    score: float | None = None
    answers: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class ResetAuditEntry:
    """Trace left by every administrative session reset."""

    exam_id: str
    student_id: str
    actor: str
    reset_at: datetime
    previous_status: SessionStatus
    previous_score: float | None = None
    reason: str | None = None


@dataclass(slots=True)
class ProctorFrame:
    """Metadata for an uploaded proctoring frame; the payload itself is opaque."""

    exam_id: str
    student_id: str
    received_at: datetime
    payload_size: int
    payload_preview: str
