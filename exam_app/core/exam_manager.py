"""Business logic for exam state shared between the API threads."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging
from threading import Lock

from exam_app.core.errors import SessionStateError
from exam_app.core.grading import grade_answers
from exam_app.core.models import (
    ExamDefinition,
    ExamQuestion,
    ExamSession,
    ExamStatus,
    ProctorFrame,
    ResetAuditEntry,
)
from exam_app.core.services.exam_catalog import ExamCatalog
from exam_app.core.services.proctor_log import ProctorLog
from exam_app.core.services.session_store import SessionStore, utc_now

logger = logging.getLogger(__name__)


class ExamManager:
    """Facade for exam services: Catalog, SessionStore, and ProctorLog."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._lock = Lock()

        # Services
        self._catalog = ExamCatalog()
        self._sessions = SessionStore(clock=clock)
        self._proctor_log = ProctorLog()

    # --- Catalog Delegation ---

    def get_exams(self) -> list[ExamDefinition]:
        with self._lock:
            return self._catalog.get_exams()

    def get_active_exams(self) -> list[ExamDefinition]:
        with self._lock:
            return self._catalog.get_active_exams()

    def get_exam(self, exam_id: str) -> ExamDefinition:
        with self._lock:
            return self._catalog.get_exam(exam_id)

    def save_exam(
        self,
        title: str,
        questions: list[ExamQuestion],
        duration_minutes: int | None = None,
        exam_id: str | None = None,
        teacher_id: str | None = None,
    ) -> ExamDefinition:
        with self._lock:
            # Question order is fixed once any student is mid-exam.
            if exam_id and self._sessions.has_active_sessions(exam_id):
                raise SessionStateError("Cannot change questions while sessions are in progress.")
            return self._catalog.save_exam(
                title,
                questions,
                duration_minutes=duration_minutes,
                exam_id=exam_id,
                teacher_id=teacher_id,
            )

    def load_exams(self, exams: list[ExamDefinition]) -> list[ExamDefinition]:
        with self._lock:
            return [self._catalog.add_exam(exam) for exam in exams]

    def set_exam_status(self, exam_id: str, status: ExamStatus) -> ExamDefinition:
        with self._lock:
            exam = self._catalog.set_status(exam_id, status)
            logger.info("Exam %s is now %s", exam_id, status.value)
            return exam

    # --- Session Delegation ---

    def start_session(self, exam_id: str, student_id: str) -> tuple[ExamSession, bool]:
        with self._lock:
            exam = self._catalog.get_exam(exam_id)
            if exam.status is not ExamStatus.ACTIVE:
                existing = self._find_session(exam_id, student_id)
                # Resuming or reviewing stays possible after the exam closes.
                if existing is None or existing.start_time is None:
                    raise SessionStateError(f"Exam {exam_id!r} is not open ({exam.status.value}).")
            return self._sessions.start_session(exam_id, student_id)

    def get_session(self, exam_id: str, student_id: str) -> ExamSession:
        with self._lock:
            return self._sessions.get_session(exam_id, student_id)

    def list_sessions(self, exam_id: str) -> list[ExamSession]:
        with self._lock:
            self._catalog.get_exam(exam_id)
            return self._sessions.list_sessions(exam_id)

    def update_progress(
        self,
        exam_id: str,
        student_id: str,
        progress: int,
        answers: dict[str, str] | None = None,
    ) -> ExamSession:
        with self._lock:
            return self._sessions.update_progress(exam_id, student_id, progress, answers)

    def submit_session(
        self,
        exam_id: str,
        student_id: str,
        answers: dict[str, str],
        score: float,
    ) -> tuple[ExamSession, bool]:
        with self._lock:
            exam = self._catalog.get_exam(exam_id)
            session, accepted = self._sessions.submit_session(exam_id, student_id, answers, score)
            if accepted:
                expected = grade_answers(exam.questions, answers)
                if expected != score:
                    logger.warning(
                        "Client score %s for exam %s, student %s differs from server grading %s",
                        score,
                        exam_id,
                        student_id,
                        expected,
                    )
            return session, accepted

    def reset_session(
        self,
        exam_id: str,
        student_id: str,
        actor: str,
        reason: str | None = None,
    ) -> ResetAuditEntry:
        with self._lock:
            return self._sessions.reset_session(exam_id, student_id, actor, reason)

    def get_reset_audit_log(self) -> list[ResetAuditEntry]:
        with self._lock:
            return self._sessions.get_audit_log()

    # --- Proctoring Delegation ---

    def record_proctor_frame(self, exam_id: str, student_id: str, payload: str) -> ProctorFrame:
        with self._lock:
            self._catalog.get_exam(exam_id)
            return self._proctor_log.record_frame(exam_id, student_id, payload)

    def get_proctor_frame_count(self, exam_id: str, student_id: str) -> int:
        with self._lock:
            return self._proctor_log.get_frame_count(exam_id, student_id)

    def _find_session(self, exam_id: str, student_id: str) -> ExamSession | None:
        try:
            return self._sessions.get_session(exam_id, student_id)
        except LookupError:
            return None
