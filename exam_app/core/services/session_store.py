"""Service for managing per-student exam sessions and their lifecycle."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
import logging
from uuid import uuid4

from exam_app.core.errors import SessionNotFoundError, SessionStateError
from exam_app.core.models import ExamSession, ResetAuditEntry, SessionStatus

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Holds one session per (exam, student) and enforces forward-only status.

    Callers receive copies; the stored records are only changed through the
    methods below.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._sessions: dict[tuple[str, str], ExamSession] = {}
        self._audit_log: list[ResetAuditEntry] = []

    def start_session(self, exam_id: str, student_id: str) -> tuple[ExamSession, bool]:
        """Create-or-fetch. Returns the session and whether it had already been started.

        An in-progress or submitted session comes back unchanged.
        """
        key = (exam_id, student_id)
        session = self._sessions.get(key)
        if session is None:
            session = ExamSession(id=uuid4().hex, exam_id=exam_id, student_id=student_id)
            self._sessions[key] = session

        if session.status is SessionStatus.NOT_STARTED:
            session.status = SessionStatus.IN_PROGRESS
            session.start_time = self._clock()
            session.progress = 0
            session.answers = {}
            logger.info("Session started for exam %s, student %s", exam_id, student_id)
            return self._snapshot(session), False

        logger.info(
            "Resuming %s session for exam %s, student %s",
            session.status.value,
            exam_id,
            student_id,
        )
        return self._snapshot(session), True

    def get_session(self, exam_id: str, student_id: str) -> ExamSession:
        return self._snapshot(self._require(exam_id, student_id))

    def list_sessions(self, exam_id: str) -> list[ExamSession]:
        return [
            self._snapshot(session)
            for (session_exam_id, _), session in self._sessions.items()
            if session_exam_id == exam_id
        ]

    def has_active_sessions(self, exam_id: str) -> bool:
        return any(
            session.status is SessionStatus.IN_PROGRESS
            for (session_exam_id, _), session in self._sessions.items()
            if session_exam_id == exam_id
        )

    def update_progress(
        self,
        exam_id: str,
        student_id: str,
        progress: int,
        answers: dict[str, str] | None = None,
    ) -> ExamSession:
        if not 0 <= progress <= 100:
            raise ValueError("Progress must be between 0 and 100.")
        session = self._require(exam_id, student_id)
        if session.status is not SessionStatus.IN_PROGRESS:
            raise SessionStateError(
                f"Cannot record progress on a {session.status.value} session."
            )
        session.progress = progress
        if answers is not None:
            session.answers = dict(answers)
        return self._snapshot(session)

    def submit_session(
        self,
        exam_id: str,
        student_id: str,
        answers: dict[str, str],
        score: float,
    ) -> tuple[ExamSession, bool]:
        """Finalize a session. Returns the session and whether this call was accepted.

        A repeat submission of an already-submitted session is a no-op so that
        clients can retry without altering the accepted score.
        """
        if score < 0:
            raise ValueError("Score must not be negative.")
        session = self._require(exam_id, student_id)
        if session.status is SessionStatus.SUBMITTED:
            logger.info(
                "Ignoring repeat submission for exam %s, student %s", exam_id, student_id
            )
            return self._snapshot(session), False
        if session.status is not SessionStatus.IN_PROGRESS:
            raise SessionStateError("Session has not been started.")

        session.status = SessionStatus.SUBMITTED
        session.answers = dict(answers)
        session.score = score
        session.progress = 100
        session.end_time = self._clock()
        logger.info(
            "Session submitted for exam %s, student %s with score %s",
            exam_id,
            student_id,
            score,
        )
        return self._snapshot(session), True

    def reset_session(
        self,
        exam_id: str,
        student_id: str,
        actor: str,
        reason: str | None = None,
    ) -> ResetAuditEntry:
        """Administrative reset back to not-started. Always leaves an audit entry."""
        if not actor or not actor.strip():
            raise ValueError("A reset must name the acting administrator.")
        session = self._require(exam_id, student_id)
        entry = ResetAuditEntry(
            exam_id=exam_id,
            student_id=student_id,
            actor=actor.strip(),
            reset_at=self._clock(),
            previous_status=session.status,
            previous_score=session.score,
            reason=reason,
        )
        session.status = SessionStatus.NOT_STARTED
        session.progress = 0
        session.start_time = None
        session.end_time = None
        session.score = None
        session.answers = {}
        self._audit_log.append(entry)
        logger.warning(
            "Session for exam %s, student %s reset by %s (was %s, score %s)",
            exam_id,
            student_id,
            entry.actor,
            entry.previous_status.value,
            entry.previous_score,
        )
        return entry

    def get_audit_log(self) -> list[ResetAuditEntry]:
        return list(self._audit_log)

    def _require(self, exam_id: str, student_id: str) -> ExamSession:
        session = self._sessions.get((exam_id, student_id))
        if session is None:
            raise SessionNotFoundError(
                f"No session for exam {exam_id!r} and student {student_id!r}"
            )
        return session

    @staticmethod
    def _snapshot(session: ExamSession) -> ExamSession:
        return replace(session, answers=dict(session.answers))
