"""Student-side controller for one timed, proctored exam attempt.

The controller lives on the Qt event loop. It owns three timers (countdown,
progress sync, proctoring frames) and a small worker pool for every network
call after start, so a slow server never blocks the event loop. Progress
patches go out one at a time and in order.
Every timer is stopped through `_stop_timers()`, which runs before grading
on submit and again on exit/teardown.
"""

from __future__ import annotations

from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math
from threading import Lock
from typing import Protocol

from PySide6.QtCore import QObject, QTimer, Signal

from exam_app.client.frame_capture import FrameCapture
from exam_app.constants.exam_constants import (
    COUNTDOWN_TICK_MS,
    PROCTOR_FRAME_INTERVAL_MS,
    PROGRESS_SYNC_INTERVAL_MS,
    SYNC_WORKER_COUNT,
)
from exam_app.core.errors import SessionStateError
from exam_app.core.grading import compute_progress, grade_answers, max_score
from exam_app.core.models import ExamDefinition, ExamSession, SessionStatus

logger = logging.getLogger(__name__)


class SessionBackend(Protocol):
    """Session store and proctoring sink as seen by the controller."""

    def start_session(self, exam_id: str, student_id: str) -> tuple[ExamSession, bool]: ...

    def patch_session_progress(
        self, exam_id: str, student_id: str, progress: int, answers: dict[str, str]
    ) -> None: ...

    def submit_session(
        self, exam_id: str, student_id: str, answers: dict[str, str], score: float
    ) -> bool: ...

    def upload_proctor_frame(self, exam_id: str, student_id: str, payload: str) -> None: ...


@dataclass(slots=True)
class StartResult:
    """Outcome of start-or-resume."""

    session: ExamSession
    remaining_seconds: int
    resumed: bool
    expired: bool = False
    already_submitted: bool = False


@dataclass(slots=True)
class SubmissionResult:
    """Locally graded submission. Kept even when persisting it failed."""

    score: float
    max_score: float
    answers: dict[str, str]
    auto_submitted: bool
    persisted: bool = False
    error: str | None = None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps from the server are UTC.
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def compute_remaining_seconds(duration_minutes: int, start_time: datetime, now: datetime) -> int:
    """Seconds left in the attempt, clamped to [0, duration]."""
    total = duration_minutes * 60
    # A start anchor in the future (clock skew) must not add time.
    elapsed = max(0, math.floor((_as_utc(now) - _as_utc(start_time)).total_seconds()))
    return max(0, total - elapsed)


class ExamSessionController(QObject):
    """Start/resume, countdown, progress sync, proctoring and submission for one attempt."""

    countdown_changed = Signal(int)
    expired = Signal()
    submitted = Signal(float)
    submission_failed = Signal(str)
    proctoring_unavailable = Signal(str)
    # Worker-thread completion of the final save, delivered on the Qt thread.
    _persist_finished = Signal(object, object)

    def __init__(
        self,
        exam: ExamDefinition,
        student_id: str,
        backend: SessionBackend,
        capture: FrameCapture | None = None,
        executor: Executor | None = None,
        clock: Callable[[], datetime] = _utc_now,
        tick_interval_ms: int = COUNTDOWN_TICK_MS,
        sync_interval_ms: int = PROGRESS_SYNC_INTERVAL_MS,
        frame_interval_ms: int = PROCTOR_FRAME_INTERVAL_MS,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        self._exam = exam
        self._student_id = student_id
        self._backend = backend
        self._capture = capture
        self._clock = clock
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=SYNC_WORKER_COUNT, thread_name_prefix="exam-sync"
        )

        self._status = SessionStatus.NOT_STARTED
        self._answers: dict[str, str] = {}
        self._remaining_seconds: int = exam.duration_minutes * 60
        self._session: ExamSession | None = None
        self._result: SubmissionResult | None = None
        self._proctoring_active = False
        self._closed = False
        self._persisting = False
        self._sync_lock = Lock()
        self._sync_sequence = 0
        self._synced_sequence = 0

        self._countdown_timer = QTimer(self)
        self._countdown_timer.setInterval(tick_interval_ms)
        self._countdown_timer.timeout.connect(self.tick)

        self._sync_timer = QTimer(self)
        self._sync_timer.setInterval(sync_interval_ms)
        self._sync_timer.timeout.connect(self.sync_progress)

        self._frame_timer = QTimer(self)
        self._frame_timer.setInterval(frame_interval_ms)
        self._frame_timer.timeout.connect(self.capture_frame)

        self._persist_finished.connect(self._on_persist_finished)

    # --- Lifecycle ---

    def start_or_resume(self) -> StartResult:
        """Open or resume the server session and derive local state from it."""
        if self._closed:
            raise SessionStateError("Controller has been torn down.")
        if self._status is not SessionStatus.NOT_STARTED:
            raise SessionStateError("This attempt has already been started.")

        session, resumed = self._backend.start_session(self._exam.id, self._student_id)
        self._session = session
        self._answers = dict(session.answers)

        if session.status is SessionStatus.SUBMITTED:
            self._status = SessionStatus.SUBMITTED
            self._remaining_seconds = 0
            self._result = SubmissionResult(
                score=session.score or 0,
                max_score=max_score(self._exam.questions),
                answers=dict(session.answers),
                auto_submitted=False,
                persisted=True,
            )
            logger.info("Exam %s already submitted by %s", self._exam.id, self._student_id)
            return StartResult(session, 0, resumed=True, already_submitted=True)

        if session.status is not SessionStatus.IN_PROGRESS or session.start_time is None:
            raise SessionStateError(f"Server returned a {session.status.value} session.")

        self._status = SessionStatus.IN_PROGRESS
        remaining = compute_remaining_seconds(
            self._exam.duration_minutes, session.start_time, self._clock()
        )
        self._remaining_seconds = remaining
        self.countdown_changed.emit(remaining)

        if remaining <= 0:
            logger.warning(
                "Exam %s for %s resumed after its time ran out; submitting now",
                self._exam.id,
                self._student_id,
            )
            self.expired.emit()
            self._submit(auto_submitted=True)
            return StartResult(session, 0, resumed=resumed, expired=True)

        self._countdown_timer.start()
        self._sync_timer.start()
        self._start_proctoring()
        logger.info(
            "Exam %s %s for %s with %s seconds left",
            self._exam.id,
            "resumed" if resumed else "started",
            self._student_id,
            remaining,
        )
        return StartResult(session, remaining, resumed=resumed)

    def exit(self) -> None:
        """Leave the exam view. The server session stays resumable."""
        self.teardown()

    def teardown(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop_timers()
        self._stop_proctoring()
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.info("Exam controller for %s / %s torn down", self._exam.id, self._student_id)

    # --- Answers ---

    def set_answer(self, question_id: str, value: str) -> None:
        self._ensure_answerable()
        self._answers[question_id] = value

    def clear_answer(self, question_id: str) -> None:
        self._ensure_answerable()
        self._answers.pop(question_id, None)

    def get_answers(self) -> dict[str, str]:
        return dict(self._answers)

    def get_progress(self) -> int:
        return compute_progress(self._exam.questions, self._answers)

    # --- Timer slots ---

    def tick(self) -> None:
        """Countdown step; submits automatically when it reaches zero."""
        if self._closed or self._status is not SessionStatus.IN_PROGRESS:
            return
        self._remaining_seconds = max(0, self._remaining_seconds - 1)
        self.countdown_changed.emit(self._remaining_seconds)
        if self._remaining_seconds == 0:
            logger.info("Time is up for exam %s, student %s", self._exam.id, self._student_id)
            self._submit(auto_submitted=True)

    def sync_progress(self) -> int | None:
        """Push the current progress and answers; the call runs off the event loop."""
        if self._closed or self._status is not SessionStatus.IN_PROGRESS:
            return None
        progress = compute_progress(self._exam.questions, self._answers)
        answers = dict(self._answers)
        self._sync_sequence += 1
        future = self._executor.submit(
            self._send_progress, self._sync_sequence, progress, answers
        )
        future.add_done_callback(self._log_sync_failure)
        return progress

    def capture_frame(self) -> bool:
        """Grab one proctoring frame and upload it in the background."""
        if self._closed or not self._proctoring_active or self._capture is None:
            return False
        if self._status is not SessionStatus.IN_PROGRESS:
            return False
        try:
            payload = self._capture.capture()
        except Exception as exc:  # camera backends raise arbitrary errors
            logger.warning("Proctor frame capture failed: %s", exc)
            return False
        if not payload:
            return False
        future = self._executor.submit(
            self._backend.upload_proctor_frame, self._exam.id, self._student_id, payload
        )
        future.add_done_callback(self._log_upload_failure)
        return True

    # --- Submission ---

    def submit(self) -> SubmissionResult | None:
        """Manual submission. Repeated calls return the first result."""
        return self._submit(auto_submitted=False)

    def retry_submission(self) -> SubmissionResult | None:
        """Resend a graded submission whose persistence failed. Never re-grades."""
        result = self._result
        if result is None or result.persisted or self._persisting or self._closed:
            return result
        self._persist(result)
        return result

    def _submit(self, auto_submitted: bool) -> SubmissionResult | None:
        if self._closed or self._status is not SessionStatus.IN_PROGRESS:
            return self._result

        self._stop_timers(keep_proctoring=True)
        self._status = SessionStatus.SUBMITTED
        answers = dict(self._answers)
        result = SubmissionResult(
            score=grade_answers(self._exam.questions, answers),
            max_score=max_score(self._exam.questions),
            answers=answers,
            auto_submitted=auto_submitted,
        )
        self._result = result
        self._remaining_seconds = 0
        logger.info(
            "%s submission for exam %s, student %s: %s/%s",
            "Automatic" if auto_submitted else "Manual",
            self._exam.id,
            self._student_id,
            result.score,
            result.max_score,
        )

        try:
            self._persist(result)
        finally:
            self._stop_proctoring()
        self.submitted.emit(float(result.score))
        return result

    def _persist(self, result: SubmissionResult) -> None:
        """Save the graded result on the worker pool; the outcome arrives via `_persist_finished`."""
        self._persisting = True
        future = self._executor.submit(
            self._backend.submit_session,
            self._exam.id,
            self._student_id,
            dict(result.answers),
            result.score,
        )
        future.add_done_callback(
            lambda done: self._persist_finished.emit(result, done.exception())
        )

    def _on_persist_finished(self, result: SubmissionResult, exc: BaseException | None) -> None:
        self._persisting = False
        if exc is None:
            result.persisted = True
            result.error = None
            return
        result.error = str(exc) or exc.__class__.__name__
        logger.error(
            "Could not save submission for exam %s, student %s: %s",
            self._exam.id,
            self._student_id,
            result.error,
        )
        self.submission_failed.emit(result.error)

    def _send_progress(self, sequence: int, progress: int, answers: dict[str, str]) -> None:
        # Runs on a worker; a patch older than one already delivered is dropped.
        with self._sync_lock:
            if sequence <= self._synced_sequence:
                logger.debug("Dropping stale progress sync %s for exam %s", sequence, self._exam.id)
                return
            self._backend.patch_session_progress(
                self._exam.id, self._student_id, progress, answers
            )
            self._synced_sequence = sequence

    # --- State ---

    @property
    def exam(self) -> ExamDefinition:
        return self._exam

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def remaining_seconds(self) -> int:
        return self._remaining_seconds

    @property
    def score(self) -> float | None:
        return self._result.score if self._result else None

    @property
    def submission_result(self) -> SubmissionResult | None:
        return self._result

    @property
    def submission_error(self) -> str | None:
        return self._result.error if self._result else None

    def is_closed(self) -> bool:
        return self._closed

    def is_countdown_active(self) -> bool:
        return self._countdown_timer.isActive()

    def is_sync_active(self) -> bool:
        return self._sync_timer.isActive()

    def is_proctoring_active(self) -> bool:
        return self._proctoring_active

    def is_persisting(self) -> bool:
        return self._persisting

    def should_confirm_exit(self) -> bool:
        """True while leaving would abandon an unsubmitted or unsaved attempt."""
        if self._closed:
            return False
        if self._status is SessionStatus.IN_PROGRESS:
            return True
        return self._result is not None and not self._result.persisted

    # --- Internals ---

    def _ensure_answerable(self) -> None:
        if self._closed:
            raise SessionStateError("Controller has been torn down.")
        if self._status is not SessionStatus.IN_PROGRESS:
            raise SessionStateError(f"Answers cannot change on a {self._status.value} session.")

    def _start_proctoring(self) -> None:
        if self._capture is None:
            return
        try:
            self._capture.open()
        except Exception as exc:  # camera backends raise arbitrary errors
            logger.warning("Proctoring unavailable, continuing without it: %s", exc)
            self.proctoring_unavailable.emit(str(exc))
            return
        self._proctoring_active = True
        self._frame_timer.start()

    def _stop_proctoring(self) -> None:
        self._frame_timer.stop()
        if not self._proctoring_active or self._capture is None:
            return
        self._proctoring_active = False
        try:
            self._capture.close()
        except Exception as exc:  # camera backends raise arbitrary errors
            logger.warning("Failed to release camera: %s", exc)

    def _stop_timers(self, keep_proctoring: bool = False) -> None:
        self._countdown_timer.stop()
        self._sync_timer.stop()
        if not keep_proctoring:
            self._frame_timer.stop()

    def _log_sync_failure(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Progress sync for exam %s failed: %s", self._exam.id, exc)

    def _log_upload_failure(self, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Proctor frame upload for exam %s failed: %s", self._exam.id, exc)
