from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone

import pytest
from PySide6.QtCore import QCoreApplication

from exam_app.core.errors import ExamApiError
from exam_app.core.models import ExamDefinition, ExamQuestion, ExamStatus, QuestionType
from exam_app.core.services.session_store import SessionStore


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 5, 4, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class InlineExecutor(Executor):
    """Runs submitted jobs immediately so background calls are deterministic."""

    def __init__(self) -> None:
        self.shutdown_called = False

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:
        self.shutdown_called = True


class RecordingBackend:
    """SessionBackend over an in-process SessionStore that records every call."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store
        self.start_calls: list[tuple[str, str]] = []
        self.progress_calls: list[tuple[int, dict[str, str]]] = []
        self.submit_calls: list[tuple[dict[str, str], float]] = []
        self.frames: list[str] = []
        self.fail_sync = False
        self.fail_submit = False

    def start_session(self, exam_id, student_id):
        self.start_calls.append((exam_id, student_id))
        return self.store.start_session(exam_id, student_id)

    def patch_session_progress(self, exam_id, student_id, progress, answers):
        self.progress_calls.append((progress, dict(answers)))
        if self.fail_sync:
            raise ConnectionError("sync endpoint unreachable")
        self.store.update_progress(exam_id, student_id, progress, answers)

    def submit_session(self, exam_id, student_id, answers, score):
        self.submit_calls.append((dict(answers), score))
        if self.fail_submit:
            raise ExamApiError(503, "store unavailable")
        _, accepted = self.store.submit_session(exam_id, student_id, answers, score)
        return accepted

    def upload_proctor_frame(self, exam_id, student_id, payload):
        self.frames.append(payload)


class FakeCamera:
    def __init__(self, fail_open: bool = False) -> None:
        self.fail_open = fail_open
        self.opened = False
        self.closed = False
        self.captures = 0

    def open(self) -> None:
        if self.fail_open:
            raise PermissionError("Camera access denied")
        self.opened = True

    def capture(self) -> str | None:
        self.captures += 1
        return f"data:image/jpeg;base64,frame{self.captures}"

    def close(self) -> None:
        self.closed = True
        self.opened = False

    def is_open(self) -> bool:
        return self.opened


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(clock=clock)


@pytest.fixture
def backend(store: SessionStore) -> RecordingBackend:
    return RecordingBackend(store)


@pytest.fixture
def two_question_exam() -> ExamDefinition:
    return ExamDefinition(
        id="exam-1",
        title="Midterm",
        duration_minutes=10,
        status=ExamStatus.ACTIVE,
        questions=[
            ExamQuestion(
                id="q1",
                type=QuestionType.MULTIPLE_CHOICE,
                text="Pick B",
                options=["A", "B", "C", "D"],
                correct_answer="B",
                points=5,
            ),
            ExamQuestion(
                id="q2",
                type=QuestionType.TRUE_FALSE,
                text="The sky is green.",
                correct_answer="True",
                points=3,
            ),
        ],
    )


@pytest.fixture
def four_question_exam() -> ExamDefinition:
    return ExamDefinition(
        id="exam-4",
        title="Capitals",
        duration_minutes=5,
        status=ExamStatus.ACTIVE,
        questions=[
            ExamQuestion(id=f"c{i}", type=QuestionType.SHORT_ANSWER, text=f"Capital {i}?", correct_answer=city, points=1)
            for i, city in enumerate(["Paris", "Rome", "Oslo", "Lima"], start=1)
        ],
    )
