"""FastAPI server that exposes the exam catalog, session store and proctoring sink."""

from __future__ import annotations

from datetime import datetime
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from exam_app.constants.about import APP_ABOUT_TEXT, APP_NAME, APP_VERSION
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.errors import (
    ExamNotFoundError,
    ExamValidationError,
    SessionNotFoundError,
    SessionStateError,
)
from exam_app.core.exam_manager import ExamManager
from exam_app.core.markdown_math_renderer import renderer
from exam_app.core.models import (
    ExamDefinition,
    ExamQuestion,
    ExamSession,
    ExamStatus,
    QuestionType,
    ResetAuditEntry,
)


class QuestionPayload(BaseModel):
    """Question as sent by the exam builder."""

    id: str | None = None
    type: QuestionType
    text: str = Field(min_length=1)
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""
    points: float = Field(default=1, ge=0)


class ExamBuilderPayload(BaseModel):
    """Payload schema for creating or replacing an exam."""

    exam_id: str | None = None
    teacher_id: str | None = None
    title: str = Field(min_length=1)
    duration_minutes: int | None = Field(default=None, gt=0)
    questions: list[QuestionPayload] = Field(min_length=1)


class StatusPayload(BaseModel):
    status: ExamStatus


class StartSessionPayload(BaseModel):
    student_id: str = Field(min_length=1)


class ProgressPayload(BaseModel):
    """Payload schema for the periodic progress sync."""

    student_id: str = Field(min_length=1)
    progress: int = Field(ge=0, le=100)
    answers: dict[str, str] | None = None


class SubmitPayload(BaseModel):
    """Payload schema for final submission. The score is graded client-side."""

    student_id: str = Field(min_length=1)
    answers: dict[str, str]
    score: float = Field(ge=0)


class ResetPayload(BaseModel):
    """Administrative reset; the actor is recorded in the audit log."""

    student_id: str = Field(min_length=1)
    actor: str = Field(min_length=1)
    reason: str | None = None


class FramePayload(BaseModel):
    exam_id: str = Field(min_length=1)
    student_id: str = Field(min_length=1)
    frame_data: str = Field(min_length=1)


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _question_to_payload(question: ExamQuestion) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": question.id,
        "type": question.type.value,
        "text": question.text,
        "options": list(question.options),
        # The session controller grades locally, so the key ships with the exam.
        "correct_answer": question.correct_answer,
        "points": question.points,
    }
    payload.update(renderer.render_question(question))
    return payload


def exam_to_payload(exam: ExamDefinition) -> dict[str, object]:
    return {
        "id": exam.id,
        "title": exam.title,
        "duration_minutes": exam.duration_minutes,
        "status": exam.status.value,
        "teacher_id": exam.teacher_id,
        "questions": [_question_to_payload(question) for question in exam.questions],
    }


def session_to_payload(session: ExamSession) -> dict[str, object]:
    return {
        "id": session.id,
        "exam_id": session.exam_id,
        "student_id": session.student_id,
        "status": session.status.value,
        "progress": session.progress,
        "score": session.score,
        "start_time": _isoformat(session.start_time),
        "end_time": _isoformat(session.end_time),
        "answers": dict(session.answers),
    }


def _reset_to_payload(entry: ResetAuditEntry) -> dict[str, object]:
    return {
        "exam_id": entry.exam_id,
        "student_id": entry.student_id,
        "actor": entry.actor,
        "reason": entry.reason,
        "reset_at": entry.reset_at.isoformat(),
        "previous_status": entry.previous_status.value,
        "previous_score": entry.previous_score,
    }


def _to_http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (ExamNotFoundError, SessionNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SessionStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (ExamValidationError, ValueError)):
        return HTTPException(status_code=422, detail=str(exc))
    raise exc


def _get_exam_manager_dependency(exam_manager: ExamManager):
    def dependency() -> ExamManager:
        return exam_manager

    return dependency


def create_api_app(exam_manager: ExamManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exam manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION, description=APP_ABOUT_TEXT)
    manager_dep = _get_exam_manager_dependency(exam_manager)

    @app.get("/health")
    def health() -> dict[str, object]:
        return {"ok": True, "version": APP_VERSION}

    @app.get("/exams")
    def list_exams(manager: ExamManager = Depends(manager_dep)) -> list[dict[str, object]]:
        return [exam_to_payload(exam) for exam in manager.get_exams()]

    @app.get("/exams/available")
    def list_available_exams(manager: ExamManager = Depends(manager_dep)) -> list[dict[str, object]]:
        return [exam_to_payload(exam) for exam in manager.get_active_exams()]

    @app.post("/exams/builder", status_code=201)
    def save_exam(
        payload: ExamBuilderPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        questions = [
            ExamQuestion(
                id=question.id or "",
                type=question.type,
                text=question.text,
                correct_answer=question.correct_answer,
                points=question.points,
                options=list(question.options),
            )
            for question in payload.questions
        ]
        try:
            exam = manager.save_exam(
                payload.title,
                questions,
                duration_minutes=payload.duration_minutes,
                exam_id=payload.exam_id,
                teacher_id=payload.teacher_id,
            )
        except (ExamNotFoundError, SessionStateError, ExamValidationError) as exc:
            raise _to_http_error(exc) from exc
        return exam_to_payload(exam)

    @app.get("/exams/{exam_id}")
    def get_exam(exam_id: str, manager: ExamManager = Depends(manager_dep)) -> dict[str, object]:
        try:
            return exam_to_payload(manager.get_exam(exam_id))
        except ExamNotFoundError as exc:
            raise _to_http_error(exc) from exc

    @app.patch("/exams/{exam_id}/status")
    def set_exam_status(
        exam_id: str,
        payload: StatusPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            exam = manager.set_exam_status(exam_id, payload.status)
        except ExamNotFoundError as exc:
            raise _to_http_error(exc) from exc
        return {"id": exam.id, "status": exam.status.value}

    @app.get("/exams/{exam_id}/sessions")
    def list_sessions(exam_id: str, manager: ExamManager = Depends(manager_dep)) -> list[dict[str, object]]:
        try:
            sessions = manager.list_sessions(exam_id)
        except ExamNotFoundError as exc:
            raise _to_http_error(exc) from exc
        return [session_to_payload(session) for session in sessions]

    @app.post("/exams/{exam_id}/sessions/start")
    def start_session(
        exam_id: str,
        payload: StartSessionPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            session, resumed = manager.start_session(exam_id, payload.student_id)
        except (ExamNotFoundError, SessionStateError) as exc:
            raise _to_http_error(exc) from exc
        return {**session_to_payload(session), "resumed": resumed}

    @app.post("/exams/{exam_id}/sessions/progress")
    def update_progress(
        exam_id: str,
        payload: ProgressPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            session = manager.update_progress(
                exam_id, payload.student_id, payload.progress, payload.answers
            )
        except (SessionNotFoundError, SessionStateError, ValueError) as exc:
            raise _to_http_error(exc) from exc
        return {"ok": True, "progress": session.progress}

    @app.post("/exams/{exam_id}/sessions/submit")
    def submit_session(
        exam_id: str,
        payload: SubmitPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            session, accepted = manager.submit_session(
                exam_id, payload.student_id, payload.answers, payload.score
            )
        except (ExamNotFoundError, SessionNotFoundError, SessionStateError, ValueError) as exc:
            raise _to_http_error(exc) from exc
        return {"ok": True, "accepted": accepted, "session": session_to_payload(session)}

    @app.post("/exams/{exam_id}/sessions/reset")
    def reset_session(
        exam_id: str,
        payload: ResetPayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            entry = manager.reset_session(exam_id, payload.student_id, payload.actor, payload.reason)
        except (SessionNotFoundError, ValueError) as exc:
            raise _to_http_error(exc) from exc
        return {"ok": True, "audit": _reset_to_payload(entry)}

    @app.get("/admin/resets")
    def list_resets(manager: ExamManager = Depends(manager_dep)) -> list[dict[str, object]]:
        return [_reset_to_payload(entry) for entry in manager.get_reset_audit_log()]

    @app.post("/proctoring/frame", status_code=201)
    def upload_frame(
        payload: FramePayload,
        manager: ExamManager = Depends(manager_dep),
    ) -> dict[str, object]:
        try:
            frame = manager.record_proctor_frame(payload.exam_id, payload.student_id, payload.frame_data)
        except (ExamNotFoundError, ValueError) as exc:
            raise _to_http_error(exc) from exc
        return {"stored": True, "received_at": frame.received_at.isoformat()}

    return app


def start_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(exam_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ExamApiServer", daemon=True)
    thread.start()
    return thread
