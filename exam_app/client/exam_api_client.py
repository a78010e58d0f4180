"""HTTP client for the exam API, used by the student-side session controller."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

import httpx

from exam_app.constants.network_constants import DEFAULT_BASE_URL, REQUEST_TIMEOUT_SECONDS
from exam_app.core.errors import ExamApiError
from exam_app.core.models import (
    ExamDefinition,
    ExamQuestion,
    ExamSession,
    ExamStatus,
    QuestionType,
    SessionStatus,
)

logger = logging.getLogger(__name__)


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def exam_from_payload(payload: dict[str, Any]) -> ExamDefinition:
    return ExamDefinition(
        id=payload["id"],
        title=payload["title"],
        duration_minutes=int(payload["duration_minutes"]),
        status=ExamStatus(payload.get("status", ExamStatus.SCHEDULED.value)),
        teacher_id=payload.get("teacher_id"),
        questions=[
            ExamQuestion(
                id=question["id"],
                type=QuestionType(question["type"]),
                text=question["text"],
                correct_answer=question.get("correct_answer", ""),
                points=question.get("points", 1),
                options=list(question.get("options") or []),
            )
            for question in payload.get("questions", [])
        ],
    )


def session_from_payload(payload: dict[str, Any]) -> ExamSession:
    return ExamSession(
        id=payload["id"],
        exam_id=payload["exam_id"],
        student_id=payload["student_id"],
        status=SessionStatus(payload["status"]),
        progress=int(payload.get("progress") or 0),
        start_time=_parse_datetime(payload.get("start_time")),
        end_time=_parse_datetime(payload.get("end_time")),
        score=payload.get("score"),
        answers=dict(payload.get("answers") or {}),
    )


class ExamApiClient:
    """Thin wrapper over `httpx.Client` mapping each endpoint to one method.

    Error statuses and malformed bodies raise `ExamApiError`; transport failures surface as
    `httpx.HTTPError`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        client: httpx.Client | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> ExamApiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Catalog ---

    def fetch_all_exams(self) -> list[ExamDefinition]:
        return [exam_from_payload(item) for item in self._request("GET", "/exams", expect=list)]

    def fetch_active_exams(self) -> list[ExamDefinition]:
        return [exam_from_payload(item) for item in self._request("GET", "/exams/available", expect=list)]

    def fetch_exam_definition(self, exam_id: str) -> ExamDefinition:
        return exam_from_payload(self._request("GET", f"/exams/{exam_id}", expect=dict))

    # --- Sessions ---

    def start_session(self, exam_id: str, student_id: str) -> tuple[ExamSession, bool]:
        """Returns the session and whether the server had already started it."""
        payload = self._request(
            "POST", f"/exams/{exam_id}/sessions/start", json={"student_id": student_id}, expect=dict
        )
        return session_from_payload(payload), bool(payload.get("resumed"))

    def patch_session_progress(
        self,
        exam_id: str,
        student_id: str,
        progress: int,
        answers: dict[str, str],
    ) -> None:
        self._request(
            "POST",
            f"/exams/{exam_id}/sessions/progress",
            json={"student_id": student_id, "progress": progress, "answers": answers},
        )

    def submit_session(
        self,
        exam_id: str,
        student_id: str,
        answers: dict[str, str],
        score: float,
    ) -> bool:
        """Returns False when the server already held an accepted submission."""
        payload = self._request(
            "POST",
            f"/exams/{exam_id}/sessions/submit",
            json={"student_id": student_id, "answers": answers, "score": score},
            expect=dict,
        )
        return bool(payload.get("accepted"))

    def reset_session(
        self,
        exam_id: str,
        student_id: str,
        actor: str,
        reason: str | None = None,
    ) -> None:
        self._request(
            "POST",
            f"/exams/{exam_id}/sessions/reset",
            json={"student_id": student_id, "actor": actor, "reason": reason},
        )

    def list_sessions(self, exam_id: str) -> list[ExamSession]:
        return [session_from_payload(item) for item in self._request("GET", f"/exams/{exam_id}/sessions", expect=list)]

    # --- Proctoring ---

    def upload_proctor_frame(self, exam_id: str, student_id: str, payload: str) -> None:
        self._request(
            "POST",
            "/proctoring/frame",
            json={"exam_id": exam_id, "student_id": student_id, "frame_data": payload},
        )

    def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        expect: type | tuple[type, ...] = (dict, list),
    ) -> Any:
        response = self._client.request(method, path, json=json)
        if response.is_error:
            detail = self._error_detail(response)
            logger.debug("%s %s failed with %s: %s", method, path, response.status_code, detail)
            raise ExamApiError(response.status_code, detail)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ExamApiError(
                response.status_code, f"{method} {path} returned a non-JSON body"
            ) from exc
        if not isinstance(payload, expect):
            raise ExamApiError(
                response.status_code,
                f"{method} {path} returned an unexpected {type(payload).__name__} body",
            )
        return payload

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and "detail" in body:
            return str(body["detail"])
        return response.text
