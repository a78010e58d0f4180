"""Student-side exam client: HTTP access and the session controller."""

from .exam_api_client import ExamApiClient
from .frame_capture import CaptureUnavailableError, FrameCapture
from .session_controller import (
    ExamSessionController,
    SessionBackend,
    StartResult,
    SubmissionResult,
    compute_remaining_seconds,
)

__all__ = [
    "CaptureUnavailableError",
    "ExamApiClient",
    "ExamSessionController",
    "FrameCapture",
    "SessionBackend",
    "StartResult",
    "SubmissionResult",
    "compute_remaining_seconds",
]
