"""Service that records proctoring frames uploaded during exam sessions."""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
import logging

from exam_app.constants.exam_constants import PROCTOR_PREVIEW_LENGTH
from exam_app.core.models import ProctorFrame

logger = logging.getLogger(__name__)


class ProctorLog:
    """Keeps frame metadata per (exam, student) for after-the-fact review."""

    def __init__(self) -> None:
        self._frames: dict[tuple[str, str], list[ProctorFrame]] = defaultdict(list)

    def record_frame(self, exam_id: str, student_id: str, payload: str) -> ProctorFrame:
        if not payload:
            raise ValueError("Frame payload must not be empty.")
        frame = ProctorFrame(
            exam_id=exam_id,
            student_id=student_id,
            received_at=datetime.now(timezone.utc),
            payload_size=len(payload),
            payload_preview=payload[:PROCTOR_PREVIEW_LENGTH],
        )
        self._frames[(exam_id, student_id)].append(frame)
        logger.debug("Proctor frame for exam %s, student %s: %s", exam_id, student_id, frame.payload_preview)
        return frame

    def get_frame_count(self, exam_id: str, student_id: str) -> int:
        return len(self._frames.get((exam_id, student_id), []))
