"""Exam-session timing constants shared by the controller and the server."""

COUNTDOWN_TICK_MS: int = 1000
PROGRESS_SYNC_INTERVAL_MS: int = 5000
PROCTOR_FRAME_INTERVAL_MS: int = 8000
PROCTOR_FRAME_JPEG_QUALITY: int = 60
PROCTOR_PREVIEW_LENGTH: int = 64
SYNC_WORKER_COUNT: int = 2
DEFAULT_EXAM_FILE: str = "exams.txt"
DEFAULT_DURATION_MINUTES: int = 30
