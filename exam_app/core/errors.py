"""Exception types shared by the catalog, store, server and client."""

from __future__ import annotations


class ExamDeskError(Exception):
    """Base class for all application errors."""


class ExamNotFoundError(ExamDeskError, LookupError):
    """Raised when an exam id is not present in the catalog."""


class SessionNotFoundError(ExamDeskError, LookupError):
    """Raised when no session exists for an (exam, student) pair."""


class SessionStateError(ExamDeskError, RuntimeError):
    """Raised when an operation is not allowed in the session's current status."""


class ExamValidationError(ExamDeskError, ValueError):
    """Raised when an exam definition fails builder validation."""


class ExamImportError(ExamDeskError):
    """Raised when an exam text file cannot be parsed."""


class ExamApiError(ExamDeskError):
    """Raised by the HTTP client on an error status or an unreadable response body."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
