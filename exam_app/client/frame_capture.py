"""Camera access contract for exam proctoring.

The controller only sees this protocol: open the device, grab an opaque
frame payload, close the device. `exam_app.client.qt_camera_capture`
provides the Qt Multimedia implementation.
"""

from __future__ import annotations

from typing import Protocol


class CaptureUnavailableError(RuntimeError):
    """Raised when no camera can be opened."""


class FrameCapture(Protocol):
    def open(self) -> None: ...

    def capture(self) -> str | None: ...

    def close(self) -> None: ...

    def is_open(self) -> bool: ...
