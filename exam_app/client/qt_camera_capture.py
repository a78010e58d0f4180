"""Qt Multimedia camera used for proctoring frames (JPEG data URLs)."""

from __future__ import annotations

import logging

from PySide6.QtCore import QBuffer, QByteArray, QIODevice
from PySide6.QtGui import QImage
from PySide6.QtMultimedia import QCamera, QImageCapture, QMediaCaptureSession, QMediaDevices

from exam_app.client.frame_capture import CaptureUnavailableError
from exam_app.constants.exam_constants import PROCTOR_FRAME_JPEG_QUALITY

logger = logging.getLogger(__name__)


def encode_jpeg_data_url(image: QImage, quality: int = PROCTOR_FRAME_JPEG_QUALITY) -> str:
    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    image.save(buffer, "JPEG", quality)
    buffer.close()
    encoded = bytes(data.toBase64()).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}"


class QtCameraCapture:
    """Default camera on a Qt capture session.

    Qt delivers still images asynchronously, so `capture()` requests a new
    still and returns the latest one already delivered (None until the first
    arrives).
    """

    def __init__(self, quality: int = PROCTOR_FRAME_JPEG_QUALITY) -> None:
        self._quality = quality
        self._camera: QCamera | None = None
        self._session: QMediaCaptureSession | None = None
        self._image_capture: QImageCapture | None = None
        self._latest_frame: str | None = None

    def open(self) -> None:
        device = QMediaDevices.defaultVideoInput()
        if device.isNull():
            raise CaptureUnavailableError("No camera device available.")

        self._camera = QCamera(device)
        self._session = QMediaCaptureSession()
        self._image_capture = QImageCapture()
        self._session.setCamera(self._camera)
        self._session.setImageCapture(self._image_capture)
        self._image_capture.imageCaptured.connect(self._handle_image_captured)
        self._camera.errorOccurred.connect(self._handle_camera_error)
        self._camera.start()
        if self._camera.error() != QCamera.Error.NoError:
            message = self._camera.errorString()
            self.close()
            raise CaptureUnavailableError(message or "Camera failed to start.")

    def capture(self) -> str | None:
        if self._image_capture is None:
            return None
        if self._image_capture.isReadyForCapture():
            self._image_capture.capture()
        return self._latest_frame

    def close(self) -> None:
        if self._camera is not None:
            self._camera.stop()
        self._image_capture = None
        self._session = None
        self._camera = None
        self._latest_frame = None

    def is_open(self) -> bool:
        return self._camera is not None

    def _handle_image_captured(self, _request_id: int, image: QImage) -> None:
        self._latest_frame = encode_jpeg_data_url(image, self._quality)

    def _handle_camera_error(self, _error: QCamera.Error, message: str) -> None:
        logger.warning("Camera error: %s", message)
