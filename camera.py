"""Video sources - Picamera2 on the Pi, OpenCV everywhere else."""

import logging
from enum import Enum
from typing import Callable, List, Optional

import cv2
import numpy as np

from config import CAMERA_BACKEND, CAMERA_INDEX, CAMERA_VIDEO_W, CAMERA_VIDEO_H

logger = logging.getLogger("photobooth.camera")


class CameraErrorKind(str, Enum):
    PERMISSION_DENIED = "permission-denied"
    NO_DEVICE = "no-device"
    UNSUPPORTED = "unsupported"
    OTHER = "other"


MESSAGES = {
    CameraErrorKind.PERMISSION_DENIED: "Camera access was denied. Please allow camera access and try again.",
    CameraErrorKind.NO_DEVICE: "No camera found. Please connect a camera and try again.",
    CameraErrorKind.UNSUPPORTED: "Camera access is not supported on this device.",
    CameraErrorKind.OTHER: "Camera error",
}


class CameraError(Exception):
    def __init__(self, kind: CameraErrorKind, detail: str = ""):
        self.kind = CameraErrorKind(kind)
        self.detail = detail
        super().__init__(f"{self.kind.value}: {detail}" if detail else self.kind.value)

    @property
    def message(self) -> str:
        base = MESSAGES[self.kind]
        if self.kind == CameraErrorKind.OTHER and self.detail:
            return f"{base}: {self.detail}"
        return base


def classify_error(exc: BaseException) -> CameraErrorKind:
    if isinstance(exc, CameraError):
        return exc.kind
    if isinstance(exc, PermissionError):
        return CameraErrorKind.PERMISSION_DENIED
    if isinstance(exc, (FileNotFoundError, IndexError)):
        return CameraErrorKind.NO_DEVICE
    if isinstance(exc, (ImportError, NotImplementedError)):
        return CameraErrorKind.UNSUPPORTED
    return CameraErrorKind.OTHER


class OpenCVSource:
    name = "OpenCV camera"

    def __init__(self, index: int = CAMERA_INDEX, width: int = CAMERA_VIDEO_W, height: int = CAMERA_VIDEO_H):
        self.index = index
        self.width = width
        self.height = height
        self.cap = None

    def open(self):
        try:
            cap = cv2.VideoCapture(self.index)
        except cv2.error as e:
            raise CameraError(CameraErrorKind.OTHER, str(e)) from e
        if not cap.isOpened():
            cap.release()
            raise CameraError(CameraErrorKind.NO_DEVICE, f"device {self.index} could not be opened")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap = cap

    def read(self) -> Optional[np.ndarray]:
        if self.cap is None:
            return None
        ret, frame = self.cap.read()
        if not ret or frame is None:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class Picamera2Source:
    name = "Pi Camera"

    def __init__(self, width: int = CAMERA_VIDEO_W, height: int = CAMERA_VIDEO_H):
        self.width = width
        self.height = height
        self.picam = None

    def open(self):
        try:
            from picamera2 import Picamera2
        except ImportError as e:
            raise CameraError(CameraErrorKind.UNSUPPORTED, "picamera2 is not installed") from e
        try:
            picam = Picamera2()
            config = picam.create_preview_configuration(
                main={"size": (self.width, self.height), "format": "RGB888"},
                buffer_count=8,
            )
            picam.configure(config)
            picam.start()
        except Exception as e:
            raise CameraError(classify_error(e), str(e)) from e
        self.picam = picam

    def read(self) -> Optional[np.ndarray]:
        if self.picam is None:
            return None
        frame = self.picam.capture_array("main")
        if frame is None or frame.size == 0:
            return None
        # RGB888 is laid out BGR in memory
        return np.ascontiguousarray(frame[:, :, ::-1])

    def release(self):
        if self.picam is not None:
            try:
                self.picam.stop()
            finally:
                self.picam.close()
                self.picam = None


BACKENDS = {
    "picamera": [Picamera2Source],
    "opencv": [OpenCVSource],
    "auto": [Picamera2Source, OpenCVSource],
}


def open_camera(backend: str = CAMERA_BACKEND) -> "OpenCVSource | Picamera2Source":
    """Open the first working backend; "auto" allows one fallback."""
    candidates: List[Callable] = BACKENDS.get(backend)
    if not candidates:
        raise CameraError(CameraErrorKind.UNSUPPORTED, f"unknown camera backend {backend!r}")
    error: Optional[CameraError] = None
    for factory in candidates:
        source = factory()
        try:
            source.open()
        except CameraError as e:
            logger.warning("%s unavailable: %s", source.name, e)
            error = e
            continue
        logger.info("Using %s", source.name)
        return source
    raise error


def mirror_frame(frame: np.ndarray) -> np.ndarray:
    """Selfie view for the live preview; stored photos stay in sensor orientation."""
    return cv2.flip(frame, 1)
