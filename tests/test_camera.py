"""Tests for camera backends and error classification."""

import logging

import numpy as np
import pytest

import camera
from camera import CameraError, CameraErrorKind, classify_error, mirror_frame, open_camera
from config import configure_logging


class _Working:
    name = "working"
    opened = 0

    def open(self) -> None:
        type(self).opened += 1

    def read(self):
        return None

    def release(self) -> None:
        pass


class _Missing:
    name = "missing"

    def open(self) -> None:
        raise CameraError(CameraErrorKind.NO_DEVICE, "not plugged in")


class _Denied:
    name = "denied"

    def open(self) -> None:
        raise CameraError(CameraErrorKind.PERMISSION_DENIED)


@pytest.mark.parametrize("exc, kind", [
    (PermissionError(), CameraErrorKind.PERMISSION_DENIED),
    (FileNotFoundError(), CameraErrorKind.NO_DEVICE),
    (IndexError(), CameraErrorKind.NO_DEVICE),
    (ImportError(), CameraErrorKind.UNSUPPORTED),
    (NotImplementedError(), CameraErrorKind.UNSUPPORTED),
    (OSError("busy"), CameraErrorKind.OTHER),
    (CameraError(CameraErrorKind.NO_DEVICE), CameraErrorKind.NO_DEVICE),
])
def test_classify_error(exc, kind) -> None:
    assert classify_error(exc) == kind


def test_other_error_message_includes_detail() -> None:
    assert "busy" in CameraError(CameraErrorKind.OTHER, "busy").message
    assert CameraError(CameraErrorKind.NO_DEVICE, "x").message.startswith("No camera found")


def test_auto_falls_back_once(monkeypatch) -> None:
    _Working.opened = 0
    monkeypatch.setitem(camera.BACKENDS, "auto", [_Missing, _Working])
    source = open_camera("auto")
    assert isinstance(source, _Working)
    assert _Working.opened == 1


def test_open_camera_raises_last_error(monkeypatch) -> None:
    monkeypatch.setitem(camera.BACKENDS, "auto", [_Missing, _Denied])
    with pytest.raises(CameraError) as info:
        open_camera("auto")
    assert info.value.kind == CameraErrorKind.PERMISSION_DENIED


def test_unknown_backend_is_unsupported() -> None:
    with pytest.raises(CameraError) as info:
        open_camera("webcam9000")
    assert info.value.kind == CameraErrorKind.UNSUPPORTED


def test_mirror_frame_flips_horizontally() -> None:
    frame = np.zeros((2, 3, 3), dtype=np.uint8)
    frame[:, 0] = (255, 0, 0)
    flipped = mirror_frame(frame)
    assert tuple(flipped[0, 2]) == (255, 0, 0)
    assert tuple(frame[0, 0]) == (255, 0, 0)


def test_configure_logging_idempotent() -> None:
    logger = logging.getLogger("photobooth")
    logger.handlers.clear()

    configure_logging()
    configure_logging()

    assert len(logger.handlers) == 1
