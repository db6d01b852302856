"""Shared test fixtures."""

import io
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np
import pytest
from PIL import Image

from session import Photo


@dataclass
class FakeEvent:
    """Scheduled callback handle, mirroring Kivy's ClockEvent."""

    callback: Callable[[float], None]
    due: float
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeClock:
    """Manual clock with the schedule_once interface of kivy.clock.Clock."""

    now: float = 0.0
    events: List[FakeEvent] = field(default_factory=list)

    def schedule_once(self, callback: Callable[[float], None], timeout: float = 0) -> FakeEvent:
        event = FakeEvent(callback, self.now + timeout)
        self.events.append(event)
        return event

    def pending(self) -> List[FakeEvent]:
        return [e for e in self.events if not e.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [e for e in self.pending() if e.due <= target + 1e-9]
            if not due:
                break
            event = min(due, key=lambda e: e.due)
            self.events.remove(event)
            self.now = max(self.now, event.due)
            event.callback(self.now)
        self.now = target


def make_frame(color=(200, 40, 40), size=(64, 48)) -> np.ndarray:
    w, h = size
    frame = np.zeros((h, w, 3), dtype=np.uint8)
    frame[:, :] = color
    return frame


@dataclass
class FakeCamera:
    """Video source returning solid frames; counts open/release calls."""

    frames: Optional[List[Optional[np.ndarray]]] = None
    released: int = 0
    reads: int = 0

    def read(self) -> Optional[np.ndarray]:
        self.reads += 1
        if self.frames is None:
            return make_frame()
        if not self.frames:
            return None
        return self.frames.pop(0) if len(self.frames) > 1 else self.frames[0]

    def release(self) -> None:
        self.released += 1


@dataclass
class CameraFactory:
    camera: FakeCamera = field(default_factory=FakeCamera)
    opened: int = 0
    error: Optional[BaseException] = None

    def __call__(self) -> FakeCamera:
        self.opened += 1
        if self.error is not None:
            raise self.error
        return self.camera


def jpeg_bytes(color=(200, 40, 40), size=(64, 48)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG", quality=95)
    return buf.getvalue()


def make_photo(index: int = 0, color=(200, 40, 40), size=(64, 48)) -> Photo:
    return Photo(jpeg_bytes(color, size), "JPEG", index)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def camera_factory() -> CameraFactory:
    return CameraFactory()


@pytest.fixture
def photos() -> List[Photo]:
    colors = [(220, 30, 30), (30, 200, 30), (30, 30, 220), (230, 230, 40), (40, 220, 220), (200, 40, 200)]
    return [make_photo(i, c) for i, c in enumerate(colors)]
