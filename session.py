"""Capture session - countdown-driven multi-shot capture.

The session is driven by a Kivy-style clock (anything with
``schedule_once(callback, timeout)`` returning an event with ``cancel()``).
All callbacks run on that clock, so layout changes, countdown ticks and
captures never overlap. Timers carry an epoch token: bumping the epoch turns
every callback scheduled before it into a no-op, even if the event fires
after it was cancelled.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np
from PIL import Image

from calculate import Layout, get_layout
from camera import CameraError, CameraErrorKind, classify_error, open_camera
from config import (
    CAMERA_MAX_FAILED_READS,
    CAMERA_READY_TIMEOUT,
    COUNTDOWN_CHOICES,
    COUNTDOWN_SECONDS,
    DEFAULT_FILTER,
    DEFAULT_LAYOUT,
    JPEG_QUALITY,
)
from filters import DEFAULT_ENGINE, FilterEngine, encode_image

logger = logging.getLogger("photobooth.session")


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    READY = "ready"
    COUNTDOWN = "countdown"
    CAPTURING = "capturing"
    COMPLETE = "complete"
    CAMERA_ERROR = "camera_error"


# states in which a live feed is held
LIVE_STATES = (SessionState.READY, SessionState.COUNTDOWN, SessionState.CAPTURING, SessionState.COMPLETE)


@dataclass(frozen=True)
class Photo:
    data: bytes
    format: str
    index: int


@dataclass(frozen=True)
class SessionSnapshot:
    state: SessionState
    countdown_value: Optional[int]
    photos: Tuple[Photo, ...]
    remaining_count: int
    layout_id: str
    filter_id: str
    error: Optional[CameraError] = None

    @property
    def can_proceed(self) -> bool:
        return self.state == SessionState.COMPLETE


def encode_frame(frame: np.ndarray, quality: int = JPEG_QUALITY) -> bytes:
    return encode_image(Image.fromarray(np.ascontiguousarray(frame, dtype=np.uint8)), "JPEG", quality)


class CaptureSession:
    def __init__(self, clock, camera_factory: Callable = open_camera,
                 layout_id: str = DEFAULT_LAYOUT, filter_id: str = DEFAULT_FILTER,
                 countdown_seconds: int = COUNTDOWN_SECONDS,
                 ready_timeout: float = CAMERA_READY_TIMEOUT,
                 max_failed_reads: int = CAMERA_MAX_FAILED_READS,
                 engine: Optional[FilterEngine] = None):
        self.clock = clock
        self.camera_factory = camera_factory
        self.layout: Layout = get_layout(layout_id)
        self.filter_id = filter_id
        self.countdown_seconds = countdown_seconds
        self.ready_timeout = ready_timeout
        self.max_failed_reads = max_failed_reads
        self.engine = engine or DEFAULT_ENGINE

        self.state = SessionState.IDLE
        self.photos: List[Photo] = []
        self.countdown_value: Optional[int] = None
        self.error: Optional[CameraError] = None

        self._source = None
        self._failed_reads = 0
        self._next_index = 0
        self._epoch = 0
        self._timer = None
        self._ready_epoch = 0
        self._ready_timer = None
        self._listeners: List[Callable[[SessionSnapshot], None]] = []

    # ---------- observation ----------
    @property
    def remaining(self) -> int:
        return self.layout.slot_count - len(self.photos)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            state=self.state,
            countdown_value=self.countdown_value,
            photos=tuple(self.photos),
            remaining_count=self.remaining,
            layout_id=self.layout.id,
            filter_id=self.filter_id,
            error=self.error,
        )

    def bind(self, callback: Callable[[SessionSnapshot], None]):
        self._listeners.append(callback)

    def _notify(self):
        snap = self.snapshot()
        for callback in list(self._listeners):
            callback(snap)

    def _set_state(self, state: SessionState):
        if state != self.state:
            logger.debug("State changed from %s to %s", self.state.value, state.value)
        self.state = state

    def _settle(self):
        """Back to READY or COMPLETE once a live feed is held."""
        self._set_state(SessionState.COMPLETE if self.remaining <= 0 else SessionState.READY)

    # ---------- camera lifecycle ----------
    def start(self):
        if self.state not in (SessionState.IDLE, SessionState.CAMERA_ERROR):
            logger.debug("start() ignored in state %s", self.state.value)
            return
        self.error = None
        self._set_state(SessionState.STARTING)
        self._notify()
        try:
            self._source = self.camera_factory()
        except Exception as e:
            err = e if isinstance(e, CameraError) else CameraError(classify_error(e), str(e))
            self._fail(err)
            return
        self._ready_epoch += 1
        epoch = self._ready_epoch
        self._ready_timer = self.clock.schedule_once(lambda dt: self._ready_timed_out(epoch), self.ready_timeout)

    def poll_frame(self) -> Optional[np.ndarray]:
        """Read the current frame for the live preview.

        The first frame after start() is the ready signal; later frames only
        refresh the preview. A live feed that keeps failing is treated as lost.
        """
        if self._source is None:
            return None
        try:
            frame = self._source.read()
        except Exception as e:
            logger.warning("Frame read failed: %s", e)
            frame = None
        if frame is None:
            if self.state in LIVE_STATES:
                self._failed_reads += 1
                if self._failed_reads >= self.max_failed_reads:
                    self._fail(CameraError(CameraErrorKind.OTHER,
                                           f"no frame from the camera after {self._failed_reads} reads"))
            return None
        self._failed_reads = 0
        if self.state == SessionState.STARTING:
            self._cancel_ready_timer()
            logger.info("Camera ready")
            self._settle()
            self._notify()
        return frame

    def _ready_timed_out(self, epoch: int):
        if epoch != self._ready_epoch or self.state != SessionState.STARTING:
            return
        self._ready_timer = None
        self._fail(CameraError(CameraErrorKind.OTHER,
                               f"camera did not deliver a frame within {self.ready_timeout:g}s"))

    def _cancel_ready_timer(self):
        self._ready_epoch += 1
        if self._ready_timer is not None:
            self._ready_timer.cancel()
            self._ready_timer = None

    def _release_source(self):
        source, self._source = self._source, None
        self._failed_reads = 0
        if source is not None:
            source.release()
            logger.debug("Video source released")

    def _fail(self, error: CameraError):
        logger.error("Camera error (%s): %s", error.kind.value, error)
        self._cancel_countdown()
        self._cancel_ready_timer()
        self._release_source()
        self.error = error
        self._set_state(SessionState.CAMERA_ERROR)
        self._notify()

    def stop(self):
        """Release the camera. Safe to call on every exit path."""
        self._cancel_countdown()
        self._cancel_ready_timer()
        self._release_source()
        if self.state not in (SessionState.IDLE, SessionState.CAMERA_ERROR):
            self._set_state(SessionState.IDLE)
            self._notify()

    def close(self):
        """Stop, then drop listeners once they have seen the final state."""
        self.stop()
        self._listeners.clear()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ---------- countdown & capture ----------
    def set_countdown(self, seconds: int):
        if seconds not in COUNTDOWN_CHOICES:
            raise ValueError(f"countdown must be one of {COUNTDOWN_CHOICES}, got {seconds}")
        self.countdown_seconds = seconds
        self._notify()

    def start_capture(self) -> bool:
        if self.state != SessionState.READY or self.remaining <= 0:
            logger.debug("Capture trigger ignored in state %s", self.state.value)
            return False
        self._epoch += 1
        self.countdown_value = self.countdown_seconds
        self._set_state(SessionState.COUNTDOWN)
        self._notify()
        self._schedule_tick()
        return True

    def _schedule_tick(self):
        epoch = self._epoch
        self._timer = self.clock.schedule_once(lambda dt: self._tick(epoch), 1.0)

    def _tick(self, epoch: int):
        if epoch != self._epoch or self.state != SessionState.COUNTDOWN:
            return
        self._timer = None
        self.countdown_value -= 1
        logger.debug("Countdown: %s", self.countdown_value)
        if self.countdown_value > 0:
            self._notify()
            self._schedule_tick()
            return
        self._capture()

    def _cancel_countdown(self):
        self._epoch += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.countdown_value = None

    def _capture(self):
        self._set_state(SessionState.CAPTURING)
        self.countdown_value = 0
        try:
            frame = self._source.read() if self._source is not None else None
        except Exception as e:
            self._fail(CameraError(CameraErrorKind.OTHER, f"camera feed lost during capture: {e}"))
            return
        if frame is None:
            self._fail(CameraError(CameraErrorKind.OTHER, "camera feed lost during capture"))
            return

        try:
            data = self.engine.apply(encode_frame(frame), self.filter_id)
        except Exception as e:
            logger.exception("Could not encode the captured frame")
            self._fail(CameraError(CameraErrorKind.OTHER, f"capture failed: {e}"))
            return
        self.photos.append(Photo(data, "JPEG", self._next_index))
        self._next_index += 1
        self.countdown_value = None
        logger.info("Photo %d captured, %d remaining", len(self.photos), self.remaining)
        self._settle()
        self._notify()

    # ---------- user choices ----------
    def select_layout(self, layout_id: str):
        layout = get_layout(layout_id)
        self._cancel_countdown()
        self.layout = layout
        self.photos.clear()
        if self.state in LIVE_STATES:
            self._set_state(SessionState.READY)
        logger.debug("Layout changed to %s (%d slots)", layout.id, layout.slot_count)
        self._notify()

    def select_filter(self, filter_id: str):
        self.filter_id = filter_id
        self._notify()

    def retake(self, index: int) -> Photo:
        if not 0 <= index < len(self.photos):
            raise IndexError(f"no photo at index {index}")
        removed = self.photos.pop(index)
        if self.state == SessionState.COMPLETE:
            self._set_state(SessionState.READY)
        self._notify()
        return removed

    def reset_all(self):
        self._cancel_countdown()
        self.photos.clear()
        if self.state in LIVE_STATES:
            self._set_state(SessionState.READY)
        self._notify()

    def proceed(self) -> Optional[Tuple[Photo, ...]]:
        """Hand the photo set downstream once every slot is filled."""
        if self.state != SessionState.COMPLETE:
            return None
        return tuple(self.photos)
