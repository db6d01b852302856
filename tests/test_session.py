"""Tests for the capture session state machine."""

import pytest

from camera import CameraError, CameraErrorKind
from conftest import CameraFactory, FakeCamera, FakeClock, make_frame
from filters import FilterEngine
from session import CaptureSession, SessionState


def _ready_session(clock: FakeClock, factory: CameraFactory, layout_id: str = "strip", **kwargs) -> CaptureSession:
    session = CaptureSession(clock, camera_factory=factory, layout_id=layout_id, **kwargs)
    session.start()
    session.poll_frame()
    assert session.state == SessionState.READY
    return session


def _shoot(session: CaptureSession, clock: FakeClock) -> None:
    assert session.start_capture()
    clock.advance(session.countdown_seconds)


def test_start_waits_for_first_frame(clock, camera_factory) -> None:
    session = CaptureSession(clock, camera_factory=camera_factory)
    session.start()
    assert session.state == SessionState.STARTING
    assert session.poll_frame() is not None
    assert session.state == SessionState.READY
    assert camera_factory.opened == 1


def test_countdown_ticks_then_captures(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory, countdown_seconds=3)
    seen = []
    session.bind(lambda snap: seen.append((snap.state, snap.countdown_value)))

    assert session.start_capture()
    assert session.countdown_value == 3
    clock.advance(1)
    assert session.countdown_value == 2
    clock.advance(1)
    assert session.countdown_value == 1
    assert not session.photos
    clock.advance(1)

    assert len(session.photos) == 1
    assert session.state == SessionState.READY
    assert session.countdown_value is None
    assert [v for s, v in seen if s == SessionState.COUNTDOWN] == [3, 2, 1]


def test_trigger_during_countdown_is_ignored(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory)
    assert session.start_capture()
    clock.advance(1)
    assert not session.start_capture()
    clock.advance(10)
    assert len(session.photos) == 1


def test_trigger_before_ready_is_ignored(clock, camera_factory) -> None:
    session = CaptureSession(clock, camera_factory=camera_factory)
    assert not session.start_capture()
    session.start()
    assert not session.start_capture()


def test_fills_every_slot_then_completes(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory, layout_id="strip")
    for _ in range(4):
        _shoot(session, clock)
    assert session.state == SessionState.COMPLETE
    assert session.snapshot().can_proceed
    assert [p.index for p in session.photos] == [0, 1, 2, 3]
    assert not session.start_capture()
    assert len(session.proceed()) == 4


def test_proceed_before_complete_returns_none(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory)
    _shoot(session, clock)
    assert session.proceed() is None


def test_layout_change_cancels_countdown(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory, layout_id="strip")
    _shoot(session, clock)
    assert session.start_capture()
    clock.advance(1)
    session.select_layout("single")

    clock.advance(10)
    assert session.photos == []
    assert session.state == SessionState.READY
    assert session.remaining == 1
    assert session.countdown_value is None


def test_stale_tick_is_a_noop_even_if_it_fires(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory)
    assert session.start_capture()
    stale = session._timer
    session.reset_all()
    # fire the cancelled event by hand
    stale.callback(1.0)
    assert session.photos == []
    assert session.state == SessionState.READY


def test_retake_reopens_a_slot(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory, layout_id="grid")
    for _ in range(4):
        _shoot(session, clock)
    assert session.state == SessionState.COMPLETE

    removed = session.retake(1)
    assert removed.index == 1
    assert session.state == SessionState.READY
    assert session.remaining == 1

    _shoot(session, clock)
    assert session.state == SessionState.COMPLETE
    assert [p.index for p in session.photos] == [0, 2, 3, 4]


def test_retake_invalid_index(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory)
    with pytest.raises(IndexError):
        session.retake(0)


def test_reset_all_clears_photos(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory, layout_id="single")
    _shoot(session, clock)
    assert session.state == SessionState.COMPLETE
    session.reset_all()
    assert session.photos == []
    assert session.state == SessionState.READY


def test_set_countdown_validates_choice(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory)
    session.set_countdown(5)
    assert session.countdown_seconds == 5
    with pytest.raises(ValueError):
        session.set_countdown(4)


def test_selected_filter_applies_to_capture(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory, layout_id="single")
    plain = CaptureSession(FakeClock(), camera_factory=CameraFactory(), layout_id="single")
    plain.start()
    plain.poll_frame()
    _shoot(plain, plain.clock)

    session.select_filter("blackwhite")
    _shoot(session, clock)
    assert session.photos[0].data != plain.photos[0].data


@pytest.mark.parametrize("exc, kind", [
    (PermissionError("denied"), CameraErrorKind.PERMISSION_DENIED),
    (FileNotFoundError("/dev/video0"), CameraErrorKind.NO_DEVICE),
    (ImportError("no backend"), CameraErrorKind.UNSUPPORTED),
    (RuntimeError("boom"), CameraErrorKind.OTHER),
])
def test_camera_failure_is_classified(clock, exc, kind) -> None:
    session = CaptureSession(clock, camera_factory=CameraFactory(error=exc))
    session.start()
    assert session.state == SessionState.CAMERA_ERROR
    assert session.error.kind == kind
    assert session.error.message


def test_ready_timeout_becomes_camera_error(clock) -> None:
    factory = CameraFactory(camera=FakeCamera(frames=[]))
    session = CaptureSession(clock, camera_factory=factory, ready_timeout=3.0)
    session.start()
    session.poll_frame()
    clock.advance(3.0)
    assert session.state == SessionState.CAMERA_ERROR
    assert session.error.kind == CameraErrorKind.OTHER
    assert factory.camera.released == 1


def test_retry_after_camera_error(clock) -> None:
    factory = CameraFactory(error=CameraError(CameraErrorKind.NO_DEVICE))
    session = CaptureSession(clock, camera_factory=factory)
    session.start()
    assert session.state == SessionState.CAMERA_ERROR

    factory.error = None
    session.start()
    session.poll_frame()
    assert session.state == SessionState.READY
    assert session.error is None


class _BrokenEngine:
    def apply(self, data: bytes, filter_id: str) -> bytes:
        raise RuntimeError("encoder crashed")


class _ExplodingCamera(FakeCamera):
    def read(self):
        if self.reads:
            raise OSError("device unplugged")
        return super().read()


def test_lost_feed_during_capture_is_a_camera_error(clock) -> None:
    camera = FakeCamera(frames=[make_frame(), None])
    session = CaptureSession(clock, camera_factory=CameraFactory(camera=camera), layout_id="strip")
    session.start()
    session.poll_frame()

    assert session.start_capture()
    clock.advance(3)

    assert session.state == SessionState.CAMERA_ERROR
    assert session.error.kind == CameraErrorKind.OTHER
    assert session.photos == []
    assert camera.released == 1
    assert not session.start_capture()


def test_read_exception_during_capture_is_a_camera_error(clock) -> None:
    camera = _ExplodingCamera()
    session = CaptureSession(clock, camera_factory=CameraFactory(camera=camera), layout_id="single")
    session.start()
    session.poll_frame()
    _shoot(session, clock)

    assert session.state == SessionState.CAMERA_ERROR
    assert "unplugged" in session.error.message
    assert camera.released == 1


def test_repeated_empty_reads_fail_the_live_feed(clock) -> None:
    camera = FakeCamera(frames=[make_frame(), None])
    session = CaptureSession(clock, camera_factory=CameraFactory(camera=camera), max_failed_reads=3)
    session.start()
    session.poll_frame()
    assert session.state == SessionState.READY

    session.poll_frame()
    session.poll_frame()
    assert session.state == SessionState.READY
    session.poll_frame()

    assert session.state == SessionState.CAMERA_ERROR
    assert session.error.kind == CameraErrorKind.OTHER
    assert camera.released == 1


def test_good_frame_resets_failed_read_count(clock) -> None:
    camera = FakeCamera(frames=[make_frame(), None, make_frame(), None, None, make_frame()])
    session = CaptureSession(clock, camera_factory=CameraFactory(camera=camera), max_failed_reads=3)
    session.start()
    for _ in range(5):
        session.poll_frame()
    assert session.state == SessionState.READY


def test_encode_failure_does_not_lock_the_session(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory, layout_id="single", engine=_BrokenEngine())
    session.select_filter("sepia")
    _shoot(session, clock)

    assert session.state == SessionState.CAMERA_ERROR
    assert camera_factory.camera.released == 1

    session.engine = FilterEngine()
    session.start()
    session.poll_frame()
    assert session.state == SessionState.READY
    assert session.start_capture()


def test_stop_announces_idle(clock, camera_factory) -> None:
    seen = []
    session = CaptureSession(clock, camera_factory=camera_factory)
    session.bind(lambda snap: seen.append(snap.state))
    session.start()
    session.poll_frame()
    session.stop()

    assert seen == [SessionState.STARTING, SessionState.READY, SessionState.IDLE]
    session.stop()
    assert seen[-1] == SessionState.IDLE
    assert len(seen) == 3


def test_close_notifies_before_dropping_listeners(clock, camera_factory) -> None:
    seen = []
    session = CaptureSession(clock, camera_factory=camera_factory)
    session.bind(lambda snap: seen.append(snap.state))
    session.start()
    session.poll_frame()
    session.close()

    assert seen[-1] == SessionState.IDLE
    session.start()
    assert seen[-1] == SessionState.IDLE


def test_context_manager_releases_camera(clock, camera_factory) -> None:
    with CaptureSession(clock, camera_factory=camera_factory) as session:
        session.poll_frame()
        assert session.start_capture()
    assert camera_factory.camera.released == 1
    assert session.state == SessionState.IDLE
    assert clock.pending() == []


def test_stop_is_idempotent(clock, camera_factory) -> None:
    session = _ready_session(clock, camera_factory)
    session.stop()
    session.stop()
    assert camera_factory.camera.released == 1
