"""Tests for the tracking session state machine."""

import logging
import math
from unittest.mock import MagicMock

import numpy as np
import pytest

from tryon.config import TryOnConfig
from tryon.pose import PoseEstimator
from tryon.session import (
    DetectionInFlightError,
    SessionStateError,
    TrackingSession,
    TrackingState,
)
from tryon.testing import (
    DeferredLandmarkSource,
    FakeFrame,
    ImmediateLandmarkSource,
    StaticLandmarkBackend,
    make_landmarks,
)
from tryon.throttle import NS_PER_MS
from tryon.types import Landmark, LandmarkSet

FACE = make_landmarks(left_eye=(0.4, 0.52, 0.0), right_eye=(0.6, 0.48, 0.0))


def _ms(value: float) -> int:
    return int(value * NS_PER_MS)


def _started(results, config=None, **kwargs):
    session = TrackingSession(config, **kwargs)
    source = ImmediateLandmarkSource(StaticLandmarkBackend(results))
    session.start(source)
    return session, source


class TestLifecycle:
    def test_initial_state(self):
        session = TrackingSession()
        assert session.state is TrackingState.UNINITIALIZED
        assert session.transform is None
        assert not session.busy

    def test_start_enters_detecting(self):
        session, _ = _started(FACE)
        assert session.state is TrackingState.DETECTING
        assert session.transform is None

    def test_submit_before_start(self):
        with pytest.raises(SessionStateError):
            TrackingSession().submit(FakeFrame.create(), now_ns=0)

    def test_stop_is_idempotent_and_closes_source(self):
        session, source = _started(FACE)
        session.stop()
        session.stop()
        assert session.state is TrackingState.STOPPED
        assert source.closed

    def test_start_after_stop(self):
        session, _ = _started(FACE)
        session.stop()
        with pytest.raises(SessionStateError):
            session.start(ImmediateLandmarkSource(StaticLandmarkBackend(FACE)))

    def test_submit_after_stop(self):
        session, _ = _started(FACE)
        session.stop()
        with pytest.raises(SessionStateError):
            session.submit(FakeFrame.create(), now_ns=0)

    def test_restart_clears_transform_and_throttle(self):
        session, source = _started(FACE)
        session.submit(FakeFrame.create(), now_ns=_ms(0))
        assert session.state is TrackingState.TRACKING

        session.start(source)

        assert session.state is TrackingState.DETECTING
        assert session.transform is None
        assert session.stats.frames_processed == 0
        # Throttle was reset, so 10 ms later still dispatches.
        assert session.submit(FakeFrame.create(), now_ns=_ms(10)) is not None
        assert not source.closed

    def test_restart_with_new_source_closes_old(self):
        session, old = _started(FACE)
        new = ImmediateLandmarkSource(StaticLandmarkBackend(FACE))
        session.start(new)
        assert old.closed
        assert not new.closed

    def test_borrowed_source_is_not_closed(self):
        session = TrackingSession()
        source = ImmediateLandmarkSource(StaticLandmarkBackend(FACE))
        session.start(source, owns_source=False)
        session.stop()
        assert session.state is TrackingState.STOPPED
        assert not source.closed

    def test_restart_keeps_borrowed_source_open(self):
        session = TrackingSession()
        borrowed = ImmediateLandmarkSource(StaticLandmarkBackend(FACE))
        session.start(borrowed, owns_source=False)
        session.start(ImmediateLandmarkSource(StaticLandmarkBackend(FACE)))
        assert not borrowed.closed

    def test_context_manager_stops(self):
        with TrackingSession() as session:
            session.start(ImmediateLandmarkSource(StaticLandmarkBackend(FACE)))
        assert session.state is TrackingState.STOPPED


class TestDetection:
    def test_face_enters_tracking(self):
        session, _ = _started(FACE)
        future = session.submit(FakeFrame.create(), now_ns=0)

        assert future is not None
        assert future.result() == FACE
        assert session.state is TrackingState.TRACKING
        assert session.transform == PoseEstimator().estimate(FACE)
        assert session.landmarks == FACE

    def test_accepts_raw_arrays(self):
        session, _ = _started(FACE)
        session.submit(np.zeros((10, 10, 3), dtype=np.uint8), now_ns=0)
        assert session.state is TrackingState.TRACKING

    def test_throttled_frame_returns_none(self):
        session, source = _started(FACE)
        assert session.submit(FakeFrame.create(), now_ns=_ms(0)) is not None
        assert session.submit(FakeFrame.create(), now_ns=_ms(10)) is None
        assert session.submit(FakeFrame.create(), now_ns=_ms(70)) is not None
        assert source.backend.calls == 2

    def test_uses_session_clock(self):
        now = [0]
        session = TrackingSession(clock_ns=lambda: now[0])
        session.start(ImmediateLandmarkSource(StaticLandmarkBackend(FACE)))
        assert session.submit(FakeFrame.create()) is not None
        now[0] = _ms(30)
        assert session.submit(FakeFrame.create()) is None

    def test_no_face_is_lost(self):
        session, _ = _started(None)
        session.submit(FakeFrame.create(), now_ns=0)
        assert session.state is TrackingState.LOST
        assert session.transform is None

    def test_tracking_to_lost_clears_transform(self):
        seen = []
        session, _ = _started(
            [FACE, None],
            on_update=lambda state, transform: seen.append((state, transform)),
        )
        session.submit(FakeFrame.create(), now_ns=_ms(0))
        assert session.transform is not None

        session.submit(FakeFrame.create(), now_ns=_ms(100))

        assert session.state is TrackingState.LOST
        assert session.transform is None
        assert session.landmarks is None
        assert seen[-1] == (TrackingState.LOST, None)

    def test_lost_to_tracking(self):
        session, _ = _started([None, FACE])
        session.submit(FakeFrame.create(), now_ns=_ms(0))
        session.submit(FakeFrame.create(), now_ns=_ms(100))
        assert session.state is TrackingState.TRACKING

    def test_malformed_landmarks_are_absent(self):
        bad = LandmarkSet(
            left_eye=Landmark(math.nan, 0.5),
            right_eye=Landmark(0.6, 0.5),
            nose_tip=Landmark(0.5, 0.6),
            forehead=Landmark(0.5, 0.3),
        )
        session, _ = _started([FACE, bad])
        session.submit(FakeFrame.create(), now_ns=_ms(0))
        session.submit(FakeFrame.create(), now_ns=_ms(100))
        assert session.state is TrackingState.LOST
        assert session.transform is None

    def test_detector_error_is_absent(self, caplog):
        session, source = _started([FACE, RuntimeError("gpu lost"), FACE])
        session.submit(FakeFrame.create(), now_ns=_ms(0))
        with caplog.at_level(logging.WARNING, logger="tryon.session"):
            session.submit(FakeFrame.create(), now_ns=_ms(100))

        assert session.state is TrackingState.LOST
        assert "Landmark detection failed" in caplog.text
        assert not session.busy

        session.submit(FakeFrame.create(), now_ns=_ms(200))
        assert session.state is TrackingState.TRACKING

    def test_stats(self):
        session, _ = _started(FACE)
        for t in (0, 100, 200):
            session.submit(FakeFrame.create(), now_ns=_ms(t))
        stats = session.stats
        assert stats.frames_processed == 3
        assert stats.processing_ms >= 0.0

    def test_on_update_receives_transform(self):
        callback = MagicMock()
        session, _ = _started(FACE, on_update=callback)
        session.submit(FakeFrame.create(), now_ns=0)
        callback.assert_called_once_with(TrackingState.TRACKING, session.transform)


class TestInFlight:
    def test_overlapping_submit_raises(self):
        session = TrackingSession()
        session.start(DeferredLandmarkSource())
        session.submit(FakeFrame.create(), now_ns=_ms(0))

        assert session.busy
        with pytest.raises(DetectionInFlightError):
            session.submit(FakeFrame.create(), now_ns=_ms(100))

    def test_in_flight_checked_before_throttle(self):
        session = TrackingSession()
        session.start(DeferredLandmarkSource())
        session.submit(FakeFrame.create(), now_ns=_ms(0))
        with pytest.raises(DetectionInFlightError):
            session.submit(FakeFrame.create(), now_ns=_ms(1))

    def test_result_clears_busy(self):
        source = DeferredLandmarkSource()
        session = TrackingSession()
        session.start(source)
        session.submit(FakeFrame.create(), now_ns=0)

        source.pending[0].set_result(FACE)

        assert not session.busy
        assert session.wait(timeout=1)
        assert session.state is TrackingState.TRACKING

    def test_result_after_stop_is_discarded(self):
        source = DeferredLandmarkSource()
        session = TrackingSession()
        session.start(source)
        session.submit(FakeFrame.create(), now_ns=0)
        session.stop()

        source.pending[0].set_result(FACE)

        assert session.state is TrackingState.STOPPED
        assert session.transform is None

    def test_result_after_restart_is_discarded(self):
        source = DeferredLandmarkSource()
        session = TrackingSession()
        session.start(source)
        session.submit(FakeFrame.create(), now_ns=0)
        session.start(source)
        assert not session.busy

        source.pending[0].set_result(FACE)

        assert session.state is TrackingState.DETECTING
        assert session.transform is None

        session.submit(FakeFrame.create(), now_ns=0)
        source.pending[1].set_result(FACE)
        assert session.state is TrackingState.TRACKING

    def test_stale_generation_ignored(self):
        session, _ = _started(FACE)
        stale = session.generation - 1
        session.apply_result(FACE, generation=stale)
        assert session.state is TrackingState.DETECTING


class TestProcessStill:
    def test_still_image(self):
        session, source = _started(FACE)
        transform = session.process_still(FakeFrame.create())
        assert transform == PoseEstimator().estimate(FACE)
        assert session.state is TrackingState.TRACKING

    def test_still_bypasses_throttle(self):
        session, source = _started(FACE)
        session.process_still(FakeFrame.create())
        session.process_still(FakeFrame.create())
        assert source.backend.calls == 2

    def test_still_without_face(self):
        session, _ = _started(None)
        assert session.process_still(FakeFrame.create()) is None
        assert session.state is TrackingState.LOST

    def test_still_detector_error(self):
        session, _ = _started(ValueError("bad image"))
        assert session.process_still(FakeFrame.create()) is None
        assert session.state is TrackingState.LOST


class TestSmoothingAndVariants:
    def test_smoothing_blends_transforms(self):
        near = make_landmarks(left_eye=(0.4, 0.5), right_eye=(0.6, 0.5))
        right = make_landmarks(left_eye=(0.5, 0.5), right_eye=(0.7, 0.5))
        session, _ = _started([near, right], TryOnConfig(smoothing_alpha=0.5))
        session.submit(FakeFrame.create(), now_ns=_ms(0))
        session.submit(FakeFrame.create(), now_ns=_ms(100))

        # Raw x would be 0.0 then 0.4.
        assert session.transform.position[0] == pytest.approx(0.2)

    def test_smoothing_resets_when_lost(self):
        near = make_landmarks(left_eye=(0.4, 0.5), right_eye=(0.6, 0.5))
        right = make_landmarks(left_eye=(0.5, 0.5), right_eye=(0.7, 0.5))
        session, _ = _started([near, None, right], TryOnConfig(smoothing_alpha=0.5))
        for t in (0, 100, 200):
            session.submit(FakeFrame.create(), now_ns=_ms(t))
        assert session.transform.position[0] == pytest.approx(0.4)

    def test_default_variant(self):
        assert TrackingSession().variant.id.value == "aviator"

    def test_configured_default_variant(self):
        session = TrackingSession(TryOnConfig(default_variant_id="round"), variant_id="monocle")
        assert session.variant.id.value == "round"

    def test_select_variant(self):
        session = TrackingSession()
        assert session.select_variant("cat-eye").id.value == "cat-eye"
        assert session.variant.id.value == "cat-eye"
        assert session.select_variant("unknown").id.value == "aviator"
