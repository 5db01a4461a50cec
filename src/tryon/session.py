"""Tracking session: owns throttle state, the in-flight detection and the
current placement transform.

State machine::

    UNINITIALIZED --start--> DETECTING --face--> TRACKING
                                 |                 ^  |
                                 +--no face--> LOST <-+
    any --stop--> STOPPED

Detection results arrive on the landmark worker thread through
``Future.add_done_callback``; every result carries the generation it was
issued under so that results from before a restart or stop are dropped.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from enum import Enum
from typing import Callable, Optional, Union

import numpy as np

from tryon.catalog import AccessoryVariant, select_variant
from tryon.config import TryOnConfig
from tryon.landmarks import LandmarkSource
from tryon.pose import PoseEstimator
from tryon.smoothing import TransformSmoother
from tryon.throttle import NS_PER_MS, FrameThrottle
from tryon.types import Frame, LandmarkSet, PerformanceStats, PlacementTransform

logger = logging.getLogger(__name__)


class TrackingState(str, Enum):
    UNINITIALIZED = "uninitialized"
    DETECTING = "detecting"
    TRACKING = "tracking"
    LOST = "lost"
    STOPPED = "stopped"


class SessionStateError(RuntimeError):
    """Operation not allowed in the current session state."""


class DetectionInFlightError(RuntimeError):
    """A detection was requested while another one is still running."""


UpdateCallback = Callable[[TrackingState, Optional[PlacementTransform]], None]


def _image_of(frame: Union[Frame, np.ndarray]) -> np.ndarray:
    return frame if isinstance(frame, np.ndarray) else frame.data


class TrackingSession:
    """Per-session tracking pipeline.

    Args:
        config: Pipeline configuration. Defaults to ``TryOnConfig()``.
        variant_id: Initial eyewear style; the configured default when None.
        on_update: Called with ``(state, transform)`` after every applied
            detection result. Runs on the thread that delivered the result.
        clock_ns: Time source for throttling and latency measurement.

    Example:
        >>> session = TrackingSession()
        >>> session.start(source)
        >>> session.submit(frame)          # Future or None (throttled)
        >>> session.transform              # None unless TRACKING
    """

    def __init__(
        self,
        config: Optional[TryOnConfig] = None,
        variant_id: Optional[str] = None,
        on_update: Optional[UpdateCallback] = None,
        clock_ns: Callable[[], int] = time.monotonic_ns,
    ):
        self._config = config or TryOnConfig()
        self._clock_ns = clock_ns
        self._throttle = FrameThrottle(self._config.min_interval_ms, clock_ns=clock_ns)
        self._estimator = PoseEstimator(self._config)
        self._smoother = (
            TransformSmoother(self._config.smoothing_alpha)
            if self._config.smoothing_alpha is not None
            else None
        )
        self._variant = select_variant(
            variant_id, default_id=self._config.default_variant_id
        )
        self._on_update = on_update

        self._lock = threading.Lock()
        self._state = TrackingState.UNINITIALIZED
        self._source: Optional[LandmarkSource] = None
        self._owns_source = True
        self._generation = 0
        self._in_flight: Optional[Future] = None
        self._applied: Optional[threading.Event] = None
        self._landmarks: Optional[LandmarkSet] = None
        self._transform: Optional[PlacementTransform] = None
        self._last_processing_ms = 0.0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> TryOnConfig:
        return self._config

    @property
    def state(self) -> TrackingState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def transform(self) -> Optional[PlacementTransform]:
        """Current placement, present only while TRACKING."""
        return self._transform

    @property
    def landmarks(self) -> Optional[LandmarkSet]:
        return self._landmarks

    @property
    def variant(self) -> AccessoryVariant:
        return self._variant

    @property
    def busy(self) -> bool:
        """True while a detection is in flight."""
        return self._in_flight is not None

    @property
    def stats(self) -> PerformanceStats:
        return PerformanceStats(
            fps=self._throttle.achieved_fps(),
            processing_ms=self._last_processing_ms,
            frames_processed=self._throttle.frame_counter,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, source: LandmarkSource, owns_source: bool = True) -> None:
        """Attach a landmark source and begin detecting.

        Restarts a running session: throttle state is reset, the
        transform is cleared and pending results become stale. A
        previously attached source other than ``source`` is closed if the
        session owned it.

        Args:
            source: Landmark source to detect with.
            owns_source: Close the source on ``stop()``. Pass False when the
                caller keeps using the source after this session.

        Raises:
            SessionStateError: If the session was stopped.
        """
        with self._lock:
            if self._state is TrackingState.STOPPED:
                raise SessionStateError("Cannot start a stopped session")
            previous, owned_previous = self._source, self._owns_source
            self._source = source
            self._owns_source = owns_source
            self._generation += 1
            self._in_flight = None
            self._throttle.reset()
            self._throttle.start_window(self._clock_ns())
            self._clear_locked()
            self._set_state_locked(TrackingState.DETECTING)

        if previous is not None and previous is not source and owned_previous:
            self._close_source(previous)
        logger.info("Tracking session started (generation %d)", self._generation)

    def stop(self) -> None:
        """Stop tracking and release an owned source. Safe to call repeatedly."""
        with self._lock:
            if self._state is TrackingState.STOPPED:
                return
            source = self._source if self._owns_source else None
            self._source = None
            self._generation += 1
            self._in_flight = None
            self._clear_locked()
            self._set_state_locked(TrackingState.STOPPED)

        if source is not None:
            self._close_source(source)
        logger.info("Tracking session stopped")

    def select_variant(self, variant_id: Optional[str]) -> AccessoryVariant:
        """Switch the eyewear style. Unknown ids fall back to the default."""
        self._variant = select_variant(
            variant_id, default_id=self._config.default_variant_id
        )
        return self._variant

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def submit(
        self,
        frame: Union[Frame, np.ndarray],
        now_ns: Optional[int] = None,
    ) -> Optional[Future]:
        """Offer a frame to the detector.

        Args:
            frame: Frame or raw BGR image.
            now_ns: Arrival time; defaults to the session clock.

        Returns:
            The pending detection, or None when the throttle rejected the
            frame.

        Raises:
            SessionStateError: If the session is not running.
            DetectionInFlightError: If a detection is already in flight.
        """
        with self._lock:
            self._ensure_running_locked()
            if self._in_flight is not None:
                raise DetectionInFlightError("A detection is already in flight")
            if now_ns is None:
                now_ns = self._clock_ns()
            if not self._throttle.should_dispatch(now_ns):
                return None

            generation = self._generation
            dispatched_ns = self._clock_ns()
            future = self._source.submit(_image_of(frame))
            self._in_flight = future
            applied = threading.Event()
            self._applied = applied

        future.add_done_callback(
            lambda f: self._on_detection_done(f, generation, dispatched_ns, applied)
        )
        return future

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the last submitted detection has been applied.

        Returns:
            False if the timeout expired first.
        """
        applied = self._applied
        if applied is None:
            return True
        return applied.wait(timeout)

    def process_still(
        self, frame: Union[Frame, np.ndarray]
    ) -> Optional[PlacementTransform]:
        """Run one synchronous detection on a still image.

        Bypasses the throttle. The resulting transform (or None) is
        applied exactly like a live result.
        """
        with self._lock:
            self._ensure_running_locked()
            if self._in_flight is not None:
                raise DetectionInFlightError("A detection is already in flight")
            source = self._source
            generation = self._generation

        started_ns = self._clock_ns()
        try:
            landmarks = source.detect(_image_of(frame))
        except Exception:
            logger.warning("Landmark detection failed", exc_info=True)
            landmarks = None
        self._last_processing_ms = (self._clock_ns() - started_ns) / NS_PER_MS
        return self.apply_result(landmarks, generation=generation)

    def apply_result(
        self,
        landmarks: Optional[LandmarkSet],
        generation: Optional[int] = None,
    ) -> Optional[PlacementTransform]:
        """Apply one detection result.

        Args:
            landmarks: Detected set, or None for no face.
            generation: Generation the detection was issued under. Results
                from an older generation are discarded.

        Returns:
            The current transform after the update.
        """
        with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug(
                    "Discarding stale result (generation %d, current %d)",
                    generation, self._generation,
                )
                return self._transform
            if self._state in (TrackingState.UNINITIALIZED, TrackingState.STOPPED):
                logger.debug("Discarding result in state %s", self._state.value)
                return self._transform

            self._throttle.record_frame_processed(self._clock_ns())

            if landmarks is None or not landmarks.is_finite():
                self._clear_locked()
                self._set_state_locked(TrackingState.LOST)
            else:
                transform = self._estimator.estimate(landmarks)
                if self._smoother is not None:
                    transform = self._smoother.update(transform)
                self._landmarks = landmarks
                self._transform = transform
                self._set_state_locked(TrackingState.TRACKING)

            state, transform = self._state, self._transform

        if self._on_update is not None:
            self._on_update(state, transform)
        return transform

    def _on_detection_done(
        self,
        future: Future,
        generation: int,
        dispatched_ns: int,
        applied: threading.Event,
    ) -> None:
        try:
            with self._lock:
                if self._in_flight is future:
                    self._in_flight = None

            if future.cancelled():
                return
            error = future.exception()
            if error is not None:
                logger.warning(
                    "Landmark detection failed",
                    exc_info=(type(error), error, error.__traceback__),
                )
                landmarks = None
            else:
                landmarks = future.result()

            if generation == self._generation:
                self._last_processing_ms = (self._clock_ns() - dispatched_ns) / NS_PER_MS
            self.apply_result(landmarks, generation=generation)
        finally:
            applied.set()

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _ensure_running_locked(self) -> None:
        if self._state in (TrackingState.UNINITIALIZED, TrackingState.STOPPED):
            raise SessionStateError(f"Session is {self._state.value}, call start() first")

    def _clear_locked(self) -> None:
        self._landmarks = None
        self._transform = None
        if self._smoother is not None:
            self._smoother.reset()

    def _set_state_locked(self, state: TrackingState) -> None:
        if state is not self._state:
            logger.debug("Tracking state %s -> %s", self._state.value, state.value)
            self._state = state

    @staticmethod
    def _close_source(source: LandmarkSource) -> None:
        try:
            source.close()
        except Exception:
            logger.debug("Error closing landmark source", exc_info=True)

    def __enter__(self) -> "TrackingSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()


__all__ = [
    "TrackingState",
    "SessionStateError",
    "DetectionInFlightError",
    "TrackingSession",
]
