"""Frame throttle for detector dispatch.

Gates how often raw frames are forwarded to the landmark source so the
detector is never invoked faster than a fixed minimum interval,
regardless of the camera's native frame rate.

Example:
    >>> throttle = FrameThrottle(min_interval_ms=66)
    >>> [throttle.should_dispatch(t * 1_000_000) for t in (0, 10, 70, 140)]
    [True, False, True, True]
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

NS_PER_MS = 1_000_000
NS_PER_SECOND = 1_000_000_000

# Floor for the throughput window so a report right after reset
# does not divide by ~0.
_MIN_FPS_WINDOW_NS = NS_PER_MS


@dataclass
class ThrottleState:
    """Mutable dispatch bookkeeping for one tracking session.

    Attributes:
        last_dispatch_ns: Timestamp of the last accepted dispatch, or None.
        frame_counter: Frames processed since the session (re)started.
        window_start_ns: Start of the throughput window, or None.
    """

    last_dispatch_ns: Optional[int] = None
    frame_counter: int = 0
    window_start_ns: Optional[int] = None


class FrameThrottle:
    """Time-based dispatch gate.

    Args:
        min_interval_ms: Minimum time between two accepted dispatches.
        clock_ns: Time source used when callers omit timestamps.
    """

    def __init__(
        self,
        min_interval_ms: float = 66.0,
        clock_ns=time.monotonic_ns,
    ):
        if min_interval_ms < 0:
            raise ValueError(f"min_interval_ms must be >= 0, got {min_interval_ms}")
        self._min_interval_ns = int(min_interval_ms * NS_PER_MS)
        self._clock_ns = clock_ns
        self._state = ThrottleState()

    @property
    def min_interval_ns(self) -> int:
        return self._min_interval_ns

    @property
    def state(self) -> ThrottleState:
        """Copy of the current state."""
        return ThrottleState(
            last_dispatch_ns=self._state.last_dispatch_ns,
            frame_counter=self._state.frame_counter,
            window_start_ns=self._state.window_start_ns,
        )

    @property
    def frame_counter(self) -> int:
        return self._state.frame_counter

    def should_dispatch(self, now_ns: Optional[int] = None) -> bool:
        """Decide whether the frame arriving at ``now_ns`` goes to the detector.

        The first call always dispatches. A timestamp earlier than the last
        dispatch (clock skew) counts as zero elapsed time and dispatches,
        re-anchoring the throttle at ``now_ns``.
        """
        if now_ns is None:
            now_ns = self._clock_ns()

        state = self._state
        if state.last_dispatch_ns is None:
            state.last_dispatch_ns = now_ns
            return True

        elapsed = now_ns - state.last_dispatch_ns
        if elapsed < 0:
            logger.debug(
                "Clock went backwards by %.1f ms, re-anchoring throttle",
                -elapsed / NS_PER_MS,
            )
            state.last_dispatch_ns = now_ns
            return True

        if elapsed >= self._min_interval_ns:
            state.last_dispatch_ns = now_ns
            return True
        return False

    def start_window(self, now_ns: Optional[int] = None) -> None:
        """Start the throughput window (tracking (re)started)."""
        self._state.window_start_ns = now_ns if now_ns is not None else self._clock_ns()

    def record_frame_processed(self, now_ns: Optional[int] = None) -> int:
        """Count one processed frame. Returns the new counter value."""
        if self._state.window_start_ns is None:
            self._state.window_start_ns = now_ns if now_ns is not None else self._clock_ns()
        self._state.frame_counter += 1
        return self._state.frame_counter

    def achieved_fps(self, now_ns: Optional[int] = None) -> float:
        """Processed frames per second since the window started.

        Reporting signal only; never used to gate dispatch.
        """
        start = self._state.window_start_ns
        if start is None or self._state.frame_counter == 0:
            return 0.0
        if now_ns is None:
            now_ns = self._clock_ns()
        elapsed_ns = max(now_ns - start, _MIN_FPS_WINDOW_NS)
        return self._state.frame_counter * NS_PER_SECOND / elapsed_ns

    def reset(self) -> None:
        """Reset all counters and timestamps (new tracking session)."""
        self._state = ThrottleState()


__all__ = ["ThrottleState", "FrameThrottle", "NS_PER_MS", "NS_PER_SECOND"]
