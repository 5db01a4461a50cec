"""Testing utilities for the try-on pipeline.

FakeFrame provides a black BGR frame with the attributes the pipeline
reads. The landmark fakes replace a real detector so sessions and
runners can be exercised without MediaPipe or a camera.

Example:
    >>> from tryon.testing import FakeFrame, StaticLandmarkBackend, ImmediateLandmarkSource
    >>> backend = StaticLandmarkBackend([make_landmarks(), None])
    >>> session.start(ImmediateLandmarkSource(backend))
    >>> session.submit(FakeFrame.create())
"""

from concurrent.futures import Future
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from tryon.types import Landmark, LandmarkSet


@dataclass
class FakeFrame:
    """Lightweight fake Frame for tests.

    Example:
        >>> frame = FakeFrame.create()                  # 640x480 black
        >>> frames = FakeFrame.sequence(3)              # 3 sequential frames
    """

    data: np.ndarray
    frame_id: int
    t_src_ns: int
    width: int
    height: int

    @classmethod
    def create(
        cls,
        width: int = 640,
        height: int = 480,
        frame_id: int = 0,
        t_src_ns: int = 0,
    ) -> "FakeFrame":
        data = np.zeros((height, width, 3), dtype=np.uint8)
        return cls(
            data=data,
            frame_id=frame_id,
            t_src_ns=t_src_ns,
            width=width,
            height=height,
        )

    @classmethod
    def sequence(
        cls,
        count: int,
        width: int = 640,
        height: int = 480,
        interval_ns: int = 33_333_333,
    ) -> List["FakeFrame"]:
        """Create a sequence of fake frames with incrementing IDs.

        Args:
            count: Number of frames.
            width: Image width in pixels.
            height: Image height in pixels.
            interval_ns: Nanoseconds between frames (default ~30fps).
        """
        return [
            cls.create(width=width, height=height, frame_id=i, t_src_ns=i * interval_ns)
            for i in range(count)
        ]


def make_landmarks(
    left_eye: Tuple[float, ...] = (0.4, 0.5, 0.0),
    right_eye: Tuple[float, ...] = (0.6, 0.5, 0.0),
    nose_tip: Tuple[float, ...] = (0.5, 0.6, 0.0),
    forehead: Tuple[float, ...] = (0.5, 0.3, 0.0),
) -> LandmarkSet:
    """Build a LandmarkSet from (x, y[, z]) tuples."""
    return LandmarkSet(
        left_eye=Landmark(*left_eye),
        right_eye=Landmark(*right_eye),
        nose_tip=Landmark(*nose_tip),
        forehead=Landmark(*forehead),
    )


Result = Union[LandmarkSet, None, Exception]


class StaticLandmarkBackend:
    """Backend that replays scripted results.

    Each ``detect()`` call consumes the next entry; the last entry
    repeats once the script is exhausted. Exception entries are raised.

    Args:
        results: A single result or a sequence of results.
    """

    def __init__(self, results: Union[Result, Sequence[Result]] = None):
        if isinstance(results, (list, tuple)):
            self._results = list(results)
        else:
            self._results = [results]
        self.calls = 0
        self.initialized = False
        self.cleaned_up = False

    def initialize(self) -> None:
        self.initialized = True

    def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        index = min(self.calls, len(self._results) - 1)
        self.calls += 1
        result = self._results[index]
        if isinstance(result, Exception):
            raise result
        return result

    def cleanup(self) -> None:
        self.cleaned_up = True


class ImmediateLandmarkSource:
    """Landmark source that runs the backend inline.

    ``submit()`` returns an already-completed Future, so the session's
    done-callback fires before ``submit()`` returns.
    """

    def __init__(self, backend):
        self.backend = backend
        self.closed = False
        backend.initialize()

    def submit(self, image: np.ndarray) -> Future:
        future: Future = Future()
        try:
            future.set_result(self.backend.detect(image))
        except Exception as e:
            future.set_exception(e)
        return future

    def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        return self.backend.detect(image)

    def close(self) -> None:
        self.closed = True
        self.backend.cleanup()


class DeferredLandmarkSource:
    """Landmark source whose results are delivered by the test.

    Every ``submit()`` returns a pending Future kept in ``pending``;
    resolve it with ``future.set_result(...)`` to simulate the detector
    finishing.
    """

    def __init__(self):
        self.pending: List[Future] = []
        self.closed = False

    def submit(self, image: np.ndarray) -> Future:
        future: Future = Future()
        self.pending.append(future)
        return future

    def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        raise NotImplementedError("DeferredLandmarkSource only supports submit()")

    def close(self) -> None:
        self.closed = True


__all__ = [
    "FakeFrame",
    "make_landmarks",
    "StaticLandmarkBackend",
    "ImmediateLandmarkSource",
    "DeferredLandmarkSource",
]
