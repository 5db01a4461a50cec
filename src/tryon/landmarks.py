"""Landmark source contracts and face-mesh extraction.

A landmark backend turns an image into zero or one LandmarkSet. The
tracking session never calls a backend inline; it goes through a
LandmarkSource whose ``submit()`` returns a Future, so detector latency
never blocks frame handling.

Usage:
    >>> from tryon.landmarks import AsyncLandmarkSource
    >>> from tryon.backends.mediapipe_mesh import MediaPipeFaceMeshBackend
    >>> source = AsyncLandmarkSource(MediaPipeFaceMeshBackend())
    >>> future = source.submit(image)
    >>> landmarks = future.result()   # Optional[LandmarkSet]
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

import numpy as np

from tryon.types import Landmark, LandmarkSet

logger = logging.getLogger(__name__)

# Face-mesh indices (468 points, 478 with refined iris points).
# Each keypoint lists candidates in order of preference.
LEFT_EYE_INDICES = (468, 33)     # iris center, then outer eye corner
RIGHT_EYE_INDICES = (473, 263)
NOSE_TIP_INDICES = (1, 2)        # nose tip, then nose bridge
FOREHEAD_INDICES = (10, 151)

# Dense contour for still images, reduced contour for live tracking.
JAWLINE_INDICES = (
    172, 136, 150, 149, 176, 148, 152, 377,
    400, 378, 379, 365, 397, 288, 361, 323,
)
JAWLINE_INDICES_FAST = (172, 136, 150, 176, 400, 378, 397, 288, 361, 323)


@runtime_checkable
class LandmarkBackend(Protocol):
    """Protocol for face landmark detectors.

    Implementations should be swappable without changing session logic.
    """

    def initialize(self) -> None:
        """Load models and allocate resources."""
        ...

    def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        """Detect one face in a BGR image. None when no face is found."""
        ...

    def cleanup(self) -> None:
        """Release resources."""
        ...


@runtime_checkable
class LandmarkSource(Protocol):
    """Asynchronous boundary in front of a landmark backend."""

    def submit(self, image: np.ndarray) -> "Future[Optional[LandmarkSet]]":
        """Start a detection and return its pending result."""
        ...

    def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        """Run a detection synchronously (still images)."""
        ...

    def close(self) -> None:
        """Stop accepting work and release the backend."""
        ...


def _point_at(points: Any, index: int) -> Optional[Landmark]:
    if index < 0 or index >= len(points):
        return None
    p = points[index]
    if p is None:
        return None
    if isinstance(p, np.ndarray) or isinstance(p, (tuple, list)):
        if len(p) < 2:
            return None
        z = float(p[2]) if len(p) > 2 else 0.0
        return Landmark(float(p[0]), float(p[1]), z)
    return Landmark(float(p.x), float(p.y), float(getattr(p, "z", 0.0)))


def _first_available(points: Any, candidates: Sequence[int]) -> Optional[Landmark]:
    for index in candidates:
        lm = _point_at(points, index)
        if lm is not None:
            return lm
    return None


def landmark_set_from_mesh(
    points: Any,
    jawline_indices: Sequence[int] = JAWLINE_INDICES,
) -> Optional[LandmarkSet]:
    """Build a LandmarkSet from a full face mesh.

    Args:
        points: Indexable mesh, either an (N, 2|3) array or a sequence of
            objects with ``x``, ``y`` and optional ``z`` attributes
            (e.g. MediaPipe ``NormalizedLandmark``).
        jawline_indices: Mesh indices for the jawline contour.

    Returns:
        The landmark set, or None when a required keypoint is missing or
        any coordinate is non-finite (a malformed detection is treated
        like no detection).
    """
    if points is None or len(points) == 0:
        return None

    left_eye = _first_available(points, LEFT_EYE_INDICES)
    right_eye = _first_available(points, RIGHT_EYE_INDICES)
    nose_tip = _first_available(points, NOSE_TIP_INDICES)
    forehead = _first_available(points, FOREHEAD_INDICES)
    if left_eye is None or right_eye is None or nose_tip is None or forehead is None:
        logger.debug("Mesh with %d points lacks a required keypoint", len(points))
        return None

    jawline = tuple(
        lm for lm in (_point_at(points, i) for i in jawline_indices) if lm is not None
    )
    landmarks = LandmarkSet(
        left_eye=left_eye,
        right_eye=right_eye,
        nose_tip=nose_tip,
        forehead=forehead,
        jawline=jawline,
    )
    if not landmarks.is_finite():
        logger.debug("Discarding landmark set with non-finite coordinates")
        return None
    return landmarks


class AsyncLandmarkSource:
    """Runs a backend on a single worker thread.

    One worker keeps detections in submission order; the tracking session
    additionally guarantees that at most one detection is in flight.

    Args:
        backend: Landmark backend. Initialized lazily on first use.
        executor: Optional executor override (mainly for tests).
    """

    def __init__(
        self,
        backend: LandmarkBackend,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self._backend = backend
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="tryon-landmarks"
        )
        self._initialized = False
        self._closed = False

    @property
    def backend(self) -> LandmarkBackend:
        return self._backend

    def initialize(self) -> None:
        if self._initialized:
            return
        self._backend.initialize()
        self._initialized = True
        logger.info("Landmark backend %s initialized", type(self._backend).__name__)

    def _run(self, image: np.ndarray) -> Optional[LandmarkSet]:
        self.initialize()
        return self._backend.detect(image)

    def submit(self, image: np.ndarray) -> "Future[Optional[LandmarkSet]]":
        if self._closed:
            raise RuntimeError("AsyncLandmarkSource is closed")
        return self._executor.submit(self._run, image)

    def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        if self._closed:
            raise RuntimeError("AsyncLandmarkSource is closed")
        return self._run(image)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self._initialized:
            try:
                self._backend.cleanup()
            except Exception:
                logger.debug("Cleanup error for landmark backend", exc_info=True)
        logger.info("Landmark source closed")


__all__ = [
    "LEFT_EYE_INDICES",
    "RIGHT_EYE_INDICES",
    "NOSE_TIP_INDICES",
    "FOREHEAD_INDICES",
    "JAWLINE_INDICES",
    "JAWLINE_INDICES_FAST",
    "LandmarkBackend",
    "LandmarkSource",
    "landmark_set_from_mesh",
    "AsyncLandmarkSource",
]
