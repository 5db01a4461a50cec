"""tryon - Virtual eyewear try-on from facial landmarks.

Turns a stream of face landmarks into a stable placement (position,
roll, scale) for an eyewear overlay, throttling detector calls so the
landmark model is never overrun.

Example:
    >>> from tryon import TrackingSession, AsyncLandmarkSource
    >>> from tryon.backends import MediaPipeFaceMeshBackend
    >>> session = TrackingSession()
    >>> session.start(AsyncLandmarkSource(MediaPipeFaceMeshBackend()))
    >>> session.submit(frame)
    >>> session.transform
"""

__version__ = "0.1.0"

from tryon.types import Frame, Landmark, LandmarkSet, PerformanceStats, PlacementTransform
from tryon.config import ConfigurationError, TryOnConfig
from tryon.catalog import AccessoryVariant, VariantId, list_variants, select_variant
from tryon.throttle import FrameThrottle
from tryon.pose import PoseEstimator
from tryon.smoothing import TransformSmoother
from tryon.landmarks import AsyncLandmarkSource, LandmarkBackend, landmark_set_from_mesh
from tryon.session import (
    DetectionInFlightError,
    SessionStateError,
    TrackingSession,
    TrackingState,
)
from tryon.runner import RunResult, TryOnRunner

__all__ = [
    "Frame",
    "Landmark",
    "LandmarkSet",
    "PerformanceStats",
    "PlacementTransform",
    "ConfigurationError",
    "TryOnConfig",
    "AccessoryVariant",
    "VariantId",
    "list_variants",
    "select_variant",
    "FrameThrottle",
    "PoseEstimator",
    "TransformSmoother",
    "AsyncLandmarkSource",
    "LandmarkBackend",
    "landmark_set_from_mesh",
    "DetectionInFlightError",
    "SessionStateError",
    "TrackingSession",
    "TrackingState",
    "RunResult",
    "TryOnRunner",
]
