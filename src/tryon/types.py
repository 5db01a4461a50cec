"""Core value types for the try-on pipeline.

All types are frozen dataclasses: a landmark set or a placement transform
is never mutated, only replaced by the next detection.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Tuple

import numpy as np

Vec3 = Tuple[float, float, float]


@dataclass(frozen=True)
class Landmark:
    """Single facial keypoint.

    Attributes:
        x: Horizontal position, normalized to image width [0, 1].
        y: Vertical position, normalized to image height [0, 1] (grows downward).
        z: Relative depth as reported by the detector.

    The detector may extrapolate slightly outside [0, 1]; values are
    never clamped here.
    """

    x: float
    y: float
    z: float = 0.0

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)


@dataclass(frozen=True)
class LandmarkSet:
    """Named facial keypoints from one successful detection.

    Attributes:
        left_eye: Left eye center.
        right_eye: Right eye center.
        nose_tip: Nose tip.
        forehead: Forehead center.
        jawline: Ordered jawline contour (kept for shape analysis).
    """

    left_eye: Landmark
    right_eye: Landmark
    nose_tip: Landmark
    forehead: Landmark
    jawline: Tuple[Landmark, ...] = ()

    def is_finite(self) -> bool:
        """True if every coordinate of every keypoint is finite."""
        points = (self.left_eye, self.right_eye, self.nose_tip, self.forehead)
        return all(p.is_finite() for p in points + tuple(self.jawline))

    def swapped_eyes(self) -> "LandmarkSet":
        """Return a copy with left and right eye exchanged."""
        return LandmarkSet(
            left_eye=self.right_eye,
            right_eye=self.left_eye,
            nose_tip=self.nose_tip,
            forehead=self.forehead,
            jawline=self.jawline,
        )


@dataclass(frozen=True)
class PlacementTransform:
    """Placement of the overlay in render space for one frame.

    Attributes:
        position: (x, y, z) in render space, y grows upward.
        rotation: Euler angles (x, y, z) in radians. Only z (roll) is modeled.
        scale: Uniform scale, always inside the configured clamp range.
    """

    position: Vec3
    rotation: Vec3
    scale: float

    @property
    def roll(self) -> float:
        """In-plane rotation in radians."""
        return self.rotation[2]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "position": list(self.position),
            "rotation": list(self.rotation),
            "scale": self.scale,
        }


@dataclass(frozen=True)
class PerformanceStats:
    """Throughput snapshot for observability.

    Attributes:
        fps: Achieved detection results per second since session start.
        processing_ms: Latency of the most recent detector call.
        frames_processed: Detection results received in this session.
    """

    fps: float = 0.0
    processing_ms: float = 0.0
    frames_processed: int = 0


@dataclass
class Frame:
    """Image frame flowing through the pipeline.

    Attributes:
        data: BGR image (H, W, 3).
        frame_id: Sequential frame number within the source.
        t_src_ns: Source timestamp in nanoseconds.
    """

    data: np.ndarray
    frame_id: int = 0
    t_src_ns: int = 0

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @classmethod
    def from_array(
        cls, data: np.ndarray, frame_id: int = 0, t_src_ns: int = 0
    ) -> "Frame":
        return cls(data=data, frame_id=frame_id, t_src_ns=t_src_ns)


__all__ = [
    "Vec3",
    "Landmark",
    "LandmarkSet",
    "PlacementTransform",
    "PerformanceStats",
    "Frame",
]
