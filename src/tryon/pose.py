"""Placement estimation from facial landmarks.

Maps a LandmarkSet to the position, roll and scale of the eyewear
overlay. This is a 2D-plane approximation: the overlay always faces the
viewer and only in-plane head tilt is recovered.

All functions here are pure: no state, no I/O, constant time.
"""

from __future__ import annotations

import math
from typing import Optional, Tuple

from tryon.config import TryOnConfig
from tryon.types import Landmark, LandmarkSet, PlacementTransform, Vec3


def midpoint(a: Landmark, b: Landmark) -> Vec3:
    """Component-wise average of two landmarks."""
    return ((a.x + b.x) / 2.0, (a.y + b.y) / 2.0, (a.z + b.z) / 2.0)


def eye_distance_2d(left: Landmark, right: Landmark) -> float:
    """Inter-eye distance in normalized image space (z ignored)."""
    return math.hypot(right.x - left.x, right.y - left.y)


def roll_angle(left: Landmark, right: Landmark) -> float:
    """In-plane rotation in radians, in render-space convention.

    Negated because image y grows downward while render y grows upward.
    """
    return -math.atan2(right.y - left.y, right.x - left.x)


def to_scene(center: Vec3, width: float, height: float, depth: float) -> Vec3:
    """Affine map from normalized image coordinates to render space."""
    cx, cy, cz = center
    return (
        (cx - 0.5) * width,
        -(cy - 0.5) * height,
        cz * depth - depth / 2.0,
    )


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


class PoseEstimator:
    """Derives a PlacementTransform from a present LandmarkSet.

    Deterministic for identical landmarks and configuration. Callers
    must not invoke it without a landmark set; absence is handled by the
    tracking session.

    Args:
        config: Scene constants, scale factor and clamp bounds.

    Example:
        >>> est = PoseEstimator(TryOnConfig())
        >>> t = est.estimate(landmarks)   # eyes 0.2 apart
        >>> round(t.scale, 3)
        1.6
    """

    def __init__(self, config: Optional[TryOnConfig] = None):
        self._config = config or TryOnConfig()

    @property
    def config(self) -> TryOnConfig:
        return self._config

    def estimate(self, landmarks: LandmarkSet) -> PlacementTransform:
        cfg = self._config
        left, right = landmarks.left_eye, landmarks.right_eye

        position = to_scene(
            midpoint(left, right),
            cfg.scene_width,
            cfg.scene_height,
            cfg.scene_depth,
        )
        raw_scale = eye_distance_2d(left, right) * cfg.scale_factor

        return PlacementTransform(
            position=position,
            rotation=(0.0, 0.0, roll_angle(left, right)),
            scale=clamp(raw_scale, cfg.min_scale, cfg.max_scale),
        )

    def scene_to_pixels(
        self, x: float, y: float, image_width: int, image_height: int
    ) -> Tuple[float, float]:
        """Inverse of the horizontal/vertical remap, in pixel units."""
        cfg = self._config
        u = (x / cfg.scene_width + 0.5) * image_width
        v = (0.5 - y / cfg.scene_height) * image_height
        return u, v


__all__ = [
    "midpoint",
    "eye_distance_2d",
    "roll_angle",
    "to_scene",
    "clamp",
    "PoseEstimator",
]
