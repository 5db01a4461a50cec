"""Exponential moving average smoothing for placement transforms."""

from __future__ import annotations

import math
from typing import Optional

from tryon.types import PlacementTransform


def _wrap_angle(angle: float) -> float:
    """Wrap an angle to [-pi, pi)."""
    return (angle + math.pi) % (2 * math.pi) - math.pi


class TransformSmoother:
    """EMA smoother applied after pose estimation to reduce jitter.

    Position and scale are blended linearly; rotation is blended along
    the shortest arc so that a tilt crossing +/-pi does not spin the
    overlay. Scale stays inside the estimator's clamp range because the
    blend is a convex combination of clamped values.

    Args:
        alpha: EMA smoothing factor in (0, 1]. Lower = smoother,
            1.0 passes transforms through unchanged.
    """

    def __init__(self, alpha: float = 0.5) -> None:
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self._alpha = alpha
        self._state: Optional[PlacementTransform] = None

    @property
    def alpha(self) -> float:
        return self._alpha

    def update(self, transform: PlacementTransform) -> PlacementTransform:
        """Blend a new transform into the running state and return it."""
        if self._state is None or self._alpha == 1.0:
            self._state = transform
            return transform

        a = self._alpha
        prev = self._state
        position = tuple(
            a * new + (1 - a) * old
            for new, old in zip(transform.position, prev.position)
        )
        rotation = tuple(
            _wrap_angle(old + a * _wrap_angle(new - old))
            for new, old in zip(transform.rotation, prev.rotation)
        )
        scale = a * transform.scale + (1 - a) * prev.scale

        self._state = PlacementTransform(
            position=position,
            rotation=rotation,
            scale=scale,
        )
        return self._state

    def reset(self) -> None:
        """Drop the running state (face lost or session restarted)."""
        self._state = None


__all__ = ["TransformSmoother"]
