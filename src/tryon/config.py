"""Configuration for the try-on pipeline.

Example:
    >>> from tryon.config import TryOnConfig
    >>> config = TryOnConfig(min_interval_ms=50, max_scale=2.5)
    >>> config = TryOnConfig.from_yaml("tryon.yaml")
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, Optional

from tryon.catalog import has_variant


class ConfigurationError(ValueError):
    """Invalid static configuration. Raised before any frame is processed."""


def _is_finite_number(value: Any) -> bool:
    # bool is an int subclass but never a valid numeric setting.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True)
class TryOnConfig:
    """Policy constants for throttling, pose estimation and rendering.

    Attributes:
        min_interval_ms: Minimum time between two detector dispatches
            (66 ms targets ~15 Hz).
        min_scale: Lower clamp bound for the overlay scale.
        max_scale: Upper clamp bound for the overlay scale.
        scene_width: Render-space width covered by the normalized image.
        scene_height: Render-space height covered by the normalized image.
        scene_depth: Render-space depth range for the relative z.
        scale_factor: Multiplier from 2D eye distance to overlay scale.
        default_variant_id: Variant used when an unknown id is requested.
        smoothing_alpha: EMA factor in (0, 1] for the transform smoother.
            None disables smoothing.
        mirror: Render in selfie (horizontally mirrored) view.
    """

    min_interval_ms: float = 66.0
    min_scale: float = 0.5
    max_scale: float = 2.0
    scene_width: float = 4.0
    scene_height: float = 3.0
    scene_depth: float = 2.0
    scale_factor: float = 8.0
    default_variant_id: str = "aviator"
    smoothing_alpha: Optional[float] = None
    mirror: bool = False

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Reject invalid bounds and constants.

        Raises:
            ConfigurationError: If any value is out of range.
        """
        numeric = {
            "min_interval_ms": self.min_interval_ms,
            "min_scale": self.min_scale,
            "max_scale": self.max_scale,
            "scene_width": self.scene_width,
            "scene_height": self.scene_height,
            "scene_depth": self.scene_depth,
            "scale_factor": self.scale_factor,
        }
        for name, value in numeric.items():
            if not _is_finite_number(value):
                raise ConfigurationError(f"{name} must be a finite number, got {value!r}")

        if self.min_interval_ms < 0:
            raise ConfigurationError(
                f"min_interval_ms must be >= 0, got {self.min_interval_ms}"
            )
        if self.min_scale <= 0 or self.max_scale <= 0:
            raise ConfigurationError(
                f"scale bounds must be positive, got [{self.min_scale}, {self.max_scale}]"
            )
        if self.min_scale > self.max_scale:
            raise ConfigurationError(
                f"min_scale ({self.min_scale}) > max_scale ({self.max_scale})"
            )
        for name in ("scene_width", "scene_height", "scene_depth", "scale_factor"):
            if numeric[name] <= 0:
                raise ConfigurationError(f"{name} must be positive, got {numeric[name]}")
        if self.smoothing_alpha is not None and not (
            _is_finite_number(self.smoothing_alpha) and 0.0 < self.smoothing_alpha <= 1.0
        ):
            raise ConfigurationError(
                f"smoothing_alpha must be in (0, 1], got {self.smoothing_alpha!r}"
            )

        if not isinstance(self.mirror, bool):
            raise ConfigurationError(f"mirror must be true or false, got {self.mirror!r}")
        if not isinstance(self.default_variant_id, str) or not has_variant(self.default_variant_id):
            raise ConfigurationError(
                f"Unknown default_variant_id: {self.default_variant_id!r}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TryOnConfig":
        """Create a config from a dictionary (e.g., loaded from YAML).

        Unknown keys are rejected so that typos surface at startup.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "TryOnConfig":
        """Load a config from a YAML file.

        Raises:
            ImportError: If PyYAML is not installed.
            FileNotFoundError: If the file doesn't exist.
        """
        try:
            import yaml
        except ImportError:
            raise ImportError(
                "PyYAML is required for YAML config support. "
                "Install it with: pip install eyewear-tryon[yaml]"
            )

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = ["ConfigurationError", "TryOnConfig"]
