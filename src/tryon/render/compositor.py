"""Orthographic overlay compositor.

Draws catalog geometry onto a BGR frame. The render-space placement is
mapped back to pixels with the inverse of the estimator's remap, so the
overlay center lands on the eye midpoint. Parts are flattened to 2D
outlines: boxes become rotated rectangles, cylinders facing the viewer
become discs and all other cylinders their side-on silhouette.
"""

import math
from typing import Any, Optional, Union

import cv2
import numpy as np

from tryon.catalog import AccessoryVariant, MeshPart
from tryon.config import TryOnConfig
from tryon.pose import PoseEstimator
from tryon.types import Landmark, LandmarkSet, PerformanceStats, PlacementTransform


def _rotate(points: np.ndarray, angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    rot = np.array([[c, -s], [s, c]], dtype=np.float64)
    return points @ rot.T


def part_outline(part: MeshPart) -> np.ndarray:
    """2D outline of a part in accessory-local units (y up).

    Returns:
        (N, 2) float array, already offset by the part position.
    """
    rx, _, rz = part.rotation
    if part.shape == "box":
        w, h, _ = part.size
        local = np.array(
            [[-w / 2, -h / 2], [w / 2, -h / 2], [w / 2, h / 2], [-w / 2, h / 2]]
        )
        local = _rotate(local, rz)
    elif abs(math.cos(rx)) < 0.5:
        # Axis points at the viewer: draw the cap.
        radius = max(part.size[0], part.size[1])
        theta = np.linspace(0.0, 2 * math.pi, max(part.segments, 3), endpoint=False)
        local = np.stack([radius * np.cos(theta), radius * np.sin(theta)], axis=1)
    else:
        radius = max(part.size[0], part.size[1])
        half = part.size[2] / 2
        local = np.array(
            [[-radius, -half], [radius, -half], [radius, half], [-radius, half]]
        )
        local = _rotate(local, rz)
    return local + np.array(part.position[:2])


class OverlayCompositor:
    """Composites an eyewear variant over a frame.

    Args:
        config: Scene constants and mirror flag. Defaults to ``TryOnConfig()``.
    """

    def __init__(self, config: Optional[TryOnConfig] = None):
        self._config = config or TryOnConfig()
        self._estimator = PoseEstimator(self._config)

    def compose(
        self,
        frame: Any,
        transform: Optional[PlacementTransform],
        variant: AccessoryVariant,
    ) -> np.ndarray:
        """Return a new image with the variant drawn at ``transform``.

        Without a transform the frame is returned unchanged (copied, and
        flipped in mirror mode).

        Args:
            frame: Frame object with ``.data`` attribute, or raw ndarray.
            transform: Current placement, or None when no face is tracked.
            variant: Catalog entry to draw.
        """
        img = frame if isinstance(frame, np.ndarray) else frame.data
        output = img.copy()

        if transform is not None:
            height, width = output.shape[:2]
            for part in variant.parts:
                pts = self._to_pixels(part_outline(part), transform, width, height)
                output = self._fill(output, pts, part.material.color, part.material.opacity)

        if self._config.mirror:
            output = cv2.flip(output, 1)
        return output

    def _to_pixels(
        self,
        local: np.ndarray,
        transform: PlacementTransform,
        width: int,
        height: int,
    ) -> np.ndarray:
        scene = _rotate(local * transform.scale, transform.roll)
        scene = scene + np.array(transform.position[:2])
        pixels = [
            self._estimator.scene_to_pixels(x, y, width, height) for x, y in scene
        ]
        return np.round(np.array(pixels)).astype(np.int32)

    @staticmethod
    def _fill(image: np.ndarray, pts: np.ndarray, color, opacity: float) -> np.ndarray:
        layer = image.copy()
        cv2.fillPoly(layer, [pts], tuple(int(c) for c in color), lineType=cv2.LINE_AA)
        if opacity >= 1.0:
            return layer
        return cv2.addWeighted(layer, opacity, image, 1.0 - opacity, 0)


class StatsOverlay:
    """Text overlay with tracking state and throughput.

    Args:
        y_offset: Starting Y position for text.
        font_scale: OpenCV font scale.
        color: BGR color tuple.
        thickness: Text thickness.
    """

    def __init__(
        self,
        y_offset: int = 30,
        font_scale: float = 0.45,
        color: tuple = (255, 255, 255),
        thickness: int = 1,
    ):
        self._y_offset = y_offset
        self._font_scale = font_scale
        self._color = color
        self._thickness = thickness
        self._font = cv2.FONT_HERSHEY_SIMPLEX

    @property
    def line_height(self) -> int:
        """Approximate height per text line in pixels."""
        return int(20 * self._font_scale / 0.45)

    def draw(
        self,
        frame: np.ndarray,
        stats: PerformanceStats,
        state: Union[str, None] = None,
    ) -> np.ndarray:
        """Draw state, FPS and detector latency in the top-left corner."""
        lines = []
        if state is not None:
            lines.append(f"[{getattr(state, 'value', state)}]")
        lines.append(f"  fps={stats.fps:.1f}")
        lines.append(f"  processing={stats.processing_ms:.1f}ms")

        y = self._y_offset
        for text in lines:
            cv2.putText(
                frame,
                text,
                (10, y),
                self._font,
                self._font_scale,
                self._color,
                self._thickness,
            )
            y += self.line_height
        return frame


class LandmarkOverlay:
    """Debug overlay for the detected keypoints.

    Eyes and nose tip are drawn as dots, the forehead as a ring and the
    jawline as an open polyline.

    Args:
        mirror: Draw onto a horizontally mirrored composite.
        radius: Dot radius in pixels.
        color: BGR color for keypoints.
        jaw_color: BGR color for the jawline.
    """

    def __init__(
        self,
        mirror: bool = False,
        radius: int = 3,
        color: tuple = (0, 255, 255),
        jaw_color: tuple = (255, 200, 0),
    ):
        self._mirror = mirror
        self._radius = radius
        self._color = color
        self._jaw_color = jaw_color

    def _to_pixel(self, landmark: Landmark, width: int, height: int) -> tuple:
        x = 1.0 - landmark.x if self._mirror else landmark.x
        return int(round(x * width)), int(round(landmark.y * height))

    def draw(self, frame: np.ndarray, landmarks: Optional[LandmarkSet]) -> np.ndarray:
        """Draw ``landmarks`` in place. Returns the frame unchanged when None."""
        if landmarks is None:
            return frame
        h, w = frame.shape[:2]

        if len(landmarks.jawline) > 1:
            jaw = np.array(
                [self._to_pixel(p, w, h) for p in landmarks.jawline], dtype=np.int32
            )
            cv2.polylines(frame, [jaw], False, self._jaw_color, 1, cv2.LINE_AA)

        for point in (landmarks.left_eye, landmarks.right_eye, landmarks.nose_tip):
            cv2.circle(frame, self._to_pixel(point, w, h), self._radius, self._color, -1)
        cv2.circle(frame, self._to_pixel(landmarks.forehead, w, h), self._radius, self._color, 1)
        return frame
