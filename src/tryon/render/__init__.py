"""Rendering: overlay compositing, live display and image export.

Example:
    >>> from tryon.render import OverlayCompositor, FrameDisplay
    >>> compositor = OverlayCompositor()
    >>> image = compositor.compose(frame, session.transform, session.variant)
    >>> FrameDisplay(title="tryon").update(image)
"""

from tryon.render.compositor import (
    LandmarkOverlay,
    OverlayCompositor,
    StatsOverlay,
    part_outline,
)
from tryon.render.display import FrameDisplay
from tryon.render.writer import SnapshotWriter, VideoSaver, DEFAULT_SNAPSHOT_NAME

__all__ = [
    "OverlayCompositor",
    "StatsOverlay",
    "LandmarkOverlay",
    "part_outline",
    "FrameDisplay",
    "SnapshotWriter",
    "VideoSaver",
    "DEFAULT_SNAPSHOT_NAME",
]
