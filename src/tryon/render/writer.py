"""Export of composited frames: still snapshots and video."""

import logging
from pathlib import Path
from typing import Any, Optional, Union

import cv2
import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_NAME = "glasses-try-on.png"


def _image_of(frame: Any) -> np.ndarray:
    return frame if isinstance(frame, np.ndarray) else frame.data


class SnapshotWriter:
    """Writes flattened try-on images.

    Args:
        directory: Output directory for generated file names.
        filename: Name used when ``save()`` gets no explicit path.
    """

    def __init__(
        self,
        directory: Union[str, Path] = ".",
        filename: str = DEFAULT_SNAPSHOT_NAME,
    ):
        self._directory = Path(directory)
        self._filename = filename

    def save(self, frame: Any, path: Optional[Union[str, Path]] = None) -> Path:
        """Write one image. The format follows the file extension.

        Returns:
            Path of the written file.

        Raises:
            IOError: If OpenCV cannot encode or write the image.
        """
        target = Path(path) if path is not None else self._directory / self._filename
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            ok = cv2.imwrite(str(target), _image_of(frame))
        except cv2.error as e:
            raise IOError(f"Failed to write image: {target}") from e
        if not ok:
            raise IOError(f"Failed to write image: {target}")
        logger.info("Saved snapshot to %s", target)
        return target


class VideoSaver:
    """Save composited frames to a video file.

    Args:
        path: Output file path (e.g., "output.mp4").
        fps: Output video FPS.
        width: Frame width.
        height: Frame height.
        codec: FourCC codec string (default "mp4v").
    """

    def __init__(
        self,
        path: str,
        fps: float,
        width: int,
        height: int,
        codec: str = "mp4v",
    ):
        self._path = path
        fourcc = cv2.VideoWriter_fourcc(*codec)
        self._writer = cv2.VideoWriter(path, fourcc, fps, (width, height))
        if not self._writer.isOpened():
            raise IOError(f"Failed to open video writer: {path}")

    def update(self, frame: Any) -> None:
        """Write one composited frame."""
        self._writer.write(_image_of(frame))

    def close(self) -> None:
        """Release the video writer."""
        self._writer.release()
