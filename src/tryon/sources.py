"""Frame sources: camera, video file and still image.

All sources share ``open() / read() / close()``; ``read()`` returns a
Frame or None at end of stream. Iterating a source opens and closes it.

Example:
    >>> from tryon.sources import open_source
    >>> for frame in open_source("0"):     # default camera
    ...     session.submit(frame)
"""

import logging
import time
from pathlib import Path
from typing import Iterator, Optional, Tuple, Union

import cv2
import numpy as np

from tryon.throttle import NS_PER_SECOND
from tryon.types import Frame

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tif", ".tiff"})


class _CaptureSource:
    """Shared cv2.VideoCapture handling."""

    def __init__(self, resolution: Optional[Tuple[int, int]] = None):
        self._resolution = resolution
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame_id = 0

    def _open_capture(self, target: Union[int, str]) -> None:
        self._cap = cv2.VideoCapture(target)
        if not self._cap.isOpened():
            self._cap = None
            raise IOError(f"Cannot open video source: {target}")
        self._frame_id = 0

    @property
    def fps(self) -> float:
        if self._cap is None:
            return 0.0
        return float(self._cap.get(cv2.CAP_PROP_FPS) or 0.0)

    def _grab(self) -> Optional[np.ndarray]:
        if self._cap is None:
            raise RuntimeError("Source is not open, call open() first")
        ret, image = self._cap.read()
        if not ret:
            return None
        if self._resolution:
            image = cv2.resize(image, self._resolution)
        return image

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None

    def __iter__(self) -> Iterator[Frame]:
        self.open()
        try:
            while True:
                frame = self.read()
                if frame is None:
                    break
                yield frame
        finally:
            self.close()


class CameraSource(_CaptureSource):
    """Live camera. Frames are stamped with the monotonic clock.

    Args:
        device: Camera index.
        resolution: Optional (width, height) for resizing.
    """

    def __init__(self, device: int = 0, resolution: Optional[Tuple[int, int]] = None):
        super().__init__(resolution)
        self._device = device

    def open(self) -> None:
        self._open_capture(self._device)
        logger.info("Opened camera %d", self._device)

    def read(self) -> Optional[Frame]:
        image = self._grab()
        if image is None:
            return None
        frame = Frame.from_array(image, frame_id=self._frame_id, t_src_ns=time.monotonic_ns())
        self._frame_id += 1
        return frame


class VideoFileSource(_CaptureSource):
    """Video file. Timestamps follow the video timeline, not wall time.

    Args:
        path: Path to the video file.
        resolution: Optional (width, height) for resizing.
    """

    def __init__(self, path: Union[str, Path], resolution: Optional[Tuple[int, int]] = None):
        super().__init__(resolution)
        self._path = str(path)
        self._video_fps = 0.0

    def open(self) -> None:
        self._open_capture(self._path)
        self._video_fps = self.fps or 30.0
        logger.info("Opened video %s (%.1f fps)", self._path, self._video_fps)

    def read(self) -> Optional[Frame]:
        image = self._grab()
        if image is None:
            return None
        t_ns = int(self._frame_id * NS_PER_SECOND / self._video_fps)
        frame = Frame.from_array(image, frame_id=self._frame_id, t_src_ns=t_ns)
        self._frame_id += 1
        return frame


class ImageSource:
    """Single still image, yielded once.

    Args:
        path: Path to the image file.
    """

    fps = 0.0

    def __init__(self, path: Union[str, Path]):
        self._path = str(path)
        self._image = None
        self._consumed = False

    def open(self) -> None:
        self._image = cv2.imread(self._path)
        if self._image is None:
            raise IOError(f"Cannot read image: {self._path}")
        self._consumed = False

    def read(self) -> Optional[Frame]:
        if self._image is None:
            raise RuntimeError("Source is not open, call open() first")
        if self._consumed:
            return None
        self._consumed = True
        return Frame.from_array(self._image)

    def close(self) -> None:
        self._image = None

    def __iter__(self) -> Iterator[Frame]:
        self.open()
        try:
            frame = self.read()
            if frame is not None:
                yield frame
        finally:
            self.close()


def is_image_path(path: Union[str, Path]) -> bool:
    return Path(str(path)).suffix.lower() in IMAGE_EXTENSIONS


def open_source(target: Union[str, int, Path]):
    """Create a source from a CLI-style input.

    A bare integer (or digit string) is a camera index, a path with an
    image extension is a still image, anything else a video file.
    """
    if isinstance(target, int) or str(target).isdigit():
        return CameraSource(int(target))
    if is_image_path(target):
        return ImageSource(target)
    return VideoFileSource(target)


__all__ = [
    "CameraSource",
    "VideoFileSource",
    "ImageSource",
    "is_image_path",
    "open_source",
]
