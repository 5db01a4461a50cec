"""FrameDisplay - Live cv2 window for try-on previews."""

from typing import Any, Optional

import cv2
import numpy as np

ESC_KEY = 27


class FrameDisplay:
    """Live display window using cv2.imshow. ESC to quit.

    Args:
        title: Window title.
        wait_ms: cv2.waitKey delay in milliseconds.
    """

    def __init__(self, title: str = "tryon", wait_ms: int = 1):
        self._title = title
        self._wait_ms = wait_ms
        self._last_key: Optional[int] = None

    @property
    def last_key(self) -> Optional[int]:
        """Key pressed during the last update, or None."""
        return self._last_key

    def update(self, frame: Any) -> bool:
        """Display a composited frame.

        Args:
            frame: Frame object with ``.data`` attribute, or raw ndarray.

        Returns:
            True to continue, False if user pressed ESC.
        """
        img = frame if isinstance(frame, np.ndarray) else frame.data
        cv2.imshow(self._title, img)
        key = cv2.waitKey(self._wait_ms) & 0xFF
        self._last_key = None if key == 0xFF else key
        return key != ESC_KEY

    def close(self) -> None:
        """Close the display window."""
        cv2.destroyAllWindows()
