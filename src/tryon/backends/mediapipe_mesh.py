"""MediaPipe face mesh backend for eyewear placement."""

from pathlib import Path
from typing import Optional, Sequence
import logging
import urllib.request

import numpy as np

from tryon.landmarks import (
    JAWLINE_INDICES,
    JAWLINE_INDICES_FAST,
    landmark_set_from_mesh,
)
from tryon.types import LandmarkSet

logger = logging.getLogger(__name__)

# Model download URL
FACE_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/1/face_landmarker.task"
)


def _get_model_path() -> Path:
    """Get path to face landmarker model, downloading if necessary."""
    cache_dir = Path.home() / ".cache" / "tryon" / "models"
    cache_dir.mkdir(parents=True, exist_ok=True)

    model_path = cache_dir / "face_landmarker.task"

    if not model_path.exists():
        logger.info(f"Downloading face landmarker model to {model_path}...")
        try:
            urllib.request.urlretrieve(FACE_LANDMARKER_MODEL_URL, model_path)
            logger.info("Download complete.")
        except Exception as e:
            raise RuntimeError(
                f"Failed to download face landmarker model: {e}\n"
                f"You can manually download from: {FACE_LANDMARKER_MODEL_URL}\n"
                f"And save to: {model_path}"
            ) from e

    return model_path


class MediaPipeFaceMeshBackend:
    """MediaPipe FaceLandmarker backend producing a LandmarkSet.

    Uses the MediaPipe Tasks API (0.10.x+). Tracks a single face; the
    478-point mesh includes iris centers, which are preferred for eye
    placement when present.

    Args:
        min_detection_confidence: Minimum confidence for face detection.
        min_tracking_confidence: Minimum confidence for tracking.
        jawline_indices: Mesh indices for the jawline contour.
        model_path: Optional local model file (skips the download).
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.3,
        jawline_indices: Sequence[int] = JAWLINE_INDICES_FAST,
        model_path: Optional[str] = None,
    ):
        self._min_detection_confidence = min_detection_confidence
        self._min_tracking_confidence = min_tracking_confidence
        self._jawline_indices = tuple(jawline_indices)
        self._model_path = model_path
        self._landmarker: Optional[object] = None
        self._initialized = False

    @classmethod
    def for_live(cls, **kwargs) -> "MediaPipeFaceMeshBackend":
        """Settings tuned for camera tracking (lower tracking threshold)."""
        return cls(**kwargs)

    @classmethod
    def for_still(cls, **kwargs) -> "MediaPipeFaceMeshBackend":
        """Stricter settings and the dense jawline for single images."""
        kwargs.setdefault("min_detection_confidence", 0.7)
        kwargs.setdefault("min_tracking_confidence", 0.5)
        kwargs.setdefault("jawline_indices", JAWLINE_INDICES)
        return cls(**kwargs)

    def initialize(self) -> None:
        """Initialize MediaPipe FaceLandmarker."""
        if self._initialized:
            return

        try:
            from mediapipe.tasks import python
            from mediapipe.tasks.python import vision
        except ImportError as e:
            raise ImportError(
                "MediaPipe is required for face landmark detection. "
                "Install it with: pip install eyewear-tryon[mediapipe]"
            ) from e

        model_path = Path(self._model_path) if self._model_path else _get_model_path()

        base_options = python.BaseOptions(model_asset_path=str(model_path))
        options = vision.FaceLandmarkerOptions(
            base_options=base_options,
            running_mode=vision.RunningMode.IMAGE,
            num_faces=1,
            min_face_detection_confidence=self._min_detection_confidence,
            min_face_presence_confidence=self._min_detection_confidence,
            min_tracking_confidence=self._min_tracking_confidence,
        )

        self._landmarker = vision.FaceLandmarker.create_from_options(options)
        self._initialized = True
        logger.info("MediaPipe face mesh backend initialized (Tasks API)")

    def detect(self, image: np.ndarray) -> Optional[LandmarkSet]:
        """Detect the face mesh in a BGR image.

        Returns:
            Landmark set of the first face, or None when no face is found.
        """
        if not self._initialized or self._landmarker is None:
            raise RuntimeError("Backend not initialized. Call initialize() first.")

        import mediapipe as mp
        import cv2

        # MediaPipe expects RGB
        image_rgb = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image_rgb)

        result = self._landmarker.detect(mp_image)
        if not result.face_landmarks:
            return None

        return landmark_set_from_mesh(
            result.face_landmarks[0],
            jawline_indices=self._jawline_indices,
        )

    def cleanup(self) -> None:
        """Release MediaPipe resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
        self._initialized = False
        logger.info("MediaPipe face mesh backend cleaned up")
