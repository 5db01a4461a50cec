"""TryOnRunner - drives a tracking session over a frame source.

Example:
    >>> from tryon.runner import TryOnRunner
    >>> runner = TryOnRunner(backend=MediaPipeFaceMeshBackend())
    >>> result = runner.run("portrait.jpg")
    >>> result.transforms[0]
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import numpy as np

from tryon.config import TryOnConfig
from tryon.landmarks import AsyncLandmarkSource, LandmarkBackend, LandmarkSource
from tryon.render.compositor import OverlayCompositor
from tryon.session import TrackingSession
from tryon.sources import CameraSource, ImageSource, open_source
from tryon.types import PerformanceStats, PlacementTransform

logger = logging.getLogger(__name__)

# Callback receives (frame, composited image, session). Returning False stops the run.
FrameCallback = Callable[[Any, np.ndarray, TrackingSession], Optional[bool]]


@dataclass
class RunResult:
    """Result of a TryOnRunner.run() invocation.

    Attributes:
        frame_count: Frames read from the source.
        dispatched: Frames forwarded to the landmark detector.
        tracked: Frames composited with a placement present.
        transforms: Placement per frame (None where no face was tracked).
        stats: Session throughput at the end of the run.
    """

    frame_count: int = 0
    dispatched: int = 0
    tracked: int = 0
    transforms: List[Optional[PlacementTransform]] = field(default_factory=list)
    stats: PerformanceStats = field(default_factory=PerformanceStats)


class TryOnRunner:
    """Runs the try-on pipeline on a camera, video, image or frame list.

    Live sources (cameras) never wait for the detector: frames keep
    flowing and the overlay follows the latest result. Files and frame
    lists wait for each dispatched detection so output is reproducible.

    Args:
        backend: Landmark backend, wrapped in an AsyncLandmarkSource.
        landmark_source: Ready-made landmark source (overrides ``backend``).
            It is reused across runs and never closed by the runner.
        config: Pipeline configuration.
        variant_id: Eyewear style to draw.
        on_frame: Callback fired per frame after compositing.
    """

    def __init__(
        self,
        backend: Optional[LandmarkBackend] = None,
        *,
        landmark_source: Optional[LandmarkSource] = None,
        config: Optional[TryOnConfig] = None,
        variant_id: Optional[str] = None,
        on_frame: Optional[FrameCallback] = None,
    ):
        if backend is None and landmark_source is None:
            raise ValueError("TryOnRunner needs a backend or a landmark_source")
        self._backend = backend
        self._landmark_source = landmark_source
        self._config = config or TryOnConfig()
        self._variant_id = variant_id
        self._on_frame = on_frame
        self._compositor = OverlayCompositor(self._config)

    @property
    def config(self) -> TryOnConfig:
        return self._config

    def run(
        self,
        source: Any,
        *,
        max_frames: Optional[int] = None,
        blocking: Optional[bool] = None,
        on_frame: Optional[FrameCallback] = None,
    ) -> RunResult:
        """Run the pipeline until the source is exhausted.

        Args:
            source: Path or camera index (str/int), source instance, or list of frames.
            max_frames: Stop after this many frames.
            blocking: Wait for each detection. Defaults to False for
                cameras and True otherwise.
            on_frame: Per-run callback override.

        Returns:
            RunResult with per-frame placements.
        """
        frame_cb = on_frame or self._on_frame
        if isinstance(source, (str, int)):
            source = open_source(source)
        if blocking is None:
            blocking = not isinstance(source, CameraSource)
        still = isinstance(source, ImageSource)

        result = RunResult()
        session = TrackingSession(self._config, variant_id=self._variant_id)
        # Caller-supplied sources outlive the run; only the one built here is closed.
        session.start(
            self._make_landmark_source(),
            owns_source=self._landmark_source is None,
        )
        logger.info("Running try-on with variant %s", session.variant.id.value)

        try:
            for frame in source:
                if still:
                    session.process_still(frame)
                    result.dispatched += 1
                elif not session.busy:
                    future = session.submit(frame, now_ns=getattr(frame, "t_src_ns", None))
                    if future is not None:
                        result.dispatched += 1
                        if blocking:
                            session.wait()

                transform = session.transform
                image = self._compositor.compose(frame, transform, session.variant)
                result.transforms.append(transform)
                result.frame_count += 1
                if transform is not None:
                    result.tracked += 1

                if frame_cb and frame_cb(frame, image, session) is False:
                    logger.info("Run stopped by frame callback")
                    break
                if max_frames and result.frame_count >= max_frames:
                    break
        finally:
            result.stats = session.stats
            session.stop()

        return result

    def _make_landmark_source(self) -> LandmarkSource:
        if self._landmark_source is not None:
            return self._landmark_source
        return AsyncLandmarkSource(self._backend)
