"""CLI for tryon: ``tryon run`` and ``tryon list``."""

import argparse
import json
import sys
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tryon",
        description="Virtual eyewear try-on on camera, video or image input",
    )
    sub = parser.add_subparsers(dest="command")

    # tryon run
    run_p = sub.add_parser("run", help="Overlay eyewear on a source")
    run_p.add_argument(
        "--input", "-i",
        required=True,
        help="Input source: image/video path or camera index (int)",
    )
    run_p.add_argument(
        "--variant",
        default=None,
        help="Eyewear style (see `tryon list`); unknown styles fall back to the default",
    )
    run_p.add_argument(
        "--config", "-c",
        default=None,
        help="YAML configuration file",
    )
    run_p.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Minimum milliseconds between detector calls (default: 66)",
    )
    run_p.add_argument(
        "--smoothing",
        type=float,
        default=None,
        help="EMA factor in (0, 1] for placement smoothing (default: off)",
    )
    run_p.add_argument(
        "--mirror",
        action="store_true",
        help="Flip output horizontally (selfie view)",
    )
    run_p.add_argument(
        "--max-frames",
        type=int,
        default=None,
        help="Stop after N frames",
    )
    run_p.add_argument(
        "--viz",
        choices=["text", "live", "save"],
        default="text",
        help="Output mode (default: text)",
    )
    run_p.add_argument(
        "--landmarks",
        action="store_true",
        help="Draw detected eyes, nose tip and jawline (--viz=live)",
    )
    run_p.add_argument(
        "--json",
        action="store_true",
        help="Print one JSON object per frame (--viz=text)",
    )
    run_p.add_argument(
        "-o", "--output",
        default=None,
        help="Output path for --viz=save",
    )
    run_p.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    # tryon list
    list_p = sub.add_parser("list", help="List eyewear styles")
    list_p.add_argument(
        "--verbose",
        action="store_true",
        help="Show style details",
    )

    return parser


def _load_config(args: argparse.Namespace):
    """Build TryOnConfig from --config plus command-line overrides."""
    from tryon.config import TryOnConfig

    data: Dict[str, Any] = {}
    if args.config:
        data = TryOnConfig.from_yaml(args.config).to_dict()
    if args.interval is not None:
        data["min_interval_ms"] = args.interval
    if args.smoothing is not None:
        data["smoothing_alpha"] = args.smoothing
    if args.mirror:
        data["mirror"] = True
    return TryOnConfig.from_dict(data)


def _cmd_list(args: argparse.Namespace) -> None:
    """Handle ``tryon list``."""
    from tryon.catalog import DEFAULT_VARIANT_ID, list_variants

    for variant in list_variants():
        marker = "*" if variant.id is DEFAULT_VARIANT_ID else " "
        if args.verbose:
            print(
                f" {marker}{variant.id.value:10s}  {variant.name} "
                f"({variant.frame_color}) - {variant.description}"
            )
        else:
            print(f" {marker}{variant.id.value}")


def _resolve_input(input_str: str):
    """Resolve --input to a source path or camera index."""
    try:
        return int(input_str)
    except ValueError:
        return input_str


def _make_backend(source):
    from tryon.backends.mediapipe_mesh import MediaPipeFaceMeshBackend
    from tryon.sources import is_image_path

    if isinstance(source, str) and is_image_path(source):
        return MediaPipeFaceMeshBackend.for_still()
    return MediaPipeFaceMeshBackend.for_live()


def _cmd_run(args: argparse.Namespace) -> None:
    """Handle ``tryon run``."""
    from tryon.config import ConfigurationError

    try:
        config = _load_config(args)
    except (ConfigurationError, ImportError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    source = _resolve_input(args.input)

    if args.viz == "text":
        _run_text(source, config, args)
    elif args.viz == "live":
        _run_live(source, config, args)
    else:
        _run_save(source, config, args)


def _text_frame_callback(frame, image, session) -> None:
    """Print placement summary to stdout."""
    transform = session.transform
    frame_id = getattr(frame, "frame_id", "?")
    if transform is None:
        print(f"  frame={frame_id} state={session.state.value}")
        return
    x, y, z = transform.position
    print(
        f"  frame={frame_id} state={session.state.value} "
        f"pos=({x:.3f}, {y:.3f}, {z:.3f}) roll={transform.roll:.3f} "
        f"scale={transform.scale:.3f}"
    )


def _json_frame_callback(frame, image, session) -> None:
    """Print placement as one JSON line to stdout."""
    transform = session.transform
    record = {
        "frame_id": getattr(frame, "frame_id", None),
        "state": session.state.value,
        "variant": session.variant.id.value,
        "transform": transform.as_dict() if transform is not None else None,
    }
    print(json.dumps(record))


def _run_text(source, config, args):
    """Run and print placements."""
    from tryon.runner import TryOnRunner

    runner = TryOnRunner(
        _make_backend(source),
        config=config,
        variant_id=args.variant,
        on_frame=_json_frame_callback if args.json else _text_frame_callback,
    )
    result = runner.run(source, max_frames=args.max_frames)
    # Keep stdout machine-readable in JSON mode.
    print(
        f"\nDone: {result.frame_count} frames, {result.tracked} tracked, "
        f"{result.stats.fps:.1f} detections/s",
        file=sys.stderr if args.json else sys.stdout,
    )


# Live keys: digits pick a style, "c" captures a snapshot.
_CAPTURE_KEY = ord("c")


def _run_live(source, config, args):
    """Run with live display visualization."""
    from tryon.catalog import list_variants
    from tryon.render import (
        FrameDisplay,
        LandmarkOverlay,
        OverlayCompositor,
        SnapshotWriter,
        StatsOverlay,
    )
    from tryon.runner import TryOnRunner

    display = FrameDisplay(title="tryon")
    stats_overlay = StatsOverlay()
    writer = SnapshotWriter()
    compositor = OverlayCompositor(config)
    variants: List = list_variants()
    landmark_overlay = LandmarkOverlay(mirror=config.mirror) if args.landmarks else None

    def on_frame(frame, image, session) -> Optional[bool]:
        if landmark_overlay is not None:
            landmark_overlay.draw(image, session.landmarks)
        stats_overlay.draw(image, session.stats, session.state)
        if not display.update(image):
            return False
        key = display.last_key
        if key == _CAPTURE_KEY:
            # Export without the debug overlays.
            writer.save(compositor.compose(frame, session.transform, session.variant))
        elif key is not None and ord("1") <= key < ord("1") + len(variants):
            session.select_variant(variants[key - ord("1")].id)
        return None

    runner = TryOnRunner(
        _make_backend(source), config=config, variant_id=args.variant, on_frame=on_frame
    )

    try:
        runner.run(source, max_frames=args.max_frames)
    finally:
        display.close()


def _run_save(source, config, args):
    """Run and write composited output (image or video)."""
    from tryon.render import DEFAULT_SNAPSHOT_NAME, SnapshotWriter, VideoSaver
    from tryon.runner import TryOnRunner
    from tryon.sources import is_image_path

    still = isinstance(source, str) and is_image_path(source)
    output_path = args.output or (DEFAULT_SNAPSHOT_NAME if still else None)
    if not output_path:
        print("--output / -o is required with --viz=save", file=sys.stderr)
        sys.exit(1)

    saver = None
    writer = SnapshotWriter()

    def on_frame(frame, image, session):
        nonlocal saver
        if still:
            writer.save(image, output_path)
            return
        if saver is None:
            # Lazy init on first frame
            h, w = image.shape[:2]
            saver = VideoSaver(output_path, fps=30.0, width=w, height=h)
        saver.update(image)

    runner = TryOnRunner(
        _make_backend(source), config=config, variant_id=args.variant, on_frame=on_frame
    )
    try:
        result = runner.run(source, max_frames=args.max_frames)
    finally:
        if saver:
            saver.close()
    print(f"Saved {result.frame_count} frames to {output_path}")


def main(argv: Optional[List[str]] = None):
    """Entry point for ``tryon`` CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG)

    if args.command == "list":
        _cmd_list(args)
    elif args.command == "run":
        _cmd_run(args)


if __name__ == "__main__":
    main()
