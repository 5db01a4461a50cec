"""Tests for the tryon CLI."""

import json
from unittest.mock import patch

import cv2
import numpy as np
import pytest

from tryon.cli import _build_parser, _load_config, main
from tryon.testing import StaticLandmarkBackend, make_landmarks


class TestCLIParser:
    def test_run_basic(self):
        args = _build_parser().parse_args(["run", "--input", "face.jpg"])
        assert args.command == "run"
        assert args.input == "face.jpg"
        assert args.viz == "text"
        assert args.variant is None
        assert args.interval is None
        assert args.max_frames is None
        assert args.mirror is False
        assert args.landmarks is False
        assert args.json is False

    def test_run_options(self):
        args = _build_parser().parse_args([
            "run", "-i", "0", "--variant", "round", "--interval", "50",
            "--smoothing", "0.5", "--mirror", "--viz", "save", "-o", "out.mp4",
        ])
        assert args.input == "0"
        assert args.variant == "round"
        assert args.interval == 50.0
        assert args.smoothing == 0.5
        assert args.mirror is True
        assert args.viz == "save"
        assert args.output == "out.mp4"

    def test_debug_output_flags(self):
        args = _build_parser().parse_args(["run", "-i", "0", "--landmarks", "--json"])
        assert args.landmarks is True
        assert args.json is True

    def test_invalid_viz(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["run", "-i", "0", "--viz", "gif"])

    def test_list(self):
        args = _build_parser().parse_args(["list", "--verbose"])
        assert args.command == "list"
        assert args.verbose is True


class TestLoadConfig:
    def test_overrides(self):
        args = _build_parser().parse_args(
            ["run", "-i", "0", "--interval", "40", "--smoothing", "0.3", "--mirror"]
        )
        config = _load_config(args)
        assert config.min_interval_ms == 40
        assert config.smoothing_alpha == 0.3
        assert config.mirror is True

    def test_yaml_with_override(self, tmp_path):
        pytest.importorskip("yaml")
        path = tmp_path / "cfg.yaml"
        path.write_text("min_interval_ms: 100\nmax_scale: 3.0\n")
        args = _build_parser().parse_args(["run", "-i", "0", "-c", str(path), "--interval", "20"])

        config = _load_config(args)

        assert config.min_interval_ms == 20
        assert config.max_scale == 3.0


class TestMain:
    def test_no_command_prints_help(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 0
        assert "usage" in capsys.readouterr().out

    def test_list(self, capsys):
        main(["list"])
        out = capsys.readouterr().out
        for name in ("aviator", "wayfare", "round", "cat-eye"):
            assert name in out
        assert "*aviator" in out

    def test_list_verbose(self, capsys):
        main(["list", "--verbose"])
        assert "Aviator Classic" in capsys.readouterr().out

    def test_bad_config_exits(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["run", "-i", "0", "--smoothing", "2.0"])
        assert exc.value.code == 1
        assert "smoothing_alpha" in capsys.readouterr().err

    def test_run_text_on_image(self, tmp_path, capsys):
        image = tmp_path / "face.png"
        cv2.imwrite(str(image), np.full((120, 160, 3), 90, dtype=np.uint8))

        with patch("tryon.cli._make_backend", return_value=StaticLandmarkBackend(make_landmarks())):
            main(["run", "-i", str(image)])

        out = capsys.readouterr().out
        assert "state=tracking" in out
        assert "Done: 1 frames, 1 tracked" in out

    def test_run_save_image(self, tmp_path, capsys):
        image = tmp_path / "face.png"
        output = tmp_path / "result.png"
        cv2.imwrite(str(image), np.full((120, 160, 3), 90, dtype=np.uint8))

        with patch("tryon.cli._make_backend", return_value=StaticLandmarkBackend(make_landmarks())):
            main(["run", "-i", str(image), "--viz", "save", "-o", str(output)])

        assert output.exists()
        saved = cv2.imread(str(output))
        assert saved.shape == (120, 160, 3)
        assert not np.all(saved == 90)

    def test_run_save_video_requires_output(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["run", "-i", "clip.mp4", "--viz", "save"])
        assert exc.value.code == 1

    def test_run_text_json_lines(self, tmp_path, capsys):
        image = tmp_path / "face.png"
        cv2.imwrite(str(image), np.full((120, 160, 3), 90, dtype=np.uint8))

        with patch("tryon.cli._make_backend", return_value=StaticLandmarkBackend(make_landmarks())):
            main(["run", "-i", str(image), "--json"])

        captured = capsys.readouterr()
        records = [json.loads(line) for line in captured.out.splitlines() if line]
        assert len(records) == 1
        record = records[0]
        assert record["frame_id"] == 0
        assert record["state"] == "tracking"
        assert record["variant"] == "aviator"
        assert set(record["transform"]) == {"position", "rotation", "scale"}
        assert len(record["transform"]["position"]) == 3
        assert "Done: 1 frames, 1 tracked" in captured.err

    def test_run_text_json_without_face(self, tmp_path, capsys):
        image = tmp_path / "empty.png"
        cv2.imwrite(str(image), np.zeros((120, 160, 3), dtype=np.uint8))

        with patch("tryon.cli._make_backend", return_value=StaticLandmarkBackend(None)):
            main(["run", "-i", str(image), "--json"])

        record = json.loads(capsys.readouterr().out.strip())
        assert record["state"] == "lost"
        assert record["transform"] is None

    def test_run_live_draws_landmarks(self, tmp_path):
        image = tmp_path / "face.png"
        cv2.imwrite(str(image), np.full((120, 160, 3), 90, dtype=np.uint8))
        face = make_landmarks()

        with patch("tryon.cli._make_backend", return_value=StaticLandmarkBackend(face)), \
                patch("tryon.render.FrameDisplay") as display_cls, \
                patch("tryon.render.LandmarkOverlay") as overlay_cls:
            display_cls.return_value.update.return_value = True
            display_cls.return_value.last_key = None
            main(["run", "-i", str(image), "--viz", "live", "--landmarks", "--mirror"])

        overlay_cls.assert_called_once_with(mirror=True)
        drawn = overlay_cls.return_value.draw.call_args[0][1]
        assert drawn == face
        display_cls.return_value.close.assert_called_once()

    def test_run_live_without_landmarks_flag(self, tmp_path):
        image = tmp_path / "face.png"
        cv2.imwrite(str(image), np.full((120, 160, 3), 90, dtype=np.uint8))

        with patch("tryon.cli._make_backend", return_value=StaticLandmarkBackend(make_landmarks())), \
                patch("tryon.render.FrameDisplay") as display_cls, \
                patch("tryon.render.LandmarkOverlay") as overlay_cls:
            display_cls.return_value.update.return_value = True
            display_cls.return_value.last_key = None
            main(["run", "-i", str(image), "--viz", "live"])

        overlay_cls.assert_not_called()
