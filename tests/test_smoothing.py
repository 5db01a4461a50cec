"""Tests for TransformSmoother."""

import math

import pytest

from tryon.smoothing import TransformSmoother
from tryon.types import PlacementTransform


def _t(x=0.0, roll=0.0, scale=1.0):
    return PlacementTransform(position=(x, 0.0, -1.0), rotation=(0.0, 0.0, roll), scale=scale)


class TestTransformSmoother:
    def test_first_update_passes_through(self):
        smoother = TransformSmoother(alpha=0.3)
        t = _t(x=1.0, roll=0.2, scale=1.5)
        assert smoother.update(t) is t

    def test_alpha_one_is_identity(self):
        smoother = TransformSmoother(alpha=1.0)
        smoother.update(_t(x=1.0))
        t = _t(x=-1.0, roll=3.0, scale=0.7)
        assert smoother.update(t) is t

    def test_blends_position_and_scale(self):
        smoother = TransformSmoother(alpha=0.5)
        smoother.update(_t(x=0.0, scale=1.0))
        out = smoother.update(_t(x=1.0, scale=2.0))
        assert out.position[0] == pytest.approx(0.5)
        assert out.scale == pytest.approx(1.5)

    def test_converges_to_constant_input(self):
        smoother = TransformSmoother(alpha=0.5)
        smoother.update(_t(x=0.0, roll=0.0, scale=0.5))
        target = _t(x=1.0, roll=0.3, scale=2.0)
        for _ in range(40):
            out = smoother.update(target)
        assert out.position[0] == pytest.approx(1.0)
        assert out.roll == pytest.approx(0.3)
        assert out.scale == pytest.approx(2.0)

    def test_rotation_takes_shortest_arc(self):
        smoother = TransformSmoother(alpha=0.5)
        smoother.update(_t(roll=math.pi - 0.1))
        out = smoother.update(_t(roll=-math.pi + 0.1))
        # Halfway along the short arc is +/-pi, not 0.
        assert abs(abs(out.roll) - math.pi) < 1e-9

    def test_scale_stays_within_inputs(self):
        smoother = TransformSmoother(alpha=0.25)
        smoother.update(_t(scale=0.5))
        for scale in (2.0, 0.5, 2.0, 1.0):
            out = smoother.update(_t(scale=scale))
            assert 0.5 <= out.scale <= 2.0

    def test_reset(self):
        smoother = TransformSmoother(alpha=0.5)
        smoother.update(_t(x=0.0))
        smoother.reset()
        t = _t(x=1.0)
        assert smoother.update(t) is t

    @pytest.mark.parametrize("alpha", [0.0, -0.5, 1.01])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ValueError):
            TransformSmoother(alpha=alpha)
