"""Tests for the accessory catalog."""

import pytest

from tryon.catalog import (
    CATALOG,
    DEFAULT_VARIANT_ID,
    VariantId,
    has_variant,
    list_variants,
    select_variant,
)


class TestCatalog:
    def test_closed_set(self):
        assert set(CATALOG) == {
            VariantId.AVIATOR,
            VariantId.WAYFARE,
            VariantId.ROUND,
            VariantId.CAT_EYE,
        }

    def test_display_order(self):
        assert [v.id.value for v in list_variants()] == ["aviator", "wayfare", "round", "cat-eye"]

    def test_read_only(self):
        with pytest.raises(TypeError):
            CATALOG[VariantId.ROUND] = CATALOG[VariantId.AVIATOR]

    def test_entries_have_geometry(self):
        for variant in list_variants():
            assert variant.parts
            assert variant.name
            for part in variant.parts:
                assert part.shape in ("cylinder", "box")
                assert 0.0 <= part.material.opacity <= 1.0
                assert all(s > 0 for s in part.size)

    def test_lenses_are_symmetric(self):
        for variant in list_variants():
            parts = {p.name: p for p in variant.parts}
            left, right = parts["lens_left"], parts["lens_right"]
            assert left.position[0] == -right.position[0]
            assert left.size == right.size

    def test_cat_eye_tilt_is_mirrored(self):
        parts = {p.name: p for p in CATALOG[VariantId.CAT_EYE].parts}
        assert parts["frame_left"].rotation[2] == -parts["frame_right"].rotation[2] != 0


class TestSelectVariant:
    @pytest.mark.parametrize("name", ["aviator", "wayfare", "round", "cat-eye"])
    def test_known_ids(self, name):
        assert select_variant(name).id.value == name

    def test_enum_id(self):
        assert select_variant(VariantId.ROUND).id is VariantId.ROUND

    def test_case_and_whitespace(self):
        assert select_variant(" Cat-Eye ").id is VariantId.CAT_EYE

    def test_unknown_falls_back_to_default(self):
        assert select_variant("monocle").id is DEFAULT_VARIANT_ID

    def test_none_falls_back_to_default(self):
        assert select_variant(None).id is VariantId.AVIATOR

    def test_custom_default(self):
        assert select_variant("monocle", default_id="round").id is VariantId.ROUND

    def test_invalid_custom_default(self):
        assert select_variant("monocle", default_id="pince-nez").id is DEFAULT_VARIANT_ID

    def test_shared_instances(self):
        assert select_variant("round") is select_variant("round")

    def test_has_variant(self):
        assert has_variant("wayfare")
        assert has_variant(VariantId.CAT_EYE)
        assert not has_variant("monocle")
