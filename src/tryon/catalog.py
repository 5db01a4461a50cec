"""Accessory catalog: a closed set of eyewear variants.

Each variant is a static description (mesh parts + materials) looked up
by identifier. The catalog is read-only and safe to share between
tracking sessions.

Example:
    >>> from tryon.catalog import select_variant, VariantId
    >>> variant = select_variant("round")
    >>> variant.id is VariantId.ROUND
    True
    >>> select_variant("monocle").id   # unknown -> default
    <VariantId.AVIATOR: 'aviator'>
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import List, Literal, Mapping, Optional, Tuple, Union

from tryon.types import Vec3

logger = logging.getLogger(__name__)

PartShape = Literal["cylinder", "box"]


class VariantId(str, Enum):
    """Identifiers of the available eyewear styles."""

    AVIATOR = "aviator"
    WAYFARE = "wayfare"
    ROUND = "round"
    CAT_EYE = "cat-eye"

    @classmethod
    def from_string(cls, value: str) -> Optional["VariantId"]:
        """Parse an identifier, returning None when it is not in the catalog."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


@dataclass(frozen=True)
class Material:
    """Surface parameters of a mesh part.

    Attributes:
        color: BGR color.
        opacity: Blend weight in [0, 1].
        metalness: Physically-based metalness hint for 3D compositors.
        roughness: Physically-based roughness hint for 3D compositors.
    """

    color: Tuple[int, int, int]
    opacity: float = 1.0
    metalness: float = 0.0
    roughness: float = 1.0


@dataclass(frozen=True)
class MeshPart:
    """One primitive of an accessory, in accessory-local units.

    ``size`` is ``(radius_top, radius_bottom, height)`` for cylinders
    (axis along local +y, like most 3D toolkits) and
    ``(width, height, depth)`` for boxes.
    """

    name: str
    shape: PartShape
    position: Vec3
    size: Vec3
    material: Material
    rotation: Vec3 = (0.0, 0.0, 0.0)
    segments: int = 32


@dataclass(frozen=True)
class AccessoryVariant:
    """Catalog entry for one eyewear style."""

    id: VariantId
    name: str
    description: str
    frame_color: str
    parts: Tuple[MeshPart, ...]


_HALF_PI = math.pi / 2


def _lens_pair(
    shape: PartShape,
    offset: float,
    size: Vec3,
    material: Material,
    rotation: Vec3 = (0.0, 0.0, 0.0),
    mirror_roll: bool = False,
    prefix: str = "lens",
) -> Tuple[MeshPart, MeshPart]:
    rx, ry, rz = rotation
    right_rotation = (rx, ry, -rz) if mirror_roll else rotation
    return (
        MeshPart(f"{prefix}_left", shape, (-offset, 0.0, 0.0), size, material, rotation),
        MeshPart(f"{prefix}_right", shape, (offset, 0.0, 0.0), size, material, right_rotation),
    )


def _aviator() -> AccessoryVariant:
    lens = Material(color=(235, 206, 135), opacity=0.3, metalness=0.1, roughness=0.1)
    metal = Material(color=(192, 192, 192), opacity=0.9, metalness=0.8, roughness=0.2)
    parts = (
        *_lens_pair("cylinder", 0.15, (0.08, 0.08, 0.005), lens),
        MeshPart("bridge", "cylinder", (0.0, 0.0, 0.0), (0.005, 0.005, 0.04),
                 Material(color=(192, 192, 192), metalness=0.8, roughness=0.2),
                 rotation=(0.0, 0.0, _HALF_PI)),
        *_lens_pair("cylinder", 0.15, (0.082, 0.082, 0.008), metal,
                    rotation=(_HALF_PI, 0.0, 0.0), prefix="frame"),
    )
    return AccessoryVariant(
        id=VariantId.AVIATOR,
        name="Aviator Classic",
        description="Timeless pilot-style frames",
        frame_color="Silver",
        parts=parts,
    )


def _wayfare() -> AccessoryVariant:
    frame = Material(color=(26, 26, 26), opacity=0.9)
    parts = (
        *_lens_pair("box", 0.12, (0.16, 0.12, 0.005), Material(color=(44, 44, 44), opacity=0.7)),
        MeshPart("bridge", "box", (0.0, 0.02, 0.0), (0.04, 0.02, 0.008),
                 Material(color=(26, 26, 26))),
        *_lens_pair("box", 0.12, (0.18, 0.14, 0.01), frame, prefix="frame"),
    )
    return AccessoryVariant(
        id=VariantId.WAYFARE,
        name="Wayfare Bold",
        description="Iconic rectangular frames",
        frame_color="Black",
        parts=parts,
    )


def _round() -> AccessoryVariant:
    gold = Material(color=(32, 165, 218), opacity=0.9, metalness=0.7, roughness=0.3)
    parts = (
        *_lens_pair("cylinder", 0.13, (0.07, 0.07, 0.005),
                    Material(color=(181, 228, 255), opacity=0.4),
                    rotation=(_HALF_PI, 0.0, 0.0)),
        MeshPart("bridge", "cylinder", (0.0, 0.0, 0.0), (0.004, 0.004, 0.06),
                 Material(color=(32, 165, 218), metalness=0.7, roughness=0.3),
                 rotation=(0.0, 0.0, _HALF_PI)),
        *_lens_pair("cylinder", 0.13, (0.072, 0.072, 0.008), gold,
                    rotation=(_HALF_PI, 0.0, 0.0), prefix="frame"),
    )
    return AccessoryVariant(
        id=VariantId.ROUND,
        name="Round Vintage",
        description="Classic circular frames",
        frame_color="Gold",
        parts=parts,
    )


def _cat_eye() -> AccessoryVariant:
    # Right-side parts mirror the left tilt.
    parts = (
        *_lens_pair("box", 0.12, (0.16, 0.1, 0.005),
                    Material(color=(180, 105, 255), opacity=0.4),
                    rotation=(0.0, 0.0, 0.2), mirror_roll=True),
        MeshPart("bridge", "box", (0.0, 0.01, 0.0), (0.03, 0.015, 0.008),
                 Material(color=(193, 182, 255))),
        *_lens_pair("box", 0.12, (0.18, 0.12, 0.01),
                    Material(color=(193, 182, 255), opacity=0.9),
                    rotation=(0.0, 0.0, 0.2), mirror_roll=True, prefix="frame"),
    )
    return AccessoryVariant(
        id=VariantId.CAT_EYE,
        name="Cat-Eye Retro",
        description="Vintage feminine style",
        frame_color="Pink",
        parts=parts,
    )


CATALOG: Mapping[VariantId, AccessoryVariant] = MappingProxyType({
    v.id: v for v in (_aviator(), _wayfare(), _round(), _cat_eye())
})

DEFAULT_VARIANT_ID = VariantId.AVIATOR


def has_variant(variant_id: Union[str, VariantId]) -> bool:
    """Check whether an identifier names a catalog entry."""
    if isinstance(variant_id, VariantId):
        return variant_id in CATALOG
    return VariantId.from_string(str(variant_id)) is not None


def select_variant(
    variant_id: Optional[Union[str, VariantId]],
    default_id: Union[str, VariantId] = DEFAULT_VARIANT_ID,
) -> AccessoryVariant:
    """Look up a variant, falling back to the default for unknown ids.

    Args:
        variant_id: Requested style identifier (or None).
        default_id: Style returned when the request is not in the catalog.

    Returns:
        The matching catalog entry.
    """
    resolved = None
    if isinstance(variant_id, VariantId):
        resolved = variant_id
    elif variant_id is not None:
        resolved = VariantId.from_string(str(variant_id))

    if resolved is None:
        fallback = default_id if isinstance(default_id, VariantId) else VariantId.from_string(str(default_id))
        if fallback is None:
            fallback = DEFAULT_VARIANT_ID
        logger.debug("Unknown variant %r, using %s", variant_id, fallback.value)
        resolved = fallback

    return CATALOG[resolved]


def list_variants() -> List[AccessoryVariant]:
    """Catalog entries in display order."""
    return [CATALOG[v] for v in VariantId]


__all__ = [
    "VariantId",
    "Material",
    "MeshPart",
    "AccessoryVariant",
    "CATALOG",
    "DEFAULT_VARIANT_ID",
    "has_variant",
    "select_variant",
    "list_variants",
]
