"""Compression tiers and overlay placement presets."""

from __future__ import annotations

import dataclasses
from enum import Enum


class CompressionTier(str, Enum):
    """Named presets trading output size against fidelity."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class OverlayCorner(str, Enum):
    """Page corners the serial label can be anchored to."""

    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"

    @property
    def is_top(self) -> bool:
        return self in (OverlayCorner.TOP_LEFT, OverlayCorner.TOP_RIGHT)

    @property
    def is_right(self) -> bool:
        return self in (OverlayCorner.TOP_RIGHT, OverlayCorner.BOTTOM_RIGHT)


@dataclasses.dataclass(frozen=True, slots=True)
class CompressionSettings:
    """Rasterization resolution and JPEG quality for a tier."""

    tier: CompressionTier
    dpi: int
    quality: int


_TIERS: dict[CompressionTier, CompressionSettings] = {
    CompressionTier.NONE: CompressionSettings(CompressionTier.NONE, dpi=300, quality=95),
    CompressionTier.LOW: CompressionSettings(CompressionTier.LOW, dpi=200, quality=85),
    CompressionTier.MEDIUM: CompressionSettings(CompressionTier.MEDIUM, dpi=150, quality=75),
    CompressionTier.HIGH: CompressionSettings(CompressionTier.HIGH, dpi=100, quality=65),
}

DEFAULT_TIER = CompressionTier.NONE
DEFAULT_CORNER = OverlayCorner.BOTTOM_RIGHT


def normalize_tier(name: str | CompressionTier | None) -> CompressionTier:
    """Return the tier called exactly *name*, falling back to ``none`` for anything else."""

    if isinstance(name, CompressionTier):
        return name
    try:
        return CompressionTier(name)
    except ValueError:
        return DEFAULT_TIER


def resolve_tier(name: str | CompressionTier | None) -> CompressionSettings:
    """Map a tier name to its fixed (DPI, quality) pair.

    Unknown or empty names resolve to the ``none`` tier; this never raises.
    """

    return _TIERS[normalize_tier(name)]


def resolve_corner(name: str | OverlayCorner | None) -> OverlayCorner:
    """Map an exact corner name to :class:`OverlayCorner`, defaulting to bottom-right."""

    if isinstance(name, OverlayCorner):
        return name
    try:
        return OverlayCorner(name)
    except ValueError:
        return DEFAULT_CORNER


__all__ = [
    "CompressionSettings",
    "CompressionTier",
    "DEFAULT_CORNER",
    "DEFAULT_TIER",
    "OverlayCorner",
    "normalize_tier",
    "resolve_corner",
    "resolve_tier",
]
