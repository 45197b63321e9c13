# treeofhope/placement.py
"""
Golden-angle leaf placement.

Leaf ``i`` of a campaign sits on a phyllotaxis spiral around the canvas
centre: each step turns by 137.5 degrees and the radius grows with the square
root of the index, so the enclosed area grows linearly and the density stays
even at any prefix length.

The function is pure. Every code path that creates a leaf goes through
``leaf_position`` so a tree renders identically wherever its leaves came from.
"""

from __future__ import annotations

import math
from typing import NamedTuple

GOLDEN_ANGLE_DEGREES = 137.5
RADIUS_STEP = 30
CANVAS_CENTER = (500, 300)


class Position(NamedTuple):
    x: int
    y: int


def _round_half_up(v: float) -> int:
    # round() is banker's rounding; the tree canvas expects .5 to round up.
    return int(math.floor(v + 0.5))


def leaf_angle(index: int) -> float:
    """Angle of leaf ``index`` in radians."""
    return index * GOLDEN_ANGLE_DEGREES * math.pi / 180


def leaf_radius(index: int) -> float:
    return math.sqrt(index) * RADIUS_STEP


def leaf_position(index: int, center: tuple[int, int] = CANVAS_CENTER) -> Position:
    """Return the canvas coordinate for the leaf at zero-based ``index``."""
    if isinstance(index, bool) or not isinstance(index, int):
        raise TypeError("leaf index must be an int")
    if index < 0:
        raise ValueError("leaf index must be non-negative")

    angle = leaf_angle(index)
    radius = leaf_radius(index)
    cx, cy = center
    return Position(
        x=_round_half_up(cx + radius * math.cos(angle)),
        y=_round_half_up(cy + radius * math.sin(angle)),
    )
