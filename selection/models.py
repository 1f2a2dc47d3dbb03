# selection/models.py
"""Geometry value types shared by the selection controller and the coordinate mapper.

Display space is the pixel grid of the rendered (possibly scaled) image element.
Source space is the pixel grid of the original image file. Both use the same `Rect`
type: floats in display space, ints once mapped to source space.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Literal


# Interaction modes owned by SelectionController.
# - "idle": no gesture in progress
# - "selecting": drag-to-create a new rectangle
# - "dragging": moving the existing rectangle
# - "resizing": moving one corner (see Handle)
InteractionMode = Literal["idle", "selecting", "dragging", "resizing"]

# Corner handles, named by compass direction.
Handle = Literal["nw", "ne", "sw", "se"]

HANDLES: tuple[Handle, ...] = ("nw", "ne", "sw", "se")


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle, top-left origin.

    A rectangle with zero width or height is *empty*: it may exist transiently while a
    selection is being drawn, but it is never committed.
    """
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, p: Point) -> bool:
        """Inclusive containment test (edges count as inside)."""
        return self.x <= p.x <= self.right and self.y <= p.y <= self.bottom

    def corner(self, handle: Handle) -> Point:
        """Return the corner point addressed by a handle name."""
        x = self.x if handle in ("nw", "sw") else self.right
        y = self.y if handle in ("nw", "ne") else self.bottom
        return Point(x, y)

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


@dataclass(frozen=True)
class DisplayFrame:
    """
    Snapshot of a loaded image's rendered size vs. its natural size.

    Captured when the image loads and recomputed whenever the rendered box changes
    (window resize). The scale factors convert display pixels to source pixels.
    """
    display_width: float
    display_height: float
    natural_width: int
    natural_height: int

    @property
    def is_ready(self) -> bool:
        """True once layout is known: all four dimensions positive."""
        return (
            self.display_width > 0
            and self.display_height > 0
            and self.natural_width > 0
            and self.natural_height > 0
        )

    @property
    def scale_x(self) -> float:
        return float(self.natural_width) / float(self.display_width)

    @property
    def scale_y(self) -> float:
        return float(self.natural_height) / float(self.display_height)


def clamp(v: float, lo: float, hi: float) -> float:
    """
    Clamp a value to the inclusive range [lo, hi].

    When hi < lo (a rectangle larger than its container) lo wins, which keeps
    positions non-negative.
    """
    return max(lo, min(hi, v))


def round_half_up(v: float) -> int:
    """
    Round to the nearest integer, ties away from zero.

    Python's round() uses banker's rounding (round(2.5) == 2); pixel offsets sent to the
    crop endpoint use the conventional rule instead (2.5 -> 3).
    """
    if v >= 0:
        return int(math.floor(v + 0.5))
    return -int(math.floor(-v + 0.5))
