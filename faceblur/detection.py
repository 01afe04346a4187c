"""
Detection data transfer objects.

This module defines the two shapes a face takes on its way through the
pipeline:

    Box     — float corners plus score, produced by the decoder and
              reduced by non-maximum suppression.
    Region  — integer rectangle in original-image pixels, consumed by
              the anonymizer and returned to callers.

Non-goals:
    - No rendering logic.
    - No file I/O.
"""

import math
from dataclasses import dataclass


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True, slots=True)
class Box:
    """A decoded face candidate.

    Attributes:
        x1: Left edge (absolute pixels, original image).
        y1: Top edge.
        x2: Right edge.
        y2: Bottom edge.
        score: Face-class confidence.

    Coordinates are not clamped; a box may extend past the image edges.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    score: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def area(self) -> float:
        return self.width * self.height

    def to_region(self) -> "Region":
        """Round the corners into an integer Region."""
        return Region(
            x=_round_half_up(self.x1),
            y=_round_half_up(self.y1),
            width=_round_half_up(self.x2 - self.x1),
            height=_round_half_up(self.y2 - self.y1),
        )


@dataclass(frozen=True, slots=True)
class Region:
    """A rectangle in original-image pixel space.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Width in pixels. Values <= 0 make the region a no-op.
        height: Height in pixels. Values <= 0 make the region a no-op.
    """

    x: int
    y: int
    width: int
    height: int

    def to_dict(self) -> dict:
        """Return a plain dict suitable for JSON serialization."""
        return {
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0
