"""
Axis-aligned rectangles in degrees and their quadrant split.

Quadrant indices are shared by the tree arena and the on-disk node files.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Tuple

from .coords import MIN_LATITUDE, MAX_LATITUDE, MIN_LONGITUDE, MAX_LONGITUDE


# Quadrant indices, also used on disk
NW = 0
NE = 1
SW = 2
SE = 3


@dataclass(frozen=True)
class Rectangle:
    """
    An axis-aligned rectangle in degrees.

    Represents inclusive ranges [x0, x1] and [y0, y1] where:
    - x corresponds to longitude
    - y corresponds to latitude
    """
    x0: float  # west longitude
    x1: float  # east longitude
    y0: float  # south latitude
    y1: float  # north latitude

    def __post_init__(self):
        # Written so that NaN bounds are rejected too
        if not (self.x0 <= self.x1 and self.y0 <= self.y1):
            raise ValueError(
                f"Invalid rectangle: x0={self.x0}, x1={self.x1}, y0={self.y0}, y1={self.y1}"
            )

    @classmethod
    def world(cls) -> Rectangle:
        """The full coordinate range: lon [-180, 180], lat [-90, 90]."""
        return cls(MIN_LONGITUDE, MAX_LONGITUDE, MIN_LATITUDE, MAX_LATITUDE)

    @property
    def width(self) -> float:
        """Longitude span in degrees."""
        return self.x1 - self.x0

    @property
    def height(self) -> float:
        """Latitude span in degrees."""
        return self.y1 - self.y0

    def contains(self, x: float, y: float) -> bool:
        """Check if point (x, y) is within this rectangle, edges included."""
        return self.x0 <= x <= self.x1 and self.y0 <= y <= self.y1

    def intersects(self, other: Rectangle) -> bool:
        """Check if two rectangles share at least one point."""
        return (
            self.x0 <= other.x1 and other.x0 <= self.x1
            and self.y0 <= other.y1 and other.y0 <= self.y1
        )

    def midpoints(self) -> Tuple[float, float]:
        """
        Calculate the split lines used for subdivision.

        Returns:
            Tuple of (xm, ym)
        """
        return (self.x0 + self.x1) / 2.0, (self.y0 + self.y1) / 2.0

    def subdivide(self) -> List[Rectangle]:
        """
        Subdivide rectangle into 4 children (quadrants).

        Child order (fixed, shared with the on-disk format): NW, NE, SW, SE
        - NW: (x0..xm, ym..y1) - upper left
        - NE: (xm..x1, ym..y1) - upper right
        - SW: (x0..xm, y0..ym) - lower left
        - SE: (xm..x1, y0..ym) - lower right

        Neighbouring children share their edges; child_index_for_point()
        decides which side owns a point lying exactly on a split line.
        """
        xm, ym = self.midpoints()
        return [
            Rectangle(self.x0, xm, ym, self.y1),
            Rectangle(xm, self.x1, ym, self.y1),
            Rectangle(self.x0, xm, self.y0, ym),
            Rectangle(xm, self.x1, self.y0, ym),
        ]

    def child_index_for_point(self, x: float, y: float) -> int:
        """
        Determine which child quadrant contains point (x, y).

        Points on the vertical split line belong to the west half and points
        on the horizontal split line to the south half.

        Returns:
            Child index (0=NW, 1=NE, 2=SW, 3=SE)
        """
        if not self.contains(x, y):
            raise ValueError(f"Point ({x}, {y}) not in rectangle {self}")

        xm, ym = self.midpoints()

        if y > ym:  # Upper half
            return NW if x <= xm else NE
        return SW if x <= xm else SE
