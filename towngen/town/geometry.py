"""Integer rectangle helpers shared by layout and subdivision."""
from __future__ import annotations

import math
from typing import NamedTuple, Optional, Tuple

Point = Tuple[int, int]


class Rect(NamedTuple):
    x: int; y: int; w: int; h: int

    @property
    def x2(self) -> int:
        return self.x + self.w

    @property
    def y2(self) -> int:
        return self.y + self.h

    @property
    def area(self) -> int:
        return self.w * self.h

    @property
    def center(self) -> Point:
        return (self.x + self.w // 2, self.y + self.h // 2)

    def intersects(self, other: "Rect") -> bool:
        """True when interiors overlap; touching edges do not count."""
        return not (self.x2 <= other.x or self.x >= other.x2 or self.y2 <= other.y or self.y >= other.y2)

    def contains(self, other: "Rect") -> bool:
        return self.x <= other.x and self.y <= other.y and other.x2 <= self.x2 and other.y2 <= self.y2

    def shared_wall(self, other: "Rect") -> Optional[Tuple[Point, Point]]:
        """Return the wall segment both rects border, or None.

        Segments are returned as ``((x1, y1), (x2, y2))`` with positive length.
        """
        if self.x2 == other.x or other.x2 == self.x:
            wx = self.x2 if self.x2 == other.x else self.x
            lo, hi = max(self.y, other.y), min(self.y2, other.y2)
            if hi > lo:
                return ((wx, lo), (wx, hi))
        if self.y2 == other.y or other.y2 == self.y:
            wy = self.y2 if self.y2 == other.y else self.y
            lo, hi = max(self.x, other.x), min(self.x2, other.x2)
            if hi > lo:
                return ((lo, wy), (hi, wy))
        return None

    def to_dict(self):
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @classmethod
    def from_dict(cls, data) -> "Rect":
        return cls(int(data["x"]), int(data["y"]), int(data["w"]), int(data["h"]))


def segment_length(seg: Tuple[Point, Point]) -> int:
    (x1, y1), (x2, y2) = seg
    return abs(x2 - x1) + abs(y2 - y1)


def segment_midpoint(seg: Tuple[Point, Point]) -> Point:
    (x1, y1), (x2, y2) = seg
    return ((x1 + x2) // 2, (y1 + y2) // 2)


def distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


__all__ = ["Point", "Rect", "distance", "segment_length", "segment_midpoint"]
