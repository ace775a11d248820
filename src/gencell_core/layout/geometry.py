# src/gencell_core/layout/geometry.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


@dataclass(frozen=True)
class BBox:
    """An axis-aligned rectangle in microns, normalized so x1 <= x2 and y1 <= y2."""
    x1: float
    y1: float
    x2: float
    y2: float

    def __post_init__(self):
        x1, x2 = sorted((float(self.x1), float(self.x2)))
        y1, y2 = sorted((float(self.y1), float(self.y2)))
        object.__setattr__(self, "x1", x1)
        object.__setattr__(self, "x2", x2)
        object.__setattr__(self, "y1", y1)
        object.__setattr__(self, "y2", y2)

    @classmethod
    def from_size(cls, lower_left: Point, width: float, height: float) -> "BBox":
        x, y = lower_left
        return cls(x, y, x + width, y + height)

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def lower_left(self) -> Point:
        return (self.x1, self.y1)

    def contains(self, point: Point) -> bool:
        x, y = point
        return self.x1 <= x <= self.x2 and self.y1 <= y <= self.y2

    def translated(self, dx: float, dy: float) -> "BBox":
        return BBox(self.x1 + dx, self.y1 + dy, self.x2 + dx, self.y2 + dy)

    def union(self, other: Optional["BBox"]) -> "BBox":
        if other is None:
            return self
        return BBox(min(self.x1, other.x1), min(self.y1, other.y1),
                    max(self.x2, other.x2), max(self.y2, other.y2))

    def as_list(self):
        return [self.x1, self.y1, self.x2, self.y2]


class Orientation(Enum):
    """Instance orientations: rotations counter-clockwise, then mirrors."""
    R0 = "R0"
    R90 = "R90"
    R180 = "R180"
    R270 = "R270"
    MX = "MX"        # mirror about the x axis (y -> -y)
    MY = "MY"        # mirror about the y axis (x -> -x)
    MXR90 = "MXR90"  # mirror about x, then rotate 90
    MYR90 = "MYR90"  # mirror about y, then rotate 90

    @property
    def matrix(self) -> np.ndarray:
        return _ORIENTATION_MATRICES[self]

    def __str__(self):
        return self.value


_R90 = np.array([[0, -1], [1, 0]])
_MX = np.array([[1, 0], [0, -1]])
_MY = np.array([[-1, 0], [0, 1]])

_ORIENTATION_MATRICES = {
    Orientation.R0: np.eye(2, dtype=int),
    Orientation.R90: _R90,
    Orientation.R180: _R90 @ _R90,
    Orientation.R270: _R90 @ _R90 @ _R90,
    Orientation.MX: _MX,
    Orientation.MY: _MY,
    Orientation.MXR90: _R90 @ _MX,
    Orientation.MYR90: _R90 @ _MY,
}


def transform_bbox(bbox: BBox, orientation: Orientation, origin: Point = (0.0, 0.0)) -> BBox:
    """Applies an orientation about (0, 0), then a translation to `origin`."""
    corners = np.array([[bbox.x1, bbox.y1], [bbox.x2, bbox.y1],
                        [bbox.x1, bbox.y2], [bbox.x2, bbox.y2]], dtype=float)
    moved = corners @ orientation.matrix.T + np.asarray(origin, dtype=float)
    lo = moved.min(axis=0)
    hi = moved.max(axis=0)
    return BBox(lo[0], lo[1], hi[0], hi[1])


def bbox_union(boxes: Iterable[Optional[BBox]]) -> Optional[BBox]:
    """Smallest box enclosing all given boxes; None when there are none."""
    present = [b.as_list() for b in boxes if b is not None]
    if not present:
        return None
    arr = np.array(present, dtype=float)
    return BBox(arr[:, 0].min(), arr[:, 1].min(), arr[:, 2].max(), arr[:, 3].max())
