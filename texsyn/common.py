"""Geometry and ordering primitives shared by the synthesis engines."""

import enum
import functools
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .errors import InvalidArguments


@functools.total_ordering
class OrderedFloat:
    """A float that is never NaN, so it can be used as a sort key.

    Raises:
        ValueError: If `val` is NaN.
    """

    __slots__ = ('_val',)

    def __init__(self, val: float):
        val = float(val)
        if math.isnan(val):
            raise ValueError("OrderedFloat is NaN")
        self._val = val

    def as_float(self) -> float:
        return self._val

    def __float__(self) -> float:
        return self._val

    def __eq__(self, other):
        if not isinstance(other, OrderedFloat):
            return NotImplemented
        return self._val == other._val

    def __lt__(self, other):
        if not isinstance(other, OrderedFloat):
            return NotImplemented
        return self._val < other._val

    def __hash__(self):
        return hash(self._val)

    def __add__(self, other):
        if not isinstance(other, OrderedFloat):
            return NotImplemented
        return OrderedFloat(self._val + other._val)

    def __iadd__(self, other):
        return self.__add__(other)

    def __repr__(self):
        return f"OrderedFloat({self._val!r})"


@dataclass(frozen=True)
class Rect:
    """Axis-aligned integer rectangle. `coords` is the top-left (x, y) corner."""

    coords: Tuple[int, int]
    size: Tuple[int, int]

    @classmethod
    def new(cls, x: int, y: int, width: int, height: int) -> 'Rect':
        return cls((x, y), (width, height))

    @property
    def x(self) -> int:
        return self.coords[0]

    @property
    def y(self) -> int:
        return self.coords[1]

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]

    def fits_in(self, image: np.ndarray) -> bool:
        """Whether the whole rectangle lies inside `image`."""
        h, w = image.shape[:2]
        return (self.x >= 0 and self.y >= 0
                and self.x + self.width <= w and self.y + self.height <= h)

    def translate(self, dx: int, dy: int) -> 'Rect':
        return Rect((self.x + dx, self.y + dy), self.size)

    def crop_to_image(self, image: np.ndarray) -> Optional['Rect']:
        """Clips the rectangle to the bounds of `image`, None if nothing is left."""
        h, w = image.shape[:2]
        x0, y0 = max(self.x, 0), max(self.y, 0)
        x1, y1 = min(self.x + self.width, w), min(self.y + self.height, h)
        if x1 <= x0 or y1 <= y0:
            return None
        return Rect((x0, y0), (x1 - x0, y1 - y0))

    def view(self, image: np.ndarray) -> np.ndarray:
        """Returns the sub-image covered by the rectangle (a view, not a copy)."""
        return image[self.y:self.y + self.height, self.x:self.x + self.width]


@dataclass(frozen=True)
class Patch:
    """A square region of the source image: top-left (x, y) corner and side length."""

    coords: Tuple[int, int]
    size: int

    @property
    def rect(self) -> Rect:
        return Rect(self.coords, (self.size, self.size))

    def view(self, image: np.ndarray) -> np.ndarray:
        return self.rect.view(image)


class OverlapArea(enum.Enum):
    """Edges of a new patch that overlap content already in the buffer."""

    TOP = 'top'
    LEFT = 'left'
    TOP_LEFT = 'top_left'

    @classmethod
    def from_grid_position(cls, gx: int, gy: int) -> 'OverlapArea':
        """Overlap area of the patch in grid cell (gx, gy).

        The first grid row only has a neighbour on its left and the first grid
        column only has one above. Cell (0, 0) has no overlap at all.
        """
        if gx == 0 and gy == 0:
            raise InvalidArguments("The seed cell (0, 0) has no overlap area")
        # first row overlaps only its left neighbour, first column only the one above
        if gy == 0:
            return cls.LEFT
        if gx == 0:
            return cls.TOP
        return cls.TOP_LEFT

    @property
    def has_top(self) -> bool:
        return self is not OverlapArea.LEFT

    @property
    def has_left(self) -> bool:
        return self is not OverlapArea.TOP


def blit_rect(dest: np.ndarray, src: np.ndarray, dest_rect: Rect, src_rect: Rect):
    """Copies the pixels of `src_rect` in `src` into `dest_rect` in `dest`, in place."""
    if dest_rect.size != src_rect.size:
        raise InvalidArguments(
            f"Cannot blit a {src_rect.size} rect into a {dest_rect.size} rect")
    if not src_rect.fits_in(src):
        raise InvalidArguments(f"Source rect {src_rect} is outside the source image")
    if not dest_rect.fits_in(dest):
        raise InvalidArguments(f"Destination rect {dest_rect} is outside the destination image")
    dest_rect.view(dest)[...] = src_rect.view(src)
