"""Neighbourhood masks.

A neighbourhood is a small boolean window with a reference point. Placed on
an image with its reference at some pixel, it selects the pixels under its
"on" elements, clipped at the image borders.
"""

from typing import Iterator, List, Tuple

import numpy as np

from .distance import l2


class Neighbourhood:
    """Encodes a neighbourhood.

    Args:
        elems: 2D boolean array indexed [y, x]; True marks an element as on.
        reference: (x, y) position of the reference point inside `elems`.
    """

    def __init__(self, elems: np.ndarray, reference: Tuple[int, int]):
        self.elems = np.asarray(elems, dtype=bool)
        if self.elems.ndim != 2:
            raise ValueError(f"Neighbourhood must be 2D, got shape {self.elems.shape}")
        self.reference = reference

    @classmethod
    def square(cls, size: int) -> 'Neighbourhood':
        """A fully-on size x size window centred on its middle element."""
        if size % 2 == 0:
            raise ValueError("Square neighbourhood size must be odd")
        d = (size - 1) // 2
        return cls(np.ones((size, size), dtype=bool), (d, d))

    @property
    def width(self) -> int:
        return self.elems.shape[1]

    @property
    def height(self) -> int:
        return self.elems.shape[0]

    def offsets(self) -> List[Tuple[int, int]]:
        """(dx, dy) of every on element relative to the reference, row-major."""
        rx, ry = self.reference
        ys, xs = np.nonzero(self.elems)
        return [(int(x) - rx, int(y) - ry) for y, x in zip(ys, xs)]

    def _clipped_window(self, image: np.ndarray, img_ref: Tuple[int, int]):
        # Region of the image covered by the window, and the matching slice of elems.
        h, w = image.shape[:2]
        x0 = img_ref[0] - self.reference[0]
        y0 = img_ref[1] - self.reference[1]
        ix0, iy0 = max(x0, 0), max(y0, 0)
        ix1, iy1 = min(x0 + self.width, w), min(y0 + self.height, h)
        if ix1 <= ix0 or iy1 <= iy0:
            return None, None
        sub_image = image[iy0:iy1, ix0:ix1]
        sub_elems = self.elems[iy0 - y0:iy1 - y0, ix0 - x0:ix1 - x0]
        return sub_image, sub_elems

    def image_iter(self, image: np.ndarray, img_ref: Tuple[int, int]) -> Iterator[np.ndarray]:
        """Yields the pixels under the on elements with the reference at `img_ref`."""
        sub_image, sub_elems = self._clipped_window(image, img_ref)
        if sub_image is None:
            return
        for pixel, on in zip(sub_image.reshape(-1, *image.shape[2:]), sub_elems.ravel()):
            if on:
                yield pixel

    def difference(self, p1: Tuple[int, int], img1: np.ndarray,
                   p2: Tuple[int, int], img2: np.ndarray) -> float:
        """Sum of L2 distances between the pixels selected in two images."""
        total = 0.0
        for a, b in zip(self.image_iter(img1, p1), self.image_iter(img2, p2)):
            # single-channel images yield scalars, l2 wants a channel axis
            total += float(l2(np.atleast_1d(a), np.atleast_1d(b)))
        return total
