"""Pixel-based texture synthesis (Efros & Leung non-parametric sampling).

The output is grown one pixel at a time from a 3x3 seed. The next pixel is
always the frontier pixel with the most synthesized neighbours; its colour is
copied from a source pixel whose neighbourhood best matches the already
synthesized part of its own neighbourhood.
"""

import logging
from typing import Callable, Optional, Tuple

import numpy as np
from scipy import ndimage
from tqdm import tqdm

from .common import OrderedFloat, Rect, blit_rect
from .distance import l2, pixelwise
from .errors import InvalidArguments, SynthesisError
from .neighbourhood import Neighbourhood
from .rng import as_rng

logger = logging.getLogger(__name__)

SEED_SIZE = 3
TOLERANCE = 0.1


class PixelSearchParams:
    """Parameters of the Efros and Leung algorithm.

    Args:
        size: (width, height) of the synthesized image.
        window_size: Size of the search window. Must be an odd number.
        seed_coords: Coordinates of the top-left corner of the initial 3x3
            seed patch in the source. If None, it is chosen randomly.
        distance: Pixel distance function.
    """

    def __init__(self, size: Tuple[int, int], window_size: int,
                 seed_coords: Optional[Tuple[int, int]] = None,
                 distance: Callable = l2):
        width, height = size
        if width < SEED_SIZE or height < SEED_SIZE:
            raise InvalidArguments(f"Output size must be at least {SEED_SIZE}x{SEED_SIZE}")
        if window_size <= 0 or window_size % 2 == 0:
            raise InvalidArguments("window_size must be odd")
        if seed_coords is not None and (seed_coords[0] < 0 or seed_coords[1] < 0):
            raise InvalidArguments("Seed coordinates must be non-negative")
        if not callable(distance):
            raise InvalidArguments("distance must be callable")
        self.size = (int(width), int(height))
        self.window_size = int(window_size)
        self.seed_coords = None if seed_coords is None else (int(seed_coords[0]), int(seed_coords[1]))
        self.distance = distance

    @property
    def half_window(self) -> int:
        return (self.window_size - 1) // 2


def edge_pixels(mask: np.ndarray) -> np.ndarray:
    """Unfilled pixels 4-adjacent to at least one filled pixel."""
    touches_filled = np.zeros_like(mask)
    touches_filled[1:, :] |= mask[:-1, :]
    touches_filled[:-1, :] |= mask[1:, :]
    touches_filled[:, 1:] |= mask[:, :-1]
    touches_filled[:, :-1] |= mask[:, 1:]
    return touches_filled & ~mask


def neighbour_counts(mask: np.ndarray, window_size: int) -> np.ndarray:
    """Number of filled pixels in the window around every position, clipped at the borders."""
    kernel = np.ones((window_size, window_size), dtype=np.int32)
    return ndimage.convolve(mask.astype(np.int32), kernel, mode='constant', cval=0)


class PixelSearch:
    """Implements the Efros and Leung algorithm. This is pretty slow...

    Args:
        source: Exemplar texture, (H, W, 3) uint8, at least 3x3.
        params: Algorithm parameters.
        rng: numpy Generator, int seed, or None for a random seed.
        show_progress: Whether to display a progress bar.

    Raises:
        InvalidArguments: If the seed patch does not fit in the source.
    """

    def __init__(self, source: np.ndarray, params: PixelSearchParams, rng=None,
                 show_progress: bool = True):
        source = np.asarray(source)
        if source.ndim != 3 or source.shape[2] != 3:
            raise InvalidArguments(f"Source must be an RGB image, got shape {source.shape}")
        src_h, src_w = source.shape[:2]
        if src_w < SEED_SIZE or src_h < SEED_SIZE:
            raise InvalidArguments(f"Source must be at least {SEED_SIZE}x{SEED_SIZE}")
        if params.seed_coords is not None:
            sx, sy = params.seed_coords
            if sx > src_w - SEED_SIZE or sy > src_h - SEED_SIZE:
                raise InvalidArguments("Seed patch is outside source image")

        self.source = source
        self.params = params
        self.rng = as_rng(rng)
        self.show_progress = show_progress
        self.neighbourhood = Neighbourhood.square(params.window_size)
        self.mask: Optional[np.ndarray] = None

    def synthesize(self) -> np.ndarray:
        """Synthesize an image using the Efros and Leung method."""
        w, h = self.params.size
        buffer = np.zeros((h, w, 3), dtype=self.source.dtype)
        mask = np.zeros((h, w), dtype=bool)

        # Copy the initial seed to the center of the buffer and mark it as synthesized in the mask
        dst_seed_rect = Rect((w // 2 - 1, h // 2 - 1), (SEED_SIZE, SEED_SIZE))
        src_seed_rect = Rect(self._seed_coords(), (SEED_SIZE, SEED_SIZE))
        blit_rect(buffer, self.source, dst_seed_rect, src_seed_rect)
        dst_seed_rect.view(mask)[...] = True
        logger.info("Growing a %dx%d image from seed %s (window: %dpx)",
                    w, h, src_seed_rect.coords, self.params.window_size)

        n_pixels = int(np.count_nonzero(~mask))
        with tqdm(total=n_pixels, desc="Synthesizing pixels", disable=not self.show_progress) as progress:
            while n_pixels > 0:
                x, y = self.next_pixel(mask)
                buffer[y, x] = self.synthesize_pixel(buffer, mask, (x, y))
                mask[y, x] = True
                n_pixels -= 1
                progress.update(1)

        self.mask = mask
        return buffer

    def _seed_coords(self) -> Tuple[int, int]:
        if self.params.seed_coords is not None:
            return self.params.seed_coords
        src_h, src_w = self.source.shape[:2]
        return (int(self.rng.integers(0, src_w - SEED_SIZE + 1)),
                int(self.rng.integers(0, src_h - SEED_SIZE + 1)))

    def next_pixel(self, mask: np.ndarray) -> Tuple[int, int]:
        """The edge pixel with the most filled neighbours in its window, as (x, y)."""
        edges = edge_pixels(mask)
        if not edges.any():
            raise SynthesisError("No edge pixel left while the mask is not full")
        counts = np.where(edges, neighbour_counts(mask, self.params.window_size), -1)
        y, x = np.unravel_index(int(np.argmax(counts)), counts.shape)
        return int(x), int(y)

    def neighbourhood_errors(self, buffer: np.ndarray, mask: np.ndarray,
                             coords: Tuple[int, int]) -> Tuple[np.ndarray, np.ndarray]:
        """Mean distance between the window around `coords` and every source window.

        Only window positions that are filled in the buffer and inside the
        source contribute. Windows are clipped at the edges of both images.

        Returns:
            (errors, valid): float array over source positions, and a boolean
            array marking the positions with at least one contributing pixel.
        """
        tx, ty = coords
        h, w = mask.shape
        src_h, src_w = self.source.shape[:2]
        sums = np.zeros((src_h, src_w), dtype=np.float64)
        counts = np.zeros((src_h, src_w), dtype=np.int64)

        for dx, dy in self.neighbourhood.offsets():
            bx, by = tx + dx, ty + dy
            if not (0 <= bx < w and 0 <= by < h) or not mask[by, bx]:
                continue
            # Source centres whose offset pixel lies inside the source
            x0, x1 = max(0, -dx), min(src_w, src_w - dx)
            y0, y1 = max(0, -dy), min(src_h, src_h - dy)
            if x1 <= x0 or y1 <= y0:
                continue
            shifted = self.source[y0 + dy:y1 + dy, x0 + dx:x1 + dx]
            sums[y0:y1, x0:x1] += pixelwise(self.params.distance, shifted, buffer[by, bx])
            counts[y0:y1, x0:x1] += 1

        valid = counts > 0
        errors = np.zeros_like(sums)
        errors[valid] = sums[valid] / counts[valid]
        return errors, valid

    def synthesize_pixel(self, buffer: np.ndarray, mask: np.ndarray,
                         coords: Tuple[int, int]) -> np.ndarray:
        """Picks a colour for `coords` among the source pixels within tolerance of the best match."""
        errors, valid = self.neighbourhood_errors(buffer, mask, coords)
        candidates = np.flatnonzero(valid)
        if candidates.size == 0:
            raise SynthesisError(f"No source neighbourhood overlaps the filled pixels around {coords}")

        values = errors.ravel()[candidates]
        try:
            best = OrderedFloat(np.min(values))
        except ValueError as e:
            raise SynthesisError("Distance function produced NaN errors") from e
        if best.as_float() < 0:
            raise SynthesisError("Distance function produced negative errors")

        order = np.argsort(values, kind='stable')
        bound = best.as_float() * (1 + TOLERANCE)
        n_kept = int(np.searchsorted(values[order], bound, side='right'))
        kept = self.rng.permutation(candidates[order[:n_kept]])
        sy, sx = divmod(int(kept[0]), self.source.shape[1])
        return self.source[sy, sx]
