"""Patch-based texture synthesis (Efros & Freeman image quilting).

The output is grown patch by patch in raster order. Each new patch is picked
among the source patches that best agree with what is already in the output
over the overlap area, then grafted along minimum-error seams found by
dynamic programming.
"""

import contextlib
import functools
import logging
import multiprocessing
import pickle
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from tqdm import tqdm

from .common import OrderedFloat, OverlapArea, Patch, Rect, blit_rect
from .distance import l1, pixelwise
from .errors import InvalidArguments, SynthesisError
from .rng import as_rng

logger = logging.getLogger(__name__)

# Candidates whose error is within this ratio above the minimum are kept.
TOLERANCE = 0.1
# Upper bound on probabilistic selection passes before giving up.
MAX_SELECTION_PASSES = 10000

Distance = Callable[[np.ndarray, np.ndarray], np.ndarray]
Path = List[Tuple[int, int]]


def patch_rect_error(distance: Distance, img1: np.ndarray, img2: np.ndarray,
                     coords1: Tuple[int, int], coords2: Tuple[int, int], size) -> float:
    """Sum of `distance` over every pixel pair of two equally sized rectangles.

    Args:
        distance: Pixel distance function.
        img1, img2: Images holding the two rectangles.
        coords1, coords2: (x, y) top-left corners of the rectangles.
        size: (width, height) of both rectangles, or an int for a square.

    Raises:
        InvalidArguments: If either rectangle leaves its image.
    """
    if isinstance(size, (int, np.integer)):
        size = (int(size), int(size))
    rect1, rect2 = Rect(tuple(coords1), tuple(size)), Rect(tuple(coords2), tuple(size))
    if not rect1.fits_in(img1):
        raise InvalidArguments(f"{rect1} is outside the first image")
    if not rect2.fits_in(img2):
        raise InvalidArguments(f"{rect2} is outside the second image")
    return float(np.sum(pixelwise(distance, rect1.view(img1), rect2.view(img2))))


def overlap_rects(area: OverlapArea, patch_size: int, overlap: int) -> List[Rect]:
    """Patch-relative rectangles covered by an overlap area.

    The top band spans the full width. For TOP_LEFT the left band only covers
    the rows below the top band, so the corner block is counted once.
    """
    rects = []
    if area.has_top:
        rects.append(Rect((0, 0), (patch_size, overlap)))
    if area is OverlapArea.LEFT:
        rects.append(Rect((0, 0), (overlap, patch_size)))
    elif area is OverlapArea.TOP_LEFT and patch_size > overlap:
        rects.append(Rect((0, overlap), (overlap, patch_size - overlap)))
    return rects


def patch_error_surface(distance: Distance, source: np.ndarray, patch: Patch,
                        buffer: np.ndarray, dest_coords: Tuple[int, int],
                        area: OverlapArea, overlap: int) -> np.ndarray:
    """Per-pixel error between a source patch and the buffer it would cover.

    Returns:
        A (patch.size, patch.size) float array indexed [y, x]; cells outside
        the overlap area are zero.
    """
    dest = Rect(tuple(dest_coords), (patch.size, patch.size))
    if not patch.rect.fits_in(source):
        raise InvalidArguments(f"{patch} is outside the source image")
    if not dest.fits_in(buffer):
        raise InvalidArguments(f"{dest} is outside the buffer")

    candidate = patch.view(source)
    existing = dest.view(buffer)
    surface = np.zeros((patch.size, patch.size), dtype=np.float64)
    for rect in overlap_rects(area, patch.size, overlap):
        rect.view(surface)[...] = pixelwise(distance, rect.view(candidate), rect.view(existing))
    return surface


def min_cost_vertical_path(error_surface: np.ndarray, overlap: int) -> Path:
    """Finds a min-cost vertical seam through the first `overlap` columns.

    Args:
        error_surface: 2D error surface indexed [y, x].
        overlap: Width of the column band the seam is confined to.

    Returns:
        One (x, y) point per row, ordered by increasing y, with 0 <= x < overlap.
    """
    height = error_surface.shape[0]
    if not 0 < overlap <= error_surface.shape[1]:
        raise InvalidArguments(f"Overlap {overlap} does not fit a surface of shape {error_surface.shape}")

    band = error_surface[:, :overlap].astype(np.float64)
    costs = np.empty_like(band)
    costs[0] = band[0]
    for y in range(1, height):
        above = costs[y - 1]
        above_left = np.concatenate(([np.inf], above[:-1]))
        above_right = np.concatenate((above[1:], [np.inf]))
        costs[y] = band[y] + np.minimum(np.minimum(above_left, above), above_right)

    # Backtrack from the cheapest cell of the bottom row
    x = int(np.argmin(costs[height - 1]))
    path = [(x, height - 1)]
    for y in range(height - 2, -1, -1):
        row = costs[y]
        best = x
        if x > 0 and row[x - 1] < row[best]:
            best = x - 1
        if x + 1 < overlap and row[x + 1] < row[best]:
            best = x + 1
        x = best
        path.append((x, y))
    path.reverse()
    return path


def min_cost_horizontal_path(error_surface: np.ndarray, overlap: int) -> Path:
    """Finds a min-cost horizontal seam through the first `overlap` rows.

    Returns:
        One (x, y) point per column, ordered by increasing x, with 0 <= y < overlap.
    """
    transposed_path = min_cost_vertical_path(error_surface.T, overlap)
    return [(y, x) for x, y in transposed_path]


def seam_mask(patch_size: int, vertical_path: Optional[Sequence[Tuple[int, int]]] = None,
              horizontal_path: Optional[Sequence[Tuple[int, int]]] = None) -> np.ndarray:
    """Boolean mask of the pixels taken from the new patch.

    A pixel belongs to the new patch when it is on or right of the vertical
    seam in its row and on or below the horizontal seam in its column.
    """
    ys, xs = np.mgrid[0:patch_size, 0:patch_size]
    mask = np.ones((patch_size, patch_size), dtype=bool)
    if vertical_path is not None:
        seam_cols = np.zeros(patch_size, dtype=np.int64)
        for x, y in vertical_path:
            seam_cols[y] = x
        mask &= xs >= seam_cols[:, None]
    if horizontal_path is not None:
        seam_rows = np.zeros(patch_size, dtype=np.int64)
        for x, y in horizontal_path:
            seam_rows[x] = y
        mask &= ys >= seam_rows[None, :]
    return mask


# Top-level worker for multiprocessing to score one row of candidate anchors.
# This must be a top-level function for pickling by multiprocessing.
def _top_level_worker_score_row(task, source, regions, distance):
    """Scores the anchors (x, y) for x in `xs` against the buffer overlap regions."""
    y, xs = task
    errors = np.empty(len(xs), dtype=np.float64)
    for i, x in enumerate(xs):
        errors[i] = sum(
            patch_rect_error(distance, source, existing,
                             (int(x) + rect.x, y + rect.y), (0, 0), rect.size)
            for rect, existing in regions)
    return y, xs, errors


class QuilterParams:
    """Parameters of the image quilting algorithm.

    Args:
        size: (width, height) of the synthesized image.
        patch_size: Side length of the square patches.
        overlap: Width of the overlap band between neighbouring patches.
        seed_coords: (x, y) of the first patch in the source, random if None.
        selection_chance: If set, each anchor is only scored with this
            probability, which trades quality for speed. If None every anchor
            is scored.
        distance: Pixel distance function.

    Raises:
        InvalidArguments: If any parameter breaks its contract.
    """

    def __init__(self, size: Tuple[int, int], patch_size: int, overlap: int,
                 seed_coords: Optional[Tuple[int, int]] = None,
                 selection_chance: Optional[float] = None,
                 distance: Distance = l1):
        width, height = size
        if width <= 0 or height <= 0:
            raise InvalidArguments("Output size must be non-zero")
        if overlap <= 0:
            raise InvalidArguments("overlap must be non-zero")
        if patch_size < 2 * overlap:
            raise InvalidArguments("patch_size must be at least twice as large as overlap")
        if seed_coords is not None and (seed_coords[0] < 0 or seed_coords[1] < 0):
            raise InvalidArguments("Seed coordinates must be non-negative")
        if selection_chance is not None and not 0 < selection_chance <= 1:
            raise InvalidArguments("selection_chance must be in (0, 1]")
        if not callable(distance):
            raise InvalidArguments("distance must be callable")

        self.size = (int(width), int(height))
        self.patch_size = int(patch_size)
        self.overlap = int(overlap)
        self.seed_coords = None if seed_coords is None else (int(seed_coords[0]), int(seed_coords[1]))
        self.selection_chance = selection_chance
        self.distance = distance

    @property
    def step(self) -> int:
        return self.patch_size - self.overlap

    def grid_size(self) -> Tuple[int, int]:
        """Number of patches needed horizontally and vertically."""
        width, height = self.size
        return -(-width // self.step), -(-height // self.step)

    def __repr__(self):
        return (f"QuilterParams(size={self.size}, patch_size={self.patch_size}, "
                f"overlap={self.overlap}, seed_coords={self.seed_coords}, "
                f"selection_chance={self.selection_chance}, distance={getattr(self.distance, '__name__', self.distance)})")


class Quilter:
    """Implements the Image Quilting algorithm for texture synthesis.

    Args:
        source: Exemplar texture, (H, W, 3) uint8.
        params: Algorithm parameters.
        rng: numpy Generator, int seed, or None for a random seed. Every
            random choice of a run is drawn from it.
        processes: Size of the worker pool used to score candidates. None uses
            one process per CPU, 1 scores in the calling process.
        show_progress: Whether to display a progress bar.

    Raises:
        InvalidArguments: If the parameters do not fit the source image.
    """

    def __init__(self, source: np.ndarray, params: QuilterParams, rng=None,
                 processes: Optional[int] = None, show_progress: bool = True):
        self.source = np.asarray(source)
        self.params = params
        self.rng = as_rng(rng)
        if processes is not None and processes < 1:
            raise InvalidArguments("processes must be at least 1")
        self.processes = processes
        self.show_progress = show_progress
        self._validate_source()

    def _validate_source(self):
        if self.source.ndim != 3 or self.source.shape[2] != 3:
            raise InvalidArguments(f"Source must be an RGB image, got shape {self.source.shape}")
        src_h, src_w = self.source.shape[:2]
        p = self.params.patch_size
        if p > src_w or p > src_h:
            raise InvalidArguments("Patch size is larger than the source image")
        if self.params.seed_coords is not None:
            sx, sy = self.params.seed_coords
            if sx + p > src_w or sy + p > src_h:
                raise InvalidArguments("Seed patch is outside source image")

    def quilt_image(self) -> np.ndarray:
        """Synthesizes a texture of the requested size.

        Returns:
            The synthesized (height, width, 3) image.

        Raises:
            InvalidArguments: If the parameters do not fit the source image.
            SynthesisError: If candidate selection breaks down mid-run.
        """
        self._validate_source()
        width, height = self.params.size
        p = self.params.patch_size
        x_patches, y_patches = self.params.grid_size()
        logger.info("Quilting %dx%d patches (patch: %dpx, overlap: %dpx) into a %dx%d image",
                    x_patches, y_patches, p, self.params.overlap, width, height)

        # The extra margin absorbs the last, partially visible patches
        buffer = np.zeros((height + p, width + p, 3), dtype=self.source.dtype)
        seed = self._seed_patch()
        logger.debug("Seed patch at %s", seed.coords)
        blit_rect(buffer, self.source, Rect((0, 0), (p, p)), seed.rect)

        with self._scoring_pool() as pool:
            for gy in tqdm(range(y_patches), desc="Quilting rows", disable=not self.show_progress):
                for gx in range(x_patches):
                    if gx == 0 and gy == 0:
                        continue
                    self._place_patch(buffer, gx, gy, pool)

        return buffer[:height, :width].copy()

    def _seed_patch(self) -> Patch:
        p = self.params.patch_size
        if self.params.seed_coords is not None:
            return Patch(self.params.seed_coords, p)
        src_h, src_w = self.source.shape[:2]
        x = int(self.rng.integers(0, src_w - p + 1))
        y = int(self.rng.integers(0, src_h - p + 1))
        return Patch((x, y), p)

    @contextlib.contextmanager
    def _scoring_pool(self):
        if self.processes == 1:
            yield None
            return
        try:
            pickle.dumps(self.params.distance)
        except (pickle.PicklingError, AttributeError, TypeError) as e:
            logger.warning("Distance function cannot be sent to workers (%s). Scoring candidates in-process.", e)
            yield None
            return
        try:
            pool = multiprocessing.Pool(processes=self.processes)
        except (OSError, ValueError) as e:
            logger.warning("Could not start a worker pool (%s). Scoring candidates in-process.", e)
            yield None
            return
        with pool:
            yield pool

    def _place_patch(self, buffer: np.ndarray, gx: int, gy: int, pool=None):
        """Selects a patch for grid cell (gx, gy) and grafts it along its seams."""
        ov = self.params.overlap
        p = self.params.patch_size
        area = OverlapArea.from_grid_position(gx, gy)
        dest_coords = (gx * self.params.step, gy * self.params.step)

        patch = self.select_candidate(buffer, area, dest_coords, pool)
        surface = patch_error_surface(self.params.distance, self.source, patch,
                                      buffer, dest_coords, area, ov)
        vertical_path = min_cost_vertical_path(surface, ov) if area.has_left else None
        horizontal_path = min_cost_horizontal_path(surface, ov) if area.has_top else None
        mask = seam_mask(p, vertical_path, horizontal_path)

        dest = Rect(dest_coords, (p, p)).view(buffer)
        dest[mask] = patch.view(self.source)[mask]
        logger.debug("Cell (%d, %d): %s patch at %s", gx, gy, area.value, patch.coords)

    def _overlap_regions(self, buffer: np.ndarray, area: OverlapArea,
                         dest_coords: Tuple[int, int]):
        p, ov = self.params.patch_size, self.params.overlap
        dest = Rect(tuple(dest_coords), (p, p)).view(buffer)
        return [(rect, rect.view(dest).copy()) for rect in overlap_rects(area, p, ov)]

    def _anchor_tasks(self, max_x: int, max_y: int):
        """Rows of anchors to score: all of them, or a random subset per pass."""
        chance = self.params.selection_chance
        if chance is None:
            xs = np.arange(max_x + 1)
            return [(y, xs) for y in range(max_y + 1)]

        for _ in range(MAX_SELECTION_PASSES):
            accepted = self.rng.random((max_y + 1, max_x + 1)) < chance
            if accepted.any():
                return [(y, np.flatnonzero(accepted[y])) for y in range(max_y + 1)
                        if accepted[y].any()]
        raise SynthesisError(
            f"No candidate accepted after {MAX_SELECTION_PASSES} passes with selection_chance={chance}")

    def select_candidate(self, buffer: np.ndarray, area: OverlapArea,
                         dest_coords: Tuple[int, int], pool=None) -> Patch:
        """Picks a source patch that fits the buffer content at `dest_coords`.

        Every anchor is scored first, then the candidates within TOLERANCE of
        the final minimum are kept and one of them is chosen at random.
        """
        src_h, src_w = self.source.shape[:2]
        p = self.params.patch_size
        max_x, max_y = src_w - p, src_h - p

        tasks = self._anchor_tasks(max_x, max_y)
        regions = self._overlap_regions(buffer, area, dest_coords)
        scorer = functools.partial(_top_level_worker_score_row, source=self.source,
                                   regions=regions, distance=self.params.distance)
        if pool is None:
            results = [scorer(task) for task in tasks]
        else:
            results = pool.map(scorer, tasks)

        if not results:
            raise SynthesisError("Candidate pool is empty")
        anchor_x = np.concatenate([xs for _, xs, _ in results])
        anchor_y = np.concatenate([np.full(len(xs), y) for y, xs, _ in results])
        errors = np.concatenate([errs for _, _, errs in results])
        if errors.size == 0:
            raise SynthesisError("Candidate pool is empty")

        try:
            best = OrderedFloat(np.min(errors))
        except ValueError as e:
            raise SynthesisError("Distance function produced NaN errors") from e
        if best.as_float() < 0:
            raise SynthesisError("Distance function produced negative errors")

        kept = np.flatnonzero(errors <= best.as_float() * (1 + TOLERANCE))
        self.rng.shuffle(kept)
        chosen = kept[0]
        return Patch((int(anchor_x[chosen]), int(anchor_y[chosen])), p)
