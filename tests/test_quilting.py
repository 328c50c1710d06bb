"""Tests for the image quilting engine: parameters, error surfaces, seams, synthesis."""
import numpy as np
import pytest

from conftest import colour_set, pixel_l1
from texsyn.common import OverlapArea, Patch
from texsyn.distance import l1, l2
from texsyn.errors import InvalidArguments, SynthesisError
from texsyn.quilting import (Quilter, QuilterParams, min_cost_horizontal_path,
                             min_cost_vertical_path, overlap_rects, patch_error_surface,
                             patch_rect_error, seam_mask)


# --- Parameters ---

@pytest.mark.parametrize("patch_size, overlap", [(2, 1), (5, 2), (8, 4), (64, 12), (9, 1)])
def test_params_accept_valid_patch_and_overlap(patch_size, overlap):
    params = QuilterParams((10, 10), patch_size, overlap)
    assert params.step == patch_size - overlap


@pytest.mark.parametrize("size, patch_size, overlap", [
    ((10, 10), 7, 4),   # patch_size < 2 * overlap
    ((10, 10), 8, 0),   # zero overlap
    ((0, 10), 8, 2),
    ((10, 0), 8, 2),
])
def test_params_reject_invalid_sizes(size, patch_size, overlap):
    with pytest.raises(InvalidArguments):
        QuilterParams(size, patch_size, overlap)


@pytest.mark.parametrize("chance", [0.0, -0.5, 1.5])
def test_params_reject_selection_chance_outside_unit_interval(chance):
    with pytest.raises(InvalidArguments):
        QuilterParams((10, 10), 8, 2, selection_chance=chance)


def test_params_errors_are_distinct():
    messages = set()
    for kwargs in ({'size': (0, 5), 'patch_size': 8, 'overlap': 2},
                   {'size': (5, 5), 'patch_size': 8, 'overlap': 0},
                   {'size': (5, 5), 'patch_size': 3, 'overlap': 2},
                   {'size': (5, 5), 'patch_size': 8, 'overlap': 2, 'selection_chance': 0.0}):
        with pytest.raises(InvalidArguments) as exc_info:
            QuilterParams(**kwargs)
        messages.add(str(exc_info.value))
    assert len(messages) == 4


def test_grid_size_uses_ceiling_division():
    params = QuilterParams((30, 25), 8, 2)
    assert params.grid_size() == (5, 5)
    assert QuilterParams((12, 13), 8, 2).grid_size() == (2, 3)


def test_quilter_rejects_patch_larger_than_source(noise_texture):
    with pytest.raises(InvalidArguments):
        Quilter(noise_texture, QuilterParams((40, 40), 21, 2))


def test_quilter_rejects_seed_outside_source(noise_texture):
    # noise_texture is 24 wide and 20 high
    with pytest.raises(InvalidArguments):
        Quilter(noise_texture, QuilterParams((40, 40), 8, 2, seed_coords=(17, 0)))
    with pytest.raises(InvalidArguments):
        Quilter(noise_texture, QuilterParams((40, 40), 8, 2, seed_coords=(0, 13)))
    Quilter(noise_texture, QuilterParams((40, 40), 8, 2, seed_coords=(16, 12)))


def test_quilter_rejects_grayscale_source():
    with pytest.raises(InvalidArguments):
        Quilter(np.zeros((20, 20), dtype=np.uint8), QuilterParams((40, 40), 8, 2))


# --- Rect error ---

def test_patch_rect_error_five_edits():
    """Five pixel edits inside a 3x3 region add up to 120 under L1."""
    a = np.zeros((5, 5, 3), dtype=np.uint8)
    b = np.zeros((6, 6, 3), dtype=np.uint8)
    b[2, 2] = [10, 0, 0]
    b[3, 3] = [0, 20, 0]
    b[4, 4] = [0, 0, 30]
    b[2, 4] = [5, 5, 10]
    b[4, 2] = [20, 10, 10]
    b[0, 0] = [255, 255, 255]  # outside the compared region
    assert patch_rect_error(l1, a, b, (1, 1), (2, 2), (3, 3)) == 120


@pytest.mark.parametrize("distance", [l1, l2])
def test_patch_rect_error_is_symmetric(distance, noise_texture):
    other = np.random.default_rng(5).integers(0, 256, size=(10, 12, 3), dtype=np.uint8)
    forward = patch_rect_error(distance, noise_texture, other, (3, 4), (1, 2), 6)
    backward = patch_rect_error(distance, other, noise_texture, (1, 2), (3, 4), 6)
    assert forward == pytest.approx(backward)
    assert forward > 0


def test_patch_rect_error_rejects_rect_outside_image(noise_texture):
    with pytest.raises(InvalidArguments):
        patch_rect_error(l1, noise_texture, noise_texture, (20, 0), (0, 0), 5)


# --- Error surface ---

def test_left_error_surface_on_marker():
    """A red marker in the first column shows up as 255 along the left band."""
    source = np.zeros((11, 11, 3), dtype=np.uint8)
    buffer = np.zeros((11, 11, 3), dtype=np.uint8)
    buffer[0:5, 0] = [255, 0, 0]

    surface = patch_error_surface(l1, source, Patch((0, 0), 5), buffer, (0, 0),
                                  OverlapArea.LEFT, 1)
    expected = np.zeros((5, 5))
    expected[0:5, 0] = 255
    np.testing.assert_array_equal(surface, expected)


def test_left_error_surface_with_single_pixel_metric():
    """A metric written for one pixel pair gives the same surface as a vectorised one."""
    source = np.zeros((11, 11, 3), dtype=np.uint8)
    buffer = np.zeros((11, 11, 3), dtype=np.uint8)
    buffer[0:5, 0] = [255, 0, 0]

    surface = patch_error_surface(pixel_l1, source, Patch((0, 0), 5), buffer, (0, 0),
                                  OverlapArea.LEFT, 1)
    expected = np.zeros((5, 5))
    expected[0:5, 0] = 255
    np.testing.assert_array_equal(surface, expected)


def test_error_surface_bands_per_area():
    source = np.zeros((6, 6, 3), dtype=np.uint8)
    buffer = np.full((6, 6, 3), 1, dtype=np.uint8)
    patch = Patch((0, 0), 6)

    top = patch_error_surface(l1, source, patch, buffer, (0, 0), OverlapArea.TOP, 2)
    assert np.all(top[:2] == 3) and not top[2:].any()

    left = patch_error_surface(l1, source, patch, buffer, (0, 0), OverlapArea.LEFT, 2)
    assert np.all(left[:, :2] == 3) and not left[:, 2:].any()

    top_left = patch_error_surface(l1, source, patch, buffer, (0, 0), OverlapArea.TOP_LEFT, 2)
    np.testing.assert_array_equal(top_left, np.maximum(top, left))


def test_top_left_rects_do_not_double_count_corner():
    rects = overlap_rects(OverlapArea.TOP_LEFT, 8, 2)
    covered = np.zeros((8, 8), dtype=int)
    for rect in rects:
        rect.view(covered)[...] += 1
    assert covered.max() == 1
    assert covered.sum() == 8 * 2 + 6 * 2


# --- Seams ---

def test_vertical_path_follows_cheapest_route():
    surface = np.full((6, 6), 10.0)
    route = [(0, 0), (1, 1), (2, 2), (2, 3), (1, 4), (0, 5)]
    for x, y in route:
        surface[y, x] = 0
    assert min_cost_vertical_path(surface, 3) == route


def test_horizontal_path_is_transpose_of_vertical():
    surface = np.full((6, 6), 10.0)
    route = [(0, 0), (1, 1), (2, 2), (3, 2), (4, 1), (5, 0)]
    for x, y in route:
        surface[y, x] = 0
    assert min_cost_horizontal_path(surface, 3) == route


def test_path_prefers_same_column_on_ties():
    assert min_cost_vertical_path(np.zeros((5, 5)), 2) == [(0, y) for y in range(5)]


def test_path_prefers_left_when_both_diagonals_tie():
    surface = np.array([
        [0.0, 5.0, 0.0],
        [9.0, 0.0, 9.0],
    ])
    assert min_cost_vertical_path(surface, 3) == [(0, 0), (1, 1)]


@pytest.mark.parametrize("seed", range(5))
def test_paths_are_monotonic_and_stay_in_band(seed):
    surface = np.random.default_rng(seed).random((12, 12)) * 100
    overlap = 4
    vertical = min_cost_vertical_path(surface, overlap)
    assert [y for _, y in vertical] == list(range(12))
    assert all(0 <= x < overlap for x, _ in vertical)
    assert all(abs(a[0] - b[0]) <= 1 for a, b in zip(vertical, vertical[1:]))

    horizontal = min_cost_horizontal_path(surface, overlap)
    assert [x for x, _ in horizontal] == list(range(12))
    assert all(0 <= y < overlap for _, y in horizontal)


def test_vertical_path_rejects_band_wider_than_surface():
    with pytest.raises(InvalidArguments):
        min_cost_vertical_path(np.zeros((4, 3)), 4)


def test_seam_mask_vertical_only():
    path = [(1, 0), (2, 1), (0, 2), (1, 3)]
    mask = seam_mask(4, vertical_path=path)
    expected = np.array([
        [0, 1, 1, 1],
        [0, 0, 1, 1],
        [1, 1, 1, 1],
        [0, 1, 1, 1],
    ], dtype=bool)
    np.testing.assert_array_equal(mask, expected)


def test_seam_mask_reconciles_corner():
    vertical = [(1, 0), (1, 1), (0, 2), (0, 3)]
    horizontal = [(0, 0), (1, 1), (2, 1), (3, 0)]
    mask = seam_mask(4, vertical, horizontal)
    expected = np.array([
        [0, 0, 0, 1],
        [0, 1, 1, 1],
        [1, 1, 1, 1],
        [1, 1, 1, 1],
    ], dtype=bool)
    np.testing.assert_array_equal(mask, expected)


def test_seam_mask_without_paths_takes_everything():
    assert seam_mask(3).all()


# --- Candidate selection ---

def _buffer_with_source_patch(source, anchor, dest, patch_size):
    buffer = np.zeros((30, 40, 3), dtype=np.uint8)
    ax, ay = anchor
    dx, dy = dest
    buffer[dy:dy + patch_size, dx:dx + patch_size] = source[ay:ay + patch_size, ax:ax + patch_size]
    return buffer


@pytest.mark.parametrize("area", list(OverlapArea))
def test_select_candidate_finds_exact_match(noise_texture, area):
    buffer = _buffer_with_source_patch(noise_texture, (9, 6), (12, 5), 8)
    quilter = Quilter(noise_texture, QuilterParams((40, 40), 8, 2), rng=0, processes=1,
                      show_progress=False)
    assert quilter.select_candidate(buffer, area, (12, 5)) == Patch((9, 6), 8)


def test_select_candidate_probabilistic_returns_valid_anchor(noise_texture):
    buffer = _buffer_with_source_patch(noise_texture, (9, 6), (12, 5), 8)
    quilter = Quilter(noise_texture, QuilterParams((40, 40), 8, 2, selection_chance=0.05),
                      rng=3, processes=1, show_progress=False)
    for _ in range(5):
        patch = quilter.select_candidate(buffer, OverlapArea.TOP_LEFT, (12, 5))
        assert 0 <= patch.coords[0] <= 24 - 8
        assert 0 <= patch.coords[1] <= 20 - 8


def test_select_candidate_full_chance_matches_exhaustive(noise_texture):
    buffer = _buffer_with_source_patch(noise_texture, (2, 11), (12, 5), 8)
    quilter = Quilter(noise_texture, QuilterParams((40, 40), 8, 2, selection_chance=1.0),
                      rng=3, processes=1, show_progress=False)
    assert quilter.select_candidate(buffer, OverlapArea.LEFT, (12, 5)) == Patch((2, 11), 8)


def _nan_distance(p1, p2):
    return np.full(np.broadcast_shapes(np.shape(p1), np.shape(p2))[:-1], np.nan)


def test_select_candidate_reports_nan_errors(noise_texture):
    quilter = Quilter(noise_texture, QuilterParams((40, 40), 8, 2, distance=_nan_distance),
                      rng=0, processes=1, show_progress=False)
    with pytest.raises(SynthesisError):
        quilter.quilt_image()


# --- Synthesis ---

@pytest.mark.parametrize("size", [(30, 25), (8, 8), (1, 1), (17, 40)])
def test_quilt_image_has_requested_size_and_no_holes(noise_texture, size):
    quilter = Quilter(noise_texture, QuilterParams(size, 8, 2), rng=11, processes=1,
                      show_progress=False)
    result = quilter.quilt_image()
    assert result.shape == (size[1], size[0], 3)
    assert result.dtype == np.uint8
    # The source has no black pixel, so a black pixel would be an unfilled hole
    assert np.all(result.reshape(-1, 3).any(axis=1))
    assert colour_set(result) <= colour_set(noise_texture)


def test_quilt_image_starts_with_seed_patch(noise_texture):
    quilter = Quilter(noise_texture, QuilterParams((30, 30), 8, 2, seed_coords=(4, 7)),
                      rng=0, processes=1, show_progress=False)
    result = quilter.quilt_image()
    # Only the overlap bands of later patches can touch the seed, its inner part survives
    np.testing.assert_array_equal(result[:6, :6], noise_texture[7:13, 4:10])


def test_quilt_image_of_flat_source_is_flat():
    source = np.full((12, 12, 3), [10, 200, 30], dtype=np.uint8)
    result = Quilter(source, QuilterParams((25, 19), 6, 2), rng=1, processes=1,
                     show_progress=False).quilt_image()
    assert np.all(result == [10, 200, 30])


def test_quilt_image_is_deterministic_for_a_seed(noise_texture):
    params = QuilterParams((30, 30), 8, 2, seed_coords=(0, 0))
    first = Quilter(noise_texture, params, rng=42, processes=1, show_progress=False).quilt_image()
    second = Quilter(noise_texture, params, rng=42, processes=1, show_progress=False).quilt_image()
    np.testing.assert_array_equal(first, second)


def test_quilt_image_probabilistic_mode(noise_texture):
    params = QuilterParams((26, 22), 8, 2, selection_chance=0.3, distance=l2)
    result = Quilter(noise_texture, params, rng=8, processes=1, show_progress=False).quilt_image()
    assert result.shape == (22, 26, 3)
    assert colour_set(result) <= colour_set(noise_texture)


def test_quilt_image_with_worker_pool_matches_in_process(noise_texture):
    params = QuilterParams((20, 20), 8, 2)
    in_process = Quilter(noise_texture, params, rng=21, processes=1, show_progress=False).quilt_image()
    pooled = Quilter(noise_texture, params, rng=21, processes=2, show_progress=False).quilt_image()
    np.testing.assert_array_equal(in_process, pooled)


def test_quilter_rejects_non_positive_processes(noise_texture):
    with pytest.raises(InvalidArguments):
        Quilter(noise_texture, QuilterParams((20, 20), 8, 2), processes=0)


def test_quilt_image_with_single_pixel_metric_matches_vectorised(noise_texture):
    vectorised = Quilter(noise_texture, QuilterParams((14, 14), 6, 2, distance=l1),
                         rng=8, processes=1, show_progress=False).quilt_image()
    per_pixel = Quilter(noise_texture, QuilterParams((14, 14), 6, 2, distance=pixel_l1),
                        rng=8, processes=1, show_progress=False).quilt_image()
    np.testing.assert_array_equal(vectorised, per_pixel)


def test_quilt_image_with_unpicklable_metric_scores_in_process(noise_texture, caplog):
    params = QuilterParams((20, 20), 8, 2, distance=lambda a, b: l1(a, b))
    expected = Quilter(noise_texture, params, rng=21, processes=1, show_progress=False).quilt_image()
    with caplog.at_level("WARNING", logger="texsyn.quilting"):
        result = Quilter(noise_texture, params, rng=21, processes=2, show_progress=False).quilt_image()
    np.testing.assert_array_equal(result, expected)
    assert "cannot be sent to workers" in caplog.text
