"""Tests for the texture quality metrics."""
import numpy as np
import pytest

from texsyn.evaluation import (compare_parameters, compute_edge_consistency,
                               compute_histogram_distance, compute_ssim_patches,
                               evaluate_texture_quality)


def test_ssim_of_flat_textures_is_one():
    flat = np.full((32, 32, 3), 90, dtype=np.uint8)
    assert compute_ssim_patches(flat, flat.copy(), patch_size=16, num_patches=3, rng=0) == pytest.approx(1.0)


def test_ssim_of_tiny_textures_is_zero():
    tiny = np.zeros((6, 6, 3), dtype=np.uint8)
    assert compute_ssim_patches(tiny, tiny) == 0.0


def test_histogram_distance():
    black = np.zeros((8, 8, 3), dtype=np.uint8)
    white = np.full((8, 8, 3), 255, dtype=np.uint8)
    assert compute_histogram_distance(black, black) == pytest.approx(0.0)
    assert compute_histogram_distance(black, white) == pytest.approx(1.0)


def test_edge_consistency_of_identical_textures(noise_texture):
    assert compute_edge_consistency(noise_texture, noise_texture) == pytest.approx(1.0)


def test_evaluate_texture_quality_keys(noise_texture):
    results = evaluate_texture_quality(noise_texture, noise_texture, verbose=False, rng=0)
    assert set(results) == {'ssim', 'histogram_distance', 'edge_consistency', 'overall_score'}
    assert results['histogram_distance'] == pytest.approx(0.0)


def test_evaluate_texture_quality_prints_report(noise_texture, capsys):
    evaluate_texture_quality(noise_texture, noise_texture, verbose=True, rng=0)
    assert "TEXTURE QUALITY EVALUATION" in capsys.readouterr().out


def test_compare_parameters_picks_a_best_set(noise_texture):
    parameter_sets = [{'patch_size': 8, 'overlap': 2}, {'patch_size': 6, 'overlap': 3}]
    results, best_key = compare_parameters(noise_texture, parameter_sets, output_size=(16, 16),
                                           rng=0, processes=1)
    assert set(results) == {'params_1', 'params_2'}
    assert best_key in results
    assert results['params_1']['synthesized'].shape == (16, 16, 3)


def test_quality_report_of_a_quilt(noise_texture):
    """Scores a quilted texture through the package entry points."""
    import texsyn

    params = texsyn.QuilterParams((24, 20), 8, 2)
    quilted = texsyn.Quilter(noise_texture, params, rng=3, processes=1, show_progress=False).quilt_image()
    metrics = texsyn.evaluate_texture_quality(noise_texture, quilted, verbose=False, rng=0)
    assert texsyn.evaluate_texture_quality is evaluate_texture_quality
    assert 0 <= metrics['edge_consistency'] <= 1
