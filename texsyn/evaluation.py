"""
Quality metrics for synthesized textures.
"""

import logging

import numpy as np
import cv2
from skimage.metrics import structural_similarity as ssim

from .rng import as_rng

logger = logging.getLogger(__name__)


def compute_ssim_patches(original, synthesized, patch_size=64, num_patches=20, rng=None):
    """
    Compute SSIM between random patches from original and synthesized textures.

    Parameters:
    -----------
    original : ndarray
        Source exemplar (H, W, 3)
    synthesized : ndarray
        Synthesized texture (H, W, 3)
    patch_size : int
        Size of patches to compare
    num_patches : int
        Number of random patch pairs to sample
    rng : Generator, int or None
        Random source for the patch positions

    Returns:
    --------
    float
        Average SSIM value, 0.0 if the images are too small to compare
    """
    rng = as_rng(rng)
    h_orig, w_orig = original.shape[:2]
    h_synth, w_synth = synthesized.shape[:2]

    patch_size = min(patch_size, h_orig, w_orig, h_synth, w_synth)
    if patch_size < 8:  # Minimum reasonable patch size
        return 0.0
    win_size = min(7, patch_size // 2 * 2 - 1)

    ssim_values = []
    for _ in range(num_patches):
        i_orig = rng.integers(0, h_orig - patch_size + 1)
        j_orig = rng.integers(0, w_orig - patch_size + 1)
        patch_orig = original[i_orig:i_orig+patch_size, j_orig:j_orig+patch_size]

        i_synth = rng.integers(0, h_synth - patch_size + 1)
        j_synth = rng.integers(0, w_synth - patch_size + 1)
        patch_synth = synthesized[i_synth:i_synth+patch_size, j_synth:j_synth+patch_size]

        ssim_values.append(ssim(patch_orig, patch_synth, data_range=255,
                                win_size=win_size, channel_axis=2))

    return float(np.mean(ssim_values))


def compute_histogram_distance(original, synthesized, bins=64):
    """
    Chi-square distance between the colour histograms of two textures.

    Returns:
    --------
    float
        Average histogram distance across channels, 0 for identical histograms
    """
    distances = []

    for c in range(3):
        hist_orig = cv2.calcHist([np.ascontiguousarray(original)], [c], None, [bins], [0, 256])
        hist_synth = cv2.calcHist([np.ascontiguousarray(synthesized)], [c], None, [bins], [0, 256])

        hist_orig = hist_orig.flatten() / hist_orig.sum()
        hist_synth = hist_synth.flatten() / hist_synth.sum()

        distance = 0.5 * np.sum((hist_orig - hist_synth)**2 / (hist_orig + hist_synth + 1e-10))
        distances.append(distance)

    return float(np.mean(distances))


def compute_edge_consistency(original, synthesized):
    """1 minus the difference in Canny edge density between the two textures."""
    orig_edges = cv2.Canny(cv2.cvtColor(np.ascontiguousarray(original), cv2.COLOR_RGB2GRAY), 50, 150)
    synth_edges = cv2.Canny(cv2.cvtColor(np.ascontiguousarray(synthesized), cv2.COLOR_RGB2GRAY), 50, 150)

    orig_edge_density = np.count_nonzero(orig_edges) / orig_edges.size
    synth_edge_density = np.count_nonzero(synth_edges) / synth_edges.size
    return float(1.0 - abs(orig_edge_density - synth_edge_density))


def evaluate_texture_quality(original, synthesized, verbose=True, rng=None):
    """
    Evaluate synthesized texture quality.

    Returns:
    --------
    dict
        'ssim', 'histogram_distance', 'edge_consistency' and 'overall_score'
    """
    ssim_score = compute_ssim_patches(original, synthesized, rng=rng)
    hist_distance = compute_histogram_distance(original, synthesized)
    edge_consistency = compute_edge_consistency(original, synthesized)

    results = {
        'ssim': ssim_score,
        'histogram_distance': hist_distance,
        'edge_consistency': edge_consistency,
        'overall_score': (ssim_score + edge_consistency) / 2 - hist_distance / 10
    }

    if verbose:
        print("\n" + "="*50)
        print("TEXTURE QUALITY EVALUATION")
        print("="*50)
        print(f"SSIM Score:           {ssim_score:.4f} (higher is better)")
        print(f"Histogram Distance:   {hist_distance:.4f} (lower is better)")
        print(f"Edge Consistency:     {edge_consistency:.4f} (higher is better)")
        print(f"Overall Score:        {results['overall_score']:.4f}")
        print("="*50)

    return results


def compare_parameters(source, parameter_sets, output_size=(200, 200), rng=None, processes=None):
    """
    Quilt `source` with several parameter sets and score each result.

    Parameters:
    -----------
    source : ndarray
        Exemplar texture
    parameter_sets : list of dict
        Keyword arguments for QuilterParams, without `size`
    output_size : tuple
        (width, height) of each synthesized texture
    rng : Generator, int or None
        Random source shared by every run

    Returns:
    --------
    (dict, str)
        Results keyed by 'params_<i>', and the key of the best scoring set
    """
    from .quilting import Quilter, QuilterParams

    rng = as_rng(rng)
    results = {}
    for i, kwargs in enumerate(parameter_sets):
        logger.info("Testing parameter set %d: %s", i + 1, kwargs)
        params = QuilterParams(output_size, **kwargs)
        quilter = Quilter(source, params, rng=rng, processes=processes, show_progress=False)
        synthesized = quilter.quilt_image()
        quality = evaluate_texture_quality(source, synthesized, verbose=False, rng=rng)
        results[f"params_{i+1}"] = {
            'parameters': kwargs,
            'synthesized': synthesized,
            'quality': quality
        }
        logger.info("Overall score: %.4f", quality['overall_score'])

    best_key = max(results, key=lambda k: results[k]['quality']['overall_score'])
    logger.info("Best parameters: %s", results[best_key]['parameters'])
    return results, best_key
