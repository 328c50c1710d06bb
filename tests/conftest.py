import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest


@pytest.fixture
def noise_texture():
    """20x24 RGB noise without any pure black pixel."""
    rng = np.random.default_rng(1234)
    return rng.integers(1, 256, size=(20, 24, 3), dtype=np.uint8)


@pytest.fixture
def small_texture():
    """8x8 RGB noise for the (slow) pixel search engine."""
    rng = np.random.default_rng(99)
    return rng.integers(1, 256, size=(8, 8, 3), dtype=np.uint8)


def colour_set(image):
    return {tuple(int(c) for c in p) for p in image.reshape(-1, 3)}


def pixel_l1(p1, p2):
    """L1 written for one pair of pixels only."""
    return float(np.sum(np.abs(np.asarray(p1, dtype=float) - np.asarray(p2, dtype=float))))
