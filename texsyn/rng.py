"""Random number sources.

Every random draw made by the engines goes through a `numpy.random.Generator`
created here, so a caller can pass a seed and get a reproducible run.
"""

import numpy as np

# Seed of the generator returned by `new_deterministic_rng`.
DETERMINISTIC_SEED = 0x5EED


def new_rng(seed) -> np.random.Generator:
    """Create a new random number generator with the specified seed."""
    return np.random.default_rng(seed)


def new_rng_random_seed() -> np.random.Generator:
    """Create a new random number generator with a random seed."""
    return np.random.default_rng()


def new_deterministic_rng() -> np.random.Generator:
    """Create a generator which always returns the same sequence."""
    return np.random.default_rng(DETERMINISTIC_SEED)


def as_rng(rng=None) -> np.random.Generator:
    """Turns None, an int seed or an existing generator into a generator."""
    if rng is None:
        return new_rng_random_seed()
    if isinstance(rng, np.random.Generator):
        return rng
    return new_rng(rng)


def random_image_rgb(width: int, height: int, rng=None) -> np.ndarray:
    """An RGB image of uniform random noise."""
    rng = as_rng(rng)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)
