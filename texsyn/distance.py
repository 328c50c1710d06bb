"""Colour distance functions.

Each function compares two RGB pixels and returns a non-negative scalar.
`l1` and `l2` also accept arrays of pixels (channels on the last axis) and
broadcast, returning one distance per pixel pair. `pixelwise` lets the
engines call any distance on whole blocks, vectorised or not.
"""

import numpy as np


def l1(p1, p2):
    """L1 distance, also known as Manhattan distance."""
    diff = np.asarray(p1, dtype=np.float64) - np.asarray(p2, dtype=np.float64)
    return np.sum(np.abs(diff), axis=-1)


def l2(p1, p2):
    """L2 distance, also known as Euclidean distance."""
    diff = np.asarray(p1, dtype=np.float64) - np.asarray(p2, dtype=np.float64)
    return np.sqrt(np.sum(diff * diff, axis=-1))


def pixelwise(distance, a, b) -> np.ndarray:
    """Distance between every pixel pair of two broadcast-compatible blocks.

    `distance` is first called on the whole blocks. If it does not return
    one value per pixel pair (a metric written for two single pixels returns
    a single float), it is applied pixel by pixel instead.

    Returns:
        float64 array of shape broadcast(a, b) without the channel axis.
    """
    a, b = np.broadcast_arrays(np.asarray(a), np.asarray(b))
    shape = a.shape[:-1]
    try:
        result = np.asarray(distance(a, b), dtype=np.float64)
    except (TypeError, ValueError, IndexError):
        result = None
    if result is not None and result.shape == shape:
        return result

    channels = a.shape[-1]
    flat_a, flat_b = a.reshape(-1, channels), b.reshape(-1, channels)
    values = np.fromiter((distance(p, q) for p, q in zip(flat_a, flat_b)),
                         dtype=np.float64, count=len(flat_a))
    return values.reshape(shape)


METRICS = {
    'l1': l1,
    'l2': l2,
}
