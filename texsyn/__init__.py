"""Texture synthesis from a small exemplar.

This package implements two texture synthesis engines sharing the same
geometry and distance primitives:

- the Efros & Freeman image quilting algorithm (`Quilter`), which stitches
  source patches together along minimum-error seams;
- the Efros & Leung non-parametric sampling algorithm (`PixelSearch`), which
  grows the output one pixel at a time.

Core classes and functions are exposed for use.
"""

__version__ = '0.1.0'

from .errors import TexsynError, InvalidArguments, SynthesisError
from .distance import l1, l2, pixelwise
from .common import OrderedFloat, Rect, Patch, OverlapArea
from .quilting import Quilter, QuilterParams
from .pixel_search import PixelSearch, PixelSearchParams
from .pyramid import GaussianPyramid
from .evaluation import evaluate_texture_quality

# Utility functions
from .utils import (
    load_texture,
    save_image,
    visualize_results
)

# Public API exposed by `from texsyn import *`
__all__ = [
    'TexsynError',
    'InvalidArguments',
    'SynthesisError',
    'l1',
    'l2',
    'pixelwise',
    'OrderedFloat',
    'Rect',
    'Patch',
    'OverlapArea',
    'Quilter',
    'QuilterParams',
    'PixelSearch',
    'PixelSearchParams',
    'GaussianPyramid',
    'evaluate_texture_quality',
    'load_texture',
    'save_image',
    'visualize_results'
]
