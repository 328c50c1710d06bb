"""Gaussian image pyramids."""

import logging
import math
from typing import Iterator, List

import cv2
import numpy as np

from .errors import InvalidArguments
from .utils import save_image

logger = logging.getLogger(__name__)

BLUR_SIGMA = 3.0


def is_power_of_2(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def downsample(image: np.ndarray) -> np.ndarray:
    """Keeps every other pixel in both directions."""
    h, w = image.shape[:2]
    return image[0:2 * (h // 2):2, 0:2 * (w // 2):2].copy()


def gaussian_blur(image: np.ndarray, sigma: float = BLUR_SIGMA) -> np.ndarray:
    # ksize (0, 0) lets OpenCV derive the kernel size from sigma
    return cv2.GaussianBlur(image, (0, 0), sigmaX=sigma, sigmaY=sigma,
                            borderType=cv2.BORDER_REFLECT)


class GaussianPyramid:
    """A base image and `levels` progressively blurred and halved sub-levels.

    Args:
        base: Image whose width and height are powers of two.
        levels: Number of sub-levels; must be below log2 of the smallest dimension.

    Raises:
        InvalidArguments: If the dimensions are not powers of two or there are
            too many levels for the image size.
    """

    def __init__(self, base: np.ndarray, levels: int):
        h, w = base.shape[:2]
        logger.debug("Building pyramid over a %dx%d image", w, h)
        if not is_power_of_2(w) or not is_power_of_2(h):
            raise InvalidArguments("Image dimensions must be a power of 2")
        if levels < 0 or math.log2(min(w, h)) <= levels:
            raise InvalidArguments("Too many levels for image size")

        self.base_image = base
        self.sublevels: List[np.ndarray] = []
        previous = base
        for _ in range(levels):
            previous = downsample(gaussian_blur(previous))
            self.sublevels.append(previous)

    @property
    def levels(self) -> int:
        return len(self.sublevels)

    def level(self, i: int) -> np.ndarray:
        """Level `i`, where 0 is the base image."""
        if i == 0:
            return self.base_image
        return self.sublevels[i - 1]

    def __iter__(self) -> Iterator[np.ndarray]:
        yield self.base_image
        yield from self.sublevels

    def __len__(self) -> int:
        return self.levels + 1

    def save(self, path_base: str):
        save_image(self.base_image, f"{path_base}_base.png")
        for i, image in enumerate(self.sublevels):
            save_image(image, f"{path_base}_{i}.png")
