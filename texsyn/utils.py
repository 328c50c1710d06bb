"""
Utility functions for the texture synthesis project.

This module provides helper functions for loading, saving, and visualizing
textures, synthesis results and quilting seams.
"""

import os
from typing import Optional, Sequence, Tuple

import numpy as np
import matplotlib
import matplotlib.pyplot as plt
from matplotlib.gridspec import GridSpec
from PIL import Image


def load_texture(path: str) -> np.ndarray:
    """Loads a texture image from a file path into a NumPy array (RGB).

    Args:
        path: Path to the texture image file.

    Returns:
        Texture image as a NumPy array (H, W, 3), RGB format.

    Raises:
        ValueError: If the image cannot be loaded.
    """
    try:
        image = Image.open(path)
        if image.mode != 'RGB': # Ensure image is in RGB format
            image = image.convert('RGB')
        return np.array(image)
    except Exception as e:
        raise ValueError(f"Could not load texture from {path}: {e}") from e


def save_image(image: np.ndarray, path: str):
    """Saves a NumPy image array to a file.

    Args:
        image: NumPy array representing the image (H, W, 3 or H, W).
        path: Output file path.

    Raises:
        ValueError: If the image cannot be saved.
    """
    try:
        # Ensure image data is uint8 and clipped to 0-255 range
        if image.dtype != np.uint8:
            image = np.clip(image, 0, 255).astype(np.uint8)

        dir_path = os.path.dirname(path)
        if dir_path:
            os.makedirs(dir_path, exist_ok=True)

        Image.fromarray(image).save(path)
    except Exception as e:
        raise ValueError(f"Could not save image to {path}: {e}") from e


def _figure_to_array(fig) -> np.ndarray:
    """Renders a Matplotlib figure and returns it as an RGB array."""
    fig.canvas.draw()
    rgba = np.asarray(fig.canvas.buffer_rgba())
    return rgba[:, :, :3].copy()


def visualize_results(original_texture: np.ndarray, synthesized_texture: np.ndarray,
                      title: Optional[str] = None, save_path: Optional[str] = None) -> np.ndarray:
    """Visualizes original and synthesized textures side-by-side using Matplotlib.

    Args:
        original_texture: The source exemplar.
        synthesized_texture: The generated texture.
        title: Optional title for the entire visualization.
        save_path: Optional path to save the visualization image.

    Returns:
        A NumPy array representing the visualization image (RGB).
    """
    fig = plt.figure(figsize=(12, 6))

    plt.subplot(1, 2, 1)
    plt.imshow(original_texture)
    plt.title('Original Texture')
    plt.axis('off')

    plt.subplot(1, 2, 2)
    plt.imshow(synthesized_texture)
    plt.title('Synthesized Texture')
    plt.axis('off')

    if title:
        plt.suptitle(title, fontsize=16)

    plt.tight_layout()

    if save_path:
        save_dir = os.path.dirname(save_path)
        if save_dir:
            os.makedirs(save_dir, exist_ok=True)
        plt.savefig(save_path, dpi=300, bbox_inches='tight')

    img = _figure_to_array(fig)
    plt.close(fig)
    return img


def visualize_seams(error_surface: np.ndarray,
                    vertical_path: Optional[Sequence[Tuple[int, int]]] = None,
                    horizontal_path: Optional[Sequence[Tuple[int, int]]] = None,
                    mask: Optional[np.ndarray] = None) -> np.ndarray:
    """Visualizes an error surface with the seams found through it.

    Args:
        error_surface: 2D error surface of a candidate patch.
        vertical_path: (x, y) points of the vertical seam, if any.
        horizontal_path: (x, y) points of the horizontal seam, if any.
        mask: Optional seam mask; True marks pixels taken from the candidate.

    Returns:
        A NumPy array representing the visualization image (RGB).
    """
    n_plots = 2 if mask is not None else 1
    fig = plt.figure(figsize=(5 * n_plots, 5))
    gs = GridSpec(1, n_plots, figure=fig)

    ax1 = fig.add_subplot(gs[0, 0])
    ax1.imshow(error_surface, cmap=matplotlib.colormaps['magma'])
    if vertical_path:
        xs, ys = zip(*vertical_path)
        ax1.plot(xs, ys, color='cyan', linewidth=1.5, label='vertical seam')
    if horizontal_path:
        xs, ys = zip(*horizontal_path)
        ax1.plot(xs, ys, color='lime', linewidth=1.5, label='horizontal seam')
    if vertical_path or horizontal_path:
        ax1.legend(loc='lower right', fontsize='small')
    ax1.set_title('Error surface')
    ax1.axis('off')

    if mask is not None:
        ax2 = fig.add_subplot(gs[0, 1])
        ax2.imshow(mask, cmap='gray', vmin=0, vmax=1)
        ax2.set_title('Candidate pixels')
        ax2.axis('off')

    plt.tight_layout()
    img = _figure_to_array(fig)
    plt.close(fig)
    return img
