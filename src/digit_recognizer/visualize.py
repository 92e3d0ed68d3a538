"""
Debug plots of the normalisation stages.
"""

from __future__ import annotations

from typing import Optional

import matplotlib.pyplot as plt
import numpy as np

from .constants import CANONICAL_CENTER
from .normalization import Normalizer
from .sampling import PixelBuffer, locate_bounding_box, sample_intensity


def plot_normalization_steps(buffer: PixelBuffer, output_path: Optional[str] = None):
    """Show intensity grid, crop, scaled region and canonical image side by side."""
    normalizer = Normalizer()
    grid = sample_intensity(buffer)
    box = locate_bounding_box(grid)
    canonical, trace = normalizer.normalize_with_trace(grid, box)

    fig, axes = plt.subplots(1, 4, figsize=(16, 4))

    axes[0].imshow(grid, cmap='gray_r', vmin=0, vmax=1)
    axes[0].set_title('Intensity')
    if not box.is_empty:
        axes[0].add_patch(plt.Rectangle(
            (box.min_x - 0.5, box.min_y - 0.5), box.width, box.height,
            fill=False, edgecolor='tab:red', linewidth=1.5,
        ))

    if trace is None:
        crop = np.zeros((1, 1), dtype=np.float32)
        scaled = crop
    else:
        x, y, w, h = trace.crop
        crop = grid[y:y + h, x:x + w]
        scaled = normalizer.rescale(crop, trace.scale)
    axes[1].imshow(crop, cmap='gray_r', vmin=0, vmax=1)
    axes[1].set_title('Crop with margin')
    axes[2].imshow(scaled, cmap='gray_r', vmin=0, vmax=1)
    axes[2].set_title(f'Scaled {scaled.shape[1]}x{scaled.shape[0]}')

    axes[3].imshow(canonical, cmap='gray_r', vmin=0, vmax=1)
    axes[3].plot([CANONICAL_CENTER - 0.5], [CANONICAL_CENTER - 0.5], marker='+', color='tab:blue')
    axes[3].set_title('Canonical 28x28')

    for ax in axes:
        ax.axis('off')

    plt.tight_layout()
    if output_path:
        fig.savefig(output_path)
        plt.close(fig)
    return fig
