"""
Normalisation of a drawn digit onto the 28x28 MNIST-style canvas.

The geometry follows the convention used to build the training data: crop the
ink with a margin, shrink (never enlarge) so the longer side fits 24 pixels,
then place it on a zero background so its intensity centre of mass sits at
(14, 14).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np
from loguru import logger

from .constants import CANONICAL_CENTER, CANONICAL_SIZE, FIT_SIZE, INPUT_SIZE, MARGIN_RATIO
from .sampling import BoundingBox, Region


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, like JavaScript Math.round."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class NormalizationTrace:
    """Geometry chosen while normalising one image."""

    crop: Region
    scale: float
    scaled_size: Tuple[int, int]
    centroid: Tuple[float, float]
    offset: Tuple[int, int]
    clamped: bool


class Normalizer:
    """Maps an arbitrary-size ink region onto the canonical grid."""

    def __init__(self) -> None:
        self.size = CANONICAL_SIZE
        self.fit_size = FIT_SIZE
        self.margin_ratio = MARGIN_RATIO

    def blank(self) -> np.ndarray:
        return np.zeros((self.size, self.size), dtype=np.float32)

    def crop_region(self, box: BoundingBox, grid_shape: Tuple[int, int]) -> Region:
        """
        Expand the box by the margin, clamped to the grid extents.

        Only the origin is clamped first; the extent stays box + 2 * margin
        unless that runs past the far edge of the grid.
        """
        grid_h, grid_w = grid_shape[:2]
        margin = int(math.floor(self.margin_ratio * max(box.width, box.height)))
        x0 = max(0, box.min_x - margin)
        y0 = max(0, box.min_y - margin)
        w = min(grid_w - x0, box.width + 2 * margin)
        h = min(grid_h - y0, box.height + 2 * margin)
        return x0, y0, w, h

    def scale_factor(self, crop_w: int, crop_h: int) -> float:
        return min(1.0, self.fit_size / float(max(crop_w, crop_h)))

    def rescale(self, crop: np.ndarray, scale: float) -> np.ndarray:
        """Shrink uniformly by ``scale`` with area averaging."""
        h, w = crop.shape[:2]
        new_w = max(1, round_half_up(w * scale))
        new_h = max(1, round_half_up(h * scale))
        if (new_w, new_h) == (w, h):
            return crop.astype(np.float32, copy=True)
        resized = cv2.resize(
            crop.astype(np.float32), (new_w, new_h), interpolation=cv2.INTER_AREA
        )
        return np.clip(resized, 0.0, 1.0)

    def centroid(self, region: np.ndarray) -> Tuple[float, float]:
        """Intensity-weighted centre using pixel centres (x + 0.5, y + 0.5)."""
        h, w = region.shape[:2]
        M = cv2.moments(region.astype(np.float32), binaryImage=False)
        if M["m00"] <= 0:
            return w / 2.0, h / 2.0
        return M["m10"] / M["m00"] + 0.5, M["m01"] / M["m00"] + 0.5

    def placement(self, centroid: Tuple[float, float], scaled_size: Tuple[int, int]) -> Tuple[int, int, bool]:
        """Offset that moves the centroid to the grid centre, kept inside the grid."""
        cx, cy = centroid
        scaled_w, scaled_h = scaled_size
        dx = round_half_up(CANONICAL_CENTER - cx)
        dy = round_half_up(CANONICAL_CENTER - cy)
        clamped_dx = min(max(0, dx), self.size - scaled_w)
        clamped_dy = min(max(0, dy), self.size - scaled_h)
        return clamped_dx, clamped_dy, (clamped_dx, clamped_dy) != (dx, dy)

    def normalize_with_trace(self, grid: np.ndarray, box: BoundingBox) -> Tuple[np.ndarray, NormalizationTrace | None]:
        """Like :meth:`normalize` but also returns the geometry that was used."""
        if box.is_empty:
            return self.blank(), None

        x, y, w, h = self.crop_region(box, grid.shape)
        crop = grid[y:y + h, x:x + w]
        scale = self.scale_factor(w, h)
        scaled = self.rescale(crop, scale)
        scaled_h, scaled_w = scaled.shape
        cx, cy = self.centroid(scaled)
        dx, dy, clamped = self.placement((cx, cy), (scaled_w, scaled_h))

        canvas = self.blank()
        canvas[dy:dy + scaled_h, dx:dx + scaled_w] = scaled

        trace = NormalizationTrace(
            crop=(x, y, w, h),
            scale=scale,
            scaled_size=(scaled_w, scaled_h),
            centroid=(cx, cy),
            offset=(dx, dy),
            clamped=clamped,
        )
        logger.debug(
            "normalize | box={} crop={} scale={:.4f} scaled={} centroid=({:.2f}, {:.2f}) offset={} clamped={}",
            box, trace.crop, scale, trace.scaled_size, cx, cy, trace.offset, clamped,
        )
        return canvas, trace

    def normalize(self, grid: np.ndarray, box: BoundingBox) -> np.ndarray:
        """Return the 28x28 canonical image for ``grid`` given its ink box."""
        canvas, _trace = self.normalize_with_trace(grid, box)
        return canvas


def encode_tensor(image: np.ndarray) -> np.ndarray:
    """Flatten a 28x28 canonical image row-major into the 784-value network input."""
    arr = np.asarray(image)
    if arr.shape != (CANONICAL_SIZE, CANONICAL_SIZE):
        raise ValueError(
            f"Canonical image must be {CANONICAL_SIZE}x{CANONICAL_SIZE}, got shape {arr.shape}"
        )
    vector = arr.reshape(INPUT_SIZE)
    return vector.copy()
