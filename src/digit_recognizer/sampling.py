"""
Pixel sampling and ink localisation.

Turns an RGBA pixel buffer from the drawing surface into an ink-intensity grid
(white background -> 0, full black -> 1) and finds the bounding box of the
drawn strokes.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple, Union

import numpy as np
from PIL import Image

from .constants import BACKGROUND_RGBA, INK_THRESHOLD
from .errors import OutOfBoundsError

Region = Tuple[int, int, int, int]


@dataclass(frozen=True)
class PixelBuffer:
    """Read-only RGBA pixels, stored as an (height, width, 4) uint8 array."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected an (H, W, 4) RGBA array, got shape {pixels.shape}")
        if pixels.shape[0] == 0 or pixels.shape[1] == 0:
            raise ValueError("Pixel buffer has invalid dimensions")
        if pixels.dtype != np.uint8:
            pixels = np.clip(pixels, 0, 255).astype(np.uint8)
        else:
            pixels = pixels.copy()
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def from_bytes(cls, width: int, height: int, data: bytes) -> "PixelBuffer":
        """Wrap a raw RGBA byte string as laid out by a canvas ``getImageData``."""
        expected = int(width) * int(height) * 4
        if len(data) != expected:
            raise ValueError(
                f"RGBA data for {width}x{height} needs {expected} bytes, got {len(data)}"
            )
        arr = np.frombuffer(data, dtype=np.uint8).reshape(int(height), int(width), 4)
        return cls(arr)

    @classmethod
    def from_image(cls, image: Image.Image) -> "PixelBuffer":
        """Build a buffer from a Pillow image, flattening transparency onto white."""
        rgba = image.convert("RGBA")
        background = Image.new("RGBA", rgba.size, BACKGROUND_RGBA)
        flattened = Image.alpha_composite(background, rgba)
        return cls(np.array(flattened))

    @classmethod
    def from_file(cls, source: Union[str, bytes, io.BytesIO]) -> "PixelBuffer":
        """Load an image file (path or encoded bytes) into a buffer."""
        if isinstance(source, bytes):
            source = io.BytesIO(source)
        with Image.open(source) as img:
            return cls.from_image(img)


def sample_intensity(buffer: PixelBuffer, region: Optional[Region] = None) -> np.ndarray:
    """
    Convert a region of the buffer into an ink-intensity grid.

    Args:
        buffer: Source pixels.
        region: ``(x, y, width, height)``; the whole buffer when omitted.

    Returns:
        float32 array of shape (height, width) with values in [0, 1].

    Raises:
        OutOfBoundsError: if the region is not fully inside the buffer.
    """
    if region is None:
        region = (0, 0, buffer.width, buffer.height)
    x, y, w, h = (int(v) for v in region)
    if w <= 0 or h <= 0 or x < 0 or y < 0 or x + w > buffer.width or y + h > buffer.height:
        raise OutOfBoundsError((x, y, w, h), buffer.width, buffer.height)

    rgb = buffer.pixels[y:y + h, x:x + w, :3].astype(np.float32)
    gray = rgb.sum(axis=2) / 3.0
    return np.clip(1.0 - gray / 255.0, 0.0, 1.0)


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel rectangle around the ink; see :attr:`EMPTY`."""

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    EMPTY: ClassVar["BoundingBox"]

    @property
    def is_empty(self) -> bool:
        return self.max_x < self.min_x or self.max_y < self.min_y

    @property
    def width(self) -> int:
        return 0 if self.is_empty else self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return 0 if self.is_empty else self.max_y - self.min_y + 1

    def contains(self, x: int, y: int) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


BoundingBox.EMPTY = BoundingBox(0, 0, -1, -1)


def locate_bounding_box(grid: np.ndarray, threshold: float = INK_THRESHOLD) -> BoundingBox:
    """Return the minimal box enclosing every pixel with intensity > threshold."""
    ink = np.asarray(grid) > threshold
    cols = np.flatnonzero(ink.any(axis=0))
    if cols.size == 0:
        return BoundingBox.EMPTY
    rows = np.flatnonzero(ink.any(axis=1))
    return BoundingBox(int(cols[0]), int(rows[0]), int(cols[-1]), int(rows[-1]))
