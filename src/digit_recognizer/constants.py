"""
Fixed geometry and model-shape constants for the digit recogniser.

These mirror the conventions of the MNIST training data and are not
runtime-configurable.
"""

from __future__ import annotations

from typing import List, Tuple

# Pixels whose intensity exceeds this value count as ink.
INK_THRESHOLD: float = 0.1

# Margin added around the ink bounding box, as a fraction of its longer side.
MARGIN_RATIO: float = 0.15

# Longest side of the scaled digit inside the canonical grid.
FIT_SIZE: int = 24

# Side of the canonical image fed to the network.
CANONICAL_SIZE: int = 28
CANONICAL_CENTER: float = CANONICAL_SIZE / 2

INPUT_SIZE: int = CANONICAL_SIZE * CANONICAL_SIZE
NUM_CLASSES: int = 10

# Names of the six arrays inside a parameter blob, per layer.
LAYER_KEYS: List[Tuple[str, str]] = [
    ("wL1", "bL1"),
    ("wL2", "bL2"),
    ("wL3", "bL3"),
]
PARAMETER_KEYS: List[str] = [key for pair in LAYER_KEYS for key in pair]

# Drawing surface defaults (CSS pixels), matching the web canvas.
SURFACE_SIZE: Tuple[int, int] = (280, 280)
STROKE_WIDTH: int = 24

BACKGROUND_RGBA: Tuple[int, int, int, int] = (255, 255, 255, 255)
INK_RGBA: Tuple[int, int, int, int] = (0, 0, 0, 255)
