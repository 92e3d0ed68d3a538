"""
End-to-end recogniser: pixel buffer in, digit probabilities out.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from loguru import logger

from .constants import NUM_CLASSES
from .inference import InferenceEngine
from .normalization import NormalizationTrace, Normalizer, encode_tensor, round_half_up
from .parameters import ModelParameters, ModelParameterStore
from .sampling import BoundingBox, PixelBuffer, locate_bounding_box, sample_intensity


@dataclass(frozen=True)
class NormalizedDigit:
    """Canonical 28x28 image together with how it was derived."""

    image: np.ndarray
    box: BoundingBox
    trace: Optional[NormalizationTrace]

    @property
    def is_blank(self) -> bool:
        return self.box.is_empty

    def tensor(self) -> np.ndarray:
        return encode_tensor(self.image)


@dataclass(frozen=True)
class Prediction:
    probabilities: np.ndarray
    hidden1: np.ndarray
    hidden2: np.ndarray

    @property
    def digit(self) -> int:
        return int(np.argmax(self.probabilities))

    @property
    def confidence(self) -> float:
        return float(self.probabilities[self.digit])

    def ranked(self) -> List[Tuple[int, float]]:
        """Digits ordered from most to least probable."""
        order = sorted(range(NUM_CLASSES), key=lambda d: self.probabilities[d], reverse=True)
        return [(d, float(self.probabilities[d])) for d in order]

    def percentages(self) -> Dict[int, int]:
        return {d: round_half_up(float(p) * 100) for d, p in enumerate(self.probabilities)}


class DigitRecognizer:
    """
    Normalise a drawing and classify it.

    Holds no per-call state, so a single instance can serve concurrent calls.
    When ``parameters`` is omitted they are read from ``store`` (by default
    the process-wide store), which must have been initialised beforehand.
    """

    def __init__(
        self,
        parameters: Optional[ModelParameters] = None,
        store: Optional[ModelParameterStore] = None,
    ) -> None:
        self.normalizer = Normalizer()
        self.engine = InferenceEngine(parameters, store)

    def preprocess(self, buffer: PixelBuffer) -> NormalizedDigit:
        grid = sample_intensity(buffer)
        box = locate_bounding_box(grid)
        image, trace = self.normalizer.normalize_with_trace(grid, box)
        return NormalizedDigit(image=image, box=box, trace=trace)

    def predict(self, buffer: PixelBuffer) -> Optional[Prediction]:
        """Return the prediction, or ``None`` when nothing has been drawn."""
        digit = self.preprocess(buffer)
        if digit.is_blank:
            logger.debug("predict | blank {}x{} buffer, skipping inference", buffer.width, buffer.height)
            return None

        activations = self.engine.forward_pass(digit.tensor())
        prediction = Prediction(
            probabilities=activations.a3,
            hidden1=activations.a1,
            hidden2=activations.a2,
        )
        logger.debug(
            "predict | digit={} confidence={:.3f} box={}",
            prediction.digit, prediction.confidence, digit.box,
        )
        return prediction

    def predict_many(
        self, buffers: Iterable[PixelBuffer], max_workers: Optional[int] = None
    ) -> List[Optional[Prediction]]:
        """Predict a batch of independent buffers in worker threads, keeping order."""
        buffers = list(buffers)
        if not buffers:
            return []
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            return list(pool.map(self.predict, buffers))
