"""
Forward pass of the fixed three-layer perceptron (784 -> H1 -> H2 -> 10).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from .constants import INPUT_SIZE
from .parameters import ModelParameters, ModelParameterStore, get_store

_SIGMOID_LOW = np.finfo(np.float64).tiny
_SIGMOID_HIGH = 1.0 - np.finfo(np.float64).epsneg


def sigmoid(x: np.ndarray) -> np.ndarray:
    """
    Elementwise 1 / (1 + e^-x), evaluated without overflow for any finite x.

    Saturated results are clipped to the open interval (0, 1).
    """
    x = np.asarray(x, dtype=np.float64)
    e = np.exp(-np.abs(x))
    y = np.where(x >= 0, 1.0 / (1.0 + e), e / (1.0 + e))
    return np.clip(y, _SIGMOID_LOW, _SIGMOID_HIGH)


def softmax(z: np.ndarray) -> np.ndarray:
    """Softmax over the last axis; the max is subtracted before exponentiating."""
    z = np.asarray(z, dtype=np.float64)
    shifted = z - np.max(z, axis=-1, keepdims=True)
    e = np.exp(shifted)
    return e / np.sum(e, axis=-1, keepdims=True)


@dataclass(frozen=True)
class LayerActivations:
    """Activations of every layer for one input (``a3`` are the probabilities)."""

    a1: np.ndarray
    a2: np.ndarray
    a3: np.ndarray


class InferenceEngine:
    """Stateless evaluator of the network; safe to share between threads."""

    def __init__(
        self,
        parameters: Optional[ModelParameters] = None,
        store: Optional[ModelParameterStore] = None,
    ) -> None:
        self._parameters = parameters
        self._store = store

    @property
    def parameters(self) -> ModelParameters:
        if self._parameters is not None:
            return self._parameters
        return (self._store or get_store()).get()

    def forward_pass(self, x: np.ndarray) -> LayerActivations:
        """Run all three layers on inputs of shape (784,) or (n, 784)."""
        x = np.asarray(x, dtype=np.float64)
        if x.shape[-1:] != (INPUT_SIZE,) or x.ndim > 2:
            raise ValueError(f"Network input must have {INPUT_SIZE} values per sample, got shape {x.shape}")

        p = self.parameters
        a1 = sigmoid(x @ p.w1.T + p.b1)
        a2 = sigmoid(a1 @ p.w2.T + p.b2)
        a3 = softmax(a2 @ p.w3.T + p.b3)
        return LayerActivations(a1=a1, a2=a2, a3=a3)

    def forward(self, x: np.ndarray) -> np.ndarray:
        """Return the class-probability vector for a 784-value input."""
        return self.forward_pass(x).a3
