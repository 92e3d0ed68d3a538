"""
Loading and validation of the fixed network parameters.

The parameter blob holds six arrays, ``wL1, bL1, wL2, bL2, wL3, bL3``, for
the three dense layers. It is loaded once per process through
:class:`ModelParameterStore` and then shared read-only by every inference.
"""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

import numpy as np
from loguru import logger

from .config import PARAMETERS_PATH
from .constants import INPUT_SIZE, LAYER_KEYS, NUM_CLASSES, PARAMETER_KEYS
from .errors import InvalidModelError

# Dataclass fields, in the same order as PARAMETER_KEYS.
FIELD_NAMES = ("w1", "b1", "w2", "b2", "w3", "b3")


@dataclass(frozen=True)
class ModelParameters:
    """
    Weights and biases of the three dense layers.

    Every construction path validates the layer shapes and stores private
    read-only float64 copies of the arrays.
    """

    w1: np.ndarray
    b1: np.ndarray
    w2: np.ndarray
    b2: np.ndarray
    w3: np.ndarray
    b3: np.ndarray
    version: Optional[str] = None

    def __post_init__(self) -> None:
        for field_name, key in zip(FIELD_NAMES, PARAMETER_KEYS):
            object.__setattr__(self, field_name, _frozen_array(key, getattr(self, field_name)))
        if self.version is not None:
            object.__setattr__(self, "version", str(self.version))

        expected_inputs = INPUT_SIZE
        for (w_key, b_key), (weights, bias) in zip(LAYER_KEYS, self.layers()):
            outputs, inputs = weights.shape
            if inputs != expected_inputs:
                raise InvalidModelError(
                    f"{w_key} expects {inputs} inputs but the previous layer produces {expected_inputs}"
                )
            if bias.shape != (outputs,):
                raise InvalidModelError(
                    f"{b_key} has shape {bias.shape}, expected ({outputs},) to match {w_key}"
                )
            expected_inputs = outputs
        if expected_inputs != NUM_CLASSES:
            raise InvalidModelError(
                f"Output layer produces {expected_inputs} values, expected {NUM_CLASSES}"
            )

    @property
    def hidden_sizes(self) -> Tuple[int, int]:
        return int(self.w1.shape[0]), int(self.w2.shape[0])

    def layers(self):
        """Yield ``(weights, bias)`` pairs in forward order."""
        yield self.w1, self.b1
        yield self.w2, self.b2
        yield self.w3, self.b3

    @classmethod
    def from_arrays(cls, arrays: Mapping[str, Any], version: Optional[str] = None) -> "ModelParameters":
        """Build parameters from a mapping of the six named blob arrays."""
        missing = [key for key in PARAMETER_KEYS if key not in arrays]
        if missing:
            raise InvalidModelError(f"Parameter blob is missing arrays: {', '.join(missing)}")
        fields = {name: arrays[key] for name, key in zip(FIELD_NAMES, PARAMETER_KEYS)}
        return cls(version=version, **fields)


def _frozen_array(key: str, value: Any) -> np.ndarray:
    try:
        arr = np.array(value, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidModelError(f"{key} is not a numeric array: {e}") from e
    expected_ndim = 2 if key.startswith("w") else 1
    if arr.ndim != expected_ndim:
        raise InvalidModelError(
            f"{key} must be {expected_ndim}-dimensional, got shape {arr.shape}"
        )
    if arr.size == 0:
        raise InvalidModelError(f"{key} is empty")
    if not np.all(np.isfinite(arr)):
        raise InvalidModelError(f"{key} contains non-finite values")
    arr.flags.writeable = False
    return arr


def load_parameters(path: str) -> ModelParameters:
    """Read and validate a parameter blob (``.json`` or ``.npz``)."""
    if not os.path.isfile(path):
        raise InvalidModelError(f"Model parameters not found: {path}")

    try:
        if path.endswith(".npz"):
            with np.load(path, allow_pickle=False) as archive:
                arrays = {key: archive[key] for key in archive.files}
            version = arrays.pop("version", None)
            if version is not None:
                version = str(version.item() if version.ndim == 0 else version)
        else:
            with open(path, "r", encoding="utf-8") as f:
                arrays = json.load(f)
            if not isinstance(arrays, dict):
                raise InvalidModelError("Parameter blob must be a JSON object of named arrays")
            version = arrays.get("version")
    except InvalidModelError:
        raise
    except (OSError, ValueError) as e:
        raise InvalidModelError(f"Could not read model parameters from {path}: {e}") from e

    return ModelParameters.from_arrays(arrays, version=version)


class ModelParameterStore:
    """
    Process-wide holder of the model parameters.

    :meth:`initialize` loads and validates the blob exactly once; afterwards
    the parameters are read-only and may be used from any thread. A failed
    initialisation is permanent: the store keeps refusing to serve.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._parameters: Optional[ModelParameters] = None
        self._error: Optional[InvalidModelError] = None

    @property
    def is_initialized(self) -> bool:
        return self._parameters is not None

    def initialize(self, path: Optional[str] = None) -> ModelParameters:
        with self._lock:
            if self._parameters is not None:
                return self._parameters
            if self._error is not None:
                raise self._error

            path = path or PARAMETERS_PATH
            try:
                params = load_parameters(path)
            except InvalidModelError as e:
                logger.error("model parameters rejected | path={} error={}", path, e)
                self._error = e
                raise

            h1, h2 = params.hidden_sizes
            logger.info(
                "model parameters loaded | path={} layers={}->{}->{}->{} version={}",
                path, INPUT_SIZE, h1, h2, NUM_CLASSES, params.version,
            )
            self._parameters = params
            return params

    def set_parameters(self, params: ModelParameters) -> ModelParameters:
        """Install parameters built in memory; they were validated on construction."""
        if not isinstance(params, ModelParameters):
            raise InvalidModelError(f"Expected ModelParameters, got {type(params).__name__}")
        with self._lock:
            if self._parameters is not None or self._error is not None:
                raise RuntimeError("Model parameter store is already initialised")
            self._parameters = params
            return params

    def get(self) -> ModelParameters:
        params = self._parameters
        if params is None:
            if self._error is not None:
                raise InvalidModelError(f"Model parameters are unavailable: {self._error}")
            raise InvalidModelError("Model parameters have not been initialised")
        return params


_default_store = ModelParameterStore()


def get_store() -> ModelParameterStore:
    return _default_store
