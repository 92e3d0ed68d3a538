"""
Handwritten Digit Recognizer

Normalises a freehand drawing of a digit onto the 28x28 MNIST canvas and
classifies it with a fixed, pre-trained three-layer perceptron.
"""

from .errors import DigitRecognizerError, InvalidModelError, OutOfBoundsError
from .inference import InferenceEngine, sigmoid, softmax
from .normalization import NormalizationTrace, Normalizer, encode_tensor
from .parameters import ModelParameters, ModelParameterStore, get_store, load_parameters
from .pipeline import DigitRecognizer, NormalizedDigit, Prediction
from .sampling import BoundingBox, PixelBuffer, locate_bounding_box, sample_intensity

__version__ = "1.0.0"
__author__ = "HNRS Team"

__all__ = [
    "BoundingBox",
    "DigitRecognizer",
    "DigitRecognizerError",
    "InferenceEngine",
    "InvalidModelError",
    "ModelParameterStore",
    "ModelParameters",
    "NormalizationTrace",
    "NormalizedDigit",
    "Normalizer",
    "OutOfBoundsError",
    "PixelBuffer",
    "Prediction",
    "encode_tensor",
    "get_store",
    "load_parameters",
    "locate_bounding_box",
    "sample_intensity",
    "sigmoid",
    "softmax",
]
