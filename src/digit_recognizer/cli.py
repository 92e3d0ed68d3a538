"""
Command-line interface for the digit recogniser.
"""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from .config import PARAMETERS_PATH, setup_logging
from .constants import NUM_CLASSES
from .errors import DigitRecognizerError
from .parameters import get_store, load_parameters
from .pipeline import DigitRecognizer
from .sampling import PixelBuffer


def predict_image(image_path: str, parameters_path: str, top: int = 10) -> int:
    """Classify a single image file and print the ranked digits."""
    get_store().initialize(parameters_path)
    recognizer = DigitRecognizer()
    buffer = PixelBuffer.from_file(image_path)

    print(f"Processing image: {image_path} ({buffer.width}x{buffer.height})")
    prediction = recognizer.predict(buffer)
    if prediction is None:
        print("No digit drawn")
        return 1

    print(f"Predicted digit: {prediction.digit} (confidence: {prediction.confidence:.3f})")
    for digit, probability in prediction.ranked()[:top]:
        print(f"  {digit}: {probability * 100:5.1f}%")
    return 0


def check_model(parameters_path: str) -> int:
    """Validate a parameter blob and report its layer sizes."""
    params = load_parameters(parameters_path)
    h1, h2 = params.hidden_sizes
    print(f"✓ Model parameters valid: {parameters_path}")
    print(f"  Layers: 784 -> {h1} -> {h2} -> 10")
    if params.version:
        print(f"  Version: {params.version}")
    return 0


def show_steps(image_path: str, output_path: str | None) -> int:
    from .visualize import plot_normalization_steps  # matplotlib is only needed here

    buffer = PixelBuffer.from_file(image_path)
    plot_normalization_steps(buffer, output_path)
    if output_path:
        print(f"Saved normalisation steps to {output_path}")
    else:
        import matplotlib.pyplot as plt
        plt.show()
    return 0


def _top_count(value: str) -> int:
    try:
        count = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if not 1 <= count <= NUM_CLASSES:
        raise argparse.ArgumentTypeError(f"must be between 1 and {NUM_CLASSES}, got {count}")
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digit-recognizer",
        description="Handwritten digit recognition with a fixed feed-forward network",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_predict = sub.add_parser("predict", help="Classify a drawn digit image")
    p_predict.add_argument("image", help="Path to the image file")
    p_predict.add_argument("--parameters", default=PARAMETERS_PATH, help="Model parameter blob (.json or .npz)")
    p_predict.add_argument("--top", type=_top_count, default=NUM_CLASSES, help="Number of ranked digits to print")

    p_check = sub.add_parser("check-model", help="Validate a model parameter blob")
    p_check.add_argument("--parameters", default=PARAMETERS_PATH, help="Model parameter blob (.json or .npz)")

    p_steps = sub.add_parser("show-steps", help="Plot the normalisation stages of an image")
    p_steps.add_argument("image", help="Path to the image file")
    p_steps.add_argument("--output", default=None, help="Save the figure instead of showing it")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        if args.command == "predict":
            return predict_image(args.image, args.parameters, args.top)
        if args.command == "check-model":
            return check_model(args.parameters)
        return show_steps(args.image, args.output)
    except (DigitRecognizerError, OSError) as e:
        logger.error("{} failed | error={}", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
