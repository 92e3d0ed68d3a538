"""
Exceptions raised by the digit recogniser.
"""


class DigitRecognizerError(Exception):
    """Base class for all recogniser errors."""


class OutOfBoundsError(DigitRecognizerError, ValueError):
    """A requested sample region does not lie fully inside the pixel buffer."""

    def __init__(self, region, width: int, height: int) -> None:
        self.region = tuple(region)
        self.width = width
        self.height = height
        super().__init__(
            f"Region {self.region} (x, y, w, h) is outside the {width}x{height} buffer"
        )


class InvalidModelError(DigitRecognizerError, ValueError):
    """The model parameter blob is missing, unreadable or shape-inconsistent."""
