"""
Headless drawing surface driven by pointer gestures.

The surface is an explicit two-state machine (idle / drawing). Strokes are
rendered into a white Pillow canvas at device-pixel resolution; when a
gesture ends the whole canvas is handed to the listener as a
:class:`~digit_recognizer.sampling.PixelBuffer`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Tuple, Union

from PIL import Image, ImageDraw

from .constants import BACKGROUND_RGBA, INK_RGBA, STROKE_WIDTH, SURFACE_SIZE
from .sampling import PixelBuffer


class SessionState(Enum):
    IDLE = "idle"
    DRAWING = "drawing"


@dataclass(frozen=True)
class GestureStart:
    x: float
    y: float


@dataclass(frozen=True)
class GestureMove:
    x: float
    y: float


@dataclass(frozen=True)
class GestureEnd:
    pass


@dataclass(frozen=True)
class SurfaceResized:
    width: int
    height: int
    device_pixel_ratio: float = 1.0


Event = Union[GestureStart, GestureMove, GestureEnd, SurfaceResized]
GestureListener = Callable[[PixelBuffer], Any]


class DrawingSession:
    """
    Canvas plus gesture state.

    Coordinates of gestures are in CSS pixels; the backing image is
    ``round(size * device_pixel_ratio)`` pixels on each side.
    """

    def __init__(
        self,
        width: int = SURFACE_SIZE[0],
        height: int = SURFACE_SIZE[1],
        device_pixel_ratio: float = 1.0,
        on_gesture_end: Optional[GestureListener] = None,
        stroke_width: int = STROKE_WIDTH,
    ) -> None:
        self.stroke_width = stroke_width
        self.on_gesture_end = on_gesture_end
        self.state = SessionState.IDLE
        self._last_point: Optional[Tuple[float, float]] = None
        self._setup(width, height, device_pixel_ratio)

    def _setup(self, width: int, height: int, device_pixel_ratio: float) -> None:
        self.dpr = float(device_pixel_ratio) if device_pixel_ratio else 1.0
        self.css_size = (width, height)
        w = max(1, int(round(width * self.dpr)))
        h = max(1, int(round(height * self.dpr)))
        self.image = Image.new("RGBA", (w, h), BACKGROUND_RGBA)
        self.draw = ImageDraw.Draw(self.image)

    @property
    def size(self) -> Tuple[int, int]:
        """Backing canvas size in device pixels."""
        return self.image.size

    def handle(self, event: Event) -> Any:
        """Dispatch one event; returns the listener result on a completed gesture."""
        if isinstance(event, GestureStart):
            self.start(event.x, event.y)
        elif isinstance(event, GestureMove):
            self.move(event.x, event.y)
        elif isinstance(event, GestureEnd):
            return self.end()
        elif isinstance(event, SurfaceResized):
            self.resize(event.width, event.height, event.device_pixel_ratio)
        else:
            raise TypeError(f"Unknown drawing event: {event!r}")
        return None

    def start(self, x: float, y: float) -> None:
        self.state = SessionState.DRAWING
        self._last_point = self._to_device(x, y)

    def move(self, x: float, y: float) -> None:
        if self.state is not SessionState.DRAWING:
            return
        point = self._to_device(x, y)
        if self._last_point is not None:
            self._stroke(self._last_point, point)
        self._last_point = point

    def end(self) -> Any:
        if self.state is not SessionState.DRAWING:
            return None
        self.state = SessionState.IDLE
        self._last_point = None
        buffer = self.snapshot()
        if self.on_gesture_end is not None:
            return self.on_gesture_end(buffer)
        return buffer

    def resize(self, width: int, height: int, device_pixel_ratio: float = 1.0) -> None:
        """Reallocate the canvas; existing artwork and any open gesture are dropped."""
        self.state = SessionState.IDLE
        self._last_point = None
        self._setup(width, height, device_pixel_ratio)

    def clear(self) -> None:
        self.draw.rectangle([(0, 0), self.image.size], fill=BACKGROUND_RGBA)
        self._last_point = None

    def snapshot(self) -> PixelBuffer:
        return PixelBuffer.from_image(self.image)

    def _to_device(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.dpr, y * self.dpr

    def _stroke(self, p0: Tuple[float, float], p1: Tuple[float, float]) -> None:
        width = max(1, int(round(self.stroke_width * self.dpr)))
        self.draw.line([p0, p1], fill=INK_RGBA, width=width)
        # Round caps and joins
        r = width / 2.0
        for x, y in (p0, p1):
            self.draw.ellipse([x - r, y - r, x + r, y + r], fill=INK_RGBA)
