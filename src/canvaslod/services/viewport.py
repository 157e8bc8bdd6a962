"""Viewport into an infinite 2D canvas.

The viewport is the only stateful piece of the LOD engine. Everything else
(classification, bounds, collapsing, query planning) is a pure function of a
viewport or of a ``ViewportState`` snapshot taken from one.

Scale semantics: 1.0 is the default view, values below 1 are zoomed out and
values above 1 are zoomed in. The scale is clamped to ``[MIN_SCALE,
MAX_SCALE]`` after every mutation.
"""

import logging
import math
from dataclasses import dataclass, replace

from canvaslod.services.errors import InvalidViewportState, InvalidZoomFactor

logger = logging.getLogger("canvaslod.viewport")

MIN_SCALE = 0.001
MAX_SCALE = 1000.0

DEFAULT_WIDTH = 1920.0
DEFAULT_HEIGHT = 1080.0


def clamp_scale(scale: float) -> float:
    """Clamp a scale value into the allowed viewport range."""
    return max(MIN_SCALE, min(MAX_SCALE, scale))


def require_finite(**values: float) -> None:
    """Raise ``InvalidViewportState`` naming the first non-finite value."""
    for name, value in values.items():
        if not math.isfinite(value):
            raise InvalidViewportState(f"Viewport {name} must be finite, got {value}")


@dataclass(frozen=True)
class ViewportState:
    """Immutable snapshot of a viewport.

    Readers on other threads should work from a snapshot rather than a live
    ``Viewport`` that a UI loop may be mutating.
    """
    x: float
    y: float
    scale: float
    width: float
    height: float


@dataclass
class Viewport:
    """A camera over the infinite canvas.

    Attributes:
        x: Horizontal position of the viewport center in data space
        y: Vertical position of the viewport center in data space
        scale: Zoom scale, always within [MIN_SCALE, MAX_SCALE]
        width: Viewport width in pixels
        height: Viewport height in pixels
    """
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT

    def __post_init__(self) -> None:
        if math.isnan(self.scale):
            raise InvalidViewportState("Viewport scale must be a number")
        require_finite(x=self.x, y=self.y, width=self.width, height=self.height)
        if self.width < 0 or self.height < 0:
            raise InvalidViewportState(
                f"Viewport size must be non-negative, got {self.width}x{self.height}"
            )
        self.scale = clamp_scale(self.scale)

    def pan(self, dx: float, dy: float) -> None:
        """Move the viewport by a delta. The canvas is unbounded.

        Raises:
            InvalidViewportState: If the delta or the resulting position is
                not finite; the position is left unchanged
        """
        require_finite(dx=dx, dy=dy)
        x, y = self.x + dx, self.y + dy
        require_finite(x=x, y=y)
        self.x, self.y = x, y
        logger.debug(f"Pan by ({dx}, {dy}) -> {self}")

    def zoom(self, factor: float) -> None:
        """Multiply the scale by ``factor`` (>1 zooms in, <1 zooms out).

        Raises:
            InvalidZoomFactor: If factor is not strictly positive
        """
        if math.isnan(factor) or factor <= 0:
            raise InvalidZoomFactor(f"Zoom factor must be > 0, got {factor}")
        self.scale = clamp_scale(self.scale * factor)
        logger.debug(f"Zoom by {factor} -> {self}")

    def zoom_to(self, new_scale: float) -> None:
        """Set an absolute scale, clamped to the allowed range."""
        if math.isnan(new_scale):
            raise InvalidZoomFactor("Target scale must be a number")
        self.scale = clamp_scale(new_scale)
        logger.debug(f"Zoom to {new_scale} -> {self}")

    def reset(self) -> None:
        """Return to the origin at the default scale. Size is kept."""
        self.x = 0.0
        self.y = 0.0
        self.scale = 1.0
        logger.debug(f"Reset -> {self}")

    def snapshot(self) -> ViewportState:
        """Return an immutable copy of the current state."""
        return ViewportState(
            x=self.x,
            y=self.y,
            scale=self.scale,
            width=self.width,
            height=self.height,
        )

    def copy(self) -> "Viewport":
        """Return an independent viewport with the same state."""
        return replace(self)

    def __str__(self) -> str:
        return f"Viewport(x:{self.x:g}, y:{self.y:g}, scale:{self.scale:g}x)"
