"""Visible data-space bounds of a viewport."""

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from canvaslod.services.errors import InvalidViewportState
from canvaslod.services.viewport import Viewport, ViewportState, require_finite


@dataclass(frozen=True)
class BoundsRect:
    """Integer rectangle of data space visible through a viewport.

    Always satisfies ``max_x >= min_x`` and ``max_y >= min_y``.
    """
    min_x: int
    max_x: int
    min_y: int
    max_y: int

    def contains(self, x: float, y: float) -> bool:
        """Whether a data-space point lies inside the rectangle (inclusive)."""
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def to_params(self) -> dict[str, int]:
        """Bounds under their REST query parameter names."""
        return {
            "minX": self.min_x,
            "maxX": self.max_x,
            "minY": self.min_y,
            "maxY": self.max_y,
        }


def compute_bounds(viewport: Viewport | ViewportState) -> BoundsRect:
    """Derive the visible rectangle from viewport position, size and scale.

    The visible extent is the pixel size divided by the scale, centered on
    the viewport position and floored to integers.

    Raises:
        InvalidViewportState: If the viewport scale is not positive, or the
            position, size or resulting extent is not finite
    """
    if not viewport.scale > 0:
        raise InvalidViewportState(f"Viewport scale must be > 0, got {viewport.scale}")

    half_width = viewport.width / viewport.scale / 2
    half_height = viewport.height / viewport.scale / 2
    edges = {
        "min_x": viewport.x - half_width,
        "max_x": viewport.x + half_width,
        "min_y": viewport.y - half_height,
        "max_y": viewport.y + half_height,
    }
    require_finite(**edges)

    return BoundsRect(**{name: math.floor(value) for name, value in edges.items()})


def elements_in_view(
    elements: Iterable[Mapping[str, Any]],
    viewport: Viewport | ViewportState,
) -> list[Mapping[str, Any]]:
    """Keep the elements whose ``position`` lies inside the visible bounds.

    Elements without a complete position are dropped. Input order is
    preserved.
    """
    bounds = compute_bounds(viewport)
    visible = []
    for element in elements:
        position = element.get("position") or {}
        x, y = position.get("x"), position.get("y")
        if x is None or y is None:
            continue
        if bounds.contains(x, y):
            visible.append(element)
    return visible
