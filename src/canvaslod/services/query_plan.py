"""Declarative data-access planning from viewport state.

The planner combines the semantic level and the visible bounds of a
viewport into an ``AccessDescriptor``: which access pattern to use, how many
rows to fetch, and how to group or order them. It also exposes the REST path
template and query parameters for the same viewport.

The descriptor is the contract. Turning it into SQL is the job of
``canvaslod.services.sql.build_query``; no query text is built here.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping
from urllib.parse import urlencode

from canvaslod.services.bounds import BoundsRect, compute_bounds
from canvaslod.services.errors import InvalidThresholdTable
from canvaslod.services.levels import (
    GRANULARITY,
    LevelClassifier,
    SemanticLevel,
    lookup_level,
    require_exhaustive,
)
from canvaslod.services.viewport import Viewport, ViewportState

logger = logging.getLogger("canvaslod.query")


class AccessPattern(str, Enum):
    """How data is fetched for a level."""
    RAW = "raw"                    # Individual rows, no aggregation
    RELATIONSHIP = "relationship"  # Rows joined with their related records
    ENTITY = "entity"              # Entity rows ordered by recency
    AGGREGATE = "aggregate"        # Grouped by category with count/avg/sum
    SUMMARY = "summary"            # One aggregate row, no grouping


PATTERN_BY_LEVEL = require_exhaustive(
    {
        SemanticLevel.QUANTUM: AccessPattern.RAW,
        SemanticLevel.ATOMIC: AccessPattern.RAW,
        SemanticLevel.MOLECULAR: AccessPattern.RELATIONSHIP,
        SemanticLevel.STANDARD: AccessPattern.ENTITY,
        SemanticLevel.SYSTEM: AccessPattern.AGGREGATE,
        SemanticLevel.UNIVERSAL: AccessPattern.SUMMARY,
    },
    "access pattern",
)

PATH_BY_PATTERN: dict[AccessPattern, str] = {
    AccessPattern.RAW: "/api/data/raw",
    AccessPattern.RELATIONSHIP: "/api/data/relationships",
    AccessPattern.ENTITY: "/api/data/entities",
    AccessPattern.AGGREGATE: "/api/data/aggregates",
    AccessPattern.SUMMARY: "/api/data/summary",
}

DEFAULT_ROW_LIMITS: dict[SemanticLevel, int] = {
    level: granularity.row_limit for level, granularity in GRANULARITY.items()
}

RELATIONS_SUFFIX = "_relations"


@dataclass(frozen=True)
class AccessDescriptor:
    """What data to fetch for a viewport, independent of any query language.

    Attributes:
        pattern: The access pattern for the level
        level: The semantic level the viewport classified into
        bounds: Visible data-space rectangle to filter on
        row_limit: Maximum rows to return
        resource: Name of the resource (table) to read
        group_by: Column to group by (aggregate pattern only)
        order_by: (column, direction) ordering, if any
        join: Related resource to join (relationship pattern only)
        aggregates: Aggregate functions to compute, empty for row patterns
    """
    pattern: AccessPattern
    level: SemanticLevel
    bounds: BoundsRect
    row_limit: int
    resource: str
    group_by: str | None = None
    order_by: tuple[str, str] | None = None
    join: str | None = None
    aggregates: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.value,
            "level": self.level.value,
            "bounds": self.bounds.to_params(),
            "rowLimit": self.row_limit,
            "resource": self.resource,
            "groupBy": self.group_by,
            "orderBy": list(self.order_by) if self.order_by else None,
            "join": self.join,
            "aggregates": list(self.aggregates),
        }


def _format_number(value: float) -> str:
    """Render integral floats without a trailing '.0' (1.0 -> '1')."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def path_for(pattern: AccessPattern | str) -> str:
    """REST path template for an access pattern."""
    return PATH_BY_PATTERN[AccessPattern(pattern)]


class QueryPlanner:
    """Plans data access for viewports against one threshold table."""

    def __init__(
        self,
        classifier: LevelClassifier | None = None,
        row_limits: Mapping[SemanticLevel | str, int] | None = None,
    ):
        """Initialize the planner.

        Args:
            classifier: Level classifier (default 6-level table)
            row_limits: Per-level row limits; must cover every level

        Raises:
            InvalidThresholdTable: If row_limits misses a level or holds a
                negative or non-integer limit
        """
        self.classifier = classifier or LevelClassifier()
        limits = require_exhaustive(
            DEFAULT_ROW_LIMITS if row_limits is None else row_limits, "row limit"
        )
        for level, limit in limits.items():
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
                raise InvalidThresholdTable(
                    f"Row limit for '{level.value}' must be a non-negative integer, got {limit!r}"
                )
        self.row_limits = limits

    def row_limit_for(self, level: SemanticLevel | str) -> int:
        return lookup_level(self.row_limits, level, "row limit")

    def pattern_for(self, level: SemanticLevel | str) -> AccessPattern:
        return lookup_level(PATTERN_BY_LEVEL, level, "access pattern")

    def plan(self, viewport: Viewport | ViewportState, resource_name: str) -> AccessDescriptor:
        """Build the access descriptor for ``viewport`` over ``resource_name``."""
        if not resource_name:
            raise ValueError("Resource name must not be empty")

        level = self.classifier.classify(viewport.scale)
        bounds = compute_bounds(viewport)
        pattern = self.pattern_for(level)

        group_by = None
        order_by = None
        join = None
        aggregates: tuple[str, ...] = ()

        if pattern == AccessPattern.RELATIONSHIP:
            join = f"{resource_name}{RELATIONS_SUFFIX}"
        elif pattern == AccessPattern.ENTITY:
            order_by = ("created_at", "desc")
        elif pattern == AccessPattern.AGGREGATE:
            group_by = "category"
            order_by = ("count", "desc")
            aggregates = ("count", "avg", "sum")
        elif pattern == AccessPattern.SUMMARY:
            aggregates = ("count", "count_distinct", "min", "max", "avg")

        descriptor = AccessDescriptor(
            pattern=pattern,
            level=level,
            bounds=bounds,
            row_limit=self.row_limit_for(level),
            resource=resource_name,
            group_by=group_by,
            order_by=order_by,
            join=join,
            aggregates=aggregates,
        )
        logger.debug(
            f"Planned {pattern.value} access on {resource_name!r} at level "
            f"{level.value} (limit {descriptor.row_limit})"
        )
        return descriptor

    def query_params(
        self,
        viewport: Viewport | ViewportState,
        *,
        include_size: bool = False,
    ) -> dict[str, str]:
        """Query parameters in canonical order: x, y, scale, level, bounds.

        With ``include_size`` the viewport ``width`` and ``height`` follow,
        so a server re-planning from the parameters gets the same bounds for
        a viewport that is not the server's default size.
        """
        level = self.classifier.classify(viewport.scale)
        bounds = compute_bounds(viewport)
        params = {
            "x": _format_number(viewport.x),
            "y": _format_number(viewport.y),
            "scale": _format_number(viewport.scale),
            "level": level.value,
        }
        params.update({name: str(value) for name, value in bounds.to_params().items()})
        if include_size:
            params["width"] = _format_number(viewport.width)
            params["height"] = _format_number(viewport.height)
        return params

    def path(self, viewport: Viewport | ViewportState) -> str:
        """REST path template for the viewport's level."""
        level = self.classifier.classify(viewport.scale)
        return path_for(self.pattern_for(level))

    def endpoint(
        self,
        viewport: Viewport | ViewportState,
        *,
        include_size: bool = False,
    ) -> str:
        """Full endpoint URL (path and query string) for the viewport."""
        params = self.query_params(viewport, include_size=include_size)
        return f"{self.path(viewport)}?{urlencode(params)}"
