"""Semantic levels and scale classification.

A semantic level is a named, ordered bucket of zoom scale. Levels are
assigned from a ``ThresholdTable``: an ordered list of half-open scale
intervals ``[min, max)`` that partitions ``(0, inf)``, the last interval
being open-ended. A scale that lies exactly on a boundary belongs to the
higher level.

Two named tables ship with the engine and share the same classifier:

- ``PHYSICS_LEVELS`` (default, 6 levels):
  quantum < 0.01 <= atomic < 0.1 <= molecular < 0.5 <= standard < 2
  <= system < 10 <= universal
- ``GENERIC_LEVELS`` (4 levels):
  universal < 0.1 <= system < 0.5 <= standard < 2 <= atomic

Per-level lookup tables (granularity, descriptions, rendering hints) are
keyed by the full ``SemanticLevel`` enum and must be exhaustive over it;
this is checked when a table is built.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, TypeVar

from canvaslod.services.cache import SimpleCache, cache_key_for_scale
from canvaslod.services.errors import (
    InvalidThresholdTable,
    InvalidViewportState,
    UnknownSemanticLevel,
)

logger = logging.getLogger("canvaslod.levels")

V = TypeVar("V")


class SemanticLevel(str, Enum):
    """Named semantic levels, from finest to coarsest in the default table."""
    QUANTUM = "quantum"
    ATOMIC = "atomic"
    MOLECULAR = "molecular"
    STANDARD = "standard"
    SYSTEM = "system"
    UNIVERSAL = "universal"


def coerce_level(value: Any) -> SemanticLevel:
    """Convert a level name (or level) into a ``SemanticLevel``.

    Raises:
        UnknownSemanticLevel: If the value does not name a level
    """
    if isinstance(value, SemanticLevel):
        return value
    try:
        return SemanticLevel(value)
    except ValueError:
        raise UnknownSemanticLevel(f"Unknown semantic level: {value!r}") from None


@dataclass(frozen=True)
class LevelBand:
    """A half-open scale interval ``[min_scale, max_scale)`` for one level.

    ``max_scale`` is None for the last, open-ended band.
    """
    level: SemanticLevel
    min_scale: float
    max_scale: float | None = None

    def contains(self, scale: float) -> bool:
        """Whether ``scale`` falls in this band."""
        if scale < self.min_scale:
            return False
        return self.max_scale is None or scale < self.max_scale


class ThresholdTable:
    """An exhaustive, totally ordered scale -> level table.

    Raises:
        InvalidThresholdTable: If the bands do not partition (0, inf) with
            strictly increasing boundaries, or a level appears twice
    """

    def __init__(self, name: str, bands: Iterable[LevelBand]):
        self.name = name
        self.bands: tuple[LevelBand, ...] = tuple(bands)
        self._validate()
        self._index = {band.level: i for i, band in enumerate(self.bands)}

    @classmethod
    def from_boundaries(
        cls,
        name: str,
        levels: Iterable[SemanticLevel | str],
        boundaries: Iterable[float],
    ) -> "ThresholdTable":
        """Build a table from ordered levels and the boundaries between them.

        ``boundaries`` must hold exactly one value fewer than ``levels``:
        level ``i`` covers ``[boundaries[i-1], boundaries[i])``.
        """
        levels = [coerce_level(level) for level in levels]
        boundaries = [float(b) for b in boundaries]
        if len(boundaries) != len(levels) - 1:
            raise InvalidThresholdTable(
                f"Table '{name}' needs {len(levels) - 1} boundaries for "
                f"{len(levels)} levels, got {len(boundaries)}"
            )
        lows = [0.0] + boundaries
        highs: list[float | None] = list(boundaries) + [None]
        return cls(
            name,
            [LevelBand(level, low, high) for level, low, high in zip(levels, lows, highs)],
        )

    def _validate(self) -> None:
        if not self.bands:
            raise InvalidThresholdTable(f"Table '{self.name}' has no bands")
        if self.bands[0].min_scale != 0:
            raise InvalidThresholdTable(
                f"Table '{self.name}' must start at 0, starts at {self.bands[0].min_scale}"
            )

        seen: set[SemanticLevel] = set()
        last = len(self.bands) - 1
        for i, band in enumerate(self.bands):
            if band.level in seen:
                raise InvalidThresholdTable(
                    f"Table '{self.name}' lists level '{band.level.value}' twice"
                )
            seen.add(band.level)

            if band.max_scale is None:
                if i != last:
                    raise InvalidThresholdTable(
                        f"Table '{self.name}': only the last band may be open-ended"
                    )
            elif i == last:
                raise InvalidThresholdTable(
                    f"Table '{self.name}': the last band must be open-ended"
                )
            elif band.max_scale <= band.min_scale:
                raise InvalidThresholdTable(
                    f"Table '{self.name}': band '{band.level.value}' boundaries "
                    f"must strictly increase ({band.min_scale} >= {band.max_scale})"
                )

            if i > 0 and band.min_scale != self.bands[i - 1].max_scale:
                raise InvalidThresholdTable(
                    f"Table '{self.name}': gap or overlap before band '{band.level.value}' "
                    f"({self.bands[i - 1].max_scale} != {band.min_scale})"
                )

    @property
    def levels(self) -> tuple[SemanticLevel, ...]:
        """Levels in ascending scale order."""
        return tuple(band.level for band in self.bands)

    def index_of(self, level: SemanticLevel | str) -> int:
        """Position of ``level`` in this table."""
        level = coerce_level(level)
        if level not in self._index:
            raise UnknownSemanticLevel(
                f"Level '{level.value}' is not part of table '{self.name}'"
            )
        return self._index[level]

    def band_for(self, level: SemanticLevel | str) -> LevelBand:
        """The band assigned to ``level``."""
        return self.bands[self.index_of(level)]

    @property
    def signature(self) -> str:
        """Compact rendering of the bands, e.g. ``"quantum@0.0|atomic@0.01"``.

        Two tables classify identically exactly when their signatures match.
        """
        return "|".join(f"{band.level.value}@{band.min_scale!r}" for band in self.bands)

    def __len__(self) -> int:
        return len(self.bands)

    def __repr__(self) -> str:
        return f"ThresholdTable({self.name!r}, levels={[level.value for level in self.levels]})"


PHYSICS_LEVELS = ThresholdTable.from_boundaries(
    "physics",
    [
        SemanticLevel.QUANTUM,
        SemanticLevel.ATOMIC,
        SemanticLevel.MOLECULAR,
        SemanticLevel.STANDARD,
        SemanticLevel.SYSTEM,
        SemanticLevel.UNIVERSAL,
    ],
    [0.01, 0.1, 0.5, 2.0, 10.0],
)

GENERIC_LEVELS = ThresholdTable.from_boundaries(
    "generic",
    [
        SemanticLevel.UNIVERSAL,
        SemanticLevel.SYSTEM,
        SemanticLevel.STANDARD,
        SemanticLevel.ATOMIC,
    ],
    [0.1, 0.5, 2.0],
)

PRESETS: dict[str, ThresholdTable] = {
    PHYSICS_LEVELS.name: PHYSICS_LEVELS,
    GENERIC_LEVELS.name: GENERIC_LEVELS,
}


def get_threshold_table(name: str) -> ThresholdTable:
    """Resolve a named preset table."""
    try:
        return PRESETS[name]
    except KeyError:
        raise InvalidThresholdTable(
            f"Unknown level preset '{name}' (available: {', '.join(sorted(PRESETS))})"
        ) from None


# =============================================================================
# Per-level tables
# =============================================================================


def require_exhaustive(table: Mapping[Any, V], what: str) -> dict[SemanticLevel, V]:
    """Normalize a per-level table and check that it covers every level.

    Raises:
        UnknownSemanticLevel: If a key does not name a level
        InvalidThresholdTable: If any level is missing
    """
    normalized = {coerce_level(key): value for key, value in table.items()}
    missing = [level.value for level in SemanticLevel if level not in normalized]
    if missing:
        raise InvalidThresholdTable(f"{what} table is missing levels: {', '.join(missing)}")
    return normalized


def lookup_level(table: Mapping[SemanticLevel, V], level: Any, what: str) -> V:
    """Look up ``level`` in an exhaustive per-level table."""
    level = coerce_level(level)
    try:
        return table[level]
    except KeyError:
        raise UnknownSemanticLevel(f"No {what} entry for level '{level.value}'") from None


@dataclass(frozen=True)
class Granularity:
    """Suggested data granularity for a level."""
    row_limit: int
    aggregation: str


GRANULARITY = require_exhaustive(
    {
        SemanticLevel.QUANTUM: Granularity(1000, "none"),
        SemanticLevel.ATOMIC: Granularity(100, "none"),
        SemanticLevel.MOLECULAR: Granularity(50, "minimal"),
        SemanticLevel.STANDARD: Granularity(25, "standard"),
        SemanticLevel.SYSTEM: Granularity(10, "grouped"),
        SemanticLevel.UNIVERSAL: Granularity(5, "summary"),
    },
    "granularity",
)

LEVEL_DESCRIPTIONS = require_exhaustive(
    {
        SemanticLevel.QUANTUM: "Bit-level detail - raw data",
        SemanticLevel.ATOMIC: "Record-level - individual items",
        SemanticLevel.MOLECULAR: "Relationship-level - connections",
        SemanticLevel.STANDARD: "Standard view - normal detail",
        SemanticLevel.SYSTEM: "System-level - aggregated data",
        SemanticLevel.UNIVERSAL: "Universal view - high-level summary",
    },
    "description",
)

RENDERING_HINTS = require_exhaustive(
    {
        SemanticLevel.QUANTUM: {
            "showLabels": True,
            "showDetails": True,
            "showMetadata": True,
            "showDebugInfo": True,
            "showRawData": True,
            "useSimplifiedShape": False,
            "opacity": 1.0,
        },
        SemanticLevel.ATOMIC: {
            "showLabels": True,
            "showDetails": True,
            "showMetadata": True,
            "showDebugInfo": True,
            "useSimplifiedShape": False,
            "opacity": 1.0,
        },
        SemanticLevel.MOLECULAR: {
            "showLabels": True,
            "showDetails": True,
            "showRelationships": True,
            "useSimplifiedShape": False,
            "opacity": 1.0,
        },
        SemanticLevel.STANDARD: {
            "showLabels": True,
            "showDetails": True,
            "useSimplifiedShape": False,
            "opacity": 1.0,
        },
        SemanticLevel.SYSTEM: {
            "showLabels": True,
            "showDetails": False,
            "useSimplifiedShape": True,
            "opacity": 0.8,
        },
        SemanticLevel.UNIVERSAL: {
            "showLabels": False,
            "showDetails": False,
            "useSimplifiedShape": True,
            "opacity": 0.7,
        },
    },
    "rendering hints",
)


def describe_level(level: SemanticLevel | str) -> str:
    """Human-readable description of a level."""
    return lookup_level(LEVEL_DESCRIPTIONS, level, "description")


def granularity_for(level: SemanticLevel | str) -> Granularity:
    """Default row limit and aggregation tag for a level."""
    return lookup_level(GRANULARITY, level, "granularity")


def rendering_hints_for(level: SemanticLevel | str) -> dict[str, Any]:
    """Rendering hints for a level (a fresh copy on every call)."""
    return dict(lookup_level(RENDERING_HINTS, level, "rendering hints"))


# =============================================================================
# Classifier
# =============================================================================


class LevelClassifier:
    """Maps scale values to levels of one threshold table.

    Classification is referentially transparent, so an optional
    ``SimpleCache`` can memoize it keyed by table name and scale.
    """

    def __init__(
        self,
        table: ThresholdTable = PHYSICS_LEVELS,
        cache: SimpleCache | None = None,
    ):
        self.table = table
        self._cache = cache

    @property
    def levels(self) -> tuple[SemanticLevel, ...]:
        """Levels of the underlying table in ascending scale order."""
        return self.table.levels

    def classify(self, scale: float) -> SemanticLevel:
        """Return the level whose band contains ``scale``.

        Raises:
            InvalidViewportState: If scale is not a positive number
        """
        if math.isnan(scale) or scale <= 0:
            raise InvalidViewportState(f"Scale must be > 0, got {scale}")

        if self._cache is not None:
            key = cache_key_for_scale(self.table.name, scale, self.table.signature)
            cached = self._cache.get(key)
            if cached is not None:
                return cached
            level = self._scan(scale)
            self._cache.set(key, level)
            return level

        return self._scan(scale)

    def _scan(self, scale: float) -> SemanticLevel:
        for band in self.table.bands:
            if band.contains(scale):
                return band.level
        # Validated tables partition (0, inf), so this is unreachable
        raise InvalidThresholdTable(
            f"Table '{self.table.name}' does not cover scale {scale}"
        )

    def classify_index(self, scale: float) -> int:
        """Classify and return the level's index in the table."""
        return self.to_index(self.classify(scale))

    def to_index(self, level: SemanticLevel | str) -> int:
        """Position of ``level`` in the table (0 = lowest scale)."""
        return self.table.index_of(level)

    def from_index(self, index: int) -> SemanticLevel:
        """Level at ``index`` in the table."""
        if not 0 <= index < len(self.table):
            raise UnknownSemanticLevel(
                f"Level index {index} is outside table '{self.table.name}' "
                f"(0..{len(self.table) - 1})"
            )
        return self.table.bands[index].level

    def band_for(self, level: SemanticLevel | str) -> LevelBand:
        """The scale band assigned to ``level``."""
        return self.table.band_for(level)
