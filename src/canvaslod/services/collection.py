"""Level-specific collapse of flat item collections.

Each level applies one aggregation policy:

- universal: a single representative item standing for the whole list
- system: one summary per category, with up to three preview items
- standard: the items unchanged
- atomic: every item annotated with metadata and debug information
- quantum, molecular: the items unchanged

Every output is a deep copy; the input list and its items are never mutated.
Added keys (``previewItems``, ``debugInfo``, ``renderingHints``, ...) use the
camelCase names that render adapters read.
"""

import copy
import json
import logging
import time
from datetime import datetime
from typing import Any, Mapping, Sequence

from canvaslod.services.levels import (
    SemanticLevel,
    coerce_level,
    rendering_hints_for,
    require_exhaustive,
)

logger = logging.getLogger("canvaslod.collection")

UNCATEGORIZED = "uncategorized"
PREVIEW_SIZE = 3


def _serialized_size(item: Mapping[str, Any]) -> int:
    return len(json.dumps(item, separators=(",", ":"), default=str))


def summarize_all(items: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Collapse the whole list into one representative summary item."""
    if not items:
        return []
    summary = copy.deepcopy(dict(items[0]))
    summary.update(
        type="summary",
        count=len(items),
        representative=copy.deepcopy(dict(items[0])),
    )
    return [summary]


def summarize_by_category(items: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Group items by ``category`` in first-seen order, one summary per group."""
    groups: dict[str, list[Mapping[str, Any]]] = {}
    for item in items:
        category = item.get("category") or UNCATEGORIZED
        groups.setdefault(category, []).append(item)

    return [
        {
            "type": "category_summary",
            "category": category,
            "count": len(group),
            "representative": copy.deepcopy(dict(group[0])),
            "previewItems": [copy.deepcopy(dict(i)) for i in group[:PREVIEW_SIZE]],
        }
        for category, group in groups.items()
    ]


def annotate_items(items: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Copy every item with derived ``metadata`` and opaque ``debugInfo``.

    ``metadata`` is a deterministic function of the item; ``debugInfo`` is
    not and should be treated as opaque.
    """
    annotated = []
    for item in items:
        started = time.perf_counter()
        size = _serialized_size(item)
        metadata = {
            "id": item.get("id"),
            "type": item.get("type"),
            "propertyCount": len(item),
            "serializedSize": size,
        }
        debug_info = {
            "memoryUsage": size,
            "renderTime": (time.perf_counter() - started) * 1000,
            "lastUpdated": datetime.now().isoformat(),
        }
        copied = copy.deepcopy(dict(item))
        copied["metadata"] = metadata
        copied["debugInfo"] = debug_info
        annotated.append(copied)
    return annotated


def pass_through(items: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Structurally equal copy of the items, same order."""
    return [copy.deepcopy(dict(item)) for item in items]


POLICIES = require_exhaustive({
    SemanticLevel.QUANTUM: pass_through,
    SemanticLevel.ATOMIC: annotate_items,
    SemanticLevel.MOLECULAR: pass_through,
    SemanticLevel.STANDARD: pass_through,
    SemanticLevel.SYSTEM: summarize_by_category,
    SemanticLevel.UNIVERSAL: summarize_all,
}, "collection policy")


def collapse_items(
    items: Sequence[Mapping[str, Any]],
    level: SemanticLevel | str,
) -> list[dict[str, Any]]:
    """Apply the aggregation policy of ``level`` to ``items``.

    Raises:
        UnknownSemanticLevel: If ``level`` does not name a level
    """
    level = coerce_level(level)
    result = POLICIES[level](items)
    logger.debug(f"Collapsed {len(items)} items at level {level.value} into {len(result)}")
    return result


def apply_semantic_collapse(
    elements: Sequence[Mapping[str, Any]],
    level: SemanticLevel | str,
) -> list[dict[str, Any]]:
    """Collapse ``elements`` and tag each result with the level's rendering hints."""
    level = coerce_level(level)
    hints = rendering_hints_for(level)
    return [
        {
            **element,
            "currentSemanticLevel": level.value,
            "renderingHints": dict(hints),
        }
        for element in collapse_items(elements, level)
    ]
