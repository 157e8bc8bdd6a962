"""Level-of-detail collapse of a hierarchical UI description.

Each UI node may declare the range of level indices in which it is shown.
Outside that range the node is replaced by its precomputed summary, or
silently dropped when the summary does not exist. Visible nodes get their
direct children inlined one level deep; those children are not filtered by
their own level range.

The output is the ``{"type": "app", "level": n, "children": [...]}`` tree
consumed by render adapters, with node keys ``id``, ``type``, ``renderHints``,
``metadata`` and ``children``.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from canvaslod.models import UIDocument, UINode
from canvaslod.services.levels import LevelClassifier

logger = logging.getLogger("canvaslod.tree")

SUMMARY_TYPE = "summary"


@dataclass
class TreeNode:
    """An entry of the collapsed tree: a UI node or a summary stand-in."""
    type: str
    id: str | None = None
    summary: str | None = None
    render_hints: Any = None
    metadata: Any = None
    children: list["TreeNode"] | None = None

    @property
    def is_summary(self) -> bool:
        return self.type == SUMMARY_TYPE

    def to_dict(self) -> dict[str, Any]:
        if self.is_summary:
            return {"type": self.type, "id": self.id, "summary": self.summary}
        result = {
            "id": self.id,
            "type": self.type,
            "renderHints": self.render_hints,
            "metadata": self.metadata,
        }
        if self.children is not None:
            result["children"] = [child.to_dict() for child in self.children]
        return result


@dataclass
class SemanticTree:
    """Root of a collapsed tree at one level index."""
    level: int
    children: list[TreeNode] = field(default_factory=list)
    type: str = "app"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "level": self.level,
            "children": [child.to_dict() for child in self.children],
        }


def _shallow_node(node: UINode) -> TreeNode:
    return TreeNode(
        type=node.kind,
        id=node.id,
        render_hints=copy.deepcopy(node.render_hints),
        metadata=copy.deepcopy(node.metadata),
    )


def collapse_tree(
    nodes: Sequence[UINode],
    summaries: Mapping[str, str],
    level_index: int,
    *,
    collapse_repeated: bool = False,
) -> SemanticTree:
    """Collapse ``nodes`` for the level at ``level_index``.

    Args:
        nodes: UI nodes in traversal order
        summaries: Summary text keyed by summary id
        level_index: Index of the current level in the active threshold table
        collapse_repeated: Merge a summary into the previous output entry
            when both stand in for the same summary id. Off by default, so
            consecutive collapsed nodes each emit their summary.

    Returns:
        SemanticTree preserving the input order of emitted entries
    """
    children: list[TreeNode] = []
    dropped = 0

    for node in nodes:
        if not node.is_visible_at(level_index):
            target = node.collapse_target
            if target is None or target not in summaries:
                dropped += 1
                logger.debug(
                    f"Dropping node {node.id!r} at level {level_index}: "
                    f"no summary for collapse target {target!r}"
                )
                continue
            previous = children[-1] if children else None
            if collapse_repeated and previous is not None and previous.is_summary and previous.id == target:
                continue
            children.append(TreeNode(type=SUMMARY_TYPE, id=target, summary=summaries[target]))
            continue

        entry = _shallow_node(node)
        if node.children:
            child_ids = set(node.children)
            inlined = [_shallow_node(n) for n in nodes if n.id in child_ids]
            if inlined:
                entry.children = inlined
        children.append(entry)

    logger.debug(
        f"Collapsed {len(nodes)} nodes at level {level_index} into "
        f"{len(children)} entries ({dropped} dropped)"
    )
    return SemanticTree(level=level_index, children=children)


def build_semantic_tree(
    document: UIDocument | Mapping[str, Any],
    scale: float,
    classifier: LevelClassifier | None = None,
    *,
    collapse_repeated: bool = False,
) -> SemanticTree:
    """Classify ``scale`` and collapse an IR document for that level.

    Args:
        document: A parsed ``UIDocument`` or a raw IR dict with ``ui.nodes``
            and ``uiSummaries.nodes``
        scale: Current viewport scale
        classifier: Classifier to use (default 6-level table)
        collapse_repeated: See ``collapse_tree``
    """
    if not isinstance(document, UIDocument):
        document = UIDocument.from_ir(dict(document))
    classifier = classifier or LevelClassifier()

    return collapse_tree(
        document.nodes,
        document.summary_lookup(),
        classifier.classify_index(scale),
        collapse_repeated=collapse_repeated,
    )
