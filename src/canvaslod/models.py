"""Pydantic models for the UI description consumed by the tree collapser"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class UINode(BaseModel):
    """A node of the hierarchical UI description.

    Accepts both the engine's field names (``validLevelRange``,
    ``collapseTarget``) and the IR spelling, where the range and collapse
    target live under ``zoom.semantic.range`` / ``zoom.semantic.collapseTo``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    kind: str
    valid_level_range: tuple[int, int] | None = Field(default=None, alias="validLevelRange")
    collapse_target: str | None = Field(default=None, alias="collapseTarget")
    children: list[str] | None = None
    render_hints: Any = Field(default=None, alias="renderHints")
    metadata: Any = None

    @model_validator(mode="before")
    @classmethod
    def _lift_semantic_zoom(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not isinstance(data.get("zoom"), dict):
            return data
        semantic = data["zoom"].get("semantic") or {}
        data = dict(data)
        if semantic.get("range") is not None:
            data.setdefault("validLevelRange", semantic["range"])
        if semantic.get("collapseTo") is not None:
            data.setdefault("collapseTarget", semantic["collapseTo"])
        return data

    def is_visible_at(self, level_index: int) -> bool:
        """Whether the node's level range admits ``level_index``."""
        if self.valid_level_range is None:
            return True
        low, high = self.valid_level_range
        return low <= level_index <= high


class SummaryNode(BaseModel):
    """Precomputed summary text that stands in for collapsed nodes"""

    id: str
    text: str | None = None

    @model_validator(mode="after")
    def _default_text(self) -> "SummaryNode":
        if not self.text:
            self.text = self.id
        return self


class UIDocument(BaseModel):
    """Nodes and summaries extracted from an IR document"""

    nodes: list[UINode] = Field(default_factory=list)
    summaries: list[SummaryNode] = Field(default_factory=list)

    @classmethod
    def from_ir(cls, ir: dict[str, Any]) -> "UIDocument":
        """Read ``ui.nodes[]`` and ``uiSummaries.nodes[]`` from an IR document."""
        ui = ir.get("ui") or {}
        ui_summaries = ir.get("uiSummaries") or {}
        return cls(
            nodes=[UINode.model_validate(n) for n in ui.get("nodes") or []],
            summaries=[SummaryNode.model_validate(s) for s in ui_summaries.get("nodes") or []],
        )

    def summary_lookup(self) -> dict[str, str]:
        """Summary text keyed by summary id (later duplicates win)."""
        return {s.id: s.text for s in self.summaries}
