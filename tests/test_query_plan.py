"""Tests for data-access planning.

These tests verify:
- The access pattern, row limit and shape chosen for every level
- Bounds carried in the descriptor
- REST path templates and canonical query parameters
- Row limit validation
"""

from urllib.parse import parse_qsl, urlsplit

import pytest

from canvaslod.services.bounds import BoundsRect
from canvaslod.services.errors import InvalidThresholdTable
from canvaslod.services.levels import GENERIC_LEVELS, LevelClassifier, SemanticLevel
from canvaslod.services.query_plan import (
    DEFAULT_ROW_LIMITS,
    PATTERN_BY_LEVEL,
    AccessPattern,
    QueryPlanner,
    path_for,
)
from canvaslod.services.viewport import Viewport

SCALE_FOR_LEVEL = {
    SemanticLevel.QUANTUM: 0.005,
    SemanticLevel.ATOMIC: 0.05,
    SemanticLevel.MOLECULAR: 0.2,
    SemanticLevel.STANDARD: 1.0,
    SemanticLevel.SYSTEM: 5.0,
    SemanticLevel.UNIVERSAL: 20.0,
}


class TestPlan:
    """Tests for QueryPlanner.plan."""

    @pytest.mark.parametrize(
        "level,pattern,row_limit",
        [
            (SemanticLevel.QUANTUM, AccessPattern.RAW, 1000),
            (SemanticLevel.ATOMIC, AccessPattern.RAW, 100),
            (SemanticLevel.MOLECULAR, AccessPattern.RELATIONSHIP, 50),
            (SemanticLevel.STANDARD, AccessPattern.ENTITY, 25),
            (SemanticLevel.SYSTEM, AccessPattern.AGGREGATE, 10),
            (SemanticLevel.UNIVERSAL, AccessPattern.SUMMARY, 5),
        ],
    )
    def test_pattern_and_limit_per_level(self, level, pattern, row_limit):
        descriptor = QueryPlanner().plan(Viewport(scale=SCALE_FOR_LEVEL[level]), "items")
        assert descriptor.level == level
        assert descriptor.pattern == pattern
        assert descriptor.row_limit == row_limit
        assert descriptor.resource == "items"

    def test_descriptor_carries_bounds(self):
        descriptor = QueryPlanner().plan(Viewport(x=1000, y=500, scale=1), "items")
        assert descriptor.bounds == BoundsRect(min_x=40, max_x=1960, min_y=-40, max_y=1040)

    def test_raw_has_no_shape(self):
        descriptor = QueryPlanner().plan(Viewport(scale=0.05), "items")
        assert descriptor.group_by is None
        assert descriptor.order_by is None
        assert descriptor.join is None
        assert descriptor.aggregates == ()

    def test_relationship_joins_related_resource(self):
        descriptor = QueryPlanner().plan(Viewport(scale=0.2), "items")
        assert descriptor.join == "items_relations"

    def test_entity_orders_by_recency(self):
        descriptor = QueryPlanner().plan(Viewport(scale=1.0), "items")
        assert descriptor.order_by == ("created_at", "desc")

    def test_aggregate_groups_by_category(self):
        descriptor = QueryPlanner().plan(Viewport(scale=5.0), "items")
        assert descriptor.group_by == "category"
        assert descriptor.order_by == ("count", "desc")
        assert descriptor.aggregates == ("count", "avg", "sum")

    def test_summary_aggregates(self):
        descriptor = QueryPlanner().plan(Viewport(scale=20.0), "items")
        assert descriptor.group_by is None
        assert "count_distinct" in descriptor.aggregates

    def test_empty_resource_rejected(self):
        with pytest.raises(ValueError):
            QueryPlanner().plan(Viewport(), "")

    def test_generic_table(self):
        planner = QueryPlanner(LevelClassifier(GENERIC_LEVELS))
        assert planner.plan(Viewport(scale=0.05), "items").pattern == AccessPattern.SUMMARY
        assert planner.plan(Viewport(scale=5.0), "items").pattern == AccessPattern.RAW

    def test_to_dict(self):
        descriptor = QueryPlanner().plan(Viewport(x=1000, y=500, scale=5.0), "items")
        assert descriptor.to_dict() == {
            "pattern": "aggregate",
            "level": "system",
            "bounds": {"minX": 808, "maxX": 1192, "minY": 392, "maxY": 608},
            "rowLimit": 10,
            "resource": "items",
            "groupBy": "category",
            "orderBy": ["count", "desc"],
            "join": None,
            "aggregates": ["count", "avg", "sum"],
        }


class TestRowLimits:
    """Tests for configurable row limits."""

    def test_defaults_cover_every_level(self):
        assert set(DEFAULT_ROW_LIMITS) == set(SemanticLevel)
        assert set(PATTERN_BY_LEVEL) == set(SemanticLevel)

    def test_custom_limits(self):
        limits = {level.value: 7 for level in SemanticLevel}
        planner = QueryPlanner(row_limits=limits)
        assert planner.plan(Viewport(), "items").row_limit == 7

    def test_missing_level_rejected(self):
        limits = {level: 7 for level in SemanticLevel if level != SemanticLevel.SYSTEM}
        with pytest.raises(InvalidThresholdTable, match="system"):
            QueryPlanner(row_limits=limits)

    @pytest.mark.parametrize("bad", [-1, 2.5, True, "10"])
    def test_invalid_limit_rejected(self, bad):
        limits = {level: 10 for level in SemanticLevel}
        limits[SemanticLevel.ATOMIC] = bad
        with pytest.raises(InvalidThresholdTable):
            QueryPlanner(row_limits=limits)

    def test_empty_limits_rejected(self):
        """Test an empty mapping is validated instead of replaced by the defaults."""
        with pytest.raises(InvalidThresholdTable):
            QueryPlanner(row_limits={})

    def test_zero_limit_allowed(self):
        limits = {level: 0 for level in SemanticLevel}
        assert QueryPlanner(row_limits=limits).row_limit_for("atomic") == 0


class TestEndpoints:
    """Tests for REST paths and query parameters."""

    @pytest.mark.parametrize(
        "scale,path",
        [
            (0.005, "/api/data/raw"),
            (0.05, "/api/data/raw"),
            (0.2, "/api/data/relationships"),
            (1.0, "/api/data/entities"),
            (5.0, "/api/data/aggregates"),
            (20.0, "/api/data/summary"),
        ],
    )
    def test_path(self, scale, path):
        assert QueryPlanner().path(Viewport(scale=scale)) == path

    def test_path_for(self):
        assert path_for("summary") == "/api/data/summary"
        assert path_for(AccessPattern.RELATIONSHIP) == "/api/data/relationships"

    def test_query_params_order_and_values(self):
        params = QueryPlanner().query_params(Viewport(x=1000, y=500, scale=1))
        assert list(params.items()) == [
            ("x", "1000"),
            ("y", "500"),
            ("scale", "1"),
            ("level", "standard"),
            ("minX", "40"),
            ("maxX", "1960"),
            ("minY", "-40"),
            ("maxY", "1040"),
        ]

    def test_fractional_values_kept(self):
        params = QueryPlanner().query_params(Viewport(x=1.5, y=-2.25, scale=0.25))
        assert (params["x"], params["y"], params["scale"]) == ("1.5", "-2.25", "0.25")

    def test_endpoint(self):
        url = QueryPlanner().endpoint(Viewport(x=1000, y=500, scale=1))
        parts = urlsplit(url)
        assert parts.path == "/api/data/entities"
        assert dict(parse_qsl(parts.query)) == {
            "x": "1000",
            "y": "500",
            "scale": "1",
            "level": "standard",
            "minX": "40",
            "maxX": "1960",
            "minY": "-40",
            "maxY": "1040",
        }

    def test_endpoint_agrees_with_plan(self):
        planner = QueryPlanner()
        for scale in SCALE_FOR_LEVEL.values():
            vp = Viewport(scale=scale)
            assert planner.endpoint(vp).startswith(path_for(planner.plan(vp, "t").pattern))

    def test_size_omitted_by_default(self):
        params = QueryPlanner().query_params(Viewport(width=800, height=600))
        assert "width" not in params
        assert "height" not in params

    def test_include_size(self):
        """Test the viewport size follows the bounds when requested."""
        vp = Viewport(x=0, y=0, scale=1, width=800, height=600)
        params = QueryPlanner().query_params(vp, include_size=True)
        assert list(params)[-2:] == ["width", "height"]
        assert (params["minX"], params["maxY"]) == ("-400", "300")
        assert (params["width"], params["height"]) == ("800", "600")

        url = QueryPlanner().endpoint(vp, include_size=True)
        assert dict(parse_qsl(urlsplit(url).query))["width"] == "800"
