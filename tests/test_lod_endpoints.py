"""Tests for the LOD API endpoints.

Endpoint coverage:
- GET /api/lod/levels
- GET /api/lod/classify
- GET /api/lod/bounds
- GET /api/lod/plan
- POST /api/lod/tree
- POST /api/lod/collapse
- GET /api/lod/cache
- GET /health
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from canvaslod.main import app
from canvaslod.routes import lod


@pytest.fixture
def client():
    """Create a test client for the app."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_level_cache():
    lod.level_cache.invalidate()
    lod.level_cache.reset_stats()
    yield


class TestHealth:
    """Tests for GET /health."""

    def test_without_database(self, client):
        with patch("canvaslod.main.settings") as mock_settings:
            mock_settings.database_url = None
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "unconfigured"}
        assert "X-Response-Time" in response.headers

    def test_database_reachable(self, client):
        with patch("canvaslod.main.settings") as mock_settings, \
                patch("canvaslod.database.ping", return_value=True):
            mock_settings.database_url = "postgresql://localhost/test"
            response = client.get("/health")
        assert response.json() == {"status": "ok", "database": "ok"}

    def test_database_unreachable(self, client):
        with patch("canvaslod.main.settings") as mock_settings, \
                patch("canvaslod.database.ping", return_value=False):
            mock_settings.database_url = "postgresql://localhost/test"
            response = client.get("/health")
        assert response.json() == {"status": "degraded", "database": "unreachable"}


class TestLevelsEndpoint:
    """Tests for GET /api/lod/levels."""

    def test_default_preset(self, client):
        response = client.get("/api/lod/levels")
        assert response.status_code == 200
        data = response.json()
        assert data["preset"] == "physics"
        assert [level["level"] for level in data["levels"]] == [
            "quantum", "atomic", "molecular", "standard", "system", "universal",
        ]
        assert data["levels"][0]["minScale"] == 0.0
        assert data["levels"][-1]["maxScale"] is None
        assert data["levels"][3]["rowLimit"] == 25
        assert data["levels"][3]["renderingHints"]["showLabels"] is True

    def test_generic_preset(self, client):
        data = client.get("/api/lod/levels", params={"preset": "generic"}).json()
        assert [level["index"] for level in data["levels"]] == [0, 1, 2, 3]
        assert data["levels"][0]["level"] == "universal"

    def test_unknown_preset(self, client):
        response = client.get("/api/lod/levels", params={"preset": "metric"})
        assert response.status_code == 400
        assert "metric" in response.json()["detail"]


class TestClassifyEndpoint:
    """Tests for GET /api/lod/classify."""

    @pytest.mark.parametrize(
        "scale,level,index",
        [(0.005, "quantum", 0), (0.5, "standard", 3), (2.0, "system", 4), (100, "universal", 5)],
    )
    def test_classify(self, client, scale, level, index):
        response = client.get("/api/lod/classify", params={"scale": scale})
        assert response.status_code == 200
        data = response.json()
        assert data["level"] == level
        assert data["index"] == index
        assert data["description"]

    def test_non_positive_scale(self, client):
        response = client.get("/api/lod/classify", params={"scale": 0})
        assert response.status_code == 422

    def test_missing_scale(self, client):
        assert client.get("/api/lod/classify").status_code == 422

    def test_classification_is_cached(self, client):
        client.get("/api/lod/classify", params={"scale": 0.75})
        client.get("/api/lod/classify", params={"scale": 0.75})
        stats = client.get("/api/lod/cache").json()
        assert stats["by_namespace"]["physics"]["hits"] == 1
        assert stats["total_entries"] == 1


class TestBoundsEndpoint:
    """Tests for GET /api/lod/bounds."""

    def test_bounds(self, client):
        response = client.get("/api/lod/bounds", params={"x": 1000, "y": 500, "scale": 1})
        assert response.status_code == 200
        assert response.json() == {"minX": 40, "maxX": 1960, "minY": -40, "maxY": 1040}

    def test_custom_size(self, client):
        response = client.get(
            "/api/lod/bounds",
            params={"x": 0, "y": 0, "scale": 2, "width": 100, "height": 40},
        )
        assert response.json() == {"minX": -25, "maxX": 25, "minY": -10, "maxY": 10}

    def test_negative_size(self, client):
        response = client.get("/api/lod/bounds", params={"width": -1})
        assert response.status_code == 422

    @pytest.mark.parametrize("name,value", [("x", "inf"), ("y", "-inf"), ("x", "nan"), ("width", "inf")])
    def test_non_finite_viewport(self, client, name, value):
        """Test infinite or NaN viewport values are a 400, not a server error."""
        response = client.get("/api/lod/bounds", params={name: value})
        assert response.status_code == 400
        assert "finite" in response.json()["detail"]

    def test_bounds_overflow(self, client):
        """Test a size too large for the scale is a 400."""
        response = client.get("/api/lod/bounds", params={"scale": 0.001, "width": 1e306})
        assert response.status_code == 400


class TestPlanEndpoint:
    """Tests for GET /api/lod/plan."""

    def test_plan(self, client):
        response = client.get(
            "/api/lod/plan",
            params={"resource": "items", "x": 1000, "y": 500, "scale": 1},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["level"] == "standard"
        assert data["pattern"] == "entity"
        assert data["path"] == "/api/data/entities"
        assert data["params"]["minX"] == "40"
        assert data["endpoint"].startswith("/api/data/entities?x=1000&y=500&scale=1&level=standard")
        assert data["descriptor"]["orderBy"] == ["created_at", "desc"]
        assert "width" not in data["params"]

    def test_plan_with_size(self, client):
        """Test a custom viewport size is carried in the planned endpoint."""
        data = client.get(
            "/api/lod/plan",
            params={"resource": "items", "x": 0, "y": 0, "scale": 1, "width": 800, "height": 600},
        ).json()
        assert data["params"]["minX"] == "-400"
        assert data["params"]["maxY"] == "300"
        assert data["endpoint"].endswith("&width=800&height=600")

    def test_plan_non_finite(self, client):
        response = client.get("/api/lod/plan", params={"resource": "items", "y": "inf"})
        assert response.status_code == 400

    def test_plan_generic(self, client):
        data = client.get(
            "/api/lod/plan",
            params={"resource": "items", "scale": 0.05, "preset": "generic"},
        ).json()
        assert data["level"] == "universal"
        assert data["path"] == "/api/data/summary"

    def test_resource_required(self, client):
        assert client.get("/api/lod/plan", params={"scale": 1}).status_code == 422


class TestTreeEndpoint:
    """Tests for POST /api/lod/tree."""

    @pytest.fixture
    def document(self):
        return {
            "ui": {
                "nodes": [
                    {"id": "header", "kind": "header"},
                    {
                        "id": "grid",
                        "kind": "grid",
                        "validLevelRange": [0, 3],
                        "collapseTarget": "grid-summary",
                    },
                ]
            },
            "uiSummaries": {"nodes": [{"id": "grid-summary", "text": "Grid of 40 cells"}]},
        }

    def test_tree_visible(self, client, document):
        response = client.post("/api/lod/tree", params={"scale": 1}, json=document)
        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "app"
        assert data["level"] == 3
        assert [child["id"] for child in data["children"]] == ["header", "grid"]

    def test_tree_collapsed(self, client, document):
        data = client.post("/api/lod/tree", params={"scale": 50}, json=document).json()
        assert data["level"] == 5
        assert data["children"][1] == {
            "type": "summary",
            "id": "grid-summary",
            "summary": "Grid of 40 cells",
        }

    def test_invalid_node(self, client):
        response = client.post(
            "/api/lod/tree",
            params={"scale": 1},
            json={"ui": {"nodes": [{"id": "no-kind"}]}},
        )
        assert response.status_code == 422


class TestCollapseEndpoint:
    """Tests for POST /api/lod/collapse."""

    def test_collapse_system(self, client):
        items = [
            {"id": 1, "category": "a"},
            {"id": 2, "category": "b"},
            {"id": 3, "category": "a"},
        ]
        response = client.post("/api/lod/collapse", params={"level": "system"}, json=items)
        assert response.status_code == 200
        assert [(g["category"], g["count"]) for g in response.json()] == [("a", 2), ("b", 1)]

    def test_collapse_universal(self, client):
        response = client.post(
            "/api/lod/collapse",
            params={"level": "universal"},
            json=[{"id": 1}, {"id": 2}],
        )
        assert response.json()[0]["count"] == 2

    def test_unknown_level(self, client):
        response = client.post("/api/lod/collapse", params={"level": "galactic"}, json=[])
        assert response.status_code == 400
        assert "galactic" in response.json()["detail"]
