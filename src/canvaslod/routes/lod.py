"""API routes exposing the LOD engine.

This module provides REST endpoints for:
- Level tables and scale classification
- Visible bounds of a viewport
- Data-access planning (descriptor, path template, query parameters)
- Collapsing UI trees and item collections for a level
- Classification cache statistics
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from canvaslod.config import settings
from canvaslod.models import UIDocument
from canvaslod.services.bounds import compute_bounds
from canvaslod.services.cache import SimpleCache
from canvaslod.services.collection import collapse_items
from canvaslod.services.errors import LODError
from canvaslod.services.levels import (
    LevelClassifier,
    describe_level,
    get_threshold_table,
    granularity_for,
    rendering_hints_for,
)
from canvaslod.services.query_plan import QueryPlanner
from canvaslod.services.semantic_tree import collapse_tree
from canvaslod.services.viewport import Viewport

router = APIRouter(prefix="/api/lod", tags=["lod"])

level_cache = SimpleCache(max_entries=settings.level_cache_size)


def get_classifier(preset: str | None = None) -> LevelClassifier:
    """Classifier for a named preset, memoized through the shared cache."""
    return LevelClassifier(
        get_threshold_table(preset or settings.level_preset),
        cache=level_cache,
    )


def make_viewport(
    x: float,
    y: float,
    scale: float,
    width: float | None = None,
    height: float | None = None,
) -> Viewport:
    """Fresh per-request viewport, sized from settings unless given."""
    return Viewport(
        x=x,
        y=y,
        scale=scale,
        width=settings.viewport_width if width is None else width,
        height=settings.viewport_height if height is None else height,
    )


# =============================================================================
# Response Models
# =============================================================================


class CamelModel(BaseModel):
    """Response model serialized with camelCase keys (``min_scale`` -> ``minScale``)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LevelInfoResponse(CamelModel):
    """One level of a threshold table."""
    level: str
    index: int
    min_scale: float
    max_scale: float | None
    description: str
    row_limit: int
    aggregation: str
    rendering_hints: dict[str, Any]


class LevelTableResponse(CamelModel):
    """A threshold table with its per-level settings."""
    preset: str
    levels: list[LevelInfoResponse]


class ClassifyResponse(CamelModel):
    """Classification of a single scale."""
    preset: str
    scale: float
    level: str
    index: int
    description: str


class BoundsResponse(CamelModel):
    """Visible data-space rectangle."""
    min_x: int
    max_x: int
    min_y: int
    max_y: int


class PlanResponse(CamelModel):
    """Access plan for a viewport."""
    level: str
    pattern: str
    path: str
    endpoint: str
    params: dict[str, str]
    descriptor: dict[str, Any]


# =============================================================================
# Level Endpoints
# =============================================================================


@router.get("/levels", response_model=LevelTableResponse)
async def get_levels(preset: str | None = None) -> LevelTableResponse:
    """List the levels of a threshold table in ascending scale order.

    Args:
        preset: Table name ("physics" or "generic"), defaults to the configured preset
    """
    try:
        classifier = get_classifier(preset)
    except LODError as e:
        raise HTTPException(status_code=400, detail=str(e))

    levels = []
    for index, band in enumerate(classifier.table.bands):
        granularity = granularity_for(band.level)
        levels.append(LevelInfoResponse(
            level=band.level.value,
            index=index,
            min_scale=band.min_scale,
            max_scale=band.max_scale,
            description=describe_level(band.level),
            row_limit=granularity.row_limit,
            aggregation=granularity.aggregation,
            rendering_hints=rendering_hints_for(band.level),
        ))

    return LevelTableResponse(preset=classifier.table.name, levels=levels)


@router.get("/classify", response_model=ClassifyResponse)
async def classify_scale(
    scale: float = Query(gt=0),
    preset: str | None = None,
) -> ClassifyResponse:
    """Classify a scale into a semantic level."""
    try:
        classifier = get_classifier(preset)
        level = classifier.classify(scale)
    except LODError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ClassifyResponse(
        preset=classifier.table.name,
        scale=scale,
        level=level.value,
        index=classifier.to_index(level),
        description=describe_level(level),
    )


# =============================================================================
# Viewport Endpoints
# =============================================================================


@router.get("/bounds", response_model=BoundsResponse)
async def get_bounds(
    x: float = 0.0,
    y: float = 0.0,
    scale: float = Query(default=1.0, gt=0),
    width: float | None = Query(default=None, ge=0),
    height: float | None = Query(default=None, ge=0),
) -> BoundsResponse:
    """Visible bounds for a viewport (scale is clamped to the viewport range)."""
    try:
        bounds = compute_bounds(make_viewport(x, y, scale, width, height))
    except LODError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return BoundsResponse(
        min_x=bounds.min_x,
        max_x=bounds.max_x,
        min_y=bounds.min_y,
        max_y=bounds.max_y,
    )


@router.get("/plan", response_model=PlanResponse)
async def get_plan(
    resource: str = Query(min_length=1),
    x: float = 0.0,
    y: float = 0.0,
    scale: float = Query(default=1.0, gt=0),
    width: float | None = Query(default=None, ge=0),
    height: float | None = Query(default=None, ge=0),
    preset: str | None = None,
) -> PlanResponse:
    """Plan data access for a viewport over a resource.

    Returns the access descriptor together with the REST path template,
    the canonical query parameters, and the full endpoint URL. When
    ``width`` or ``height`` is given, both are added to the parameters.
    """
    try:
        viewport = make_viewport(x, y, scale, width, height)
        planner = QueryPlanner(get_classifier(preset))
        descriptor = planner.plan(viewport, resource)
        # A custom size must travel with the endpoint or the data route
        # would re-plan with the default size
        include_size = width is not None or height is not None
        params = planner.query_params(viewport, include_size=include_size)
        path = planner.path(viewport)
        endpoint = planner.endpoint(viewport, include_size=include_size)
    except LODError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return PlanResponse(
        level=descriptor.level.value,
        pattern=descriptor.pattern.value,
        path=path,
        endpoint=endpoint,
        params=params,
        descriptor=descriptor.to_dict(),
    )


# =============================================================================
# Collapse Endpoints
# =============================================================================


@router.post("/tree")
async def collapse_ui_tree(
    document: dict[str, Any],
    scale: float = Query(default=1.0, gt=0),
    preset: str | None = None,
    collapse_repeated: bool = False,
) -> dict[str, Any]:
    """Collapse an IR document (``ui.nodes`` + ``uiSummaries.nodes``) for a scale."""
    try:
        parsed = UIDocument.from_ir(document)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        classifier = get_classifier(preset)
        tree = collapse_tree(
            parsed.nodes,
            parsed.summary_lookup(),
            classifier.classify_index(scale),
            collapse_repeated=collapse_repeated,
        )
    except LODError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return tree.to_dict()


@router.post("/collapse")
async def collapse_collection(
    items: list[dict[str, Any]],
    level: str,
) -> list[dict[str, Any]]:
    """Apply a level's aggregation policy to a list of items."""
    try:
        return collapse_items(items, level)
    except LODError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/cache")
async def get_cache_stats() -> dict[str, Any]:
    """Classification cache statistics."""
    return level_cache.stats()
