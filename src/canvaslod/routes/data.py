"""Bounded data endpoints, one per access pattern.

Clients build their URL from ``GET /api/lod/plan`` (or ``QueryPlanner.endpoint``)
and call the path for their viewport's level. Each route re-plans from
``x``, ``y``, ``scale`` and the optional ``width``/``height`` so a client
cannot fetch raw rows at a zoom level that only allows aggregates. A
``level`` or ``minX``...``maxY`` that disagrees with the re-plan is a 409.
"""

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel

from canvaslod.routes.lod import get_classifier, make_viewport
from canvaslod.services import data_access
from canvaslod.services.errors import LODError
from canvaslod.services.query_plan import AccessPattern, QueryPlanner, path_for
from canvaslod.services.sql import build_query

logger = logging.getLogger("canvaslod.data")

router = APIRouter(prefix="/api/data", tags=["data"])

RESOURCE_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$"


class DataResponse(BaseModel):
    """Rows for one viewport, always filtered by its bounds."""
    pattern: str
    level: str
    path: str
    params: dict[str, str]
    descriptor: dict[str, Any]
    rows: list[dict[str, Any]]
    bounded: bool = True


def _serve(
    pattern: AccessPattern,
    request: Request,
    resource: str,
    x: float,
    y: float,
    scale: float,
    width: float | None,
    height: float | None,
    level: str | None,
    bounds: tuple[int | None, int | None, int | None, int | None],
    preset: str | None,
) -> DataResponse:
    try:
        viewport = make_viewport(x, y, scale, width, height)
        planner = QueryPlanner(get_classifier(preset))
        descriptor = planner.plan(viewport, resource)
    except LODError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if descriptor.pattern != pattern:
        raise HTTPException(
            status_code=409,
            detail=(
                f"Scale {scale:g} is level '{descriptor.level.value}', "
                f"use {path_for(descriptor.pattern)}"
            ),
        )

    if level is not None and level != descriptor.level.value:
        raise HTTPException(
            status_code=409,
            detail=f"Scale {scale:g} is level '{descriptor.level.value}', not '{level}'",
        )

    # Bounds a client sends must be the ones this viewport produces
    expected = descriptor.bounds.to_params()
    for name, value in zip(("minX", "maxX", "minY", "maxY"), bounds):
        if value is not None and value != expected[name]:
            raise HTTPException(
                status_code=409,
                detail=(
                    f"{name}={value} does not match the viewport "
                    f"({name}={expected[name]}), pass width and height from the plan"
                ),
            )

    rows = data_access.fetch_rows(build_query(descriptor))
    logger.debug(f"{pattern.value} on {resource!r}: {len(rows)} rows")

    return DataResponse(
        pattern=descriptor.pattern.value,
        level=descriptor.level.value,
        path=path_for(descriptor.pattern),
        params=dict(request.query_params),
        descriptor=descriptor.to_dict(),
        rows=rows,
    )


# Level and bounds are optional. When present they are checked against the
# values recomputed from x, y, scale, width and height.
@router.get("/raw", response_model=DataResponse)
async def get_raw(
    request: Request,
    resource: str = Query(pattern=RESOURCE_PATTERN),
    x: float = 0.0,
    y: float = 0.0,
    scale: float = Query(default=1.0, gt=0),
    width: float | None = Query(default=None, ge=0),
    height: float | None = Query(default=None, ge=0),
    level: str | None = None,
    min_x: int | None = Query(default=None, alias="minX"),
    max_x: int | None = Query(default=None, alias="maxX"),
    min_y: int | None = Query(default=None, alias="minY"),
    max_y: int | None = Query(default=None, alias="maxY"),
    preset: str | None = None,
) -> DataResponse:
    """Individual rows (quantum and atomic levels)."""
    return _serve(
        AccessPattern.RAW, request, resource, x, y, scale, width, height,
        level, (min_x, max_x, min_y, max_y), preset,
    )


@router.get("/relationships", response_model=DataResponse)
async def get_relationships(
    request: Request,
    resource: str = Query(pattern=RESOURCE_PATTERN),
    x: float = 0.0,
    y: float = 0.0,
    scale: float = Query(default=1.0, gt=0),
    width: float | None = Query(default=None, ge=0),
    height: float | None = Query(default=None, ge=0),
    level: str | None = None,
    min_x: int | None = Query(default=None, alias="minX"),
    max_x: int | None = Query(default=None, alias="maxX"),
    min_y: int | None = Query(default=None, alias="minY"),
    max_y: int | None = Query(default=None, alias="maxY"),
    preset: str | None = None,
) -> DataResponse:
    """Rows with their relationship counts (molecular level)."""
    return _serve(
        AccessPattern.RELATIONSHIP, request, resource, x, y, scale, width, height,
        level, (min_x, max_x, min_y, max_y), preset,
    )


@router.get("/entities", response_model=DataResponse)
async def get_entities(
    request: Request,
    resource: str = Query(pattern=RESOURCE_PATTERN),
    x: float = 0.0,
    y: float = 0.0,
    scale: float = Query(default=1.0, gt=0),
    width: float | None = Query(default=None, ge=0),
    height: float | None = Query(default=None, ge=0),
    level: str | None = None,
    min_x: int | None = Query(default=None, alias="minX"),
    max_x: int | None = Query(default=None, alias="maxX"),
    min_y: int | None = Query(default=None, alias="minY"),
    max_y: int | None = Query(default=None, alias="maxY"),
    preset: str | None = None,
) -> DataResponse:
    """Entity rows, newest first (standard level)."""
    return _serve(
        AccessPattern.ENTITY, request, resource, x, y, scale, width, height,
        level, (min_x, max_x, min_y, max_y), preset,
    )


@router.get("/aggregates", response_model=DataResponse)
async def get_aggregates(
    request: Request,
    resource: str = Query(pattern=RESOURCE_PATTERN),
    x: float = 0.0,
    y: float = 0.0,
    scale: float = Query(default=1.0, gt=0),
    width: float | None = Query(default=None, ge=0),
    height: float | None = Query(default=None, ge=0),
    level: str | None = None,
    min_x: int | None = Query(default=None, alias="minX"),
    max_x: int | None = Query(default=None, alias="maxX"),
    min_y: int | None = Query(default=None, alias="minY"),
    max_y: int | None = Query(default=None, alias="maxY"),
    preset: str | None = None,
) -> DataResponse:
    """Per-category counts and value statistics (system level)."""
    return _serve(
        AccessPattern.AGGREGATE, request, resource, x, y, scale, width, height,
        level, (min_x, max_x, min_y, max_y), preset,
    )


@router.get("/summary", response_model=DataResponse)
async def get_summary(
    request: Request,
    resource: str = Query(pattern=RESOURCE_PATTERN),
    x: float = 0.0,
    y: float = 0.0,
    scale: float = Query(default=1.0, gt=0),
    width: float | None = Query(default=None, ge=0),
    height: float | None = Query(default=None, ge=0),
    level: str | None = None,
    min_x: int | None = Query(default=None, alias="minX"),
    max_x: int | None = Query(default=None, alias="maxX"),
    min_y: int | None = Query(default=None, alias="minY"),
    max_y: int | None = Query(default=None, alias="maxY"),
    preset: str | None = None,
) -> DataResponse:
    """A single summary row over the visible bounds (universal level)."""
    return _serve(
        AccessPattern.SUMMARY, request, resource, x, y, scale, width, height,
        level, (min_x, max_x, min_y, max_y), preset,
    )
