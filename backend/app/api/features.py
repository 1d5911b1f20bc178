"""Land-use feature query and area aggregation endpoints.

All responses are GeoJSON FeatureCollections except the area summary.
Category matching is case-insensitive: ``/api/filter/Forest`` and
``/api/filter/FOREST`` return the same features.

Example:
    Page through every feature, 500 at a time:
        >>> client.get("/api/land_use", params={"limit": 500, "offset": 500})

    Features of one category:
        >>> client.get("/api/filter/residential")

    Total area of one category:
        >>> client.get("/api/area/forest").json()
        {'type': 'forest', 'totalAreaSquareMeters': 24617556.72,
         'totalAreaHectares': 2461.755672, 'featureCount': 2}
"""

from __future__ import annotations

import logging
import re

import fastapi
from fastapi import responses

from app.api import dependencies
from app.core import config
from app.db import database

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(prefix="/api", tags=["features"])

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _parse_int(value: str | None, default: int) -> int:
    """Parse the leading integer of a query value, falling back to a default.

    Trailing text is ignored, so ``"1.5"`` reads as 1 and ``"10abc"`` as 10.
    """
    if value is None:
        return default
    match = _LEADING_INT.match(value)
    if match is None:
        return default
    return int(match.group(1))


def _page_params(
    limit: str | None,
    offset: str | None,
    settings: config.Settings,
) -> tuple[int, int]:
    """Resolve paging parameters.

    A missing, non-numeric, zero or negative ``limit`` means the configured
    default page size. ``offset`` defaults to 0 and never goes negative.
    There is no upper bound on ``limit``.
    """
    page_limit = _parse_int(limit, settings.default_page_limit)
    if page_limit <= 0:
        page_limit = settings.default_page_limit
    return page_limit, max(_parse_int(offset, 0), 0)


def _not_found(feature_type: str) -> fastapi.HTTPException:
    return fastapi.HTTPException(
        status_code=404,
        detail=f"No features found with type '{feature_type}'",
    )


@router.get("/land_use")
def list_land_use(
    limit: str | None = None,
    offset: str | None = None,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.FeatureRepositoryProtocol = fastapi.Depends(dependencies.get_repo),  # noqa: B008
) -> responses.JSONResponse:
    """Return one page of land-use features ordered by id.

    Args:
        limit: Page size (default 1000).
        offset: Number of features to skip (default 0).
        settings: Application settings (injected via FastAPI Depends).
        repo: Feature repository (injected via FastAPI Depends).

    Returns:
        FeatureCollection, possibly with an empty ``features`` array.

    Raises:
        HTTPException: 500 if the database query fails.
    """
    page_limit, page_offset = _page_params(limit, offset, settings)
    try:
        collection = repo.page(page_limit, page_offset)
    except database.DatabaseError as exc:
        logger.exception("Error fetching land use")
        raise fastapi.HTTPException(
            status_code=500,
            detail="Database error fetching land use",
        ) from exc

    return responses.JSONResponse(content=collection.to_geojson())


@router.get("/filter/{feature_type}")
def filter_land_use(
    feature_type: str,
    limit: str | None = None,
    offset: str | None = None,
    settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    repo: database.FeatureRepositoryProtocol = fastapi.Depends(dependencies.get_repo),  # noqa: B008
) -> responses.JSONResponse:
    """Return one page of features whose category matches ``feature_type``.

    Raises:
        HTTPException: 404 if the page is empty, 500 if the query fails.
    """
    page_limit, page_offset = _page_params(limit, offset, settings)
    try:
        collection = repo.filter_by_type(feature_type, page_limit, page_offset)
    except database.DatabaseError as exc:
        logger.exception("Error filtering land use by %r", feature_type)
        raise fastapi.HTTPException(
            status_code=500,
            detail="Database error filtering land use",
        ) from exc

    if not collection.features:
        raise _not_found(feature_type)

    return responses.JSONResponse(content=collection.to_geojson())


@router.get("/area/{feature_type}")
def area_by_type(
    feature_type: str,
    repo: database.FeatureRepositoryProtocol = fastapi.Depends(dependencies.get_repo),  # noqa: B008
) -> responses.JSONResponse:
    """Return the geodesic area total and count for one category.

    Areas are computed on the WGS84 ellipsoid, in square meters, and
    converted to hectares by dividing by 10,000.

    Raises:
        HTTPException: 404 if no feature matches, 500 if the query fails.
    """
    try:
        summary = repo.area_by_type(feature_type)
    except database.DatabaseError as exc:
        logger.exception("Error calculating area for %r", feature_type)
        raise fastapi.HTTPException(
            status_code=500,
            detail="Database error calculating area",
        ) from exc

    if summary.feature_count == 0:
        raise _not_found(feature_type)

    return responses.JSONResponse(content=summary.to_json())
