"""Administrative boundary layer endpoints.

One GET route is registered per fixed level (local, district, province).
Any other level is not routed here and falls through to the API catch-all.

Example:
    Fetch the district boundaries:
        >>> response = client.get("/api/district")
        >>> response.json()["type"]
        'FeatureCollection'

    A level whose file is missing:
        >>> client.get("/api/province").json()
        {'error': 'province boundary not found'}
"""

from __future__ import annotations

from collections.abc import Callable

import fastapi
from fastapi import responses

from app.core import config
from app.db import models as db_models
from app.services import boundaries

router = fastapi.APIRouter(prefix="/api", tags=["boundaries"])


def _boundary_endpoint(
    level: db_models.BoundaryLevel,
) -> Callable[..., responses.JSONResponse]:
    """Build the handler serving one boundary level."""

    def get_boundary(
        settings: config.Settings = fastapi.Depends(config.get_settings),  # noqa: B008
    ) -> responses.JSONResponse:
        try:
            data = boundaries.read_boundary(settings.boundary_dir, level)
        except boundaries.BoundaryNotFoundError as exc:
            raise fastapi.HTTPException(status_code=404, detail=str(exc)) from exc

        return responses.JSONResponse(content=data)

    get_boundary.__name__ = f"get_{level}_boundary"
    get_boundary.__doc__ = f"Return the {level} boundary FeatureCollection."
    return get_boundary


for _level in db_models.BOUNDARY_LEVELS:
    router.add_api_route(
        f"/{_level}",
        _boundary_endpoint(_level),
        methods=["GET"],
        name=f"{_level}_boundary",
    )
