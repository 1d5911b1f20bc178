"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that sets up
logging, CORS middleware and JSON error responses, includes API routers
for boundaries, features and uploads, answers unknown ``/api`` paths with
a 404 and serves the prebuilt frontend for everything else.

Example:
    The application can be run with uvicorn:
        $ uvicorn app.main:app --reload

    Or imported and used programmatically:
        >>> from app.main import create_app
        >>> app = create_app(Settings(boundary_dir=Path("data")))
"""

from __future__ import annotations

import logging

import fastapi
from fastapi import staticfiles
from fastapi.middleware import cors

from app.api import boundaries, features, upload
from app.core import config, errors

logger = logging.getLogger(__name__)

_ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def create_app(settings: config.Settings | None = None) -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Sets up CORS middleware, includes API routers, adds a health check and
    the API catch-all, then mounts the static frontend when its directory
    exists. The frontend mount is registered last so every API route wins.

    Args:
        settings: Settings to use instead of the cached environment settings.
            When given, they are also injected into every request handler.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    if settings is None:
        settings = config.get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = fastapi.FastAPI(title="Land Use Map", version="0.1.0")
    app.dependency_overrides[config.get_settings] = lambda: settings

    app.include_router(boundaries.router)
    app.include_router(features.router)
    app.include_router(upload.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    errors.register_exception_handlers(app)

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    @app.api_route(
        "/api/{path:path}",
        methods=_ALL_METHODS,
        include_in_schema=False,
    )
    async def api_not_found(path: str) -> None:
        raise fastapi.HTTPException(
            status_code=404,
            detail="API endpoint not found",
        )

    if settings.frontend_dir.is_dir():
        app.mount(
            "/",
            staticfiles.StaticFiles(directory=settings.frontend_dir, html=True),
            name="frontend",
        )
    else:
        logger.warning(
            "Frontend directory %s not found, static files disabled",
            settings.frontend_dir,
        )

    return app


app = create_app()
