"""JSON error envelope shared by every endpoint.

Handlers raise ``fastapi.HTTPException`` with a human-readable ``detail``.
The handlers registered here render it as ``{"error": detail}`` so the
frontend only ever has to look at one field.
"""

from __future__ import annotations

import logging

import fastapi
from fastapi import exceptions as fastapi_exceptions
from fastapi import responses
from starlette import exceptions as starlette_exceptions

logger = logging.getLogger(__name__)


async def http_error_handler(
    request: fastapi.Request,
    exc: starlette_exceptions.HTTPException,
) -> responses.JSONResponse:
    """Render an HTTPException as ``{"error": detail}``."""
    return responses.JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


async def validation_error_handler(
    request: fastapi.Request,
    exc: fastapi_exceptions.RequestValidationError,
) -> responses.JSONResponse:
    """Render request validation failures as a 400 with the first problem."""
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, errors)
    return responses.JSONResponse(status_code=400, content={"error": message})


def register_exception_handlers(app: fastapi.FastAPI) -> None:
    app.add_exception_handler(
        starlette_exceptions.HTTPException,
        http_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        fastapi_exceptions.RequestValidationError,
        validation_error_handler,  # type: ignore[arg-type]
    )
