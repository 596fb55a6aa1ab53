"""FastAPI application factory, error mapping and request log context."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from explorer_api.api.routes import legacy, v2
from explorer_api.exceptions import (
    DataConsistencyError,
    ExplorerError,
    InvalidRequestError,
    NotFoundError,
    UpstreamUnavailableError,
)
from explorer_api.logging import bind_request_context

log = structlog.get_logger(__name__)

_STATUS_BY_ERROR: list[tuple[type[ExplorerError], int, str]] = [
    (InvalidRequestError, 400, "BadRequest"),
    (NotFoundError, 404, "NotFound"),
    (UpstreamUnavailableError, 503, "ServiceUnavailable"),
    (DataConsistencyError, 500, "InternalServerError"),
]


async def _explorer_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map core errors onto HTTP status codes with a {code, message} body."""
    for error_type, status, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            break
    else:
        status, code = 500, "InternalServerError"

    if status >= 500:
        log.error("request_failed", path=request.url.path, code=code, error=str(exc))
    else:
        log.info("request_rejected", path=request.url.path, code=code, error=str(exc))
    # Internal errors never leak row details to callers
    message = "Internal error" if isinstance(exc, DataConsistencyError) else str(exc)
    return JSONResponse(status_code=status, content={"code": code, "message": message})


def create_api_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the explorer API application.

    Args:
        lifespan: Optional async context manager for application lifespan
                  events. Used by main.py to open the database and start
                  the health refresher.

    Returns:
        FastAPI application with v2 and legacy routers registered. Route
        handlers expect settings, engine, reconciler, health and
        submit_client on app.state.
    """
    app = FastAPI(
        title="Chain Explorer Backend",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def request_log_context(request: Request, call_next: Any) -> Any:
        request_id = bind_request_context(request.url.path)
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    app.add_exception_handler(ExplorerError, _explorer_error_handler)

    # v2 first: /api/v2/... must not be captured by legacy path parameters
    app.include_router(v2.router, prefix="/api/v2")
    app.include_router(legacy.router, prefix="/api")

    return app
