"""FastAPI application factory with role-based route mounting."""

import os
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from holdfast.jobs.scheduler import build_scheduler
from holdfast.observability.correlation import (
    CORRELATION_ID_HEADER,
    generate_correlation_id,
    get_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from holdfast.observability.logging import get_logger
from holdfast.observability.redaction import safe_log_context

from .deps import get_services
from .routers import public, worker

AppRole = Literal["public", "worker"]

logger = get_logger(__name__)


@asynccontextmanager
async def _worker_lifespan(app: FastAPI):
    """Run the periodic jobs in-process when SCHEDULER_ENABLED is set."""
    services = app.dependency_overrides.get(get_services, get_services)()
    scheduler = None
    if services.settings.scheduler_enabled:
        scheduler = build_scheduler(
            services.settings,
            services.expire_task,
            services.cleanup_task,
            services.publisher,
        )
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("scheduler started")
    try:
        yield
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)


def create_app(role: AppRole | None = None) -> FastAPI:
    """Create FastAPI app with routes based on APP_ROLE.

    Args:
        role: Explicit role override. If None, reads from APP_ROLE env var.
              Defaults to "public" if env var is not set.

    Returns:
        Configured FastAPI application.
    """
    if role is None:
        role = os.environ.get("APP_ROLE", "public")  # type: ignore[assignment]

    app = FastAPI(
        title="holdfast",
        docs_url=None,
        redoc_url=None,
        lifespan=_worker_lifespan if role == "worker" else None,
    )

    # Correlation ID middleware
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled error",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=get_correlation_id(),
                    path=request.url.path,
                )
            },
        )
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    # Mount public routes (always)
    app.include_router(public.router)

    # Mount worker routes only for worker role
    if role == "worker":
        app.include_router(worker.router)

    return app
