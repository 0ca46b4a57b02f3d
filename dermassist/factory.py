"""Application factory: builds the FastAPI app with middlewares, handlers, and routes."""

import asyncio
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager, suppress
import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from dermassist.api.v1 import router as v1_router
from dermassist.core import Settings, get_settings
from dermassist.providers import build_adapters, build_provider_config, close_adapters
from dermassist.providers.base import ProviderAdapter
from dermassist.schemas import ErrorResponse
from dermassist.services import FallbackRouter, HealthCache, RequestOrchestrator, ResponseValidator

logger = logging.getLogger(__name__)


def _build_components(
    app: FastAPI, settings: Settings, adapters: Mapping[str, ProviderAdapter] | None
) -> None:
    """Construct the provider stack once and keep it on ``app.state``."""
    config = build_provider_config(settings)
    if adapters is None:
        adapters = build_adapters(config, settings)
    health = HealthCache(
        adapters,
        stale_after=settings.health_stale_after,
        probe_timeout=settings.health_probe_timeout,
    )
    router = FallbackRouter(config=config, adapters=adapters, health=health)
    validator = ResponseValidator(
        threshold=settings.min_confidence_threshold, valid_labels=settings.valid_labels
    )
    app.state.provider_config = config
    app.state.adapters = adapters
    app.state.health_cache = health
    app.state.orchestrator = RequestOrchestrator(
        router=router, validator=validator, max_image_bytes=settings.max_image_bytes
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info(
        "Starting application",
        extra={
            "app_name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        },
    )
    _build_components(app, settings, app.state.injected_adapters)
    logger.info(
        "Providers configured",
        extra={"providers": [p.id for p in app.state.provider_config]},
    )

    # Warm-up runs in the background so startup never waits on a slow backend.
    warmup = asyncio.create_task(
        app.state.health_cache.warm_up(attempts=settings.health_warmup_attempts),
        name="provider-warmup",
    )
    app.state.warmup_task = warmup

    yield

    logger.info("Shutting down application")
    warmup.cancel()
    with suppress(asyncio.CancelledError):
        await warmup
    await close_adapters(app.state.adapters)


def create_app(
    settings: Settings | None = None,
    adapters: Mapping[str, ProviderAdapter] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``adapters`` replaces the adapters normally built from settings; tests use it
    to run the full stack against fake backends.
    """
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=(
            "Classifies skin-condition photos through a remote model service and "
            "generates plain-language advice through a fallback chain of LLM backends."
        ),
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.settings = settings
    app.state.injected_adapters = adapters

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        start_time = time.perf_counter()
        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
            process_time = (time.perf_counter() - start_time) * 1000
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Process-Time-Ms"] = f"{process_time:.2f}"
            logger.info(
                "Request completed",
                extra={
                    "request_id": request_id,
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time_ms": round(process_time, 2),
                },
            )
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="validation_error",
                message="Request validation failed",
                request_id=request_id,
                details={"errors": jsonable_errors(exc)},
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = getattr(request.state, "request_id", None)
        logger.error(
            "Unhandled exception",
            extra={"request_id": request_id, "error": str(exc)},
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="internal_error",
                message="An unexpected error occurred",
                request_id=request_id,
            ).model_dump(),
        )

    app.include_router(v1_router)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the raw input bytes or exception objects."""
    return [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
