"""FastAPI application factory and main entrypoint."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from api.config import get_settings
from api.exceptions import TrackerError
from api.logging import setup_logging
from tracker import __version__
from tracker.engines import ENGINE_IDS

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log the effective tracking configuration on startup."""
    settings = get_settings()

    unknown = [e for e in settings.default_enabled_engines if e not in ENGINE_IDS]
    if unknown:
        logger.warning("default_engines_unknown", engines=unknown, known=list(ENGINE_IDS))

    logger.info(
        "tracker_api_starting",
        env=settings.env,
        version=__version__,
        results_file=str(settings.results_file),
        max_history=settings.results_max_history,
        default_engines=settings.default_enabled_engines,
        rankings_engines=settings.rankings_enabled_engines,
        insights_enabled=settings.insights_enabled,
    )
    yield
    logger.info("tracker_api_stopped")


def error_response(
    status_code: int,
    code: str,
    message: str,
    **extra: Any,
) -> ORJSONResponse:
    """Render the ``{"error": {...}}`` envelope shared by every failure."""
    body: dict[str, Any] = {"code": code, "message": message}
    body.update({k: v for k, v in extra.items() if v})
    return ORJSONResponse(status_code=status_code, content={"error": body})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    docs_enabled = settings.debug

    app = FastAPI(
        title="Brand Visibility Tracker",
        description="Track brand mentions and citations across AI search engines",
        version=__version__,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # Last added runs first: CORS wraps the request context
    from api.middleware import RequestContextMiddleware

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time-Ms"],
    )

    register_exception_handlers(app)

    from api.routers import health, v1

    app.include_router(health.router, prefix="/api")
    app.include_router(v1.router, prefix="/v1")

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Map application, validation and unexpected errors to the error envelope."""

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(request: Request, exc: TrackerError) -> ORJSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log("request_failed", error_code=exc.code, message=exc.message, path=request.url.path)
        return error_response(exc.status_code, exc.code, exc.message, details=exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        # Drop the leading "body"/"query" segment of the location
        field = ".".join(str(part) for part in first.get("loc", ())[1:])

        logger.warning("request_invalid", path=request.url.path, error_count=len(errors))
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "validation_error",
            first.get("msg", "Validation error"),
            field=field,
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
        logger.error(
            "request_crashed",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "internal_error",
            "An unexpected error occurred",
        )


app = create_app()
