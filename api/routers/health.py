"""Liveness, readiness and service info."""

import os
import time
from datetime import UTC, datetime
from typing import Literal

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.config import Settings, get_settings
from tracker import __version__

router = APIRouter(tags=["Health"])
logger = structlog.get_logger(__name__)

_started_at = time.monotonic()

Status = Literal["healthy", "degraded", "unhealthy"]


class HealthResponse(BaseModel):
    """Process is up."""

    status: Status
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str
    uptime_seconds: int


class ReadyResponse(HealthResponse):
    """Process is up and able to track."""

    storage_writable: bool = Field(..., description="Result history directory is writable")
    credentials: dict[str, bool] = Field(
        ..., description="Engine credentials present, by provider"
    )


class ServiceInfo(BaseModel):
    name: str
    version: str
    env: str
    docs: str | None
    engines: list[str]


def _uptime() -> int:
    return int(time.monotonic() - _started_at)


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _history_writable(settings: Settings) -> bool:
    directory = settings.results_file.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("history_dir_unavailable", path=str(directory), error=str(e))
        return False
    return os.access(directory, os.W_OK)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness only; see /ready for storage and credentials."""
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        version=__version__,
        uptime_seconds=_uptime(),
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check() -> ReadyResponse:
    """
    Readiness check.

    Unhealthy when the result history cannot be written. Degraded when no
    API-backed engine has a key, leaving only the scraped engines.
    """
    settings = get_settings()
    writable = _history_writable(settings)
    credentials = {
        "perplexity": bool(settings.perplexity_api_key),
        "openai": bool(settings.openai_api_key),
        "gemini": bool(settings.gemini_api_key),
    }

    status: Status = "healthy"
    if not writable:
        status = "unhealthy"
    elif not any(credentials.values()):
        status = "degraded"

    return ReadyResponse(
        status=status,
        timestamp=_now(),
        version=__version__,
        uptime_seconds=_uptime(),
        storage_writable=writable,
        credentials=credentials,
    )


@router.get("/", response_model=ServiceInfo)
async def service_info() -> ServiceInfo:
    settings = get_settings()
    return ServiceInfo(
        name="Brand Visibility Tracker API",
        version=__version__,
        env=settings.env,
        docs="/docs" if settings.debug else None,
        engines=settings.default_enabled_engines,
    )
