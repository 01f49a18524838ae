"""AI search endpoints: per-engine top results and analysis over them."""

from collections.abc import Sequence
from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Query

from api.config import Settings
from api.deps import CoordinatorDep, InsightGeneratorDep, SettingsDep
from api.exceptions import BadRequestError, ExternalServiceError
from api.schemas.brand_tracking import (
    AiSearchRankingsResponse,
    EngineTopResults,
    InsightSchema,
    InsightsRequest,
    InsightsResponse,
    WhyAnalysisSchema,
    WhyRequest,
    WhyResponse,
)
from api.schemas.responses import ErrorResponse
from tracker.coordinator import FanOutCoordinator, TrackingConfig
from tracker.insights import (
    DEFAULT_BRAND,
    DEFAULT_BRAND_ALIASES,
    DEFAULT_BRAND_DOMAINS,
    InsightGenerationError,
)
from tracker.rankings import top_results_by_engine

router = APIRouter(prefix="/ai-search", tags=["AI Search"])
logger = structlog.get_logger(__name__)

DEFAULT_QUERY = "best shilajit"
OVERVIEW_ENGINES = ["chatgpt"]


def split_engine_ids(values: Sequence[str] | None) -> list[str]:
    """Engine ids from repeated and/or comma-separated query values."""
    ids: list[str] = []
    for value in values or ():
        ids.extend(part.strip().lower() for part in value.split(",") if part.strip())
    return ids


async def _top_results(
    settings: Settings,
    coordinator: FanOutCoordinator,
    query: str,
    engines: list[str],
) -> AiSearchRankingsResponse:
    config = TrackingConfig(
        enabled_engines=engines,
        perplexity_api_key=settings.perplexity_api_key or "",
        openai_api_key=settings.openai_api_key or "",
        gemini_api_key=settings.gemini_api_key or "",
        timeout_seconds=settings.engine_timeout_seconds,
        hard_timeout_seconds=settings.engine_hard_timeout_seconds,
        user_agent=settings.engine_user_agent,
    )

    results = await coordinator.query_all(query, config)
    logger.info("ai_search_top_results", query=query, engines=engines, results=len(results))

    return AiSearchRankingsResponse(
        query=query,
        results=[
            EngineTopResults.model_validate(item)
            for item in top_results_by_engine(results, limit=10)
        ],
        timestamp=datetime.now(UTC).isoformat(),
    )


@router.get("/rankings", response_model=AiSearchRankingsResponse)
async def ai_search_rankings(
    settings: SettingsDep,
    coordinator: CoordinatorDep,
    q: str = Query(DEFAULT_QUERY, description="Search query"),
    engines: list[str] | None = Query(
        None, description="Engine ids, repeated or comma-separated"
    ),
) -> AiSearchRankingsResponse:
    """Top results per engine for a query, using server-side credentials."""
    engine_ids = split_engine_ids(engines) or settings.rankings_enabled_engines
    return await _top_results(settings, coordinator, q, engine_ids)


@router.get("/overview", response_model=AiSearchRankingsResponse)
async def ai_search_overview(
    settings: SettingsDep,
    coordinator: CoordinatorDep,
    query: str = Query(DEFAULT_QUERY, description="Search query"),
) -> AiSearchRankingsResponse:
    """ChatGPT's top results for a query."""
    return await _top_results(settings, coordinator, query, list(OVERVIEW_ENGINES))


@router.post(
    "/insights",
    response_model=InsightsResponse,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def ai_search_insights(
    body: InsightsRequest,
    generator: InsightGeneratorDep,
) -> InsightsResponse:
    """Competitive insights over per-engine results."""
    if not body.query or body.results is None:
        raise BadRequestError("Missing query or results")

    try:
        insights = await generator.generate(
            body.query,
            body.results_payload(),
            brand=body.brand or DEFAULT_BRAND,
        )
    except InsightGenerationError as e:
        raise ExternalServiceError("OpenAI", str(e)) from e

    return InsightsResponse(insights=[InsightSchema.from_insight(i) for i in insights])


@router.post(
    "/why",
    response_model=WhyResponse,
    responses={
        400: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def ai_search_why(
    body: WhyRequest,
    generator: InsightGeneratorDep,
) -> WhyResponse:
    """Why the results look as they do, and why the brand does or does not appear."""
    if not body.query or body.results is None:
        raise BadRequestError("Missing query or results")

    try:
        analysis = await generator.explain(
            body.query,
            body.results_payload(),
            brand=body.brand or DEFAULT_BRAND,
            brand_domains=body.brand_domains or DEFAULT_BRAND_DOMAINS,
            brand_aliases=body.brand_aliases or DEFAULT_BRAND_ALIASES,
        )
    except InsightGenerationError as e:
        raise ExternalServiceError("OpenAI", str(e)) from e

    return WhyResponse(analysis=WhyAnalysisSchema.from_analysis(analysis))
