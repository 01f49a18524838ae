"""Brand tracking endpoints: run a query across engines and read history."""

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Query

from api.deps import CoordinatorDep, ResultStoreDep, SettingsDep
from api.exceptions import BadRequestError
from api.schemas.brand_tracking import (
    BrandRankingSchema,
    HistoryResponse,
    SearchResultSchema,
    TrackQueryRequest,
    TrackQueryResponse,
)
from api.schemas.responses import ErrorResponse
from tracker.coordinator import TrackingConfig
from tracker.rankings import calculate_rankings, filter_results

router = APIRouter(prefix="/brand-tracking", tags=["Brand Tracking"])
logger = structlog.get_logger(__name__)


@router.post(
    "",
    response_model=TrackQueryResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}},
)
async def track_query(
    body: TrackQueryRequest,
    settings: SettingsDep,
    store: ResultStoreDep,
    coordinator: CoordinatorDep,
) -> TrackQueryResponse:
    """
    Query all enabled engines for brand mentions.

    The fresh results are appended to the history (oldest dropped beyond the
    configured cap) and ranked on their own.
    """
    query = body.query.strip()
    if not query:
        raise BadRequestError("Query is required", field="query")

    config = TrackingConfig(
        enabled_engines=body.enabled_engines or settings.default_enabled_engines,
        perplexity_api_key=body.perplexity_api_key or settings.perplexity_api_key or "",
        openai_api_key=body.openai_api_key or settings.openai_api_key or "",
        gemini_api_key=body.gemini_api_key or settings.gemini_api_key or "",
        timeout_seconds=settings.engine_timeout_seconds,
        hard_timeout_seconds=settings.engine_hard_timeout_seconds,
        user_agent=settings.engine_user_agent,
    )

    results = await coordinator.query_all(query, config)
    response = TrackQueryResponse(
        results=[SearchResultSchema.from_result(r) for r in results],
        rankings=[BrandRankingSchema.from_ranking(r) for r in calculate_rankings(results)],
        timestamp=datetime.now(UTC).isoformat(),
    )

    # Only results that serialize cleanly reach the history
    history = store.append(results, max_results=settings.results_max_history)
    logger.info("brand_tracking_stored", query=query, new=len(results), history=len(history))
    return response


@router.get("", response_model=HistoryResponse, response_model_exclude_none=True)
async def get_history(
    store: ResultStoreDep,
    query: str | None = Query(None, description="Only results whose query contains this text"),
) -> HistoryResponse:
    """Stored results, optionally filtered by query, with rankings over them."""
    results = filter_results(store.load(), query)

    return HistoryResponse(
        results=[SearchResultSchema.from_result(r) for r in results],
        rankings=[BrandRankingSchema.from_ranking(r) for r in calculate_rankings(results)],
        total_results=len(results),
    )
