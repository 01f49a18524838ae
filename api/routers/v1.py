"""V1 API router - aggregates all versioned endpoints."""

from fastapi import APIRouter

from api.routers import ai_search, brand_tracking

router = APIRouter()

# Brand tracking endpoints
router.include_router(brand_tracking.router)

# AI search endpoints
router.include_router(ai_search.router)


@router.get("/")
async def v1_root() -> dict[str, str]:
    """V1 API root endpoint."""
    return {
        "version": "1",
        "status": "active",
    }
