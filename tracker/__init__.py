"""Brand visibility tracking across AI search engines.

Use explicit imports:
    from tracker.brands import extract_brands, KNOWN_BRANDS
    from tracker.coordinator import query_all_engines, TrackingConfig
    from tracker.rankings import calculate_rankings
    from tracker.storage import ResultStore
    from tracker.insights import InsightGenerator
"""

__version__ = "0.1.0"

__all__ = [
    # Models
    "BrandMention",
    "BrandRanking",
    "Insight",
    "SearchResult",
    "SourceLink",
    # Extraction
    "KNOWN_BRANDS",
    "BrandLexicon",
    "extract_brands",
    # Fan-out
    "FanOutCoordinator",
    "TrackingConfig",
    "query_all_engines",
    # Rankings
    "calculate_rankings",
    # Storage
    "ResultStore",
    # Insights
    "InsightGenerator",
]

from typing import Any


def __getattr__(name: str) -> Any:
    """Lazy import for tracker submodules."""
    if name in ("BrandMention", "BrandRanking", "Insight", "SearchResult", "SourceLink"):
        from tracker import models

        return getattr(models, name)
    elif name in ("KNOWN_BRANDS", "BrandLexicon", "extract_brands"):
        from tracker import brands

        return getattr(brands, name)
    elif name in ("FanOutCoordinator", "TrackingConfig", "query_all_engines"):
        from tracker import coordinator

        return getattr(coordinator, name)
    elif name == "calculate_rankings":
        from tracker.rankings import calculate_rankings

        return calculate_rankings
    elif name == "ResultStore":
        from tracker.storage import ResultStore

        return ResultStore
    elif name == "InsightGenerator":
        from tracker.insights import InsightGenerator

        return InsightGenerator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
