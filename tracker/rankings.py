"""Cross-engine brand rankings.

Rankings are a pure projection over a batch of search results and are
recomputed from scratch on every call.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from tracker.brands import brands_found
from tracker.models import BrandRanking, SearchResult, parse_timestamp

# Sorts before every parseable timestamp
_UNKNOWN_TIME = datetime.min.replace(tzinfo=UTC)


@dataclass
class _BrandTally:
    mentions: int = 0
    positions: list[int] = field(default_factory=list)
    engines: dict[str, None] = field(default_factory=dict)
    last_seen: str = ""


def _sort_time(value: str) -> datetime:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        return _UNKNOWN_TIME


def calculate_rankings(results: Iterable[SearchResult]) -> list[BrandRanking]:
    """
    Aggregate brand mentions across results into rankings.

    Every mention counts, including repeats within one result. Brands are
    ordered by total mentions (descending), then by average lexicon position
    (ascending), so frequency dominates lexicon rank.

    Args:
        results: Search results, fresh or loaded from history

    Returns:
        Rankings, best first
    """
    tallies: dict[str, _BrandTally] = {}

    for result in results:
        for mention in result.brands:
            tally = tallies.get(mention.brand)
            if tally is None:
                tally = _BrandTally(last_seen=mention.timestamp)
                tallies[mention.brand] = tally

            tally.mentions += 1
            tally.positions.append(mention.position)
            tally.engines.setdefault(result.search_engine, None)

            if _sort_time(mention.timestamp) > _sort_time(tally.last_seen):
                tally.last_seen = mention.timestamp

    rankings = [
        BrandRanking(
            brand=brand,
            total_mentions=tally.mentions,
            average_position=(
                sum(tally.positions) / len(tally.positions) if tally.positions else 0.0
            ),
            search_engines=list(tally.engines),
            last_seen=tally.last_seen,
        )
        for brand, tally in tallies.items()
    ]

    rankings.sort(key=lambda r: (-r.total_mentions, r.average_position))
    return rankings


def filter_results(results: Iterable[SearchResult], query: str | None) -> list[SearchResult]:
    """Keep results whose query contains the given text (case-insensitive)."""
    if not query:
        return list(results)
    needle = query.lower()
    return [r for r in results if needle in r.query.lower()]


def top_results_by_engine(
    results: Iterable[SearchResult],
    limit: int = 10,
) -> list[dict[str, Any]]:
    """Project results into per-engine top links and brands found."""
    return [
        {
            "searchEngine": result.search_engine,
            "query": result.query,
            "timestamp": result.timestamp,
            "topResults": [link.to_dict() for link in (result.source_links or [])[:limit]],
            "brandsFound": brands_found(result.brands),
            "rawResponse": result.raw_response,
        }
        for result in results
    ]
