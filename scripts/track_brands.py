#!/usr/bin/env python
"""Query AI search engines for a phrase and print brand rankings.

Credentials are read from the environment (PERPLEXITY_API_KEY,
OPENAI_API_KEY, GOOGLE_GEMINI_API_KEY / GEMINI_API_KEY).

Usage:
    python scripts/track_brands.py "best shilajit" [--engines perplexity,google,bing]
        [--save] [--json] [--verbose]

Examples:
    python scripts/track_brands.py "best shilajit brand"
    python scripts/track_brands.py "shilajit resin" --engines chatgpt,gemini --save
"""

import argparse
import asyncio
import json
import sys

# Add project root to path
sys.path.insert(0, ".")


async def track(
    query: str, engines: list[str], save: bool, log_level: str | None = None
) -> dict:
    """Run one fan-out query and rank the brands found."""
    from api.config import get_settings
    from api.logging import setup_logging
    from tracker.coordinator import TrackingConfig, query_all_engines
    from tracker.rankings import calculate_rankings
    from tracker.storage import ResultStore

    setup_logging(level=log_level)
    settings = get_settings()

    config = TrackingConfig(
        enabled_engines=engines,
        perplexity_api_key=settings.perplexity_api_key or "",
        openai_api_key=settings.openai_api_key or "",
        gemini_api_key=settings.gemini_api_key or "",
        timeout_seconds=settings.engine_timeout_seconds,
        hard_timeout_seconds=settings.engine_hard_timeout_seconds,
    )

    results = await query_all_engines(query, config)
    if save:
        ResultStore(settings.results_file).append(
            results, max_results=settings.results_max_history
        )

    return {
        "query": query,
        "results": [r.to_dict() for r in results],
        "rankings": [r.to_dict() for r in calculate_rankings(results)],
    }


def print_report(report: dict) -> None:
    """Print a human-readable summary."""
    print(f"\n{'='*70}")
    print(f"QUERY: {report['query']}")
    print(f"{'='*70}")

    for result in report["results"]:
        print(f"\n[{result['searchEngine']}]")
        raw = result.get("rawResponse") or ""
        if raw.startswith("Error:"):
            print(f"  {raw}")
            continue
        print(f"  Brands mentioned: {len(result['brands'])}")
        for link in result.get("sourceLinks") or []:
            print(f"  #{link['position']} {link['title']} - {link['url']}")

    print(f"\n{'-'*70}")
    print("RANKINGS")
    print(f"{'-'*70}")
    if not report["rankings"]:
        print("  No known brands mentioned.")
    for i, ranking in enumerate(report["rankings"], 1):
        engines = ", ".join(ranking["searchEngines"])
        print(
            f"  {i:>2}. {ranking['brand']:<22} mentions={ranking['totalMentions']:<4} "
            f"avg_pos={ranking['averagePosition']:.1f}  [{engines}]"
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Track brand mentions across AI search engines")
    parser.add_argument("query", help="Search query")
    parser.add_argument(
        "--engines",
        default="perplexity,google,bing",
        help="Comma-separated engines: perplexity, google, gemini, bing, chatgpt",
    )
    parser.add_argument("--save", action="store_true", help="Append results to the history file")
    parser.add_argument("--json", action="store_true", help="Print raw JSON instead of a summary")
    parser.add_argument("--verbose", action="store_true", help="Log engine requests at DEBUG")
    args = parser.parse_args()

    engines = [e.strip() for e in args.engines.split(",") if e.strip()]
    # Keep stdout parseable when printing JSON
    log_level = "DEBUG" if args.verbose else ("WARNING" if args.json else None)
    report = asyncio.run(track(args.query, engines, args.save, log_level))

    if args.json:
        print(json.dumps(report, indent=2, ensure_ascii=False))
    else:
        print_report(report)


if __name__ == "__main__":
    main()
