"""Fan-out coordinator: query every enabled engine concurrently."""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import httpx
import structlog

from tracker.engines import ENGINES, BaseEngine, EngineConfig
from tracker.engines.base import BROWSER_USER_AGENT, resolve_api_key
from tracker.engines.gemini import GeminiEngine
from tracker.engines.google import GoogleSearchEngine
from tracker.models import SearchResult

logger = structlog.get_logger(__name__)

DEFAULT_ENABLED_ENGINES = ("perplexity", "google", "bing")


@dataclass
class TrackingConfig:
    """Configuration for one fan-out query."""

    enabled_engines: Sequence[str] = DEFAULT_ENABLED_ENGINES

    # Credentials; adapters fall back to their environment variables
    perplexity_api_key: str = ""
    openai_api_key: str = ""
    gemini_api_key: str = ""

    timeout_seconds: float = 30.0
    hard_timeout_seconds: float | None = None
    user_agent: str = BROWSER_USER_AGENT
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)

    def engine_config(self, engine_class: type[BaseEngine]) -> EngineConfig:
        """Get config for a specific engine."""
        api_key = ""
        if engine_class.engine_id == "perplexity":
            api_key = self.perplexity_api_key
        elif engine_class.engine_id == "chatgpt":
            api_key = self.openai_api_key
        elif engine_class.engine_id == "gemini":
            api_key = self.gemini_api_key

        return EngineConfig(
            api_key=api_key,
            timeout_seconds=self.timeout_seconds,
            hard_timeout_seconds=self.hard_timeout_seconds,
            user_agent=self.user_agent,
            transport=self.transport,
        )

    def resolve_engine_class(self, engine_id: str) -> type[BaseEngine] | None:
        """
        Map an enabled engine id to its adapter class.

        ``google`` is served by grounded Gemini when a Gemini key is
        available and by the scraped results page otherwise.
        """
        if engine_id == "google":
            if resolve_api_key(self.gemini_api_key, GeminiEngine.api_key_env_vars):
                return GeminiEngine
            return GoogleSearchEngine
        return ENGINES.get(engine_id)


EngineFactory = Callable[[type[BaseEngine], EngineConfig], BaseEngine]


def _default_factory(engine_class: type[BaseEngine], config: EngineConfig) -> BaseEngine:
    return engine_class(config)


class FanOutCoordinator:
    """Dispatches a query to engines concurrently and collects settled results."""

    def __init__(self, engine_factory: EngineFactory | None = None):
        self.engine_factory = engine_factory or _default_factory

    def build_engines(self, config: TrackingConfig) -> list[BaseEngine]:
        """One adapter per enabled engine id, skipping unknown ids and duplicates."""
        engines: list[BaseEngine] = []
        selected: set[type[BaseEngine]] = set()

        for engine_id in config.enabled_engines:
            engine_class = config.resolve_engine_class(engine_id)
            if engine_class is None:
                logger.warning("unknown_engine_skipped", engine=engine_id)
                continue
            if engine_class in selected:
                continue

            selected.add(engine_class)
            engines.append(self.engine_factory(engine_class, config.engine_config(engine_class)))

        return engines

    async def query_all(self, query_text: str, config: TrackingConfig) -> list[SearchResult]:
        """
        Query every enabled engine and wait for all of them to settle.

        Results are returned in completion order. An engine that raises
        instead of returning a result breaks the adapter contract; it is
        logged and left out of the batch.

        Args:
            query_text: The search query
            config: Enabled engines and credentials

        Returns:
            One result per engine that honoured its contract
        """
        engines = self.build_engines(config)
        logger.info(
            "fan_out_started",
            query=query_text,
            engines=[e.engine_id for e in engines],
        )

        async def settle(engine: BaseEngine) -> tuple[BaseEngine, SearchResult | Exception]:
            try:
                return engine, await engine.query(query_text)
            except Exception as e:
                return engine, e

        results: list[SearchResult] = []
        for next_done in asyncio.as_completed([settle(engine) for engine in engines]):
            engine, outcome = await next_done
            if isinstance(outcome, Exception):
                logger.error(
                    "engine_contract_violation",
                    engine=engine.engine_id,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                continue
            results.append(outcome)

        logger.info(
            "fan_out_completed",
            query=query_text,
            results=len(results),
            errors=sum(1 for r in results if r.is_error),
        )
        return results


async def query_all_engines(
    query_text: str,
    config: TrackingConfig | None = None,
) -> list[SearchResult]:
    """
    Convenience function to query all enabled engines.

    Args:
        query_text: The search query
        config: Optional tracking configuration

    Returns:
        Settled results in completion order
    """
    return await FanOutCoordinator().query_all(query_text, config or TrackingConfig())
