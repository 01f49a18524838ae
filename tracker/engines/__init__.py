"""Search/answer engine adapters.

Each adapter normalizes one backend into a SearchResult:
    from tracker.engines import get_engine, EngineConfig
    result = await get_engine("bing").query("best shilajit")
"""

from tracker.engines.base import BaseEngine, EngineConfig
from tracker.engines.bing import BingSearchEngine
from tracker.engines.chatgpt import ChatGPTEngine
from tracker.engines.gemini import GeminiEngine
from tracker.engines.google import GoogleSearchEngine
from tracker.engines.perplexity import PerplexityEngine

ENGINES: dict[str, type[BaseEngine]] = {
    engine.engine_id: engine
    for engine in (
        PerplexityEngine,
        GeminiEngine,
        GoogleSearchEngine,
        BingSearchEngine,
        ChatGPTEngine,
    )
}

ENGINE_IDS: tuple[str, ...] = tuple(ENGINES)


def get_engine(engine_id: str, config: EngineConfig | None = None) -> BaseEngine:
    """Factory function to get an engine adapter."""
    engine_class = ENGINES.get(engine_id)
    if engine_class is None:
        raise ValueError(f"Unknown engine: {engine_id}")
    return engine_class(config)


__all__ = [
    "ENGINES",
    "ENGINE_IDS",
    "BaseEngine",
    "BingSearchEngine",
    "ChatGPTEngine",
    "EngineConfig",
    "GeminiEngine",
    "GoogleSearchEngine",
    "PerplexityEngine",
    "get_engine",
]
