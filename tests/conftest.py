"""Pytest configuration and fixtures."""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment before any app code runs; engines must never see real keys
os.environ["ENV"] = "test"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="brand-tracking-test-")
for _key in (
    "OPENAI_API_KEY",
    "OPEN_AI_KEY",
    "OPEN_API_KEY",
    "PERPLEXITY_API_KEY",
    "GOOGLE_GEMINI_API_KEY",
    "GEMINI_API_KEY",
):
    os.environ.pop(_key, None)

from tracker.models import BrandMention, SearchResult, SourceLink  # noqa: E402
from tracker.storage import ResultStore  # noqa: E402

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    """Use the test env, not stale cached settings."""
    from api.config import get_settings

    get_settings.cache_clear()


@pytest.fixture
def store(tmp_path) -> ResultStore:
    """Result store backed by a temporary file."""
    return ResultStore(tmp_path / "results.json")


@pytest.fixture
def make_result() -> Callable[..., SearchResult]:
    """Build a SearchResult with the given brand names mentioned once each."""

    def _make(
        engine: str = "Perplexity",
        brands: tuple[str, ...] = (),
        query: str = "best shilajit",
        timestamp: str = "2024-05-01T12:00:00Z",
        links: tuple[str, ...] = (),
        raw_response: str | None = "answer",
    ) -> SearchResult:
        from tracker.brands import default_lexicon

        return SearchResult(
            query=query,
            search_engine=engine,
            timestamp=timestamp,
            brands=[
                BrandMention(
                    brand=name,
                    position=default_lexicon.rank(name) or 0,
                    context=f"... {name} ...",
                    timestamp=timestamp,
                )
                for name in brands
            ],
            raw_response=raw_response,
            source_links=[
                SourceLink(url=url, title=f"Link {i}", position=i)
                for i, url in enumerate(links, 1)
            ],
        )

    return _make


@pytest.fixture
def mock_transport() -> Callable[[Handler], httpx.MockTransport]:
    """Wrap a request handler as an httpx transport, recording requests."""

    def _make(handler: Handler) -> httpx.MockTransport:
        requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        transport = httpx.MockTransport(_record)
        transport.requests = requests  # type: ignore[attr-defined]
        return transport

    return _make


@pytest.fixture
async def client(store: ResultStore) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client with history stored under tmp_path."""
    from api.deps import get_result_store
    from api.main import app

    app.dependency_overrides[get_result_store] = lambda: store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
