"""Tests for search engine adapters."""

import asyncio
import json

import httpx
import pytest

from tracker.engines import (
    ENGINE_IDS,
    BingSearchEngine,
    ChatGPTEngine,
    EngineConfig,
    GeminiEngine,
    GoogleSearchEngine,
    PerplexityEngine,
    get_engine,
)
from tracker.engines.base import BaseEngine, extract_urls, host_in, resolve_api_key
from tracker.engines.gemini import grounding_links
from tracker.engines.html import is_blocked
from tracker.engines.perplexity import normalize_citations

FILLER = "<p>" + "Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 25 + "</p>"


def _page(body: str) -> str:
    return f"<html><head><title>results</title></head><body>{body}{FILLER}</body></html>"


def _html_response(html: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, text=html, headers={"content-type": "text/html"})


def _chat_response(content: str, **extra) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}], **extra})


class TestHelpers:
    """Tests for shared adapter helpers."""

    def test_extract_urls_strips_trailing_punctuation(self) -> None:
        """Prose punctuation is not part of the URL."""
        text = "See https://a.example/x, and (https://b.example/y). Also https://c.example/z!"

        assert extract_urls(text) == [
            "https://a.example/x",
            "https://b.example/y",
            "https://c.example/z",
        ]

    def test_extract_urls_limit(self) -> None:
        """Stops after the limit."""
        text = " ".join(f"https://{i}.example" for i in range(5))

        assert len(extract_urls(text, limit=2)) == 2

    def test_host_in_matches_subdomains(self) -> None:
        """Subdomains of an excluded domain match."""
        assert host_in("https://www.google.com/search", ["google.com"])
        assert not host_in("https://notgoogle.com/", ["google.com"])
        assert not host_in("not a url", ["google.com"])

    def test_resolve_api_key_order(self, monkeypatch) -> None:
        """Explicit key wins, then env vars in order."""
        monkeypatch.setenv("SECOND_KEY", "second")

        assert resolve_api_key("explicit", ["FIRST_KEY", "SECOND_KEY"]) == "explicit"
        assert resolve_api_key("", ["FIRST_KEY", "SECOND_KEY"]) == "second"
        assert resolve_api_key(None, ["FIRST_KEY"]) == ""

    def test_is_blocked(self) -> None:
        """Short pages and pages with challenge markers are blocked."""
        assert is_blocked("<html></html>", ["b_captcha"])
        assert is_blocked(_page('<div class="b_captcha"></div>'), ["b_captcha"])
        assert not is_blocked(_page("<div>ok</div>"), ["b_captcha"])


class TestRegistry:
    """Tests for engine lookup."""

    def test_engine_ids(self) -> None:
        """All engines are registered."""
        assert set(ENGINE_IDS) == {"perplexity", "gemini", "google", "bing", "chatgpt"}

    def test_get_engine(self) -> None:
        """Factory returns the adapter for an id."""
        assert isinstance(get_engine("bing"), BingSearchEngine)

    def test_get_engine_unknown(self) -> None:
        """Unknown ids raise."""
        with pytest.raises(ValueError, match="Unknown engine"):
            get_engine("altavista")


class TestGoogleSearchEngine:
    """Tests for the scraped Google adapter."""

    @pytest.mark.asyncio
    async def test_parses_organic_results(self, mock_transport) -> None:
        """Result containers become titled links with snippets."""
        html = _page(
            '<div class="g"><a href="https://a.example/review"><h3>Review A</h3></a>'
            '<div class="VwiC3b">Purblack is a top pick</div></div>'
            '<div class="g"><a href="https://b.example/list"><h3>List B</h3></a>'
            '<div class="VwiC3b">Sunfood and PrimaVie</div></div>'
        )
        transport = mock_transport(lambda request: _html_response(html))
        engine = GoogleSearchEngine(EngineConfig(transport=transport))

        result = await engine.query("best shilajit")

        assert result.search_engine == "Google AI Overview"
        assert not result.is_error
        assert [(link.url, link.title, link.position) for link in result.source_links] == [
            ("https://a.example/review", "Review A", 1),
            ("https://b.example/list", "List B", 2),
        ]
        assert result.source_links[0].snippet == "Purblack is a top pick"
        assert result.raw_response == 'Found 2 search results for "best shilajit"'
        assert {m.brand for m in result.brands} == {"Purblack", "Sunfood", "PrimaVie"}

        request = transport.requests[0]
        assert request.url.params["q"] == "best shilajit"
        assert request.url.params["hl"] == "en"

    @pytest.mark.asyncio
    async def test_ai_overview_is_raw_response(self, mock_transport) -> None:
        """AI Overview text is preferred as the raw response."""
        html = _page(
            '<div id="AIOverview">Top brands include Purblack.</div>'
            '<div class="g"><a href="https://a.example/"><h3>A</h3></a></div>'
        )
        engine = GoogleSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: _html_response(html)))
        )

        result = await engine.query("best shilajit")

        assert result.raw_response == "Top brands include Purblack."

    @pytest.mark.asyncio
    async def test_falls_back_to_outbound_links(self, mock_transport) -> None:
        """Without result containers, external anchors are used, skipping Google's own."""
        html = _page(
            '<a href="https://www.google.com/preferences">Settings</a>'
            '<a href="https://c.example/guide">Guide C</a>'
            '<a href="/relative">Relative</a>'
        )
        engine = GoogleSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: _html_response(html)))
        )

        result = await engine.query("q")

        assert [link.url for link in result.source_links] == ["https://c.example/guide"]
        assert result.source_links[0].title == "Guide C"

    @pytest.mark.asyncio
    async def test_blocked_page(self, mock_transport) -> None:
        """Challenge pages produce a distinct blocked error."""
        html = _page('<form action="/sorry/index"></form>')
        engine = GoogleSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: _html_response(html)))
        )

        result = await engine.query("q")

        assert result.is_error
        assert "blocking automated requests" in result.raw_response
        assert result.brands == []
        assert result.source_links == []

    @pytest.mark.asyncio
    async def test_no_results_message(self, mock_transport) -> None:
        """A page with no links reports that nothing was found."""
        engine = GoogleSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: _html_response(_page(""))))
        )

        result = await engine.query("q")

        assert not result.is_error
        assert result.raw_response.startswith("No results found")
        assert result.source_links == []

    @pytest.mark.asyncio
    async def test_caps_links_at_ten(self, mock_transport) -> None:
        """Twelve result containers yield ten links, numbered 1..10."""
        items = "".join(
            f'<div class="g"><a href="https://{i}.example/"><h3>Site {i}</h3></a></div>'
            for i in range(12)
        )
        engine = GoogleSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: _html_response(_page(items))))
        )

        result = await engine.query("q")

        assert [link.position for link in result.source_links] == list(range(1, 11))
        assert result.source_links[-1].url == "https://9.example/"


class TestBingSearchEngine:
    """Tests for the scraped Bing adapter."""

    @pytest.mark.asyncio
    async def test_caps_links_at_five(self, mock_transport) -> None:
        """At most five links, numbered 1..5."""
        items = "".join(
            f'<li class="b_algo"><h2><a href="https://{i}.example/">Site {i}</a></h2>'
            f'<div class="b_caption"><p>Snippet {i}</p></div></li>'
            for i in range(7)
        )
        engine = BingSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: _html_response(_page(items))))
        )

        result = await engine.query("q")

        assert result.search_engine == "Bing Chat"
        assert [link.position for link in result.source_links] == [1, 2, 3, 4, 5]
        assert result.source_links[0].title == "Site 0"
        assert result.source_links[0].snippet == "Snippet 0"

    @pytest.mark.asyncio
    async def test_raw_response_is_page_text(self, mock_transport) -> None:
        """Raw response is the visible page text, scripts excluded."""
        html = _page("<script>var hidden = 1;</script><div>Organic India rocks</div>")
        engine = BingSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: _html_response(html)))
        )

        result = await engine.query("q")

        assert "Organic India rocks" in result.raw_response
        assert "hidden" not in result.raw_response
        assert [m.brand for m in result.brands] == ["Organic India"]

    @pytest.mark.asyncio
    async def test_http_error(self, mock_transport) -> None:
        """Non-200 responses become error results."""
        engine = BingSearchEngine(
            EngineConfig(transport=mock_transport(lambda r: httpx.Response(503, text="down")))
        )

        result = await engine.query("q")

        assert result.raw_response == "Error: HTTP 503: down"

    @pytest.mark.asyncio
    async def test_network_failure(self, mock_transport) -> None:
        """Connection errors never escape the adapter."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        engine = BingSearchEngine(EngineConfig(transport=mock_transport(handler)))

        result = await engine.query("q")

        assert result.raw_response == "Error: connection refused"
        assert result.search_engine == "Bing Chat"
        assert result.brands == []
        assert result.source_links == []

    @pytest.mark.asyncio
    async def test_http_timeout(self, mock_transport) -> None:
        """HTTP timeouts are reported with the configured timeout."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        engine = BingSearchEngine(EngineConfig(timeout_seconds=5, transport=mock_transport(handler)))

        result = await engine.query("q")

        assert result.raw_response == "Error: Request timed out after 5s"

    @pytest.mark.asyncio
    async def test_hard_timeout(self, mock_transport) -> None:
        """A slow backend is cut off by the hard deadline."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return _html_response(_page(""))

        engine = BingSearchEngine(
            EngineConfig(hard_timeout_seconds=0.05, transport=mock_transport(handler))
        )

        result = await engine.query("q")

        assert result.raw_response == "Error: Bing Chat timed out after 0.05s"
        assert result.source_links == []


class RaisingTimeoutEngine(BaseEngine):
    engine_id = "raising"
    label = "Raising"

    async def _search(self, query_text: str):
        raise TimeoutError()


class TestInnerTimeoutError:
    """A TimeoutError raised by the adapter itself is not a deadline expiry."""

    @pytest.mark.asyncio
    async def test_without_hard_timeout(self) -> None:
        """Reported as a plain failure, never with a missing deadline."""
        result = await RaisingTimeoutEngine().query("q")

        assert result.raw_response == "Error: TimeoutError"
        assert "None" not in result.raw_response
        assert result.source_links == []

    @pytest.mark.asyncio
    async def test_with_unexpired_hard_timeout(self) -> None:
        """An unexpired deadline does not claim the error."""
        engine = RaisingTimeoutEngine(EngineConfig(hard_timeout_seconds=5))

        result = await engine.query("q")

        assert result.raw_response == "Error: TimeoutError"


class TestPerplexityEngine:
    """Tests for the Perplexity adapter."""

    @pytest.mark.asyncio
    async def test_api_with_citations(self, mock_transport) -> None:
        """API answers are mined for brands and citations are capped at five."""
        citations = ["https://0.example"] + [
            {"url": f"https://{i}.example", "title": f"Title {i}"} for i in range(1, 7)
        ]
        transport = mock_transport(
            lambda r: _chat_response("Purblack and Sunfood lead.", citations=citations)
        )
        engine = PerplexityEngine(EngineConfig(api_key="pplx-test", transport=transport))

        result = await engine.query("best shilajit")

        assert result.raw_response == "Purblack and Sunfood lead."
        assert [m.brand for m in result.brands] == ["Purblack", "Sunfood"]
        assert len(result.source_links) == 5
        assert result.source_links[0].title == "Source 1"
        assert result.source_links[1].title == "Title 1"

        request = transport.requests[0]
        assert request.url == "https://api.perplexity.ai/chat/completions"
        assert request.headers["Authorization"] == "Bearer pplx-test"
        body = json.loads(request.content)
        assert body["messages"][0]["content"] == "best shilajit"
        assert body["return_citations"] is True

    @pytest.mark.asyncio
    async def test_web_fallback_without_key(self, mock_transport) -> None:
        """Without a key the public search page is scraped."""
        html = _page('<a href="https://a.example/">A</a><div>PrimaVie extract</div>')
        transport = mock_transport(lambda r: _html_response(html))
        engine = PerplexityEngine(EngineConfig(transport=transport))

        result = await engine.query("q")

        assert not result.is_error
        assert transport.requests[0].method == "GET"
        assert [link.url for link in result.source_links] == ["https://a.example/"]
        assert [m.brand for m in result.brands] == ["PrimaVie"]

    @pytest.mark.asyncio
    async def test_invalid_json(self, mock_transport) -> None:
        """A non-JSON body becomes an error result."""
        engine = PerplexityEngine(
            EngineConfig(
                api_key="k",
                transport=mock_transport(lambda r: httpx.Response(200, text="<html>")),
            )
        )

        result = await engine.query("q")

        assert result.is_error

    def test_normalize_citations_falls_back_to_search_results(self) -> None:
        """search_results are used when citations are absent."""
        links = normalize_citations(
            {"citations": [], "search_results": [{"url": "https://a.example", "title": "A"}]}
        )

        assert [(link.url, link.title) for link in links] == [("https://a.example", "A")]

    def test_normalize_citations_skips_entries_without_url(self) -> None:
        """Entries without a URL are dropped."""
        links = normalize_citations({"citations": [{"title": "no url"}, 42, "https://a.example"]})

        assert [(link.url, link.position) for link in links] == [("https://a.example", 1)]

    def test_normalize_citations_non_string_fields(self) -> None:
        """Non-string titles and snippets fall back instead of leaking through."""
        links = normalize_citations(
            {
                "citations": [
                    {"url": "https://a.example", "title": 7, "snippet": ["x"]},
                    {"url": 12, "title": "bad url"},
                    {"url": "https://b.example", "title": None},
                ]
            }
        )

        assert [(link.url, link.title, link.snippet) for link in links] == [
            ("https://a.example", "Source 1", None),
            ("https://b.example", "Source 2", None),
        ]

    @pytest.mark.asyncio
    async def test_non_string_citation_title_serializes(self, mock_transport) -> None:
        """A numeric citation title still yields a schema-valid result."""
        from api.schemas.brand_tracking import SearchResultSchema

        transport = mock_transport(
            lambda r: _chat_response("ok", citations=[{"url": "https://a.example", "title": 7}])
        )
        engine = PerplexityEngine(EngineConfig(api_key="k", transport=transport))

        result = await engine.query("q")

        schema = SearchResultSchema.from_result(result)
        assert schema.source_links[0].title == "Source 1"


class TestGeminiEngine:
    """Tests for the grounded Gemini adapter."""

    @pytest.mark.asyncio
    async def test_missing_key_makes_no_request(self, mock_transport) -> None:
        """A missing key is reported without touching the network."""
        transport = mock_transport(lambda r: httpx.Response(200, json={}))
        engine = GeminiEngine(EngineConfig(transport=transport))

        result = await engine.query("q")

        assert result.is_error
        assert "Gemini API key required" in result.raw_response
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_grounding_links(self, mock_transport) -> None:
        """Grounding chunks become deduplicated links."""
        data = {
            "candidates": [
                {
                    "content": {"parts": [{"text": "Try Mountain Drop."}]},
                    "groundingMetadata": {
                        "groundingChunks": [
                            {"web": {"uri": "https://a.example/r", "title": "a.example"}},
                            {"web": {"uri": "https://a.example/r", "title": "dup"}},
                            {"web": {"uri": "https://b.example/s"}},
                        ]
                    },
                }
            ]
        }
        transport = mock_transport(lambda r: httpx.Response(200, json=data))
        engine = GeminiEngine(EngineConfig(api_key="g-key", transport=transport))

        result = await engine.query("q")

        assert result.search_engine == "Google Gemini"
        assert result.raw_response == "Try Mountain Drop."
        assert [(link.url, link.title, link.position) for link in result.source_links] == [
            ("https://a.example/r", "a.example", 1),
            ("https://b.example/s", "b.example", 2),
        ]
        request = transport.requests[0]
        assert request.headers["x-goog-api-key"] == "g-key"
        assert request.url.path.endswith(":generateContent")
        assert json.loads(request.content)["tools"] == [{"google_search": {}}]

    @pytest.mark.asyncio
    async def test_text_fallback_excludes_google(self, mock_transport) -> None:
        """Without grounding, URLs in the text are used, minus Google's own."""
        text = "See https://www.google.com/search?q=x and https://a.example/page."
        data = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
        engine = GeminiEngine(
            EngineConfig(
                api_key="k",
                transport=mock_transport(lambda r: httpx.Response(200, json=data)),
            )
        )

        result = await engine.query("q")

        assert [link.url for link in result.source_links] == ["https://a.example/page"]

    def test_grounding_links_tolerates_malformed(self) -> None:
        """Malformed metadata yields no links."""
        assert grounding_links({"candidates": [{"groundingMetadata": "x"}, 3]}) == []
        assert grounding_links({}) == []

    def test_grounding_links_non_string_title(self) -> None:
        """A non-string title falls back to the hostname."""
        data = {
            "candidates": [
                {
                    "groundingMetadata": {
                        "groundingChunks": [{"web": {"uri": "https://a.example/r", "title": 7}}]
                    }
                }
            ]
        }

        [link] = grounding_links(data)

        assert link.title == "a.example"

    @pytest.mark.asyncio
    async def test_grounding_links_capped_at_ten(self, mock_transport) -> None:
        """Twelve grounding chunks yield ten links."""
        chunks = [{"web": {"uri": f"https://{i}.example/", "title": f"S{i}"}} for i in range(12)]
        data = {
            "candidates": [
                {
                    "content": {"parts": [{"text": "answer"}]},
                    "groundingMetadata": {"groundingChunks": chunks},
                }
            ]
        }
        engine = GeminiEngine(
            EngineConfig(
                api_key="k",
                transport=mock_transport(lambda r: httpx.Response(200, json=data)),
            )
        )

        result = await engine.query("q")

        assert [link.position for link in result.source_links] == list(range(1, 11))

    @pytest.mark.asyncio
    async def test_text_fallback_capped_at_ten(self, mock_transport) -> None:
        """Twelve URLs in the answer text yield ten links."""
        text = " ".join(f"https://{i}.example/page" for i in range(12))
        data = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
        engine = GeminiEngine(
            EngineConfig(
                api_key="k",
                transport=mock_transport(lambda r: httpx.Response(200, json=data)),
            )
        )

        result = await engine.query("q")

        assert len(result.source_links) == 10
        assert result.source_links[-1].url == "https://9.example/page"

    @pytest.mark.asyncio
    async def test_network_failure_with_key(self, mock_transport) -> None:
        """A keyed request that cannot connect comes back as an empty error result."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        engine = GeminiEngine(EngineConfig(api_key="k", transport=mock_transport(handler)))

        result = await engine.query("q")

        assert result.raw_response == "Error: connection refused"
        assert result.search_engine == "Google Gemini"
        assert result.brands == []
        assert result.source_links == []


class TestChatGPTEngine:
    """Tests for the ChatGPT adapter."""

    @pytest.mark.asyncio
    async def test_missing_key(self, mock_transport) -> None:
        """Missing key is reported without a request."""
        transport = mock_transport(lambda r: _chat_response(""))
        engine = ChatGPTEngine(EngineConfig(transport=transport))

        result = await engine.query("q")

        assert result.raw_response == "Error: OpenAI API key required"
        assert result.search_engine == "ChatGPT"
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_links_from_reply(self, mock_transport) -> None:
        """URLs in the reply become links titled by hostname."""
        reply = "Banyan Botanicals (https://www.banyan.example/shilajit) is solid."
        transport = mock_transport(lambda r: _chat_response(reply))
        engine = ChatGPTEngine(EngineConfig(api_key="sk-test", transport=transport))

        result = await engine.query("best shilajit")

        assert [m.brand for m in result.brands] == ["Banyan Botanicals"]
        assert [(link.url, link.title) for link in result.source_links] == [
            ("https://www.banyan.example/shilajit", "www.banyan.example")
        ]
        body = json.loads(transport.requests[0].content)
        assert body["messages"][0]["content"] == (
            "best shilajit. Please provide sources/links if available."
        )
        assert body["max_tokens"] == 1000

    @pytest.mark.asyncio
    async def test_links_capped_at_ten(self, mock_transport) -> None:
        """Twelve URLs in the reply yield ten links, numbered 1..10."""
        reply = "\n".join(f"- https://{i}.example/item" for i in range(12))
        engine = ChatGPTEngine(
            EngineConfig(api_key="sk-test", transport=mock_transport(lambda r: _chat_response(reply)))
        )

        result = await engine.query("q")

        assert [link.position for link in result.source_links] == list(range(1, 11))
        assert result.source_links[-1].url == "https://9.example/item"

    @pytest.mark.asyncio
    async def test_network_failure_with_key(self, mock_transport) -> None:
        """A keyed request that cannot connect comes back as an empty error result."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        engine = ChatGPTEngine(EngineConfig(api_key="sk-test", transport=mock_transport(handler)))

        result = await engine.query("q")

        assert result.raw_response == "Error: connection refused"
        assert result.brands == []
        assert result.source_links == []
