"""Perplexity adapter.

With an API key, the chat-completions endpoint answers the query and returns
citations. Example response (abbreviated)::

    {
        "choices": [{"message": {"content": "Purblack is ..."}}],
        "citations": [
            "https://example.com/review",
            {"url": "https://example.org/best", "title": "Best of", "snippet": "..."}
        ],
        "search_results": [{"title": "...", "url": "...", "date": "..."}]
    }

Without a key, the public search page is fetched and its outbound links are
used as best-effort citations.
"""

from typing import Any, NotRequired, TypedDict

from tracker.brands import extract_brands
from tracker.engines.base import RAW_RESPONSE_MAX_CHARS, BaseEngine, chat_completion_text
from tracker.engines.html import outbound_links, parse_html, visible_text
from tracker.models import BrandMention, SourceLink

API_BASE_URL = "https://api.perplexity.ai"
WEB_SEARCH_URL = "https://www.perplexity.ai/search"
DEFAULT_MODEL = "sonar"


class PerplexityCitation(TypedDict, total=False):
    url: str
    title: str
    snippet: str


class PerplexityResponse(TypedDict):
    choices: list[dict[str, Any]]
    citations: NotRequired[list[str | PerplexityCitation]]
    search_results: NotRequired[list[PerplexityCitation]]


def normalize_citations(data: dict[str, Any]) -> list[SourceLink]:
    """Map citation entries (objects or bare URL strings) to source links."""
    raw = data.get("citations")
    if not isinstance(raw, list) or not raw:
        raw = data.get("search_results")
    if not isinstance(raw, list):
        return []

    links: list[SourceLink] = []
    for citation in raw:
        n = len(links) + 1
        if isinstance(citation, str) and citation:
            links.append(SourceLink(url=citation, title=f"Source {n}", position=n))
        elif isinstance(citation, dict) and isinstance(citation.get("url"), str) and citation["url"]:
            title = citation.get("title")
            snippet = citation.get("snippet")
            links.append(
                SourceLink(
                    url=citation["url"],
                    title=title if isinstance(title, str) and title else f"Source {n}",
                    snippet=snippet if isinstance(snippet, str) else None,
                    position=n,
                )
            )
    return links


class PerplexityEngine(BaseEngine):
    """Perplexity answers with citations."""

    engine_id = "perplexity"
    label = "Perplexity"
    max_links = 5
    api_key_env_vars = ("PERPLEXITY_API_KEY",)

    async def _search(self, query_text: str) -> tuple[list[BrandMention], str, list[SourceLink]]:
        if self.api_key:
            return await self._search_api(query_text)
        return await self._search_web(query_text)

    async def _search_api(
        self, query_text: str
    ) -> tuple[list[BrandMention], str, list[SourceLink]]:
        base_url = self.config.base_url or API_BASE_URL
        payload = {
            "model": self.config.model or DEFAULT_MODEL,
            "messages": [{"role": "user", "content": query_text}],
            "return_citations": True,
        }

        async with self._client() as client:
            response = await client.post(
                f"{base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        self._check_response(response)

        data: PerplexityResponse | Any = response.json()
        if not isinstance(data, dict):
            data = {}
        content = chat_completion_text(data)
        return extract_brands(content), content, normalize_citations(data)

    async def _search_web(
        self, query_text: str
    ) -> tuple[list[BrandMention], str, list[SourceLink]]:
        async with self._client() as client:
            response = await client.get(
                WEB_SEARCH_URL,
                params={"q": query_text},
                headers={"User-Agent": self.config.user_agent},
            )
        self._check_response(response)

        soup = parse_html(response.text)
        links = outbound_links(soup, limit=self.max_links)
        text = visible_text(soup)
        return extract_brands(text), text[:RAW_RESPONSE_MAX_CHARS], links
