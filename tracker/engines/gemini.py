"""Gemini adapter with Google Search grounding.

Issues a ``generateContent`` request with the ``google_search`` tool enabled.
Citations come from the grounding metadata attached to the candidate::

    {
        "candidates": [
            {
                "content": {"parts": [{"text": "Top picks include Purblack ..."}]},
                "groundingMetadata": {
                    "groundingChunks": [
                        {"web": {"uri": "https://example.com/review", "title": "example.com"}}
                    ]
                }
            }
        ]
    }

When no grounding chunks are present, URLs written into the answer text are
used instead.
"""

from typing import Any, TypedDict

from tracker.brands import extract_brands
from tracker.engines.base import BaseEngine, extract_urls, host_in, hostname
from tracker.models import BrandMention, SourceLink

API_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"

# Links into the backend's own properties are not citations
OWN_DOMAINS = ("google.com", "googleapis.com", "gstatic.com")


class GroundingWeb(TypedDict, total=False):
    uri: str
    title: str


class GroundingChunk(TypedDict, total=False):
    web: GroundingWeb


class GroundingMetadata(TypedDict, total=False):
    groundingChunks: list[GroundingChunk]


class GeminiCandidate(TypedDict, total=False):
    content: dict[str, Any]
    groundingMetadata: GroundingMetadata


class GeminiResponse(TypedDict, total=False):
    candidates: list[GeminiCandidate]


def _candidates(data: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = data.get("candidates")
    if not isinstance(candidates, list):
        return []
    return [c for c in candidates if isinstance(c, dict)]


def candidate_text(data: dict[str, Any]) -> str:
    """Concatenated text parts of the first candidate."""
    for candidate in _candidates(data):
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        return "".join(
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        )
    return ""


def grounding_links(data: dict[str, Any]) -> list[SourceLink]:
    """Walk grounding metadata into source links, deduplicated by URL."""
    links: list[SourceLink] = []
    seen: set[str] = set()

    for candidate in _candidates(data):
        metadata = candidate.get("groundingMetadata")
        chunks = metadata.get("groundingChunks") if isinstance(metadata, dict) else None
        if not isinstance(chunks, list):
            continue

        for chunk in chunks:
            web = chunk.get("web") if isinstance(chunk, dict) else None
            if not isinstance(web, dict):
                continue
            url = web.get("uri")
            if not isinstance(url, str) or not url or url in seen:
                continue

            seen.add(url)
            n = len(links) + 1
            title = web.get("title")
            if not isinstance(title, str) or not title:
                title = hostname(url) or f"Source {n}"
            links.append(
                SourceLink(
                    url=url,
                    title=title,
                    position=n,
                )
            )

    return links


class GeminiEngine(BaseEngine):
    """Gemini generation grounded in Google Search results."""

    engine_id = "gemini"
    label = "Google Gemini"
    max_links = 10
    requires_api_key = True
    api_key_env_vars = ("GOOGLE_GEMINI_API_KEY", "GEMINI_API_KEY")

    def missing_key_message(self) -> str:
        return (
            "Gemini API key required. Set GOOGLE_GEMINI_API_KEY or GEMINI_API_KEY "
            "to enable grounded Google results."
        )

    async def _search(self, query_text: str) -> tuple[list[BrandMention], str, list[SourceLink]]:
        base_url = self.config.base_url or API_BASE_URL
        model = self.config.model or DEFAULT_MODEL
        payload = {
            "contents": [{"role": "user", "parts": [{"text": query_text}]}],
            "tools": [{"google_search": {}}],
        }

        async with self._client() as client:
            response = await client.post(
                f"{base_url}/models/{model}:generateContent",
                headers={
                    "x-goog-api-key": self.api_key,
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        self._check_response(response)

        data: GeminiResponse | Any = response.json()
        if not isinstance(data, dict):
            data = {}

        text = candidate_text(data)
        links = grounding_links(data)
        if not links:
            links = self._links_from_text(text)

        return extract_brands(text), text, links

    def _links_from_text(self, text: str) -> list[SourceLink]:
        links: list[SourceLink] = []
        for url in extract_urls(text):
            if host_in(url, OWN_DOMAINS) or any(link.url == url for link in links):
                continue
            n = len(links) + 1
            links.append(SourceLink(url=url, title=hostname(url) or f"Source {n}", position=n))
            if len(links) >= self.max_links:
                break
        return links
