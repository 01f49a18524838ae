"""Engine adapter base class.

Every adapter turns one backend's response (API JSON, scraped HTML or a chat
completion) into a :class:`~tracker.models.SearchResult`. The boundary is
:meth:`BaseEngine.query`: it never raises, folding any failure into the
result's ``raw_response`` as ``"Error: <message>"``.
"""

import asyncio
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx
import structlog

from tracker.models import BrandMention, SearchResult, SourceLink, utc_now_iso

logger = structlog.get_logger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

URL_PATTERN = re.compile(r"https?://[^\s)]+")

# Trailing characters that belong to the surrounding prose, not the URL
_URL_TRAILING = ".,;:!?'\"]>*`"

# Scraped page text kept as the raw response
RAW_RESPONSE_MAX_CHARS = 10_000


@dataclass
class EngineConfig:
    """Configuration for an engine adapter."""

    api_key: str = ""
    base_url: str = ""
    model: str = ""
    timeout_seconds: float = 30.0
    # Hard deadline for the whole adapter call; None means only the HTTP timeout applies
    hard_timeout_seconds: float | None = None
    user_agent: str = BROWSER_USER_AGENT
    transport: httpx.AsyncBaseTransport | None = field(default=None, repr=False)


class EngineHTTPError(Exception):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code}: {body[:200]}")


class EngineBlockedError(Exception):
    """Upstream served an anti-automation challenge instead of results."""


class MissingCredentialError(Exception):
    """Adapter requires an API key that was not supplied."""


class EngineTimeoutError(Exception):
    """Adapter call exceeded its hard deadline."""


def resolve_api_key(explicit: str | None, env_vars: Sequence[str]) -> str:
    """Return the explicit key, else the first non-empty env var in order."""
    if explicit:
        return explicit
    for name in env_vars:
        value = os.environ.get(name)
        if value:
            return value
    return ""


def extract_urls(text: str, limit: int | None = None) -> list[str]:
    """Pull raw URLs out of free text."""
    urls = []
    for match in URL_PATTERN.finditer(text or ""):
        url = match.group(0).rstrip(_URL_TRAILING)
        if url:
            urls.append(url)
        if limit is not None and len(urls) >= limit:
            break
    return urls


def chat_completion_text(data: dict) -> str:
    """Text of the first choice of a chat-completions response, or empty."""
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


def hostname(url: str) -> str | None:
    """Hostname of a URL, or None if it cannot be parsed."""
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def host_in(url: str, domains: Sequence[str]) -> bool:
    """Whether the URL's host is one of the domains or a subdomain of one."""
    host = hostname(url)
    if not host:
        return False
    return any(host == d or host.endswith(f".{d}") for d in domains)


class BaseEngine(ABC):
    """Contract every search/answer engine adapter satisfies."""

    engine_id: str
    label: str  # Value of SearchResult.search_engine
    max_links: int = 10
    requires_api_key: bool = False
    api_key_env_vars: tuple[str, ...] = ()

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig()
        self.api_key = resolve_api_key(self.config.api_key, self.api_key_env_vars)

    async def query(self, query_text: str) -> SearchResult:
        """
        Query the backend and return a normalized result.

        Never raises: missing credentials, HTTP failures, blocking and
        malformed upstream data all come back as an error result.
        """
        timestamp = utc_now_iso()
        try:
            if self.requires_api_key and not self.api_key:
                raise MissingCredentialError(self.missing_key_message())

            brands, raw_response, links = await self._search_with_deadline(query_text)

        except MissingCredentialError as e:
            return self._error_result(query_text, timestamp, str(e))
        except EngineBlockedError as e:
            logger.warning("engine_blocked", engine=self.engine_id, query=query_text)
            return self._error_result(query_text, timestamp, str(e))
        except EngineTimeoutError as e:
            logger.warning(
                "engine_timeout",
                engine=self.engine_id,
                timeout_seconds=self.config.hard_timeout_seconds,
            )
            return self._error_result(query_text, timestamp, str(e))
        except httpx.TimeoutException:
            logger.warning("engine_http_timeout", engine=self.engine_id)
            return self._error_result(
                query_text,
                timestamp,
                f"Request timed out after {self.config.timeout_seconds}s",
            )
        except Exception as e:
            logger.warning(
                "engine_query_failed",
                engine=self.engine_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return self._error_result(query_text, timestamp, str(e) or type(e).__name__)

        return SearchResult(
            query=query_text,
            search_engine=self.label,
            timestamp=timestamp,
            brands=brands,
            raw_response=raw_response,
            source_links=self._renumber(links)[: self.max_links],
        )

    async def _search_with_deadline(
        self, query_text: str
    ) -> tuple[list[BrandMention], str, list[SourceLink]]:
        deadline = self.config.hard_timeout_seconds
        if deadline is None:
            return await self._search(query_text)
        scope = asyncio.timeout(deadline)
        try:
            async with scope:
                return await self._search(query_text)
        except TimeoutError as e:
            if not scope.expired():
                raise
            raise EngineTimeoutError(f"{self.label} timed out after {deadline}s") from e

    @abstractmethod
    async def _search(
        self, query_text: str
    ) -> tuple[list[BrandMention], str, list[SourceLink]]:
        """Fetch and normalize; return (brands, raw_response, source_links)."""
        ...

    def missing_key_message(self) -> str:
        """Explanation used when a required key is absent."""
        return f"{self.label} API key required"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.timeout_seconds,
            follow_redirects=True,
            transport=self.config.transport,
        )

    @staticmethod
    def _check_response(response: httpx.Response) -> None:
        if response.status_code != 200:
            raise EngineHTTPError(response.status_code, response.text)

    @staticmethod
    def _renumber(links: list[SourceLink]) -> list[SourceLink]:
        for index, link in enumerate(links):
            link.position = index + 1
        return links

    def _error_result(self, query_text: str, timestamp: str, message: str) -> SearchResult:
        return SearchResult(
            query=query_text,
            search_engine=self.label,
            timestamp=timestamp,
            brands=[],
            raw_response=f"Error: {message}",
            source_links=[],
        )
