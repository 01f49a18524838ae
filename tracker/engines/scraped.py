"""Shared behaviour for adapters that scrape a public results page."""

from abc import abstractmethod

import structlog
from bs4 import BeautifulSoup, Tag

from tracker.brands import extract_brands
from tracker.engines.base import RAW_RESPONSE_MAX_CHARS, BaseEngine, EngineBlockedError
from tracker.engines.html import is_blocked, outbound_links, parse_html, visible_text
from tracker.models import BrandMention, SourceLink

logger = structlog.get_logger(__name__)


class ScrapedSearchEngine(BaseEngine):
    """
    Adapter for an HTML search results page.

    Subclasses describe the page: where to fetch it, what a blocked page
    looks like and which selectors pick out result containers.
    """

    search_url: str
    result_selector: str
    title_selector: str
    snippet_selector: str
    blocked_markers: tuple[str, ...] = ()
    own_domains: tuple[str, ...] = ()

    def request_params(self, query_text: str) -> dict[str, str]:
        return {"q": query_text}

    def request_headers(self) -> dict[str, str]:
        return {"User-Agent": self.config.user_agent}

    def blocked_message(self) -> str:
        return (
            f"{self.label} is blocking automated requests. "
            "Use an API-backed engine instead of scraping."
        )

    async def _search(self, query_text: str) -> tuple[list[BrandMention], str, list[SourceLink]]:
        async with self._client() as client:
            response = await client.get(
                self.search_url,
                params=self.request_params(query_text),
                headers=self.request_headers(),
            )
        self._check_response(response)

        html = response.text
        if is_blocked(html, self.blocked_markers):
            raise EngineBlockedError(self.blocked_message())

        soup = parse_html(html)
        links = self.parse_results(soup)
        if not links:
            logger.debug("primary_selectors_empty", engine=self.engine_id)
            links = outbound_links(soup, limit=self.max_links, exclude_domains=self.own_domains)

        page_text = visible_text(soup)
        raw_response = self.summarize(soup, page_text, links, query_text)
        return extract_brands(page_text), raw_response[:RAW_RESPONSE_MAX_CHARS], links

    def parse_results(self, soup: BeautifulSoup) -> list[SourceLink]:
        """Extract (url, title, snippet) from the primary result containers."""
        links: list[SourceLink] = []
        seen: set[str] = set()

        for container in soup.select(self.result_selector):
            link = self._parse_container(container, len(links) + 1)
            if link is None or link.url in seen:
                continue
            seen.add(link.url)
            links.append(link)
            if len(links) >= self.max_links:
                break

        return links

    def _parse_container(self, container: Tag, position: int) -> SourceLink | None:
        anchor = container.select_one('a[href^="http"]')
        if anchor is None and container.name == "a":
            anchor = container
        if anchor is None:
            return None

        url = str(anchor.get("href") or "").strip()
        if not url.startswith(("http://", "https://")):
            return None

        title_el = container.select_one(self.title_selector)
        title = (title_el.get_text(strip=True) if title_el else "") or anchor.get_text(strip=True)
        snippet_el = container.select_one(self.snippet_selector)
        snippet = snippet_el.get_text(" ", strip=True) if snippet_el else ""

        return SourceLink(
            url=url,
            title=title or f"Result {position}",
            snippet=snippet or None,
            position=position,
        )

    @abstractmethod
    def summarize(
        self,
        soup: BeautifulSoup,
        page_text: str,
        links: list[SourceLink],
        query_text: str,
    ) -> str:
        """Raw response text recorded for this page."""
        ...
