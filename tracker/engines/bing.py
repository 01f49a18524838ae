"""Bing adapter (scraped results page)."""

from bs4 import BeautifulSoup

from tracker.engines.scraped import ScrapedSearchEngine
from tracker.models import SourceLink


class BingSearchEngine(ScrapedSearchEngine):
    """Bing results page, as surfaced to Bing Chat."""

    engine_id = "bing"
    label = "Bing Chat"
    max_links = 5

    search_url = "https://www.bing.com/search"
    result_selector = ".b_algo, .b_title"
    title_selector = "h2, .b_title"
    snippet_selector = ".b_caption p, .b_snippet"
    blocked_markers = (
        "b_captcha",
        "/challenge/verify",
        'http-equiv="refresh"',
    )
    own_domains = ("bing.com", "microsoft.com")

    def summarize(
        self,
        soup: BeautifulSoup,
        page_text: str,
        links: list[SourceLink],
        query_text: str,
    ) -> str:
        return page_text
