"""Google Search adapter (scraped results page and AI Overview block)."""

from bs4 import BeautifulSoup

from tracker.engines.scraped import ScrapedSearchEngine
from tracker.models import SourceLink

# Selectors for the AI Overview block, most specific first
AI_OVERVIEW_SELECTORS = (
    '#AIOverview, .kp-blk, [data-ved*="AI"]',
    ".hgKElc, .LGOjhe",
)


class GoogleSearchEngine(ScrapedSearchEngine):
    """Google organic results plus the AI Overview text when present."""

    engine_id = "google"
    label = "Google AI Overview"
    max_links = 10

    search_url = "https://www.google.com/search"
    result_selector = ".g, .tF2Cxc"
    title_selector = "h3"
    snippet_selector = ".VwiC3b, .s"
    blocked_markers = (
        "enablejs",
        "Please click",
        'http-equiv="refresh"',
        "sourceMappingURL",
        "/sorry/index",
    )
    own_domains = ("google.com",)

    def request_params(self, query_text: str) -> dict[str, str]:
        return {"q": query_text, "hl": "en"}

    def request_headers(self) -> dict[str, str]:
        return {
            "User-Agent": self.config.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Referer": "https://www.google.com/",
        }

    def blocked_message(self) -> str:
        return (
            "Google Search is blocking automated requests. "
            "Set a Gemini API key to use grounded Google results instead of scraping."
        )

    def summarize(
        self,
        soup: BeautifulSoup,
        page_text: str,
        links: list[SourceLink],
        query_text: str,
    ) -> str:
        overview = ai_overview_text(soup)
        if overview:
            return overview
        if links:
            return f'Found {len(links)} search results for "{query_text}"'
        return "No results found. Google may be blocking automated requests."


def ai_overview_text(soup: BeautifulSoup) -> str:
    """Text of the AI Overview block, or empty if the page has none."""
    for selector in AI_OVERVIEW_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            text = element.get_text(" ", strip=True)
            if text:
                return text
    return ""
