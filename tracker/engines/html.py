"""HTML helpers shared by the scraping adapters."""

from collections.abc import Sequence

from bs4 import BeautifulSoup

from tracker.engines.base import host_in
from tracker.models import SourceLink

# Elements whose text is never visible on the page
NON_VISIBLE_TAGS = ["script", "style", "noscript", "template"]


def parse_html(html: str) -> BeautifulSoup:
    """Parse an HTML document."""
    return BeautifulSoup(html, "html.parser")


def visible_text(soup: BeautifulSoup) -> str:
    """Visible body text, whitespace-collapsed."""
    root = soup.body or soup
    for tag in root.find_all(NON_VISIBLE_TAGS):
        tag.decompose()
    return " ".join(root.get_text(" ", strip=True).split())


def outbound_links(
    soup: BeautifulSoup,
    limit: int,
    exclude_domains: Sequence[str] = (),
) -> list[SourceLink]:
    """
    Collect absolute http(s) anchors as source links.

    Args:
        soup: Parsed page
        limit: Maximum number of links to return
        exclude_domains: Hosts (and their subdomains) to skip

    Returns:
        Links in document order, deduplicated by URL
    """
    links: list[SourceLink] = []
    seen: set[str] = set()

    for anchor in soup.select('a[href^="http"]'):
        url = str(anchor.get("href") or "").strip()
        if not url.startswith(("http://", "https://")) or url in seen:
            continue
        if exclude_domains and host_in(url, exclude_domains):
            continue

        seen.add(url)
        title = (
            anchor.get_text(strip=True)
            or str(anchor.get("title") or "").strip()
            or f"Source {len(links) + 1}"
        )
        links.append(SourceLink(url=url, title=title, position=len(links) + 1))
        if len(links) >= limit:
            break

    return links


def is_blocked(html: str, markers: Sequence[str], min_length: int = 1000) -> bool:
    """Heuristically detect a challenge/redirect page instead of real results."""
    if len(html) < min_length:
        return True
    return any(marker in html for marker in markers)
