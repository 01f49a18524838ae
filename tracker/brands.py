"""Brand lexicon and mention extraction.

The lexicon is a fixed, ordered list of brand names. A brand's position in
the lexicon (1-based) becomes the ``position`` of every mention of it; it is
not a measure of where the brand appeared in the text.
"""

import re
from collections.abc import Iterable, Sequence

from tracker.models import BrandMention, utc_now_iso

# Characters of surrounding text captured on each side of a match
CONTEXT_WINDOW = 50

KNOWN_BRANDS: tuple[str, ...] = (
    "Purblack",
    "Himalayan Shilajit",
    "PrimaVie",
    "Lost Empire Herbs",
    "Shilajit Gold",
    "Organic India",
    "Pürblack",
    "Pure Himalayan",
    "Himalayan Healing",
    "Shilajit Resin",
    "Ancient Purity",
    "Sunfood",
    "Banyan Botanicals",
    "Omica Organics",
    "Mountain Drop",
)


class BrandLexicon:
    """An ordered set of brand names with precompiled match patterns."""

    def __init__(self, brands: Sequence[str] = KNOWN_BRANDS):
        self.brands: tuple[str, ...] = tuple(brands)
        self._patterns: list[tuple[str, int, re.Pattern[str]]] = [
            (brand, index + 1, re.compile(rf"\b{re.escape(brand)}\b", re.IGNORECASE))
            for index, brand in enumerate(self.brands)
        ]

    def __len__(self) -> int:
        return len(self.brands)

    def __contains__(self, brand: object) -> bool:
        return brand in self.brands

    def rank(self, brand: str) -> int | None:
        """Return the 1-based lexicon rank of a brand, or None."""
        try:
            return self.brands.index(brand) + 1
        except ValueError:
            return None

    def extract(self, text: str | None, source_url: str | None = None) -> list[BrandMention]:
        """
        Find every mention of every lexicon brand in text.

        Each lexicon entry is matched independently, so overlapping names
        (one brand contained in another) both produce mentions.

        Args:
            text: Arbitrary text, may be empty or None
            source_url: Optional URL the text came from

        Returns:
            Mentions grouped by lexicon order, then by occurrence order
        """
        if not text:
            return []

        timestamp = utc_now_iso()
        mentions: list[BrandMention] = []

        for brand, rank, pattern in self._patterns:
            for match in pattern.finditer(text):
                start = max(0, match.start() - CONTEXT_WINDOW)
                end = min(len(text), match.end() + CONTEXT_WINDOW)
                mentions.append(
                    BrandMention(
                        brand=brand,
                        position=rank,
                        context=text[start:end].strip(),
                        source="extracted",
                        timestamp=timestamp,
                        source_url=source_url,
                    )
                )

        return mentions


default_lexicon = BrandLexicon()


def extract_brands(text: str | None, source_url: str | None = None) -> list[BrandMention]:
    """Extract mentions of the known brands from text."""
    return default_lexicon.extract(text, source_url=source_url)


def brands_found(mentions: Iterable[BrandMention]) -> list[str]:
    """Unique brand names in first-seen order."""
    seen: dict[str, None] = {}
    for mention in mentions:
        seen.setdefault(mention.brand, None)
    return list(seen)
