"""Data models for brand tracking results."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


def utc_now_iso() -> str:
    """Current wall-clock time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _optional_text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _required_text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{key!r} must be a string, got {type(value).__name__}")
    return value


@dataclass(frozen=True)
class BrandMention:
    """A single occurrence of a lexicon brand in some text."""

    brand: str
    position: int  # Rank of the brand in the lexicon, not a search position
    context: str
    source: str = "extracted"
    timestamp: str = field(default_factory=utc_now_iso)
    source_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire shape."""
        data: dict[str, Any] = {
            "brand": self.brand,
            "position": self.position,
            "context": self.context,
            "source": self.source,
            "timestamp": self.timestamp,
        }
        if self.source_url is not None:
            data["sourceUrl"] = self.source_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BrandMention":
        """Create from the wire shape."""
        return cls(
            brand=_required_text(data, "brand"),
            position=int(data.get("position", 0)),
            context=_text(data.get("context")),
            source=_text(data.get("source"), "extracted"),
            timestamp=_text(data.get("timestamp")) or utc_now_iso(),
            source_url=_optional_text(data.get("sourceUrl")),
        )


@dataclass
class SourceLink:
    """A citation or organic result surfaced by an engine."""

    url: str
    title: str
    position: int  # 1-based rank within the owning result
    snippet: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire shape."""
        data: dict[str, Any] = {
            "url": self.url,
            "title": self.title,
            "position": self.position,
        }
        if self.snippet is not None:
            data["snippet"] = self.snippet
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceLink":
        """Create from the wire shape."""
        return cls(
            url=_required_text(data, "url"),
            title=_text(data.get("title")),
            position=int(data.get("position", 0)),
            snippet=_optional_text(data.get("snippet")),
        )


@dataclass
class SearchResult:
    """Normalized result of querying one engine.

    Every adapter returns one of these, including on failure, in which case
    ``brands`` and ``source_links`` are empty and ``raw_response`` carries the
    error text.
    """

    query: str
    search_engine: str
    timestamp: str = field(default_factory=utc_now_iso)
    brands: list[BrandMention] = field(default_factory=list)
    raw_response: str | None = None
    source_links: list[SourceLink] | None = None

    @property
    def is_error(self) -> bool:
        """Whether the engine reported a failure instead of content."""
        return self.raw_response is not None and self.raw_response.startswith("Error:")

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire shape."""
        data: dict[str, Any] = {
            "query": self.query,
            "searchEngine": self.search_engine,
            "timestamp": self.timestamp,
            "brands": [b.to_dict() for b in self.brands],
        }
        if self.raw_response is not None:
            data["rawResponse"] = self.raw_response
        if self.source_links is not None:
            data["sourceLinks"] = [link.to_dict() for link in self.source_links]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchResult":
        """
        Create from the wire shape.

        Free-text fields of the wrong type are coerced; a record whose
        structure cannot be read raises ValueError or TypeError.
        """
        links = data.get("sourceLinks")
        return cls(
            query=_text(data.get("query")),
            search_engine=_text(data.get("searchEngine")),
            timestamp=_text(data.get("timestamp")) or utc_now_iso(),
            brands=[BrandMention.from_dict(b) for b in data.get("brands") or []],
            raw_response=_optional_text(data.get("rawResponse")),
            source_links=(
                [SourceLink.from_dict(link) for link in links] if links is not None else None
            ),
        )


@dataclass
class BrandRanking:
    """Aggregated visibility of one brand across a set of results."""

    brand: str
    total_mentions: int
    average_position: float
    search_engines: list[str] = field(default_factory=list)
    last_seen: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase wire shape."""
        return {
            "brand": self.brand,
            "totalMentions": self.total_mentions,
            "averagePosition": self.average_position,
            "searchEngines": list(self.search_engines),
            "lastSeen": self.last_seen,
        }


class InsightType(StrEnum):
    """Kind of AI search insight."""

    OPPORTUNITY = "opportunity"
    WARNING = "warning"
    SUCCESS = "success"
    RECOMMENDATION = "recommendation"


class InsightPriority(StrEnum):
    """Priority of an AI search insight."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class Insight:
    """A typed insight record produced by the insight generator."""

    text: str
    type: InsightType = InsightType.RECOMMENDATION
    priority: InsightPriority = InsightPriority.MEDIUM

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary."""
        return {
            "text": self.text,
            "type": self.type.value,
            "priority": self.priority.value,
        }
