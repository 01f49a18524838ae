"""Tests for tracking data models."""

from datetime import UTC, datetime

import pytest

from tracker.models import (
    BrandMention,
    BrandRanking,
    Insight,
    InsightPriority,
    InsightType,
    SearchResult,
    SourceLink,
    parse_timestamp,
    utc_now_iso,
)


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_utc_now_iso_has_z_suffix(self) -> None:
        """Generated timestamps are UTC with a Z suffix."""
        value = utc_now_iso()

        assert value.endswith("Z")
        assert parse_timestamp(value).tzinfo is not None

    def test_parse_naive_as_utc(self) -> None:
        """Naive timestamps are treated as UTC."""
        assert parse_timestamp("2024-05-01T12:00:00") == datetime(2024, 5, 1, 12, tzinfo=UTC)

    def test_parse_z_and_offset_equal(self) -> None:
        """Z and +00:00 parse to the same instant."""
        assert parse_timestamp("2024-05-01T12:00:00Z") == parse_timestamp(
            "2024-05-01T12:00:00+00:00"
        )


class TestSearchResult:
    """Tests for SearchResult."""

    def test_to_dict_uses_camel_case(self) -> None:
        """Wire keys are camelCase and optional fields are omitted when None."""
        result = SearchResult(
            query="best shilajit",
            search_engine="Perplexity",
            timestamp="2024-05-01T12:00:00Z",
            brands=[BrandMention(brand="Purblack", position=1, context="Purblack")],
            raw_response="Purblack",
            source_links=[SourceLink(url="https://a.example", title="A", position=1)],
        )

        d = result.to_dict()

        assert d["searchEngine"] == "Perplexity"
        assert d["rawResponse"] == "Purblack"
        assert d["sourceLinks"] == [{"url": "https://a.example", "title": "A", "position": 1}]
        assert "sourceUrl" not in d["brands"][0]

    def test_from_dict_restores(self) -> None:
        """A stored record loads back into an equal result."""
        result = SearchResult(
            query="q",
            search_engine="Bing Chat",
            timestamp="2024-05-01T12:00:00Z",
            brands=[
                BrandMention(
                    brand="Sunfood",
                    position=12,
                    context="Sunfood",
                    timestamp="2024-05-01T12:00:00Z",
                    source_url="https://a.example",
                )
            ],
            raw_response="text",
            source_links=[
                SourceLink(url="https://a.example", title="A", position=1, snippet="s")
            ],
        )

        assert SearchResult.from_dict(result.to_dict()) == result

    def test_from_dict_tolerates_missing_fields(self) -> None:
        """Older records without optional fields still load."""
        result = SearchResult.from_dict({"query": "q", "searchEngine": "ChatGPT"})

        assert result.brands == []
        assert result.source_links is None
        assert result.raw_response is None

    def test_from_dict_coerces_non_string_text(self) -> None:
        """Non-string free text is coerced; a non-string URL is rejected."""
        link = SourceLink.from_dict({"url": "https://a.example", "title": 7, "position": 1})

        assert link.title == ""
        assert link.snippet is None

        with pytest.raises(ValueError):
            SourceLink.from_dict({"url": 12, "title": "x", "position": 1})

    def test_from_dict_rejects_null_position(self) -> None:
        """A mention without a usable position cannot be restored."""
        with pytest.raises(TypeError):
            BrandMention.from_dict({"brand": "Purblack", "position": None})

    def test_is_error(self) -> None:
        """Error results are recognized by their raw response prefix."""
        assert SearchResult(query="q", search_engine="x", raw_response="Error: boom").is_error
        assert not SearchResult(query="q", search_engine="x", raw_response="ok").is_error
        assert not SearchResult(query="q", search_engine="x").is_error


class TestBrandRanking:
    """Tests for BrandRanking."""

    def test_to_dict(self) -> None:
        """Converts to the wire shape."""
        ranking = BrandRanking(
            brand="Purblack",
            total_mentions=3,
            average_position=1.0,
            search_engines=["Perplexity"],
            last_seen="2024-05-01T12:00:00Z",
        )

        assert ranking.to_dict() == {
            "brand": "Purblack",
            "totalMentions": 3,
            "averagePosition": 1.0,
            "searchEngines": ["Perplexity"],
            "lastSeen": "2024-05-01T12:00:00Z",
        }


class TestInsight:
    """Tests for Insight."""

    def test_to_dict(self) -> None:
        """Enums serialize to their string values."""
        insight = Insight(text="t", type=InsightType.WARNING, priority=InsightPriority.HIGH)

        assert insight.to_dict() == {"text": "t", "type": "warning", "priority": "high"}
