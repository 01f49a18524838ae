"""Brand tracking request and response schemas.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tracker.insights import WhyAnalysis
from tracker.models import BrandRanking, Insight, SearchResult


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BrandMentionSchema(CamelModel):
    """A brand mention found in an engine response."""

    brand: str
    position: int = Field(..., description="1-based rank of the brand in the lexicon")
    context: str
    source: str
    timestamp: str
    source_url: str | None = None


class SourceLinkSchema(CamelModel):
    """A citation or organic result."""

    url: str
    title: str
    snippet: str | None = None
    position: int


class SearchResultSchema(CamelModel):
    """Normalized result from one engine."""

    query: str
    search_engine: str
    timestamp: str
    brands: list[BrandMentionSchema] = Field(default_factory=list)
    raw_response: str | None = None
    source_links: list[SourceLinkSchema] | None = None

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResultSchema":
        return cls.model_validate(result.to_dict())


class BrandRankingSchema(CamelModel):
    """Aggregated brand visibility."""

    brand: str
    total_mentions: int
    average_position: float
    search_engines: list[str]
    last_seen: str

    @classmethod
    def from_ranking(cls, ranking: BrandRanking) -> "BrandRankingSchema":
        return cls.model_validate(ranking.to_dict())


class TrackQueryRequest(CamelModel):
    """Run a query across engines."""

    query: str = ""
    perplexity_api_key: str | None = None
    openai_api_key: str | None = None
    gemini_api_key: str | None = None
    enabled_engines: list[str] | None = None


class TrackQueryResponse(CamelModel):
    """Fresh results with rankings over this batch only."""

    success: bool = True
    results: list[SearchResultSchema]
    rankings: list[BrandRankingSchema]
    timestamp: str


class HistoryResponse(CamelModel):
    """Stored results with rankings over the selected history."""

    success: bool = True
    results: list[SearchResultSchema]
    rankings: list[BrandRankingSchema]
    total_results: int


class EngineTopResults(CamelModel):
    """Top links and brands found by one engine."""

    search_engine: str
    query: str = ""
    timestamp: str = ""
    top_results: list[SourceLinkSchema] = Field(default_factory=list)
    brands_found: list[str] = Field(default_factory=list)
    raw_response: str | None = None


class AiSearchRankingsResponse(CamelModel):
    """Per-engine top results for one query."""

    success: bool = True
    query: str
    results: list[EngineTopResults]
    timestamp: str


class InsightsRequest(CamelModel):
    """Ask for insights over per-engine results."""

    query: str | None = None
    results: list[EngineTopResults] | None = None
    brand: str | None = None

    def results_payload(self) -> list[dict[str, Any]]:
        return [r.model_dump(by_alias=True) for r in self.results or []]


class InsightSchema(CamelModel):
    """A typed insight."""

    text: str
    type: str
    priority: str

    @classmethod
    def from_insight(cls, insight: Insight) -> "InsightSchema":
        return cls.model_validate(insight.to_dict())


class InsightsResponse(CamelModel):
    """Generated insights."""

    insights: list[InsightSchema]


class WhyRequest(InsightsRequest):
    """Ask why the results look as they do for a brand."""

    brand_domains: list[str] | None = None
    brand_aliases: list[str] | None = None


class WhyAnalysisSchema(CamelModel):
    """Evidence-cited analysis; ``analysis_text`` is set only when ``parsed`` is false."""

    summary: str = ""
    engines: list[Any] = Field(default_factory=list)
    next_data_to_collect: list[Any] = Field(default_factory=list)
    parsed: bool = True
    analysis_text: str | None = None

    @classmethod
    def from_analysis(cls, analysis: WhyAnalysis) -> "WhyAnalysisSchema":
        return cls.model_validate(analysis.to_dict())


class WhyResponse(CamelModel):
    """Why-analysis result."""

    analysis: WhyAnalysisSchema
