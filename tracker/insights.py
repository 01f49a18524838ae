"""Insight generation over AI search results.

The generator is an explicitly constructed client. Credentials are checked at
construction, so a missing key surfaces as :class:`InsightConfigurationError`
before any request is attempted.
"""

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from tracker.engines.base import chat_completion_text, resolve_api_key
from tracker.models import Insight, InsightPriority, InsightType

logger = structlog.get_logger(__name__)

API_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"
OPENAI_KEY_ENV_VARS = ("OPENAI_API_KEY", "OPEN_AI_KEY", "OPEN_API_KEY")

DEFAULT_BRAND = "Pürblack"
DEFAULT_BRAND_DOMAINS = ("purblack.com",)
DEFAULT_BRAND_ALIASES = ("Pürblack", "Purblack", "Pur black")

WHY_MAX_TOKENS = 900


class InsightConfigurationError(Exception):
    """The insight generator cannot be constructed as configured."""


class InsightGenerationError(Exception):
    """The insight backend failed or returned unusable output."""


def _truncate(value: Any, max_chars: int) -> str:
    text = value if isinstance(value, str) else ""
    return f"{text[:max_chars]}…" if len(text) > max_chars else text


def compact_results(results: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
    """Trim per-engine results to what the prompt needs."""
    compact = []
    for r in results:
        top = r.get("topResults") if isinstance(r.get("topResults"), list) else []
        brands = r.get("brandsFound") if isinstance(r.get("brandsFound"), list) else []
        compact.append(
            {
                "searchEngine": r.get("searchEngine", ""),
                "query": r.get("query", ""),
                "timestamp": r.get("timestamp", ""),
                "brandsFound": brands[:30],
                "topResults": [
                    {
                        "position": t.get("position"),
                        "url": t.get("url", ""),
                        "title": _truncate(t.get("title"), 140),
                        "snippet": _truncate(t.get("snippet"), 260),
                    }
                    for t in top[:10]
                    if isinstance(t, dict)
                ],
            }
        )
    return compact


def extract_json_object(text: str) -> str | None:
    """The outermost {...} span of text, if any."""
    first = text.find("{")
    last = text.rfind("}")
    if first == -1 or last <= first:
        return None
    return text[first : last + 1]


def load_json_object(content: str) -> Any | None:
    """Parse a model reply as JSON, retrying on its outermost {...} span."""
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass
    extracted = extract_json_object(content)
    if extracted is None:
        return None
    try:
        return json.loads(extracted)
    except json.JSONDecodeError:
        return None


def parse_insights(content: str) -> list[Insight]:
    """Parse a model reply into typed insights, skipping malformed entries."""
    parsed = load_json_object(content)
    if parsed is None:
        raise InsightGenerationError("Model returned invalid JSON.")

    raw = parsed.get("insights") if isinstance(parsed, dict) else None
    if not isinstance(raw, list):
        return []

    insights = []
    for item in raw:
        if not isinstance(item, dict) or not isinstance(item.get("text"), str):
            continue
        try:
            insight_type = InsightType(item.get("type"))
        except ValueError:
            insight_type = InsightType.RECOMMENDATION
        try:
            priority = InsightPriority(item.get("priority"))
        except ValueError:
            priority = InsightPriority.MEDIUM
        insights.append(Insight(text=item["text"], type=insight_type, priority=priority))
    return insights


@dataclass
class WhyAnalysis:
    """Evidence-cited explanation of why a query's results look the way they do.

    ``parsed`` is False when the model never produced usable JSON; the answer
    is then in ``analysis_text`` and the structured fields are empty.
    """

    summary: str = ""
    engines: list[Any] = field(default_factory=list)
    next_data_to_collect: list[Any] = field(default_factory=list)
    parsed: bool = True
    analysis_text: str | None = None

    @classmethod
    def from_parsed(cls, parsed: dict[str, Any]) -> "WhyAnalysis":
        summary = parsed.get("summary")
        engines = parsed.get("engines")
        next_data = parsed.get("nextDataToCollect")
        return cls(
            summary=summary if isinstance(summary, str) else "",
            engines=engines if isinstance(engines, list) else [],
            next_data_to_collect=next_data if isinstance(next_data, list) else [],
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "summary": self.summary,
            "engines": self.engines,
            "nextDataToCollect": self.next_data_to_collect,
            "parsed": self.parsed,
        }
        if self.analysis_text is not None:
            data["analysisText"] = self.analysis_text
        return data


def _brand_block(brand: str, brand_domains: Sequence[str], brand_aliases: Sequence[str]) -> str:
    return (
        f"BRAND:\n- Name: {brand}\n"
        f"- Domains: {json.dumps(list(brand_domains), ensure_ascii=False)}\n"
        f"- Aliases: {json.dumps(list(brand_aliases), ensure_ascii=False)}"
    )


def build_why_prompt(
    query: str,
    results: Sequence[dict[str, Any]],
    brand: str = DEFAULT_BRAND,
    brand_domains: Sequence[str] = DEFAULT_BRAND_DOMAINS,
    brand_aliases: Sequence[str] = DEFAULT_BRAND_ALIASES,
) -> str:
    """Prompt asking why the results look as they do, as evidence-cited JSON."""
    evidence = '[{"position": number, "url": string, "title": string}]'
    return f"""You are an expert in AI search visibility and citation mechanics.

Answer "WHY are these the results?" for the query "{query}", and specifically why {brand} appears or does NOT appear, with granular, competitor-specific reasons.

RULES:
- Use ONLY the provided data (URLs, titles, snippets, brandsFound). Do not browse.
- Label any claim the evidence cannot prove as a hypothesis and say what would confirm it.
- Every reason and recommendation must cite evidence as engine plus result position.
- Always spell the brand as "{brand}" exactly.

{_brand_block(brand, brand_domains, brand_aliases)}

AI SEARCH RESULTS (top 10 per engine):
{json.dumps(compact_results(results), indent=2, ensure_ascii=False)}

Look for citation patterns (Reddit threads, listicles, review sites, affiliate blogs, product pages, lab/COA pages, press mentions) and for the signals in URL, title, snippet or hostname that explain why each competitor did well. Include up to 6 competitors per engine, highest placed first.

Return ONLY valid JSON of this shape:
{{
  "summary": string,
  "engines": [
    {{
      "searchEngine": string,
      "brand": {{"appears": boolean, "appearances": {evidence}, "whyLikely": string[], "whyNotLikely": string[]}},
      "competitors": [{{"name": string, "appearances": {evidence}, "whyTheyDidWell": string[], "gapsToVerify": string[]}}],
      "resultPatterns": [{{"pattern": string, "evidence": {evidence}}}],
      "recommendations": [{{"action": string, "why": string, "evidence": {evidence}}}]
    }}
  ],
  "nextDataToCollect": string[]
}}"""


def build_why_repair_prompt(content: str) -> str:
    return f"""Fix and normalize the following into valid JSON ONLY.

- Output only JSON, no markdown or commentary.
- Keep the same data.
- Ensure the keys summary (string), engines (array) and nextDataToCollect (array).

Malformed JSON:
{content}"""


def build_why_text_prompt(
    query: str,
    results: Sequence[dict[str, Any]],
    brand: str = DEFAULT_BRAND,
    brand_domains: Sequence[str] = DEFAULT_BRAND_DOMAINS,
    brand_aliases: Sequence[str] = DEFAULT_BRAND_ALIASES,
) -> str:
    """Plain-text variant of the why prompt, used when JSON keeps failing."""
    return f"""You are an expert in AI search visibility and citation mechanics.

Explain WHY these are the AI search results for "{query}" and why {brand} appears or does NOT appear.

- Use ONLY the provided results. Do not browse.
- Be competitor-specific and cite evidence as (Engine · #Position · hostname).
- Always spell the brand as "{brand}" exactly.

{_brand_block(brand, brand_domains, brand_aliases)}

RESULTS:
{json.dumps(compact_results(results), indent=2, ensure_ascii=False)}

Answer in plain text: a short summary, then per engine whether {brand} appears, the top competitors and why, the patterns driving citations, and concrete next actions."""


class InsightGenerator:
    """Chat-completion client that turns search results into insights."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = API_BASE_URL,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = resolve_api_key(api_key, OPENAI_KEY_ENV_VARS)
        if not self.api_key:
            raise InsightConfigurationError(
                "OPENAI_API_KEY is required to generate AI search insights."
            )
        self.model = model
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def build_prompt(
        self,
        query: str,
        results: Sequence[dict[str, Any]],
        brand: str = DEFAULT_BRAND,
    ) -> str:
        """Prompt asking for competitive, evidence-backed insights as JSON."""
        return f"""You are an expert in AI search visibility for {brand}. Analyze the AI search results for the query "{query}" and deliver specific, competitive insights about how {brand} appears versus competitors.

RESULTS:
{json.dumps(compact_results(results), indent=2, ensure_ascii=False)}

REQUIREMENTS:
- Compare {brand} visibility to competitors found in the results.
- Explain why competitors appear (Reddit mentions, review sites, listicles, affiliate blogs) using evidence from the results.
- Give precise, action-oriented recommendations tied to those sources.
- Avoid generic advice. Every insight must reference a source pattern from the results.

Return ONLY a JSON object with an "insights" array. Each item must include:
- text (string)
- type (opportunity|warning|success|recommendation)
- priority (high|medium|low)"""

    async def _complete(
        self,
        system: str,
        prompt: str,
        temperature: float,
        max_tokens: int | None = None,
        json_mode: bool = True,
    ) -> str:
        """One chat completion; returns the reply text.

        Raises:
            InsightGenerationError: Transport failure, non-200 or non-JSON body
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if json_mode:
            payload["response_format"] = {"type": "json_object"}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise InsightGenerationError(f"Insight request failed: {e}") from e

        if response.status_code != 200:
            raise InsightGenerationError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as e:
            raise InsightGenerationError("Insight backend returned a non-JSON body.") from e
        return chat_completion_text(data) if isinstance(data, dict) else ""

    async def generate(
        self,
        query: str,
        results: Sequence[dict[str, Any]],
        brand: str = DEFAULT_BRAND,
    ) -> list[Insight]:
        """
        Generate insights for one query's per-engine results.

        Args:
            query: The search query the results answer
            results: Per-engine ``{searchEngine, topResults, brandsFound}`` records
            brand: Brand the insights are written for

        Returns:
            Typed insight records

        Raises:
            InsightGenerationError: Upstream failure or unparseable reply
        """
        content = await self._complete(
            "Return valid JSON only.",
            self.build_prompt(query, results, brand),
            temperature=0.3,
        )
        insights = parse_insights(content or "{}")
        logger.info("insights_generated", query=query, count=len(insights))
        return insights

    async def explain(
        self,
        query: str,
        results: Sequence[dict[str, Any]],
        brand: str = DEFAULT_BRAND,
        brand_domains: Sequence[str] = DEFAULT_BRAND_DOMAINS,
        brand_aliases: Sequence[str] = DEFAULT_BRAND_ALIASES,
    ) -> WhyAnalysis:
        """
        Explain why the results look as they do for a brand.

        The JSON reply is parsed directly, then from its outermost object. If
        both fail the model is asked once to repair its own output, and if that
        fails too a plain-text analysis is returned with ``parsed=False``.

        Raises:
            InsightGenerationError: Any of the completion calls failed upstream
        """
        content = await self._complete(
            "Return valid JSON only.",
            build_why_prompt(query, results, brand, brand_domains, brand_aliases),
            temperature=0.1,
            max_tokens=WHY_MAX_TOKENS,
        )
        parsed = load_json_object(content or "{}")

        if not isinstance(parsed, dict):
            logger.warning("why_analysis_repairing", query=query, reply_chars=len(content))
            repaired = await self._complete(
                "Return valid JSON only.",
                build_why_repair_prompt(content),
                temperature=0,
                max_tokens=WHY_MAX_TOKENS,
            )
            parsed = load_json_object(repaired or "{}")

        if isinstance(parsed, dict):
            analysis = WhyAnalysis.from_parsed(parsed)
            logger.info("why_analysis_generated", query=query, engines=len(analysis.engines))
            return analysis

        logger.warning("why_analysis_text_fallback", query=query)
        text = await self._complete(
            "Return plain text only.",
            build_why_text_prompt(query, results, brand, brand_domains, brand_aliases),
            temperature=0.2,
            max_tokens=WHY_MAX_TOKENS,
            json_mode=False,
        )
        return WhyAnalysis(parsed=False, analysis_text=text)
