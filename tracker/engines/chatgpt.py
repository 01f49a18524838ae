"""ChatGPT adapter (plain chat completion, sources requested in the prompt)."""

from typing import Any

from tracker.brands import extract_brands
from tracker.engines.base import BaseEngine, chat_completion_text, extract_urls, hostname
from tracker.models import BrandMention, SourceLink

API_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"
MAX_TOKENS = 1000


def links_from_reply(text: str, limit: int) -> list[SourceLink]:
    """URLs written into the reply, titled by hostname."""
    links = []
    for index, url in enumerate(extract_urls(text, limit=limit)):
        links.append(
            SourceLink(url=url, title=hostname(url) or f"Source {index + 1}", position=index + 1)
        )
    return links


class ChatGPTEngine(BaseEngine):
    """OpenAI chat completion asked to cite its sources."""

    engine_id = "chatgpt"
    label = "ChatGPT"
    max_links = 10
    requires_api_key = True
    api_key_env_vars = ("OPENAI_API_KEY", "OPEN_AI_KEY", "OPEN_API_KEY")

    def missing_key_message(self) -> str:
        return "OpenAI API key required"

    async def _search(self, query_text: str) -> tuple[list[BrandMention], str, list[SourceLink]]:
        base_url = self.config.base_url or API_BASE_URL
        payload = {
            "model": self.config.model or DEFAULT_MODEL,
            "messages": [
                {
                    "role": "user",
                    "content": f"{query_text}. Please provide sources/links if available.",
                }
            ],
            "max_tokens": MAX_TOKENS,
        }

        async with self._client() as client:
            response = await client.post(
                f"{base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
        self._check_response(response)

        data: Any = response.json()
        content = chat_completion_text(data) if isinstance(data, dict) else ""
        return extract_brands(content), content, links_from_reply(content, self.max_links)
