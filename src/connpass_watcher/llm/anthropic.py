"""Anthropic (Claude) provider."""

from __future__ import annotations

from connpass_watcher.llm.base import LLMError, LLMProvider

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(LLMProvider):
    """Anthropic Messages API provider."""

    name = "anthropic"
    default_base_url = "https://api.anthropic.com/v1"

    async def _generate(self, prompt: str) -> str:
        if not self.api_key:
            raise LLMError("Anthropic API key is required", provider=self.name)

        data = await self._post_json(
            f"{self.base_url}/messages",
            payload={
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

        content = data.get("content") or []
        if not content or content[0].get("type") != "text":
            raise LLMError("Unexpected response type from Anthropic", provider=self.name)

        text = content[0].get("text", "")
        if not text:
            raise self._empty_response()
        return text
