"""OpenAI-compatible chat completion providers.

``OpenAIProvider`` also works with OpenAI-compatible services (Groq,
Together, ...) via ``base_url``. ``OpenRouterProvider`` adds the attribution
headers OpenRouter asks for.
"""

from __future__ import annotations

import logging

from connpass_watcher.llm.base import LLMError, LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider."""

    name = "openai"
    default_base_url = "https://api.openai.com/v1"

    def _extra_headers(self) -> dict[str, str]:
        return {}

    async def _generate(self, prompt: str) -> str:
        if not self.api_key:
            raise LLMError(f"{self.name} API key is required", provider=self.name)

        headers = {"Authorization": f"Bearer {self.api_key}"}
        headers.update(self._extra_headers())

        logger.debug(f"Sending request to {self.name} (model={self.model}, prompt={len(prompt)} chars)")

        data = await self._post_json(
            f"{self.base_url}/chat/completions",
            payload={
                "model": self.model,
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers=headers,
        )

        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise self._empty_response()
        return content


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter: many model vendors behind one OpenAI-compatible API."""

    name = "openrouter"
    default_base_url = "https://openrouter.ai/api/v1"

    def _extra_headers(self) -> dict[str, str]:
        return {
            "HTTP-Referer": "https://github.com/connpass-watcher",
            "X-Title": "connpass-watcher",
        }
