"""Ollama provider (local LLM)."""

from __future__ import annotations

from connpass_watcher.llm.base import LLMProvider


class OllamaProvider(LLMProvider):
    """Ollama ``/api/generate`` provider. No API key required."""

    name = "ollama"
    default_base_url = "http://localhost:11434"

    async def _generate(self, prompt: str) -> str:
        data = await self._post_json(
            f"{self.base_url}/api/generate",
            payload={"model": self.model, "prompt": prompt, "stream": False},
        )

        text = data.get("response")
        if not text:
            raise self._empty_response()
        return text
