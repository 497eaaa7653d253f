"""Google Generative AI (Gemini) provider."""

from __future__ import annotations

from connpass_watcher.llm.base import LLMError, LLMProvider


class GoogleProvider(LLMProvider):
    """Gemini ``generateContent`` provider."""

    name = "google"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"

    async def _generate(self, prompt: str) -> str:
        if not self.api_key:
            raise LLMError("Google API key is required", provider=self.name)

        data = await self._post_json(
            f"{self.base_url}/models/{self.model}:generateContent",
            payload={
                "contents": [{"role": "user", "parts": [{"text": prompt}]}],
                "generationConfig": {"maxOutputTokens": self.max_tokens},
            },
            params={"key": self.api_key},
        )

        candidates = data.get("candidates") or []
        if not candidates:
            raise self._empty_response()
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            raise self._empty_response()
        return text
