import logging
from typing import Any

import httpx

from ai.providers.base import AIProvider, AIProviderError

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI / GPT chat completions over raw HTTP."""

    name = "openai"
    BASE_URL = "https://api.openai.com/v1/chat/completions"
    DEFAULT_MODEL = "gpt-4o"
    SUPPORTS_JSON_MODE = True

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._require_key()}",
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        messages: list[dict],
        system: str,
        temperature: float,
        json_mode: bool,
        max_tokens: int | None,
    ) -> dict[str, Any]:
        # Prepend system message if provided
        full_messages = list(messages)
        if system:
            full_messages.insert(0, {"role": "system", "content": system})
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": full_messages,
            "temperature": temperature,
            "max_tokens": int(max_tokens or self.DEFAULT_MAX_TOKENS),
        }
        if json_mode and self.SUPPORTS_JSON_MODE:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def chat(
        self,
        messages: list[dict],
        *,
        system: str = "",
        temperature: float = 0.7,
        json_mode: bool = False,
        max_tokens: int | None = None,
    ) -> dict:
        headers = self._headers()
        payload = self._payload(messages, system, temperature, json_mode, max_tokens)
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                resp = await client.post(self.BASE_URL, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            logger.error("%s request failed: %s", self.name, exc)
            raise AIProviderError(self.name, f"network error: {exc}") from exc

        if resp.status_code != 200:
            if resp.status_code == 429:
                logger.warning("%s rate limit exceeded", self.name)
            elif resp.status_code in (401, 403):
                logger.warning("%s authentication error", self.name)
            logger.error("%s API error %s: %s", self.name, resp.status_code, resp.text)
            raise AIProviderError(self.name, f"API error {resp.status_code}", resp.status_code)

        try:
            data = resp.json()
        except ValueError as exc:
            raise AIProviderError(self.name, "response was not JSON", resp.status_code) from exc

        choice = (data.get("choices") or [{}])[0]
        content = (choice.get("message") or {}).get("content") or ""
        usage = data.get("usage") or {}

        return {
            "content": content,
            "tokens_in": usage.get("prompt_tokens", 0),
            "tokens_out": usage.get("completion_tokens", 0),
            "model": data.get("model", payload["model"]),
        }
