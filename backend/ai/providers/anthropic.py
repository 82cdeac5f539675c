import httpx
from fastapi import HTTPException

from ai.providers.base import AIProvider


class AnthropicProvider(AIProvider):
    """Anthropic / Claude AI provider."""

    BASE_URL = "https://api.anthropic.com/v1/messages"
    DEFAULT_INSIGHT_MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, insight_model: str | None = None):
        super().__init__(api_key, insight_model)
        self._headers = {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }

    async def chat(
        self,
        messages: list[dict],
        model: str,
        system: str = "",
        max_tokens: int = 2048,
    ) -> dict:
        payload: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            payload["system"] = system

        async with httpx.AsyncClient(timeout=120) as client:
            resp = await client.post(
                self.BASE_URL,
                headers=self._headers,
                json=payload,
            )
            if resp.status_code != 200:
                raise HTTPException(
                    status_code=resp.status_code,
                    detail=f"Anthropic API error: {resp.text}",
                )
            data = resp.json()

        content = ""
        for block in data.get("content", []):
            if block.get("type") == "text":
                content += block["text"]

        usage = data.get("usage", {})
        return {
            "content": content,
            "tokens_in": usage.get("input_tokens", 0),
            "tokens_out": usage.get("output_tokens", 0),
            "model": data.get("model", payload["model"]),
        }
