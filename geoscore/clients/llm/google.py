"""Google Gemini ``generateContent`` provider."""

from typing import Any

from geoscore.clients.llm.base import BaseLLMProvider, pricing_table
from geoscore.models.llm import LLMMessage, LLMOptions, LLMResponse, LLMUsage


class GoogleProvider(BaseLLMProvider):
    """Gemini models. Assistant turns use the ``model`` role."""

    name = "google"
    DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-2.0-flash-exp"
    PRICING = pricing_table(
        {
            "gemini-2.0-flash-exp": (0.00, 0.00),
            "gemini-1.5-pro": (1.25, 5.00),
            "gemini-1.5-flash": (0.075, 0.30),
        }
    )

    def _get_default_headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    async def chat(
        self,
        messages: list[LLMMessage],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        options, model = self._resolve_options(options)

        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in messages
            if m.role != "system"
        ]
        system = next((m.content for m in messages if m.role == "system"), None)

        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": options.temperature,
                "maxOutputTokens": options.max_tokens,
                "topP": options.top_p,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        return await self.fetch(
            "POST",
            f"/models/{model}:generateContent",
            lambda data: self._parse_response(data, model),
            context=f"chat with {model}",
            json_data=payload,
            params={"key": self.api_key},
        )

    def _parse_response(self, data: dict[str, Any], requested_model: str) -> LLMResponse:
        candidate = data["candidates"][0]
        parts = (candidate.get("content") or {}).get("parts") or []
        usage_metadata = data.get("usageMetadata") or {}
        usage = LLMUsage(
            prompt_tokens=usage_metadata.get("promptTokenCount", 0),
            completion_tokens=usage_metadata.get("candidatesTokenCount", 0),
            total_tokens=usage_metadata.get("totalTokenCount", 0),
        )

        return LLMResponse(
            content="".join(part.get("text", "") for part in parts),
            model=requested_model,
            provider=self.name,
            usage=usage,
            cost=self.calculate_cost(usage, requested_model),
            metadata={
                "finish_reason": candidate.get("finishReason"),
                "safety_ratings": candidate.get("safetyRatings") or [],
            },
        )
