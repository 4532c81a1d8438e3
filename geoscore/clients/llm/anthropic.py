"""Anthropic Messages API provider."""

from typing import Any

from geoscore.clients.llm.base import BaseLLMProvider, pricing_table
from geoscore.models.llm import LLMMessage, LLMOptions, LLMResponse, LLMUsage


class AnthropicProvider(BaseLLMProvider):
    """Claude models via ``/messages``. The system prompt is a top-level field."""

    name = "anthropic"
    DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
    DEFAULT_MODEL = "claude-3-5-haiku-20241022"
    API_VERSION = "2023-06-01"
    PRICING = pricing_table(
        {
            "claude-3-5-sonnet-20241022": (3.00, 15.00),
            "claude-3-5-haiku-20241022": (0.80, 4.00),
            "claude-3-opus-20240229": (15.00, 75.00),
        }
    )

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.API_VERSION,
        }

    async def chat(
        self,
        messages: list[LLMMessage],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        options, model = self._resolve_options(options)

        system = next((m.content for m in messages if m.role == "system"), "")
        conversation = [
            {"role": m.role, "content": m.content} for m in messages if m.role != "system"
        ]

        payload = {
            "model": model,
            "messages": conversation,
            "system": system,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "top_p": options.top_p,
        }

        return await self.fetch(
            "POST",
            "/messages",
            lambda data: self._parse_response(data, model),
            context=f"chat with {model}",
            json_data=payload,
        )

    def _parse_response(self, data: dict[str, Any], requested_model: str) -> LLMResponse:
        raw_usage = data.get("usage") or {}
        input_tokens = raw_usage.get("input_tokens", 0)
        output_tokens = raw_usage.get("output_tokens", 0)
        usage = LLMUsage(
            prompt_tokens=input_tokens,
            completion_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
        )
        text = "".join(
            block.get("text", "") for block in data["content"] if block.get("type", "text") == "text"
        )

        return LLMResponse(
            content=text,
            model=data.get("model") or requested_model,
            provider=self.name,
            usage=usage,
            cost=self.calculate_cost(usage, requested_model),
            metadata={"stop_reason": data.get("stop_reason"), "id": data.get("id")},
        )
