"""OpenAI and OpenAI-compatible chat completion providers."""

from typing import Any

from geoscore.clients.llm.base import BaseLLMProvider, pricing_table
from geoscore.models.llm import LLMMessage, LLMOptions, LLMResponse, LLMUsage


class OpenAICompatibleProvider(BaseLLMProvider):
    """
    Provider speaking the OpenAI ``/chat/completions`` protocol.

    Perplexity, xAI, DeepSeek and OpenRouter expose the same request and
    response shapes, so they only override the endpoint, models and prices.
    """

    CHAT_ENDPOINT = "/chat/completions"

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def chat(
        self,
        messages: list[LLMMessage],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        options, model = self._resolve_options(options)

        payload = {
            "model": model,
            "messages": [message.model_dump() for message in messages],
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
            "top_p": options.top_p,
        }

        return await self.fetch(
            "POST",
            self.CHAT_ENDPOINT,
            lambda data: self._parse_response(data, model),
            context=f"chat with {model}",
            json_data=payload,
        )

    def _parse_response(self, data: dict[str, Any], requested_model: str) -> LLMResponse:
        raw_usage = data.get("usage") or {}
        usage = LLMUsage(
            prompt_tokens=raw_usage.get("prompt_tokens", 0),
            completion_tokens=raw_usage.get("completion_tokens", 0),
            total_tokens=raw_usage.get("total_tokens", 0),
        )
        choice = data["choices"][0]

        return LLMResponse(
            content=choice["message"]["content"] or "",
            model=data.get("model") or requested_model,
            provider=self.name,
            usage=usage,
            cost=self.calculate_cost(usage, requested_model),
            metadata=self._response_metadata(data, choice),
        )

    def _response_metadata(self, data: dict[str, Any], choice: dict[str, Any]) -> dict[str, Any]:
        return {
            "finish_reason": choice.get("finish_reason"),
            "id": data.get("id"),
        }


class OpenAIProvider(OpenAICompatibleProvider):
    """OpenAI GPT models."""

    name = "openai"
    DEFAULT_BASE_URL = "https://api.openai.com/v1"
    DEFAULT_MODEL = "gpt-4o-mini"
    PRICING = pricing_table(
        {
            "gpt-4o": (2.50, 10.00),
            "gpt-4o-mini": (0.15, 0.60),
            "gpt-4-turbo": (10.00, 30.00),
            "gpt-3.5-turbo": (0.50, 1.50),
        }
    )
