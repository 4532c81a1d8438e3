"""Base class shared by all LLM provider clients."""

import logging
from abc import abstractmethod

from geoscore.clients.base import BaseAPIClient
from geoscore.config import Settings
from geoscore.models.llm import LLMMessage, LLMOptions, LLMResponse, LLMUsage, ModelPricing

logger = logging.getLogger(__name__)

TOKENS_PER_PRICE_UNIT = 1_000_000


class LLMProviderError(Exception):
    """Raised when a provider call fails for any reason."""

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider} chat failed: {message}")
        self.provider = provider


class ProviderNotConfiguredError(LLMProviderError):
    """Raised when a provider is requested but has no API key."""

    def __init__(self, provider: str):
        Exception.__init__(
            self,
            f"Provider {provider} not configured. Please add API key to configuration.",
        )
        self.provider = provider


class BaseLLMProvider(BaseAPIClient):
    """
    Common plumbing for LLM providers.

    Subclasses declare their endpoint, default model and a price table in
    USD per one million tokens, and implement ``chat``.
    """

    name: str = ""
    DEFAULT_BASE_URL: str = ""
    DEFAULT_MODEL: str = ""
    PRICING: dict[str, ModelPricing] = {}
    # Used for models missing from PRICING; None means "price as DEFAULT_MODEL"
    FALLBACK_PRICING: ModelPricing | None = None
    CALLS_PER_MINUTE = 500
    REQUEST_TIMEOUT = 120.0

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(base_url=base_url or self.DEFAULT_BASE_URL, settings=settings)
        self.api_key = api_key

    @property
    def service(self) -> str:
        return self.name

    def _request_failed(self, error: Exception, context: str) -> None:
        raise LLMProviderError(self.name, str(error)) from error

    @abstractmethod
    async def chat(
        self,
        messages: list[LLMMessage],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        """Send a conversation and return the normalized completion."""
        pass

    def available_models(self) -> list[str]:
        return list(self.PRICING)

    def calculate_cost(self, usage: LLMUsage, model: str) -> float:
        """Price a completion from its token usage."""
        pricing = self.PRICING.get(model)
        if pricing is None:
            pricing = self.FALLBACK_PRICING or self.PRICING[self.DEFAULT_MODEL]

        input_cost = usage.prompt_tokens / TOKENS_PER_PRICE_UNIT * pricing.input
        output_cost = usage.completion_tokens / TOKENS_PER_PRICE_UNIT * pricing.output
        return input_cost + output_cost

    def _resolve_options(self, options: LLMOptions | None) -> tuple[LLMOptions, str]:
        options = options or LLMOptions()
        return options, options.model or self.DEFAULT_MODEL


def pricing_table(prices: dict[str, tuple[float, float]]) -> dict[str, ModelPricing]:
    """Build a price table from ``{model: (input, output)}`` pairs."""
    return {
        model: ModelPricing(input=input_price, output=output_price)
        for model, (input_price, output_price) in prices.items()
    }
