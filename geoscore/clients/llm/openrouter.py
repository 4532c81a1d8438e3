"""OpenRouter provider: one key, many upstream models."""

from geoscore.clients.llm.base import pricing_table
from geoscore.clients.llm.openai import OpenAICompatibleProvider
from geoscore.config import Settings
from geoscore.models.llm import ModelPricing


class OpenRouterProvider(OpenAICompatibleProvider):
    """
    OpenRouter gateway.

    Prices are approximate; OpenRouter bills by the upstream model, and
    models not listed here are priced at a flat 1.00/1.00.
    """

    name = "openrouter"
    DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
    DEFAULT_MODEL = "openai/gpt-4o-mini"
    FALLBACK_PRICING = ModelPricing(input=1.00, output=1.00)
    PRICING = pricing_table(
        {
            "openai/gpt-4o-mini": (0.15, 0.60),
            "openai/gpt-4-turbo": (10.00, 30.00),
            "openai/gpt-4o": (5.00, 15.00),
            "openai/gpt-3.5-turbo": (0.50, 1.50),
            "anthropic/claude-3.5-sonnet": (3.00, 15.00),
            "anthropic/claude-3-opus": (15.00, 75.00),
            "anthropic/claude-3-haiku": (0.25, 1.25),
            "google/gemini-pro-1.5": (1.25, 5.00),
            "google/gemini-flash-1.5": (0.075, 0.30),
            "meta-llama/llama-3.1-405b-instruct": (3.00, 3.00),
            "meta-llama/llama-3.1-70b-instruct": (0.52, 0.75),
            "mistralai/mistral-large": (3.00, 9.00),
            "mistralai/mixtral-8x7b-instruct": (0.24, 0.24),
            "perplexity/llama-3.1-sonar-large-128k-online": (1.00, 1.00),
            "deepseek/deepseek-chat": (0.14, 0.28),
            "x-ai/grok-beta": (5.00, 15.00),
        }
    )

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        app_name: str | None = None,
        app_url: str | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(api_key, base_url=base_url, settings=settings)
        self.app_name = app_name or self.settings.openrouter_app_name
        self.app_url = app_url or self.settings.openrouter_app_url

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        headers["HTTP-Referer"] = self.app_url
        headers["X-Title"] = self.app_name
        return headers
