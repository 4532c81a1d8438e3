"""Perplexity provider (OpenAI-compatible, returns web citations)."""

from typing import Any

from geoscore.clients.llm.base import pricing_table
from geoscore.clients.llm.openai import OpenAICompatibleProvider


class PerplexityProvider(OpenAICompatibleProvider):
    """Perplexity Sonar models. Online models cite the pages they read."""

    name = "perplexity"
    DEFAULT_BASE_URL = "https://api.perplexity.ai"
    DEFAULT_MODEL = "llama-3.1-sonar-small-128k-online"
    PRICING = pricing_table(
        {
            "llama-3.1-sonar-small-128k-online": (0.20, 0.20),
            "llama-3.1-sonar-large-128k-online": (1.00, 1.00),
            "llama-3.1-sonar-huge-128k-online": (5.00, 5.00),
            "llama-3.1-sonar-small-128k-chat": (0.20, 0.20),
            "llama-3.1-sonar-large-128k-chat": (1.00, 1.00),
        }
    )

    def _response_metadata(self, data: dict[str, Any], choice: dict[str, Any]) -> dict[str, Any]:
        metadata = super()._response_metadata(data, choice)
        metadata["citations"] = data.get("citations") or []
        return metadata
