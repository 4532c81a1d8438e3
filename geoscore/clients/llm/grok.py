"""xAI Grok provider (OpenAI-compatible)."""

from geoscore.clients.llm.base import pricing_table
from geoscore.clients.llm.openai import OpenAICompatibleProvider


class GrokProvider(OpenAICompatibleProvider):
    name = "grok"
    DEFAULT_BASE_URL = "https://api.x.ai/v1"
    DEFAULT_MODEL = "grok-beta"
    PRICING = pricing_table(
        {
            "grok-beta": (5.00, 15.00),
            "grok-vision-beta": (5.00, 15.00),
        }
    )
