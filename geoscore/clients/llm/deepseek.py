"""DeepSeek provider (OpenAI-compatible)."""

from geoscore.clients.llm.base import pricing_table
from geoscore.clients.llm.openai import OpenAICompatibleProvider


class DeepSeekProvider(OpenAICompatibleProvider):
    name = "deepseek"
    DEFAULT_BASE_URL = "https://api.deepseek.com/v1"
    DEFAULT_MODEL = "deepseek-chat"
    PRICING = pricing_table(
        {
            "deepseek-chat": (0.14, 0.28),
            "deepseek-coder": (0.14, 0.28),
        }
    )
