"""LLM provider clients."""

from geoscore.clients.llm.anthropic import AnthropicProvider
from geoscore.clients.llm.base import BaseLLMProvider, LLMProviderError, ProviderNotConfiguredError
from geoscore.clients.llm.deepseek import DeepSeekProvider
from geoscore.clients.llm.google import GoogleProvider
from geoscore.clients.llm.grok import GrokProvider
from geoscore.clients.llm.openai import OpenAICompatibleProvider, OpenAIProvider
from geoscore.clients.llm.openrouter import OpenRouterProvider
from geoscore.clients.llm.perplexity import PerplexityProvider
from geoscore.clients.llm.unified import UnifiedLLMClient

__all__ = [
    "AnthropicProvider",
    "BaseLLMProvider",
    "DeepSeekProvider",
    "GoogleProvider",
    "GrokProvider",
    "LLMProviderError",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "PerplexityProvider",
    "ProviderNotConfiguredError",
    "UnifiedLLMClient",
]
