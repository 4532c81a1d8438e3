"""Single entry point over every configured LLM provider."""

import asyncio
import logging

from geoscore.clients.llm.anthropic import AnthropicProvider
from geoscore.clients.llm.base import BaseLLMProvider, ProviderNotConfiguredError
from geoscore.clients.llm.deepseek import DeepSeekProvider
from geoscore.clients.llm.google import GoogleProvider
from geoscore.clients.llm.grok import GrokProvider
from geoscore.clients.llm.openai import OpenAIProvider
from geoscore.clients.llm.openrouter import OpenRouterProvider
from geoscore.clients.llm.perplexity import PerplexityProvider
from geoscore.config import Settings, get_settings
from geoscore.models.llm import LLMMessage, LLMOptions, LLMResponse

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[BaseLLMProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GoogleProvider,
    "perplexity": PerplexityProvider,
    "grok": GrokProvider,
    "deepseek": DeepSeekProvider,
    "openrouter": OpenRouterProvider,
}


class UnifiedLLMClient:
    """
    Routes chat requests to providers by name.

    Only providers with an API key in settings are registered; asking for
    any other provider raises ``ProviderNotConfiguredError``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        providers: dict[str, BaseLLMProvider] | None = None,
    ):
        self.settings = settings or get_settings()

        if providers is not None:
            self.providers = dict(providers)
        else:
            self.providers = {
                name: PROVIDER_CLASSES[name](api_key, settings=self.settings)
                for name, api_key in self.settings.llm_api_keys.items()
                if name in PROVIDER_CLASSES
            }

        logger.info(f"LLM providers configured: {', '.join(self.providers) or 'none'}")

    def get_provider(self, provider: str) -> BaseLLMProvider:
        client = self.providers.get(provider)
        if client is None:
            raise ProviderNotConfiguredError(provider)
        return client

    async def chat(
        self,
        provider: str,
        messages: list[LLMMessage],
        options: LLMOptions | None = None,
    ) -> LLMResponse:
        return await self.get_provider(provider).chat(messages, options)

    async def chat_multiple(
        self,
        providers: list[str],
        messages: list[LLMMessage],
        options: LLMOptions | None = None,
    ) -> list[LLMResponse]:
        """
        Ask several providers the same thing concurrently.

        Failed providers are logged and left out of the result, so the
        returned list may be shorter than ``providers``.
        """
        results = await asyncio.gather(
            *(self.chat(provider, messages, options) for provider in providers),
            return_exceptions=True,
        )

        responses = []
        for provider, result in zip(providers, results):
            if isinstance(result, BaseException):
                logger.error(f"Provider {provider} failed: {result}")
                continue
            responses.append(result)
        return responses

    def available_providers(self) -> list[str]:
        return list(self.providers)

    def is_available(self, provider: str) -> bool:
        return provider in self.providers

    def available_models(self, provider: str) -> list[str]:
        client = self.providers.get(provider)
        return client.available_models() if client else []

    def all_available_models(self) -> dict[str, list[str]]:
        return {name: client.available_models() for name, client in self.providers.items()}

    async def close(self) -> None:
        for client in self.providers.values():
            await client.close()
