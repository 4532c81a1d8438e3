"""Bundle of the external clients the jobs and API depend on."""

import logging

from geoscore.clients.dataforseo import DataForSEOClient
from geoscore.clients.llm import UnifiedLLMClient
from geoscore.clients.serpapi import SerpAPIClient
from geoscore.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Integrations:
    """
    Holds the LLM, DataForSEO and SerpAPI clients.

    A client is only created when its credentials are configured; the
    corresponding attribute is ``None`` otherwise. Clients can be injected
    for testing.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        llm: UnifiedLLMClient | None = None,
        dataforseo: DataForSEOClient | None = None,
        serpapi: SerpAPIClient | None = None,
    ):
        self.settings = settings or get_settings()

        self.llm = llm or UnifiedLLMClient(settings=self.settings)

        self.dataforseo = dataforseo
        if self.dataforseo is None and self.settings.dataforseo_configured:
            self.dataforseo = DataForSEOClient(settings=self.settings)

        self.serpapi = serpapi
        if self.serpapi is None and self.settings.serpapi_api_key.get_secret_value():
            self.serpapi = SerpAPIClient(settings=self.settings)

    @property
    def serp_client(self) -> DataForSEOClient | SerpAPIClient | None:
        """The SERP source used for sampling; DataForSEO wins when both exist."""
        return self.dataforseo or self.serpapi

    def available(self) -> dict[str, bool]:
        status = {
            "dataforseo": self.dataforseo is not None,
            "serpapi": self.serpapi is not None,
        }
        for provider in self.llm.available_providers():
            status[provider] = True
        return status

    def describe(self) -> dict:
        """Summary for the integrations endpoint."""
        return {
            "integrations": self.available(),
            "llm_providers": self.llm.available_providers(),
            "llm_models": self.llm.all_available_models(),
        }

    async def close(self) -> None:
        await self.llm.close()
        if self.dataforseo:
            await self.dataforseo.close()
        if self.serpapi:
            await self.serpapi.close()

    async def __aenter__(self) -> "Integrations":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()


_integrations: Integrations | None = None


def get_integrations() -> Integrations:
    """Get the process-wide integrations, creating them on first use."""
    global _integrations
    if _integrations is None:
        _integrations = Integrations()
        logger.info(f"Integrations initialized: {_integrations.available()}")
    return _integrations


def reset_integrations() -> None:
    global _integrations
    _integrations = None
