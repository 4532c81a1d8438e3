"""API clients for external services."""

from geoscore.clients.base import APIError, BaseAPIClient, TokenBucket
from geoscore.clients.dataforseo import DataForSEOClient, DataForSEOError
from geoscore.clients.llm import UnifiedLLMClient
from geoscore.clients.serpapi import SerpAPIClient

__all__ = [
    "APIError",
    "BaseAPIClient",
    "TokenBucket",
    "DataForSEOClient",
    "DataForSEOError",
    "SerpAPIClient",
    "UnifiedLLMClient",
]
