"""SerpAPI client for Google Search, AI Overview and answer-box data."""

import asyncio
import logging
import re
from typing import Any
from urllib.parse import urlparse

from geoscore.clients.base import BaseAPIClient
from geoscore.config import Settings, get_settings
from geoscore.models.serp import (
    AIOverview,
    AIOverviewSource,
    Device,
    FeaturedSnippet,
    PeopleAlsoAsk,
    SERPResponse,
    SERPResult,
    SERPResultType,
)

logger = logging.getLogger(__name__)


class SerpAPIClient(BaseAPIClient):
    """
    Client for SerpAPI's Google engine.

    Adds what DataForSEO's organic endpoint does not return: Google's AI
    Overview (with brand-mention detection) and the featured snippet.
    """

    service = "SerpAPI"
    BASE_URL = "https://serpapi.com"
    CALLS_PER_MINUTE = 60
    AI_OVERVIEW_CHECK_DELAY = 1.0

    def __init__(self, api_key: str | None = None, settings: Settings | None = None):
        settings = settings or get_settings()
        super().__init__(base_url=self.BASE_URL, settings=settings)
        self.api_key = api_key or settings.serpapi_api_key.get_secret_value()

        if not self.api_key:
            logger.warning("SerpAPI key not configured")

    def _get_default_headers(self) -> dict[str, str]:
        return {"Accept": "application/json"}

    async def search_google(
        self,
        query: str,
        location: str | None = None,
        device: Device | str = Device.DESKTOP,
        limit: int | None = None,
        brand_name: str | None = None,
    ) -> SERPResponse:
        """
        Run a Google search and extract organic, PAA, related and AI data.

        Args:
            query: Search query
            location: Location name (default: settings.default_serp_location)
            device: desktop or mobile
            limit: Number of organic results to keep
            brand_name: Brand to look for in the AI Overview text
        """
        location = location or self.settings.default_serp_location
        limit = limit or self.settings.default_serp_limit
        device = Device(device)

        params = {
            "q": query,
            "api_key": self.api_key,
            "engine": "google",
            "location": location,
            "device": device.value,
            "num": str(limit),
            "gl": "us",
            "hl": "en",
        }

        return await self.fetch(
            "GET",
            "/search",
            lambda data: self.parse_search_response(query, data, limit=limit, brand_name=brand_name),
            context=f'search for "{query}"',
            params=params,
        )

    def parse_search_response(
        self,
        query: str,
        data: dict[str, Any],
        limit: int = 10,
        brand_name: str | None = None,
    ) -> SERPResponse:
        """Reshape a SerpAPI payload into a SERPResponse."""
        organic = [
            SERPResult(
                position=item.get("position") or index + 1,
                title=item.get("title") or "",
                url=item.get("link") or "",
                domain=self.extract_domain(item.get("link") or ""),
                description=item.get("snippet") or "",
                type=SERPResultType.ORGANIC,
            )
            for index, item in enumerate((data.get("organic_results") or [])[:limit])
        ]

        related_searches = [
            item["query"] for item in data.get("related_searches") or [] if item.get("query")
        ]

        people_also_ask = [
            PeopleAlsoAsk(
                question=item.get("question") or "",
                answer=item.get("snippet") or item.get("answer") or "",
                url=item.get("link") or (item.get("source") or {}).get("link"),
            )
            for item in data.get("related_questions") or []
        ]

        answer_box = data.get("answer_box") or {}
        ai_overview = None
        overview = data.get("ai_overview") or (
            answer_box if answer_box.get("type") == "ai_overview" else None
        )
        if overview:
            ai_overview = self._parse_ai_overview(overview, brand_name)

        featured_snippet = None
        if answer_box and answer_box.get("type") != "ai_overview":
            featured_snippet = FeaturedSnippet(
                title=answer_box.get("title") or "",
                url=answer_box.get("link") or "",
                snippet=answer_box.get("snippet") or answer_box.get("answer") or "",
            )

        return SERPResponse(
            query=query,
            total_results=(data.get("search_information") or {}).get("total_results") or 0,
            results=organic,
            related_searches=related_searches,
            people_also_ask=people_also_ask,
            ai_overview=ai_overview,
            featured_snippet=featured_snippet,
        )

    def _parse_ai_overview(self, overview: dict[str, Any], brand_name: str | None) -> AIOverview:
        text = overview.get("text") or overview.get("snippet") or overview.get("answer") or ""
        brand_mentioned = bool(brand_name) and brand_name.lower() in text.lower()

        mention_context = None
        if brand_mentioned:
            mention_context = [
                sentence.strip()
                for sentence in re.split(r"[.!?]+", text)
                if brand_name.lower() in sentence.lower() and sentence.strip()
            ]

        sources = [
            AIOverviewSource(
                title=source.get("title") or "",
                url=source.get("link") or source.get("url") or "",
                position=index + 1,
            )
            for index, source in enumerate(overview.get("sources") or overview.get("citations") or [])
        ]

        return AIOverview(
            text=text,
            sources=sources,
            brand_mentioned=brand_mentioned,
            mention_context=mention_context,
        )

    async def check_ai_overview(self, query: str, brand_name: str) -> AIOverview | None:
        """Check whether a query triggers an AI Overview and if it names the brand."""
        result = await self.search_google(query, brand_name=brand_name)
        return result.ai_overview

    async def check_multiple_ai_overviews(
        self,
        queries: list[str],
        brand_name: str,
    ) -> list[tuple[str, AIOverview | None]]:
        """Check several queries sequentially; failed queries map to None."""
        results: list[tuple[str, AIOverview | None]] = []

        for i, query in enumerate(queries):
            try:
                overview = await self.check_ai_overview(query, brand_name)
            except Exception as e:
                logger.error(f'Failed to check AI Overview for "{query}": {e}')
                overview = None
            results.append((query, overview))

            if i < len(queries) - 1:
                await asyncio.sleep(self.AI_OVERVIEW_CHECK_DELAY)

        return results

    @staticmethod
    def extract_domain(url: str) -> str:
        """Get the host of a URL without a leading ``www.``."""
        try:
            host = urlparse(url).hostname or ""
        except ValueError:
            return ""
        return host[4:] if host.startswith("www.") else host
