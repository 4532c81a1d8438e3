"""DataForSEO API client for Google organic SERP data."""

import base64
import logging
from typing import Any

from geoscore.clients.base import APIError, BaseAPIClient
from geoscore.config import Settings, get_settings
from geoscore.models.serp import PeopleAlsoAsk, SERPResponse, SERPResult, SERPResultType

logger = logging.getLogger(__name__)

STATUS_OK = 20000


class DataForSEOError(APIError):
    """Raised when DataForSEO reports a non-OK status inside a 200 response."""

    pass


class DataForSEOClient(BaseAPIClient):
    """
    Client for DataForSEO API interactions.

    Endpoints implemented:
    - Google Organic SERP (live, advanced): /v3/serp/google/organic/live/advanced
    """

    service = "DataForSEO"
    BASE_URL = "https://api.dataforseo.com"
    SERP_ENDPOINT = "/v3/serp/google/organic/live/advanced"
    CALLS_PER_MINUTE = 2000
    PLACEHOLDER_DOMAIN_AUTHORITY = 50

    def __init__(
        self,
        login: str | None = None,
        password: str | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        super().__init__(base_url=self.BASE_URL, settings=settings)

        self.login = login or settings.dataforseo_login
        self.password = password or settings.dataforseo_password.get_secret_value()

        if not self.login or not self.password:
            logger.warning("DataForSEO credentials not configured")

    def _get_default_headers(self) -> dict[str, str]:
        """Get authorization headers."""
        credentials = f"{self.login}:{self.password}"
        encoded = base64.b64encode(credentials.encode()).decode()
        return {
            "Authorization": f"Basic {encoded}",
            "Content-Type": "application/json",
        }

    async def search_google(
        self,
        query: str,
        location: str | None = None,
        limit: int | None = None,
    ) -> SERPResponse:
        """
        Fetch the live Google organic SERP for a query.

        Args:
            query: Search query
            location: Location name (default: settings.default_serp_location)
            limit: Result depth (default: settings.default_serp_limit)

        Returns:
            SERPResponse with organic results, related searches and PAA

        Raises:
            APIError: On HTTP failure
            DataForSEOError: When the API reports a non-OK status
        """
        location = location or self.settings.default_serp_location
        limit = limit or self.settings.default_serp_limit

        payload = [
            {
                "keyword": query,
                "location_name": location,
                "language_code": "en",
                "device": "desktop",
                "os": "windows",
                "depth": limit,
            }
        ]

        def parse(response: dict[str, Any]) -> SERPResponse:
            if response.get("status_code") != STATUS_OK:
                raise DataForSEOError(
                    f"DataForSEO error: {response.get('status_message')}",
                    status_code=response.get("status_code"),
                    response_data=response,
                )
            return parse_serp_response(query, response)

        return await self.fetch("POST", self.SERP_ENDPOINT, parse, context=f'search for "{query}"', json_data=payload)

    async def get_domain_authority(self, domain: str) -> int:
        """
        Get a domain authority score.

        Placeholder: DataForSEO's domain metrics endpoint is not wired up,
        so every domain scores the same.
        """
        return self.PLACEHOLDER_DOMAIN_AUTHORITY


def parse_serp_response(query: str, response: dict[str, Any]) -> SERPResponse:
    """
    Reshape a DataForSEO SERP payload into a SERPResponse.

    Reads ``tasks[0].result[0].items`` and splits items by their ``type``
    tag. Missing or empty sections produce an empty response rather than
    an error, and the function has no side effects.
    """
    result = _first(_first(response.get("tasks")).get("result"))
    items = [item for item in (result.get("items") or []) if isinstance(item, dict)]

    organic_items = [item for item in items if item.get("type") == "organic"]
    results = [
        SERPResult(
            position=item.get("rank_absolute") or index + 1,
            title=item.get("title") or "",
            url=item.get("url") or "",
            domain=item.get("domain") or "",
            description=item.get("description"),
            type=SERPResultType.ORGANIC,
        )
        for index, item in enumerate(organic_items)
    ]

    related_searches: list[str] = []
    for item in items:
        if item.get("type") != "related_searches":
            continue
        for entry in item.get("items") or []:
            title = entry.get("title") if isinstance(entry, dict) else entry
            if isinstance(title, str) and title:
                related_searches.append(title)

    people_also_ask: list[PeopleAlsoAsk] = []
    for item in items:
        if item.get("type") != "people_also_ask":
            continue
        for entry in item.get("items") or []:
            if not isinstance(entry, dict):
                continue
            expanded = _first(entry.get("expanded_element"))
            people_also_ask.append(
                PeopleAlsoAsk(
                    question=entry.get("title") or "",
                    answer=expanded.get("description") or "",
                    url=entry.get("url") or expanded.get("url"),
                )
            )

    return SERPResponse(
        query=query,
        total_results=result.get("se_results_count") or 0,
        results=results,
        related_searches=related_searches,
        people_also_ask=people_also_ask,
    )


def _first(items: Any) -> dict[str, Any]:
    """Return the first element of a list if it is a dict, else an empty dict."""
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}
