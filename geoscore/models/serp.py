"""Pydantic models for search engine results pages."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SERPResultType(str, Enum):
    """Type tag of a SERP item."""

    ORGANIC = "organic"
    FEATURED_SNIPPET = "featured_snippet"
    PEOPLE_ALSO_ASK = "people_also_ask"
    RELATED_SEARCHES = "related_searches"
    AI_OVERVIEW = "ai_overview"


class Device(str, Enum):
    """Device a SERP is requested for."""

    DESKTOP = "desktop"
    MOBILE = "mobile"


class SERPResult(BaseModel):
    """A single ranked search result."""

    position: int
    title: str = ""
    url: str = ""
    domain: str = ""
    description: str | None = None
    type: SERPResultType = SERPResultType.ORGANIC


class PeopleAlsoAsk(BaseModel):
    """A 'People also ask' question with its expanded answer."""

    question: str = ""
    answer: str = ""
    url: str | None = None


class AIOverviewSource(BaseModel):
    """A source cited by Google's AI Overview."""

    title: str = ""
    url: str = ""
    position: int


class AIOverview(BaseModel):
    """Google AI Overview block with brand-mention detection."""

    text: str = ""
    sources: list[AIOverviewSource] = Field(default_factory=list)
    brand_mentioned: bool = False
    mention_context: list[str] | None = None


class FeaturedSnippet(BaseModel):
    """Answer box shown above organic results."""

    title: str = ""
    url: str = ""
    snippet: str = ""


class SERPResponse(BaseModel):
    """Normalized SERP for one query."""

    query: str
    total_results: int = 0
    results: list[SERPResult] = Field(default_factory=list)
    related_searches: list[str] = Field(default_factory=list)
    people_also_ask: list[PeopleAlsoAsk] = Field(default_factory=list)
    ai_overview: AIOverview | None = None
    featured_snippet: FeaturedSnippet | None = None

    def find_domain_position(self, domain: str) -> int:
        """
        Get the 1-based position of the first organic result matching a domain.

        Scheme and leading ``www.`` are ignored, and containment is checked
        in both directions so ``shop.example.com`` matches ``example.com``.
        Returns -1 if the domain does not appear.
        """
        target = normalize_domain(domain)
        if not target:
            return -1

        for index, result in enumerate(self.results):
            result_domain = normalize_domain(result.domain)
            if not result_domain:
                continue
            if target in result_domain or result_domain in target:
                return index + 1
        return -1


class SerpSampleResult(BaseModel):
    """Outcome of sampling one prompt against the SERP."""

    prompt_id: str
    query: str
    brand_position: int = -1
    total_results: int = 0
    sample_id: str | None = None
    ai_overview_present: bool = False
    ai_overview_brand_mentioned: bool = False
    error: str | None = None
    sampled_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_summary(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude={"sampled_at"})


def normalize_domain(value: str) -> str:
    """Strip scheme, ``www.``, path and case from a domain or URL."""
    value = (value or "").strip().lower()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix):]
    if value.startswith("www."):
        value = value[4:]
    return value.split("/", 1)[0]
