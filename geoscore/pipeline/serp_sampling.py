"""SERP sampling job: where does the brand rank on Google for its prompts?"""

import asyncio
import logging
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from geoscore.clients.base import batch_items
from geoscore.clients.dataforseo import DataForSEOClient
from geoscore.clients.serpapi import SerpAPIClient
from geoscore.db.models import Brand, Prompt
from geoscore.db.repository import Repository
from geoscore.models.serp import Device, SERPResponse, SerpSampleResult
from geoscore.pipeline.errors import BrandNotFoundError, PromptNotFoundError, SerpNotConfiguredError

logger = logging.getLogger(__name__)

MAX_PROMPTS = 10
SERP_DEPTH = 10


class SerpSamplingOptions(BaseModel):
    prompt_id: str | None = Field(default=None, description="Sample one prompt instead of all active ones")
    location: str = "United States"
    device: Device = Device.DESKTOP
    batch_size: int = Field(default=5, description="Queries searched concurrently")


class SerpSamplingSummary(BaseModel):
    brand_id: str
    samples_collected: int = 0
    total_samples: int = 0
    results: list[SerpSampleResult] = Field(default_factory=list)


class SerpSamplingJob:
    """
    Searches Google for a brand's prompts and records the brand's rank.

    A failed query is recorded in the summary and does not stop the others.
    """

    def __init__(
        self,
        repository: Repository,
        serp_client: DataForSEOClient | SerpAPIClient | None,
    ):
        self.repository = repository
        self.serp_client = serp_client

    async def run(self, brand_id: str, options: SerpSamplingOptions | None = None) -> SerpSamplingSummary:
        options = options or SerpSamplingOptions()

        brand = self.repository.get_brand(brand_id)
        if brand is None:
            raise BrandNotFoundError(f"Brand {brand_id} not found")
        if self.serp_client is None:
            raise SerpNotConfiguredError("No SERP integration configured")

        prompts = self._select_prompts(brand, options)
        summary = SerpSamplingSummary(brand_id=brand.id)
        if not prompts:
            logger.info(f"No prompts to sample for brand {brand.id}")
            return summary

        logger.info(f"SERP sampling {len(prompts)} prompts for brand {brand.name}")

        for batch in batch_items(prompts, options.batch_size):
            batch_results = await asyncio.gather(
                *(self._sample_prompt(brand, prompt, options) for prompt in batch)
            )
            summary.results.extend(batch_results)

        summary.total_samples = len(summary.results)
        summary.samples_collected = sum(1 for r in summary.results if r.succeeded)
        logger.info(
            f"Completed {summary.samples_collected}/{summary.total_samples} SERP samples for brand {brand.id}"
        )
        return summary

    def _select_prompts(self, brand: Brand, options: SerpSamplingOptions) -> list[Prompt]:
        if options.prompt_id:
            prompt = self.repository.get_prompt(options.prompt_id)
            if prompt is None or prompt.brand_id != brand.id:
                raise PromptNotFoundError(f"Prompt {options.prompt_id} not found")
            return [prompt]
        return self.repository.list_prompts(brand.id, status="active", limit=MAX_PROMPTS)

    async def _search(self, brand: Brand, query: str, options: SerpSamplingOptions) -> SERPResponse:
        if isinstance(self.serp_client, SerpAPIClient):
            return await self.serp_client.search_google(
                query,
                location=options.location,
                device=options.device,
                limit=SERP_DEPTH,
                brand_name=brand.name,
            )
        return await self.serp_client.search_google(query, location=options.location, limit=SERP_DEPTH)

    async def _sample_prompt(
        self, brand: Brand, prompt: Prompt, options: SerpSamplingOptions
    ) -> SerpSampleResult:
        try:
            serp = await self._search(brand, prompt.text, options)

            position = serp.find_domain_position(brand.domain)
            brand_url = serp.results[position - 1].url if position > 0 else None
            overview = serp.ai_overview

            sample = self.repository.save_serp_sample(
                brand.id,
                prompt_id=prompt.id,
                query=prompt.text,
                location=options.location,
                device=options.device.value,
                total_results=serp.total_results,
                brand_position=position,
                brand_url=brand_url,
                top_results=[
                    {
                        "position": r.position,
                        "url": r.url,
                        "title": r.title,
                        "description": r.description or "",
                    }
                    for r in serp.results
                ],
                sample_metadata={
                    "search_engine": "google",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "ai_overview": {
                        "present": overview is not None,
                        "brand_mentioned": bool(overview and overview.brand_mentioned),
                    },
                    "paa_count": len(serp.people_also_ask),
                    "related_searches_count": len(serp.related_searches),
                },
            )

            return SerpSampleResult(
                prompt_id=prompt.id,
                query=prompt.text,
                brand_position=position,
                total_results=serp.total_results,
                sample_id=sample.id,
                ai_overview_present=overview is not None,
                ai_overview_brand_mentioned=bool(overview and overview.brand_mentioned),
            )

        except Exception as e:
            logger.error(f"Error sampling SERP for prompt {prompt.id}: {e}")
            return SerpSampleResult(prompt_id=prompt.id, query=prompt.text, error=str(e))
