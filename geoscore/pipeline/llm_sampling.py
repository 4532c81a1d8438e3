"""LLM sampling job: run a prompt through several LLMs and analyze the answers."""

import asyncio
import logging
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from geoscore.clients.llm import UnifiedLLMClient
from geoscore.db.models import Brand, Prompt
from geoscore.db.repository import Repository
from geoscore.models.analysis import AnswerSnapshot, EntityType, ScorePeriod
from geoscore.models.llm import LLMMessage, LLMOptions
from geoscore.pipeline.errors import BrandNotFoundError, PromptNotFoundError
from geoscore.pipeline.visibility_scoring import VisibilityScoringJob
from geoscore.services.drift import analyze_drift, content_hash, format_drift_report, should_alert
from geoscore.services.mentions import MentionExtractor, extract_citations
from geoscore.utils.logging import log_security_event

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = "You are a helpful AI assistant. Provide accurate, informative responses."
DEFAULT_PROVIDERS = ["openai", "anthropic", "google"]
SAMPLING_TEMPERATURE = 0.7
SAMPLING_MAX_TOKENS = 2000

# Minimum days between samplings of the same prompt, by brand tier
FRESHNESS_DAYS = {
    "free": 7,
    "starter": 5,
    "growth": 3,
    "enterprise": 1,
}


class ProviderSample(BaseModel):
    """Outcome of one provider's answer to the prompt."""

    provider: str
    model: str
    answer_id: str
    mentions: int = 0
    citations: int = 0
    brand_position: int | None = None
    cost: float = 0.0
    tokens: int = 0
    drift_score: int | None = None


class SamplingResult(BaseModel):
    prompt_id: str
    brand_id: str
    run_id: str | None = None
    skipped: bool = False
    reason: str | None = None
    last_sampled: datetime | None = None
    results: list[ProviderSample] = Field(default_factory=list)
    errors: dict[str, str] = Field(default_factory=dict)
    total_cost: float = 0.0
    total_tokens: int = 0
    visibility_score: int | None = None


class LLMSamplingJob:
    """
    Samples one prompt across LLM providers.

    Flow:
    1. Skip if the prompt was sampled within the brand tier's freshness window
    2. Open a running PromptRun
    3. For each provider: chat, store the answer with its hash, compare with
       that provider's previous answer for drift, extract mentions and citations
    4. Close the run with totals and update the prompt
    5. Re-score brand visibility for the week

    A provider failure is recorded and does not stop the other providers.
    """

    def __init__(
        self,
        repository: Repository,
        llm_client: UnifiedLLMClient,
        scoring_job: VisibilityScoringJob | None = None,
    ):
        self.repository = repository
        self.llm = llm_client
        self.scoring_job = scoring_job or VisibilityScoringJob(repository)

    async def run(
        self,
        prompt_id: str,
        providers: list[str] | None = None,
        model: str | None = None,
        force: bool = False,
    ) -> SamplingResult:
        providers = providers or list(DEFAULT_PROVIDERS)

        prompt = self.repository.get_prompt(prompt_id)
        if prompt is None:
            raise PromptNotFoundError(f"Prompt {prompt_id} not found")
        brand = self.repository.get_brand(prompt.brand_id)
        if brand is None:
            raise BrandNotFoundError(f"Brand {prompt.brand_id} not found")

        result = SamplingResult(prompt_id=prompt.id, brand_id=brand.id)

        if not force:
            last_run = self.repository.get_latest_prompt_run(prompt.id)
            if last_run is not None and self._is_fresh(brand, last_run.started_at):
                logger.info(f"Skipping prompt {prompt.id}: sampled at {last_run.started_at}")
                result.skipped = True
                result.reason = f"Sampled within the {brand.tier} tier freshness window"
                result.last_sampled = last_run.started_at
                result.run_id = last_run.id
                return result

        logger.info(f"Sampling prompt {prompt.id} with {', '.join(providers)}")
        run = self.repository.create_prompt_run(prompt.id, brand.id, providers)
        result.run_id = run.id

        competitors = {
            c.id: c.name for c in self.repository.list_competitors(brand.id, tracked_only=True)
        }
        extractor = MentionExtractor(brand.name, brand.brand_variations or [], competitors)
        messages = [
            LLMMessage(role="system", content=SYSTEM_MESSAGE),
            LLMMessage(role="user", content=prompt.text),
        ]
        options = LLMOptions(
            model=model,
            temperature=SAMPLING_TEMPERATURE,
            max_tokens=SAMPLING_MAX_TOKENS,
        )

        competitor_counts: dict[str, int] = {}
        for provider in providers:
            try:
                sample = await self._sample_provider(
                    provider, prompt, brand, messages, options, extractor, competitor_counts
                )
            except Exception as e:
                logger.error(f"Sampling failed for {provider} on prompt {prompt.id}: {e}")
                result.errors[provider] = str(e)
                continue

            result.results.append(sample)
            result.total_cost += sample.cost
            result.total_tokens += sample.tokens

        status = "completed" if result.results or not result.errors else "failed"
        self.repository.finish_prompt_run(
            run.id,
            status=status,
            answers_generated=len(result.results),
            tokens_used=result.total_tokens,
            cost=result.total_cost,
            error="; ".join(f"{p}: {e}" for p, e in result.errors.items()) or None,
        )
        self.repository.increment_competitor_mentions(competitor_counts)

        positions = [s.brand_position for s in result.results if s.brand_position is not None]
        self.repository.record_prompt_check(
            prompt.id,
            is_brand_present=bool(positions) if result.results else None,
            avg_rank=sum(positions) / len(positions) if positions else None,
        )

        logger.info(
            f"Completed sampling for prompt {prompt.id} - "
            f"{len(result.results)} answers, ${result.total_cost:.4f}"
        )

        try:
            metrics = self.scoring_job.run(brand.id, ScorePeriod.WEEK)
            result.visibility_score = metrics.overall_score
        except Exception as e:
            logger.error(f"Visibility scoring after sampling failed for brand {brand.id}: {e}")

        return result

    async def _sample_provider(
        self,
        provider: str,
        prompt: Prompt,
        brand: Brand,
        messages: list[LLMMessage],
        options: LLMOptions,
        extractor: MentionExtractor,
        competitor_counts: dict[str, int],
    ) -> ProviderSample:
        response = await self.llm.chat(provider, messages, options)
        response_hash = content_hash(response.content)

        previous = self.repository.get_latest_answer(prompt.id, provider)

        mentions = extractor.extract(response.content)
        citations = extract_citations(response.content)

        answer = self.repository.save_llm_answer(
            mentions=mentions,
            citations=citations,
            prompt_id=prompt.id,
            brand_id=brand.id,
            llm_provider=provider,
            llm_model=response.model,
            raw_response=response.content,
            response_hash=response_hash,
            tokens_used=response.usage.total_tokens,
            cost=response.cost,
        )

        drift_score = None
        if previous is not None:
            drift = await asyncio.to_thread(
                analyze_drift,
                AnswerSnapshot(
                    hash=previous.response_hash,
                    content=previous.raw_response,
                    timestamp=previous.created_at,
                ),
                AnswerSnapshot(hash=response_hash, content=response.content, timestamp=answer.created_at),
                brand.name,
            )
            drift_score = drift.drift_score
            if drift.has_drift:
                logger.info(
                    f"Drift detected for {provider}: {drift.drift_score}/100 "
                    f"({drift.significance.value})\n{format_drift_report(drift)}"
                )
            if should_alert(drift):
                log_security_event(
                    "answer_drift",
                    brand_id=brand.id,
                    prompt_id=prompt.id,
                    provider=provider,
                    model=response.model,
                    drift_score=drift.drift_score,
                    significance=drift.significance.value,
                    alerts=drift.alerts,
                )

        brand_position = None
        for mention in mentions:
            if mention.entity_type == EntityType.BRAND:
                brand_position = mention.position
            elif mention.competitor_id:
                competitor_counts[mention.competitor_id] = (
                    competitor_counts.get(mention.competitor_id, 0) + 1
                )

        return ProviderSample(
            provider=provider,
            model=response.model,
            answer_id=answer.id,
            mentions=len(mentions),
            citations=len(citations),
            brand_position=brand_position,
            cost=response.cost,
            tokens=response.usage.total_tokens,
            drift_score=drift_score,
        )

    @staticmethod
    def _is_fresh(brand: Brand, last_sampled: datetime, now: datetime | None = None) -> bool:
        window = timedelta(days=FRESHNESS_DAYS.get(brand.tier, FRESHNESS_DAYS["free"]))
        return (now or datetime.utcnow()) - last_sampled < window
