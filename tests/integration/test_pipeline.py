"""Integration tests for the sampling and scoring jobs with mocked providers."""

from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from geoscore.clients.dataforseo import parse_serp_response
from geoscore.clients.llm import LLMProviderError
from geoscore.clients.serpapi import SerpAPIClient
from geoscore.models.analysis import ScorePeriod, ScoreTrend
from geoscore.models.serp import Device
from geoscore.pipeline import (
    BrandNotFoundError,
    LLMSamplingJob,
    PromptNotFoundError,
    SerpNotConfiguredError,
    SerpSamplingJob,
    SerpSamplingOptions,
    VisibilityScoringJob,
)
from geoscore.services.drift import analyze_drift


class TestLLMSamplingJob:
    """Tests for LLMSamplingJob."""

    @pytest.fixture
    def job(self, repository, mock_llm_client):
        return LLMSamplingJob(repository, mock_llm_client)

    @pytest.mark.asyncio
    async def test_run_all_providers(self, job, repository, brand, competitor, prompt):
        """Test a full sampling run stores answers and updates bookkeeping."""
        result = await job.run(prompt.id)

        assert result.skipped is False
        assert result.errors == {}
        assert [s.provider for s in result.results] == ["openai", "anthropic", "google"]
        assert all(s.brand_position == 2 for s in result.results)
        assert all(s.mentions == 2 and s.citations == 1 for s in result.results)
        assert all(s.drift_score is None for s in result.results)
        assert result.total_tokens == 300
        assert result.total_cost == pytest.approx(0.0003)

        run = repository.get_latest_prompt_run(prompt.id)
        assert run.id == result.run_id
        assert run.answers_generated == 3
        assert run.error is None

        stored_prompt = repository.get_prompt(prompt.id)
        assert stored_prompt.run_count == 1
        assert stored_prompt.is_brand_present is True
        assert stored_prompt.avg_rank == 2.0

        assert repository.get_competitor(competitor.id).mentions == 3
        assert len(repository.list_llm_answers(brand.id)) == 3
        assert len(repository.list_mentions(brand.id, entity_type="brand")) == 3

    @pytest.mark.asyncio
    async def test_run_rescores_visibility(self, job, repository, brand, competitor, prompt):
        """Test the weekly score is refreshed after sampling."""
        result = await job.run(prompt.id)

        # 100*0.4 + 80*0.3 + 100*0.2 + 10*0.1
        assert result.visibility_score == 85
        assert repository.get_brand(brand.id).visibility_score == 85
        assert repository.get_latest_visibility_score(brand.id, "week").overall_score == 85

    @pytest.mark.asyncio
    async def test_chat_request(self, job, mock_llm_client, prompt):
        """Test the prompt is sent with the system message and sampling options."""
        await job.run(prompt.id, providers=["openai"], model="gpt-4o")

        provider = mock_llm_client.providers["openai"]
        messages, options = provider.chat.call_args.args
        assert messages[0].role == "system"
        assert messages[1].content == prompt.text
        assert options.model == "gpt-4o"
        assert options.temperature == 0.7
        assert options.max_tokens == 2000
        mock_llm_client.providers["anthropic"].chat.assert_not_called()

    @pytest.mark.asyncio
    async def test_fresh_prompt_skipped(self, job, mock_llm_client, prompt):
        """Test a second run inside the tier window is skipped."""
        first = await job.run(prompt.id, providers=["openai"])

        second = await job.run(prompt.id, providers=["openai"])

        assert second.skipped is True
        assert second.run_id == first.run_id
        assert "free" in second.reason
        assert second.last_sampled is not None
        assert mock_llm_client.providers["openai"].chat.await_count == 1

    @pytest.mark.asyncio
    async def test_force_resamples_and_checks_drift(self, job, mock_llm_client, llm_response, prompt):
        """Test forced re-sampling compares against the previous answer."""
        await job.run(prompt.id, providers=["openai", "anthropic"])
        mock_llm_client.providers["anthropic"].chat.return_value = llm_response.model_copy(
            update={
                "provider": "anthropic",
                "content": "Globex is the usual pick. Initech is poor value and support is terrible.",
            }
        )

        result = await job.run(prompt.id, providers=["openai", "anthropic"], force=True)

        drift = {s.provider: s.drift_score for s in result.results}
        assert result.skipped is False
        assert drift["openai"] == 0
        assert drift["anthropic"] > 10

    @pytest.mark.asyncio
    async def test_drift_runs_off_the_event_loop(self, job, prompt):
        await job.run(prompt.id, providers=["openai"])

        with patch(
            "geoscore.pipeline.llm_sampling.asyncio.to_thread",
            new=AsyncMock(side_effect=lambda func, *args: func(*args)),
        ) as to_thread:
            result = await job.run(prompt.id, providers=["openai"], force=True)

        assert to_thread.await_args.args[0] is analyze_drift
        assert result.results[0].drift_score == 0

    @pytest.mark.asyncio
    async def test_provider_failure_isolated(self, job, repository, mock_llm_client, prompt):
        """Test one provider failing does not stop the others."""
        mock_llm_client.providers["anthropic"].chat.side_effect = LLMProviderError("anthropic", "overloaded")

        result = await job.run(prompt.id)

        assert [s.provider for s in result.results] == ["openai", "google"]
        assert "overloaded" in result.errors["anthropic"]
        run = repository.get_latest_prompt_run(prompt.id)
        assert run.answers_generated == 2
        assert "anthropic" in run.error

    @pytest.mark.asyncio
    async def test_unconfigured_provider_recorded(self, job, prompt):
        result = await job.run(prompt.id, providers=["openai", "grok"])

        assert len(result.results) == 1
        assert "not configured" in result.errors["grok"]

    @pytest.mark.asyncio
    async def test_all_providers_fail(self, job, repository, mock_llm_client, brand, prompt):
        """Test a run with no answers is marked failed and not treated as fresh."""
        for provider in mock_llm_client.providers.values():
            provider.chat.side_effect = LLMProviderError("x", "down")

        result = await job.run(prompt.id)

        assert result.results == []
        assert len(result.errors) == 3
        assert repository.get_latest_prompt_run(prompt.id) is None
        assert repository.list_prompt_runs(brand.id)[0].status == "failed"
        assert repository.get_prompt(prompt.id).is_brand_present is False

    @pytest.mark.asyncio
    async def test_unknown_prompt(self, job):
        with pytest.raises(PromptNotFoundError):
            await job.run("missing")

    @pytest.mark.parametrize(
        "tier,age,fresh",
        [
            ("free", timedelta(days=6), True),
            ("free", timedelta(days=7), False),
            ("growth", timedelta(days=2), True),
            ("enterprise", timedelta(hours=25), False),
            ("unknown", timedelta(days=6), True),
        ],
    )
    def test_freshness_window(self, tier, age, fresh):
        now = datetime(2026, 3, 1, 12, 0)
        brand = SimpleNamespace(tier=tier)

        assert LLMSamplingJob._is_fresh(brand, now - age, now) is fresh


class TestSerpSamplingJob:
    """Tests for SerpSamplingJob."""

    @pytest.fixture
    def serp(self, sample_serp_payload):
        return parse_serp_response("best crm", sample_serp_payload)

    @pytest.mark.asyncio
    async def test_run_records_brand_position(self, repository, mock_serp_client, serp, brand, prompt):
        """Test each prompt is searched and the brand's rank stored."""
        mock_serp_client.search_google.return_value = serp
        job = SerpSamplingJob(repository, mock_serp_client)

        summary = await job.run(brand.id)

        assert summary.total_samples == 1
        assert summary.samples_collected == 1
        result = summary.results[0]
        assert result.brand_position == 2
        assert result.total_results == 1250000
        assert result.ai_overview_present is False

        mock_serp_client.search_google.assert_awaited_once_with(prompt.text, location="United States", limit=10)

        sample = repository.list_serp_samples(brand.id)[0]
        assert sample.id == result.sample_id
        assert sample.brand_url == "https://acme.com/"
        assert [r["position"] for r in sample.top_results] == [1, 3]
        assert sample.sample_metadata["paa_count"] == 1
        assert sample.sample_metadata["related_searches_count"] == 2

    @pytest.mark.asyncio
    async def test_failed_query_recorded(self, repository, mock_serp_client, brand, prompt):
        mock_serp_client.search_google.side_effect = RuntimeError("timeout")
        job = SerpSamplingJob(repository, mock_serp_client)

        summary = await job.run(brand.id)

        assert summary.total_samples == 1
        assert summary.samples_collected == 0
        assert summary.results[0].error == "timeout"
        assert repository.list_serp_samples(brand.id) == []

    @pytest.mark.asyncio
    async def test_only_active_prompts(self, repository, mock_serp_client, serp, brand, prompt):
        repository.create_prompt(brand.id, text="paused", status="paused")
        mock_serp_client.search_google.return_value = serp

        summary = await SerpSamplingJob(repository, mock_serp_client).run(brand.id)

        assert [r.prompt_id for r in summary.results] == [prompt.id]

    @pytest.mark.asyncio
    async def test_serpapi_gets_brand_and_device(self, repository, sample_serpapi_payload, brand, prompt):
        """Test SerpAPI searches carry the device and brand for AI Overview checks."""
        client = MagicMock(spec=SerpAPIClient)
        parser = SerpAPIClient(api_key="k")
        client.search_google = AsyncMock(
            return_value=parser.parse_search_response(prompt.text, sample_serpapi_payload, brand_name="Acme")
        )
        job = SerpSamplingJob(repository, client)

        summary = await job.run(brand.id, SerpSamplingOptions(device=Device.MOBILE, location="Germany"))

        kwargs = client.search_google.call_args.kwargs
        assert kwargs["device"] == Device.MOBILE
        assert kwargs["brand_name"] == "Acme"
        assert kwargs["location"] == "Germany"
        assert summary.results[0].brand_position == 1
        assert summary.results[0].ai_overview_brand_mentioned is True

    @pytest.mark.asyncio
    async def test_no_prompts(self, repository, mock_serp_client, brand):
        summary = await SerpSamplingJob(repository, mock_serp_client).run(brand.id)

        assert summary.total_samples == 0
        mock_serp_client.search_google.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_configured(self, repository, brand):
        with pytest.raises(SerpNotConfiguredError):
            await SerpSamplingJob(repository, None).run(brand.id)

    @pytest.mark.asyncio
    async def test_prompt_of_other_brand(self, repository, mock_serp_client, brand, make_user):
        other_user = make_user(email="other@globex.com")
        other_brand = repository.create_brand(user_id=other_user.id, name="Globex", domain="globex.com")
        other_prompt = repository.create_prompt(other_brand.id, text="crm?")

        with pytest.raises(PromptNotFoundError):
            await SerpSamplingJob(repository, mock_serp_client).run(
                brand.id, SerpSamplingOptions(prompt_id=other_prompt.id)
            )

    @pytest.mark.asyncio
    async def test_unknown_brand(self, repository, mock_serp_client):
        with pytest.raises(BrandNotFoundError):
            await SerpSamplingJob(repository, mock_serp_client).run("missing")


class TestVisibilityScoringJob:
    def test_empty_period(self, repository, brand):
        """Test a brand without answers still gets a stored score."""
        metrics = VisibilityScoringJob(repository).run(brand.id, "day")

        assert metrics.period == ScorePeriod.DAY
        assert metrics.total_prompts == 0
        assert metrics.overall_score == 10
        assert repository.get_latest_visibility_score(brand.id, "day").overall_score == 10

    @pytest.mark.asyncio
    async def test_trend_against_previous(self, repository, mock_llm_client, brand, prompt):
        """Test a rise from the previous stored score is reported as up."""
        job = VisibilityScoringJob(repository)
        job.run(brand.id, ScorePeriod.WEEK)

        await LLMSamplingJob(repository, mock_llm_client, scoring_job=MagicMock()).run(prompt.id)
        metrics = job.run(brand.id, ScorePeriod.WEEK)

        assert metrics.trend == ScoreTrend.UP
        assert metrics.total_prompts == 3

    def test_window_excludes_old_answers(self, repository, brand, prompt):
        repository.save_llm_answer(
            prompt_id=prompt.id,
            brand_id=brand.id,
            llm_provider="openai",
            llm_model="gpt-4o-mini",
            raw_response="Acme",
            response_hash="h",
            created_at=datetime.utcnow() - timedelta(days=3),
        )

        assert VisibilityScoringJob(repository).run(brand.id, "day").total_prompts == 0
        assert VisibilityScoringJob(repository).run(brand.id, "week").total_prompts == 1

    def test_unknown_brand(self, repository):
        with pytest.raises(BrandNotFoundError):
            VisibilityScoringJob(repository).run("missing")
