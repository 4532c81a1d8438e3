"""Unit tests for the visibility score calculator."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from geoscore.calculators.visibility import VisibilityScoreCalculator
from geoscore.models.analysis import EntityType, ScorePeriod, ScoreTrend, Sentiment

END = datetime(2026, 3, 8, tzinfo=timezone.utc)
START = END - timedelta(days=7)


def answer(answer_id: str, provider: str) -> SimpleNamespace:
    return SimpleNamespace(id=answer_id, llm_provider=provider)


def mention(answer_id: str, position: int, sentiment="neutral", entity_type="brand") -> SimpleNamespace:
    return SimpleNamespace(
        llm_answer_id=answer_id,
        entity_type=entity_type,
        position=position,
        sentiment=sentiment,
    )


def citation(answer_id: str) -> SimpleNamespace:
    return SimpleNamespace(llm_answer_id=answer_id)


@pytest.fixture
def calculator():
    return VisibilityScoreCalculator()


@pytest.fixture
def week_of_answers():
    """Four answers across two providers; the brand appears in two."""
    answers = [
        answer("a1", "openai"),
        answer("a2", "openai"),
        answer("a3", "anthropic"),
        answer("a4", "anthropic"),
    ]
    mentions = [
        mention("a1", 1, Sentiment.POSITIVE, EntityType.BRAND),
        mention("a2", 1, "negative", "competitor"),
        mention("a3", 3, "neutral", "brand"),
    ]
    citations = [citation("a1"), citation("a1"), citation("a4")]
    return answers, mentions, citations


class TestVisibilityScoreCalculator:
    """Tests for VisibilityScoreCalculator."""

    def test_calculate_basic(self, calculator, week_of_answers):
        """Test each metric on a mixed week."""
        answers, mentions, citations = week_of_answers

        metrics = calculator.calculate(ScorePeriod.WEEK, START, END, answers, mentions, citations)

        assert metrics.total_prompts == 4
        assert metrics.total_mentions == 2
        assert metrics.mention_rate == pytest.approx(50.0)
        assert metrics.avg_position == pytest.approx(2.0)
        assert metrics.sentiment_score == pytest.approx(50.0)
        assert metrics.citation_count == 2
        # 50*0.4 + 80*0.3 + 75*0.2 + 10*0.1
        assert metrics.overall_score == 60
        assert metrics.trend == ScoreTrend.STABLE

    def test_distributions(self, calculator, week_of_answers):
        """Test position and sentiment buckets count brand mentions only."""
        answers, mentions, citations = week_of_answers

        metrics = calculator.calculate(ScorePeriod.WEEK, START, END, answers, mentions, citations)

        assert metrics.position_distribution.first == 1
        assert metrics.position_distribution.top_three == 2
        assert metrics.position_distribution.top_five == 2
        assert metrics.position_distribution.other == 0
        assert metrics.sentiment_distribution.positive == 1
        assert metrics.sentiment_distribution.neutral == 1
        assert metrics.sentiment_distribution.negative == 0

    def test_provider_breakdown(self, calculator, week_of_answers):
        """Test per-provider mention rates and positions."""
        answers, mentions, citations = week_of_answers

        breakdown = calculator.calculate(
            ScorePeriod.WEEK, START, END, answers, mentions, citations
        ).provider_breakdown

        assert set(breakdown) == {"openai", "anthropic"}
        assert breakdown["openai"].total_answers == 2
        assert breakdown["openai"].mention_rate == pytest.approx(50.0)
        assert breakdown["openai"].avg_position == pytest.approx(1.0)
        assert breakdown["anthropic"].avg_position == pytest.approx(3.0)

    def test_mentions_outside_answers_ignored(self, calculator):
        """Test mentions of answers outside the window do not count."""
        metrics = calculator.calculate(
            ScorePeriod.DAY,
            START,
            END,
            [answer("a1", "openai")],
            [mention("old", 1, "positive")],
            [],
        )

        assert metrics.total_mentions == 0
        assert metrics.mention_rate == 0.0

    def test_no_answers(self, calculator):
        """Test an empty window scores only the neutral sentiment component."""
        metrics = calculator.calculate(ScorePeriod.MONTH, START, END, [], [], [])

        assert metrics.total_prompts == 0
        assert metrics.avg_position == 0.0
        assert metrics.overall_score == 10
        assert metrics.provider_breakdown == {}

    def test_trend_against_previous_score(self, calculator, week_of_answers):
        """Test the trend is derived from the previous stored score."""
        answers, mentions, citations = week_of_answers

        metrics = calculator.calculate(
            ScorePeriod.WEEK, START, END, answers, mentions, citations, previous_score=40
        )

        assert metrics.trend == ScoreTrend.UP


class TestOverallScore:
    def test_perfect(self, calculator):
        assert calculator.overall_score(100, 1, 100, 10) == 97

    def test_clamped_at_zero(self, calculator):
        """Test a very late position cannot push the score negative."""
        assert calculator.overall_score(0, 50, -100, 0) == 0

    def test_citations_capped(self, calculator):
        """Test citation credit saturates at ten per mention."""
        assert calculator.overall_score(0, None, -100, 10) == calculator.overall_score(0, None, -100, 50)


class TestDetermineTrend:
    @pytest.mark.parametrize(
        "current,previous,expected",
        [
            (60, None, ScoreTrend.STABLE),
            (60, 54, ScoreTrend.UP),
            (60, 55, ScoreTrend.STABLE),
            (60, 66, ScoreTrend.DOWN),
            (60, 65, ScoreTrend.STABLE),
        ],
    )
    def test_threshold(self, calculator, current, previous, expected):
        assert calculator.determine_trend(current, previous) == expected
