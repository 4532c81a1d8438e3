"""Visibility score calculator for brand presence in LLM answers."""

import logging
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any, Sequence

from geoscore.models.analysis import (
    EntityType,
    PositionDistribution,
    ProviderBreakdown,
    ScorePeriod,
    ScoreTrend,
    Sentiment,
    SentimentDistribution,
    VisibilityMetrics,
)

logger = logging.getLogger(__name__)


class VisibilityScoreCalculator:
    """
    Aggregates answers, mentions and citations into a 0-100 visibility score.

    Components:
    - Mention rate: share of answers that name the brand (40%)
    - Position: how early the brand appears, 1 is best (30%)
    - Sentiment: -100..100 rescaled to 0..100 (20%)
    - Citations: average citations per mention, 10 or more is full marks (10%)

    Inputs are duck-typed rows: answers need ``id`` and ``llm_provider``;
    mentions need ``llm_answer_id``, ``entity_type``, ``position`` and
    ``sentiment``; citations need ``llm_answer_id``.
    """

    MENTION_WEIGHT = 0.4
    POSITION_WEIGHT = 0.3
    SENTIMENT_WEIGHT = 0.2
    CITATION_WEIGHT = 0.1

    # Positions at or beyond this rank contribute nothing
    POSITION_SCALE = 10
    CITATIONS_FOR_FULL_MARKS = 10

    # Score change needed to call a trend
    TREND_THRESHOLD = 5

    def calculate(
        self,
        period: ScorePeriod,
        period_start: datetime,
        period_end: datetime,
        answers: Sequence[Any],
        mentions: Sequence[Any],
        citations: Sequence[Any],
        previous_score: int | None = None,
    ) -> VisibilityMetrics:
        """
        Calculate visibility metrics for one brand and period.

        Args:
            period: Aggregation window
            period_start: Start of the window
            period_end: End of the window
            answers: LLM answers created in the window
            mentions: Mentions extracted from those answers (any entity type)
            citations: Citations extracted from those answers
            previous_score: Latest stored overall score for the same period

        Returns:
            VisibilityMetrics ready to persist
        """
        answer_ids = {answer.id for answer in answers}
        brand_mentions = [
            m
            for m in mentions
            if _value(m.entity_type) == EntityType.BRAND.value and m.llm_answer_id in answer_ids
        ]

        total_prompts = len(answers)
        mentioned_answers = {m.llm_answer_id for m in brand_mentions}
        mention_rate = len(mentioned_answers) / total_prompts * 100 if total_prompts else 0.0

        positions = [m.position for m in brand_mentions if m.position is not None]
        avg_position = sum(positions) / len(positions) if positions else 0.0

        sentiment_counts = Counter(_value(m.sentiment) for m in brand_mentions)
        sentiment_distribution = SentimentDistribution(
            positive=sentiment_counts[Sentiment.POSITIVE.value],
            neutral=sentiment_counts[Sentiment.NEUTRAL.value],
            negative=sentiment_counts[Sentiment.NEGATIVE.value],
        )
        sentiment_score = (
            (sentiment_distribution.positive - sentiment_distribution.negative)
            / len(brand_mentions)
            * 100
            if brand_mentions
            else 0.0
        )

        citations_per_answer = Counter(c.llm_answer_id for c in citations)
        total_citations = sum(citations_per_answer[m.llm_answer_id] for m in brand_mentions)
        avg_citations = total_citations / len(brand_mentions) if brand_mentions else 0.0

        overall = self.overall_score(
            mention_rate=mention_rate,
            avg_position=avg_position if brand_mentions else None,
            sentiment_score=sentiment_score,
            avg_citations=avg_citations,
        )

        return VisibilityMetrics(
            period=period,
            period_start=period_start,
            period_end=period_end,
            overall_score=overall,
            mention_rate=mention_rate,
            avg_position=avg_position,
            sentiment_score=sentiment_score,
            trend=self.determine_trend(overall, previous_score),
            total_prompts=total_prompts,
            total_mentions=len(brand_mentions),
            citation_count=total_citations,
            position_distribution=self._position_distribution(positions),
            sentiment_distribution=sentiment_distribution,
            provider_breakdown=self._provider_breakdown(answers, brand_mentions),
        )

    def overall_score(
        self,
        mention_rate: float,
        avg_position: float | None,
        sentiment_score: float,
        avg_citations: float,
    ) -> int:
        """Weighted 0-100 score. ``avg_position=None`` means no mentions."""
        position_component = 0.0
        if avg_position is not None:
            position_component = (1 - avg_position / self.POSITION_SCALE) * 100

        score = (
            mention_rate * self.MENTION_WEIGHT
            + position_component * self.POSITION_WEIGHT
            + (sentiment_score + 100) / 2 * self.SENTIMENT_WEIGHT
            + min(avg_citations * self.CITATIONS_FOR_FULL_MARKS, 100) * self.CITATION_WEIGHT
        )
        return max(0, min(100, round(score)))

    def determine_trend(self, current: int, previous: int | None) -> ScoreTrend:
        if previous is None:
            return ScoreTrend.STABLE
        diff = current - previous
        if diff > self.TREND_THRESHOLD:
            return ScoreTrend.UP
        if diff < -self.TREND_THRESHOLD:
            return ScoreTrend.DOWN
        return ScoreTrend.STABLE

    @staticmethod
    def _position_distribution(positions: list[int]) -> PositionDistribution:
        return PositionDistribution(
            first=sum(1 for p in positions if p == 1),
            top_three=sum(1 for p in positions if p <= 3),
            top_five=sum(1 for p in positions if p <= 5),
            other=sum(1 for p in positions if p > 5),
        )

    @staticmethod
    def _provider_breakdown(
        answers: Sequence[Any], brand_mentions: Sequence[Any]
    ) -> dict[str, ProviderBreakdown]:
        answers_by_provider: dict[str, set[str]] = defaultdict(set)
        for answer in answers:
            answers_by_provider[answer.llm_provider].add(answer.id)

        breakdown = {}
        for provider, ids in answers_by_provider.items():
            provider_mentions = [m for m in brand_mentions if m.llm_answer_id in ids]
            positions = [m.position or 0 for m in provider_mentions]
            breakdown[provider] = ProviderBreakdown(
                total_answers=len(ids),
                mentions=len(provider_mentions),
                mention_rate=len(provider_mentions) / len(ids) * 100,
                avg_position=sum(positions) / len(positions) if positions else 0.0,
            )
        return breakdown


def _value(field: Any) -> Any:
    """Enum value or the raw string stored in the database."""
    return getattr(field, "value", field)
