"""Visibility scoring job: aggregate a brand's recent answers into a score."""

import logging
from datetime import datetime, timedelta

from geoscore.calculators.visibility import VisibilityScoreCalculator
from geoscore.db.repository import Repository
from geoscore.models.analysis import ScorePeriod, VisibilityMetrics
from geoscore.pipeline.errors import BrandNotFoundError

logger = logging.getLogger(__name__)


class VisibilityScoringJob:
    """Scores a brand over a day, week or month and stores the result."""

    def __init__(
        self,
        repository: Repository,
        calculator: VisibilityScoreCalculator | None = None,
    ):
        self.repository = repository
        self.calculator = calculator or VisibilityScoreCalculator()

    def run(
        self,
        brand_id: str,
        period: ScorePeriod | str = ScorePeriod.WEEK,
        now: datetime | None = None,
    ) -> VisibilityMetrics:
        period = ScorePeriod(period)
        brand = self.repository.get_brand(brand_id)
        if brand is None:
            raise BrandNotFoundError(f"Brand {brand_id} not found")

        logger.info(f"Scoring visibility for brand {brand.name} ({period.value})")

        period_end = now or datetime.utcnow()
        period_start = period_end - timedelta(days=period.days)

        answers = self.repository.get_answers_in_period(brand_id, period_start, period_end)
        answer_ids = [answer.id for answer in answers]
        mentions = self.repository.get_mentions_for_answers(answer_ids)
        citations = self.repository.get_citations_for_answers(answer_ids)

        previous = self.repository.get_latest_visibility_score(brand_id, period.value)

        metrics = self.calculator.calculate(
            period=period,
            period_start=period_start,
            period_end=period_end,
            answers=answers,
            mentions=mentions,
            citations=citations,
            previous_score=previous.overall_score if previous else None,
        )

        self.repository.save_visibility_score(brand_id, metrics)
        logger.info(
            f"Visibility for brand {brand.name}: {metrics.overall_score} "
            f"({metrics.trend.value}, {metrics.total_mentions} mentions in {metrics.total_prompts} answers)"
        )
        return metrics
