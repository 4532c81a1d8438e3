"""Pydantic models for answer analysis and visibility scoring."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Sentiment(str, Enum):
    """Sentiment of a mention's surrounding text."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class EntityType(str, Enum):
    """Kind of entity detected in an answer."""

    BRAND = "brand"
    COMPETITOR = "competitor"


class ScorePeriod(str, Enum):
    """Aggregation window for visibility scores."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def days(self) -> int:
        return {"day": 1, "week": 7, "month": 30}[self.value]


class ScoreTrend(str, Enum):
    """Direction of a visibility score against the previous one."""

    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class DriftSignificance(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MentionMatch(BaseModel):
    """An entity found in an LLM answer."""

    entity_type: EntityType
    entity_name: str
    competitor_id: str | None = None
    offset: int = Field(description="Character offset of the first occurrence")
    position: int = Field(description="1-based rank among entities in the answer")
    context: str
    sentiment: Sentiment = Sentiment.NEUTRAL


class CitationMatch(BaseModel):
    """A URL cited inline in an LLM answer."""

    url: str
    domain: str
    position: int
    citation_type: str = "inline"


class DriftChanges(BaseModel):
    mentions_added: list[str] = Field(default_factory=list)
    mentions_removed: list[str] = Field(default_factory=list)
    sentiment_changed: bool = False
    positioning_changed: bool = False
    content_similarity: int = 100


class DriftAnalysis(BaseModel):
    """Comparison of two answers to the same prompt."""

    has_drift: bool = False
    drift_score: int = 0
    changes: DriftChanges = Field(default_factory=DriftChanges)
    significance: DriftSignificance = DriftSignificance.LOW
    alerts: list[str] = Field(default_factory=list)


class AnswerSnapshot(BaseModel):
    """The parts of a stored answer needed for drift comparison."""

    hash: str
    content: str
    timestamp: datetime | None = None


class PositionDistribution(BaseModel):
    first: int = 0
    top_three: int = 0
    top_five: int = 0
    other: int = 0


class SentimentDistribution(BaseModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class ProviderBreakdown(BaseModel):
    total_answers: int
    mentions: int
    mention_rate: float
    avg_position: float


class VisibilityMetrics(BaseModel):
    """Aggregated visibility of a brand over one period."""

    period: ScorePeriod
    period_start: datetime
    period_end: datetime
    overall_score: int = 0
    mention_rate: float = 0.0
    avg_position: float = 0.0
    sentiment_score: float = 0.0
    trend: ScoreTrend = ScoreTrend.STABLE
    total_prompts: int = 0
    total_mentions: int = 0
    citation_count: int = 0
    position_distribution: PositionDistribution = Field(default_factory=PositionDistribution)
    sentiment_distribution: SentimentDistribution = Field(default_factory=SentimentDistribution)
    provider_breakdown: dict[str, ProviderBreakdown] = Field(default_factory=dict)

    def to_record(self) -> dict[str, Any]:
        """Flatten to column values for persistence."""
        data = self.model_dump(mode="json")
        data["period"] = self.period.value
        data["trend"] = self.trend.value
        data["period_start"] = self.period_start
        data["period_end"] = self.period_end
        return data
