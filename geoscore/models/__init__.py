"""Data models for Geoscore."""

from geoscore.models.analysis import (
    CitationMatch,
    DriftAnalysis,
    EntityType,
    MentionMatch,
    ScorePeriod,
    ScoreTrend,
    Sentiment,
    VisibilityMetrics,
)
from geoscore.models.llm import (
    LLMMessage,
    LLMOptions,
    LLMProviderName,
    LLMResponse,
    LLMUsage,
)
from geoscore.models.serp import (
    AIOverview,
    FeaturedSnippet,
    PeopleAlsoAsk,
    SERPResponse,
    SERPResult,
)

__all__ = [
    "AIOverview",
    "CitationMatch",
    "DriftAnalysis",
    "EntityType",
    "FeaturedSnippet",
    "LLMMessage",
    "LLMOptions",
    "LLMProviderName",
    "LLMResponse",
    "LLMUsage",
    "MentionMatch",
    "PeopleAlsoAsk",
    "SERPResponse",
    "SERPResult",
    "ScorePeriod",
    "ScoreTrend",
    "Sentiment",
    "VisibilityMetrics",
]
