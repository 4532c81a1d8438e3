"""Database layer for Geoscore."""

from geoscore.db.models import (
    AnswerCitation,
    AnswerMention,
    Base,
    Brand,
    Competitor,
    LlmAnswer,
    LoginAttempt,
    Prompt,
    PromptRun,
    SecurityEvent,
    SerpSample,
    Topic,
    User,
    UserSession,
    VisibilityScore,
)
from geoscore.db.repository import Repository

__all__ = [
    "AnswerCitation",
    "AnswerMention",
    "Base",
    "Brand",
    "Competitor",
    "LlmAnswer",
    "LoginAttempt",
    "Prompt",
    "PromptRun",
    "SecurityEvent",
    "SerpSample",
    "Topic",
    "User",
    "UserSession",
    "VisibilityScore",
    "Repository",
]
