"""Pydantic models shared by all LLM providers."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class LLMProviderName(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    PERPLEXITY = "perplexity"
    GROK = "grok"
    DEEPSEEK = "deepseek"
    OPENROUTER = "openrouter"


class LLMMessage(BaseModel):
    """A chat message."""

    role: Literal["system", "user", "assistant"]
    content: str


class LLMOptions(BaseModel):
    """Generation options; unset values fall back to provider defaults."""

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, gt=0)
    top_p: float = Field(default=1.0, ge=0.0, le=1.0)
    model: str | None = None


class LLMUsage(BaseModel):
    """Token accounting for one completion."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResponse(BaseModel):
    """Normalized completion returned by every provider."""

    content: str
    model: str
    provider: str
    usage: LLMUsage = Field(default_factory=LLMUsage)
    cost: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class ModelPricing(BaseModel):
    """USD price per one million tokens."""

    input: float
    output: float
