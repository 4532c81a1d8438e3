"""Request and response models for the HTTP API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from geoscore.models.analysis import ScorePeriod
from geoscore.models.llm import LLMProviderName


# Auth

class SignupRequest(BaseModel):
    first_name: str = Field(..., min_length=1, alias="firstName")
    last_name: str = Field(..., min_length=1, alias="lastName")
    email: EmailStr
    phone: str = Field(
        ...,
        min_length=10,
        pattern=r"^\+\d{1,4}\d{6,14}$",
        description="Phone number including country code, e.g. +1234567890",
    )
    password: str = Field(..., min_length=8)

    model_config = ConfigDict(populate_by_name=True)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


class EmailOnlyRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)
    new_password: str = Field(..., min_length=8, alias="newPassword")

    model_config = ConfigDict(populate_by_name=True)


class UserOut(BaseModel):
    """Public view of a user returned in the ``user`` envelope."""

    id: str
    email: str
    first_name: str | None = Field(default=None, serialization_alias="firstName")
    last_name: str | None = Field(default=None, serialization_alias="lastName")
    is_admin: bool = Field(default=False, serialization_alias="isAdmin")
    onboarding_completed: bool = Field(default=False, serialization_alias="onboardingCompleted")
    onboarding_step: int = Field(default=1, serialization_alias="onboardingStep")
    profile_image_url: str | None = Field(default=None, serialization_alias="profileImageUrl")

    model_config = ConfigDict(from_attributes=True)


# Brands

class BrandCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    domain: str = Field(..., min_length=3, max_length=255)
    industry: str | None = None
    description: str | None = None
    tier: str = Field(default="free", pattern="^(free|starter|growth|enterprise)$")
    brand_variations: list[str] = Field(default_factory=list)
    core_topics: list[str] = Field(default_factory=list)
    primary_language: str = "en"


class BrandUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    industry: str | None = None
    description: str | None = None
    tier: str | None = Field(default=None, pattern="^(free|starter|growth|enterprise)$")
    brand_variations: list[str] | None = None
    core_topics: list[str] | None = None
    analysis_enabled: bool | None = None
    status: str | None = Field(default=None, pattern="^(active|suspended|trial)$")


class BrandOut(BaseModel):
    id: str
    user_id: str | None = None
    name: str
    domain: str
    industry: str | None = None
    description: str | None = None
    tier: str
    brand_variations: list[str] | None = None
    core_topics: list[str] | None = None
    primary_language: str | None = None
    visibility_score: float | None = None
    last_analysis: datetime | None = None
    analysis_enabled: bool = True
    status: str
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CompetitorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    domain: str = Field(..., min_length=3, max_length=255)
    is_tracked: bool = True


class CompetitorOut(BaseModel):
    id: str
    brand_id: str
    name: str
    domain: str
    is_tracked: bool
    visibility_score: float | None = None
    mentions: int | None = None

    model_config = ConfigDict(from_attributes=True)


class TopicCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    category: str | None = None
    importance: str | None = Field(default=None, pattern="^(High|Medium|Low)$")


class TopicOut(BaseModel):
    id: str
    brand_id: str
    name: str
    category: str | None = None
    importance: str | None = None
    prompt_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class PromptCreate(BaseModel):
    text: str = Field(..., min_length=3, max_length=2000)
    category: str | None = None
    topic_id: str | None = None


class PromptUpdate(BaseModel):
    text: str | None = Field(default=None, min_length=3, max_length=2000)
    category: str | None = None
    topic_id: str | None = None
    status: str | None = Field(default=None, pattern="^(active|paused|archived)$")


class PromptOut(BaseModel):
    id: str
    brand_id: str
    topic_id: str | None = None
    text: str
    category: str | None = None
    status: str
    run_count: int = 0
    last_checked: datetime | None = None
    visibility_pct: float | None = None
    avg_rank: float | None = None
    is_brand_present: bool = False

    model_config = ConfigDict(from_attributes=True)


# Jobs

class SampleRequest(BaseModel):
    providers: list[LLMProviderName] = Field(
        default_factory=lambda: [
            LLMProviderName.OPENAI,
            LLMProviderName.ANTHROPIC,
            LLMProviderName.GOOGLE,
        ]
    )
    model: str | None = None
    force: bool = False


class VisibilityAnalysisRequest(BaseModel):
    period: ScorePeriod = ScorePeriod.WEEK


class SerpAnalysisRequest(BaseModel):
    prompt_id: str | None = None
    location: str | None = None
    device: str = Field(default="desktop", pattern="^(desktop|mobile)$")


class SerpSearchRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)
    location: str | None = None
    limit: int = Field(default=10, ge=1, le=100)


class JobAccepted(BaseModel):
    job_id: str
    status: str
    message: str

