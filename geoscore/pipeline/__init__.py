"""Sampling and scoring jobs."""

from geoscore.pipeline.errors import (
    BrandNotFoundError,
    JobInputError,
    PromptNotFoundError,
    SerpNotConfiguredError,
)
from geoscore.pipeline.jobs import JobRecord, JobRegistry, JobState, JobType
from geoscore.pipeline.llm_sampling import LLMSamplingJob, SamplingResult
from geoscore.pipeline.serp_sampling import SerpSamplingJob, SerpSamplingOptions, SerpSamplingSummary
from geoscore.pipeline.visibility_scoring import VisibilityScoringJob

__all__ = [
    "BrandNotFoundError",
    "JobInputError",
    "JobRecord",
    "JobRegistry",
    "JobState",
    "JobType",
    "LLMSamplingJob",
    "PromptNotFoundError",
    "SamplingResult",
    "SerpNotConfiguredError",
    "SerpSamplingJob",
    "SerpSamplingOptions",
    "SerpSamplingSummary",
    "VisibilityScoringJob",
]
