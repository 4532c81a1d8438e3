"""In-process tracking of background jobs started from the API."""

import inspect
import logging
import uuid
from collections import OrderedDict
from datetime import datetime
from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class JobType(str, Enum):
    LLM_SAMPLING = "llm_sampling"
    SERP_SAMPLING = "serp_sampling"
    VISIBILITY_SCORING = "visibility_scoring"


class JobState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class JobRecord(BaseModel):
    id: str
    type: JobType
    status: JobState = JobState.PENDING
    params: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    error: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None


class JobRegistry:
    """
    Job status store backing ``GET /api/jobs/{id}``.

    State lives in process memory and is lost on restart. Only the newest
    ``max_jobs`` records are kept.
    """

    def __init__(self, max_jobs: int = 1000):
        self.max_jobs = max_jobs
        self._jobs: OrderedDict[str, JobRecord] = OrderedDict()

    def create(self, job_type: JobType, **params: Any) -> JobRecord:
        job = JobRecord(id=str(uuid.uuid4()), type=job_type, params=params)
        self._jobs[job.id] = job
        while len(self._jobs) > self.max_jobs:
            self._jobs.popitem(last=False)
        return job

    def get(self, job_id: str) -> JobRecord | None:
        return self._jobs.get(job_id)

    def list(self, job_type: JobType | None = None) -> list[JobRecord]:
        jobs = list(self._jobs.values())
        if job_type:
            jobs = [j for j in jobs if j.type == job_type]
        return jobs

    async def run(self, job_id: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        """
        Execute ``func`` for a registered job and record the outcome.

        ``func`` may be sync or async. Exceptions mark the job failed and are
        not re-raised, since nothing awaits a background task.
        """
        job = self._jobs.get(job_id)
        if job is None:
            logger.error(f"Unknown job {job_id}")
            return

        job.status = JobState.RUNNING
        job.started_at = datetime.utcnow()
        logger.info(f"Job {job.id} ({job.type.value}) started")

        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.exception(f"Job {job.id} ({job.type.value}) failed: {e}")
            job.status = JobState.FAILED
            job.error = str(e)
        else:
            job.status = JobState.COMPLETED
            job.result = result.model_dump(mode="json") if isinstance(result, BaseModel) else result
            logger.info(f"Job {job.id} ({job.type.value}) completed")
        finally:
            job.completed_at = datetime.utcnow()
