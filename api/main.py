"""FastAPI application for Geoscore brand visibility tracking."""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Any

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from geoscore.auth.dependencies import (
    ensure_brand_access,
    get_integrations_dependency,
    get_job_registry,
    get_owned_brand,
    get_repository,
    require_admin,
    require_auth,
)
from geoscore.auth.routes import google_redirect, router as auth_router, user_payload
from geoscore.clients.base import APIError
from geoscore.config import Settings, get_settings
from geoscore.db.models import Brand, Prompt, User
from geoscore.db.repository import Repository
from geoscore.integrations import Integrations
from geoscore.middleware.rate_limit import job_rate_limit
from geoscore.models.schemas import (
    BrandCreate,
    BrandOut,
    BrandUpdate,
    CompetitorCreate,
    CompetitorOut,
    JobAccepted,
    PromptCreate,
    PromptOut,
    PromptUpdate,
    SampleRequest,
    SerpAnalysisRequest,
    SerpSearchRequest,
    TopicCreate,
    TopicOut,
    VisibilityAnalysisRequest,
)
from geoscore.models.serp import Device, normalize_domain
from geoscore.pipeline.jobs import JobRecord, JobRegistry, JobType
from geoscore.pipeline.llm_sampling import LLMSamplingJob
from geoscore.pipeline.serp_sampling import SerpSamplingJob, SerpSamplingOptions
from geoscore.pipeline.visibility_scoring import VisibilityScoringJob
from geoscore.utils.logging import log_audit, setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    logger.info(f"Geoscore API starting ({settings.environment})")
    yield
    await get_integrations_dependency().close()


app = FastAPI(
    title="Geoscore - Brand Visibility API",
    description="Tracks how brands appear in AI assistant answers and Google search results",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)


# Error handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    content = {
        "error": str(exc),
        "type": type(exc).__name__,
        "path": str(request.url.path),
    }
    if not get_settings().is_production:
        content["traceback"] = traceback.format_exc()
    return JSONResponse(status_code=500, content=content)


# Helpers
def _owned_prompt(prompt_id: str, user: User, repository: Repository) -> Prompt:
    prompt = repository.get_prompt(prompt_id)
    if prompt is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    ensure_brand_access(repository.get_brand(prompt.brand_id), user)
    return prompt


def _rows(rows: list[Any]) -> list[dict[str, Any]]:
    return [row.to_dict() for row in rows]


def _accepted(job: JobRecord, message: str) -> JSONResponse:
    body = JobAccepted(job_id=job.id, status=job.status.value, message=message)
    return JSONResponse(status_code=202, content=body.model_dump())


# Health and meta
@app.get("/api/health")
async def health_check(repository: Repository = Depends(get_repository)):
    """Health check endpoint."""
    try:
        stats = repository.get_statistics()
        return {"status": "healthy", "database": stats}
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": {"error": str(e)}},
        )


@app.get("/api/integrations")
async def list_integrations(
    user: User = Depends(require_auth),
    integrations: Integrations = Depends(get_integrations_dependency),
):
    return integrations.describe()


@app.get("/api/login")
async def login_redirect(settings: Settings = Depends(get_settings)):
    return google_redirect(settings)


@app.get("/api/admin/users")
async def admin_list_users(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    admin: User = Depends(require_admin),
    repository: Repository = Depends(get_repository),
):
    users = repository.list_users(limit=limit, offset=offset)
    return {"users": [user_payload(u)["user"] for u in users], "count": len(users)}


# Brands
@app.get("/api/brands", response_model=list[BrandOut])
async def list_brands(
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
):
    return repository.list_brands(user_id=None if user.is_admin else user.id)


@app.post("/api/brands", response_model=BrandOut, status_code=201)
async def create_brand(
    body: BrandCreate,
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
):
    domain = normalize_domain(body.domain)
    if repository.get_brand_by_domain(domain):
        raise HTTPException(status_code=409, detail="A brand with this domain already exists")

    brand = repository.create_brand(user_id=user.id, **body.model_dump(exclude={"domain"}), domain=domain)
    log_audit("brand_created", user.id, brand_id=brand.id, domain=domain)
    return brand


@app.get("/api/brands/{brand_id}", response_model=BrandOut)
async def get_brand(brand: Brand = Depends(get_owned_brand)):
    return brand


@app.patch("/api/brands/{brand_id}", response_model=BrandOut)
async def update_brand(
    body: BrandUpdate,
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return repository.update_brand(brand.id, **body.model_dump(exclude_unset=True))


@app.delete("/api/brands/{brand_id}")
async def delete_brand(
    brand: Brand = Depends(get_owned_brand),
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
):
    repository.delete_brand(brand.id)
    log_audit("brand_deleted", user.id, brand_id=brand.id)
    return {"message": "Brand deleted", "id": brand.id}


# Competitors
@app.get("/api/brands/{brand_id}/competitors", response_model=list[CompetitorOut])
async def list_competitors(
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return repository.list_competitors(brand.id)


@app.post("/api/brands/{brand_id}/competitors", response_model=CompetitorOut, status_code=201)
async def create_competitor(
    body: CompetitorCreate,
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return repository.create_competitor(
        brand.id,
        name=body.name,
        domain=normalize_domain(body.domain),
        is_tracked=body.is_tracked,
    )


@app.delete("/api/brands/{brand_id}/competitors/{competitor_id}")
async def delete_competitor(
    competitor_id: str,
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    competitor = repository.get_competitor(competitor_id)
    if competitor is None or competitor.brand_id != brand.id:
        raise HTTPException(status_code=404, detail="Competitor not found")
    repository.delete_competitor(competitor.id)
    return {"message": "Competitor deleted", "id": competitor.id}


# Topics
@app.get("/api/brands/{brand_id}/topics", response_model=list[TopicOut])
async def list_topics(
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return repository.list_topics(brand.id)


@app.post("/api/brands/{brand_id}/topics", response_model=TopicOut, status_code=201)
async def create_topic(
    body: TopicCreate,
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return repository.create_topic(brand.id, **body.model_dump())


@app.delete("/api/topics/{topic_id}")
async def delete_topic(
    topic_id: str,
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
):
    topic = repository.get_topic(topic_id)
    if topic is None:
        raise HTTPException(status_code=404, detail="Topic not found")
    ensure_brand_access(repository.get_brand(topic.brand_id), user)
    repository.delete_topic(topic.id)
    return {"message": "Topic deleted", "id": topic.id}


# Prompts
@app.get("/api/brands/{brand_id}/prompts", response_model=list[PromptOut])
async def list_prompts(
    status: str | None = Query(default=None, pattern="^(active|paused|archived)$"),
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return repository.list_prompts(brand.id, status=status)


@app.post("/api/brands/{brand_id}/prompts", response_model=PromptOut, status_code=201)
async def create_prompt(
    body: PromptCreate,
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    if body.topic_id:
        topic = repository.get_topic(body.topic_id)
        if topic is None or topic.brand_id != brand.id:
            raise HTTPException(status_code=400, detail="Topic does not belong to this brand")
    return repository.create_prompt(brand.id, **body.model_dump())


@app.patch("/api/prompts/{prompt_id}", response_model=PromptOut)
async def update_prompt(
    prompt_id: str,
    body: PromptUpdate,
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
):
    prompt = _owned_prompt(prompt_id, user, repository)
    return repository.update_prompt(prompt.id, **body.model_dump(exclude_unset=True))


@app.delete("/api/prompts/{prompt_id}")
async def delete_prompt(
    prompt_id: str,
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
):
    prompt = _owned_prompt(prompt_id, user, repository)
    repository.delete_prompt(prompt.id)
    return {"message": "Prompt deleted", "id": prompt.id}


# Results
@app.get("/api/brands/{brand_id}/llm-answers")
async def list_llm_answers(
    limit: int = Query(default=50, ge=1, le=500),
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return _rows(repository.list_llm_answers(brand.id, limit=limit))


@app.get("/api/brands/{brand_id}/mentions")
async def list_mentions(
    limit: int = Query(default=100, ge=1, le=1000),
    entity_type: str | None = Query(default=None, pattern="^(brand|competitor)$"),
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return _rows(repository.list_mentions(brand.id, limit=limit, entity_type=entity_type))


@app.get("/api/brands/{brand_id}/prompt-runs")
async def list_prompt_runs(
    limit: int = Query(default=50, ge=1, le=500),
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return _rows(repository.list_prompt_runs(brand.id, limit=limit))


@app.get("/api/brands/{brand_id}/visibility-scores")
async def list_visibility_scores(
    period: str | None = Query(default=None, pattern="^(day|week|month)$"),
    limit: int = Query(default=30, ge=1, le=365),
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return _rows(repository.list_visibility_scores(brand.id, period=period, limit=limit))


@app.get("/api/brands/{brand_id}/visibility-scores/latest")
async def latest_visibility_score(
    period: str | None = Query(default=None, pattern="^(day|week|month)$"),
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    score = repository.get_latest_visibility_score(brand.id, period=period)
    if score is None:
        raise HTTPException(status_code=404, detail="No visibility score yet")
    return score.to_dict()


@app.get("/api/brands/{brand_id}/serp-samples")
async def list_serp_samples(
    limit: int = Query(default=50, ge=1, le=500),
    brand: Brand = Depends(get_owned_brand),
    repository: Repository = Depends(get_repository),
):
    return _rows(repository.list_serp_samples(brand.id, limit=limit))


# Jobs
@app.post("/api/prompts/{prompt_id}/sample", dependencies=[Depends(job_rate_limit)])
async def sample_prompt(
    prompt_id: str,
    background_tasks: BackgroundTasks,
    body: SampleRequest | None = None,
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
    integrations: Integrations = Depends(get_integrations_dependency),
    registry: JobRegistry = Depends(get_job_registry),
):
    """Start LLM sampling for one prompt in the background."""
    body = body or SampleRequest()
    prompt = _owned_prompt(prompt_id, user, repository)

    if not integrations.llm.available_providers():
        raise HTTPException(status_code=503, detail="No LLM providers configured")

    providers = [p.value for p in body.providers]
    job = registry.create(JobType.LLM_SAMPLING, prompt_id=prompt.id, brand_id=prompt.brand_id, providers=providers)
    sampler = LLMSamplingJob(repository, integrations.llm)
    background_tasks.add_task(
        registry.run,
        job.id,
        sampler.run,
        prompt.id,
        providers=providers,
        model=body.model,
        force=body.force,
    )
    log_audit("llm_sampling_started", user.id, prompt_id=prompt.id, job_id=job.id)
    return _accepted(job, f"Sampling started for {len(providers)} providers")


@app.post("/api/brands/{brand_id}/analyze/visibility", dependencies=[Depends(job_rate_limit)])
async def analyze_visibility(
    background_tasks: BackgroundTasks,
    body: VisibilityAnalysisRequest | None = None,
    brand: Brand = Depends(get_owned_brand),
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
    registry: JobRegistry = Depends(get_job_registry),
):
    body = body or VisibilityAnalysisRequest()
    job = registry.create(JobType.VISIBILITY_SCORING, brand_id=brand.id, period=body.period.value)
    background_tasks.add_task(registry.run, job.id, VisibilityScoringJob(repository).run, brand.id, body.period)
    log_audit("visibility_scoring_started", user.id, brand_id=brand.id, job_id=job.id)
    return _accepted(job, f"Visibility scoring started for the last {body.period.value}")


@app.post("/api/brands/{brand_id}/analyze/serp", dependencies=[Depends(job_rate_limit)])
async def analyze_serp(
    background_tasks: BackgroundTasks,
    body: SerpAnalysisRequest | None = None,
    brand: Brand = Depends(get_owned_brand),
    user: User = Depends(require_auth),
    repository: Repository = Depends(get_repository),
    integrations: Integrations = Depends(get_integrations_dependency),
    registry: JobRegistry = Depends(get_job_registry),
    settings: Settings = Depends(get_settings),
):
    body = body or SerpAnalysisRequest()
    if integrations.serp_client is None:
        raise HTTPException(status_code=503, detail="No SERP integration configured")

    if body.prompt_id:
        prompt = _owned_prompt(body.prompt_id, user, repository)
        if prompt.brand_id != brand.id:
            raise HTTPException(status_code=404, detail="Prompt not found")

    options = SerpSamplingOptions(
        prompt_id=body.prompt_id,
        location=body.location or settings.default_serp_location,
        device=Device(body.device),
    )
    job = registry.create(JobType.SERP_SAMPLING, brand_id=brand.id, **options.model_dump(mode="json"))
    sampler = SerpSamplingJob(repository, integrations.serp_client)
    background_tasks.add_task(registry.run, job.id, sampler.run, brand.id, options)
    log_audit("serp_sampling_started", user.id, brand_id=brand.id, job_id=job.id)
    return _accepted(job, "SERP sampling started")


@app.get("/api/jobs/{job_id}", response_model=JobRecord)
async def get_job_status(
    job_id: str,
    user: User = Depends(require_auth),
    registry: JobRegistry = Depends(get_job_registry),
    repository: Repository = Depends(get_repository),
):
    """Get status of a background job."""
    job = registry.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    brand_id = job.params.get("brand_id")
    if brand_id:
        ensure_brand_access(repository.get_brand(brand_id), user)
    return job


# Direct search
@app.post("/api/serp/search")
async def serp_search(
    body: SerpSearchRequest,
    user: User = Depends(require_auth),
    integrations: Integrations = Depends(get_integrations_dependency),
    settings: Settings = Depends(get_settings),
):
    """Run one Google search through DataForSEO."""
    if integrations.dataforseo is None:
        raise HTTPException(status_code=503, detail="DataForSEO is not configured")

    try:
        serp = await integrations.dataforseo.search_google(
            body.query,
            location=body.location or settings.default_serp_location,
            limit=body.limit,
        )
    except APIError as e:
        raise HTTPException(status_code=502, detail=f"SERP search failed: {e}")

    return serp.model_dump(mode="json")
