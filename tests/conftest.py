"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from geoscore.auth.email import EmailResult, EmailSender
from geoscore.auth.passwords import hash_password
from geoscore.auth.service import AuthService
from geoscore.auth.tokens import create_access_token
from geoscore.clients.llm import UnifiedLLMClient
from geoscore.config import Settings
from geoscore.db.repository import Repository
from geoscore.integrations import Integrations
from geoscore.middleware.rate_limit import auth_limiter, job_limiter
from geoscore.models.llm import LLMResponse, LLMUsage
from geoscore.pipeline.jobs import JobRegistry


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        environment="test",
        dataforseo_login="test_login",
        dataforseo_password="test_password",
        serpapi_api_key="test_serpapi_key",
        openai_api_key="sk-test-openai",
        anthropic_api_key="sk-test-anthropic",
        google_ai_api_key="test-google",
        database_url="sqlite://",
        session_secret="test-secret-key-for-signing-tokens-0123456789",
        resend_api_key="",
        frontend_url="",
    )


@pytest.fixture
def repository(settings) -> Repository:
    """In-memory database with all tables."""
    repo = Repository(database_url="sqlite://", settings=settings)
    repo.create_tables()
    yield repo
    repo.drop_tables()


@pytest.fixture
def email_sender() -> MagicMock:
    sender = MagicMock(spec=EmailSender)
    sender.send_verification_code.return_value = EmailResult(success=True, message_id="msg_1")
    sender.send_password_reset_code.return_value = EmailResult(success=True, message_id="msg_2")
    return sender


@pytest.fixture
def auth_service(repository, settings, email_sender) -> AuthService:
    return AuthService(repository, settings, email_sender)


@pytest.fixture
def make_user(repository):
    """Factory for users with a known password."""

    def _make_user(
        email: str = "owner@acme.com",
        password: str = "correct-horse-battery",
        verified: bool = True,
        is_admin: bool = False,
        **fields,
    ):
        return repository.create_user(
            email=email,
            first_name=fields.pop("first_name", "Ada"),
            last_name=fields.pop("last_name", "Lovelace"),
            password_hash=hash_password(password),
            email_verified=verified,
            is_admin=is_admin,
            **fields,
        )

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def brand(repository, user):
    return repository.create_brand(
        user_id=user.id,
        name="Acme",
        domain="acme.com",
        industry="Software",
        tier="free",
        brand_variations=["Acme Corp"],
        core_topics=["crm"],
    )


@pytest.fixture
def competitor(repository, brand):
    return repository.create_competitor(brand.id, name="Globex", domain="globex.com")


@pytest.fixture
def prompt(repository, brand):
    return repository.create_prompt(brand.id, text="What is the best CRM for small teams?")


@pytest.fixture
def llm_response() -> LLMResponse:
    """An answer naming the competitor first, then the brand, with one citation."""
    return LLMResponse(
        content=(
            "Globex is a popular choice. Acme is an excellent and great option for small teams. "
            "See https://www.acme.com/pricing."
        ),
        model="gpt-4o-mini",
        provider="openai",
        usage=LLMUsage(prompt_tokens=40, completion_tokens=60, total_tokens=100),
        cost=0.0001,
    )


@pytest.fixture
def mock_llm_client(settings, llm_response) -> UnifiedLLMClient:
    """Unified client whose providers are mocks returning ``llm_response``."""
    providers = {}
    for name in ("openai", "anthropic", "google"):
        provider = MagicMock()
        provider.chat = AsyncMock(return_value=llm_response.model_copy(update={"provider": name}))
        provider.available_models.return_value = ["test-model"]
        provider.close = AsyncMock()
        providers[name] = provider
    return UnifiedLLMClient(settings=settings, providers=providers)


@pytest.fixture
def mock_serp_client() -> MagicMock:
    client = MagicMock()
    client.search_google = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def integrations(settings, mock_llm_client, mock_serp_client) -> Integrations:
    return Integrations(settings=settings, llm=mock_llm_client, dataforseo=mock_serp_client)


@pytest.fixture
def job_registry() -> JobRegistry:
    return JobRegistry()


@pytest.fixture(autouse=True)
def reset_rate_limits():
    auth_limiter.reset()
    job_limiter.reset()
    yield
    auth_limiter.reset()
    job_limiter.reset()


@pytest.fixture
def api_client(repository, settings, integrations, job_registry, email_sender):
    """TestClient wired to the in-memory repository and mocked integrations."""
    from fastapi.testclient import TestClient

    from api.main import app
    from geoscore.auth.dependencies import (
        get_auth_service,
        get_integrations_dependency,
        get_job_registry,
        get_repository,
    )
    from geoscore.config import get_settings

    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_integrations_dependency] = lambda: integrations
    app.dependency_overrides[get_job_registry] = lambda: job_registry
    app.dependency_overrides[get_auth_service] = lambda: AuthService(repository, settings, email_sender)

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user, settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email, settings)}"}


@pytest.fixture
def sample_serp_payload() -> dict:
    """DataForSEO live/advanced response with organic, PAA and related items."""
    return {
        "status_code": 20000,
        "status_message": "Ok.",
        "tasks": [
            {
                "status_code": 20000,
                "result": [
                    {
                        "keyword": "best crm",
                        "se_results_count": 1250000,
                        "items": [
                            {
                                "type": "organic",
                                "rank_absolute": 1,
                                "title": "Globex CRM",
                                "url": "https://www.globex.com/crm",
                                "domain": "www.globex.com",
                                "description": "The CRM for everyone",
                            },
                            {
                                "type": "people_also_ask",
                                "items": [
                                    {
                                        "title": "What is a CRM?",
                                        "url": "https://example.org/crm",
                                        "expanded_element": [
                                            {"description": "Customer relationship management."}
                                        ],
                                    }
                                ],
                            },
                            {
                                "type": "organic",
                                "rank_absolute": 3,
                                "title": "Acme - CRM for small teams",
                                "url": "https://acme.com/",
                                "domain": "acme.com",
                                "description": "Simple CRM",
                            },
                            {
                                "type": "related_searches",
                                "items": ["crm software", {"title": "free crm"}],
                            },
                        ],
                    }
                ],
            }
        ],
    }


@pytest.fixture
def sample_serpapi_payload() -> dict:
    return {
        "search_information": {"total_results": 98000},
        "organic_results": [
            {"position": 1, "title": "Acme", "link": "https://www.acme.com/", "snippet": "Acme CRM"},
            {"position": 2, "title": "Globex", "link": "https://globex.com/", "snippet": "Globex CRM"},
        ],
        "related_searches": [{"query": "acme pricing"}, {"link": "no-query"}],
        "related_questions": [
            {"question": "Is Acme free?", "snippet": "There is a free tier.", "link": "https://acme.com/faq"}
        ],
        "ai_overview": {
            "text": "Popular CRMs include Globex. Acme is loved by startups! Others exist.",
            "sources": [{"title": "Review", "link": "https://reviews.example.com/crm"}],
        },
    }
