"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )

    # DataForSEO API
    dataforseo_login: str = Field(default="", description="DataForSEO API login")
    dataforseo_password: SecretStr = Field(default="", description="DataForSEO API password")

    # SerpAPI
    serpapi_api_key: SecretStr = Field(default="", description="SerpAPI key")

    # LLM providers
    openai_api_key: SecretStr = Field(default="", description="OpenAI API key")
    anthropic_api_key: SecretStr = Field(default="", description="Anthropic API key")
    google_ai_api_key: SecretStr = Field(default="", description="Google Gemini API key")
    perplexity_api_key: SecretStr = Field(default="", description="Perplexity API key")
    grok_api_key: SecretStr = Field(default="", description="xAI Grok API key")
    deepseek_api_key: SecretStr = Field(default="", description="DeepSeek API key")
    openrouter_api_key: SecretStr = Field(default="", description="OpenRouter API key")
    openrouter_app_name: str = Field(default="Geoscore", description="App name sent to OpenRouter")
    openrouter_app_url: str = Field(
        default="https://geoscore.in", description="App URL sent to OpenRouter"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///data/geoscore.db",
        description="Database connection URL",
    )

    # Sessions and auth
    session_secret: SecretStr = Field(
        default="geoscore-dev-secret-change-in-production",
        description="Secret used to sign auth tokens",
    )
    jwt_expiry_days: int = Field(default=7, description="Auth token lifetime in days")
    session_expiry_days: int = Field(default=7, description="Server-side session lifetime in days")
    google_client_id: str = Field(default="", description="Google OAuth client ID")
    google_client_secret: SecretStr = Field(default="", description="Google OAuth client secret")
    google_callback_url: str = Field(
        default="http://localhost:5001/api/auth/google/callback",
        description="Google OAuth redirect URI",
    )
    frontend_url: str = Field(default="", description="Base URL of the dashboard for redirects")
    trust_proxy: bool = Field(
        default=False,
        description="Take the client IP from X-Forwarded-For (only behind a proxy that sets it)",
    )

    # Email (Resend)
    resend_api_key: SecretStr = Field(default="", description="Resend API key")
    email_from: str = Field(default="noreply@geoscore.in", description="Sender address")

    # SERP defaults
    default_serp_location: str = Field(default="United States", description="Default SERP location")
    default_serp_limit: int = Field(default=10, description="Default SERP depth")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["json", "text"] = Field(default="text", description="Log output format")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def dataforseo_configured(self) -> bool:
        """Check if DataForSEO credentials are configured."""
        return bool(self.dataforseo_login and self.dataforseo_password.get_secret_value())

    @property
    def google_oauth_configured(self) -> bool:
        """Check if Google OAuth credentials are configured."""
        return bool(self.google_client_id and self.google_client_secret.get_secret_value())

    @property
    def llm_api_keys(self) -> dict[str, str]:
        """Get configured LLM API keys by provider name."""
        keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_ai_api_key,
            "perplexity": self.perplexity_api_key,
            "grok": self.grok_api_key,
            "deepseek": self.deepseek_api_key,
            "openrouter": self.openrouter_api_key,
        }
        return {
            name: secret.get_secret_value()
            for name, secret in keys.items()
            if secret.get_secret_value()
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
