"""Application configuration settings.

This module defines the application-wide settings using Pydantic's BaseSettings.
It allows for loading configurations from environment variables and .env files,
providing type validation and default values.
"""

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings

# Default list of CORS allowed origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "https://localhost:3000",
    "https://localhost:8000",
    "http://0.0.0.0:8000",
]


class Settings(BaseSettings):
    """Manages application settings, loading them from environment variables or an .env file.

    Attributes:
        llm_api_key: API key for the OpenAI-compatible generation endpoint.
        llm_base_url: Base URL of the generation endpoint (OpenRouter by default).
        model_id: Identifier for the language model to be used.
        llm_max_tokens: Maximum tokens requested per generation call.
        api_key: API key securing the inbound endpoints.
        callback_secret: Shared secret sent with outbound webhook callbacks.
        spyfu_proxy_url: Optional relay (GET <proxy>?url=<target>) retried when a direct SpyFu request fails.
        provider_timeout: Per-request timeout in seconds for data providers.
        crawl_poll_interval: Seconds between website crawl status checks.
        crawl_timeout: Hard limit in seconds on waiting for a website crawl.
        job_ttl_seconds: Age after which a job is evicted from the job store.
        job_sweep_interval: Seconds between job store sweeps.
        callback_max_attempts: Number of webhook delivery attempts.
        callback_retry_delay: Base delay in seconds, multiplied by the attempt number.
        max_page_chars: Character budget for a single scraped page.
        max_prior_section_chars: Character budget for each prior section in a prompt.
        max_notes_chars: Character budget for discovery notes.
        max_structured_chars: Character budget for JSON blocks in prompts.
        max_previous_document_chars: Character budget for the previous document version.
        max_short_text_chars: Character budget for short free-text fields (industry, specialties, ad analysis).
    """

    llm_api_key: str | None = Field(default=None)
    llm_base_url: str = Field(default="https://openrouter.ai/api/v1")
    model_id: str = Field(default="anthropic/claude-opus-4")
    llm_max_tokens: int = Field(default=16384)
    LLM_CONNECT_TIMEOUT: float = Field(default=10.0, description="LLM client connect timeout in seconds.")
    LLM_READ_TIMEOUT: float = Field(default=600.0, description="LLM client read timeout in seconds.")

    api_key: str | None = Field(default=None)
    callback_secret: str | None = Field(default=None)
    callback_header: str = Field(default="x-api-key")

    cors_allowed_origins: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
    )

    # Data providers
    apify_api_key: str | None = Field(default=None)
    youtube_api_key: str | None = Field(default=None)
    moz_api_key: str | None = Field(default=None)
    firecrawl_api_key: str | None = Field(default=None)
    spyfu_api_key: str | None = Field(default=None)
    spyfu_proxy_url: str | None = Field(default=None)
    provider_timeout: float = Field(default=60.0)

    crawl_max_pages: int = Field(default=25)
    crawl_poll_interval: float = Field(default=10.0)
    crawl_timeout: float = Field(default=600.0)

    # Job store
    job_ttl_seconds: int = Field(default=3600)
    job_sweep_interval: int = Field(default=300)

    # Callback delivery
    callback_max_attempts: int = Field(default=3)
    callback_retry_delay: float = Field(default=5.0)
    callback_timeout: float = Field(default=30.0)

    # Prompt budgets (characters)
    max_page_chars: int = Field(default=2000)
    max_prior_section_chars: int = Field(default=800)
    max_notes_chars: int = Field(default=2000)
    max_structured_chars: int = Field(default=3000)
    max_previous_document_chars: int = Field(default=5000)
    max_short_text_chars: int = Field(default=500)

    model_config = {
        "env_file": ".env",
        "protected_namespaces": ("settings_",),
        "env_prefix": "",  # No prefix for environment variables
        "extra": "ignore",  # Ignore extra fields
    }

    @field_validator("cors_allowed_origins", mode="before")  # type: ignore
    @classmethod
    def assemble_cors_origins(cls, v: str | list[str] | None) -> list[str]:
        """Assembles the list of CORS allowed origins.

        If 'v' is a string, it splits it by commas. If 'v' is already a list,
        it's used directly. Otherwise, returns the default list of origins.
        """
        if isinstance(v, str) and v:
            return [origin.strip() for origin in v.split(",")]
        elif isinstance(v, list):
            return v
        return list(DEFAULT_CORS_ORIGINS)

    @property
    def outbound_secret(self) -> str | None:
        """Secret for webhook callbacks; falls back to the inbound API key."""
        return self.callback_secret or self.api_key


settings = Settings()
