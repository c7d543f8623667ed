"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - Secrets (backend API key) come from environment variables, never hardcoded
    - get_settings() is cached (lru_cache), single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for every setting: works out of the box against a local backend
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Backend
    backend_api_url: str = "http://localhost:8000/api"
    backend_api_key: str | None = None
    backend_timeout_seconds: float = 15.0
    backend_max_retries: int = 3
    backend_base_delay_ms: int = 500
    backend_max_delay_ms: int = 8_000

    @field_validator("backend_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoint paths start with "/", so the base must not end with one."""
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    # Tenancy
    base_domain: str | None = None
    subdomain_handoff_enabled: bool = True

    # Login / verification
    otp_length: int = 6
    otp_resend_cooldown_seconds: int = 60
    email_verification_cooldown_seconds: int = 60

    # Payment gate
    payment_poll_interval_seconds: float = 2.0
    payment_max_poll_attempts: int = 10
    payment_confirmed_max_poll_attempts: int = 5
    payment_max_poll_errors: int = 3
    payment_success_message_ttl_seconds: int = 300

    # Router
    router_max_redirects: int = 3

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
