from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Jupiter Portal"
    app_env: str = "development"  # development, testing, production
    debug: bool = False
    enable_openapi: bool = True
    log_user_emails: bool = False  # Keep False in production (GDPR)

    # Database
    database_url: str
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Auth (app-issued JWTs after NationBuilder sign-in)
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Metrics
    metrics_api_key: str | None = None  # If set, /metrics requires this key

    # Redis (optional - refresh lock falls back to in-process locking)
    redis_url: str | None = None  # e.g., "redis://localhost:6379/0"
    redis_pool_size: int = 10

    # Temporal
    temporal_host: str = "localhost:7233"
    temporal_namespace: str = "default"
    temporal_task_queue: str = "jupiter-jobs"
    token_maintenance_schedule: str | None = None  # Cron, e.g. "*/10 * * * *"

    # Email (Resend)
    resend_api_key: str | None = None  # If not set, emails are logged but not sent
    email_from: str = "noreply@example.com"
    email_send_timeout_seconds: int = 10
    app_url: str = "http://localhost:3000"

    # NationBuilder OAuth
    nationbuilder_nation_slug: str | None = None
    nationbuilder_client_id: str | None = None
    nationbuilder_client_secret: str | None = None
    nationbuilder_redirect_uri: str = "http://localhost:8000/api/v1/auth/nationbuilder/callback"
    nationbuilder_scopes: list[str] = ["default"]
    nationbuilder_http_timeout_seconds: float = 30.0

    # Token lifecycle
    token_refresh_buffer_minutes: int = 5
    token_refresh_max_retries: int = 3
    token_refresh_base_delay_seconds: float = 1.0
    token_refresh_max_delay_seconds: float = 16.0
    token_refresh_jitter: float = 0.3
    token_refresh_lock_timeout_seconds: int = 30
    rotated_token_retention_days: int = 30
    proactive_refresh_window_minutes: int = 30

    # Cloudflare
    cloudflare_challenge_handling_enabled: bool = True
    cloudflare_challenge_ttl_minutes: int = 15
    cloudflare_turnstile_site_key: str | None = None
    cloudflare_turnstile_secret_key: str | None = None

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret(cls, v: str) -> str:
        if v == "change-this-to-a-secure-random-string":
            raise ValueError(
                "JWT_SECRET_KEY must be changed from default value. "
                "Generate a secure secret with: openssl rand -hex 32"
            )
        if len(v) < 32:
            raise ValueError("JWT_SECRET_KEY must be at least 32 characters")
        return v

    @field_validator("cors_origins")
    @classmethod
    def validate_cors_origins(cls, v: list[str]) -> list[str]:
        """Validate CORS origins - reject wildcards when credentials are used."""
        for origin in v:
            if origin == "*":
                raise ValueError(
                    "CORS wildcard '*' is not allowed when allow_credentials=True. "
                    "Specify explicit origins instead."
                )
        return v

    @field_validator("token_refresh_jitter")
    @classmethod
    def validate_jitter(cls, v: float) -> float:
        if not 0 <= v < 1:
            raise ValueError("TOKEN_REFRESH_JITTER must be in [0, 1)")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
