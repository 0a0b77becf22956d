"""
Application configuration via environment variables.
Supports .env file auto-loading via pydantic-settings.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ── Application ────────────────────────────────────
    app_name: str = "TV Mock Backend"
    version: str = "1.0.0"
    env: str = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # ── Security ───────────────────────────────────────
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_grace_seconds: int = 86400
    pending_token_expire_minutes: int = 30
    reset_code_length: int = 6
    password_schemes: str = "pbkdf2_sha256"

    # ── Database ───────────────────────────────────────
    database_url: str = "sqlite:///./tv_mock.db"
    db_ssl_verify: bool = True

    # ── CORS / Hosts ───────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://localhost:5173"
    cors_allow_methods: str = "GET,POST,DELETE,OPTIONS"
    cors_allow_headers: str = "Authorization,Content-Type"
    trusted_hosts: str = ""

    # ── Rate Limiting ──────────────────────────────────
    rate_limit_enabled: bool = True
    rate_limit_per_minute: int = 60
    auth_rate_limit: str = "30/minute"

    # ── Redis / Celery ─────────────────────────────────
    redis_host: str = "localhost"
    redis_port: int = 6379
    celery_broker_url: str | None = None  # Auto-constructed if None
    celery_result_backend: str | None = None  # Auto-constructed if None
    celery_task_always_eager: bool = True

    @property
    def get_celery_broker_url(self) -> str:
        if self.celery_broker_url:
            return self.celery_broker_url
        return f"redis://{self.redis_host}:{self.redis_port}/0"

    @property
    def get_celery_result_backend(self) -> str:
        if self.celery_result_backend:
            return self.celery_result_backend
        return f"redis://{self.redis_host}:{self.redis_port}/1"

    @property
    def cors_origins_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def cors_allow_methods_list(self) -> list[str]:
        return _split_csv(self.cors_allow_methods)

    @property
    def cors_allow_headers_list(self) -> list[str]:
        return _split_csv(self.cors_allow_headers)

    @property
    def trusted_hosts_list(self) -> list[str]:
        return _split_csv(self.trusted_hosts)

    @property
    def password_schemes_list(self) -> list[str]:
        return _split_csv(self.password_schemes)

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.access_token_expire_minutes * 60

    @property
    def pending_token_ttl_seconds(self) -> int:
        return self.pending_token_expire_minutes * 60

    @property
    def is_production(self) -> bool:
        return self.env.lower() in ("prod", "production")

    @field_validator("secret_key")
    @classmethod
    def warn_default_secret(cls, v: str) -> str:
        if v == "change-me-in-production":
            import logging
            logging.getLogger("tvbackend.config").warning(
                "Using default secret key. Set SECRET_KEY env var for production!"
            )
        return v

    @field_validator("reset_code_length")
    @classmethod
    def check_code_length(cls, v: int) -> int:
        if not 4 <= v <= 12:
            raise ValueError("reset_code_length must be between 4 and 12")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )


def _split_csv(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


settings = Settings()
