"""
Environment-driven configuration for the content repurposer.

Settings are grouped by the collaborator they configure: AI providers,
Postgres, Redis, security, logging and Sentry. Each group reads its own
variables from the environment or ``.env``; the groups are aggregated by
``Settings``.

    from repurposer.config import get_settings

    settings = get_settings()
    if settings.is_database_configured:
        ...

``get_settings()`` is cached. The composition root calls it once and hands
the result to the components it builds; tests construct ``Settings``
directly instead.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_PROVIDERS = ("anthropic", "groq", "openai", "gemini")


class _EnvGroup(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class LLMSettings(_EnvGroup):
    """AI provider credentials, models and the order providers are tried in."""

    # A provider without a key is never offered
    anthropic_api_key: Optional[SecretStr] = None
    groq_api_key: Optional[SecretStr] = Field(
        default=None, description="Groq key, served through the OpenAI SDK"
    )
    openai_api_key: Optional[SecretStr] = None
    gemini_api_key: Optional[SecretStr] = None

    anthropic_model: str = "claude-3-5-sonnet-latest"
    groq_model: str = "llama-3.3-70b-versatile"
    openai_model: str = "gpt-4o-mini"
    gemini_model: str = "gemini-1.5-flash-latest"

    llm_provider_priority: str = Field(
        default=",".join(KNOWN_PROVIDERS),
        description="Comma-separated provider preference when the request names none",
    )

    @property
    def priority_list(self) -> List[str]:
        return [p.strip().lower() for p in self.llm_provider_priority.split(",") if p.strip()]

    @property
    def available_providers(self) -> List[str]:
        """Providers with a key, listed providers first in priority order."""
        configured = [name for name in KNOWN_PROVIDERS if getattr(self, f"{name}_api_key")]
        ordered = [name for name in self.priority_list if name in configured]
        return ordered + sorted(set(configured) - set(ordered))

    @property
    def has_any_provider(self) -> bool:
        return bool(self.available_providers)

    @property
    def default_provider(self) -> Optional[str]:
        return next(iter(self.available_providers), None)


class DatabaseSettings(_EnvGroup):
    """Postgres. Without a URL the service runs on in-memory storage."""

    database_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("database_url_direct", "database_url"),
        description="DATABASE_URL_DIRECT wins over the pooled DATABASE_URL",
    )
    database_pool_min_size: int = Field(default=1, ge=1)
    database_pool_max_size: int = Field(default=5, ge=1)

    @property
    def is_configured(self) -> bool:
        return bool(self.database_url)


class RedisSettings(_EnvGroup):
    """Redis backs the per-account content list cache only."""

    redis_url: Optional[str] = None
    content_cache_ttl_seconds: int = Field(default=300, ge=1)

    @property
    def is_configured(self) -> bool:
        return bool(self.redis_url)


class SecuritySettings(_EnvGroup):
    environment: Literal["development", "staging", "production"] = "development"
    dev_mode: bool = Field(
        default=False,
        description="Requests without an API key act as the development account",
    )
    dev_account_tier: str = "free"
    api_key_storage_path: str = "./data/api_keys.json"
    cron_secret: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("cron_secret", "cron_secret_key"),
        description="Bearer token the monthly reset job must present",
    )
    allowed_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    upgrade_url: str = Field(
        default="/pricing",
        description="Returned with subscription-required rejections",
    )

    @field_validator("dev_account_tier")
    @classmethod
    def _lower_tier(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


class LoggingSettings(_EnvGroup):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format_json: bool = Field(
        default=False, description="JSON logs outside production too"
    )
    request_logging_enabled: bool = True


class SentrySettings(_EnvGroup):
    sentry_dsn: Optional[str] = None
    sentry_environment: str = "development"
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    sentry_release: Optional[str] = "content-repurposer@1.0.0"

    @property
    def is_configured(self) -> bool:
        return bool(self.sentry_dsn)


class Settings(_EnvGroup):
    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_database_configured(self) -> bool:
        return self.database.is_configured

    @property
    def is_redis_configured(self) -> bool:
        return self.redis.is_configured

    @property
    def is_sentry_configured(self) -> bool:
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        return self.security.is_production

    @property
    def is_dev_mode(self) -> bool:
        return self.security.dev_mode

    def get_config_summary(self) -> dict:
        """What is configured, for the startup log. Never includes secrets."""
        return {
            "environment": self.security.environment,
            "dev_mode": self.is_dev_mode,
            "llm_providers": self.llm.available_providers,
            "default_llm_provider": self.llm.default_provider,
            "storage": "postgres" if self.is_database_configured else "memory",
            "redis_configured": self.is_redis_configured,
            "sentry_configured": self.is_sentry_configured,
            "cron_secret_configured": self.security.cron_secret is not None,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    get_settings.cache_clear()
    return get_settings()
