"""Configuration and environment loading for Farm Guardrail."""

from datetime import timedelta
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://maker.ifttt.com/trigger"
DEFAULT_EVENT_PREFIX = "farm_clawed_"
DEFAULT_TTL = timedelta(minutes=45)
DEFAULT_RETENTION = timedelta(hours=24)


class GuardrailConfig(BaseModel):
    """Resolved configuration consumed by the dispatcher and controller."""

    model_config = ConfigDict(frozen=True)

    webhook_key: str = ""
    base_url: str = DEFAULT_BASE_URL
    event_prefix: str = DEFAULT_EVENT_PREFIX
    timeout: float = Field(default=10.0, gt=0, description="Request timeout in seconds")
    retries: int = Field(
        default=3,
        ge=0,
        le=5,
        description="Informational only; the dispatcher never retries on its own",
    )
    rate_limit_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Minimum spacing between calls to the same event name",
    )
    simulation_mode: bool = False
    default_ttl: timedelta = DEFAULT_TTL
    retention: timedelta = DEFAULT_RETENTION

    def summary(self) -> dict:
        """Configuration without the webhook key."""
        data = self.model_dump(exclude={"webhook_key"})
        data["default_ttl"] = self.default_ttl.total_seconds()
        data["retention"] = self.retention.total_seconds()
        data["has_key"] = bool(self.webhook_key)
        return data


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Webhook actuator
    ifttt_webhook_key: str = ""
    ifttt_base_url: str = DEFAULT_BASE_URL
    ifttt_event_prefix: str = DEFAULT_EVENT_PREFIX
    ifttt_timeout_seconds: float = 10.0
    ifttt_retries: int = 3
    ifttt_rate_limit_seconds: float = 1.0
    ifttt_simulation_mode: bool = False

    # Proposal lifecycle
    action_ttl_minutes: int = Field(default=45, gt=0)
    action_retention_hours: int = Field(default=24, gt=0)

    # Expiry sweeper
    sweeper_enabled: bool = True
    sweeper_interval_seconds: int = 60

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    def guardrail_config(self) -> GuardrailConfig:
        """Build the config object the core consumes."""
        return GuardrailConfig(
            webhook_key=self.ifttt_webhook_key,
            base_url=self.ifttt_base_url.rstrip("/"),
            event_prefix=self.ifttt_event_prefix,
            timeout=self.ifttt_timeout_seconds,
            retries=self.ifttt_retries,
            rate_limit_seconds=self.ifttt_rate_limit_seconds,
            simulation_mode=self.ifttt_simulation_mode,
            default_ttl=timedelta(minutes=self.action_ttl_minutes),
            retention=timedelta(hours=self.action_retention_hours),
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
