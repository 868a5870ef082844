"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Secure defaults (no API keys or channel secrets in code)
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator, model_validator

from core.domain.models import ChannelCredentials
from core.services.care_prompts import CarePromptConfig
from core.services.dispatcher import DispatcherConfig

# Load environment variables from .env file
load_dotenv()


class AIProviderConfig(BaseModel):
    """AI provider used to draft care prompts. Optional: drafting is off without a key."""

    openai_api_key: str | None = Field(None, description="OpenAI API key")
    care_prompt_model: str = Field(
        default="openai:gpt-4o-mini", description="Model used to draft care-call prompts"
    )
    default_temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    default_timeout_seconds: float = Field(default=30.0, gt=0.0)
    default_max_retries: int = Field(default=2, ge=0)

    @field_validator("openai_api_key")
    @classmethod
    def validate_api_key(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not v.startswith("sk-"):
            raise ValueError("AI provider API key must start with 'sk-'")
        return v

    @property
    def enabled(self) -> bool:
        return self.openai_api_key is not None


class NotificationConfig(BaseModel):
    """Alert destination and notification channel settings."""

    destination_address: str | None = Field(None, description="Care team phone number")
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = Field(None, repr=False)
    twilio_from_number: str | None = None

    send_timeout_seconds: float = Field(default=15.0, gt=0.0)
    circuit_failure_threshold: int = Field(default=5, gt=0)
    circuit_recovery_seconds: float = Field(default=60.0, gt=0.0)
    ledger_size: int = Field(default=1000, gt=0)

    def credentials(self) -> ChannelCredentials | None:
        if not (self.twilio_account_sid and self.twilio_auth_token and self.twilio_from_number):
            return None
        return ChannelCredentials(
            account_sid=self.twilio_account_sid,
            auth_token=self.twilio_auth_token,
            from_address=self.twilio_from_number,
        )


class CacheConfig(BaseModel):
    draft_cache_size: int = Field(default=256, gt=0, description="Max cached care prompts")
    draft_cache_ttl_seconds: float = Field(default=3600.0, gt=0.0)


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=8000, gt=0, lt=65536, description="API server port")
    reload: bool = Field(default=False, description="Enable auto-reload for development")

    # Security settings
    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], description="Allowed origins for CORS"
    )
    api_key_header: str = Field(default="X-API-Key", description="Header name for API key")
    api_keys: list[str] = Field(default_factory=list, repr=False)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    ai_provider: AIProviderConfig = Field(default_factory=AIProviderConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self

    def dispatcher_config(self) -> DispatcherConfig:
        return DispatcherConfig(
            send_timeout_seconds=self.notifications.send_timeout_seconds,
            circuit_failure_threshold=self.notifications.circuit_failure_threshold,
            circuit_recovery_seconds=self.notifications.circuit_recovery_seconds,
            ledger_size=self.notifications.ledger_size,
        )

    def care_prompt_config(self) -> CarePromptConfig:
        return CarePromptConfig(
            model_name=self.ai_provider.care_prompt_model,
            temperature=self.ai_provider.default_temperature,
            timeout_seconds=self.ai_provider.default_timeout_seconds,
            max_retries=self.ai_provider.default_max_retries,
        )


def _split_csv(val: str | None) -> list[str]:
    if not val:
        return []
    return [item.strip() for item in val.split(",") if item.strip()]


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    ai_config = AIProviderConfig(
        openai_api_key=os.getenv("OPENAI_API_KEY") or None,
        care_prompt_model=os.getenv("CARE_PROMPT_MODEL", "openai:gpt-4o-mini"),
    )

    notification_config = NotificationConfig(
        destination_address=os.getenv("ALERT_DESTINATION_NUMBER") or None,
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID") or None,
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
        twilio_from_number=os.getenv("TWILIO_PHONE_NUMBER") or None,
        send_timeout_seconds=float(os.getenv("ALERT_SEND_TIMEOUT_SECONDS", "15.0")),
        circuit_failure_threshold=int(os.getenv("ALERT_CIRCUIT_FAILURE_THRESHOLD", "5")),
        circuit_recovery_seconds=float(os.getenv("ALERT_CIRCUIT_RECOVERY_SECONDS", "60.0")),
        ledger_size=int(os.getenv("ALERT_LEDGER_SIZE", "1000")),
    )

    cache_config = CacheConfig(
        draft_cache_size=int(os.getenv("DRAFT_CACHE_SIZE", "256")),
        draft_cache_ttl_seconds=float(os.getenv("DRAFT_CACHE_TTL_SECONDS", "3600")),
    )

    api_config = APIConfig(
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=_parse_bool(os.getenv("API_RELOAD"), debug),
        allowed_origins=_split_csv(os.getenv("API_ALLOWED_ORIGINS", "http://localhost:3000")),
        api_key_header=os.getenv("API_KEY_HEADER", "X-API-Key"),
        api_keys=_split_csv(os.getenv("API_KEYS")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        ai_provider=ai_config,
        notifications=notification_config,
        cache=cache_config,
        api=api_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()
