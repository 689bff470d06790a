"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Bindings read these through ``from_settings()`` constructors, whose config
producers consult ``get_settings()`` on every read, so clearing the settings
cache is enough to pick up rotated credentials.

Example:
    >>> from scriptbind.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.logging.level
    'INFO'
    >>> settings.openai.provider
    'openai'

    # Or with environment variables:
    # SCRIPTBIND_LOG_LEVEL=DEBUG
    # OPENAI_API_KEY=sk-...
    # RESEND_SENDER_DOMAIN=example.com
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, PositiveFloat, SecretStr, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="SCRIPTBIND_LOG_", extra="ignore")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"


class HttpSettings(BaseSettings):
    """HTTP client defaults for the Resend and Charm clients."""

    model_config = SettingsConfigDict(env_prefix="SCRIPTBIND_HTTP_", extra="ignore")

    timeout: PositiveFloat = Field(default=30.0, description="Request timeout in seconds")
    user_agent: str = "scriptbind/0.1"


class ResendSettings(BaseSettings):
    """Credentials for the email binding."""

    model_config = SettingsConfigDict(env_prefix="RESEND_", extra="ignore")

    api_key: SecretStr | None = None
    sender_domain: str = ""


class OpenAISettings(BaseSettings):
    """Provider selection and credentials for the llm binding."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_", extra="ignore")

    provider: Literal["openai", "azure"] = "openai"
    endpoint_url: str = ""
    api_key: SecretStr | None = None
    gpt_model: str = ""
    dalle_model: str = ""

    @field_validator("provider", mode="before")
    @classmethod
    def _normalize_provider(cls, v: str) -> str:
        return v.strip().lower() if isinstance(v, str) else v


class CharmSettings(BaseSettings):
    """Connection parameters shared by the charm bindings.

    Empty values fall back to the charm client's own defaults.
    """

    model_config = SettingsConfigDict(env_prefix="CHARM_", extra="ignore")

    host: str = ""
    data_dir: str = ""
    identity_key: str = ""
    ssh_port: str = ""
    http_port: str = ""


class ScriptbindSettings(BaseSettings):
    """Root settings for scriptbind.

    Loads ``SCRIPTBIND_`` prefixed variables for the ambient stack, plus the
    service-specific prefixes (``RESEND_``, ``OPENAI_``, ``CHARM_``).

    Example environment variables:
        SCRIPTBIND_LOG_LEVEL=DEBUG
        SCRIPTBIND_LOG_FORMAT=json
        SCRIPTBIND_HTTP_TIMEOUT=60
        OPENAI_PROVIDER=azure
    """

    model_config = SettingsConfigDict(
        env_prefix="SCRIPTBIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    debug: bool = Field(default=False, description="Enable debug mode")

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    email: ResendSettings = Field(default_factory=ResendSettings)
    openai: OpenAISettings = Field(default_factory=OpenAISettings)
    charm: CharmSettings = Field(default_factory=CharmSettings)

    @computed_field
    @property
    def has_llm_credentials(self) -> bool:
        """Whether an OpenAI/Azure API key is available."""
        return self.openai.api_key is not None


@lru_cache(maxsize=1)
def get_settings() -> ScriptbindSettings:
    """Get the global settings instance (cached)."""
    return ScriptbindSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()


def secret_value(secret: SecretStr | None) -> str:
    """Unwrap an optional secret to its string value ("" when unset)."""
    return secret.get_secret_value() if secret is not None else ""
