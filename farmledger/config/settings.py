"""
Configuration Management for Farm Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Configuration is an explicit value passed into the
components that need it (the ledger client receives its
LedgerServiceSettings at construction). Nothing reads global state at
request time.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_WEB_APP_URL = (
    "https://script.google.com/macros/s/"
    "AKfycbwLewoR1c0F9jlt8dvf_URVfRKDUSszgdlzYoJ6l8nJkaRaU7WWC378nUAOZ0Ba9MWg/exec"
)


class LedgerServiceSettings(BaseSettings):
    """Remote ledger (Apps Script web app) connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    web_app_url: str = Field(
        default=DEFAULT_WEB_APP_URL,
        description="Deployed Apps Script web app URL"
    )
    use_cloud: bool = Field(
        default=True,
        description="Sync with the spreadsheet backend"
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Upper bound for a single HTTP call"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for transient network failures"
    )

    @field_validator('web_app_url')
    @classmethod
    def fallback_to_default_url(cls, v: str) -> str:
        """A blank URL means the bundled deployment."""
        v = v.strip()
        return v or DEFAULT_WEB_APP_URL


class LocalStoreSettings(BaseSettings):
    """Local fallback cache configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOCAL_STORE_",
        extra="ignore"
    )

    path: str = Field(
        default=".farmledger/cache.json",
        description="JSON file holding the offline cache and session"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration for the farm advisor."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    currency: str = Field(
        default="VND",
        description="Currency label used in summaries"
    )
    advisor_max_transactions: int = Field(
        default=50,
        ge=1,
        le=500,
        description="How many recent transactions the advisor sees"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerServiceSettings:
        return LedgerServiceSettings()

    @property
    def local_store(self) -> LocalStoreSettings:
        return LocalStoreSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def resolve_ledger_settings(
    saved: Optional[dict] = None,
) -> LedgerServiceSettings:
    """
    Merge a user-saved connection config over the environment defaults.

    The saved dict may use the camelCase keys of older saved configs
    (gasWebAppUrl, useCloud) as well as the field names.
    """
    base = get_settings().ledger
    if not saved:
        return base

    overrides = {}
    url = saved.get("web_app_url", saved.get("gasWebAppUrl"))
    if isinstance(url, str) and url.strip():
        overrides["web_app_url"] = url.strip()
    use_cloud = saved.get("use_cloud", saved.get("useCloud"))
    if isinstance(use_cloud, bool):
        overrides["use_cloud"] = use_cloud

    return base.model_copy(update=overrides) if overrides else base


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus an
    "<name>_error" entry for each failure.
    """
    results = {}
    settings = get_settings()

    for name in ("ledger", "local_store", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
