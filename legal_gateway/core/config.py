"""
Core configuration module for Legal Gateway.

This module provides centralized configuration management using Pydantic Settings.
Gateway tunables are loaded from environment variables with the LEGAL_GATEWAY_
prefix. Provider connection values keep their established names
(RADA_MCP_URL, OPENREYESTR_API_KEY, ZAKONONLINE_API_TOKEN, ...) so existing
deployments keep working.

Pattern: Pydantic BaseSettings, lru_cache singleton
Pattern: Explicit configuration struct passed by reference (RemoteServicesConfig)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

from legal_gateway.models.domain import Provider


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All gateway fields use the LEGAL_GATEWAY_ prefix.
    Example: LEGAL_GATEWAY_PORT=8080
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="legal-gateway",
        description="Name of the service for logging and identification",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the service listens on",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    cors_origins: str = Field(
        default="",
        description="Comma-separated allowed origins outside development",
    )

    # =========================================================================
    # Redis Configuration
    # =========================================================================
    redis_url: str = Field(
        default="",
        description="Redis URL for document store, full-text cache and cost tracking. "
        "Empty means in-memory storage and no cache.",
    )

    # =========================================================================
    # Remote Tool Providers
    # Pattern: SecretStr for credentials, .get_secret_value() to access
    # =========================================================================
    rada_mcp_url: str = Field(
        default="",
        validation_alias=AliasChoices("RADA_MCP_URL", "LEGAL_GATEWAY_RADA_MCP_URL"),
        description="Base URL of the parliamentary-data tool service",
    )
    rada_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("RADA_API_KEY", "LEGAL_GATEWAY_RADA_API_KEY"),
        description="Bearer key for the parliamentary-data tool service",
    )
    openreyestr_mcp_url: str = Field(
        default="",
        validation_alias=AliasChoices(
            "OPENREYESTR_MCP_URL", "LEGAL_GATEWAY_OPENREYESTR_MCP_URL"
        ),
        description="Base URL of the business-registry tool service",
    )
    openreyestr_api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices(
            "OPENREYESTR_API_KEY", "LEGAL_GATEWAY_OPENREYESTR_API_KEY"
        ),
        description="Bearer key for the business-registry tool service",
    )
    remote_tool_timeout_seconds: float = Field(
        default=60.0,
        ge=1.0,
        le=600.0,
        description="Timeout for remote tool execution",
    )
    catalog_timeout_seconds: float = Field(
        default=5.0,
        ge=0.5,
        le=60.0,
        description="Timeout for remote capability catalog discovery",
    )

    # =========================================================================
    # Court Search API
    # =========================================================================
    court_search_base_url: str = Field(
        default="https://court.searcher.api.zakononline.com.ua",
        description="Base URL of the court decision search API",
    )
    court_document_base_url: str = Field(
        default="https://zakononline.ua/court-decisions/show",
        description="Public page prefix for court decision documents",
    )
    zakononline_api_token: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices(
            "ZAKONONLINE_API_TOKEN", "LEGAL_GATEWAY_ZAKONONLINE_API_TOKEN"
        ),
        description="Primary court search API token",
    )
    zakononline_api_token2: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices(
            "ZAKONONLINE_API_TOKEN2", "LEGAL_GATEWAY_ZAKONONLINE_API_TOKEN2"
        ),
        description="Secondary court search API token, preferred when set",
    )
    search_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout for court search API calls",
    )
    full_text_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=120.0,
        description="Timeout for fetching a decision's public page",
    )
    search_min_interval_seconds: float = Field(
        default=0.2,
        ge=0.0,
        le=10.0,
        description="Minimum interval between court search requests",
    )
    full_text_cache_ttl_seconds: int = Field(
        default=7 * 24 * 3600,
        ge=60,
        description="TTL of cached decision full texts",
    )

    # =========================================================================
    # Crawl Ceilings and Economics
    # =========================================================================
    per_page_cost_usd: float = Field(
        default=0.00714,
        ge=0.0,
        description="Cost of one search API call (also used per scraped document)",
    )
    max_page_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Largest page the search API returns",
    )
    ingest_default_lookback_years: int = Field(
        default=3,
        ge=0,
        le=50,
        description="Default date_from lookback for bulk ingestion",
    )
    party_count_safety_limit: int = Field(
        default=100_000,
        ge=1,
        description="Hard ceiling on unique cases counted by party",
    )
    party_count_date_filter_max_pages: int = Field(
        default=100,
        ge=1,
        description="Page ceiling for count-by-party when a date filter is set",
    )
    chain_early_exit_threshold: int = Field(
        default=10,
        ge=1,
        description="Confirmed matches after which no further case-number variants are searched",
    )

    model_config = {
        "env_prefix": "LEGAL_GATEWAY_",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Validate Redis URL format (empty disables Redis)."""
        if v and not v.startswith(("redis://", "rediss://")):
            raise ValueError("Redis URL must start with redis:// or rediss://")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    def search_tokens(self) -> list[str]:
        """
        Court search tokens in preference order.

        The secondary token is tried first when both are configured.
        """
        primary = self.zakononline_api_token.get_secret_value().strip()
        secondary = self.zakononline_api_token2.get_secret_value().strip()
        return [t for t in (secondary, primary) if t]


# =============================================================================
# Remote Services Configuration Struct
# =============================================================================


class ProviderConfig(BaseModel):
    """Connection values for one remote tool provider."""

    base_url: str = ""
    api_key: SecretStr = SecretStr("")

    model_config = {"frozen": True}

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url.strip()) and bool(
            self.api_key.get_secret_value().strip()
        )

    @property
    def normalized_url(self) -> str:
        return self.base_url.strip().rstrip("/")


class RemoteServicesConfig(BaseModel):
    """
    Per-provider connection config plus call timeouts.

    Built once at startup and handed to RemoteServiceClient; nothing
    downstream reads the environment.
    """

    providers: dict[Provider, ProviderConfig] = Field(default_factory=dict)
    execute_timeout_seconds: float = 60.0
    catalog_timeout_seconds: float = 5.0

    model_config = {"frozen": True}

    def for_provider(self, provider: Provider) -> Optional[ProviderConfig]:
        return self.providers.get(provider)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RemoteServicesConfig":
        return cls(
            providers={
                Provider.RADA: ProviderConfig(
                    base_url=settings.rada_mcp_url,
                    api_key=settings.rada_api_key,
                ),
                Provider.OPENREYESTR: ProviderConfig(
                    base_url=settings.openreyestr_mcp_url,
                    api_key=settings.openreyestr_api_key,
                ),
            },
            execute_timeout_seconds=settings.remote_tool_timeout_seconds,
            catalog_timeout_seconds=settings.catalog_timeout_seconds,
        )


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
