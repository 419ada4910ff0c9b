"""Configuration settings for Coda Tree Export."""

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from coda_tree_export.schemas.enums import OutputFormat

ExportDepth = int | Literal["unlimited"]
"""Maximum nesting depth: 0..10, or "unlimited"."""

MAX_EXPORT_DEPTH = 10


class CategoryQuota(BaseModel):
    """Admission parameters for one rate limit category.

    The reservoir is reset to ``reservoir_refresh_amount`` every
    ``reservoir_refresh_interval_ms``.
    """

    max_concurrent: int = Field(ge=1, description="Maximum in-flight operations")
    min_time_ms: int = Field(default=0, ge=0, description="Minimum ms between admissions")
    reservoir: int = Field(ge=1, description="Operations allowed per refresh window")
    reservoir_refresh_amount: int = Field(ge=1, description="Reservoir value after refresh")
    reservoir_refresh_interval_ms: int = Field(ge=1, description="Refresh window length in ms")

    @property
    def min_time(self) -> float:
        """Minimum spacing between admissions in seconds."""
        return self.min_time_ms / 1000

    @property
    def refresh_interval(self) -> float:
        """Reservoir refresh interval in seconds."""
        return self.reservoir_refresh_interval_ms / 1000


class RateLimitConfig(BaseModel):
    """Per-category quotas for the Coda API.

    Published limits, with a safety margin:
    - Reading data: 100 requests per 6 seconds
    - Writing data: 10 requests per 6 seconds
    - Writing doc content: 5 requests per 10 seconds
    - Listing docs: 4 requests per 6 seconds
    - Reading analytics: 100 requests per 6 seconds
    """

    read: CategoryQuota = Field(
        default_factory=lambda: CategoryQuota(
            max_concurrent=5,
            reservoir=90,
            reservoir_refresh_amount=90,
            reservoir_refresh_interval_ms=6000,
        )
    )
    write: CategoryQuota = Field(
        default_factory=lambda: CategoryQuota(
            max_concurrent=2,
            reservoir=9,
            reservoir_refresh_amount=9,
            reservoir_refresh_interval_ms=6000,
        )
    )
    write_content: CategoryQuota = Field(
        default_factory=lambda: CategoryQuota(
            max_concurrent=1,
            reservoir=4,
            reservoir_refresh_amount=4,
            reservoir_refresh_interval_ms=10000,
        )
    )
    list_docs: CategoryQuota = Field(
        default_factory=lambda: CategoryQuota(
            max_concurrent=1,
            reservoir=3,
            reservoir_refresh_amount=3,
            reservoir_refresh_interval_ms=6000,
        )
    )
    analytics: CategoryQuota = Field(
        default_factory=lambda: CategoryQuota(
            max_concurrent=5,
            reservoir=90,
            reservoir_refresh_amount=90,
            reservoir_refresh_interval_ms=6000,
        )
    )


class ExportConfig(BaseModel):
    """Timing and caching behavior of page exports."""

    output_format: OutputFormat = Field(
        default=OutputFormat.MARKDOWN,
        description="Format requested from the export endpoint",
    )

    # Polling
    poll_interval_ms: int = Field(
        default=2000,
        ge=0,
        description="Milliseconds between export status checks",
    )
    max_poll_attempts: int = Field(
        default=60,
        ge=1,
        description="Status checks before an export is considered timed out",
    )
    settle_delay_ms: int = Field(
        default=3000,
        ge=0,
        description="Wait after submitting a batch before polling starts",
    )

    # Retry
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries for job submission and content download",
    )
    retry_base_delay_ms: int = Field(
        default=1000,
        ge=0,
        description="Base delay for exponential backoff",
    )

    # Caching
    job_cache_ttl_seconds: int = Field(
        default=600,
        ge=0,
        description="Seconds an export job id is reusable",
    )
    content_freshness_seconds: int = Field(
        default=300,
        ge=0,
        description="Seconds unversioned content stays fresh",
    )

    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for API calls",
    )

    @property
    def poll_interval(self) -> float:
        """Poll interval in seconds."""
        return self.poll_interval_ms / 1000

    @property
    def settle_delay(self) -> float:
        """Settle delay in seconds."""
        return self.settle_delay_ms / 1000

    @property
    def retry_base_delay(self) -> float:
        """Backoff base delay in seconds."""
        return self.retry_base_delay_ms / 1000

    @property
    def job_cache_ttl(self) -> timedelta:
        """Get the job cache TTL as a timedelta."""
        return timedelta(seconds=self.job_cache_ttl_seconds)

    @property
    def content_freshness(self) -> timedelta:
        """Get the content freshness window as a timedelta."""
        return timedelta(seconds=self.content_freshness_seconds)


class NestedExportSettings(BaseModel):
    """User settings for exporting a page together with its subpages."""

    include_nested: bool = Field(
        default=False,
        description="Export subpages as well as the root page",
    )
    depth: ExportDepth = Field(
        default=1,
        description="Levels of subpages to include (0-10 or 'unlimited')",
    )

    @field_validator("depth")
    @classmethod
    def _check_depth(cls, value: ExportDepth) -> ExportDepth:
        if value == "unlimited":
            return value
        if not 0 <= value <= MAX_EXPORT_DEPTH:
            raise ValueError(f"depth must be between 0 and {MAX_EXPORT_DEPTH} or 'unlimited'")
        return value

    @property
    def effective_depth(self) -> ExportDepth:
        """Depth actually traversed (root only unless nesting is enabled)."""
        return self.depth if self.include_nested else 0


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # Coda API
    # --------------------------------------------------------------------------
    coda_api_token: str = Field(
        default="",
        description="Coda API token",
    )
    coda_base_url: str = Field(
        default="https://coda.io/apis/v1",
        description="Base URL of the Coda REST API",
    )

    # --------------------------------------------------------------------------
    # Application
    # --------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # --------------------------------------------------------------------------
    # Rate Limiting & Export
    # --------------------------------------------------------------------------
    rate_limit: RateLimitConfig = Field(
        default_factory=RateLimitConfig,
        description="Per-category API quotas",
    )
    export: ExportConfig = Field(
        default_factory=ExportConfig,
        description="Export polling, retry and caching configuration",
    )
    nested: NestedExportSettings = Field(
        default_factory=NestedExportSettings,
        description="Default nested export settings",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )

    @property
    def is_configured(self) -> bool:
        """Whether an API token is available."""
        return bool(self.coda_api_token.strip())


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
