"""Pydantic models describing a deal-sync run."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Business rule applied to every value read from the bulk export.
BULK_VALUE_MULTIPLIER = 2.0


class BulkSourceConfig(BaseModel):
    """Location of the gzip-compressed CSV export in S3."""

    bucket: str = "pdw-export.zulu"
    key: str = "test_tasks/deals.csv.gz"
    region: str = "eu-central-1"
    value_multiplier: float = BULK_VALUE_MULTIPLIER

    @model_validator(mode="after")
    def _validate_location(self) -> "BulkSourceConfig":
        if not self.bucket:
            raise ValueError("bucket cannot be empty")
        if not self.key:
            raise ValueError("key cannot be empty")
        return self


class LiveApiConfig(BaseModel):
    """Remote deals API used both for the live snapshot and for updates."""

    base_url: str = "https://testcomp3.pipedrive.com"
    deals_path: str = "/api/v1/deals"
    page_limit: int = 100
    max_pages: int | None = None
    timeout: float = 15.0

    @field_validator("base_url", mode="before")
    @classmethod
    def _strip_slash(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("base_url cannot be empty")
        return text.rstrip("/")

    @field_validator("deals_path", mode="before")
    @classmethod
    def _leading_slash(cls, value: Any) -> str:
        text = str(value or "").strip()
        return text if text.startswith("/") else f"/{text}"

    @model_validator(mode="after")
    def _validate_paging(self) -> "LiveApiConfig":
        if self.page_limit < 1:
            raise ValueError("page_limit must be >= 1")
        if self.max_pages is not None and self.max_pages < 1:
            raise ValueError("max_pages must be >= 1 when set")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        return self

    @property
    def deals_url(self) -> str:
        return f"{self.base_url}{self.deals_path}"


class RateLimitConfig(BaseModel):
    """Externally imposed quota: N request starts per window.

    ``max_workers`` optionally caps the number of requests in flight; unset,
    only the quota paces the run.
    """

    requests_per_window: int = 20
    window_duration: float = 2.0
    max_workers: int | None = None

    @model_validator(mode="after")
    def _validate_quota(self) -> "RateLimitConfig":
        if self.requests_per_window < 1:
            raise ValueError("requests_per_window must be >= 1")
        if self.window_duration <= 0:
            raise ValueError("window_duration must be > 0")
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError("max_workers must be >= 1 when set")
        return self


class OutputConfig(BaseModel):
    """Where dry-run payloads are written."""

    outputs_dir: Path = Field(default=Path("data/outputs"))

    @field_validator("outputs_dir", mode="before")
    @classmethod
    def _coerce_dir(cls, value: Any) -> Path:
        return Path(value)


class SyncConfig(BaseModel):
    """Everything a run needs, resolved once at process start."""

    bulk: BulkSourceConfig = Field(default_factory=BulkSourceConfig)
    api: LiveApiConfig = Field(default_factory=LiveApiConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


class Credentials(BaseSettings):
    """Secrets read from the environment or a ``.env`` file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    api_token: str = Field(default="", validation_alias=AliasChoices("PIPED_TOKEN", "DEAL_SYNC_API_TOKEN"))
    aws_access_key_id: str | None = Field(default=None, validation_alias="AWS_ACCESS_KEY_ID")
    aws_secret_access_key: str | None = Field(default=None, validation_alias="AWS_SECRET_ACCESS_KEY")
    aws_session_token: str | None = Field(default=None, validation_alias="AWS_SESSION_TOKEN")

    def require_api_token(self) -> str:
        if not self.api_token:
            raise ValueError("PIPED_TOKEN is not set (environment or .env)")
        return self.api_token


__all__ = [
    "BULK_VALUE_MULTIPLIER",
    "BulkSourceConfig",
    "Credentials",
    "LiveApiConfig",
    "OutputConfig",
    "RateLimitConfig",
    "SyncConfig",
]
