"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    BULK_VALUE_MULTIPLIER,
    BulkSourceConfig,
    Credentials,
    LiveApiConfig,
    OutputConfig,
    RateLimitConfig,
    SyncConfig,
)

__all__ = [
    "BULK_VALUE_MULTIPLIER",
    "BulkSourceConfig",
    "ConfigLocator",
    "ConfigRepository",
    "Credentials",
    "LiveApiConfig",
    "OutputConfig",
    "RateLimitConfig",
    "SyncConfig",
]
