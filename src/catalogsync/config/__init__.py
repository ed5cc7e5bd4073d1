"""Application configuration helpers."""

from __future__ import annotations

from .catalog import CatalogConfig, get_catalog_config
from .env import optional_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .storage import StorageConfig, get_storage_config
from .sync import SyncConfig, get_sync_config

__all__ = [
    "CatalogConfig",
    "ConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "get_catalog_config",
    "get_storage_config",
    "get_sync_config",
    "optional_env",
    "require_env_vars",
]
