"""Application configuration helpers."""

from __future__ import annotations

from .broker import (
    DEFAULT_PAGE_SIZE,
    MAX_OVERRIDE_CONNECTORS,
    MAX_PAGE_SIZE,
    BrokerConfig,
    CatalogSettings,
    get_broker_config,
    get_catalog_settings,
)
from .env import optional_int_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_OVERRIDE_CONNECTORS",
    "MAX_PAGE_SIZE",
    "BrokerConfig",
    "CatalogSettings",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "StorageConfig",
    "configure_logging",
    "get_broker_config",
    "get_catalog_settings",
    "get_database_config",
    "get_storage_config",
    "optional_int_env_var",
    "require_env_vars",
]
