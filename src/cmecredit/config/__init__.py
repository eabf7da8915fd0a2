"""Application configuration helpers."""

from __future__ import annotations

from .compliance import ComplianceConfig, get_compliance_config
from .env import positive_int_env
from .errors import ConfigurationError
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ComplianceConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "StorageConfig",
    "configure_logging",
    "get_compliance_config",
    "get_database_config",
    "get_storage_config",
    "positive_int_env",
]
