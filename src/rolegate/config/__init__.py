"""Application configuration helpers."""

from __future__ import annotations

from .billing import BillingConfig, get_billing_config
from .chat import ChatConfig, RoleConfig, get_chat_config, get_role_config, parse_locale_roles
from .env import optional_env_var, parse_iso_datetime, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .polling import LEGACY_MIGRATION_FLAG, PollingConfig, get_polling_config, reset_flag_name
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "LEGACY_MIGRATION_FLAG",
    "BillingConfig",
    "ChatConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "PollingConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "RoleConfig",
    "StorageConfig",
    "configure_logging",
    "get_billing_config",
    "get_chat_config",
    "get_database_config",
    "get_polling_config",
    "get_role_config",
    "get_storage_config",
    "optional_env_var",
    "parse_iso_datetime",
    "parse_locale_roles",
    "require_env_var",
    "require_env_vars",
    "reset_flag_name",
]
