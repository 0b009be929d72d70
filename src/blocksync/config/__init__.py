"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, env_int, optional_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .feed import FeedConfig, get_feed_config
from .gateway import GatewayConfig, build_gateway_resilience, get_gateway_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .reconcile import ReconcileConfig, get_reconcile_config, parse_slot_policy
from .storage import StorageConfig, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "FeedConfig",
    "GatewayConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ReconcileConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "build_gateway_resilience",
    "configure_logging",
    "env_float",
    "env_int",
    "get_feed_config",
    "get_gateway_config",
    "get_reconcile_config",
    "get_storage_config",
    "optional_env_var",
    "parse_slot_policy",
    "require_env_vars",
]
