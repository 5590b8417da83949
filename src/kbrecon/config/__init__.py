"""Application configuration helpers."""

from __future__ import annotations

from .env import env_float, env_int, env_str
from .errors import ConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig
from .lookup import LookupConfig, get_lookup_config
from .reconciliation import (
    BatchConfig,
    CircuitConfig,
    get_batch_config,
    get_circuit_config,
)
from .storage import StorageConfig, get_storage_config

__all__ = [
    "BatchConfig",
    "CacheConfig",
    "CircuitConfig",
    "ConfigurationError",
    "LookupConfig",
    "RateLimit",
    "ResilienceConfig",
    "StorageConfig",
    "env_float",
    "env_int",
    "env_str",
    "get_batch_config",
    "get_circuit_config",
    "get_lookup_config",
    "get_storage_config",
]
