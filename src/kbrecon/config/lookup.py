"""Lookup endpoint configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from kbrecon.domain.reconciliation.retry import (
    FALLBACK_RETRY_POLICY,
    PRIMARY_RETRY_POLICY,
    RetryPolicy,
)
from kbrecon.domain.reconciliation.scoring import DEFAULT_ENTITY_ID_PATTERN

from .env import env_float, env_str
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig

DEFAULT_PRIMARY_URL = "https://wikidata.reconci.link/en/api"
DEFAULT_FALLBACK_URL = "https://www.wikidata.org/w/api.php"
DEFAULT_USER_AGENT = "kbrecon/0.1 (https://github.com/kbrecon/kbrecon)"
DEFAULT_LANGUAGE = "en"

FALLBACK_RESULT_LIMIT = 10


def _has_search_results(payload: object) -> bool:
    if not isinstance(payload, dict):
        return False
    search = payload.get("search")
    return isinstance(search, list) and bool(search)


@dataclass(frozen=True, slots=True)
class LookupConfig:
    primary: ResilienceConfig
    fallback: ResilienceConfig
    primary_retry: RetryPolicy = PRIMARY_RETRY_POLICY
    fallback_retry: RetryPolicy = FALLBACK_RETRY_POLICY
    language: str = DEFAULT_LANGUAGE
    entity_id_pattern: str = DEFAULT_ENTITY_ID_PATTERN


def get_lookup_config() -> LookupConfig:
    user_agent = env_str("KBRECON_USER_AGENT", DEFAULT_USER_AGENT)
    headers = {"User-Agent": user_agent, "Accept": "application/json"}

    primary = ResilienceConfig(
        name="reconciliation-service",
        base_url=env_str("KBRECON_PRIMARY_URL", DEFAULT_PRIMARY_URL),
        timeout_seconds=env_float("KBRECON_PRIMARY_TIMEOUT", 30.0, minimum=0.1),
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=None,
        default_headers=headers,
    )
    fallback = ResilienceConfig(
        name="entity-search",
        base_url=env_str("KBRECON_FALLBACK_URL", DEFAULT_FALLBACK_URL),
        timeout_seconds=env_float("KBRECON_FALLBACK_TIMEOUT", 15.0, minimum=0.1),
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        cache=CacheConfig(enabled=True, should_cache=_has_search_results),
        default_headers=headers,
    )

    return LookupConfig(
        primary=primary,
        fallback=fallback,
        language=env_str("KBRECON_LANGUAGE", DEFAULT_LANGUAGE),
        entity_id_pattern=env_str("KBRECON_ENTITY_ID_PATTERN", DEFAULT_ENTITY_ID_PATTERN),
    )
