"""Retry policies for lookup endpoints."""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tenacity import stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

if TYPE_CHECKING:
    from collections.abc import Callable

    from tenacity import RetryCallState
    from tenacity.stop import stop_base


class wait_scaled_jitter(wait_base):  # noqa: N801
    """Wait ``source() * scale`` seconds, with an injectable random source."""

    def __init__(self, scale: float, source: Callable[[], float] = random.random) -> None:
        self.scale = scale
        self.source = source

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.source() * self.scale


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Retry settings for one endpoint.

    The n-th retry (1-based) waits ``backoff_base * 2**(n-1)`` seconds plus a
    uniform jitter in ``[0, backoff_jitter)``.
    """

    max_retries: int = 3
    backoff_base: float = 1.0
    backoff_jitter: float = 1.0

    def stop(self) -> stop_base:
        return stop_after_attempt(self.max_retries + 1)

    def wait(self, rand: Callable[[], float] = random.random) -> wait_base:
        return wait_exponential(multiplier=self.backoff_base) + wait_scaled_jitter(
            self.backoff_jitter, rand
        )


PRIMARY_RETRY_POLICY = RetryPolicy(max_retries=3, backoff_base=1.0, backoff_jitter=1.0)
FALLBACK_RETRY_POLICY = RetryPolicy(max_retries=2, backoff_base=0.5, backoff_jitter=0.5)
