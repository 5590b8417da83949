"""Per-endpoint circuit breaking for lookup calls."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_COOLDOWN_SECONDS = 60.0


@dataclass(slots=True)
class CircuitState:
    consecutive_failures: int = 0
    last_failure_time: float | None = None


class CircuitGuard:
    """Consecutive-failure circuit breaker shared by every caller of an endpoint.

    An endpoint is skipped once it reaches ``failure_threshold`` consecutive
    failures. When ``cooldown_seconds`` have elapsed since the most recent
    failure on *any* endpoint, all counters reset together.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._states: dict[str, CircuitState] = {}
        self._last_failure_time: float | None = None

    def should_skip(self, endpoint: str) -> bool:
        with self._lock:
            if self._reset_if_cooled_down():
                return False
            state = self._states.get(endpoint)
            if state is None:
                return False
            return state.consecutive_failures >= self.failure_threshold

    def record_failure(self, endpoint: str) -> None:
        with self._lock:
            self._reset_if_cooled_down()
            now = self._clock()
            state = self._states.setdefault(endpoint, CircuitState())
            state.consecutive_failures += 1
            state.last_failure_time = now
            self._last_failure_time = now
            if state.consecutive_failures == self.failure_threshold:
                log.warning(
                    "Circuit opened for %s after %s consecutive failures",
                    endpoint,
                    state.consecutive_failures,
                )

    def record_success(self, endpoint: str) -> None:
        with self._lock:
            state = self._states.get(endpoint)
            if state is not None:
                state.consecutive_failures = 0

    def failures(self, endpoint: str) -> int:
        with self._lock:
            state = self._states.get(endpoint)
            return state.consecutive_failures if state is not None else 0

    def snapshot(self) -> dict[str, CircuitState]:
        """Return a copy of the per-endpoint state for logging and debugging."""

        with self._lock:
            return {
                endpoint: CircuitState(state.consecutive_failures, state.last_failure_time)
                for endpoint, state in self._states.items()
            }

    def _reset_if_cooled_down(self) -> bool:
        # caller holds the lock
        if self._last_failure_time is None:
            return False
        if self._clock() - self._last_failure_time <= self.cooldown_seconds:
            return False
        for state in self._states.values():
            state.consecutive_failures = 0
        self._last_failure_time = None
        log.info("Circuit cool-down elapsed; failure counters reset")
        return True
