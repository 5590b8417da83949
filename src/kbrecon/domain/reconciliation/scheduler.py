"""Retrying lookup scheduler with circuit breaking and tier fallback."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from tenacity import AsyncRetrying, retry_if_exception

from kbrecon.domain.model import ErrorCategory, SourceTier
from kbrecon.domain.ports import LookupQuery

from .errors import CircuitOpenError, LookupFailure, classify_error
from .retry import FALLBACK_RETRY_POLICY, PRIMARY_RETRY_POLICY, RetryPolicy
from .scoring import candidates_from_matches

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from tenacity import RetryCallState

    from kbrecon.domain.model import Candidate, ContextHint, LookupMatch
    from kbrecon.domain.ports import CandidateLookup

    from .circuit import CircuitGuard
    from .errors import ErrorClassifier

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Resolved:
    candidates: tuple[Candidate, ...]
    tier: SourceTier
    kind: Literal["resolved"] = "resolved"


@dataclass(frozen=True, slots=True)
class Degraded:
    """Every endpoint failed or was skipped; the failures are kept for diagnostics."""

    failures: tuple[LookupFailure, ...] = ()
    kind: Literal["degraded"] = "degraded"

    @property
    def candidates(self) -> tuple[Candidate, ...]:
        return ()


type LookupOutcome = Resolved | Degraded


@dataclass(frozen=True, slots=True)
class _Tier:
    lookup: CandidateLookup
    policy: RetryPolicy
    source: SourceTier


@dataclass(slots=True)
class _Attempts:
    failures: list[LookupFailure] = field(default_factory=list)


class RetryingScheduler:
    """Resolve a value to unscored candidates through the primary and fallback tiers.

    The primary tier is tried first. When it fails, is circuit-open, or (with
    ``fallback_on_empty``) answers with nothing, the fallback tier is asked.
    Lookup failures never escape ``resolve``: they end up in ``Degraded``.
    """

    def __init__(
        self,
        *,
        primary: CandidateLookup,
        fallback: CandidateLookup | None,
        circuit: CircuitGuard,
        primary_policy: RetryPolicy = PRIMARY_RETRY_POLICY,
        fallback_policy: RetryPolicy = FALLBACK_RETRY_POLICY,
        classifier: ErrorClassifier = classify_error,
        fallback_on_empty: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        jitter_source: Callable[[], float] = random.random,
    ) -> None:
        self._tiers: list[_Tier] = [_Tier(primary, primary_policy, SourceTier.PRIMARY_LOOKUP)]
        if fallback is not None:
            self._tiers.append(_Tier(fallback, fallback_policy, SourceTier.FALLBACK_SEARCH))
        self._circuit = circuit
        self._classifier = classifier
        self._fallback_on_empty = fallback_on_empty
        self._sleep = sleep
        self._jitter_source = jitter_source

    @property
    def circuit(self) -> CircuitGuard:
        return self._circuit

    async def resolve(
        self,
        value: str,
        type_hints: Sequence[str] = (),
        context_hints: Sequence[ContextHint] = (),
    ) -> LookupOutcome:
        query = LookupQuery(
            text=value,
            type_filter=tuple(type_hints),
            property_filter=tuple(context_hints),
        )
        attempts = _Attempts()
        empty_tier: SourceTier | None = None

        for tier in self._tiers:
            try:
                matches = await self._call_with_retries(tier, query)
            except LookupFailure as exc:
                attempts.failures.append(exc)
                log.warning("%s lookup for %r failed: %s", tier.source, value, exc)
                continue

            if matches or not self._fallback_on_empty:
                return Resolved(tuple(candidates_from_matches(matches)), tier.source)
            empty_tier = empty_tier or tier.source
            log.debug("%s returned no candidates for %r", tier.source, value)

        if empty_tier is not None:
            return Resolved((), empty_tier)

        log.error(
            "All lookup endpoints failed for %r: %s",
            value,
            "; ".join(str(failure) for failure in attempts.failures),
        )
        return Degraded(tuple(attempts.failures))

    async def _call_with_retries(self, tier: _Tier, query: LookupQuery) -> list[LookupMatch]:
        endpoint = tier.lookup.endpoint
        retrying = AsyncRetrying(
            stop=tier.policy.stop(),
            wait=tier.policy.wait(self._jitter_source),
            retry=retry_if_exception(lambda exc: self._should_retry(exc, endpoint)),
            before_sleep=self._log_retry(endpoint),
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if self._circuit.should_skip(endpoint):
                        raise CircuitOpenError(endpoint)
                    matches = await tier.lookup.lookup(query)
        except CircuitOpenError:
            raise
        except Exception as exc:
            self._circuit.record_failure(endpoint)
            failure = self._as_failure(exc, endpoint)
            if failure is exc:
                raise
            raise failure from exc
        self._circuit.record_success(endpoint)
        return matches

    def _should_retry(self, error: BaseException, endpoint: str) -> bool:
        if isinstance(error, CircuitOpenError) or not isinstance(error, Exception):
            return False
        return self._as_failure(error, endpoint).retryable

    @staticmethod
    def _log_retry(endpoint: str) -> Callable[[RetryCallState], None]:
        def log_attempt(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
            log.warning(
                "%s attempt %s failed, retrying in %.2fs: %s",
                endpoint,
                retry_state.attempt_number,
                delay,
                error,
            )

        return log_attempt

    def _as_failure(self, error: Exception, endpoint: str) -> LookupFailure:
        if isinstance(error, LookupFailure):
            return error
        category = self._classifier(error)
        if category is None:
            # unknown errors from a lookup are not worth retrying
            category = ErrorCategory.PERMANENT_REQUEST
        message = str(error) or type(error).__name__
        return LookupFailure(message, category=category, endpoint=endpoint)
