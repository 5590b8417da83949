"""Batch reconciliation: property buckets, bounded windows and adaptive pacing."""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from kbrecon.domain.model import (
    AutoAccepted,
    CellStatus,
    JobOutcome,
    MatchesAvailable,
    NoMatches,
    ReconciliationFailed,
)

from .classify import failure_from_exception
from .matcher import JobRoute
from .pacing import BucketTally, PacingPolicy
from .store import (
    InMemoryReconciliationStore,
    InvalidTransitionError,
    mark_status,
    state_for_outcome,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from kbrecon.domain.model import (
        JobKey,
        PropertyConstraints,
        ReconciliationJob,
        ReconciliationOutcome,
    )
    from kbrecon.domain.ports import ReconciliationStore

    from .matcher import EntityMatcher

log = getLogger(__name__)

DATASET_WINDOW_SIZE: Final = 3
COLUMN_WINDOW_SIZE: Final = 5

type OutcomeCallback = Callable[[JobOutcome], Awaitable[None] | None]


@dataclass(slots=True)
class BatchSummary:
    auto_accepted: int = 0
    matches_available: int = 0
    no_matches: int = 0
    errors: int = 0
    passed_through: int = 0
    already_complete: int = 0
    outcomes: list[JobOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            self.auto_accepted
            + self.matches_available
            + self.no_matches
            + self.errors
            + self.passed_through
            + self.already_complete
        )

    def count(self, outcome: ReconciliationOutcome) -> None:
        match outcome:
            case AutoAccepted():
                self.auto_accepted += 1
            case MatchesAvailable():
                self.matches_available += 1
            case NoMatches():
                self.no_matches += 1
            case ReconciliationFailed():
                self.errors += 1


@dataclass(slots=True)
class _Bucket:
    property_id: str
    entries: list[tuple[ReconciliationJob, PropertyConstraints | None]] = field(
        default_factory=list
    )


def _tally(tally: BucketTally, outcome: ReconciliationOutcome) -> None:
    match outcome:
        case AutoAccepted() | MatchesAvailable():
            tally.successes += 1
        case NoMatches():
            tally.no_matches += 1
        case ReconciliationFailed():
            tally.errors += 1


class BatchCoordinator:
    """Fan jobs out to the matcher under bounded concurrency.

    Jobs are partitioned first: dates are resolved locally, literal datatypes
    pass through, everything else is grouped by property in first-seen order.
    Buckets run one after another; inside a bucket jobs run in fixed-size
    windows and a window is fully awaited before the next one starts.
    Individual failures never abort the batch.
    """

    def __init__(
        self,
        *,
        matcher: EntityMatcher,
        store: ReconciliationStore | None = None,
        dataset_window_size: int = DATASET_WINDOW_SIZE,
        column_window_size: int = COLUMN_WINDOW_SIZE,
        pacing: PacingPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if dataset_window_size < 1 or column_window_size < 1:
            raise ValueError("window sizes must be at least 1")
        self.matcher = matcher
        self.store: ReconciliationStore = store or InMemoryReconciliationStore()
        self.dataset_window_size = dataset_window_size
        self.column_window_size = column_window_size
        self.pacing = pacing or PacingPolicy()
        self._sleep = sleep

    async def reconcile_dataset(
        self,
        jobs: Iterable[ReconciliationJob],
        *,
        on_outcome: OutcomeCallback | None = None,
    ) -> BatchSummary:
        """Auto-accept pass over a whole dataset."""

        return await self.run(jobs, window_size=self.dataset_window_size, on_outcome=on_outcome)

    async def reconcile_column(
        self,
        jobs: Iterable[ReconciliationJob],
        *,
        on_outcome: OutcomeCallback | None = None,
    ) -> BatchSummary:
        """Reconcile the values of a single property column."""

        return await self.run(jobs, window_size=self.column_window_size, on_outcome=on_outcome)

    async def run(
        self,
        jobs: Iterable[ReconciliationJob],
        *,
        window_size: int,
        on_outcome: OutcomeCallback | None = None,
    ) -> BatchSummary:
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        summary = BatchSummary()
        buckets = await self._partition(jobs, summary, on_outcome)

        for index, bucket in enumerate(buckets):
            delay = self.pacing.bucket_delay(index)
            if delay > 0:
                await self._sleep(delay)
            await self._run_bucket(bucket, window_size, summary, on_outcome)

        log.info(
            "Batch finished: %s auto-accepted, %s for review, %s no match, %s errors, "
            "%s passed through, %s already complete",
            summary.auto_accepted,
            summary.matches_available,
            summary.no_matches,
            summary.errors,
            summary.passed_through,
            summary.already_complete,
        )
        return summary

    async def _partition(
        self,
        jobs: Iterable[ReconciliationJob],
        summary: BatchSummary,
        on_outcome: OutcomeCallback | None,
    ) -> list[_Bucket]:
        buckets: dict[str, _Bucket] = {}
        seen: set[JobKey] = set()

        for job in jobs:
            state = self.store.register(job)
            if job.key in seen or state.is_terminal:
                summary.already_complete += 1
                continue
            seen.add(job.key)

            try:
                constraints = self.matcher.constraints_for(job)
                route = self.matcher.route(job, constraints)
                if route is JobRoute.LOOKUP:
                    mark_status(self.store, job.key, CellStatus.QUEUED)
            except Exception as exc:  # noqa: BLE001
                log.warning("Could not prepare %s: %s", job.key, exc)
                await self._record(
                    job, failure_from_exception(exc, self.matcher.classifier), summary, on_outcome
                )
                continue

            match route:
                case JobRoute.TEMPORAL:
                    outcome = self.matcher.temporal_outcome(job)
                    await self._record(job, outcome, summary, on_outcome)
                case JobRoute.PASS_THROUGH:
                    summary.passed_through += 1
                case JobRoute.LOOKUP:
                    bucket = buckets.setdefault(job.property_id, _Bucket(job.property_id))
                    bucket.entries.append((job, constraints))

        return list(buckets.values())

    async def _run_bucket(
        self,
        bucket: _Bucket,
        window_size: int,
        summary: BatchSummary,
        on_outcome: OutcomeCallback | None,
    ) -> None:
        tally = BucketTally()
        entries = bucket.entries
        windows = [entries[i : i + window_size] for i in range(0, len(entries), window_size)]
        log.info(
            "Reconciling %s values for %s in %s windows",
            len(entries),
            bucket.property_id,
            len(windows),
        )

        for index, window in enumerate(windows):
            await asyncio.gather(
                *(
                    self._process(job, constraints, tally, summary, on_outcome)
                    for job, constraints in window
                )
            )
            if index < len(windows) - 1:
                await self._sleep(self.pacing.window_pause(tally))

    async def _process(
        self,
        job: ReconciliationJob,
        constraints: PropertyConstraints | None,
        tally: BucketTally,
        summary: BatchSummary,
        on_outcome: OutcomeCallback | None,
    ) -> None:
        try:
            mark_status(self.store, job.key, CellStatus.PROCESSING)
            outcome = await self.matcher.match(job, constraints)
        except Exception as exc:  # noqa: BLE001
            log.warning("Reconciliation of %s failed: %s", job.key, exc)
            outcome = failure_from_exception(exc, self.matcher.classifier)
        _tally(tally, outcome)
        await self._record(job, outcome, summary, on_outcome)

    async def _record(
        self,
        job: ReconciliationJob,
        outcome: ReconciliationOutcome,
        summary: BatchSummary,
        on_outcome: OutcomeCallback | None,
    ) -> None:
        try:
            self.store.transition(job.key, state_for_outcome(outcome))
        except InvalidTransitionError:
            log.exception("Could not store outcome for %s", job.key)
        summary.count(outcome)
        job_outcome = JobOutcome(job, outcome)
        summary.outcomes.append(job_outcome)
        if on_outcome is None:
            return
        try:
            result = on_outcome(job_outcome)
            if inspect.isawaitable(result):
                await result
        except Exception:
            log.exception("on_outcome callback failed for %s", job.key)
