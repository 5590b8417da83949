"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from kbrecon.adapters.lookup import EntitySearchClient, ReconciliationServiceClient
from kbrecon.config import (
    get_batch_config,
    get_circuit_config,
    get_lookup_config,
)
from kbrecon.domain.reconciliation import (
    BatchCoordinator,
    CircuitGuard,
    ConstraintHintProvider,
    ConstraintScorer,
    EntityMatcher,
    InteractiveReconciler,
    RetryingScheduler,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping
    from types import TracebackType

    from kbrecon.adapters.lookup.client import ClientFactory
    from kbrecon.config import BatchConfig, CircuitConfig, LookupConfig
    from kbrecon.domain.model import (
        PropertyConstraints,
        ReconciliationJob,
        ReconciliationOutcome,
    )
    from kbrecon.domain.ports import ConstraintsProvider, HintProvider, ReconciliationStore
    from kbrecon.domain.reconciliation import BatchSummary, OutcomeCallback

log = getLogger(__name__)

type BatchMode = Literal["dataset", "column"]


@dataclass(slots=True)
class ReconciliationService:
    """Wired-up engine plus the HTTP clients it owns."""

    batch: BatchCoordinator
    interactive: InteractiveReconciler
    matcher: EntityMatcher
    primary: ReconciliationServiceClient
    fallback: EntitySearchClient

    @property
    def store(self) -> ReconciliationStore:
        return self.batch.store

    async def __aenter__(self) -> ReconciliationService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.primary.aclose()
        await self.fallback.aclose()


def constraints_from_mapping(
    constraints: Mapping[str, PropertyConstraints],
) -> ConstraintsProvider:
    return constraints.get


def build_reconciliation_service(
    *,
    store: ReconciliationStore | None = None,
    constraints_provider: ConstraintsProvider | None = None,
    hint_provider: HintProvider | None = None,
    lookup_config: LookupConfig | None = None,
    batch_config: BatchConfig | None = None,
    circuit_config: CircuitConfig | None = None,
    circuit: CircuitGuard | None = None,
    client_factory: ClientFactory | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> ReconciliationService:
    """Assemble clients, scheduler, matcher, batch coordinator and interactive path."""

    lookup = lookup_config or get_lookup_config()
    batch_settings = batch_config or get_batch_config()
    if circuit is None:
        circuit_settings = circuit_config or get_circuit_config()
        circuit = CircuitGuard(
            failure_threshold=circuit_settings.failure_threshold,
            cooldown_seconds=circuit_settings.cooldown_seconds,
        )

    primary = ReconciliationServiceClient(lookup.primary, client_factory=client_factory)
    fallback = EntitySearchClient(
        lookup.fallback,
        language=lookup.language,
        client_factory=client_factory,
    )
    scheduler = RetryingScheduler(
        primary=primary,
        fallback=fallback,
        circuit=circuit,
        primary_policy=lookup.primary_retry,
        fallback_policy=lookup.fallback_retry,
        sleep=sleep,
    )
    matcher = EntityMatcher(
        scheduler=scheduler,
        scorer=ConstraintScorer(entity_id_pattern=lookup.entity_id_pattern),
        constraints_provider=constraints_provider,
        hint_provider=hint_provider or ConstraintHintProvider(),
    )
    batch = BatchCoordinator(
        matcher=matcher,
        store=store,
        dataset_window_size=batch_settings.dataset_window_size,
        column_window_size=batch_settings.column_window_size,
        pacing=batch_settings.pacing,
        sleep=sleep,
    )
    interactive = InteractiveReconciler(matcher=matcher, store=batch.store)
    return ReconciliationService(
        batch=batch,
        interactive=interactive,
        matcher=matcher,
        primary=primary,
        fallback=fallback,
    )


async def reconcile_jobs_async(
    service: ReconciliationService,
    jobs: Iterable[ReconciliationJob],
    *,
    mode: BatchMode = "dataset",
    on_outcome: OutcomeCallback | None = None,
) -> BatchSummary:
    async with service:
        if mode == "column":
            return await service.batch.reconcile_column(jobs, on_outcome=on_outcome)
        return await service.batch.reconcile_dataset(jobs, on_outcome=on_outcome)


def reconcile_jobs(
    jobs: Iterable[ReconciliationJob],
    *,
    mode: BatchMode = "dataset",
    store: ReconciliationStore | None = None,
    constraints: Mapping[str, PropertyConstraints] | None = None,
    knowledge_base_ids: Mapping[str, str] | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> BatchSummary:
    """Reconcile ``jobs`` with the configured endpoints and return the batch summary."""

    job_list = list(jobs)
    service = build_reconciliation_service(
        store=store,
        constraints_provider=constraints_from_mapping(constraints or {}),
        hint_provider=ConstraintHintProvider(knowledge_base_ids),
    )
    log.info("Starting %s reconciliation of %s jobs", mode, len(job_list))
    return asyncio.run(reconcile_jobs_async(service, job_list, mode=mode, on_outcome=on_outcome))


def reconcile_value(
    job: ReconciliationJob,
    *,
    refresh: bool = False,
    store: ReconciliationStore | None = None,
    constraints: Mapping[str, PropertyConstraints] | None = None,
    knowledge_base_ids: Mapping[str, str] | None = None,
) -> ReconciliationOutcome:
    """Reconcile a single value through the interactive path."""

    service = build_reconciliation_service(
        store=store,
        constraints_provider=constraints_from_mapping(constraints or {}),
        hint_provider=ConstraintHintProvider(knowledge_base_ids),
    )

    async def run() -> ReconciliationOutcome:
        async with service:
            return await service.interactive.reconcile_one(job, refresh=refresh)

    return asyncio.run(run())
