from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from kbrecon.domain.model import (
    AutoAccepted,
    CellState,
    CellStatus,
    Datatype,
    DatePrecision,
    ErrorCategory,
    JobOutcome,
    LookupHints,
    MatchesAvailable,
    NoMatches,
    PropertyConstraints,
    ReconciliationFailed,
    ReconciliationJob,
    SourceTier,
    TemporalValue,
)
from kbrecon.domain.reconciliation import (
    BatchCoordinator,
    CircuitGuard,
    EntityMatcher,
    InMemoryReconciliationStore,
    LookupFailure,
    PacingPolicy,
    RetryingScheduler,
)
from kbrecon.domain.reconciliation.pacing import BucketTally
from tests.helpers.lookups import (
    FakeClock,
    FakeLookup,
    RecordingSleep,
    match,
    raising,
    returning,
)

if TYPE_CHECKING:
    from kbrecon.domain.model import LookupMatch
    from kbrecon.domain.ports import LookupQuery


def _job(value: str, *, item: str = "item-1", prop: str = "schema:author") -> ReconciliationJob:
    return ReconciliationJob(item_id=item, property_id=prop, raw_value=value)


class Harness:
    def __init__(
        self,
        primary: FakeLookup | None = None,
        fallback: FakeLookup | None = None,
        *,
        constraints: dict[str, PropertyConstraints] | None = None,
        hint_provider=None,  # noqa: ANN001
    ) -> None:
        self.primary = primary or FakeLookup("primary")
        self.fallback = fallback or FakeLookup("fallback")
        self.sleep = RecordingSleep()
        self.circuit = CircuitGuard(clock=FakeClock())
        self.store = InMemoryReconciliationStore()
        scheduler = RetryingScheduler(
            primary=self.primary,
            fallback=self.fallback,
            circuit=self.circuit,
            sleep=self.sleep,
            jitter_source=lambda: 0.0,
        )
        lookup_constraints = constraints or {}
        self.matcher = EntityMatcher(
            scheduler=scheduler,
            constraints_provider=lookup_constraints.get,
            hint_provider=hint_provider,
        )
        self.coordinator = BatchCoordinator(
            matcher=self.matcher,
            store=self.store,
            sleep=self.sleep,
        )


def test_decade_value_is_accepted_locally() -> None:
    harness = Harness()
    job = _job("1990s", prop="schema:dateCreated")

    summary = asyncio.run(harness.coordinator.reconcile_dataset([job]))

    assert summary.auto_accepted == 1
    assert harness.primary.calls == 0
    state = harness.store.get(job.key)
    assert state.status is CellStatus.RECONCILED
    assert isinstance(state.selected_match, TemporalValue)
    assert state.selected_match.precision is DatePrecision.DECADE
    assert state.acceptance is not None
    assert state.acceptance.reason == "date value"
    assert state.acceptance.precision is DatePrecision.DECADE


def test_perfect_primary_match_is_auto_accepted() -> None:
    harness = Harness(FakeLookup("primary", returning(match("E1", score=100.0))))
    job = _job("Douglas Adams")

    summary = asyncio.run(harness.coordinator.reconcile_dataset([job]))

    assert summary.auto_accepted == 1
    state = harness.store.get(job.key)
    assert state.status is CellStatus.RECONCILED
    assert state.selected_match is not None
    assert state.selected_match == state.matches[0]
    assert state.matches[0].id == "E1"
    assert state.acceptance is not None
    assert state.acceptance.auto_accepted
    assert state.acceptance.reason == "100% confidence match"


def test_fallback_candidate_is_stored_for_review() -> None:
    harness = Harness(
        FakeLookup(
            "primary",
            raising(LookupFailure("timeout", category=ErrorCategory.TRANSIENT_NETWORK)),
        ),
        FakeLookup("fallback", returning(match("E9", tier=SourceTier.FALLBACK_SEARCH))),
    )
    job = _job("Some value")

    summary = asyncio.run(harness.coordinator.reconcile_dataset([job]))

    assert summary.matches_available == 1
    [job_outcome] = summary.outcomes
    assert isinstance(job_outcome.outcome, MatchesAvailable)
    assert job_outcome.outcome.best.score == 80.0
    state = harness.store.get(job.key)
    assert state.status is CellStatus.PENDING
    assert state.awaiting_review
    assert state.matches[0].source_tier is SourceTier.FALLBACK_SEARCH


def test_total_outage_yields_no_match_for_every_job() -> None:
    failure = LookupFailure("Server error (503)", category=ErrorCategory.SERVER_FAULT)
    harness = Harness(FakeLookup("primary", raising(failure)), FakeLookup("fallback", raising(failure)))
    jobs = [_job(f"value {i}", item=f"item-{i}") for i in range(5)]

    summary = asyncio.run(harness.coordinator.reconcile_dataset(jobs))

    assert summary.no_matches == 5
    assert summary.errors == 0
    assert all(harness.store.get(job.key).status is CellStatus.NO_MATCH for job in jobs)
    assert 1 <= harness.circuit.failures("primary") <= 5


def test_window_concurrency_is_bounded() -> None:
    primary = FakeLookup("primary", returning(match("E1", score=50.0)))
    harness = Harness(primary)
    jobs = [_job(f"value {i}", item=f"item-{i}") for i in range(11)]

    summary = asyncio.run(harness.coordinator.run(jobs, window_size=3))

    assert primary.calls == 11
    assert primary.max_in_flight == 3
    assert summary.matches_available == 11
    # four windows -> three pauses, all at the low-error rate
    assert harness.sleep.delays == [0.1, 0.1, 0.1]


def test_column_mode_uses_larger_windows() -> None:
    primary = FakeLookup("primary", returning(match("E1", score=50.0)))
    harness = Harness(primary)
    jobs = [_job(f"value {i}", item=f"item-{i}") for i in range(7)]

    asyncio.run(harness.coordinator.reconcile_column(jobs))

    assert primary.max_in_flight == 5
    assert harness.sleep.delays == [0.1]


def test_every_job_gets_exactly_one_classification() -> None:
    constraints = {
        "schema:url": PropertyConstraints(datatype=Datatype.URL),
        "schema:dateCreated": PropertyConstraints(datatype=Datatype.TIME),
    }

    def respond(query: LookupQuery) -> list[LookupMatch]:
        return {
            "certain": [match("E1", score=100.0)],
            "unsure": [match("E2", score=60.0)],
        }.get(query.text, [])

    harness = Harness(FakeLookup("primary", respond), constraints=constraints)
    jobs = [
        _job("certain", item="a"),
        _job("unsure", item="b"),
        _job("nothing", item="c"),
        _job("https://example.org", item="d", prop="schema:url"),
        _job("not a date", item="e", prop="schema:dateCreated"),
        _job("2001-09-11", item="f", prop="schema:dateCreated"),
    ]

    summary = asyncio.run(harness.coordinator.reconcile_dataset(jobs))

    assert summary.auto_accepted == 2
    assert summary.matches_available == 1
    assert summary.no_matches == 1
    assert summary.passed_through == 1
    assert summary.errors == 1
    assert summary.total == len(jobs)
    assert harness.store.get(jobs[3].key).status is CellStatus.PENDING
    assert harness.store.get(jobs[4].key).status is CellStatus.ERROR


def test_auto_accept_iff_top_score_reaches_100() -> None:
    scores = {"almost": 99.99, "exact": 100.0, "clamped": 250.0}

    def respond(query: LookupQuery) -> list[LookupMatch]:
        return [match("E1", score=scores[query.text])]

    harness = Harness(FakeLookup("primary", respond))
    jobs = [_job(text, item=text) for text in scores]

    summary = asyncio.run(harness.coordinator.reconcile_dataset(jobs))

    kinds = {o.job.raw_value: type(o.outcome) for o in summary.outcomes}
    assert kinds == {"almost": MatchesAvailable, "exact": AutoAccepted, "clamped": AutoAccepted}


def test_constraints_can_prevent_auto_acceptance() -> None:
    constraints = {"schema:author": PropertyConstraints(expected_entity_types=frozenset({"Q5"}))}
    harness = Harness(
        FakeLookup("primary", returning(match("E1", score=100.0, types=frozenset({"Q515"})))),
        constraints=constraints,
    )

    summary = asyncio.run(harness.coordinator.reconcile_dataset([_job("Paris")]))

    [job_outcome] = summary.outcomes
    assert isinstance(job_outcome.outcome, MatchesAvailable)
    assert job_outcome.outcome.best.score == pytest.approx(70.0)


def test_hint_errors_become_classified_failures() -> None:
    def broken_hints(_job: ReconciliationJob, _constraints: object) -> LookupHints:
        raise RuntimeError("Failed to fetch property metadata")

    harness = Harness(hint_provider=broken_hints)
    job = _job("anything")

    summary = asyncio.run(harness.coordinator.reconcile_dataset([job]))

    [job_outcome] = summary.outcomes
    assert isinstance(job_outcome.outcome, ReconciliationFailed)
    assert job_outcome.outcome.retryable
    state = harness.store.get(job.key)
    assert state.status is CellStatus.ERROR
    assert state.error_info is not None
    assert state.error_info.retryable


def test_constraint_provider_errors_do_not_abort_the_batch() -> None:
    def constraints(property_id: str) -> PropertyConstraints | None:
        if property_id == "broken":
            raise KeyError(property_id)
        return None

    harness = Harness(FakeLookup("primary", returning(match("E1", score=100.0))))
    harness.matcher = EntityMatcher(
        scheduler=harness.matcher.scheduler,
        constraints_provider=constraints,
    )
    harness.coordinator.matcher = harness.matcher
    jobs = [_job("x", item="a", prop="broken"), _job("y", item="b")]

    summary = asyncio.run(harness.coordinator.reconcile_dataset(jobs))

    assert summary.errors == 1
    assert summary.auto_accepted == 1
    failed = summary.outcomes[0].outcome
    assert isinstance(failed, ReconciliationFailed)
    assert not failed.retryable


def test_buckets_follow_first_seen_order_with_growing_delays() -> None:
    harness = Harness(FakeLookup("primary", returning(match("E1", score=50.0))))
    jobs = [
        _job("a", item="1", prop="p1"),
        _job("b", item="2", prop="p2"),
        _job("c", item="3", prop="p1"),
        _job("d", item="4", prop="p3"),
    ]

    summary = asyncio.run(harness.coordinator.reconcile_dataset(jobs))

    assert [o.job.raw_value for o in summary.outcomes] == ["a", "c", "b", "d"]
    assert harness.sleep.delays == [pytest.approx(0.6), pytest.approx(0.7)]


def test_high_error_rate_doubles_window_pause() -> None:
    def broken_hints(_job: ReconciliationJob, _constraints: object) -> LookupHints:
        raise RuntimeError("boom")

    harness = Harness(hint_provider=broken_hints)
    jobs = [_job(f"v{i}", item=f"i{i}") for i in range(7)]

    asyncio.run(harness.coordinator.reconcile_dataset(jobs))

    assert harness.sleep.delays == [0.2, 0.2]


def test_restarted_batch_skips_terminal_cells() -> None:
    primary = FakeLookup("primary", returning(match("E1", score=100.0)))
    harness = Harness(primary)
    jobs = [_job("x", item="a"), _job("y", item="b")]
    asyncio.run(harness.coordinator.reconcile_dataset(jobs))

    summary = asyncio.run(harness.coordinator.reconcile_dataset([*jobs, _job("z", item="c")]))

    assert summary.already_complete == 2
    assert summary.auto_accepted == 1
    assert primary.calls == 3


def test_restarted_batch_recovers_cells_left_in_processing() -> None:
    primary = FakeLookup("primary", returning(match("E1", score=100.0)))
    harness = Harness(primary)
    stuck = _job("x", item="a")
    fresh = _job("y", item="b")
    harness.store.register(stuck)
    harness.store.transition(stuck.key, CellState(status=CellStatus.QUEUED))
    harness.store.transition(stuck.key, CellState(status=CellStatus.PROCESSING))

    summary = asyncio.run(harness.coordinator.reconcile_dataset([stuck, fresh]))

    assert summary.auto_accepted == 2
    assert summary.errors == 0
    assert harness.store.get(stuck.key).status is CellStatus.RECONCILED
    assert harness.store.get(fresh.key).status is CellStatus.RECONCILED


def test_on_outcome_accepts_sync_and_async_callbacks() -> None:
    harness = Harness(FakeLookup("primary", returning(match("E1", score=100.0))))
    seen_sync: list[JobOutcome] = []
    seen_async: list[JobOutcome] = []

    async def async_callback(outcome: JobOutcome) -> None:
        seen_async.append(outcome)

    asyncio.run(harness.coordinator.reconcile_dataset([_job("a", item="1")], on_outcome=seen_sync.append))
    asyncio.run(harness.coordinator.reconcile_dataset([_job("b", item="2")], on_outcome=async_callback))

    assert [o.job.item_id for o in seen_sync] == ["1"]
    assert [o.job.item_id for o in seen_async] == ["2"]


def test_failing_callback_does_not_abort() -> None:
    harness = Harness(FakeLookup("primary", returning(match("E1", score=100.0))))

    def explode(_outcome: JobOutcome) -> None:
        raise RuntimeError("ui went away")

    summary = asyncio.run(
        harness.coordinator.reconcile_dataset(
            [_job("a", item="1"), _job("b", item="2")], on_outcome=explode
        )
    )

    assert summary.auto_accepted == 2


def test_empty_values_are_no_match_without_lookup() -> None:
    harness = Harness()

    summary = asyncio.run(harness.coordinator.reconcile_dataset([_job("   ")]))

    assert summary.no_matches == 1
    assert harness.primary.calls == 0
    assert isinstance(summary.outcomes[0].outcome, NoMatches)


def test_pacing_policy_delays() -> None:
    pacing = PacingPolicy()

    assert pacing.bucket_delay(0) == 0.0
    assert pacing.bucket_delay(1) == pytest.approx(0.6)
    assert pacing.bucket_delay(15) == pytest.approx(2.0)
    assert pacing.bucket_delay(40) == pytest.approx(2.0)
    assert pacing.window_pause(BucketTally(successes=1, errors=1)) == 0.1
    assert pacing.window_pause(BucketTally(successes=1, errors=2)) == 0.2
    assert BucketTally().error_rate == 0.0
