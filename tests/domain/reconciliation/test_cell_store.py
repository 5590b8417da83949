from __future__ import annotations

import pytest

from kbrecon.domain.model import (
    Acceptance,
    AutoAccepted,
    Candidate,
    CellState,
    CellStatus,
    ErrorInfo,
    MatchesAvailable,
    NoMatches,
    ReconciliationFailed,
    ReconciliationJob,
)
from kbrecon.domain.reconciliation import (
    InMemoryReconciliationStore,
    InvalidTransitionError,
    UnknownCellError,
    state_for_outcome,
)
from kbrecon.domain.reconciliation.store import outcome_for_state

JOB = ReconciliationJob(item_id="item-1", property_id="schema:author", raw_value="Douglas Adams")


def _candidate(entity_id: str, score: float) -> Candidate:
    return Candidate(id=entity_id, label=entity_id, score=score, original_score=score)


def _store() -> InMemoryReconciliationStore:
    store = InMemoryReconciliationStore()
    store.register(JOB)
    return store


def test_register_creates_pending_cell_once() -> None:
    store = InMemoryReconciliationStore()

    first = store.register(JOB)
    store.transition(JOB.key, CellState(status=CellStatus.QUEUED))
    second = store.register(JOB)

    assert first.status is CellStatus.PENDING
    assert second.status is CellStatus.QUEUED
    assert [key for key, _ in store.items()] == [("item-1", "schema:author", 0)]


def test_get_unknown_cell_raises() -> None:
    with pytest.raises(UnknownCellError):
        InMemoryReconciliationStore().get(("missing", "p", 0))


def test_reconciled_requires_selection() -> None:
    with pytest.raises(InvalidTransitionError, match="selected match"):
        _store().transition(JOB.key, CellState(status=CellStatus.RECONCILED))


def test_error_requires_error_info() -> None:
    with pytest.raises(InvalidTransitionError, match="error info"):
        _store().transition(JOB.key, CellState(status=CellStatus.ERROR))


def test_auto_accepted_selection_must_be_top_candidate() -> None:
    top, other = _candidate("Q1", 100.0), _candidate("Q2", 60.0)
    state = CellState(
        status=CellStatus.RECONCILED,
        matches=(top, other),
        selected_match=other,
        acceptance=Acceptance(auto_accepted=True, reason="100% confidence match"),
    )

    with pytest.raises(InvalidTransitionError, match="top candidate"):
        _store().transition(JOB.key, state)


def test_reapplying_terminal_status_is_a_noop() -> None:
    store = _store()
    first = store.transition(JOB.key, CellState(status=CellStatus.NO_MATCH))

    again = store.transition(JOB.key, CellState(status=CellStatus.NO_MATCH))

    assert again is first


def test_terminal_cells_cannot_move() -> None:
    store = _store()
    store.transition(JOB.key, CellState(status=CellStatus.SKIPPED))

    with pytest.raises(InvalidTransitionError, match="terminal"):
        store.transition(JOB.key, CellState(status=CellStatus.QUEUED))


def test_processing_cannot_be_skipped() -> None:
    store = _store()
    store.transition(JOB.key, CellState(status=CellStatus.PROCESSING))

    with pytest.raises(InvalidTransitionError, match="not allowed"):
        store.transition(JOB.key, CellState(status=CellStatus.SKIPPED))


def test_interrupted_processing_cell_can_be_requeued() -> None:
    store = _store()
    store.transition(JOB.key, CellState(status=CellStatus.QUEUED))
    store.transition(JOB.key, CellState(status=CellStatus.PROCESSING))

    requeued = store.transition(JOB.key, CellState(status=CellStatus.QUEUED))

    assert requeued.status is CellStatus.QUEUED
    with pytest.raises(InvalidTransitionError, match="not allowed"):
        store.transition(JOB.key, CellState(status=CellStatus.SKIPPED))


def test_retryable_error_can_be_retried_but_permanent_cannot() -> None:
    store = _store()
    store.transition(
        JOB.key,
        CellState(status=CellStatus.ERROR, error_info=ErrorInfo(message="timeout", retryable=True)),
    )
    store.transition(JOB.key, CellState(status=CellStatus.QUEUED))
    store.transition(JOB.key, CellState(status=CellStatus.PROCESSING))
    store.transition(
        JOB.key,
        CellState(status=CellStatus.ERROR, error_info=ErrorInfo(message="bad", retryable=False)),
    )

    assert store.get(JOB.key).is_terminal
    with pytest.raises(InvalidTransitionError):
        store.transition(JOB.key, CellState(status=CellStatus.QUEUED))


def test_no_match_is_distinct_from_pending() -> None:
    state = state_for_outcome(NoMatches())

    assert state.status is CellStatus.NO_MATCH
    assert state.matches == ()
    assert state.is_terminal
    assert not CellState().is_terminal


def test_state_for_outcome_round_trips_through_outcome_for_state() -> None:
    top = _candidate("Q1", 100.0)
    outcomes = [
        AutoAccepted(
            selection=top,
            acceptance=Acceptance(auto_accepted=True, reason="100% confidence match", score=100.0),
            candidates=(top,),
        ),
        MatchesAvailable(candidates=(_candidate("Q2", 70.0),)),
        NoMatches(),
        ReconciliationFailed(message="Server error (503)", retryable=True),
    ]

    for outcome in outcomes:
        assert outcome_for_state(state_for_outcome(outcome)) == outcome


def test_matches_available_state_awaits_review() -> None:
    state = state_for_outcome(MatchesAvailable(candidates=(_candidate("Q2", 70.0),)))

    assert state.status is CellStatus.PENDING
    assert state.awaiting_review
    assert state.best_match is not None
    assert state.best_match.id == "Q2"
