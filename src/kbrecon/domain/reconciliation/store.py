"""Cell state transitions and the in-memory store."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from kbrecon.domain.model import (
    AutoAccepted,
    Candidate,
    CellState,
    CellStatus,
    ErrorInfo,
    MatchesAvailable,
    NoMatches,
    ReconciliationFailed,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from kbrecon.domain.model import JobKey, ReconciliationJob, ReconciliationOutcome
    from kbrecon.domain.ports import ReconciliationStore

log = getLogger(__name__)

_ACTIVE: Final = frozenset(
    {
        CellStatus.QUEUED,
        CellStatus.PROCESSING,
        CellStatus.PENDING,
        CellStatus.RECONCILED,
        CellStatus.NO_MATCH,
        CellStatus.ERROR,
    }
)

ALLOWED_TRANSITIONS: Final[Mapping[CellStatus, frozenset[CellStatus]]] = {
    CellStatus.PENDING: frozenset(CellStatus),
    CellStatus.QUEUED: _ACTIVE,
    # a restarted batch requeues cells left in processing
    CellStatus.PROCESSING: _ACTIVE - {CellStatus.PROCESSING},
    # retryable errors only; non-retryable ones are terminal
    CellStatus.ERROR: _ACTIVE | {CellStatus.SKIPPED},
}


class InvalidTransitionError(ValueError):
    """Raised when a cell cannot move to the requested state."""


class UnknownCellError(KeyError):
    """Raised when a cell key has never been registered."""


def apply_transition(key: JobKey, current: CellState, new_state: CellState) -> CellState:
    """Validate ``current -> new_state`` and return the state to store.

    Re-applying a terminal status keeps the existing state unchanged.
    """

    if new_state.status is CellStatus.RECONCILED and new_state.selected_match is None:
        raise InvalidTransitionError(f"{key}: reconciled state requires a selected match")
    if new_state.status is CellStatus.ERROR and new_state.error_info is None:
        raise InvalidTransitionError(f"{key}: error state requires error info")
    if new_state.status is not CellStatus.RECONCILED and new_state.selected_match is not None:
        raise InvalidTransitionError(f"{key}: only reconciled cells carry a selection")
    if new_state.status is CellStatus.NO_MATCH and new_state.matches:
        raise InvalidTransitionError(f"{key}: no-match cells carry no candidates")
    _check_auto_selection(key, new_state)

    if current.is_terminal:
        if new_state.status is current.status:
            return current
        raise InvalidTransitionError(
            f"{key}: cannot leave terminal status {current.status} for {new_state.status}"
        )

    allowed = ALLOWED_TRANSITIONS.get(current.status, frozenset())
    if new_state.status not in allowed:
        raise InvalidTransitionError(f"{key}: {current.status} -> {new_state.status} not allowed")
    return new_state


def _check_auto_selection(key: JobKey, state: CellState) -> None:
    acceptance = state.acceptance
    selection = state.selected_match
    if acceptance is None or not acceptance.auto_accepted or not isinstance(selection, Candidate):
        return
    if not state.matches or state.matches[0].id != selection.id:
        raise InvalidTransitionError(
            f"{key}: auto-accepted selection {selection.id} must be the top candidate"
        )


def state_for_outcome(outcome: ReconciliationOutcome) -> CellState:
    match outcome:
        case AutoAccepted(selection=selection, acceptance=acceptance, candidates=candidates):
            return CellState(
                status=CellStatus.RECONCILED,
                matches=candidates,
                selected_match=selection,
                acceptance=acceptance,
            )
        case MatchesAvailable(candidates=candidates):
            return CellState(status=CellStatus.PENDING, matches=candidates)
        case NoMatches():
            return CellState(status=CellStatus.NO_MATCH)
        case ReconciliationFailed(message=message, retryable=retryable):
            return CellState(
                status=CellStatus.ERROR,
                error_info=ErrorInfo(message=message, retryable=retryable),
            )


def outcome_for_state(state: CellState) -> ReconciliationOutcome | None:
    """Rebuild the outcome a settled cell stands for, or ``None`` if it is unsettled."""

    match state.status:
        case CellStatus.RECONCILED if state.selected_match is not None and state.acceptance:
            return AutoAccepted(
                selection=state.selected_match,
                acceptance=state.acceptance,
                candidates=state.matches,
            )
        case CellStatus.NO_MATCH:
            return NoMatches()
        case CellStatus.ERROR if state.error_info is not None:
            return ReconciliationFailed(
                message=state.error_info.message,
                retryable=state.error_info.retryable,
            )
        case CellStatus.PENDING if state.matches:
            return MatchesAvailable(candidates=state.matches)
        case _:
            return None


class InMemoryReconciliationStore:
    """Dict-backed store; the default for batch runs without persistence."""

    def __init__(self) -> None:
        self._cells: dict[JobKey, CellState] = {}

    def register(self, job: ReconciliationJob) -> CellState:
        return self._cells.setdefault(job.key, CellState())

    def get(self, key: JobKey) -> CellState:
        try:
            return self._cells[key]
        except KeyError as exc:
            raise UnknownCellError(key) from exc

    def transition(self, key: JobKey, new_state: CellState) -> CellState:
        stored = apply_transition(key, self.get(key), new_state)
        self._cells[key] = stored
        log.debug("%s -> %s", key, stored.status)
        return stored

    def items(self) -> Iterator[tuple[JobKey, CellState]]:
        yield from list(self._cells.items())


def mark_status(store: ReconciliationStore, key: JobKey, status: CellStatus) -> CellState:
    """Move a cell to a bookkeeping status (queued, processing), keeping its candidates."""

    current = store.get(key)
    return store.transition(key, CellState(status=status, matches=current.matches))
