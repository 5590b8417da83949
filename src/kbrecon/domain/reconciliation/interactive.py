"""Single-value reconciliation for reviewers."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from kbrecon.domain.model import Acceptance, CellState, CellStatus

from .classify import failure_from_exception
from .matcher import JobRoute
from .store import (
    InMemoryReconciliationStore,
    InvalidTransitionError,
    outcome_for_state,
    state_for_outcome,
)

if TYPE_CHECKING:
    from kbrecon.domain.model import Candidate, ReconciliationJob, ReconciliationOutcome
    from kbrecon.domain.ports import ReconciliationStore

    from .matcher import EntityMatcher

log = getLogger(__name__)

MANUAL_ACCEPT_REASON = "manual selection"


class InteractiveReconciler:
    """Reconcile one cell on demand.

    Stored results are reused unless ``refresh`` is requested or the cell
    holds a retryable error. The store is only written once a result is
    complete, so a cancelled call leaves the cell as it was.
    """

    def __init__(
        self,
        *,
        matcher: EntityMatcher,
        store: ReconciliationStore | None = None,
    ) -> None:
        self.matcher = matcher
        self.store: ReconciliationStore = store or InMemoryReconciliationStore()

    async def reconcile_one(
        self,
        job: ReconciliationJob,
        *,
        refresh: bool = False,
    ) -> ReconciliationOutcome:
        current = self.store.register(job)
        if not refresh and not current.is_retryable_error:
            stored = outcome_for_state(current)
            if stored is not None:
                log.debug("Reusing stored result for %s", job.key)
                return stored

        outcome = await self._fetch(job)
        if current.is_terminal:
            # reviewers may look again at settled cells without changing them
            return outcome
        self.store.transition(job.key, state_for_outcome(outcome))
        return outcome

    async def _fetch(self, job: ReconciliationJob) -> ReconciliationOutcome:
        try:
            constraints = self.matcher.constraints_for(job)
            route = self.matcher.route(job, constraints)
        except Exception as exc:  # noqa: BLE001
            log.warning("Could not prepare %s: %s", job.key, exc)
            return failure_from_exception(exc, self.matcher.classifier)

        if route is JobRoute.TEMPORAL:
            return self.matcher.temporal_outcome(job)
        # literal datatypes can still be looked up on explicit request
        return await self.matcher.match(job, constraints)

    def skip(self, job: ReconciliationJob) -> CellState:
        self.store.register(job)
        return self.store.transition(job.key, CellState(status=CellStatus.SKIPPED))

    def accept(self, job: ReconciliationJob, candidate: Candidate) -> CellState:
        """Record a reviewer's choice of ``candidate`` for ``job``.

        Accepting the candidate a cell is already reconciled to is a no-op;
        a reconciled cell cannot be switched to a different candidate.
        """

        current = self.store.register(job)
        if current.status is CellStatus.RECONCILED and current.selected_match != candidate:
            msg = f"{job.key} is already reconciled to another candidate"
            raise InvalidTransitionError(msg)
        matches = current.matches or (candidate,)
        return self.store.transition(
            job.key,
            CellState(
                status=CellStatus.RECONCILED,
                matches=matches,
                selected_match=candidate,
                acceptance=Acceptance(
                    auto_accepted=False,
                    reason=MANUAL_ACCEPT_REASON,
                    score=candidate.score,
                ),
            ),
        )
