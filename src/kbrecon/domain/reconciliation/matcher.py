"""Single-job matching pipeline shared by the batch and interactive paths."""

from __future__ import annotations

from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from kbrecon.domain.model import Datatype, NoMatches, ReconciliationFailed

from .classify import (
    AUTO_ACCEPT_THRESHOLD,
    classify_candidates,
    failure_from_exception,
    temporal_accepted,
)
from .errors import classify_error
from .hints import ConstraintHintProvider
from .scoring import ConstraintScorer
from .temporal import parse_temporal

if TYPE_CHECKING:
    from kbrecon.domain.model import PropertyConstraints, ReconciliationJob, ReconciliationOutcome
    from kbrecon.domain.ports import ConstraintsProvider, HintProvider

    from .errors import ErrorClassifier
    from .scheduler import RetryingScheduler

log = getLogger(__name__)


class JobRoute(StrEnum):
    TEMPORAL = "temporal"
    PASS_THROUGH = "pass-through"
    LOOKUP = "lookup"


def _no_constraints(_property_id: str) -> PropertyConstraints | None:
    return None


class EntityMatcher:
    """Route a job, then resolve, score and classify it.

    ``constraints_provider`` and ``hint_provider`` are caller code; any
    exception they raise becomes a ``ReconciliationFailed`` outcome whose
    ``retryable`` flag comes from ``classifier``.
    """

    def __init__(
        self,
        *,
        scheduler: RetryingScheduler,
        scorer: ConstraintScorer | None = None,
        constraints_provider: ConstraintsProvider | None = None,
        hint_provider: HintProvider | None = None,
        classifier: ErrorClassifier = classify_error,
        auto_accept_threshold: float = AUTO_ACCEPT_THRESHOLD,
    ) -> None:
        self.scheduler = scheduler
        self.scorer = scorer or ConstraintScorer()
        self._constraints_provider = constraints_provider or _no_constraints
        self._hint_provider = hint_provider or ConstraintHintProvider()
        self.classifier = classifier
        self.auto_accept_threshold = auto_accept_threshold

    def constraints_for(self, job: ReconciliationJob) -> PropertyConstraints | None:
        return self._constraints_provider(job.property_id)

    def route(self, job: ReconciliationJob, constraints: PropertyConstraints | None) -> JobRoute:
        datatype = constraints.datatype if constraints is not None else None
        if datatype is Datatype.TIME:
            return JobRoute.TEMPORAL
        if datatype is None:
            return JobRoute.TEMPORAL if parse_temporal(job.value) else JobRoute.LOOKUP
        if datatype.requires_reconciliation:
            return JobRoute.LOOKUP
        return JobRoute.PASS_THROUGH

    def temporal_outcome(self, job: ReconciliationJob) -> ReconciliationOutcome:
        value = parse_temporal(job.value)
        if value is None:
            return ReconciliationFailed(
                message=f"Unrecognized date value: {job.value!r}",
                retryable=False,
            )
        return temporal_accepted(value)

    async def match(
        self,
        job: ReconciliationJob,
        constraints: PropertyConstraints | None,
    ) -> ReconciliationOutcome:
        """Look the job up and classify the ranked candidates. Never raises lookup errors."""

        if not job.value:
            return NoMatches()
        try:
            hints = self._hint_provider(job, constraints)
        except Exception as exc:  # noqa: BLE001
            log.warning("Hint building failed for %s: %s", job.key, exc)
            return failure_from_exception(exc, self.classifier)

        resolved = await self.scheduler.resolve(job.value, hints.type_hints, hints.context_hints)
        ranked = self.scorer.rank(resolved.candidates, constraints, job.value)
        return classify_candidates(ranked, threshold=self.auto_accept_threshold)
