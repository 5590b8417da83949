"""Turn ranked candidates, dates and errors into job outcomes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from kbrecon.domain.model import (
    Acceptance,
    AutoAccepted,
    MatchesAvailable,
    NoMatches,
    ReconciliationFailed,
)

from .errors import classify_error, is_retryable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from kbrecon.domain.model import Candidate, ReconciliationOutcome, TemporalValue

    from .errors import ErrorClassifier

AUTO_ACCEPT_THRESHOLD: Final = 100.0
AUTO_ACCEPT_REASON: Final = "100% confidence match"
DATE_ACCEPT_REASON: Final = "date value"


def classify_candidates(
    ranked: Sequence[Candidate],
    *,
    threshold: float = AUTO_ACCEPT_THRESHOLD,
) -> ReconciliationOutcome:
    """Classify candidates already sorted by descending score."""

    if not ranked:
        return NoMatches()
    candidates = tuple(ranked)
    best = candidates[0]
    if best.score >= threshold:
        return AutoAccepted(
            selection=best,
            acceptance=Acceptance(auto_accepted=True, reason=AUTO_ACCEPT_REASON, score=best.score),
            candidates=candidates,
        )
    return MatchesAvailable(candidates=candidates)


def temporal_accepted(value: TemporalValue) -> AutoAccepted:
    return AutoAccepted(
        selection=value,
        acceptance=Acceptance(
            auto_accepted=True,
            reason=DATE_ACCEPT_REASON,
            precision=value.precision,
        ),
    )


def failure_from_exception(
    error: BaseException,
    classifier: ErrorClassifier = classify_error,
) -> ReconciliationFailed:
    message = str(error) or type(error).__name__
    return ReconciliationFailed(message=message, retryable=is_retryable(error, classifier))
