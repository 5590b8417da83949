"""Reconciliation engine: lookup scheduling, scoring, batching and cell state.

Flow for one job::

    constraints -> route -> (date | pass-through | lookup)
    lookup: hints -> RetryingScheduler.resolve -> ConstraintScorer.rank -> classify
    result -> ReconciliationStore.transition
"""

from __future__ import annotations

from .batch import BatchCoordinator, BatchSummary, OutcomeCallback
from .circuit import CircuitGuard, CircuitState
from .classify import AUTO_ACCEPT_THRESHOLD, classify_candidates
from .errors import (
    CircuitOpenError,
    ErrorClassifier,
    LookupFailure,
    classify_error,
    is_retryable,
)
from .hints import ConstraintHintProvider
from .interactive import InteractiveReconciler
from .matcher import EntityMatcher, JobRoute
from .pacing import BucketTally, PacingPolicy
from .retry import FALLBACK_RETRY_POLICY, PRIMARY_RETRY_POLICY, RetryPolicy
from .scheduler import Degraded, LookupOutcome, Resolved, RetryingScheduler
from .scoring import ConstraintScorer, positional_score
from .store import (
    InMemoryReconciliationStore,
    InvalidTransitionError,
    UnknownCellError,
    apply_transition,
    state_for_outcome,
)
from .temporal import looks_like_date, parse_temporal

__all__ = [
    "AUTO_ACCEPT_THRESHOLD",
    "FALLBACK_RETRY_POLICY",
    "PRIMARY_RETRY_POLICY",
    "BatchCoordinator",
    "BatchSummary",
    "BucketTally",
    "CircuitGuard",
    "CircuitOpenError",
    "CircuitState",
    "ConstraintHintProvider",
    "ConstraintScorer",
    "Degraded",
    "EntityMatcher",
    "ErrorClassifier",
    "InMemoryReconciliationStore",
    "InteractiveReconciler",
    "InvalidTransitionError",
    "JobRoute",
    "LookupFailure",
    "LookupOutcome",
    "OutcomeCallback",
    "PacingPolicy",
    "Resolved",
    "RetryPolicy",
    "RetryingScheduler",
    "UnknownCellError",
    "apply_transition",
    "classify_candidates",
    "classify_error",
    "is_retryable",
    "looks_like_date",
    "parse_temporal",
    "positional_score",
    "state_for_outcome",
]
