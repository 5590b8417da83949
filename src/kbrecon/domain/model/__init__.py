"""Public domain model surface."""

from __future__ import annotations

from kbrecon.domain.model.candidates import Candidate, LookupMatch, Selection, TemporalValue
from kbrecon.domain.model.constraints import (
    ContextHint,
    FormatPattern,
    LookupHints,
    PropertyConstraints,
)
from kbrecon.domain.model.enums import (
    CellStatus,
    Datatype,
    DatePrecision,
    ErrorCategory,
    OutcomeKind,
    SourceTier,
)
from kbrecon.domain.model.jobs import JobKey, ReconciliationJob
from kbrecon.domain.model.outcomes import (
    AutoAccepted,
    JobOutcome,
    MatchesAvailable,
    NoMatches,
    ReconciliationFailed,
    ReconciliationOutcome,
)
from kbrecon.domain.model.state import TERMINAL_STATUSES, Acceptance, CellState, ErrorInfo

__all__ = [
    "TERMINAL_STATUSES",
    "Acceptance",
    "AutoAccepted",
    "Candidate",
    "CellState",
    "CellStatus",
    "ContextHint",
    "DatePrecision",
    "Datatype",
    "ErrorCategory",
    "ErrorInfo",
    "FormatPattern",
    "JobKey",
    "JobOutcome",
    "LookupHints",
    "LookupMatch",
    "MatchesAvailable",
    "NoMatches",
    "OutcomeKind",
    "PropertyConstraints",
    "ReconciliationFailed",
    "ReconciliationJob",
    "ReconciliationOutcome",
    "Selection",
    "SourceTier",
    "TemporalValue",
]
