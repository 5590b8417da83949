"""Completion outcomes for one reconciliation job."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from kbrecon.domain.model.candidates import Candidate, TemporalValue
from kbrecon.domain.model.enums import OutcomeKind
from kbrecon.domain.model.jobs import ReconciliationJob
from kbrecon.domain.model.state import Acceptance


@dataclass(frozen=True, slots=True, kw_only=True)
class AutoAccepted:
    """The job was reconciled without human review.

    ``candidates`` holds the full ranked list for entity selections (the
    selection at rank 0) and is empty for temporal values.
    """

    selection: Candidate | TemporalValue
    acceptance: Acceptance
    candidates: tuple[Candidate, ...] = ()
    kind: Literal[OutcomeKind.AUTO_ACCEPTED] = OutcomeKind.AUTO_ACCEPTED


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchesAvailable:
    """Candidates were found but none is certain enough to accept."""

    candidates: tuple[Candidate, ...]
    kind: Literal[OutcomeKind.MATCHES_AVAILABLE] = OutcomeKind.MATCHES_AVAILABLE

    def __post_init__(self) -> None:
        if not self.candidates:
            raise ValueError("MatchesAvailable must include at least one candidate")

    @property
    def best(self) -> Candidate:
        return self.candidates[0]


@dataclass(frozen=True, slots=True, kw_only=True)
class NoMatches:
    kind: Literal[OutcomeKind.NO_MATCHES] = OutcomeKind.NO_MATCHES


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationFailed:
    message: str
    retryable: bool
    kind: Literal[OutcomeKind.FAILED] = OutcomeKind.FAILED


type ReconciliationOutcome = AutoAccepted | MatchesAvailable | NoMatches | ReconciliationFailed


@dataclass(frozen=True, slots=True)
class JobOutcome:
    job: ReconciliationJob
    outcome: ReconciliationOutcome
