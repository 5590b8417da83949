"""Per-cell reconciliation state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from kbrecon.domain.model.candidates import Candidate, TemporalValue
from kbrecon.domain.model.enums import CellStatus, DatePrecision

TERMINAL_STATUSES: frozenset[CellStatus] = frozenset(
    {CellStatus.RECONCILED, CellStatus.NO_MATCH, CellStatus.SKIPPED}
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class ErrorInfo:
    message: str
    retryable: bool
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True, kw_only=True)
class Acceptance:
    """Qualifier recorded alongside a selection (why and how it was accepted)."""

    auto_accepted: bool
    reason: str
    score: float | None = None
    precision: DatePrecision | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CellState:
    status: CellStatus = CellStatus.PENDING
    matches: tuple[Candidate, ...] = ()
    selected_match: Candidate | TemporalValue | None = None
    error_info: ErrorInfo | None = None
    acceptance: Acceptance | None = None

    @property
    def is_terminal(self) -> bool:
        if self.status is CellStatus.ERROR:
            return self.error_info is None or not self.error_info.retryable
        return self.status in TERMINAL_STATUSES

    @property
    def is_retryable_error(self) -> bool:
        return (
            self.status is CellStatus.ERROR
            and self.error_info is not None
            and self.error_info.retryable
        )

    @property
    def awaiting_review(self) -> bool:
        """Pending with stored candidates: a reviewer has to pick one."""

        return self.status is CellStatus.PENDING and bool(self.matches)

    @property
    def best_match(self) -> Candidate | None:
        return self.matches[0] if self.matches else None
