"""Candidate matches and selected values."""

from __future__ import annotations

from dataclasses import dataclass, field

from kbrecon.domain.model.enums import DatePrecision, SourceTier


@dataclass(frozen=True, slots=True, kw_only=True)
class LookupMatch:
    """A raw result as returned by one lookup endpoint, before scoring."""

    id: str
    label: str
    description: str = ""
    score: float | None = None
    entity_types: frozenset[str] = field(default_factory=frozenset)
    source_tier: SourceTier = SourceTier.PRIMARY_LOOKUP


@dataclass(frozen=True, slots=True, kw_only=True)
class Candidate:
    """A proposed match for one job.

    ``original_score`` is the score before constraint adjustment and
    ``constraint_score`` the multiplicative factor that was applied to it.
    """

    id: str
    label: str
    description: str = ""
    score: float
    original_score: float
    constraint_score: float = 1.0
    entity_types: frozenset[str] = field(default_factory=frozenset)
    source_tier: SourceTier = SourceTier.PRIMARY_LOOKUP
    adjustments: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 100.0:
            raise ValueError(f"Candidate score out of range: {self.score}")


@dataclass(frozen=True, slots=True, kw_only=True)
class TemporalValue:
    """A date value resolved locally, without a lookup."""

    date: str
    precision: DatePrecision
    display_value: str


type Selection = Candidate | TemporalValue
