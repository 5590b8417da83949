"""Constraint-based candidate scoring.

Each candidate's ``original_score`` is multiplied by a factor derived from the
property's constraints:

* expected entity types declared and none shared with the candidate: x0.7
* any active format pattern failing: x0.8; all of them passing: x1.1
* external-id datatype on a primary-tier candidate: x1.2
* entity-reference datatype with an id of the expected shape: x1.1

Penalties compound freely. Boosts compound up to ``MAX_BOOST`` so a final
score never exceeds ``original_score * MAX_BOOST``. The result is clamped to
``[0, 100]``.
"""

from __future__ import annotations

import re
from dataclasses import replace
from functools import lru_cache
from logging import getLogger
from typing import TYPE_CHECKING, Final

from kbrecon.domain.model import Candidate, Datatype, SourceTier

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from kbrecon.domain.model import LookupMatch, PropertyConstraints

log = getLogger(__name__)

TYPE_MISMATCH_PENALTY: Final = 0.7
FORMAT_VIOLATION_PENALTY: Final = 0.8
FORMAT_MATCH_BOOST: Final = 1.1
EXTERNAL_ID_BOOST: Final = 1.2
ENTITY_ID_BOOST: Final = 1.1
MAX_BOOST: Final = 1.2

FALLBACK_SEARCH_SCORE: Final = 80.0
MIN_POSITIONAL_SCORE: Final = 10.0
DEFAULT_ENTITY_ID_PATTERN: Final = r"^Q\d+$"


def positional_score(rank: int) -> float:
    """Score assigned to an unscored service result at ``rank`` (0-based)."""

    return max(100.0 - 10.0 * rank, MIN_POSITIONAL_SCORE)


def candidates_from_matches(matches: Sequence[LookupMatch]) -> list[Candidate]:
    """Turn raw lookup results into unadjusted candidates."""

    candidates: list[Candidate] = []
    for rank, match in enumerate(matches):
        if match.source_tier is SourceTier.FALLBACK_SEARCH:
            base = FALLBACK_SEARCH_SCORE
        elif match.score is None:
            base = positional_score(rank)
        else:
            base = _clamp(match.score)
        candidates.append(
            Candidate(
                id=match.id,
                label=match.label,
                description=match.description,
                score=base,
                original_score=base,
                entity_types=match.entity_types,
                source_tier=match.source_tier,
            )
        )
    return candidates


@lru_cache(maxsize=256)
def _compile(pattern: str) -> re.Pattern[str] | None:
    try:
        return re.compile(pattern)
    except re.error as exc:
        log.warning("Ignoring invalid format pattern %r: %s", pattern, exc)
        return None


def _clamp(value: float) -> float:
    return min(100.0, max(0.0, value))


class ConstraintScorer:
    """Re-weights candidates with property constraints. Never adds or drops any."""

    def __init__(self, *, entity_id_pattern: str = DEFAULT_ENTITY_ID_PATTERN) -> None:
        self._entity_id_pattern = re.compile(entity_id_pattern)

    def score(
        self,
        candidate: Candidate,
        constraints: PropertyConstraints | None,
        original_value: str,
    ) -> Candidate:
        if constraints is None:
            return candidate

        penalty = 1.0
        boost = 1.0
        adjustments: list[str] = []

        if constraints.expected_entity_types and constraints.expected_entity_types.isdisjoint(
            candidate.entity_types
        ):
            penalty *= TYPE_MISMATCH_PENALTY
            adjustments.append("type-mismatch")

        compiled = [
            regex
            for regex in (_compile(p.regex) for p in constraints.active_format_patterns)
            if regex is not None
        ]
        if compiled:
            if all(regex.search(original_value) for regex in compiled):
                boost *= FORMAT_MATCH_BOOST
                adjustments.append("format-match")
            else:
                penalty *= FORMAT_VIOLATION_PENALTY
                adjustments.append("format-violation")

        if (
            constraints.datatype is Datatype.EXTERNAL_ID
            and candidate.source_tier is SourceTier.PRIMARY_LOOKUP
        ):
            boost *= EXTERNAL_ID_BOOST
            adjustments.append("external-id")
        elif constraints.datatype is Datatype.ENTITY_REFERENCE and self._entity_id_pattern.match(
            candidate.id
        ):
            boost *= ENTITY_ID_BOOST
            adjustments.append("entity-id")

        factor = penalty * min(boost, MAX_BOOST)
        return replace(
            candidate,
            score=_clamp(candidate.original_score * factor),
            constraint_score=factor,
            adjustments=tuple(adjustments),
        )

    def rank(
        self,
        candidates: Iterable[Candidate],
        constraints: PropertyConstraints | None,
        original_value: str,
    ) -> list[Candidate]:
        """Score every candidate and sort by score, highest first (stable)."""

        scored = [self.score(c, constraints, original_value) for c in candidates]
        return sorted(scored, key=lambda candidate: candidate.score, reverse=True)
