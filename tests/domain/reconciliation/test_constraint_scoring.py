from __future__ import annotations

import pytest

from kbrecon.domain.model import (
    Candidate,
    Datatype,
    FormatPattern,
    PropertyConstraints,
    SourceTier,
)
from kbrecon.domain.reconciliation import ConstraintScorer, positional_score
from kbrecon.domain.reconciliation.scoring import (
    FALLBACK_SEARCH_SCORE,
    MAX_BOOST,
    candidates_from_matches,
)
from tests.helpers.lookups import match


def _candidate(
    entity_id: str = "Q1",
    score: float = 90.0,
    *,
    types: frozenset[str] = frozenset(),
    tier: SourceTier = SourceTier.PRIMARY_LOOKUP,
) -> Candidate:
    return Candidate(
        id=entity_id,
        label=entity_id,
        score=score,
        original_score=score,
        entity_types=types,
        source_tier=tier,
    )


def test_type_mismatch_and_format_violation_compound() -> None:
    constraints = PropertyConstraints(
        expected_entity_types=frozenset({"Q5"}),
        format_patterns=(FormatPattern(regex=r"^\d+$"),),
    )

    scored = ConstraintScorer().score(
        _candidate(types=frozenset({"Q515"})), constraints, "not digits"
    )

    assert scored.score == pytest.approx(50.4)
    assert scored.original_score == 90.0
    assert scored.constraint_score == pytest.approx(0.56)
    assert scored.adjustments == ("type-mismatch", "format-violation")


def test_matching_type_is_not_penalized() -> None:
    constraints = PropertyConstraints(expected_entity_types=frozenset({"Q5", "Q43229"}))

    scored = ConstraintScorer().score(_candidate(types=frozenset({"Q5"})), constraints, "x")

    assert scored.score == 90.0
    assert scored.adjustments == ()


def test_boosts_are_capped() -> None:
    constraints = PropertyConstraints(
        format_patterns=(FormatPattern(regex=r"^Q"),),
        datatype=Datatype.ENTITY_REFERENCE,
    )

    scored = ConstraintScorer().score(_candidate("Q42", 80.0), constraints, "Q-shaped value")

    assert scored.constraint_score == pytest.approx(MAX_BOOST)
    assert scored.score == pytest.approx(96.0)
    assert scored.adjustments == ("format-match", "entity-id")


def test_final_score_is_clamped_to_100() -> None:
    constraints = PropertyConstraints(datatype=Datatype.EXTERNAL_ID)

    scored = ConstraintScorer().score(_candidate(score=95.0), constraints, "x")

    assert scored.score == 100.0


def test_external_id_boost_only_for_primary_tier() -> None:
    constraints = PropertyConstraints(datatype=Datatype.EXTERNAL_ID)

    scored = ConstraintScorer().score(
        _candidate(score=80.0, tier=SourceTier.FALLBACK_SEARCH), constraints, "x"
    )

    assert scored.score == 80.0


def test_entity_reference_boost_requires_id_shape() -> None:
    constraints = PropertyConstraints(datatype=Datatype.ENTITY_REFERENCE)
    scorer = ConstraintScorer()

    assert scorer.score(_candidate("Q7", 50.0), constraints, "x").score == pytest.approx(55.0)
    assert scorer.score(_candidate("L7", 50.0), constraints, "x").score == 50.0
    custom = ConstraintScorer(entity_id_pattern=r"^E\d+$")
    assert custom.score(_candidate("E7", 50.0), constraints, "x").score == pytest.approx(55.0)


def test_deprecated_and_invalid_patterns_are_ignored() -> None:
    constraints = PropertyConstraints(
        format_patterns=(
            FormatPattern(regex=r"^\d+$", deprecated=True),
            FormatPattern(regex=r"([unclosed"),
        )
    )

    scored = ConstraintScorer().score(_candidate(score=70.0), constraints, "abc")

    assert scored.score == 70.0
    assert scored.adjustments == ()


def test_format_patterns_search_anywhere_in_value() -> None:
    constraints = PropertyConstraints(format_patterns=(FormatPattern(regex=r"\d{4}"),))

    scored = ConstraintScorer().score(_candidate(score=50.0), constraints, "ISBN 1234 x")

    assert scored.score == pytest.approx(55.0)


def test_no_constraints_leaves_candidate_unchanged() -> None:
    candidate = _candidate()

    assert ConstraintScorer().score(candidate, None, "x") is candidate


def test_rescoring_uses_original_score() -> None:
    constraints = PropertyConstraints(expected_entity_types=frozenset({"Q5"}))
    scorer = ConstraintScorer()

    once = scorer.score(_candidate(), constraints, "x")
    twice = scorer.score(once, constraints, "x")

    assert twice.score == once.score


@pytest.mark.parametrize(
    ("original", "constraints"),
    [
        (100.0, PropertyConstraints(datatype=Datatype.EXTERNAL_ID)),
        (0.0, PropertyConstraints(expected_entity_types=frozenset({"Q5"}))),
        (
            60.0,
            PropertyConstraints(
                format_patterns=(FormatPattern(regex=r"^x"),),
                datatype=Datatype.ENTITY_REFERENCE,
            ),
        ),
        (
            99.0,
            PropertyConstraints(
                expected_entity_types=frozenset({"Q5"}),
                format_patterns=(FormatPattern(regex=r"^y"),),
                datatype=Datatype.EXTERNAL_ID,
            ),
        ),
    ],
)
def test_scores_stay_within_bounds(original: float, constraints: PropertyConstraints) -> None:
    scored = ConstraintScorer().score(_candidate("Q1", original), constraints, "x")

    assert 0.0 <= scored.score <= 100.0
    assert scored.score <= original * MAX_BOOST + 1e-9


def test_rank_sorts_descending_and_keeps_every_candidate() -> None:
    constraints = PropertyConstraints(expected_entity_types=frozenset({"Q5"}))
    candidates = [
        _candidate("Q1", 90.0, types=frozenset({"Q515"})),
        _candidate("Q2", 70.0, types=frozenset({"Q5"})),
        _candidate("Q3", 65.0, types=frozenset({"Q5"})),
    ]

    ranked = ConstraintScorer().rank(candidates, constraints, "x")

    assert [c.id for c in ranked] == ["Q2", "Q3", "Q1"]
    assert ranked[-1].score == pytest.approx(63.0)


def test_positional_score_floor() -> None:
    assert positional_score(0) == 100.0
    assert positional_score(3) == 70.0
    assert positional_score(9) == 10.0
    assert positional_score(15) == 10.0


def test_candidates_from_matches_assigns_base_scores() -> None:
    candidates = candidates_from_matches(
        [
            match("Q1"),
            match("Q2", score=42.5),
            match("Q3"),
            match("Q4", score=12.0, tier=SourceTier.FALLBACK_SEARCH),
        ]
    )

    assert [c.score for c in candidates] == [100.0, 42.5, 80.0, FALLBACK_SEARCH_SCORE]
    assert all(c.score == c.original_score for c in candidates)
    assert candidates[3].source_tier is SourceTier.FALLBACK_SEARCH
