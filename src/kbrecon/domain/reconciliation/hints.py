"""Default lookup hints derived from property constraints and property names."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from kbrecon.domain.model import ContextHint, LookupHints

if TYPE_CHECKING:
    from collections.abc import Mapping

    from kbrecon.domain.model import PropertyConstraints, ReconciliationJob

INSTANCE_OF: Final = "P31"
HUMAN: Final = "Q5"
ORGANIZATION: Final = "Q43229"
PUBLISHER: Final = "Q2085381"
ENTITY: Final = "Q35120"
GENRE: Final = "Q483394"
LANGUAGE: Final = "Q34770"
LOCATION: Final = "Q17334923"
COUNTRY: Final = "Q6256"
CITY: Final = "Q515"

SUGGESTED_TYPES: Final[Mapping[str, tuple[str, ...]]] = {
    "creator": (HUMAN, ORGANIZATION),
    "author": (HUMAN,),
    "publisher": (PUBLISHER, ORGANIZATION),
    "editor": (HUMAN,),
    "contributor": (HUMAN, ORGANIZATION),
    "copyrightholder": (HUMAN, ORGANIZATION),
    "director": (HUMAN,),
    "performer": (HUMAN,),
    "subject": (ENTITY,),
    "genre": (GENRE,),
    "language": (LANGUAGE,),
    "place": (LOCATION,),
    "location": (LOCATION,),
    "country": (COUNTRY,),
    "city": (CITY,),
}

# knowledge-base property id -> extra context for disambiguation
PROPERTY_CONTEXT: Final[Mapping[str, ContextHint]] = {
    "P50": ContextHint(INSTANCE_OF, HUMAN),
    "P276": ContextHint(INSTANCE_OF, LOCATION),
    "P407": ContextHint(INSTANCE_OF, LANGUAGE),
}

_NON_LETTERS: Final = re.compile(r"[^a-z]")


def property_local_name(property_id: str) -> str:
    """``"schema:copyrightHolder"`` -> ``"copyrightholder"``."""

    local = re.split(r"[:/#]", property_id)[-1]
    return _NON_LETTERS.sub("", local.lower())


def suggested_entity_types(property_id: str) -> tuple[str, ...]:
    return SUGGESTED_TYPES.get(property_local_name(property_id), (ENTITY,))


class ConstraintHintProvider:
    """Build type and context hints for a job.

    Type hints come from the property's expected entity types when it has
    any, otherwise from a property-name heuristic. ``knowledge_base_ids`` maps
    a job's property mapping id to the knowledge-base property it stands for
    (identity when absent).
    """

    def __init__(self, knowledge_base_ids: Mapping[str, str] | None = None) -> None:
        self._knowledge_base_ids = dict(knowledge_base_ids or {})

    def __call__(
        self,
        job: ReconciliationJob,
        constraints: PropertyConstraints | None,
    ) -> LookupHints:
        expected = sorted(constraints.expected_entity_types) if constraints else []
        type_hints = tuple(expected) if expected else suggested_entity_types(job.property_id)

        context: list[ContextHint] = []
        if expected:
            context.append(ContextHint(INSTANCE_OF, expected[0]))
        kb_property = self._knowledge_base_ids.get(job.property_id, job.property_id)
        extra = PROPERTY_CONTEXT.get(kb_property)
        if extra is not None and extra not in context:
            context.append(extra)

        return LookupHints(type_hints=type_hints, context_hints=tuple(context))
