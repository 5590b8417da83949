"""Property constraint metadata and lookup hints."""

from __future__ import annotations

from dataclasses import dataclass, field

from kbrecon.domain.model.enums import Datatype


@dataclass(frozen=True, slots=True, kw_only=True)
class FormatPattern:
    regex: str
    description: str = ""
    deprecated: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class PropertyConstraints:
    """Constraints declared for a property by the knowledge base."""

    expected_entity_types: frozenset[str] = field(default_factory=frozenset)
    format_patterns: tuple[FormatPattern, ...] = ()
    datatype: Datatype | None = None

    @property
    def active_format_patterns(self) -> tuple[FormatPattern, ...]:
        return tuple(pattern for pattern in self.format_patterns if not pattern.deprecated)


@dataclass(frozen=True, slots=True)
class ContextHint:
    """Auxiliary property/value pair sent to the lookup service to disambiguate."""

    property_id: str
    value: str


@dataclass(frozen=True, slots=True, kw_only=True)
class LookupHints:
    type_hints: tuple[str, ...] = ()
    context_hints: tuple[ContextHint, ...] = ()
