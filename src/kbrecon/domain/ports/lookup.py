"""Ports for candidate lookups against external endpoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from kbrecon.domain.model import ContextHint, LookupMatch


@dataclass(frozen=True, slots=True, kw_only=True)
class LookupQuery:
    """Structured query sent to a lookup endpoint.

    ``type_filter`` narrows candidates to the given entity types and
    ``property_filter`` carries disambiguating property/value pairs. Free-text
    endpoints only use ``text``.
    """

    text: str
    type_filter: tuple[str, ...] = ()
    property_filter: tuple[ContextHint, ...] = ()


@runtime_checkable
class CandidateLookup(Protocol):
    """One external endpoint that returns candidate matches for a query.

    Implementations raise ``LookupFailure`` for every transport or protocol
    problem so callers can classify it.
    """

    @property
    def endpoint(self) -> str: ...

    async def lookup(self, query: LookupQuery) -> list[LookupMatch]: ...
