"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class CellStatus(StrEnum):
    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    RECONCILED = "reconciled"
    NO_MATCH = "no-match"
    ERROR = "error"
    SKIPPED = "skipped"


class SourceTier(StrEnum):
    """Which lookup tier produced a candidate."""

    PRIMARY_LOOKUP = "primary-lookup"
    FALLBACK_SEARCH = "fallback-search"


class Datatype(StrEnum):
    """Value datatype declared for a property.

    Knowledge-base spellings (``wikibase-item``, ``globe-coordinate`` ...) are
    accepted as aliases when constructing from a string.
    """

    ENTITY_REFERENCE = "entity-reference"
    PROPERTY_REFERENCE = "property-reference"
    STRING = "string"
    EXTERNAL_ID = "external-id"
    URL = "url"
    QUANTITY = "quantity"
    TIME = "time"
    MONOLINGUAL_TEXT = "monolingual-text"
    MEDIA = "media"
    COORDINATE = "coordinate"

    @classmethod
    def _missing_(cls, value: object) -> Datatype | None:
        if not isinstance(value, str):
            return None
        return _DATATYPE_ALIASES.get(value.strip().lower())

    @property
    def requires_reconciliation(self) -> bool:
        return self in {Datatype.ENTITY_REFERENCE, Datatype.PROPERTY_REFERENCE}


_DATATYPE_ALIASES: dict[str, Datatype] = {
    "wikibase-item": Datatype.ENTITY_REFERENCE,
    "wikibase-property": Datatype.PROPERTY_REFERENCE,
    "monolingualtext": Datatype.MONOLINGUAL_TEXT,
    "commons-media": Datatype.MEDIA,
    "globe-coordinate": Datatype.COORDINATE,
    "point in time": Datatype.TIME,
}


class DatePrecision(StrEnum):
    DECADE = "decade"
    YEAR = "year"
    MONTH = "month"
    DAY = "day"

    @property
    def code(self) -> int:
        """Numeric precision used by the knowledge base (8 = decade ... 11 = day)."""

        return _PRECISION_CODES[self]


_PRECISION_CODES: dict[DatePrecision, int] = {
    DatePrecision.DECADE: 8,
    DatePrecision.YEAR: 9,
    DatePrecision.MONTH: 10,
    DatePrecision.DAY: 11,
}


class ErrorCategory(StrEnum):
    """Failure taxonomy for lookups."""

    TRANSIENT_NETWORK = "transient-network"
    RATE_LIMITED = "rate-limited"
    SERVER_FAULT = "server-fault"
    PERMANENT_REQUEST = "permanent-request"
    CIRCUIT_OPEN = "circuit-open"

    @property
    def retryable(self) -> bool:
        return self is not ErrorCategory.PERMANENT_REQUEST


class OutcomeKind(StrEnum):
    AUTO_ACCEPTED = "auto-accepted"
    MATCHES_AVAILABLE = "matches-available"
    NO_MATCHES = "no-matches"
    FAILED = "failed"
