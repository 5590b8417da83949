"""Local date detection and precision standardization.

Recognized forms::

    2023            year          early 2000s   decade
    2023-06         month         mid 1990      year
    2023-06-15      day           c. 2000       year
    6/15/2023       day (US)      circa 2000    year
    15-6-2023       day           1990-1995     year (start of range)
    15.6.2023       day           1990/1995     year (start of range)
    1990s           decade        June 15, 2023 / 15 Jun 2023   day

Anything else is tried as an ISO 8601 timestamp.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import TYPE_CHECKING, Final

from kbrecon.domain.model import DatePrecision, TemporalValue

if TYPE_CHECKING:
    from collections.abc import Callable

_YEAR: Final = re.compile(r"^(\d{4})$")
_YEAR_MONTH: Final = re.compile(r"^(\d{4})-(\d{2})$")
_ISO_DATE: Final = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_US_DATE: Final = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DASH_DATE: Final = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_DOT_DATE: Final = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")
_DECADE: Final = re.compile(r"^(\d{3})0s$")
_PERIOD: Final = re.compile(r"^(early|mid|late)\s+(\d{4})(s?)$", re.IGNORECASE)
_CIRCA: Final = re.compile(r"^(?:c\.\s*|circa\s+)(\d{4})$", re.IGNORECASE)
_RANGE: Final = re.compile(r"^(\d{4})[-/](\d{4})$")

_MONTH_NAME_FORMATS: Final = (
    "%B %d, %Y",
    "%B %d %Y",
    "%d %B %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %b %Y",
)

_MIN_ISO_LENGTH: Final = 4


def _day(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def _parse_numeric(value: str) -> TemporalValue | None:
    if match := _YEAR.match(value):
        return TemporalValue(date=match[1], precision=DatePrecision.YEAR, display_value=value)

    if match := _YEAR_MONTH.match(value):
        if not 1 <= int(match[2]) <= 12:
            return None
        return TemporalValue(date=value, precision=DatePrecision.MONTH, display_value=value)

    if match := _ISO_DATE.match(value):
        normalized = _day(int(match[1]), int(match[2]), int(match[3]))
        if normalized is None:
            return None
        return TemporalValue(date=normalized, precision=DatePrecision.DAY, display_value=value)

    if match := _US_DATE.match(value):
        normalized = _day(int(match[3]), int(match[1]), int(match[2]))
    elif match := _DASH_DATE.match(value) or _DOT_DATE.match(value):
        normalized = _day(int(match[3]), int(match[2]), int(match[1]))
    else:
        return None
    if normalized is None:
        return None
    return TemporalValue(date=normalized, precision=DatePrecision.DAY, display_value=value)


def _parse_decade(value: str) -> TemporalValue | None:
    if match := _DECADE.match(value):
        return TemporalValue(
            date=f"{match[1]}0", precision=DatePrecision.DECADE, display_value=value
        )
    if match := _PERIOD.match(value):
        precision = DatePrecision.DECADE if match[3] else DatePrecision.YEAR
        return TemporalValue(date=match[2], precision=precision, display_value=value)
    return None


def _parse_approximate(value: str) -> TemporalValue | None:
    if match := _CIRCA.match(value):
        return TemporalValue(date=match[1], precision=DatePrecision.YEAR, display_value=value)
    if match := _RANGE.match(value):
        return TemporalValue(date=match[1], precision=DatePrecision.YEAR, display_value=value)
    return None


def _parse_month_name(value: str) -> TemporalValue | None:
    for fmt in _MONTH_NAME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)  # noqa: DTZ007
        except ValueError:
            continue
        return TemporalValue(
            date=parsed.date().isoformat(), precision=DatePrecision.DAY, display_value=value
        )
    return None


def _parse_iso(value: str) -> TemporalValue | None:
    if len(value) < _MIN_ISO_LENGTH:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    return TemporalValue(
        date=parsed.date().isoformat(), precision=DatePrecision.DAY, display_value=value
    )


_PARSERS: Final[tuple[Callable[[str], TemporalValue | None], ...]] = (
    _parse_numeric,
    _parse_decade,
    _parse_approximate,
    _parse_month_name,
    _parse_iso,
)


def parse_temporal(raw_value: str) -> TemporalValue | None:
    """Parse ``raw_value`` into a normalized date with its precision, or ``None``."""

    value = " ".join(raw_value.split())
    if not value:
        return None
    for parser in _PARSERS:
        result = parser(value)
        if result is not None:
            return result
    return None


def looks_like_date(raw_value: str) -> bool:
    return parse_temporal(raw_value) is not None
