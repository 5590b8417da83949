"""Lookup failure types and the central error classifier.

Transport adapters raise ``LookupFailure`` with a structured category. Errors
that arrive without one (anything raised by collaborator code) are classified
by matching their message against ``RETRYABLE_VOCABULARY``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, Protocol

from kbrecon.domain.model import ErrorCategory

if TYPE_CHECKING:
    from collections.abc import Mapping

RETRYABLE_VOCABULARY: Final[Mapping[str, ErrorCategory]] = {
    "timeout": ErrorCategory.TRANSIENT_NETWORK,
    "rate limited": ErrorCategory.RATE_LIMITED,
    "server error": ErrorCategory.SERVER_FAULT,
    "fetch": ErrorCategory.TRANSIENT_NETWORK,
    "network": ErrorCategory.TRANSIENT_NETWORK,
    "temporarily disabled": ErrorCategory.CIRCUIT_OPEN,
}


class LookupFailure(RuntimeError):
    """Raised when a lookup endpoint call fails."""

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory,
        endpoint: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.endpoint = endpoint
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.category.retryable


class CircuitOpenError(LookupFailure):
    """Raised locally when the circuit guard blocks a call."""

    def __init__(self, endpoint: str) -> None:
        super().__init__(
            f"{endpoint} API temporarily disabled due to repeated failures",
            category=ErrorCategory.CIRCUIT_OPEN,
            endpoint=endpoint,
        )


class ErrorClassifier(Protocol):
    def __call__(self, error: BaseException) -> ErrorCategory | None: ...


def category_from_message(message: str) -> ErrorCategory | None:
    lowered = message.lower()
    for needle, category in RETRYABLE_VOCABULARY.items():
        if needle in lowered:
            return category
    return None


def classify_error(error: BaseException) -> ErrorCategory | None:
    """Return the failure category of ``error`` or ``None`` when unknown."""

    category = getattr(error, "category", None)
    if isinstance(category, ErrorCategory):
        return category
    if isinstance(error, TimeoutError):
        return ErrorCategory.TRANSIENT_NETWORK
    return category_from_message(str(error))


def is_retryable(error: BaseException, classifier: ErrorClassifier = classify_error) -> bool:
    category = classifier(error)
    return category is not None and category.retryable
