"""Collaborator ports that describe properties to the matching engine."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from kbrecon.domain.model import LookupHints, PropertyConstraints, ReconciliationJob

type ConstraintsProvider = Callable[[str], PropertyConstraints | None]


class HintProvider(Protocol):
    """Derive type and context hints for one job."""

    def __call__(
        self,
        job: ReconciliationJob,
        constraints: PropertyConstraints | None,
    ) -> LookupHints: ...
