"""Persistence port for per-cell reconciliation state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator

    from kbrecon.domain.model import CellState, JobKey, ReconciliationJob


@runtime_checkable
class ReconciliationStore(Protocol):
    """Ledger of cell states keyed by ``(item_id, property_id, value_index)``."""

    def register(self, job: ReconciliationJob) -> CellState:
        """Create a pending cell for ``job`` unless one exists; return the current state."""
        ...

    def get(self, key: JobKey) -> CellState: ...

    def transition(self, key: JobKey, new_state: CellState) -> CellState: ...

    def items(self) -> Iterator[tuple[JobKey, CellState]]: ...
