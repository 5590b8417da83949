"""SQLAlchemy adapter package for kbrecon."""

from __future__ import annotations

from .mappings import cell_state_table, create_all_tables, metadata
from .store import (
    SqlAlchemyReconciliationStore,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyReconciliationStore",
    "StartupError",
    "cell_state_table",
    "create_all_tables",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
