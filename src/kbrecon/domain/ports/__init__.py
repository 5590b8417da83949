"""Domain port definitions for adapters."""

from __future__ import annotations

from .hints import ConstraintsProvider, HintProvider
from .lookup import CandidateLookup, LookupQuery
from .store import ReconciliationStore

__all__ = [
    "CandidateLookup",
    "ConstraintsProvider",
    "HintProvider",
    "LookupQuery",
    "ReconciliationStore",
]
