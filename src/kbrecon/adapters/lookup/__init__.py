"""Lookup adapters for the reconciliation service and the entity search API."""

from __future__ import annotations

from .client import EntitySearchClient, ReconciliationServiceClient, build_service_queries

__all__ = ["EntitySearchClient", "ReconciliationServiceClient", "build_service_queries"]
