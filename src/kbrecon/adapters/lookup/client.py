"""HTTP clients for the two lookup tiers."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Any, Unpack

import httpx
from pydantic import ValidationError

from kbrecon.adapters.http_resilience import ResilientClient
from kbrecon.config.lookup import DEFAULT_LANGUAGE, FALLBACK_RESULT_LIMIT
from kbrecon.domain.model import ErrorCategory, LookupMatch, SourceTier
from kbrecon.domain.reconciliation.errors import LookupFailure

from .schema import SearchResponse, ServiceResponse

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from kbrecon.adapters.http_resilience import RequestOptions
    from kbrecon.config.http_resilience import ResilienceConfig
    from kbrecon.domain.ports import LookupQuery

log = getLogger(__name__)

QUERY_KEY = "q0"

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def build_service_queries(query: LookupQuery) -> str:
    """Serialize ``query`` into the ``queries`` form field of the reconciliation API."""

    body: dict[str, Any] = {"query": query.text}
    if query.type_filter:
        body["type"] = list(query.type_filter)
    if query.property_filter:
        body["properties"] = [
            {"pid": hint.property_id, "v": hint.value} for hint in query.property_filter
        ]
    return json.dumps({QUERY_KEY: body})


class _HttpLookup:
    """Shared transport handling: one lazily created ``ResilientClient`` per lookup."""

    def __init__(
        self,
        resilience: ResilienceConfig,
        *,
        client_factory: ClientFactory | None = None,
    ) -> None:
        if resilience.base_url is None:
            raise ValueError(f"Missing base_url for lookup endpoint {resilience.name}")
        self._resilience = resilience
        self._url: str = resilience.base_url
        self._client_factory = client_factory or _default_client_factory
        self._client: ResilientClient | None = None

    @property
    def endpoint(self) -> str:
        return self._resilience.name

    async def __aenter__(self) -> _HttpLookup:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    def _get_client(self) -> ResilientClient:
        if self._client is None:
            self._client = self._client_factory(self._resilience)
        return self._client

    def _failure(
        self,
        message: str,
        category: ErrorCategory,
        *,
        status_code: int | None = None,
    ) -> LookupFailure:
        return LookupFailure(
            f"{self.endpoint}: {message}",
            category=category,
            endpoint=self.endpoint,
            status_code=status_code,
        )

    async def _fetch_json(self, method: str, **options: Unpack[RequestOptions]) -> object:
        client = self._get_client()
        try:
            response = await client.request(method, self._url, **options)
        except httpx.TimeoutException as exc:
            raise self._failure(
                f"Request timeout after {self._resilience.timeout_seconds}s",
                ErrorCategory.TRANSIENT_NETWORK,
            ) from exc
        except httpx.TransportError as exc:
            raise self._failure(
                f"Network error: {exc}", ErrorCategory.TRANSIENT_NETWORK
            ) from exc

        status = response.status_code
        if status == httpx.codes.TOO_MANY_REQUESTS:
            raise self._failure(
                "Rate limited (429)", ErrorCategory.RATE_LIMITED, status_code=status
            )
        if status >= httpx.codes.INTERNAL_SERVER_ERROR:
            raise self._failure(
                f"Server error ({status})", ErrorCategory.SERVER_FAULT, status_code=status
            )
        if status >= httpx.codes.BAD_REQUEST:
            raise self._failure(
                f"HTTP error ({status})", ErrorCategory.PERMANENT_REQUEST, status_code=status
            )

        try:
            return response.json()
        except ValueError as exc:
            raise self._failure(
                "Invalid JSON response", ErrorCategory.PERMANENT_REQUEST, status_code=status
            ) from exc


class ReconciliationServiceClient(_HttpLookup):
    """Primary tier: structured queries against a reconciliation service."""

    async def lookup(self, query: LookupQuery) -> list[LookupMatch]:
        payload = await self._fetch_json(
            "POST",
            data={"queries": build_service_queries(query)},
        )
        try:
            parsed = ServiceResponse.model_validate(payload)
        except ValidationError as exc:
            raise self._failure(
                f"Unexpected response payload: {exc.error_count()} validation errors",
                ErrorCategory.PERMANENT_REQUEST,
            ) from exc

        return [
            LookupMatch(
                id=result.id,
                label=result.name or result.id,
                description=result.description or "",
                score=result.score,
                entity_types=result.type_ids,
                source_tier=SourceTier.PRIMARY_LOOKUP,
            )
            for result in parsed.results_for(QUERY_KEY)
        ]


class EntitySearchClient(_HttpLookup):
    """Fallback tier: free-text entity search. Results carry no score."""

    def __init__(
        self,
        resilience: ResilienceConfig,
        *,
        language: str = DEFAULT_LANGUAGE,
        limit: int = FALLBACK_RESULT_LIMIT,
        client_factory: ClientFactory | None = None,
    ) -> None:
        super().__init__(resilience, client_factory=client_factory)
        self._language = language
        self._limit = limit

    async def lookup(self, query: LookupQuery) -> list[LookupMatch]:
        params = {
            "action": "wbsearchentities",
            "search": query.text,
            "language": self._language,
            "format": "json",
            "limit": str(self._limit),
        }
        payload = await self._fetch_json("GET", params=params)
        try:
            parsed = SearchResponse.model_validate(payload)
        except ValidationError as exc:
            raise self._failure(
                f"Unexpected response payload: {exc.error_count()} validation errors",
                ErrorCategory.PERMANENT_REQUEST,
            ) from exc

        if parsed.error is not None:
            raise self._failure(
                f"API error: {parsed.error.info or parsed.error.code or 'unknown'}",
                ErrorCategory.PERMANENT_REQUEST,
            )

        return [
            LookupMatch(
                id=hit.id,
                label=hit.label or hit.id,
                description=hit.description or "",
                score=None,
                source_tier=SourceTier.FALLBACK_SEARCH,
            )
            for hit in parsed.search[: self._limit]
        ]
