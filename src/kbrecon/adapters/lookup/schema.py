"""Response schemas for the reconciliation service and the entity search API."""

from __future__ import annotations

import logging
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, RootModel, field_validator

log = logging.getLogger(__name__)

type EntityId = str


class LookupBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow")
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.debug(
            "Lookup %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


# Reconciliation service (structured queries)


class ServiceType(LookupBaseModel):
    id: EntityId
    name: str | None = None


class ServiceResult(LookupBaseModel):
    id: EntityId
    name: str = ""
    description: str | None = None
    score: float | None = None
    match: bool | None = None
    type: list[ServiceType] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def _coerce_score(cls, value: object) -> object:
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                return None
        return value

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_types(cls, value: object) -> object:
        # types arrive as {"id", "name"} objects or bare ids
        if value is None:
            return []
        if isinstance(value, str | dict):
            value = [value]
        if isinstance(value, list):
            return [{"id": item} if isinstance(item, str) else item for item in value]
        return value

    @property
    def type_ids(self) -> frozenset[EntityId]:
        return frozenset(item.id for item in self.type)


class ServiceQueryResult(LookupBaseModel):
    result: list[ServiceResult] = Field(default_factory=list)


class ServiceResponse(RootModel[dict[str, ServiceQueryResult]]):
    def results_for(self, key: str) -> list[ServiceResult]:
        query_result = self.root.get(key)
        return query_result.result if query_result is not None else []


# Entity search (wbsearchentities)


class SearchHit(LookupBaseModel):
    id: EntityId
    label: str | None = None
    description: str | None = None
    concepturi: str | None = None


class SearchError(LookupBaseModel):
    code: str | None = None
    info: str | None = None


class SearchResponse(LookupBaseModel):
    search: list[SearchHit] = Field(default_factory=list)
    error: SearchError | None = None
