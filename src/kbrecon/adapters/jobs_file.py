"""Readers for job and constraint files used by the CLI."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from kbrecon.domain.model import Datatype, FormatPattern, PropertyConstraints, ReconciliationJob

if TYPE_CHECKING:
    from collections.abc import Mapping
    from pathlib import Path

log = logging.getLogger(__name__)


class JobsFileError(ValueError):
    """Raised when a jobs or constraints file cannot be parsed."""


class JobRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    item_id: str
    property_id: str
    value_index: int = Field(default=0, ge=0)
    raw_value: str = Field(alias="value")

    def to_job(self) -> ReconciliationJob:
        return ReconciliationJob(
            item_id=self.item_id,
            property_id=self.property_id,
            value_index=self.value_index,
            raw_value=self.raw_value,
        )


class FormatPatternRecord(BaseModel):
    regex: str
    description: str = ""
    deprecated: bool = False


class ConstraintsRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    expected_entity_types: list[str] = Field(default_factory=list)
    format_patterns: list[FormatPatternRecord] = Field(default_factory=list)
    datatype: Datatype | None = None
    knowledge_base_id: str | None = None

    def to_constraints(self) -> PropertyConstraints:
        return PropertyConstraints(
            expected_entity_types=frozenset(self.expected_entity_types),
            format_patterns=tuple(
                FormatPattern(
                    regex=pattern.regex,
                    description=pattern.description,
                    deprecated=pattern.deprecated,
                )
                for pattern in self.format_patterns
            ),
            datatype=self.datatype,
        )


_JOB_LIST_ADAPTER = TypeAdapter(list[JobRecord])
_CONSTRAINTS_ADAPTER = TypeAdapter(dict[str, ConstraintsRecord])


def read_jobs(path: Path) -> list[ReconciliationJob]:
    """Read jobs from a JSON array or a JSON-lines file."""

    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix == ".jsonl":
            records = [
                JobRecord.model_validate_json(line) for line in text.splitlines() if line.strip()
            ]
        else:
            records = _JOB_LIST_ADAPTER.validate_json(text)
    except ValidationError as exc:
        raise JobsFileError(f"Invalid jobs file {path}: {exc}") from exc
    log.info("Read %s jobs from %s", len(records), path)
    return [record.to_job() for record in records]


def read_constraints(path: Path) -> dict[str, ConstraintsRecord]:
    """Read ``{property_id: constraints}`` from a JSON file."""

    try:
        return _CONSTRAINTS_ADAPTER.validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as exc:
        raise JobsFileError(f"Invalid constraints file {path}: {exc}") from exc


def constraints_lookup(records: Mapping[str, ConstraintsRecord]) -> dict[str, PropertyConstraints]:
    return {property_id: record.to_constraints() for property_id, record in records.items()}


def knowledge_base_ids(records: Mapping[str, ConstraintsRecord]) -> dict[str, str]:
    return {
        property_id: record.knowledge_base_id
        for property_id, record in records.items()
        if record.knowledge_base_id
    }
