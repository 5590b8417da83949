"""Units of reconciliation work."""

from __future__ import annotations

from dataclasses import dataclass

type JobKey = tuple[str, str, int]


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationJob:
    """One raw value of one property of one item that needs reconciling.

    ``property_id`` is the stable mapping identifier of the property, not its
    display label. ``value_index`` is the position of the value inside a
    multi-valued field.
    """

    item_id: str
    property_id: str
    value_index: int = 0
    raw_value: str

    def __post_init__(self) -> None:
        if self.value_index < 0:
            raise ValueError("value_index must be non-negative")

    @property
    def key(self) -> JobKey:
        return (self.item_id, self.property_id, self.value_index)

    @property
    def value(self) -> str:
        return self.raw_value.strip()
