"""Data models used across the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any


@dataclass(frozen=True)
class RateChangeRecord:
    service_code: str
    service_description: str
    state_name: str
    service_category: str
    old_rate: str
    new_rate: str
    percentage_change: str
    effective_date: str
    modifiers: tuple[str, ...]
    provider_type: str
    program: str
    location_region: str
    duration_unit: str

    @classmethod
    def column_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def to_dict(self) -> dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["modifiers"] = list(self.modifiers)
        return out


@dataclass(frozen=True)
class DatasetBlock:
    dictionaries: dict[str, dict[str, int]]
    encoded_columns: dict[str, list]
    column_order: list[str]
    total_records: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "m": self.dictionaries,
            "v": self.encoded_columns,
            "c": self.column_order,
            "total_records": self.total_records,
        }
