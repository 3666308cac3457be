"""Per-dataset column schemas: column order and scalar/multi-value kinds."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Sequence


class ColumnKind(str, Enum):
    SCALAR = "scalar"
    MULTI_VALUE = "multi_value"


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    kind: ColumnKind = ColumnKind.SCALAR


@dataclass(frozen=True)
class DatasetSchema:
    name: str
    columns: tuple[ColumnSpec, ...]

    @property
    def column_order(self) -> list[str]:
        return [column.name for column in self.columns]


@dataclass(frozen=True)
class DatasetPolicy:
    """Declared encoding policy for one dataset, as loaded from config."""

    name: str
    table: str | None = None
    derived_from: str | None = None
    order_by: str | None = None
    columns: tuple[str, ...] | None = None
    multi_value_columns: frozenset[str] = field(default_factory=frozenset)
    multi_value_prefix: str | None = None
    scalar_columns: frozenset[str] = field(default_factory=frozenset)

    def kind_for(self, column_name: str) -> ColumnKind:
        if column_name in self.scalar_columns:
            return ColumnKind.SCALAR
        if column_name in self.multi_value_columns:
            return ColumnKind.MULTI_VALUE
        if self.multi_value_prefix and column_name.startswith(self.multi_value_prefix):
            return ColumnKind.MULTI_VALUE
        return ColumnKind.SCALAR


def resolve_dataset_schema(policy: DatasetPolicy, records: Sequence[Mapping[str, object]]) -> DatasetSchema:
    if policy.columns is not None:
        names = list(policy.columns)
    elif records:
        # Without a declaration the first record defines the column order.
        names = list(records[0].keys())
    else:
        names = []

    return DatasetSchema(
        name=policy.name,
        columns=tuple(ColumnSpec(name=name, kind=policy.kind_for(name)) for name in names),
    )


def undeclared_columns(schema: DatasetSchema, records: Sequence[Mapping[str, object]]) -> list[str]:
    known = set(schema.column_order)
    seen: dict[str, None] = {}
    for record in records:
        for key in record:
            if key not in known:
                seen.setdefault(key, None)
    return list(seen)
