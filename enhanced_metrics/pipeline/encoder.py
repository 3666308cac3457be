"""Columnar dictionary encoding of homogeneous record arrays.

Each column is rewritten as a value -> code dictionary (codes assigned densely
in first-seen order) plus an integer-coded array with one entry per record.
``-1`` marks an absent or unmapped value and is never a dictionary entry.

Multi-value columns keep the shape of each cell: a list cell encodes to a list
of codes and a bare value encodes to a bare code, so decoders must inspect the
cell type.
"""

from __future__ import annotations

import json
import math
from typing import Mapping, Sequence

from enhanced_metrics.common.constants import SENTINEL_CODE
from enhanced_metrics.common.errors import ContractError
from enhanced_metrics.common.models import DatasetBlock
from enhanced_metrics.pipeline.columns import ColumnKind, DatasetSchema

Record = Mapping[str, object]


def is_absent(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def dictionary_key(value: object) -> str:
    """Stringify a cell value the way it is keyed in a JSON dictionary."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


def _cell_values(value: object, multi_value: bool) -> list[object]:
    if multi_value and isinstance(value, (list, tuple)):
        return [item for item in value if not is_absent(item)]
    if is_absent(value):
        return []
    return [value]


def build_column_dictionary(
    records: Sequence[Record],
    column_name: str,
    *,
    multi_value: bool = False,
) -> dict[str, int]:
    """Map each distinct present value of ``column_name`` to a dense code.

    With ``multi_value`` set, list cells contribute their elements rather than
    the list as a whole.
    """
    dictionary: dict[str, int] = {}
    for record in records:
        for value in _cell_values(record.get(column_name), multi_value):
            key = dictionary_key(value)
            if key not in dictionary:
                dictionary[key] = len(dictionary)
    return dictionary


def _lookup(value: object, dictionary: Mapping[str, int]) -> int:
    if is_absent(value):
        return SENTINEL_CODE
    return dictionary.get(dictionary_key(value), SENTINEL_CODE)


def encode_scalar_column(records: Sequence[Record], column_name: str, dictionary: Mapping[str, int]) -> list[int]:
    return [_lookup(record.get(column_name), dictionary) for record in records]


def encode_array_column(
    records: Sequence[Record],
    column_name: str,
    dictionary: Mapping[str, int],
) -> list[int | list[int]]:
    encoded: list[int | list[int]] = []
    for record in records:
        value = record.get(column_name)
        if value is None or value == "":
            encoded.append(SENTINEL_CODE)
        elif isinstance(value, (list, tuple)):
            encoded.append([_lookup(item, dictionary) for item in value])
        else:
            encoded.append(_lookup(value, dictionary))
    return encoded


def encode_dataset(records: Sequence[Record], schema: DatasetSchema) -> DatasetBlock:
    dictionaries: dict[str, dict[str, int]] = {}
    encoded_columns: dict[str, list] = {}

    for column in schema.columns:
        multi_value = column.kind is ColumnKind.MULTI_VALUE
        dictionary = build_column_dictionary(records, column.name, multi_value=multi_value)
        dictionaries[column.name] = dictionary
        if multi_value:
            encoded_columns[column.name] = encode_array_column(records, column.name, dictionary)
        else:
            encoded_columns[column.name] = encode_scalar_column(records, column.name, dictionary)

    block = DatasetBlock(
        dictionaries=dictionaries,
        encoded_columns=encoded_columns,
        column_order=schema.column_order,
        total_records=len(records),
    )
    check_block_lengths(schema.name, block)
    return block


def check_block_lengths(dataset_name: str, block: DatasetBlock) -> None:
    for column_name, values in block.encoded_columns.items():
        if len(values) != block.total_records:
            raise ContractError(
                f"{dataset_name}.{column_name} has {len(values)} values for {block.total_records} records"
            )
