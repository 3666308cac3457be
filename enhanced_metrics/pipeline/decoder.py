"""Inverse of the columnar dictionary encoding."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from enhanced_metrics.common.constants import DATASETS, SENTINEL_CODE
from enhanced_metrics.common.errors import ContractError
from enhanced_metrics.common.fs import read_gzip_json

BLOCK_KEYS = ("m", "v", "c", "total_records")


def invert_dictionary(dictionary: Mapping[str, int]) -> dict[int, str]:
    return {code: value for value, code in dictionary.items()}


def decode_cell(cell: Any, inverse: Mapping[int, str]) -> str | list | None:
    """Decode one encoded cell: ``-1``, a bare code, or a list of codes."""
    if isinstance(cell, list):
        return [decode_cell(item, inverse) for item in cell]
    if cell is None or cell == SENTINEL_CODE:
        return None
    return inverse.get(cell)


def decode_value(dictionaries: Mapping[str, Mapping[str, int]], column_name: str, code: Any) -> str | list | None:
    dictionary = dictionaries.get(column_name)
    if dictionary is None:
        return None
    return decode_cell(code, invert_dictionary(dictionary))


def decode_record(block: Mapping[str, Any], index: int) -> dict[str, Any]:
    record: dict[str, Any] = {}
    for column_name in block["c"]:
        values = block["v"].get(column_name)
        if values is None or index >= len(values):
            continue
        record[column_name] = decode_value(block["m"], column_name, values[index])
    return record


def decode_block(block: Mapping[str, Any]) -> list[dict[str, Any]]:
    inverses = {name: invert_dictionary(mapping) for name, mapping in block["m"].items()}
    rows: list[dict[str, Any]] = []
    for index in range(int(block["total_records"])):
        row: dict[str, Any] = {}
        for column_name in block["c"]:
            values = block["v"].get(column_name)
            if values is None or index >= len(values):
                continue
            row[column_name] = decode_cell(values[index], inverses.get(column_name, {}))
        rows.append(row)
    return rows


def validate_block(name: str, block: Any) -> None:
    if not isinstance(block, dict):
        raise ContractError(f"{name} is not a dataset block")
    missing = [key for key in BLOCK_KEYS if key not in block]
    if missing:
        raise ContractError(f"{name} is missing keys: {', '.join(missing)}")

    total = block["total_records"]
    for column_name in block["c"]:
        values = block["v"].get(column_name)
        if values is None:
            raise ContractError(f"{name}.{column_name} has no encoded values")
        if len(values) != total:
            raise ContractError(f"{name}.{column_name} has {len(values)} values for {total} records")

        size = len(block["m"].get(column_name, {}))
        for cell in values:
            codes = cell if isinstance(cell, list) else [cell]
            for code in codes:
                if code != SENTINEL_CODE and not 0 <= code < size:
                    raise ContractError(f"{name}.{column_name} holds code {code} outside its dictionary")


def validate_artifact(artifact: Any) -> None:
    if not isinstance(artifact, dict):
        raise ContractError("artifact is not a JSON object")
    for name in DATASETS:
        if name not in artifact:
            raise ContractError(f"artifact is missing dataset {name}")
        validate_block(name, artifact[name])
    for key in ("summary", "metadata"):
        if not isinstance(artifact.get(key), dict):
            raise ContractError(f"artifact is missing {key}")


def decode_artifact(artifact: Mapping[str, Any]) -> dict[str, list[dict[str, Any]]]:
    return {name: decode_block(artifact[name]) for name in DATASETS}


def load_artifact(path: Path) -> dict:
    return read_gzip_json(path)
