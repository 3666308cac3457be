"""Table source backed by JSON exports on disk."""

from __future__ import annotations

import json
from pathlib import Path

from enhanced_metrics.common.errors import FetchError
from enhanced_metrics.common.fs import read_json


class LocalJsonTableSource:
    """Reads ``<input_dir>/<table>.json`` holding a row list or ``{"rows": [...]}``."""

    def __init__(self, input_dir: Path) -> None:
        self.input_dir = input_dir

    def close(self) -> None:
        return None

    def fetch_table(self, table: str, *, order_by: str | None = None) -> list[dict]:
        path = self.input_dir / f"{table}.json"
        if not path.exists():
            raise FetchError(table, f"missing export {path}")
        try:
            payload = read_json(path)
        except (OSError, json.JSONDecodeError) as exc:
            raise FetchError(table, f"unreadable export {path}: {exc}") from exc

        if isinstance(payload, dict):
            payload = payload.get("rows")
        if not isinstance(payload, list):
            raise FetchError(table, f"export {path} does not hold a row list")
        return payload
