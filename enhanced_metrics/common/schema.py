"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from enhanced_metrics.common.constants import DATASETS, MASTER_DATASET, RATE_CHANGES_DATASET
from enhanced_metrics.common.errors import ConfigError

RATE_COMPARE_MODES = ("string", "numeric")
_DATASET_KNOWN_KEYS = {
    "table",
    "derived_from",
    "order_by",
    "columns",
    "multi_value_columns",
    "multi_value_prefix",
    "scalar_columns",
}


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_string_list(value: object, ctx: str) -> None:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{ctx} must be a list of strings")


def _assert_positive_int(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{ctx} must be a positive integer")


def _validate_dataset(name: str, cfg: object, *, allow_unknown: bool) -> None:
    ctx = f"datasets.{name}"
    cfg = _assert_mapping(cfg, ctx)
    _assert_no_unknown_keys(cfg, _DATASET_KNOWN_KEYS, ctx, allow_unknown)

    if name == RATE_CHANGES_DATASET:
        if cfg.get("derived_from") != MASTER_DATASET or cfg.get("table"):
            raise ConfigError(f"{ctx} must set derived_from: {MASTER_DATASET} and no table")
    elif not cfg.get("table") or cfg.get("derived_from"):
        raise ConfigError(f"{ctx} must set a source table")

    for key in ("columns", "multi_value_columns", "scalar_columns"):
        if key in cfg and cfg[key] is not None:
            _assert_string_list(cfg[key], f"{ctx}.{key}")

    columns = cfg.get("columns")
    if columns:
        dupes = {column for column in columns if columns.count(column) > 1}
        if dupes:
            raise ConfigError(f"Duplicate columns in {ctx}: {', '.join(sorted(dupes))}")


def validate_pipeline_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "pipeline config")
    top_required = {"version", "output", "source", "rate_changes", "datasets"}
    _assert_required_keys(cfg, top_required, "pipeline config")
    _assert_no_unknown_keys(cfg, top_required, "pipeline config", allow_unknown)

    output = _assert_mapping(cfg["output"], "output")
    _assert_required_keys(output, {"directory", "filename"}, "output")

    source = _assert_mapping(cfg["source"], "source")
    _assert_required_keys(source, {"page_size", "max_workers", "max_attempts", "timeout"}, "source")
    for key in ("page_size", "max_workers", "max_attempts"):
        _assert_positive_int(source[key], f"source.{key}")
    timeout = _assert_mapping(source["timeout"], "source.timeout")
    _assert_required_keys(timeout, {"connect", "read"}, "source.timeout")

    rate_changes = _assert_mapping(cfg["rate_changes"], "rate_changes")
    _assert_required_keys(rate_changes, {"compare"}, "rate_changes")
    if rate_changes["compare"] not in RATE_COMPARE_MODES:
        raise ConfigError(f"rate_changes.compare must be one of: {', '.join(RATE_COMPARE_MODES)}")

    datasets = _assert_mapping(cfg["datasets"], "datasets")
    _assert_required_keys(datasets, set(DATASETS), "datasets")
    _assert_no_unknown_keys(datasets, set(DATASETS), "datasets", allow_unknown)
    for name in DATASETS:
        _validate_dataset(name, datasets[name], allow_unknown=allow_unknown)

    return cfg
