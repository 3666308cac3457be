"""Configuration loading and validation."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from enhanced_metrics.common.constants import DATASETS
from enhanced_metrics.common.errors import ConfigError
from enhanced_metrics.common.fs import read_yaml
from enhanced_metrics.common.http import RetryConfig, TimeoutConfig
from enhanced_metrics.common.schema import validate_pipeline_config
from enhanced_metrics.pipeline.columns import DatasetPolicy

CONFIG_FILENAME = "enhanced_metrics.yml"
URL_ENV_VARS = ("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL")
KEY_ENV_VARS = ("SUPABASE_SERVICE_ROLE", "SUPABASE_SERVICE_ROLE_KEY")


@dataclass(frozen=True)
class SourceSettings:
    page_size: int
    max_workers: int
    retry: RetryConfig
    timeout: TimeoutConfig


@dataclass(frozen=True)
class PipelineConfig:
    version: str
    output_directory: str
    output_filename: str
    source: SourceSettings
    rate_compare: str
    datasets: dict[str, DatasetPolicy]

    @property
    def source_datasets(self) -> list[DatasetPolicy]:
        return [policy for policy in self.datasets.values() if policy.table]

    @property
    def source_tables(self) -> list[str]:
        return [policy.table for policy in self.source_datasets]


@dataclass(frozen=True)
class SourceCredentials:
    url: str
    service_key: str


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def _optional_tuple(value: list[str] | None) -> tuple[str, ...] | None:
    if value is None:
        return None
    return tuple(value)


def _build_policy(name: str, cfg: dict) -> DatasetPolicy:
    return DatasetPolicy(
        name=name,
        table=cfg.get("table"),
        derived_from=cfg.get("derived_from"),
        order_by=cfg.get("order_by"),
        columns=_optional_tuple(cfg.get("columns")),
        multi_value_columns=frozenset(cfg.get("multi_value_columns") or ()),
        multi_value_prefix=cfg.get("multi_value_prefix"),
        scalar_columns=frozenset(cfg.get("scalar_columns") or ()),
    )


def load_pipeline_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> PipelineConfig:
    overlay_path = None
    if overlay_config_dir is not None:
        overlay_path = overlay_config_dir / CONFIG_FILENAME
    cfg = validate_pipeline_config(
        _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path),
        allow_unknown=allow_unknown,
    )

    source = cfg["source"]
    return PipelineConfig(
        version=str(cfg["version"]),
        output_directory=str(cfg["output"]["directory"]),
        output_filename=str(cfg["output"]["filename"]),
        source=SourceSettings(
            page_size=int(source["page_size"]),
            max_workers=int(source["max_workers"]),
            retry=RetryConfig(max_attempts=int(source["max_attempts"])),
            timeout=TimeoutConfig(
                connect=float(source["timeout"]["connect"]),
                read=float(source["timeout"]["read"]),
            ),
        ),
        rate_compare=cfg["rate_changes"]["compare"],
        datasets={name: _build_policy(name, cfg["datasets"][name]) for name in DATASETS},
    )


def _first_env(environ: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = (environ.get(name) or "").strip()
        if value:
            return value
    return None


def load_credentials(environ: Mapping[str, str] | None = None) -> SourceCredentials:
    env = os.environ if environ is None else environ
    url = _first_env(env, URL_ENV_VARS)
    key = _first_env(env, KEY_ENV_VARS)

    missing = []
    if not url:
        missing.append(" or ".join(URL_ENV_VARS))
    if not key:
        missing.append(" or ".join(KEY_ENV_VARS))
    if missing:
        raise ConfigError(f"Missing backend credentials: {'; '.join(missing)}")

    return SourceCredentials(url=url, service_key=key)


def load_env_file(path: Path) -> bool:
    from dotenv import load_dotenv

    if not path.exists():
        return False
    return load_dotenv(path, override=False)
