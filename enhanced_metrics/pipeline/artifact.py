"""Enhanced metrics artifact assembly, serialisation and persistence."""

from __future__ import annotations

import gzip
import json
from datetime import datetime
from pathlib import Path
from typing import Mapping, Sequence

from enhanced_metrics.common.constants import ARTIFACT_VERSION, DATASETS
from enhanced_metrics.common.errors import ArtifactWriteError, ContractError
from enhanced_metrics.common.fs import write_bytes_atomic
from enhanced_metrics.common.models import DatasetBlock
from enhanced_metrics.common.time_utils import isoformat_z

SUMMARY_DESCRIPTION = (
    "Enhanced metrics including provider alerts, legislative updates, service categories, "
    "master data, and recent rate changes"
)
METADATA_DESCRIPTION = "Enhanced metrics with all admin data combined"
UNKNOWN_RATIO = "N/A"


def count_new(records: Sequence[Mapping[str, object]]) -> int:
    return sum(1 for record in records if record.get("is_new") == "yes")


def build_summary(datasets: Mapping[str, Sequence[Mapping[str, object]]], generated_at: datetime) -> dict:
    return {
        "totalProviderAlerts": len(datasets["provider_alerts"]),
        "totalLegislativeUpdates": len(datasets["legislative_updates"]),
        "totalServiceCategories": len(datasets["service_categories"]),
        "totalMasterDataRecords": len(datasets["master_data"]),
        "totalRecentRateChanges": len(datasets["recent_rate_changes"]),
        "newProviderAlerts": count_new(datasets["provider_alerts"]),
        "newLegislativeUpdates": count_new(datasets["legislative_updates"]),
        "lastUpdated": isoformat_z(generated_at),
        "dataVersion": ARTIFACT_VERSION,
        "description": SUMMARY_DESCRIPTION,
    }


def build_metadata(tables: Sequence[str], generated_at: datetime) -> dict:
    return {
        "generatedAt": isoformat_z(generated_at),
        "version": ARTIFACT_VERSION,
        "description": METADATA_DESCRIPTION,
        "tables": list(tables),
        "compressionRatio": UNKNOWN_RATIO,
    }


def assemble_artifact(blocks: Mapping[str, DatasetBlock], summary: dict, metadata: dict) -> dict:
    missing = [name for name in DATASETS if name not in blocks]
    if missing:
        raise ContractError(f"Missing dataset blocks: {', '.join(missing)}")

    artifact: dict = {name: blocks[name].to_dict() for name in DATASETS}
    artifact["summary"] = summary
    artifact["metadata"] = metadata
    return artifact


def serialize_artifact(artifact: dict) -> str:
    return json.dumps(artifact, ensure_ascii=False, separators=(",", ":"))


def compress_text(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"))


def compression_ratio(original_size: int, compressed_size: int) -> str:
    if original_size <= 0:
        return UNKNOWN_RATIO
    return f"{(original_size - compressed_size) / original_size * 100:.2f}%"


def write_artifact(path: Path, payload: bytes) -> Path:
    try:
        write_bytes_atomic(path, payload)
    except OSError as exc:
        raise ArtifactWriteError(f"Failed to write artifact {path}: {exc}") from exc
    return path
