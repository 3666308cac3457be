import gzip
import json
import stat
from datetime import datetime, timezone
from pathlib import Path

import pytest

from enhanced_metrics.common.constants import DATASETS
from enhanced_metrics.common.errors import ArtifactWriteError, ContractError
from enhanced_metrics.common.models import DatasetBlock
from enhanced_metrics.pipeline.artifact import (
    assemble_artifact,
    build_metadata,
    build_summary,
    compress_text,
    compression_ratio,
    serialize_artifact,
    write_artifact,
)

GENERATED_AT = datetime(2026, 2, 17, 9, 30, 0, 125000, tzinfo=timezone.utc)


def _empty_block() -> DatasetBlock:
    return DatasetBlock(dictionaries={}, encoded_columns={}, column_order=[], total_records=0)


def test_build_summary_counts_new_rows():
    datasets = {
        "provider_alerts": [{"is_new": "yes"}, {"is_new": "no"}, {"is_new": "yes"}],
        "legislative_updates": [{"is_new": "YES"}, {"is_new": "yes"}],
        "service_categories": [{}],
        "master_data": [{}, {}],
        "recent_rate_changes": [],
    }
    summary = build_summary(datasets, GENERATED_AT)

    assert summary["totalProviderAlerts"] == 3
    assert summary["newProviderAlerts"] == 2
    assert summary["newLegislativeUpdates"] == 1
    assert summary["totalMasterDataRecords"] == 2
    assert summary["totalRecentRateChanges"] == 0
    assert summary["lastUpdated"] == "2026-02-17T09:30:00.125Z"
    assert summary["dataVersion"] == "2.0"


def test_build_metadata_defaults_ratio_to_not_available():
    metadata = build_metadata(["provider_alerts", "bill_track_50"], GENERATED_AT)
    assert metadata["compressionRatio"] == "N/A"
    assert metadata["tables"] == ["provider_alerts", "bill_track_50"]
    assert metadata["generatedAt"] == "2026-02-17T09:30:00.125Z"


def test_assemble_artifact_orders_blocks_and_rejects_missing():
    blocks = {name: _empty_block() for name in DATASETS}
    artifact = assemble_artifact(blocks, {"s": 1}, {"m": 1})

    assert list(artifact) == [*DATASETS, "summary", "metadata"]
    assert artifact["master_data"] == {"m": {}, "v": {}, "c": [], "total_records": 0}

    del blocks["master_data"]
    with pytest.raises(ContractError):
        assemble_artifact(blocks, {}, {})


def test_serialize_and_compress_round_trip():
    text = serialize_artifact({"a": [1, -1], "b": "é"})
    assert text == '{"a":[1,-1],"b":"é"}'
    assert json.loads(gzip.decompress(compress_text(text)).decode("utf-8")) == {"a": [1, -1], "b": "é"}


def test_compression_ratio_formatting():
    assert compression_ratio(1000, 250) == "75.00%"
    assert compression_ratio(0, 0) == "N/A"


def test_write_artifact_replaces_existing_file(tmp_path: Path):
    path = tmp_path / "public" / "artifact.json.gz"
    write_artifact(path, b"first")
    write_artifact(path, b"second")

    assert path.read_bytes() == b"second"
    assert [p.name for p in path.parent.iterdir()] == ["artifact.json.gz"]


def test_write_artifact_wraps_os_errors(tmp_path: Path):
    blocker = tmp_path / "public"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(ArtifactWriteError):
        write_artifact(blocker / "artifact.json.gz", b"data")


def test_write_artifact_is_world_readable(tmp_path: Path):
    path = tmp_path / "public" / "enhanced_metrics_detailed.json.gz"
    write_artifact(path, b"x")

    mode = stat.S_IMODE(path.stat().st_mode)
    assert mode == 0o644
    assert mode & stat.S_IROTH
