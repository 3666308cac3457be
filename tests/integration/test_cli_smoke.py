import json
from pathlib import Path

import pytest

from enhanced_metrics.cli import parse_args, run_command
from enhanced_metrics.common.fs import read_json, write_json
from enhanced_metrics.pipeline.decoder import decode_artifact, load_artifact


def _write_tables(input_dir: Path, *, skip: str | None = None) -> None:
    tables = {
        "provider_alerts": [
            {"id": 1, "state": "Ohio", "subject": "Rate notice", "is_new": "yes"},
        ],
        "bill_track_50": {"rows": [{"url": "https://bills.test/1", "state": "Ohio", "is_new": "no"}]},
        "service_category_list": [{"id": 1, "categories": "HCBS"}, {"id": 2, "categories": "Dental"}],
        "master_data_sept_2": [
            {
                "id": 1,
                "service_code": "T1019",
                "state_name": "Ohio",
                "service_category": "HCBS",
                "rate": "$10.00",
                "rate_effective_date": "2023-01-01",
                "modifier_1": "U1",
            },
            {
                "id": 2,
                "service_code": "T1019",
                "state_name": "Ohio",
                "service_category": "HCBS",
                "rate": "$12.50",
                "rate_effective_date": "2024-01-01",
                "modifier_1": None,
            },
        ],
    }
    for table, rows in tables.items():
        if table != skip:
            write_json(input_dir / f"{table}.json", rows)


def _generate(tmp_path: Path, run_id: str, **kwargs) -> int:
    input_dir = tmp_path / "inputs"
    _write_tables(input_dir, **kwargs)
    args = parse_args(
        [
            "generate",
            "--config-dir",
            "config",
            "--input-dir",
            str(input_dir),
            "--output-dir",
            str(tmp_path / "public"),
            "--log-dir",
            str(tmp_path / "logs"),
            "--run-id",
            run_id,
        ]
    )
    return run_command(args)


@pytest.mark.integration
def test_generate_command_writes_artifact_and_run_log(tmp_path: Path):
    assert _generate(tmp_path, "run-smoke") == 0

    artifact = load_artifact(tmp_path / "public" / "enhanced_metrics_detailed.json.gz")
    assert artifact["metadata"]["compressionRatio"] == "N/A"
    assert artifact["summary"]["totalServiceCategories"] == 2
    assert artifact["summary"]["newProviderAlerts"] == 1
    assert artifact["summary"]["newLegislativeUpdates"] == 0

    (change,) = decode_artifact(artifact)["recent_rate_changes"]
    assert change["percentage_change"] == "25.00"
    assert change["modifiers"] == ["U1"]

    events = [json.loads(line)["event"] for line in (tmp_path / "logs" / "run-smoke.log.jsonl").read_text().splitlines()]
    assert events.count("FETCH_END") == 4
    assert "ARTIFACT_WRITTEN" in events
    assert events[-1] == "RUN_END"


@pytest.mark.integration
def test_generate_command_missing_table_is_hard_fail(tmp_path: Path):
    assert _generate(tmp_path, "run-fail", skip="service_category_list") == 20

    assert not (tmp_path / "public" / "enhanced_metrics_detailed.json.gz").exists()
    records = [json.loads(line) for line in (tmp_path / "logs" / "run-fail.log.jsonl").read_text().splitlines()]
    failures = [record for record in records if record["event"] == "FETCH_FAIL"]
    assert failures[0]["table"] == "service_category_list"
    assert failures[0]["error_code"] == "FETCH_ERROR"
    assert records[-1]["event"] == "RUN_FAIL"


@pytest.mark.integration
def test_inspect_command_writes_report(tmp_path: Path):
    assert _generate(tmp_path, "run-gen") == 0
    report_path = tmp_path / "report.json"

    args = parse_args(
        [
            "inspect",
            "--output-dir",
            str(tmp_path / "public"),
            "--state",
            "ohio",
            "--report-path",
            str(report_path),
            "--run-id",
            "run-inspect",
        ]
    )
    assert run_command(args) == 0

    report = read_json(report_path)
    assert report["tables"][0] == "provider_alerts"
    assert report["datasets"]["master_data"]["total_records"] == 2
    assert report["recent_rate_changes"]["totalChanges"] == 1
    assert report["rate_range"] == {"min": 10.0, "max": 12.5}
    assert report["states"] == ["Ohio"]
    assert report["state_summary"]["providerAlerts"] == {"total": 1, "new": 1}


@pytest.mark.integration
def test_inspect_command_without_artifact_is_hard_fail(tmp_path: Path):
    args = parse_args(["inspect", "--artifact", str(tmp_path / "missing.json.gz"), "--run-id", "run-missing"])
    assert run_command(args) == 20
