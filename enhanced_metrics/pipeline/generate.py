"""Enhanced metrics generation: fetch -> diff -> encode -> compress -> write."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from enhanced_metrics.common.config_loader import PipelineConfig
from enhanced_metrics.common.constants import DATASETS, MASTER_DATASET, RATE_CHANGES_DATASET
from enhanced_metrics.common.errors import ArtifactWriteError, FetchError
from enhanced_metrics.common.logging import log_error, log_event, log_warning
from enhanced_metrics.common.models import DatasetBlock
from enhanced_metrics.common.time_utils import utc_now
from enhanced_metrics.pipeline.artifact import (
    assemble_artifact,
    build_metadata,
    build_summary,
    compress_text,
    compression_ratio,
    serialize_artifact,
    write_artifact,
)
from enhanced_metrics.pipeline.columns import resolve_dataset_schema, undeclared_columns
from enhanced_metrics.pipeline.encoder import encode_dataset
from enhanced_metrics.pipeline.rate_changes import extract_rate_changes
from enhanced_metrics.sources.runner import TableSource, fetch_all_datasets


@dataclass(frozen=True)
class GenerationResult:
    path: Path
    original_size: int
    compressed_size: int
    compression_ratio: str
    record_counts: dict[str, int]
    artifact: dict


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _encode_all(
    config: PipelineConfig,
    datasets: dict[str, list[dict]],
    logger: logging.Logger,
    run_id: str,
) -> dict[str, DatasetBlock]:
    blocks: dict[str, DatasetBlock] = {}
    for name in DATASETS:
        records = datasets[name]
        schema = resolve_dataset_schema(config.datasets[name], records)
        ignored = undeclared_columns(schema, records)
        if ignored:
            log_warning(
                logger,
                f"{name}: columns outside the schema are not encoded: {', '.join(ignored)}",
                run_id=run_id,
                stage="encode",
                dataset=name,
                event="COLUMNS_IGNORED",
                status="warning",
            )
        blocks[name] = encode_dataset(records, schema)
        log_event(
            logger,
            f"encoded {name}",
            run_id=run_id,
            stage="encode",
            dataset=name,
            event="DATASET_ENCODED",
            status="ok",
            rows_in=len(records),
            rows_out=blocks[name].total_records,
        )
    return blocks


def run_generate(
    config: PipelineConfig,
    source: TableSource,
    output_dir: Path,
    *,
    logger: logging.Logger,
    run_id: str,
    now: datetime | None = None,
) -> GenerationResult:
    started = time.monotonic()
    log_event(logger, "stage start", run_id=run_id, stage="fetch", event="STAGE_START", status="ok")
    try:
        datasets = fetch_all_datasets(
            source,
            config.source_datasets,
            logger=logger,
            run_id=run_id,
            max_workers=config.source.max_workers,
        )
    except FetchError as exc:
        log_error(
            logger,
            str(exc),
            run_id=run_id,
            stage="fetch",
            table=exc.table,
            event="FETCH_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        raise
    log_event(
        logger,
        "stage end",
        run_id=run_id,
        stage="fetch",
        event="STAGE_END",
        status="ok",
        duration_ms=_elapsed_ms(started),
    )

    changes = extract_rate_changes(datasets[MASTER_DATASET], compare=config.rate_compare)
    datasets[RATE_CHANGES_DATASET] = [change.to_dict() for change in changes]
    log_event(
        logger,
        f"derived {len(changes)} rate changes",
        run_id=run_id,
        stage="diff",
        dataset=RATE_CHANGES_DATASET,
        event="STAGE_END",
        status="ok",
        rows_in=len(datasets[MASTER_DATASET]),
        rows_out=len(changes),
    )

    blocks = _encode_all(config, datasets, logger, run_id)

    generated_at = now or utc_now()
    artifact = assemble_artifact(
        blocks,
        build_summary(datasets, generated_at),
        build_metadata(config.source_tables, generated_at),
    )

    text = serialize_artifact(artifact)
    try:
        compressed = compress_text(text)
    except (OSError, ValueError) as exc:
        raise ArtifactWriteError(f"Failed to compress artifact: {exc}") from exc
    log_event(
        logger,
        "artifact compressed",
        run_id=run_id,
        stage="compress",
        event="STAGE_END",
        status="ok",
        bytes_in=len(text),
        bytes_out=len(compressed),
    )

    path = write_artifact(output_dir / config.output_filename, compressed)
    ratio = compression_ratio(len(text), len(compressed))
    # Assigned after the write, so the persisted file keeps "N/A".
    artifact["metadata"]["compressionRatio"] = ratio

    log_event(
        logger,
        f"artifact written to {path} (ratio {ratio})",
        run_id=run_id,
        stage="write",
        event="ARTIFACT_WRITTEN",
        status="ok",
        duration_ms=_elapsed_ms(started),
        bytes_in=len(text),
        bytes_out=len(compressed),
    )

    return GenerationResult(
        path=path,
        original_size=len(text),
        compressed_size=len(compressed),
        compression_ratio=ratio,
        record_counts={name: blocks[name].total_records for name in DATASETS},
        artifact=artifact,
    )
