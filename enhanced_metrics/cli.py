"""CLI entrypoint for the enhanced metrics export pipeline."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from enhanced_metrics.common.config_loader import load_credentials, load_env_file, load_pipeline_config
from enhanced_metrics.common.constants import ARTIFACT_FILENAME, EXIT_HARD_FAIL, EXIT_SUCCESS
from enhanced_metrics.common.errors import ContractError, PipelineError
from enhanced_metrics.common.fs import write_json
from enhanced_metrics.common.ids import generate_run_id
from enhanced_metrics.common.logging import build_logger, close_logger, log_error, log_event
from enhanced_metrics.pipeline.decoder import decode_artifact, load_artifact, validate_artifact
from enhanced_metrics.pipeline.generate import run_generate
from enhanced_metrics.pipeline.reports import build_inspection_report
from enhanced_metrics.sources.local import LocalJsonTableSource
from enhanced_metrics.sources.supabase import SupabaseTableSource


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=["generate", "inspect"])
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--output-dir", default=None)
    parser.add_argument("--input-dir", default=None)
    parser.add_argument("--env-file", default=".env")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--artifact", default=None)
    parser.add_argument("--state", default=None)
    parser.add_argument("--report-path", default=None)
    return parser.parse_args(argv)


def _build_source(args: argparse.Namespace, config):
    if args.input_dir:
        return LocalJsonTableSource(Path(args.input_dir))
    load_env_file(Path(args.env_file))
    return SupabaseTableSource(load_credentials(), config.source)


def run_generate_command(args: argparse.Namespace, logger, run_id: str) -> int:
    config = load_pipeline_config(
        Path(args.config_dir),
        overlay_config_dir=Path(args.overlay_config_dir) if args.overlay_config_dir else None,
    )
    output_dir = Path(args.output_dir or config.output_directory)

    source = _build_source(args, config)
    try:
        result = run_generate(config, source, output_dir, logger=logger, run_id=run_id)
    finally:
        source.close()

    log_event(
        logger,
        f"generated {result.path} ({result.original_size} -> {result.compressed_size} bytes, {result.compression_ratio})",
        run_id=run_id,
        event="RUN_END",
        status="ok",
        bytes_in=result.original_size,
        bytes_out=result.compressed_size,
    )
    return EXIT_SUCCESS


def run_inspect_command(args: argparse.Namespace, logger, run_id: str) -> int:
    artifact_path = Path(args.artifact or Path(args.output_dir or "public") / ARTIFACT_FILENAME)
    if not artifact_path.exists():
        raise ContractError(f"Artifact not found: {artifact_path}")

    artifact = load_artifact(artifact_path)
    validate_artifact(artifact)
    report = build_inspection_report(artifact, decode_artifact(artifact), state=args.state)

    if args.report_path:
        write_json(Path(args.report_path), report)
    else:
        sys.stdout.write(json.dumps(report, ensure_ascii=False, indent=2, sort_keys=True) + "\n")

    log_event(logger, f"inspected {artifact_path}", run_id=run_id, event="RUN_END", status="ok")
    return EXIT_SUCCESS


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    logger = build_logger(run_id, log_dir=Path(args.log_dir) if args.log_dir else None, level=args.log_level)

    try:
        if args.command == "generate":
            return run_generate_command(args, logger, run_id)
        return run_inspect_command(args, logger, run_id)
    except PipelineError as exc:
        log_error(
            logger,
            f"{args.command} failed: {exc}",
            run_id=run_id,
            event="RUN_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_HARD_FAIL
    except Exception as exc:
        log_error(
            logger,
            f"{args.command} failed unexpectedly: {type(exc).__name__}: {exc}",
            run_id=run_id,
            event="RUN_FAIL",
            status="error",
            error_code="UNEXPECTED_ERROR",
        )
        return EXIT_HARD_FAIL
    finally:
        close_logger(logger)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
