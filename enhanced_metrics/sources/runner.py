"""Fetch orchestration: all source tables or nothing."""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Protocol, Sequence

from enhanced_metrics.common.errors import FetchError, PipelineError
from enhanced_metrics.common.logging import log_event
from enhanced_metrics.pipeline.columns import DatasetPolicy


class TableSource(Protocol):
    def fetch_table(self, table: str, *, order_by: str | None = None) -> list[dict]: ...

    def close(self) -> None: ...


def _fetch_one(source: TableSource, policy: DatasetPolicy, logger: logging.Logger, run_id: str) -> list[dict]:
    started = time.monotonic()
    try:
        rows = source.fetch_table(policy.table, order_by=policy.order_by)
    except PipelineError:
        raise
    except Exception as exc:
        raise FetchError(policy.table, f"{type(exc).__name__}: {exc}") from exc

    log_event(
        logger,
        f"fetched {len(rows)} rows from {policy.table}",
        run_id=run_id,
        stage="fetch",
        dataset=policy.name,
        table=policy.table,
        event="FETCH_END",
        status="ok",
        duration_ms=int((time.monotonic() - started) * 1000),
        rows_out=len(rows),
    )
    return rows


def fetch_all_datasets(
    source: TableSource,
    policies: Sequence[DatasetPolicy],
    *,
    logger: logging.Logger,
    run_id: str,
    max_workers: int = 1,
) -> dict[str, list[dict]]:
    """Fetch every table-backed dataset; the first failure aborts the whole fetch."""
    if max_workers <= 1:
        return {policy.name: _fetch_one(source, policy, logger, run_id) for policy in policies}

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fetch") as pool:
        futures = {pool.submit(_fetch_one, source, policy, logger, run_id): policy for policy in policies}
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()

        for future in done:
            exc = future.exception()
            if exc is not None:
                raise exc

        return {futures[future].name: future.result() for future in futures}
