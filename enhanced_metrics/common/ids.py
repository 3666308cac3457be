"""Run identifier helpers."""

from __future__ import annotations

from enhanced_metrics.common.time_utils import utc_now


def generate_run_id() -> str:
    return utc_now().strftime("metrics-%Y%m%dT%H%M%S%fZ")
