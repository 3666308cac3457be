"""Summaries and filters over decoded enhanced metrics."""

from __future__ import annotations

from collections import Counter
from typing import Any, Mapping, Sequence

from enhanced_metrics.common.constants import DATASETS
from enhanced_metrics.common.time_utils import EARLIEST, parse_effective_date
from enhanced_metrics.pipeline.rate_changes import parse_rate

Row = Mapping[str, Any]

# Column that carries the state name in each decoded dataset.
STATE_FIELDS = {
    "provider_alerts": "state",
    "legislative_updates": "state",
    "master_data": "state_name",
    "recent_rate_changes": "state_name",
}
TOP_N = 10


def _lower(value: Any) -> str:
    return str(value or "").lower()


def rows_for_state(rows: Sequence[Row], field: str, state: str) -> list[Row]:
    needle = state.lower()
    return [row for row in rows if row.get(field) and needle in _lower(row.get(field))]


def new_rows(rows: Sequence[Row]) -> list[Row]:
    return [row for row in rows if row.get("is_new") == "yes"]


def state_summary(decoded: Mapping[str, Sequence[Row]], state: str) -> dict:
    alerts = rows_for_state(decoded["provider_alerts"], "state", state)
    updates = rows_for_state(decoded["legislative_updates"], "state", state)
    master = rows_for_state(decoded["master_data"], "state_name", state)
    new_alerts = len(new_rows(alerts))
    new_updates = len(new_rows(updates))
    return {
        "state": state,
        "providerAlerts": {"total": len(alerts), "new": new_alerts},
        "legislativeUpdates": {"total": len(updates), "new": new_updates},
        "masterDataRecords": len(master),
        "totalNewAlerts": new_alerts + new_updates,
    }


def available_states(decoded: Mapping[str, Sequence[Row]]) -> list[str]:
    states: set[str] = set()
    for name in ("provider_alerts", "legislative_updates", "master_data"):
        field = STATE_FIELDS[name]
        states.update(str(row[field]) for row in decoded[name] if row.get(field))
    return sorted(states)


def available_service_categories(decoded: Mapping[str, Sequence[Row]]) -> list[str]:
    categories = {str(row["categories"]) for row in decoded["service_categories"] if row.get("categories")}
    categories.update(str(row["service_category"]) for row in decoded["master_data"] if row.get("service_category"))
    return sorted(categories)


def _percentage(change: Row) -> float:
    try:
        return float(change.get("percentage_change") or 0)
    except (TypeError, ValueError):
        return 0.0


def filter_rate_changes(
    changes: Sequence[Row],
    *,
    state: str | None = None,
    service_category: str | None = None,
    service_code: str | None = None,
    provider_type: str | None = None,
    program: str | None = None,
    date_range: tuple[str, str] | None = None,
    percentage_range: tuple[float, float] | None = None,
) -> list[Row]:
    exact_ci = {
        "state_name": state,
        "service_category": service_category,
        "provider_type": provider_type,
        "program": program,
    }
    start = end = None
    if date_range is not None:
        start = parse_effective_date(date_range[0])
        end = parse_effective_date(date_range[1])

    out: list[Row] = []
    for change in changes:
        if any(wanted and _lower(change.get(field)) != wanted.lower() for field, wanted in exact_ci.items()):
            continue
        if service_code and change.get("service_code") != service_code:
            continue
        if start is not None and end is not None:
            effective = parse_effective_date(change.get("effective_date"))
            if effective < start or effective > end:
                continue
        if percentage_range is not None:
            low, high = percentage_range
            if not low <= _percentage(change) <= high:
                continue
        out.append(change)
    return out


def _top(counter: Counter, label: str) -> list[dict]:
    ranked = sorted(counter.items(), key=lambda item: (-item[1], item[0]))
    return [{label: key, "count": count} for key, count in ranked[:TOP_N]]


def summarize_rate_changes(changes: Sequence[Row]) -> dict:
    if not changes:
        return {
            "totalChanges": 0,
            "averagePercentageChange": 0.0,
            "statesWithChanges": 0,
            "categoriesWithChanges": 0,
            "dateRange": {"start": "", "end": ""},
            "topStates": [],
            "topCategories": [],
        }

    states = Counter(str(change.get("state_name") or "") for change in changes)
    categories = Counter(str(change.get("service_category") or "") for change in changes)
    dates = sorted(
        moment
        for moment in (parse_effective_date(change.get("effective_date")) for change in changes)
        if moment != EARLIEST
    )

    return {
        "totalChanges": len(changes),
        "averagePercentageChange": round(sum(_percentage(change) for change in changes) / len(changes), 2),
        "statesWithChanges": len(states),
        "categoriesWithChanges": len(categories),
        "dateRange": {
            "start": dates[0].date().isoformat() if dates else "",
            "end": dates[-1].date().isoformat() if dates else "",
        },
        "topStates": _top(states, "state"),
        "topCategories": _top(categories, "category"),
    }


def rate_value_range(changes: Sequence[Row]) -> dict:
    values = [parse_rate(change.get(field)) for change in changes for field in ("old_rate", "new_rate")]
    if not values:
        return {"min": 0.0, "max": 0.0}
    return {"min": min(values), "max": max(values)}


def build_inspection_report(artifact: Mapping[str, Any], decoded: Mapping[str, Sequence[Row]], state: str | None = None) -> dict:
    changes = decoded["recent_rate_changes"]
    report = {
        "generated_at": artifact["metadata"].get("generatedAt"),
        "version": artifact["metadata"].get("version"),
        "tables": artifact["metadata"].get("tables", []),
        "summary": artifact["summary"],
        "datasets": {
            name: {
                "total_records": artifact[name]["total_records"],
                "columns": len(artifact[name]["c"]),
                "dictionary_entries": sum(len(mapping) for mapping in artifact[name]["m"].values()),
            }
            for name in DATASETS
        },
        "recent_rate_changes": summarize_rate_changes(changes),
        "rate_range": rate_value_range(changes),
        "states": available_states(decoded),
        "service_categories": available_service_categories(decoded),
    }
    if state:
        report["state_summary"] = state_summary(decoded, state)
    return report
