"""Derive rate-change records from the master rate history."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Sequence

from enhanced_metrics.common.models import RateChangeRecord
from enhanced_metrics.common.time_utils import parse_effective_date

MODIFIER_FIELDS = ("modifier_1", "modifier_2", "modifier_3", "modifier_4")

_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER_RE = re.compile(r"^[-]?(?:\d+\.?\d*|\.\d+)")


def _text(value: object) -> str:
    if value is None:
        return ""
    return str(value)


def group_key(record: Mapping[str, object]) -> str:
    # Hyphen-joined; a hyphen at the boundary of either part can collide.
    return f"{_text(record.get('service_code'))}-{_text(record.get('state_name'))}"


def parse_rate(value: object) -> float:
    """Parse the leading number of a rate string such as ``"$1,250.00/hr"``.

    Anything unparseable is ``0.0``.
    """
    cleaned = _NON_NUMERIC_RE.sub("", _text(value))
    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def percentage_change(old_rate: float, new_rate: float) -> str:
    if old_rate <= 0:
        return "0.00"
    change = (new_rate - old_rate) / old_rate * 100
    # Exact binary value, halves rounded away from zero; sub-cent drops keep "-0.00".
    return str(Decimal(change or 0).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _rates_differ(old_rate: object, new_rate: object, compare: str) -> bool:
    if compare == "numeric":
        return parse_rate(old_rate) != parse_rate(new_rate)
    return old_rate != new_rate


def group_by_service_and_state(records: Sequence[Mapping[str, object]]) -> dict[str, list[Mapping[str, object]]]:
    grouped: dict[str, list[Mapping[str, object]]] = {}
    for record in records:
        grouped.setdefault(group_key(record), []).append(record)
    return grouped


def collect_modifiers(record: Mapping[str, object]) -> tuple[str, ...]:
    """Present modifier codes of ``record``; list-valued modifier cells are flattened."""
    modifiers: list[str] = []
    for name in MODIFIER_FIELDS:
        value = record.get(name)
        items = value if isinstance(value, (list, tuple)) else [value]
        modifiers.extend(_text(item) for item in items if item)
    return tuple(modifiers)


def _build_change(old: Mapping[str, object], new: Mapping[str, object]) -> RateChangeRecord:
    modifiers = collect_modifiers(old)
    return RateChangeRecord(
        service_code=_text(old.get("service_code")),
        service_description=_text(old.get("service_description")),
        state_name=_text(old.get("state_name")),
        service_category=_text(old.get("service_category")),
        old_rate=_text(old.get("rate")),
        new_rate=_text(new.get("rate")),
        percentage_change=percentage_change(parse_rate(old.get("rate")), parse_rate(new.get("rate"))),
        effective_date=_text(new.get("rate_effective_date")),
        modifiers=modifiers,
        provider_type=_text(old.get("provider_type")),
        program=_text(old.get("program")),
        location_region=_text(old.get("location_region")),
        duration_unit=_text(old.get("duration_unit")),
    )


def extract_rate_changes(
    records: Sequence[Mapping[str, object]],
    *,
    compare: str = "string",
) -> list[RateChangeRecord]:
    """Emit one record per consecutive rate transition within a service/state group.

    Groups keep first-seen order; each group is stable-sorted by effective date
    (empty or unparseable dates first). Modifiers and descriptive fields come
    from the older record of each pair.
    """
    changes: list[RateChangeRecord] = []

    for group in group_by_service_and_state(records).values():
        if len(group) < 2:
            continue

        ordered = sorted(group, key=lambda row: parse_effective_date(row.get("rate_effective_date")))
        for old, new in zip(ordered, ordered[1:]):
            old_rate = old.get("rate")
            new_rate = new.get("rate")
            if not old_rate or not new_rate:
                continue
            if _rates_differ(old_rate, new_rate, compare):
                changes.append(_build_change(old, new))

    return changes
