"""UTC-focused helpers for run metadata and effective-date parsing."""

from __future__ import annotations

from datetime import datetime, timezone

# Earliest possible sort key; used for empty or unparseable effective dates.
EARLIEST = datetime.min

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y/%m/%d",
    "%m-%d-%Y",
    "%B %d, %Y",
    "%b %d, %Y",
)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return utc_now().isoformat(timespec="milliseconds")


def isoformat_z(moment: datetime) -> str:
    """Render ``moment`` as UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_effective_date(value: object) -> datetime:
    if value is None:
        return EARLIEST
    text = str(value).strip()
    if not text:
        return EARLIEST

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        parsed = None

    if parsed is None:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

    if parsed is None:
        return EARLIEST
    # Naive keys so aware and naive inputs compare.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
