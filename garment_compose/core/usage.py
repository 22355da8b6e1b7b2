"""Usage rollups over edit history rows."""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable

from garment_compose.models import UsageSummary, parse_timestamp


def _month_start(now: datetime) -> datetime:
    tz = now.tzinfo or timezone.utc
    return datetime(now.year, now.month, 1, tzinfo=tz)


def summarize_usage(rows: Iterable[Dict[str, Any]], now: datetime) -> UsageSummary:
    """
    Compute totals for a user's history rows.

    Only ``status``, ``processing_time`` and ``created_at`` are read. Rows
    with a naive ``created_at`` are taken to be UTC.
    """
    month_start = _month_start(now)

    total = 0
    successful = 0
    this_month = 0
    durations = []

    for row in rows:
        total += 1
        if row.get("status") == "completed":
            successful += 1

        created_at = parse_timestamp(row.get("created_at"))
        if created_at is not None:
            if created_at.tzinfo is None:
                created_at = created_at.replace(tzinfo=timezone.utc)
            if created_at >= month_start:
                this_month += 1

        duration = row.get("processing_time")
        if duration is not None:
            durations.append(duration)

    average = sum(durations) / len(durations) if durations else 0

    return UsageSummary(
        total_edits=total,
        successful_edits=successful,
        this_month_edits=this_month,
        average_processing_time=average,
    )


__all__ = ["summarize_usage"]
