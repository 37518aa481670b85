from __future__ import annotations

from datetime import date


def format_date_jp(value: date) -> str:
    """Format as `YYYY.M.D` without zero padding, e.g. 2026.1.5."""

    return f"{value.year}.{value.month}.{value.day}"


def format_span(start: date | None, end: date | None) -> str:
    if start is None and end is None:
        return "-"
    if start is None or end is None or start == end:
        return format_date_jp(start or end)
    return f"{format_date_jp(start)} - {format_date_jp(end)}"
