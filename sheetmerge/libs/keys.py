from datetime import date, datetime, time, timedelta
from typing import Any


def format_duration(value: timedelta) -> str:
    """ISO-8601 duration, e.g. PT1H30M"""
    total = value.total_seconds()
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if hours:
        parts.append(f"{int(hours)}H")
    if minutes:
        parts.append(f"{int(minutes)}M")
    if seconds or not parts:
        parts.append(f"{int(seconds)}S" if seconds.is_integer() else f"{seconds:g}S")
    return f"{sign}PT{''.join(parts)}"


def stringify_key(value: Any) -> str:
    """Render a cell value the way spreadsheet users read it"""
    if isinstance(value, bool):
        return "true" if value else "false"
    # Spreadsheet numerics often arrive as 1.0 where the other sheet has "1"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    # A date cell is read as a midnight datetime, render it as the date typed
    if isinstance(value, datetime):
        if value.time() == time(0) and value.tzinfo is None:
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, (date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return format_duration(value)
    return str(value)


def normalize_key(value: Any) -> str | None:
    """
    Normalize a join-key value for comparison.

    Returns None for a missing value, which never matches anything.
    Every other value is stringified, stripped and lowercased, so that
    " Abc " and "abc" compare equal.
    """
    if value is None:
        return None
    return stringify_key(value).strip().lower()
