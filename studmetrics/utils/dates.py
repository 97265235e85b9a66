"""Datetime helpers."""

from __future__ import annotations

import os
from datetime import date, datetime

import pendulum

DEFAULT_TZ = "America/New_York"


def timezone_name() -> str:
    return os.environ.get("TIMEZONE", DEFAULT_TZ)


def now_in_tz() -> pendulum.DateTime:
    tz = pendulum.timezone(timezone_name())
    return pendulum.now(tz)


def today_in_tz() -> date:
    return now_in_tz().date()


def parse_iso_date(value: str) -> date | None:
    """Calendar date from a date or datetime string; ``None`` for anything else."""
    try:
        parsed = pendulum.parse(value, exact=True)
    except ValueError:
        return None
    # time-only strings and durations carry no calendar date
    if isinstance(parsed, datetime):
        return parsed.date()
    if isinstance(parsed, date):
        return parsed
    return None


def format_date(value: date) -> str:
    return value.strftime("%Y-%m-%d")


def to_iso_date(value: object) -> str | None:
    """Coerce a date, datetime or date-like string to ``YYYY-MM-DD``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return format_date(value.date())
    if isinstance(value, date):
        return format_date(value)
    text = str(value).strip()
    if not text:
        return None
    try:
        return format_date(date.fromisoformat(text[:10]))
    except ValueError:
        pass
    parsed = parse_iso_date(text)
    return format_date(parsed) if parsed is not None else None
