"""Lookback windows for "new adoption" queries.

A window is either ``thisweek`` (Monday 00:00 UTC of the current week)
or a count with a unit suffix: ``7d``, ``2w``, ``12h``.
"""

import re
from datetime import datetime, timedelta, timezone

THIS_WEEK = "thisweek"

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([dwh])\s*$", re.IGNORECASE)
_UNITS = {"d": "days", "w": "weeks", "h": "hours"}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_week(now: datetime | None = None) -> datetime:
    """Monday 00:00 UTC of the week containing ``now``."""
    now = _as_utc(now or datetime.now(timezone.utc))
    monday = now - timedelta(days=now.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_duration(value: str) -> timedelta:
    """Parse ``Nd``, ``Nw`` or ``Nh``.

    Raises:
        ValueError: On any other format, or a count too large to represent.
    """
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ValueError(
            f"Invalid duration {value!r}. Use {THIS_WEEK!r} or a count with d, w, or h (e.g. '7d')"
        )
    amount, unit = int(match.group(1)), match.group(2).lower()
    try:
        return timedelta(**{_UNITS[unit]: amount})
    except OverflowError as e:
        raise ValueError(f"Invalid duration {value!r}: window is too large") from e


def resolve_since(window: str | None, now: datetime | None = None) -> datetime:
    """Turn a window expression into the UTC instant it starts at.

    An empty window means ``thisweek``.
    """
    now = _as_utc(now or datetime.now(timezone.utc))
    if not window or window.strip().lower() == THIS_WEEK:
        return start_of_week(now)
    try:
        return now - parse_duration(window)
    except OverflowError as e:
        raise ValueError(f"Invalid duration {window!r}: window is too large") from e
