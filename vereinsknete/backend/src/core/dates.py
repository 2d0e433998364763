"""Calendar helpers for ISO (Monday-first) weeks and session durations."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal

from .errors import InvalidRange

_SECONDS_PER_HOUR = Decimal(3600)


def week_start(day: date) -> date:
    """Return the Monday on or before ``day``."""

    return day - timedelta(days=day.weekday())


def week_end(day: date) -> date:
    """Return the Sunday closing the week that contains ``day``."""

    return week_start(day) + timedelta(days=6)


def week_days(day: date) -> list[date]:
    """Return the seven dates (Monday to Sunday) of the week containing ``day``."""

    start = week_start(day)
    return [start + timedelta(days=offset) for offset in range(7)]


def duration_hours(start: datetime, end: datetime) -> Decimal:
    """Return the length of ``[start, end)`` in hours.

    Raises :class:`InvalidRange` when ``end`` is not strictly after ``start``.
    """

    if end <= start:
        raise InvalidRange(
            "Session end must be after its start",
            start=start.isoformat(),
            end=end.isoformat(),
        )
    delta = end - start
    seconds = Decimal(delta.days * 86400 + delta.seconds)
    return seconds / _SECONDS_PER_HOUR


def period_bounds(period_start: date, period_end: date) -> tuple[datetime, datetime]:
    """Return half-open datetime bounds covering the inclusive date range."""

    if period_end < period_start:
        raise InvalidRange(
            "Billing period end must not precede its start",
            period_start=period_start.isoformat(),
            period_end=period_end.isoformat(),
        )
    lower = datetime.combine(period_start, datetime.min.time())
    upper = datetime.combine(period_end + timedelta(days=1), datetime.min.time())
    return lower, upper


__all__ = ["duration_hours", "period_bounds", "week_days", "week_end", "week_start"]
