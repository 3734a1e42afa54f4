"""Wall-clock helpers for classification context."""

from __future__ import annotations

from datetime import datetime

from tabclf.core.types import TimeOfDay


def time_of_day(ts: datetime) -> TimeOfDay:
    """Bucket the local hour of *ts* into a :class:`TimeOfDay`.

    ``[0, 6)`` night, ``[6, 12)`` morning, ``[12, 18)`` afternoon,
    ``[18, 22)`` evening, ``[22, 24)`` night.
    """
    hour = ts.hour
    if hour < 6:
        return TimeOfDay.night
    if hour < 12:
        return TimeOfDay.morning
    if hour < 18:
        return TimeOfDay.afternoon
    if hour < 22:
        return TimeOfDay.evening
    return TimeOfDay.night


def day_of_week(ts: datetime) -> int:
    """0=Monday … 6=Sunday."""
    return ts.weekday()
