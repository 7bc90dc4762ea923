"""
Trigger calculator for cloud sync tasks.

Periods arrive from the inventory service as a pair of strings
(``"day"``/``"14:30"``, ``"hour"``/``"45"``, ``"minute"``/anything). They are
parsed once into one of three tagged variants and every scheduling decision
is made on the variant.

Only the first firing of a task is aligned to the configured clock time;
subsequent firings re-arm with a fixed step (see ``rearm_interval``).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union

from .errors import InvalidPeriodError

logger = logging.getLogger(__name__)

PERIOD_DAY = "day"
PERIOD_HOUR = "hour"
PERIOD_MINUTE = "minute"

DAY_MINUTES = 1440
HOUR_MINUTES = 60
FIVE_MINUTES = 5


@dataclass(frozen=True)
class Daily:
    """Fire once a day at ``hour:minute`` local time."""

    hour: int
    minute: int


@dataclass(frozen=True)
class Hourly:
    """Fire once an hour at ``minute`` past the hour."""

    minute: int


@dataclass(frozen=True)
class EveryFiveMinutes:
    """Fire every five minutes regardless of the configured value."""

    pass


Period = Union[Daily, Hourly, EveryFiveMinutes]


def _parse_int(text: str, period_type: str, period: str, low: int, high: int) -> int:
    text = text.strip()
    # str.isdigit() also accepts digits int() rejects, such as "²"
    if not (text.isascii() and text.isdigit()):
        raise InvalidPeriodError(period_type, period, f"{text!r} is not a number")
    value = int(text)
    if not low <= value <= high:
        raise InvalidPeriodError(
            period_type, period, f"{value} is outside {low}-{high}"
        )
    return value


def parse_period(period_type: str, period: Optional[str]) -> Period:
    """
    Parse the string period encoding into a tagged variant

    Args:
        period_type: One of "day", "hour", "minute"
        period: "HH:MM" for day, minute-of-hour for hour, ignored for minute

    Returns:
        Daily, Hourly or EveryFiveMinutes

    Raises:
        InvalidPeriodError: If the type is unknown or the value is malformed

    Example:
        >>> parse_period("day", "14:30")
        Daily(hour=14, minute=30)
    """
    period = period or ""

    if period_type == PERIOD_MINUTE:
        return EveryFiveMinutes()

    if period_type == PERIOD_HOUR:
        return Hourly(minute=_parse_int(period, period_type, period, 0, 59))

    if period_type == PERIOD_DAY:
        parts = period.split(":")
        if len(parts) != 2:
            raise InvalidPeriodError(period_type, period, "expected HH:MM")
        hour = _parse_int(parts[0], period_type, period, 0, 23)
        minute = _parse_int(parts[1], period_type, period, 0, 59)
        return Daily(hour=hour, minute=minute)

    raise InvalidPeriodError(period_type, period, "unknown period type")


def next_trigger(period: Period, now: Optional[datetime] = None) -> int:
    """
    Minutes until the first firing of a task

    A target equal to the current minute counts as already passed and rolls
    over to the next occurrence.

    Args:
        period: Parsed period
        now: Current wall-clock time (default: datetime.now())

    Returns:
        Whole minutes until the next firing, never negative
    """
    if isinstance(period, EveryFiveMinutes):
        return FIVE_MINUTES

    now = now or datetime.now()

    if isinstance(period, Hourly):
        target = now.replace(minute=period.minute, second=0, microsecond=0)
        if period.minute <= now.minute:
            target += timedelta(hours=1)
    elif isinstance(period, Daily):
        target = now.replace(
            hour=period.hour, minute=period.minute, second=0, microsecond=0
        )
        if (period.hour, period.minute) <= (now.hour, now.minute):
            target += timedelta(days=1)
    else:
        raise TypeError(f"Unsupported period: {period!r}")

    remaining = int((target - now).total_seconds())
    return max(remaining // 60, 0)


def next_trigger_for(
    period_type: str, period: Optional[str], now: Optional[datetime] = None
) -> int:
    """Parse a string period and compute minutes until the first firing."""
    return next_trigger(parse_period(period_type, period), now=now)


def rearm_interval(period: Period) -> int:
    """
    Fixed step used after a task has fired once

    The step ignores the configured clock time: a daily task re-arms every
    1440 minutes from the end of its previous run.
    """
    if isinstance(period, Daily):
        return DAY_MINUTES
    if isinstance(period, Hourly):
        return HOUR_MINUTES
    return FIVE_MINUTES


def describe(period: Period) -> str:
    """Human readable form used in logs and the CLI."""
    if isinstance(period, Daily):
        return f"daily at {period.hour:02d}:{period.minute:02d}"
    if isinstance(period, Hourly):
        return f"hourly at minute {period.minute:02d}"
    return "every 5 minutes"
