"""Five-field cron expressions: validation, one-time classification, triggers.

Expressions follow classic crontab layout::

    minute  hour  day-of-month  month  day-of-week
    0-59    0-23  1-31          1-12   0-6 (0 = Sunday)

Each field is ``*``, a literal, a step (``*/n``), a range (``a-b``) or a
comma-separated list of literals and ranges.

Expiry checks always compare UTC instants; the scheduler zone defaults to UTC.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from apscheduler.triggers.cron import CronTrigger

FIELDS: tuple[tuple[str, int, int], ...] = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("day_of_week", 0, 6),
)

# Cron weekday numbers (0 = Sunday) to the names APScheduler understands.
# APScheduler's own numbering starts at Monday, so numbers are never passed through.
_WEEKDAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")

_LITERAL = re.compile(r"^\d{1,2}$")
_RANGE = re.compile(r"^(\d{1,2})-(\d{1,2})$")
_STEP = re.compile(r"^\*/(\d{1,2})$")


class CronExpressionError(ValueError):
    """Raised for a malformed schedule expression."""


def _check_bounds(value: int, name: str, low: int, high: int) -> int:
    if not low <= value <= high:
        msg = f"{name} value {value} is outside {low}-{high}"
        raise CronExpressionError(msg)
    return value


def parse_field(token: str, name: str, low: int, high: int) -> set[int]:
    """Expand one field into the set of values it matches."""
    if token == "*":
        return set(range(low, high + 1))

    step = _STEP.match(token)
    if step:
        n = int(step.group(1))
        if n < 1 or n > high:
            msg = f"{name} step {n} is outside 1-{high}"
            raise CronExpressionError(msg)
        return set(range(low, high + 1, n))

    values: set[int] = set()
    for part in token.split(","):
        if _LITERAL.match(part):
            values.add(_check_bounds(int(part), name, low, high))
            continue
        rng = _RANGE.match(part)
        if rng:
            start = _check_bounds(int(rng.group(1)), name, low, high)
            end = _check_bounds(int(rng.group(2)), name, low, high)
            if start > end:
                msg = f"{name} range {part} is reversed"
                raise CronExpressionError(msg)
            values.update(range(start, end + 1))
            continue
        msg = f"Invalid {name} field: {token!r}"
        raise CronExpressionError(msg)
    return values


def split_expression(expression: str) -> list[str]:
    """Split an expression into its five fields, validating each one."""
    parts = expression.strip().split()
    if len(parts) != len(FIELDS):
        msg = (
            "Cron expression must have exactly 5 parts "
            "(minute hour day month weekday)"
        )
        raise CronExpressionError(msg)
    for token, (name, low, high) in zip(parts, FIELDS, strict=True):
        parse_field(token, name, low, high)
    return parts


def validate_expression(expression: str) -> str | None:
    """Return an error message for an invalid expression, or None if valid."""
    try:
        split_expression(expression)
    except CronExpressionError as exc:
        return str(exc)
    return None


# -- Classification ------------------------------------------------------------


def is_one_time(expression: str) -> bool:
    """True when the day-of-month is pinned together with month or weekday."""
    _minute, _hour, day, month, weekday = split_expression(expression)
    if day == "*":
        return False
    return month != "*" or weekday != "*"


def one_time_target(
    expression: str,
    now: datetime | None = None,
    timezone: str = "UTC",
) -> datetime | None:
    """Return the UTC instant a one-time expression points at in the current year.

    The fields are read in *timezone* (the zone the trigger fires in) and the
    result is converted to UTC.  Only expressions that pin minute, hour, day
    and month to single literals have a computable target; anything else
    (including impossible dates such as 30 February) yields None.
    """
    if not is_one_time(expression):
        return None
    minute, hour, day, month, _weekday = split_expression(expression)
    if not all(_LITERAL.match(part) for part in (minute, hour, day, month)):
        return None

    zone = ZoneInfo(timezone)
    year = _as_utc(now).astimezone(zone).year
    try:
        local = datetime(year, int(month), int(day), int(hour), int(minute), tzinfo=zone)
    except ValueError:
        return None
    return local.astimezone(UTC)


def is_expired(
    expression: str,
    now: datetime | None = None,
    timezone: str = "UTC",
) -> bool:
    """True when a one-time expression's target is strictly before *now*.

    Both sides are compared as UTC instants.
    """
    target = one_time_target(expression, now, timezone)
    if target is None:
        return False
    return target < _as_utc(now)


def _as_utc(moment: datetime | None) -> datetime:
    if moment is None:
        return datetime.now(UTC)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


# -- Triggers ------------------------------------------------------------------


def build_trigger(expression: str, timezone: str = "UTC") -> CronTrigger:
    """Convert an expression into an APScheduler CronTrigger.

    Weekdays are rewritten as names so ``0`` keeps its crontab meaning (Sunday).
    """
    minute, hour, day, month, weekday = split_expression(expression)
    if weekday == "*":
        day_of_week = "*"
    else:
        days = sorted(parse_field(weekday, "day_of_week", 0, 6))
        day_of_week = ",".join(_WEEKDAY_NAMES[d] for d in days)
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=day_of_week,
        timezone=timezone,
    )
