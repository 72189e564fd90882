"""Automation types.

Public types:
- Recurrence: One-off or fixed-interval recurrence, plus next-fire math
- AutomationRecord: A persisted automation
- AutomationHandler: Async execution callback for fired automations
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from typing import Any

from cue.automations.errors import InvalidRecurrenceError

logger = logging.getLogger(__name__)

_ONCE = "once"
_EVERY = "every"

# Bounds accepted by the "dd-hh-mm" format
_MAX_DAYS = 30
_MAX_HOURS = 23
_MAX_MINUTES = 59


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


@dataclass(frozen=True)
class Recurrence:
    """How often an automation repeats.

    ``interval`` is None for one-off automations. A periodic recurrence with a
    non-positive interval can be represented (it may come from storage) but
    is never scheduled.
    """

    interval: timedelta | None = None

    @classmethod
    def once(cls) -> Recurrence:
        return cls()

    @classmethod
    def every(cls, interval: timedelta | float) -> Recurrence:
        if not isinstance(interval, timedelta):
            interval = timedelta(seconds=interval)
        return cls(interval=interval)

    @classmethod
    def from_parts(cls, days: int = 0, hours: int = 0, minutes: int = 0) -> Recurrence:
        """Build from day/hour/minute parts; all zero means one-off."""
        if days == 0 and hours == 0 and minutes == 0:
            return cls.once()
        return cls.every(timedelta(days=days, hours=hours, minutes=minutes))

    @classmethod
    def parse(cls, value: str) -> Recurrence:
        """Parse a ``dd-hh-mm`` recurrence, e.g. ``00-01-30`` for every 90 minutes.

        ``00-00-00`` is a one-off.

        Raises:
            InvalidRecurrenceError: If the format or any component is invalid.
        """
        components = value.strip().split("-")
        if len(components) != 3:
            raise InvalidRecurrenceError("Invalid recurrence format")

        days_s, hours_s, minutes_s = components

        minutes = _parse_component(minutes_s, _MAX_MINUTES, "Minutes")
        hours = _parse_component(hours_s, _MAX_HOURS, "Hours")
        days = _parse_component(days_s, _MAX_DAYS, "Days")

        return cls.from_parts(days=days, hours=hours, minutes=minutes)

    @property
    def is_one_off(self) -> bool:
        return self.interval is None

    @property
    def is_valid(self) -> bool:
        return self.interval is None or self.interval > timedelta(0)

    def next_fire_time(self, anchor: datetime, now: datetime) -> datetime | None:
        """Get the next fire time at or after ``now``.

        One-off: the anchor, or ``now`` if the anchor has passed (overdue
        automations fire immediately rather than being skipped).

        Periodic: the anchor if still in the future, otherwise the first
        ``anchor + k * interval`` strictly after ``now``. Missed cycles are
        coalesced into that single next firing.

        Returns:
            The next fire time, or None if the recurrence is invalid or the
            next boundary is out of the representable range.
        """
        if not self.is_valid:
            return None
        if anchor > now:
            return anchor
        if self.interval is None:
            return now

        missed = (now - anchor) // self.interval
        try:
            return anchor + (missed + 1) * self.interval
        except OverflowError:
            # Next boundary lies past datetime.max
            return None

    def describe(self) -> str:
        """Human-readable description, e.g. ``every 1 day, 2 hours``."""
        if self.interval is None:
            return "once"
        if not self.is_valid:
            return "invalid interval"

        total = int(self.interval.total_seconds())
        days, rem = divmod(total, 86400)
        hours, rem = divmod(rem, 3600)
        minutes, seconds = divmod(rem, 60)

        parts: list[str] = []
        if days:
            parts.append(_plural(days, "day"))
        if hours:
            parts.append(_plural(hours, "hour"))
        if minutes:
            parts.append(_plural(minutes, "min"))
        if seconds or not parts:
            parts.append(_plural(seconds, "sec"))
        return "every " + ", ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        if self.interval is None:
            return {"type": _ONCE}
        return {"type": _EVERY, "interval_seconds": self.interval.total_seconds()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Recurrence:
        """Parse a recurrence payload.

        Also accepts the ``{"days", "hours", "minutes"}`` layout.

        Raises:
            ValueError: If the payload is not a recognised recurrence.
        """
        kind = data.get("type")
        if kind == _ONCE:
            return cls.once()
        if kind == _EVERY:
            return cls.every(float(data["interval_seconds"]))
        if kind is None and {"days", "hours", "minutes"} & data.keys():
            return cls.from_parts(
                days=int(data.get("days", 0)),
                hours=int(data.get("hours", 0)),
                minutes=int(data.get("minutes", 0)),
            )
        raise ValueError(f"Unknown recurrence: {data!r}")


def _parse_component(raw: str, maximum: int, label: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        value = -1
    if not 0 <= value <= maximum:
        raise InvalidRecurrenceError(f"{label} should be between 0 and {maximum}")
    return value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass
class AutomationRecord:
    """A persisted automation.

    For one-off automations ``execute_time`` is the single fire time; for
    periodic ones it is the anchor that recurrence offsets are computed from.
    ``instructions`` is forwarded verbatim to the execution callback.
    """

    id: str
    title: str
    instructions: str
    execute_time: datetime
    recurrence: Recurrence = field(default_factory=Recurrence.once)
    enabled: bool = True

    def __post_init__(self) -> None:
        self.execute_time = _as_utc(self.execute_time)

    @property
    def is_periodic(self) -> bool:
        return not self.recurrence.is_one_off

    def next_fire_time(self, now: datetime | None = None) -> datetime | None:
        """Get the next fire time, or None if this record cannot be scheduled.

        Disabled records still report a fire time; callers decide whether
        to honour ``enabled``.
        """
        now = _as_utc(now) if now else datetime.now(UTC)
        return self.recurrence.next_fire_time(self.execute_time, now)

    def initial_delay(self, now: datetime | None = None) -> float | None:
        """Seconds from ``now`` until the first firing, or None if unschedulable."""
        now = _as_utc(now) if now else datetime.now(UTC)
        fire_at = self.recurrence.next_fire_time(self.execute_time, now)
        if fire_at is None:
            return None
        return max((fire_at - now).total_seconds(), 0.0)

    def replace(self, **changes: Any) -> AutomationRecord:
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "instructions": self.instructions,
            "execute_time": self.execute_time.isoformat(),
            "recurrence": self.recurrence.to_dict(),
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AutomationRecord | None:
        """Parse a record payload, returning None if it is unusable."""
        record_id = data.get("id")
        raw_time = data.get("execute_time")
        if not record_id or not isinstance(record_id, str) or not raw_time:
            return None

        try:
            execute_time = datetime.fromisoformat(raw_time)
            raw_recurrence = data.get("recurrence") or {"type": _ONCE}
            recurrence = Recurrence.from_dict(raw_recurrence)
        except (AttributeError, TypeError, ValueError, KeyError, OverflowError) as e:
            logger.warning(
                "automation_parse_failed",
                extra={"automation.id": record_id, "error.message": str(e)},
            )
            return None

        return cls(
            id=record_id,
            title=str(data.get("title", "")),
            instructions=str(data.get("instructions", "")),
            execute_time=execute_time,
            recurrence=recurrence,
            enabled=bool(data.get("enabled", True)),
        )


# Handler receives the full record; return value and exceptions are ignored
AutomationHandler = Callable[[AutomationRecord], Awaitable[Any]]
