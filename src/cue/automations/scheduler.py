"""Automation scheduler: turns records into armed timers and fires them.

Per-id lifecycle::

    UNSCHEDULED -> ARMED_ONCE -> fired -> removed (one-off)
                                       -> ARMED_REPEATING -> fired -> ...

Catch-up for missed periodic firings is computed only when a record is
first scheduled (creation or process start). After the first firing the
record runs on a plain repeating timer at its interval.

Execution callbacks are dispatched as independent tasks and never awaited
by the scheduler. Cancelling an automation stops future firings; it does
not cancel an execution that is already running.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from functools import partial

from cue.automations.timers import TimerRegistry
from cue.automations.types import AutomationHandler, AutomationRecord

logger = logging.getLogger(__name__)


class SchedulerState(StrEnum):
    UNSCHEDULED = "unscheduled"
    ARMED_ONCE = "armed_once"
    ARMED_REPEATING = "armed_repeating"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AutomationScheduler:
    """Schedules automations onto a TimerRegistry.

    Args:
        registry: Timer registry owning the live timers.
        handler: Execution callback, or None to drop firings (offline use).
        on_consumed: Called with the id of a one-off automation once its
            single firing reached the handler, so the owner can delete it.
            A one-off that fires with no handler set is left in place.
        clock: Returns the current time (UTC). Injected for tests.
    """

    def __init__(
        self,
        registry: TimerRegistry | None = None,
        *,
        handler: AutomationHandler | None = None,
        on_consumed: Callable[[str], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry or TimerRegistry()
        self.handler = handler
        self.on_consumed = on_consumed
        self._clock = clock or _utcnow
        self._in_flight: set[asyncio.Task] = set()

    @property
    def registry(self) -> TimerRegistry:
        return self._registry

    @property
    def in_flight(self) -> int:
        """Number of execution callbacks still running."""
        return len(self._in_flight)

    def state(self, automation_id: str) -> SchedulerState:
        if not self._registry.is_armed(automation_id):
            return SchedulerState.UNSCHEDULED
        if self._registry.is_repeating(automation_id):
            return SchedulerState.ARMED_REPEATING
        return SchedulerState.ARMED_ONCE

    def schedule(self, record: AutomationRecord) -> SchedulerState:
        """(Re)schedule a record.

        Always cancels the existing timer first. Disabled records and
        records with an invalid interval end up unscheduled.
        """
        self._registry.cancel(record.id)

        if not record.enabled:
            logger.debug("automation_disabled", extra={"automation.id": record.id})
            return SchedulerState.UNSCHEDULED

        delay = record.initial_delay(self._clock())
        if delay is None:
            logger.warning(
                "automation_invalid_recurrence",
                extra={
                    "automation.id": record.id,
                    "automation.recurrence": record.recurrence.describe(),
                },
            )
            return SchedulerState.UNSCHEDULED

        self._registry.arm(
            record.id,
            delay,
            on_fire=partial(self._on_first_fire, record),
        )
        logger.info(
            "automation_scheduled",
            extra={
                "automation.id": record.id,
                "automation.delay_seconds": round(delay, 3),
                "automation.recurrence": record.recurrence.describe(),
            },
        )
        return SchedulerState.ARMED_ONCE

    def cancel(self, automation_id: str) -> bool:
        return self._registry.cancel(automation_id)

    def shutdown(self) -> int:
        """Cancel every live timer. In-flight executions keep running."""
        cancelled = self._registry.cancel_all()
        if cancelled:
            logger.info("scheduler_shutdown", extra={"timer.cancelled": cancelled})
        return cancelled

    async def wait_idle(self, timeout: float | None = None) -> None:
        """Wait for in-flight executions to finish."""
        if not self._in_flight:
            return
        await asyncio.wait(set(self._in_flight), timeout=timeout)

    def _on_first_fire(self, record: AutomationRecord) -> None:
        dispatched = self._dispatch(record)

        interval = record.recurrence.interval
        if interval is None:
            self._registry.cancel(record.id)
            # A one-off is only consumed once a handler actually received it
            if dispatched and self.on_consumed is not None:
                self.on_consumed(record.id)
            return

        self._registry.arm(
            record.id,
            interval.total_seconds(),
            repeating=True,
            on_fire=partial(self._dispatch, record),
        )

    def _dispatch(self, record: AutomationRecord) -> bool:
        logger.info(
            "automation_fired",
            extra={"automation.id": record.id, "automation.title": record.title},
        )
        if self.handler is None:
            logger.warning("automation_no_handler", extra={"automation.id": record.id})
            return False

        task = asyncio.get_running_loop().create_task(
            self._run_handler(self.handler, record),
            name=f"automation:{record.id}",
        )
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return True

    async def _run_handler(
        self, handler: AutomationHandler, record: AutomationRecord
    ) -> None:
        try:
            result = handler(record)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(
                "automation_execution_failed",
                extra={"automation.id": record.id, "error.message": str(e)},
            )
