"""Timer registry: at most one live asyncio timer per automation id.

All methods must be called from the event loop thread that owns the
registry. Each arm is tagged with a generation number; a firing whose
generation is no longer current is dropped, so once ``cancel`` (or a
re-``arm``) returns the old timer can never deliver.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], None]


@dataclass
class _Timer:
    generation: int
    handle: asyncio.TimerHandle
    on_fire: TimerCallback
    interval: float | None = None  # Set for repeating timers


class TimerRegistry:
    """Owns the live timer handle for each automation id."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._timers: dict[str, _Timer] = {}
        self._generations = itertools.count(1)

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, timer_id: object) -> bool:
        return timer_id in self._timers

    def armed_ids(self) -> list[str]:
        return list(self._timers)

    def is_armed(self, timer_id: str) -> bool:
        return timer_id in self._timers

    def is_repeating(self, timer_id: str) -> bool:
        timer = self._timers.get(timer_id)
        return timer is not None and timer.interval is not None

    def arm(
        self,
        timer_id: str,
        delay: float,
        *,
        repeating: bool = False,
        on_fire: TimerCallback,
    ) -> None:
        """Install a timer for ``timer_id``, replacing any existing one.

        One-shot timers fire once after ``delay`` seconds. Repeating timers
        fire every ``delay`` seconds, each tick measured from the previous
        fire.

        Raises:
            ValueError: If a repeating timer is given a non-positive delay.
        """
        if repeating and delay <= 0:
            raise ValueError("Repeating timers require a positive interval")

        self.cancel(timer_id)

        delay = max(delay, 0.0)
        generation = next(self._generations)
        handle = self._get_loop().call_later(delay, self._fire, timer_id, generation)
        self._timers[timer_id] = _Timer(
            generation=generation,
            handle=handle,
            on_fire=on_fire,
            interval=delay if repeating else None,
        )
        logger.debug(
            "timer_armed",
            extra={
                "timer.id": timer_id,
                "timer.delay_seconds": round(delay, 3),
                "timer.repeating": repeating,
            },
        )

    def cancel(self, timer_id: str) -> bool:
        """Cancel the timer for ``timer_id``. No-op if none is armed.

        Returns:
            True if a timer was cancelled.
        """
        timer = self._timers.pop(timer_id, None)
        if timer is None:
            return False
        timer.handle.cancel()
        logger.debug("timer_cancelled", extra={"timer.id": timer_id})
        return True

    def cancel_all(self) -> int:
        """Cancel every live timer. Returns the number cancelled."""
        count = 0
        for timer_id in list(self._timers):
            if self.cancel(timer_id):
                count += 1
        return count

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _fire(self, timer_id: str, generation: int) -> None:
        timer = self._timers.get(timer_id)
        if timer is None or timer.generation != generation:
            logger.debug(
                "timer_stale_fire_dropped",
                extra={"timer.id": timer_id, "timer.generation": generation},
            )
            return

        if timer.interval is not None:
            # Next tick is installed before the callback so the callback may
            # cancel or re-arm this id.
            timer.handle = self._get_loop().call_later(
                timer.interval, self._fire, timer_id, generation
            )
        else:
            del self._timers[timer_id]

        try:
            timer.on_fire()
        except Exception:
            logger.exception("timer_callback_failed", extra={"timer.id": timer_id})
