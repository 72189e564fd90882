"""Automation manager facade.

The manager owns the in-memory ordered list of automations and is the only
component the rest of the application talks to. Every mutation persists the
whole list and then (re)schedules the affected automation.

Must be used from a single event loop. A manager that is never started
works as an offline editor: CRUD and persistence without timers.

Saves run synchronously on the loop, including the one that removes a
consumed one-off from inside its timer callback. A save is a small
whole-file write plus fsync, but it waits up to the store's lock timeout
(10s) if another process, such as a CLI edit, holds the file lock.
"""

from __future__ import annotations

import logging
import uuid
from builtins import list as builtin_list
from collections.abc import Callable
from datetime import datetime
from types import TracebackType

from cue.automations.errors import AutomationLimitError
from cue.automations.scheduler import AutomationScheduler, SchedulerState
from cue.automations.store import AutomationStore
from cue.automations.types import AutomationHandler, AutomationRecord, Recurrence

logger = logging.getLogger(__name__)


class AutomationManager:
    """CRUD facade wiring the store and the scheduler together.

    Example:
        manager = AutomationManager(AutomationStore(path), on_execute=run_agent)
        async with manager:
            manager.create(
                title="Morning brief",
                instructions="Summarize my unread email",
                execute_time=tomorrow_8am,
                recurrence=Recurrence.every(timedelta(days=1)),
            )
            ...
    """

    def __init__(
        self,
        store: AutomationStore,
        *,
        on_execute: AutomationHandler | None = None,
        scheduler: AutomationScheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        max_automations: int | None = None,
    ) -> None:
        self._store = store
        self._scheduler = scheduler or AutomationScheduler(clock=clock)
        if on_execute is not None:
            self._scheduler.handler = on_execute
        self._scheduler.on_consumed = self._consume
        self._max_automations = max_automations
        self._automations: builtin_list[AutomationRecord] = []
        self._loaded = False
        self._started = False
        self._last_save_ok = True

    @property
    def store(self) -> AutomationStore:
        return self._store

    @property
    def scheduler(self) -> AutomationScheduler:
        return self._scheduler

    @property
    def on_execute(self) -> AutomationHandler | None:
        return self._scheduler.handler

    @on_execute.setter
    def on_execute(self, handler: AutomationHandler | None) -> None:
        self._scheduler.handler = handler

    @property
    def started(self) -> bool:
        return self._started

    @property
    def last_save_ok(self) -> bool:
        """Whether the most recent save reached the store."""
        return self._last_save_ok

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self) -> builtin_list[AutomationRecord]:
        """Replace the in-memory list with the stored one (no scheduling)."""
        self._automations = self._store.load()
        self._loaded = True
        return self.list()

    async def start(self) -> None:
        """Load stored automations and schedule every enabled one."""
        if self._started:
            return
        self.load()
        self._started = True
        for record in builtin_list(self._automations):
            self._scheduler.schedule(record)
        logger.info(
            "automation_manager_started",
            extra={
                "automation.count": len(self._automations),
                "file.path": str(self._store.path),
            },
        )

    async def stop(self, *, drain_timeout: float | None = None) -> None:
        """Cancel all live timers.

        Args:
            drain_timeout: If set, also wait up to this many seconds for
                running executions to finish.
        """
        if not self._started:
            return
        self._started = False
        self._scheduler.shutdown()
        if drain_timeout is not None:
            await self._scheduler.wait_idle(timeout=drain_timeout)
        logger.info("automation_manager_stopped")

    async def __aenter__(self) -> AutomationManager:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def list(self) -> builtin_list[AutomationRecord]:
        """Snapshot of all automations in insertion order."""
        self._ensure_loaded()
        return builtin_list(self._automations)

    def get(self, automation_id: str) -> AutomationRecord | None:
        self._ensure_loaded()
        index = self._index_of(automation_id)
        return None if index is None else self._automations[index]

    def state(self, automation_id: str) -> SchedulerState:
        return self._scheduler.state(automation_id)

    def create_or_replace(self, record: AutomationRecord) -> AutomationRecord:
        """Create an automation, or replace the one with the same id in place.

        A replaced automation keeps its list position and its old timer is
        cancelled before anything else happens. The list is persisted, then
        the record is scheduled (if the manager is started). A failed save is
        logged and scheduling still proceeds; see ``last_save_ok``.

        Raises:
            AutomationLimitError: If this is a new id and the configured
                limit is already reached.
        """
        self._ensure_loaded()
        index = self._index_of(record.id)

        if index is None:
            if (
                self._max_automations is not None
                and len(self._automations) >= self._max_automations
            ):
                raise AutomationLimitError(self._max_automations)
            self._automations.append(record)
        else:
            del self._automations[index]
            self._scheduler.cancel(record.id)
            self._automations.insert(index, record)

        self._save()
        logger.info(
            "automation_saved",
            extra={
                "automation.id": record.id,
                "automation.title": record.title,
                "automation.replaced": index is not None,
                "automation.enabled": record.enabled,
            },
        )

        if self._started:
            self._scheduler.schedule(record)
        return record

    def create(
        self,
        *,
        title: str,
        instructions: str,
        execute_time: datetime,
        recurrence: Recurrence | None = None,
        enabled: bool = True,
        id: str | None = None,
    ) -> AutomationRecord:
        """Build a record (generating an id if needed) and create it."""
        record = AutomationRecord(
            id=id or uuid.uuid4().hex[:8],
            title=title,
            instructions=instructions,
            execute_time=execute_time,
            recurrence=recurrence or Recurrence.once(),
            enabled=enabled,
        )
        return self.create_or_replace(record)

    def set_enabled(self, automation_id: str, enabled: bool) -> AutomationRecord | None:
        """Toggle an automation, rescheduling it. Returns None if not found."""
        record = self.get(automation_id)
        if record is None:
            return None
        return self.create_or_replace(record.replace(enabled=enabled))

    def remove(self, automation_id: str) -> bool:
        """Remove an automation and cancel its timer. No-op if absent."""
        self._ensure_loaded()
        index = self._index_of(automation_id)
        if index is None:
            return False

        del self._automations[index]
        self._scheduler.cancel(automation_id)
        self._save()
        logger.info("automation_removed", extra={"automation.id": automation_id})
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _index_of(self, automation_id: str) -> int | None:
        for i, record in enumerate(self._automations):
            if record.id == automation_id:
                return i
        return None

    def _save(self) -> None:
        self._last_save_ok = self._store.save(self._automations)
        if not self._last_save_ok:
            logger.error(
                "automation_save_failed",
                extra={
                    "file.path": str(self._store.path),
                    "automation.count": len(self._automations),
                },
            )

    def _consume(self, automation_id: str) -> None:
        if self.remove(automation_id):
            logger.info("automation_consumed", extra={"automation.id": automation_id})
