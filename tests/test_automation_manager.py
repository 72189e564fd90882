"""Tests for the automation manager facade."""

import asyncio
import json
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from cue.automations import (
    AutomationLimitError,
    AutomationManager,
    AutomationStore,
    Recurrence,
    SchedulerState,
)
from tests.conftest import NOW, Recorder, make_record


class TestManagerCrud:
    """CRUD behaviour, with and without a running scheduler."""

    @pytest.mark.asyncio
    async def test_create_appends_and_persists(self, manager: AutomationManager, store):
        first = manager.create_or_replace(make_record("one"))
        second = manager.create_or_replace(make_record("two"))

        assert manager.list() == [first, second]
        assert store.load() == [first, second]
        assert manager.last_save_ok is True

    @pytest.mark.asyncio
    async def test_replace_keeps_position(self, manager: AutomationManager, store):
        for automation_id in ("a", "b", "c"):
            manager.create_or_replace(make_record(automation_id))

        updated = manager.create_or_replace(make_record("b", title="renamed"))

        assert [r.id for r in manager.list()] == ["a", "b", "c"]
        assert manager.get("b") == updated
        assert [r.title for r in store.load()][1] == "renamed"

    @pytest.mark.asyncio
    async def test_replace_reschedules(self, manager: AutomationManager):
        manager.create_or_replace(make_record("a"))
        old_handle = manager.scheduler.registry._timers["a"].handle

        manager.create_or_replace(make_record("a", title="again"))

        assert old_handle.cancelled()
        assert manager.state("a") == SchedulerState.ARMED_ONCE

    @pytest.mark.asyncio
    async def test_repeated_replace_keeps_one_live_timer(
        self, manager: AutomationManager
    ):
        handles = []
        for i in range(5):
            manager.create_or_replace(
                make_record("a", title=f"v{i}", recurrence=Recurrence.every(60 + i))
            )
            assert len(manager.scheduler.registry) == 1
            handles.append(manager.scheduler.registry._timers["a"].handle)

        assert all(handle.cancelled() for handle in handles[:-1])
        assert not handles[-1].cancelled()

    @pytest.mark.asyncio
    async def test_create_generates_id(self, manager: AutomationManager):
        record = manager.create(
            title="Daily summary",
            instructions="Summarize yesterday",
            execute_time=datetime.now(UTC) + timedelta(hours=1),
            recurrence=Recurrence.every(timedelta(days=1)),
        )

        assert len(record.id) == 8
        assert manager.get(record.id) == record
        assert manager.state(record.id) == SchedulerState.ARMED_ONCE

    @pytest.mark.asyncio
    async def test_remove(self, manager: AutomationManager, store):
        manager.create_or_replace(make_record("a"))
        manager.create_or_replace(make_record("b"))

        assert manager.remove("a") is True
        assert manager.remove("a") is False
        assert [r.id for r in manager.list()] == ["b"]
        assert [r.id for r in store.load()] == ["b"]
        assert manager.state("a") == SchedulerState.UNSCHEDULED

    @pytest.mark.asyncio
    async def test_remove_unknown_is_noop(self, manager: AutomationManager, store_path):
        assert manager.remove("missing") is False
        assert not store_path.exists()

    @pytest.mark.asyncio
    async def test_set_enabled(self, manager: AutomationManager):
        manager.create_or_replace(make_record("a"))

        disabled = manager.set_enabled("a", False)
        assert disabled is not None and disabled.enabled is False
        assert manager.state("a") == SchedulerState.UNSCHEDULED

        manager.set_enabled("a", True)
        assert manager.state("a") == SchedulerState.ARMED_ONCE

        assert manager.set_enabled("missing", True) is None

    @pytest.mark.asyncio
    async def test_list_is_a_copy(self, manager: AutomationManager):
        manager.create_or_replace(make_record("a"))
        snapshot = manager.list()
        snapshot.clear()
        assert len(manager.list()) == 1

    @pytest.mark.asyncio
    async def test_limit(self, store: AutomationStore, recorder: Recorder):
        manager = AutomationManager(store, on_execute=recorder, max_automations=2)
        await manager.start()
        try:
            manager.create_or_replace(make_record("a"))
            manager.create_or_replace(make_record("b"))

            with pytest.raises(AutomationLimitError, match="max 2"):
                manager.create_or_replace(make_record("c"))

            # Replacing an existing id is not limited
            manager.create_or_replace(make_record("b", title="edited"))
            assert [r.id for r in manager.list()] == ["a", "b"]
            assert manager.state("c") == SchedulerState.UNSCHEDULED
        finally:
            await manager.stop()


class TestManagerFiring:
    """End-to-end firing through the manager."""

    @pytest.mark.asyncio
    async def test_past_one_off_fires_once_then_disappears(
        self, manager: AutomationManager, recorder: Recorder, store
    ):
        record = make_record("past", execute_time=datetime.now(UTC) - timedelta(hours=2))

        manager.create_or_replace(record)
        await asyncio.wait_for(recorder.fired.wait(), timeout=1)
        await asyncio.sleep(0.02)

        assert recorder.ids() == ["past"]
        assert manager.get("past") is None
        assert store.load() == []

        await asyncio.sleep(0.05)
        assert recorder.count("past") == 1

    @pytest.mark.asyncio
    async def test_created_then_disabled_never_fires(
        self, manager: AutomationManager, recorder: Recorder
    ):
        record = make_record("soon", execute_time=datetime.now(UTC) + timedelta(seconds=0.05))

        manager.create_or_replace(record)
        manager.set_enabled("soon", False)
        await asyncio.sleep(0.15)

        assert recorder.calls == []
        assert manager.get("soon") is not None
        assert manager.get("soon").enabled is False

    @pytest.mark.asyncio
    async def test_removed_before_due_never_fires(
        self, manager: AutomationManager, recorder: Recorder
    ):
        manager.create_or_replace(
            make_record("gone", execute_time=datetime.now(UTC) + timedelta(seconds=0.05))
        )
        manager.remove("gone")
        await asyncio.sleep(0.15)

        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_periodic_keeps_firing(self, manager: AutomationManager, recorder: Recorder):
        manager.create_or_replace(
            make_record(
                "tick",
                execute_time=datetime.now(UTC),
                recurrence=Recurrence.every(0.04),
            )
        )
        await asyncio.sleep(0.2)

        assert recorder.count("tick") >= 3
        assert manager.get("tick") is not None
        assert manager.state("tick") == SchedulerState.ARMED_REPEATING

    @pytest.mark.asyncio
    async def test_on_execute_can_be_set_later(self, store: AutomationStore):
        manager = AutomationManager(store)
        recorder = Recorder()
        manager.on_execute = recorder
        assert manager.on_execute is recorder

        async with manager:
            manager.create_or_replace(make_record(execute_time=datetime.now(UTC)))
            await asyncio.wait_for(recorder.fired.wait(), timeout=1)

        assert recorder.ids() == ["a1b2c3d4"]


class TestManagerLifecycle:
    """Start, stop and restart behaviour."""

    @pytest.mark.asyncio
    async def test_start_schedules_stored_records(self, store: AutomationStore):
        now = datetime.now(UTC)
        store.save(
            [
                make_record("future", execute_time=now + timedelta(hours=1)),
                make_record("off", execute_time=now + timedelta(hours=1), enabled=False),
                make_record("broken", execute_time=now, recurrence=Recurrence.every(0)),
            ]
        )

        manager = AutomationManager(store, on_execute=Recorder())
        await manager.start()
        try:
            assert [r.id for r in manager.list()] == ["future", "off", "broken"]
            assert manager.state("future") == SchedulerState.ARMED_ONCE
            assert manager.state("off") == SchedulerState.UNSCHEDULED
            assert manager.state("broken") == SchedulerState.UNSCHEDULED
        finally:
            await manager.stop()

        assert manager.state("future") == SchedulerState.UNSCHEDULED

    @pytest.mark.asyncio
    async def test_restart_catch_up(self, store: AutomationStore):
        """A periodic record an hour behind fires at the next boundary, once."""
        record = make_record(
            "hourly",
            execute_time=NOW - timedelta(seconds=3600),
            recurrence=Recurrence.every(600),
        )
        store.save([record])

        recorder = Recorder()
        manager = AutomationManager(store, on_execute=recorder, clock=lambda: NOW)
        await manager.start()
        try:
            timer = manager.scheduler.registry._timers["hourly"]
            remaining = timer.handle.when() - asyncio.get_running_loop().time()
            assert remaining == pytest.approx(600, abs=0.5)
            assert recorder.calls == []
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_stop_drains_in_flight(self, store: AutomationStore):
        finished: list[str] = []

        async def slow(record):
            await asyncio.sleep(0.05)
            finished.append(record.id)

        manager = AutomationManager(store, on_execute=slow)
        await manager.start()
        manager.create_or_replace(make_record(execute_time=datetime.now(UTC)))
        await asyncio.sleep(0.02)

        await manager.stop(drain_timeout=1.0)
        assert finished == ["a1b2c3d4"]
        assert manager.started is False

    @pytest.mark.asyncio
    async def test_corrupt_store_starts_empty(self, store: AutomationStore, store_path: Path):
        store_path.write_text("{{{")
        manager = AutomationManager(store)
        await manager.start()
        try:
            assert manager.list() == []
        finally:
            await manager.stop()


class TestManagerUnschedulable:
    """Records that cannot be armed degrade to unscheduled."""

    @pytest.mark.asyncio
    async def test_start_with_out_of_range_interval(self, store: AutomationStore):
        huge = make_record(
            "huge",
            execute_time=datetime(2024, 1, 1, tzinfo=UTC),
            recurrence=Recurrence.every(timedelta(days=999_999_000)),
        )
        store.save([huge, make_record("fine")])

        manager = AutomationManager(store, on_execute=Recorder())
        await manager.start()
        try:
            assert manager.state("huge") == SchedulerState.UNSCHEDULED
            assert manager.state("fine") == SchedulerState.ARMED_ONCE
        finally:
            await manager.stop()

    @pytest.mark.asyncio
    async def test_create_with_out_of_range_interval(self, manager: AutomationManager):
        record = manager.create_or_replace(
            make_record(
                "huge",
                execute_time=datetime(2024, 1, 1, tzinfo=UTC),
                recurrence=Recurrence.every(timedelta(days=999_999_000)),
            )
        )

        assert manager.get("huge") == record
        assert manager.state("huge") == SchedulerState.UNSCHEDULED

    @pytest.mark.asyncio
    async def test_one_off_without_handler_stays_listed(self, store: AutomationStore):
        manager = AutomationManager(store)
        await manager.start()
        try:
            manager.create_or_replace(make_record("due", execute_time=datetime.now(UTC)))
            await asyncio.sleep(0.05)

            assert manager.get("due") is not None
            assert [r.id for r in store.load()] == ["due"]
            assert manager.state("due") == SchedulerState.UNSCHEDULED
        finally:
            await manager.stop()


class TestManagerPersistenceFailure:
    """Behaviour when the store cannot be written."""

    @pytest.mark.asyncio
    async def test_save_failure_still_schedules(self, tmp_path: Path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = AutomationStore(blocker / "automations.json")

        manager = AutomationManager(store, on_execute=Recorder())
        await manager.start()
        try:
            manager.create_or_replace(make_record("a"))
            assert manager.last_save_ok is False
            assert manager.get("a") is not None
            assert manager.state("a") == SchedulerState.ARMED_ONCE
            assert any(r.getMessage() == "automation_save_failed" for r in caplog.records)
        finally:
            await manager.stop()


class TestOfflineManager:
    """A manager that is never started edits the store without timers."""

    def test_crud_without_event_loop(self, store: AutomationStore, store_path: Path):
        manager = AutomationManager(store)
        manager.create_or_replace(make_record("a", execute_time=NOW))
        manager.set_enabled("a", False)

        data = json.loads(store_path.read_text())
        assert data["automations"][0]["enabled"] is False
        assert len(manager.scheduler.registry) == 0

    def test_lazy_load(self, store: AutomationStore):
        store.save([make_record("stored", execute_time=NOW)])
        manager = AutomationManager(store)
        assert [r.id for r in manager.list()] == ["stored"]
        manager.create_or_replace(make_record("new", execute_time=NOW))
        assert [r.id for r in store.load()] == ["stored", "new"]
