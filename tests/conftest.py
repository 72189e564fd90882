"""Shared test fixtures and factories."""

import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from cue.automations import (
    AutomationManager,
    AutomationRecord,
    AutomationScheduler,
    AutomationStore,
    Recurrence,
)

# Fixed reference time for deterministic recurrence math
NOW = datetime(2026, 1, 12, 9, 0, 0, tzinfo=UTC)


def make_record(
    id: str = "a1b2c3d4",
    *,
    execute_time: datetime | None = None,
    recurrence: Recurrence | None = None,
    enabled: bool = True,
    title: str = "Test automation",
    instructions: str = "Summarize my inbox",
) -> AutomationRecord:
    return AutomationRecord(
        id=id,
        title=title,
        instructions=instructions,
        execute_time=execute_time or datetime.now(UTC) + timedelta(hours=1),
        recurrence=recurrence or Recurrence.once(),
        enabled=enabled,
    )


class Recorder:
    """Execution callback that records every firing."""

    def __init__(self) -> None:
        self.calls: list[AutomationRecord] = []
        self.fired = asyncio.Event()

    async def __call__(self, record: AutomationRecord) -> None:
        self.calls.append(record)
        self.fired.set()

    def ids(self) -> list[str]:
        return [record.id for record in self.calls]

    def count(self, automation_id: str) -> int:
        return self.ids().count(automation_id)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "automations.json"


@pytest.fixture
def store(store_path: Path) -> AutomationStore:
    return AutomationStore(store_path)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
async def manager(store: AutomationStore, recorder: Recorder):
    """A started manager on the test's event loop."""
    mgr = AutomationManager(store, on_execute=recorder)
    await mgr.start()
    yield mgr
    await mgr.stop()


@pytest.fixture
def fixed_scheduler(recorder: Recorder) -> AutomationScheduler:
    """Scheduler whose clock is pinned to NOW."""
    return AutomationScheduler(handler=recorder, clock=lambda: NOW)


@pytest.fixture(autouse=True)
def cue_home(tmp_path: Path, monkeypatch) -> Path:
    """Point CUE_HOME at a temp dir so tests never touch ~/.cue."""
    from cue.config.paths import ENV_VAR, get_cue_home

    home = (tmp_path / "cue-home").resolve()
    monkeypatch.setenv(ENV_VAR, str(home))
    get_cue_home.cache_clear()
    yield home
    get_cue_home.cache_clear()


@pytest.fixture
def config_file(tmp_path: Path, store_path: Path) -> Path:
    """Config file pointing the store at the test's temp dir."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f'timezone = "UTC"\n\n[automations]\nstorage_path = "{store_path}"\nmax_automations = 3\n'
    )
    return config_path


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
