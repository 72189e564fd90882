"""Automation management commands.

These commands edit the store through an AutomationManager that is never
started, so no timers run in the CLI process. A running `cue run` process
only sees the changes after a restart.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from cue.cli.console import confirm_or_cancel, console, dim, error, success, warning

if TYPE_CHECKING:
    from cue.automations import AutomationManager
    from cue.config import CueConfig

app = typer.Typer(
    name="automations",
    help="Manage automations.",
    invoke_without_command=True,
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to configuration file"),
]


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="automations")


def format_countdown(next_fire: datetime | None, now: datetime | None = None) -> str:
    """Countdown to the next firing with at most two units, e.g. ``in 2h 5m``."""
    if next_fire is None:
        return "[dim]?[/dim]"

    now = now or datetime.now(UTC)
    remaining = int((next_fire - now).total_seconds())
    if remaining <= 0:
        return "[green]now[/green]"

    minutes, seconds = divmod(remaining, 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    units = [(days, "d"), (hours, "h"), (minutes, "m"), (seconds, "s")]

    # Leading unit plus the next one, skipping a zero remainder; seconds
    # only show when under a minute
    while units[0][0] == 0:
        units.pop(0)
    shown = [f"{units[0][0]}{units[0][1]}"]
    if len(units) > 1 and units[1][0] and units[1][1] != "s":
        shown.append(f"{units[1][0]}{units[1][1]}")
    return "in " + " ".join(shown)


def _load_config(config_path: Path | None) -> CueConfig:
    from cue.config import load_config_or_default

    try:
        return load_config_or_default(config_path)
    except (FileNotFoundError, ValueError) as e:
        error(str(e))
        raise typer.Exit(1) from None


def _create_manager(config: CueConfig) -> AutomationManager:
    from cue.automations import AutomationManager, AutomationStore

    return AutomationManager(
        AutomationStore(config.automations.storage_path),
        max_automations=config.automations.max_automations,
    )


@app.callback()
def _default(ctx: typer.Context, config: ConfigOption = None) -> None:
    """Manage automations. Run without a subcommand to list them."""
    if ctx.invoked_subcommand is None:
        _automations_list(_load_config(config))


@app.command("list")
def list_cmd(config: ConfigOption = None) -> None:
    """List all automations."""
    _automations_list(_load_config(config))


@app.command("add")
def add_cmd(
    title: Annotated[str, typer.Option("--title", "-t", help="Display title")],
    instructions: Annotated[
        str, typer.Option("--instructions", "-i", help="Prompt to run when fired")
    ],
    at: Annotated[
        str,
        typer.Option("--at", help="First run, 'YYYY-MM-DD HH:MM' or 'HH:MM' (local)"),
    ],
    every: Annotated[
        str,
        typer.Option("--every", help="Recurrence as dd-hh-mm; 00-00-00 runs once"),
    ] = "00-00-00",
    disabled: Annotated[
        bool, typer.Option("--disabled", help="Create without scheduling")
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Create an automation."""
    from cue.automations import (
        AutomationLimitError,
        InvalidRecurrenceError,
        Recurrence,
        parse_execute_time,
    )

    cfg = _load_config(config)

    try:
        recurrence = Recurrence.parse(every)
    except InvalidRecurrenceError as e:
        error(str(e))
        raise typer.Exit(1) from None

    try:
        execute_time = parse_execute_time(at, cfg.timezone)
    except ValueError:
        error(f"Invalid date time format: {at!r} (expected YYYY-MM-DD HH:MM)")
        raise typer.Exit(1) from None

    manager = _create_manager(cfg)
    try:
        record = manager.create(
            title=title,
            instructions=instructions,
            execute_time=execute_time,
            recurrence=recurrence,
            enabled=not disabled,
        )
    except AutomationLimitError as e:
        error(str(e))
        raise typer.Exit(1) from None

    if not manager.last_save_ok:
        error("Failed to save automations")
        raise typer.Exit(1)

    success(f"Created automation {record.id} ({recurrence.describe()})")


@app.command("remove")
def remove_cmd(
    automation_id: Annotated[str, typer.Argument(help="Automation ID")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Remove without confirmation")
    ] = False,
    config: ConfigOption = None,
) -> None:
    """Remove an automation."""
    manager = _create_manager(_load_config(config))
    record = manager.get(automation_id)
    if record is None:
        error(f"No automation found with ID {automation_id}")
        raise typer.Exit(1)

    if not confirm_or_cancel(f"Remove automation '{record.title}'?", force):
        return

    manager.remove(automation_id)
    if not manager.last_save_ok:
        error("Failed to save automations")
        raise typer.Exit(1)
    success(f"Removed: {record.title}")


@app.command("enable")
def enable_cmd(
    automation_id: Annotated[str, typer.Argument(help="Automation ID")],
    config: ConfigOption = None,
) -> None:
    """Enable an automation."""
    _set_enabled(_load_config(config), automation_id, True)


@app.command("disable")
def disable_cmd(
    automation_id: Annotated[str, typer.Argument(help="Automation ID")],
    config: ConfigOption = None,
) -> None:
    """Disable an automation without removing it."""
    _set_enabled(_load_config(config), automation_id, False)


def _set_enabled(config: CueConfig, automation_id: str, enabled: bool) -> None:
    manager = _create_manager(config)
    record = manager.set_enabled(automation_id, enabled)
    if record is None:
        error(f"No automation found with ID {automation_id}")
        raise typer.Exit(1)
    if not manager.last_save_ok:
        error("Failed to save automations")
        raise typer.Exit(1)
    success(f"{'Enabled' if enabled else 'Disabled'}: {record.title}")


def _automations_list(config: CueConfig) -> None:
    from cue.cli.console import create_table

    manager = _create_manager(config)
    records = manager.list()

    if not records:
        warning("No automations found")
        return

    tz = config.tzinfo
    now = datetime.now(UTC)
    table = create_table(
        [
            ("ID", "dim"),
            ("Title", ""),
            ("Starts", ""),
            ("Repeats", ""),
            ("Enabled", ""),
            ("Next Fire", ""),
        ]
    )

    for record in records:
        title = record.title[:40] + "..." if len(record.title) > 40 else record.title
        next_fire = record.next_fire_time(now) if record.enabled else None
        table.add_row(
            record.id,
            title,
            record.execute_time.astimezone(tz).strftime("%Y-%m-%d %H:%M"),
            record.recurrence.describe(),
            "[green]yes[/green]" if record.enabled else "[dim]no[/dim]",
            format_countdown(next_fire, now) if record.enabled else "[dim]-[/dim]",
        )

    console.print(table)
    dim(f"Total: {len(records)} automation(s)")
