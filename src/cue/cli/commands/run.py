"""Run the automation scheduler until interrupted."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer

from cue.cli.console import console, error

if TYPE_CHECKING:
    from cue.automations import AutomationHandler
    from cue.config import CueConfig

# Seconds to let running executions finish on shutdown
_DRAIN_TIMEOUT = 10.0


def register(app: typer.Typer) -> None:
    """Register the run command."""

    @app.command()
    def run(
        config: Annotated[
            Path | None,
            typer.Option("--config", "-c", help="Path to configuration file"),
        ] = None,
        command: Annotated[
            list[str] | None,
            typer.Option(
                "--command",
                help="Command to run per firing (repeat for each argument); "
                "overrides [executor].command",
            ),
        ] = None,
        log_level: Annotated[
            str | None,
            typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING or ERROR"),
        ] = None,
    ) -> None:
        """Fire automations at their scheduled times until interrupted.

        Each firing runs the configured command with the automation's
        instructions on stdin. Without a command, firings are only logged.
        """
        import asyncio

        from cue.config import load_config_or_default
        from cue.logging import configure_logging

        configure_logging(level=log_level, use_rich=True, log_to_file=True)

        try:
            cfg = load_config_or_default(config)
        except (FileNotFoundError, ValueError) as e:
            error(str(e))
            raise typer.Exit(1) from None

        if cfg.sentry:
            from cue.observability import init_sentry

            init_sentry(cfg.sentry)

        try:
            asyncio.run(_run(cfg, command))
        except KeyboardInterrupt:
            pass
        console.print("[dim]Stopped[/dim]")


def build_executor(config: CueConfig, command: list[str] | None) -> AutomationHandler:
    """Pick the execution callback for `cue run`."""
    from cue.automations import CommandExecutor, LoggingExecutor

    argv = command or config.executor.command
    if argv:
        return CommandExecutor(argv, timeout=config.executor.timeout)
    return LoggingExecutor()


async def _run(config: CueConfig, command: list[str] | None) -> None:
    import asyncio
    import logging
    import signal

    from cue.automations import AutomationManager, AutomationStore

    logger = logging.getLogger(__name__)

    manager = AutomationManager(
        AutomationStore(config.automations.storage_path),
        on_execute=build_executor(config, command),
        max_automations=config.automations.max_automations,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    await manager.start()
    console.print(
        f"[green]Running {len(manager.list())} automation(s)[/green] "
        f"[dim]({manager.store.path})[/dim]"
    )
    try:
        await stop_event.wait()
    finally:
        logger.info("automation_runner_stopping")
        await manager.stop(drain_timeout=_DRAIN_TIMEOUT)
