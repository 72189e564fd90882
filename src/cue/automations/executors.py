"""Stock execution callbacks for fired automations.

The engine treats execution as opaque: these adapters log their own
failures and never raise back into the scheduler.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence

from cue.automations.types import AutomationRecord

logger = logging.getLogger(__name__)

# Keep stderr excerpts in logs short
_STDERR_PREVIEW_CHARS = 500


class LoggingExecutor:
    """Records each firing in the log and does nothing else."""

    async def __call__(self, record: AutomationRecord) -> None:
        logger.info(
            "automation_executed",
            extra={
                "automation.id": record.id,
                "automation.title": record.title,
                "automation.instructions_preview": record.instructions[:50],
            },
        )


class CommandExecutor:
    """Runs an external command for each firing.

    The instructions are written to the command's stdin. The automation id
    and title are exported as CUE_AUTOMATION_ID and CUE_AUTOMATION_TITLE.

    Example:
        executor = CommandExecutor(["claude", "-p", "-"], timeout=600)
    """

    def __init__(self, command: Sequence[str], timeout: float = 300.0) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self._timeout = timeout

    @property
    def command(self) -> list[str]:
        return list(self._command)

    def _environment(self, record: AutomationRecord) -> dict[str, str]:
        env = dict(os.environ)
        env["CUE_AUTOMATION_ID"] = record.id
        env["CUE_AUTOMATION_TITLE"] = record.title
        return env

    async def __call__(self, record: AutomationRecord) -> int | None:
        """Run the command. Returns its exit code, or None if it never ran."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                env=self._environment(record),
            )
        except OSError as e:
            logger.error(
                "automation_command_not_started",
                extra={
                    "automation.id": record.id,
                    "process.command": self._command[0],
                    "error.message": str(e),
                },
            )
            return None

        try:
            _, stderr = await asyncio.wait_for(
                proc.communicate(input=record.instructions.encode("utf-8")),
                timeout=self._timeout,
            )
        except TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error(
                "automation_command_timeout",
                extra={
                    "automation.id": record.id,
                    "process.timeout_seconds": self._timeout,
                },
            )
            return proc.returncode

        if proc.returncode != 0:
            logger.error(
                "automation_command_failed",
                extra={
                    "automation.id": record.id,
                    "process.exit_code": proc.returncode,
                    "error.message": stderr.decode("utf-8", errors="replace")
                    .strip()[:_STDERR_PREVIEW_CHARS],
                },
            )
        else:
            logger.info(
                "automation_command_completed",
                extra={"automation.id": record.id, "process.exit_code": 0},
            )
        return proc.returncode
