"""Agent tool for creating automations from a conversation."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from cue.automations.errors import AutomationLimitError, InvalidRecurrenceError
from cue.automations.types import Recurrence
from cue.tools.base import Tool, ToolContext, ToolResult

if TYPE_CHECKING:
    from cue.automations.manager import AutomationManager

logger = logging.getLogger(__name__)

EXECUTE_TIME_FORMAT = "%Y-%m-%d %H:%M"
_TIME_ONLY_FORMAT = "%H:%M"


def parse_execute_time(
    value: str, timezone: str = "UTC", now: datetime | None = None
) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM`` (or bare ``HH:MM`` for today) in a timezone.

    Returns:
        The timestamp converted to UTC.

    Raises:
        ValueError: If the value matches neither format.
    """
    tz = ZoneInfo(timezone)
    text = value.strip()
    try:
        local = datetime.strptime(text, EXECUTE_TIME_FORMAT)
    except ValueError:
        clock = datetime.strptime(text, _TIME_ONLY_FORMAT)
        today = (now or datetime.now(UTC)).astimezone(tz)
        local = today.replace(
            hour=clock.hour, minute=clock.minute, second=0, microsecond=0, tzinfo=None
        )
    return local.replace(tzinfo=tz).astimezone(UTC)


class CreateAutomationTool(Tool):
    """Create a one-off or recurring automation.

    Only usable when the user gave an execution time; the model is told so
    in the description.
    """

    name = "create_automation"
    description = (
        "Create recurring or one-off automation tasks. "
        "Use this tool only if an execution time is provided."
    )

    def __init__(self, manager: AutomationManager, timezone: str = "UTC") -> None:
        self._manager = manager
        self._timezone = timezone

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": (
                        "Title of the automation, only used to tell automations apart. "
                        "If the user did not give one, suggest one based on the instructions."
                    ),
                },
                "instructions": {
                    "type": "string",
                    "description": (
                        "The prompt the automation runs when the time comes. It is sent "
                        "to the model without further context, so keep it short and clear."
                    ),
                },
                "execute_time": {
                    "type": "string",
                    "description": (
                        f"When to execute, in YYYY-MM-DD HH:MM format ({self._timezone}). "
                        "If only a time is given, use the current date."
                    ),
                },
                "recurrence": {
                    "type": "string",
                    "description": (
                        "Recurrence in dd-hh-mm format (days-hours-minutes). "
                        "Use 00-00-00 for one-off automations."
                    ),
                },
            },
            "required": ["title", "instructions", "execute_time", "recurrence"],
        }

    async def execute(
        self,
        input_data: dict[str, Any],
        context: ToolContext,
    ) -> ToolResult:
        title = input_data.get("title")
        if not title or not isinstance(title, str):
            return ToolResult.error("Title not provided")

        instructions = input_data.get("instructions")
        if not instructions or not isinstance(instructions, str):
            return ToolResult.error("Instructions not provided")

        raw_recurrence = input_data.get("recurrence")
        if not raw_recurrence or not isinstance(raw_recurrence, str):
            return ToolResult.error("Recurrence not provided")
        try:
            recurrence = Recurrence.parse(raw_recurrence)
        except InvalidRecurrenceError as e:
            return ToolResult.error(str(e))

        raw_time = input_data.get("execute_time")
        if not raw_time or not isinstance(raw_time, str):
            return ToolResult.error("Execution time not provided")
        try:
            execute_time = parse_execute_time(raw_time, self._timezone)
        except ValueError:
            return ToolResult.error("Invalid date time format")

        try:
            record = self._manager.create(
                title=title,
                instructions=instructions,
                execute_time=execute_time,
                recurrence=recurrence,
            )
        except AutomationLimitError as e:
            return ToolResult.error(str(e))

        logger.info(
            "automation_created_by_tool",
            extra={"automation.id": record.id, "session.id": context.session_id},
        )
        local_time = record.execute_time.astimezone(ZoneInfo(self._timezone))
        return ToolResult.success(
            f"Automation created (id: {record.id}). "
            f"First run {local_time.strftime(EXECUTE_TIME_FORMAT)} {self._timezone} "
            f"({recurrence.describe()}).",
            automation_id=record.id,
        )
