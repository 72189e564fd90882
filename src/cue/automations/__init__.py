"""Automations subsystem: persisted tasks fired at wall-clock times.

Public API:
- AutomationManager: CRUD facade; the only entry point the app needs
- AutomationStore: Whole-list JSON persistence
- AutomationScheduler: Per-automation timer state machine
- TimerRegistry: One live timer per automation id
- CreateAutomationTool: Agent tool for creating automations

Types:
- AutomationRecord: A single automation (one-off or recurring)
- Recurrence: One-off or fixed interval, with next-fire math
- AutomationHandler: Async execution callback for fired automations
"""

from cue.automations.errors import (
    AutomationError,
    AutomationLimitError,
    InvalidRecurrenceError,
)
from cue.automations.executors import CommandExecutor, LoggingExecutor
from cue.automations.manager import AutomationManager
from cue.automations.scheduler import AutomationScheduler, SchedulerState
from cue.automations.store import AutomationStore
from cue.automations.timers import TimerRegistry
from cue.automations.tool import CreateAutomationTool, parse_execute_time
from cue.automations.types import AutomationHandler, AutomationRecord, Recurrence

__all__ = [
    "AutomationError",
    "AutomationHandler",
    "AutomationLimitError",
    "AutomationManager",
    "AutomationRecord",
    "AutomationScheduler",
    "AutomationStore",
    "CommandExecutor",
    "CreateAutomationTool",
    "InvalidRecurrenceError",
    "LoggingExecutor",
    "Recurrence",
    "SchedulerState",
    "TimerRegistry",
    "parse_execute_time",
]
