"""Automation error types.

Persistence and execution failures are never raised through the engine;
these cover caller mistakes only.
"""


class AutomationError(Exception):
    """Base class for automation errors."""


class InvalidRecurrenceError(AutomationError, ValueError):
    """A recurrence could not be parsed or is out of range."""


class AutomationLimitError(AutomationError):
    """Creating another automation would exceed the configured limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"Automation limit reached (max {limit})")
        self.limit = limit
