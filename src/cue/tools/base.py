"""Agent tool interface.

A host application exposes tools to its model as ``{name, description,
input_schema}`` definitions and calls ``execute`` with the model's input.
Cue only ships the automation tool; the agent runtime lives elsewhere.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolContext:
    """Who is calling the tool. Used for logging only."""

    session_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResult:
    """Text returned to the model, plus structured data for the host."""

    content: str
    is_error: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, content: str, **metadata: Any) -> "ToolResult":
        return cls(content=content, metadata=metadata)

    @classmethod
    def error(cls, message: str, **metadata: Any) -> "ToolResult":
        return cls(content=message, is_error=True, metadata=metadata)


class Tool(ABC):
    """A capability the model can invoke by name."""

    name: str
    description: str

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema describing ``input_data``."""

    @abstractmethod
    async def execute(
        self, input_data: dict[str, Any], context: ToolContext
    ) -> ToolResult:
        """Run the tool. Bad input is reported as an error result, not raised."""

    def to_definition(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }
