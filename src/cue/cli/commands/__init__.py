"""CLI command modules."""

from cue.cli.commands import automations, run

__all__ = ["automations", "run"]
