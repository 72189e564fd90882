"""Cue - scheduled automations for agent applications."""

__version__ = "0.1.0"
