"""Configuration module."""

from cue.config.loader import get_default_config, load_config, load_config_or_default
from cue.config.models import (
    AutomationsConfig,
    CueConfig,
    ExecutorConfig,
    SentryConfig,
)
from cue.config.paths import (
    get_automations_path,
    get_config_path,
    get_cue_home,
    get_logs_path,
)

__all__ = [
    "AutomationsConfig",
    "CueConfig",
    "ExecutorConfig",
    "SentryConfig",
    "get_automations_path",
    "get_config_path",
    "get_cue_home",
    "get_default_config",
    "get_logs_path",
    "load_config",
    "load_config_or_default",
]
