"""Configuration models using Pydantic."""

import logging
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, SecretStr, field_validator

from cue.config.paths import get_automations_path, get_system_timezone

logger = logging.getLogger(__name__)


class AutomationsConfig(BaseModel):
    """Configuration for the automation store and scheduler."""

    storage_path: Path = Field(default_factory=get_automations_path)
    # None disables the limit
    max_automations: int | None = 10

    @field_validator("max_automations")
    @classmethod
    def _validate_limit(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError("max_automations must be at least 1")
        return value


class ExecutorConfig(BaseModel):
    """Configuration for the command executor used by `cue run`.

    When no command is set, fired automations are only logged.
    """

    command: list[str] | None = None
    timeout: float = 300.0


class SentryConfig(BaseModel):
    """Configuration for Sentry error reporting."""

    dsn: SecretStr | None = None
    environment: str = "production"
    release: str | None = None
    traces_sample_rate: float = 0.0
    profiles_sample_rate: float = 0.0
    send_default_pii: bool = False
    debug: bool = False


class CueConfig(BaseModel):
    """Root configuration model."""

    # IANA timezone used to interpret user-entered local times
    timezone: str = Field(default_factory=get_system_timezone)
    automations: AutomationsConfig = Field(default_factory=AutomationsConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    sentry: SentryConfig | None = None

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("invalid_timezone", extra={"config.timezone": value})
            return "UTC"
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
