"""Logging setup for Cue.

Log calls use short snake_case event names with details passed through
``extra`` under dotted keys::

    logger.info("automation_fired", extra={"automation.id": record.id})

Console output appends those fields as ``key=value``; the JSONL file keeps
them as a nested ``extra`` object.

Levels:
- DEBUG: timer arm/cancel, computed delays
- INFO: automation lifecycle (saved, scheduled, fired, removed)
- WARNING: recoverable data problems (corrupt store entries, bad recurrence)
- ERROR: save failures, failed executions
"""

import json
import logging
import os
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, TextIO

DEFAULT_LOG_RETENTION_DAYS = 7

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "component"}


def prune_old_logs(
    logs_dir: Path,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    suffix: str = ".jsonl",
) -> int:
    """Delete ``*{suffix}`` files not modified within the retention window.

    Returns:
        Number of files deleted.
    """
    if not logs_dir.is_dir():
        return 0

    cutoff = (datetime.now(UTC) - timedelta(days=retention_days)).timestamp()
    deleted = 0
    for path in logs_dir.glob(f"*{suffix}"):
        try:
            if path.is_file() and path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
        except OSError:
            continue
    return deleted


def _component(logger_name: str) -> str:
    # cue.automations.scheduler -> automations
    head, _, rest = logger_name.partition(".")
    if head == "cue" and rest:
        return rest.split(".", 1)[0]
    return head


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed to the log call through ``extra``."""
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_")
    }


class JSONLHandler(logging.Handler):
    """Append one JSON object per record to ``<logs_dir>/YYYY-MM-DD.jsonl``.

    A new file is opened when the UTC date changes, and files older than
    the retention window are pruned at that point.
    """

    def __init__(
        self, logs_dir: Path, retention_days: int = DEFAULT_LOG_RETENTION_DAYS
    ) -> None:
        super().__init__()
        logs_dir.mkdir(parents=True, exist_ok=True)
        self._logs_dir = logs_dir
        self._retention_days = retention_days
        self._day: str | None = None
        self._stream: TextIO | None = None

    def _stream_for(self, now: datetime) -> TextIO:
        day = now.strftime("%Y-%m-%d")
        if self._stream is None or day != self._day:
            if self._stream is not None:
                self._stream.close()
            self._day = day
            self._stream = (self._logs_dir / f"{day}.jsonl").open("a", encoding="utf-8")
            prune_old_logs(self._logs_dir, self._retention_days)
        return self._stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            now = datetime.now(UTC)
            entry: dict[str, Any] = {
                "ts": now.isoformat(),
                "level": record.levelname,
                "component": _component(record.name),
                "logger": record.name,
                "message": record.getMessage(),
            }
            if record.exc_info:
                entry["exception"] = logging.Formatter().formatException(record.exc_info)
            if extra := record_extras(record):
                entry["extra"] = extra

            stream = self._stream_for(now)
            stream.write(json.dumps(entry, default=str) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        super().close()


class ComponentFormatter(logging.Formatter):
    """Adds ``%(component)s`` and appends extra fields as ``key=value``."""

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component(record.name)
        message = super().format(record)
        extra = record_extras(record)
        if not extra:
            return message
        return message + " " + " ".join(f"{k}={v}" for k, v in extra.items())


def _console_handler(use_rich: bool) -> logging.Handler:
    if use_rich:
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            show_path=False, show_time=True, markup=False, rich_tracebacks=False
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
        return handler

    handler = logging.StreamHandler()
    handler.setFormatter(
        ComponentFormatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    return handler


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
) -> None:
    """Install Cue's root handlers, replacing any existing ones.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Defaults to $CUE_LOG_LEVEL,
            then INFO. Unknown values fall back to INFO.
        use_rich: Rich console output (used by `cue run`).
        log_to_file: Also write JSONL files under the logs directory.
    """
    from cue.config.paths import get_logs_path

    name = (level or os.environ.get("CUE_LOG_LEVEL") or "INFO").upper()
    if name not in LEVELS:
        name = "INFO"
    log_level = logging.getLevelName(name)

    handlers = [_console_handler(use_rich)]
    if log_to_file:
        handlers.append(JSONLHandler(get_logs_path()))

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    # asyncio debug chatter is not useful at INFO
    logging.getLogger("asyncio").setLevel(logging.WARNING)
