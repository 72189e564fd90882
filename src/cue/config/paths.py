"""Filesystem locations for Cue state.

Everything lives under one home directory, ``~/.cue`` by default or
``$CUE_HOME`` when set::

    ~/.cue/config.toml
    ~/.cue/automations.json   (+ automations.json.lock)
    ~/.cue/logs/YYYY-MM-DD.jsonl
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "CUE_HOME"

_ZONEINFO_MARKER = "zoneinfo/"


def _zone_from_etc_timezone() -> str | None:
    # Debian/Ubuntu
    try:
        return Path("/etc/timezone").read_text().strip() or None
    except OSError:
        return None


def _zone_from_localtime_link() -> str | None:
    # /etc/localtime -> /usr/share/zoneinfo/Europe/Berlin
    try:
        target = str(Path("/etc/localtime").resolve())
    except OSError:
        return None
    _, marker, zone = target.partition(_ZONEINFO_MARKER)
    return zone if marker and zone else None


def get_system_timezone() -> str:
    """IANA name of the local timezone: $TZ, then /etc, then "UTC"."""
    if tz := os.environ.get("TZ"):
        return tz.lstrip(":")
    return _zone_from_etc_timezone() or _zone_from_localtime_link() or "UTC"


@lru_cache(maxsize=1)
def get_cue_home() -> Path:
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".cue"


def get_config_path() -> Path:
    return get_cue_home() / "config.toml"


def get_automations_path() -> Path:
    return get_cue_home() / "automations.json"


def get_logs_path() -> Path:
    return get_cue_home() / "logs"


def get_all_paths() -> dict[str, Path]:
    """All standard paths, for `cue paths`."""
    return {
        "home": get_cue_home(),
        "config": get_config_path(),
        "automations": get_automations_path(),
        "logs": get_logs_path(),
    }
