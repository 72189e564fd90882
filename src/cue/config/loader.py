"""Load CueConfig from TOML, with secrets taken from the environment."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from cue.config.models import CueConfig
from cue.config.paths import get_config_path

# (section, key, environment variable)
_ENV_SECRETS = [("sentry", "dsn", "SENTRY_DSN")]


def _get_default_config_paths() -> list[Path]:
    return [
        Path("config.toml"),
        get_config_path(),
        Path("/etc/cue/config.toml"),
    ]


def _find_config_file(path: Path | None) -> Path:
    if path is not None:
        explicit = Path(path).expanduser()
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        return explicit

    candidates = [p.expanduser() for p in _get_default_config_paths()]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    searched = ", ".join(str(p) for p in candidates)
    raise FileNotFoundError(f"No config file found. Searched: {searched}")


def _resolve_env_secrets(config: dict[str, Any]) -> dict[str, Any]:
    """Fill unset secrets from the environment.

    A secret from the environment creates its section if the file has none,
    so ``SENTRY_DSN`` alone is enough to enable Sentry.
    """
    for section_name, key, env_var in _ENV_SECRETS:
        value = os.environ.get(env_var)
        if not value:
            continue
        section = config.setdefault(section_name, {})
        if section.get(key) is None:
            section[key] = SecretStr(value)
    return config


def load_config(path: Path | None = None) -> CueConfig:
    """Load and validate a config file.

    Args:
        path: Explicit config file. If None, the first existing file among
            ./config.toml, ~/.cue/config.toml and /etc/cue/config.toml.

    Raises:
        FileNotFoundError: If no config file is found.
        ValueError: If the file is not valid TOML or fails validation.
    """
    config_path = _find_config_file(path)
    with config_path.open("rb") as f:
        raw_config = tomllib.load(f)
    return CueConfig.model_validate(_resolve_env_secrets(raw_config))


def get_default_config() -> CueConfig:
    """Defaults plus environment secrets, for when no config file exists."""
    return CueConfig.model_validate(_resolve_env_secrets({}))


def load_config_or_default(path: Path | None = None) -> CueConfig:
    """Like load_config, but fall back to defaults when nothing is found.

    An explicit path that does not exist is still an error.
    """
    if path is not None:
        return load_config(path)
    try:
        return load_config()
    except FileNotFoundError:
        return get_default_config()
