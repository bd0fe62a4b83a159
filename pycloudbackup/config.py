"""Configuration management for pycloudbackup.

Settings are resolved in three layers, later layers winning:

1. built-in defaults (see :mod:`pycloudbackup.utils`)
2. ``~/.config/pycloudbackup/config.json``
3. ``PYCLOUDBACKUP_*`` environment variables

The CLI applies its own option overrides on top of the result.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigurationError
from .utils import (
    DEFAULT_DOWNLOAD_BACKOFF,
    DEFAULT_IGNORED_NAMES,
    DEFAULT_PLACEHOLDER_SUFFIX,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RECHECK_DELAY,
    DEFAULT_REQUEST_DELAY,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "PYCLOUDBACKUP_"


@dataclass(frozen=True)
class BackupSettings:
    """Tunables for a backup run."""

    placeholder_suffix: str = DEFAULT_PLACEHOLDER_SUFFIX
    """Suffix identifying cloud placeholder files"""

    ignored_names: frozenset[str] = field(
        default_factory=lambda: frozenset(DEFAULT_IGNORED_NAMES)
    )
    """File names that are never queued"""

    download_backoff: float = DEFAULT_DOWNLOAD_BACKOFF
    """Seconds that must pass before a materialization request is repeated"""

    request_delay: tuple[float, float] = DEFAULT_REQUEST_DELAY
    """Re-check delay range after a request was issued"""

    recheck_delay: tuple[float, float] = DEFAULT_RECHECK_DELAY
    """Re-check delay range while a request is presumed in flight"""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    """Longest wait on an empty queue before re-checking for cancellation"""

    max_download_requests: Optional[int] = None
    """Give up on a placeholder after this many requests (None = never)"""

    def __post_init__(self) -> None:
        for name in ("request_delay", "recheck_delay"):
            low, high = getattr(self, name)
            if low < 0 or high < low:
                raise ConfigurationError(f"Invalid {name} range: ({low}, {high})")
        if self.download_backoff < 0:
            raise ConfigurationError("download_backoff must not be negative")
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be positive")
        if self.max_download_requests is not None and self.max_download_requests < 1:
            raise ConfigurationError("max_download_requests must be at least 1")
        if not self.placeholder_suffix:
            raise ConfigurationError("placeholder_suffix must not be empty")

    def with_overrides(self, **overrides: Any) -> "BackupSettings":
        """Return a copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        if "ignored_names" in changes:
            changes["ignored_names"] = frozenset(changes["ignored_names"])
        return replace(self, **changes)


def _parse_range(value: Any, name: str) -> tuple[float, float]:
    if isinstance(value, str):
        value = value.split(",")
    try:
        low, high = (float(v) for v in value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"{name} must be two numbers, e.g. '8,12' (got {value!r})"
        ) from e
    return low, high


def _parse_names(value: Any) -> frozenset[str]:
    if isinstance(value, str):
        value = [v.strip() for v in value.split(",")]
    return frozenset(v for v in value if v)


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw config/env value to the type of the settings field."""
    try:
        if key in ("request_delay", "recheck_delay"):
            return _parse_range(value, key)
        if key == "ignored_names":
            return _parse_names(value)
        if key in ("download_backoff", "poll_interval"):
            return float(value)
        if key == "max_download_requests":
            if value in (None, "", "none", "None"):
                return None
            return int(value)
        if key == "placeholder_suffix":
            return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid value for {key}: {value!r}") from e
    raise ConfigurationError(f"Unknown setting: {key}")


SETTING_KEYS = (
    "placeholder_suffix",
    "ignored_names",
    "download_backoff",
    "request_delay",
    "recheck_delay",
    "poll_interval",
    "max_download_requests",
)


class Config:
    """Loads backup settings from the config file and the environment."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding ``config.json``. Defaults to
                ~/.config/pycloudbackup/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pycloudbackup"
        self.config_dir = config_dir

    def get_config_path(self) -> Path:
        """Get the path of the JSON config file."""
        return self.config_dir / "config.json"

    def load_file(self) -> dict[str, Any]:
        """Load raw values from the config file.

        Returns:
            Dictionary of settings, empty when the file does not exist
        """
        config_file = self.get_config_path()
        if not config_file.exists():
            logger.debug(f"No config file at {config_file}")
            return {}

        try:
            with open(config_file, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Cannot read config file {config_file}: {e}", config_file
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Config file {config_file} must contain a JSON object", config_file
            )
        logger.debug(f"Loaded config file {config_file}")
        return data

    def load_env(self) -> dict[str, str]:
        """Collect ``PYCLOUDBACKUP_<SETTING>`` environment variables."""
        values = {}
        for key in SETTING_KEYS:
            env_value = os.environ.get(ENV_PREFIX + key.upper())
            if env_value is not None:
                values[key] = env_value
        return values

    def load_settings(self) -> BackupSettings:
        """Build the effective settings from defaults, file and environment."""
        values: dict[str, Any] = {}
        for source in (self.load_file(), self.load_env()):
            for key, raw in source.items():
                values[key] = _coerce(key, raw)
        return BackupSettings(**values)

    def save_settings(self, values: dict[str, Any]) -> Path:
        """Merge settings into the config file.

        Args:
            values: Setting name to raw value; validated before writing

        Returns:
            Path of the written file
        """
        data = self.load_file()
        data.update(values)
        BackupSettings(**{key: _coerce(key, raw) for key, raw in data.items()})

        self.config_dir.mkdir(parents=True, exist_ok=True)
        config_file = self.get_config_path()
        with open(config_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        logger.debug(f"Saved config file {config_file}")
        return config_file


config = Config()
