"""
Reads ``config.yaml`` from the config directory.

A missing or empty file is an empty configuration; every value has a
default elsewhere. Known keys are type- and range-checked, unknown keys
are ignored so older files keep working.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, NamedTuple

import yaml

from session_signup.daemon import parse_interval
from session_signup.utils.paths import resolve_config_dir

DEFAULT_CONFIG_FILE = "config.yaml"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """The configuration file cannot be read or holds an invalid value."""


def _non_empty(key: str, value: str) -> None:
    if not value.strip():
        raise ConfigError(f"{key} cannot be empty")


def _at_least_one(key: str, value: int) -> None:
    if value < 1:
        raise ConfigError(f"{key} must be >= 1, got {value}")


def _positive(key: str, value: float) -> None:
    if value <= 0:
        raise ConfigError(f"{key} must be > 0, got {value}")


def _interval(key: str, value: str) -> None:
    try:
        parse_interval(value)
    except ValueError as e:
        raise ConfigError(f"Invalid {key}: {e}") from e


class Rule(NamedTuple):
    types: tuple[type[Any], ...]
    check: Callable[[str, Any], None] | None = None


NUMBER = (int, float)

RULES: dict[str, Rule] = {
    # Google resources
    "spreadsheet_id": Rule((str,), _non_empty),
    "setup_sheet": Rule((str,), _non_empty),
    "calendar_name": Rule((str,), _non_empty),
    "form_title": Rule((str,), _non_empty),
    "timezone": Rule((str,)),
    "timesheet_sheet": Rule((str,), _non_empty),
    # Command defaults
    "verbose": Rule((bool,)),
    "dry_run": Rule((bool,)),
    "watch_interval": Rule((str,), _interval),
    "daemon_pid_file": Rule((str,)),
    # Logging
    "log_dir": Rule((str,)),
    "log_retention_count": Rule((int,), _at_least_one),
    # API retries and auth
    "api_max_retries": Rule((int,), _at_least_one),
    "api_initial_retry_delay": Rule(NUMBER, _positive),
    "api_max_retry_delay": Rule(NUMBER, _positive),
    "auth_timeout": Rule((int,), _at_least_one),
}


def _check_type(key: str, value: Any, types: tuple[type[Any], ...]) -> None:
    # YAML true/false would otherwise pass as int
    ok = isinstance(value, types) and (bool in types or not isinstance(value, bool))
    if not ok:
        expected = " or ".join(t.__name__ for t in types)
        raise ConfigError(
            f"Invalid type for '{key}': expected {expected}, "
            f"got {type(value).__name__}"
        )


class ConfigLoader:
    """
    Loader for one YAML configuration file.

    Usage:
        loader = ConfigLoader(config_dir)
        config = loader.load_and_validate()
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        self.config_dir = resolve_config_dir(config_dir)
        self.config_file = config_file

    @property
    def config_path(self) -> Path:
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        return self.load_from_file(self.config_path)

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Parse a YAML file into a dict.

        Returns {} when the file doesn't exist or is empty.

        Raises:
            ConfigError: If the file is unreadable, not YAML, or not a mapping
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.debug(f"No configuration file at {path}")
            return {}
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

        try:
            config = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(
                "Configuration file must contain a YAML dictionary, "
                f"got {type(config).__name__}"
            )
        logger.debug(f"Loaded configuration from {path}")
        return config

    def validate(self, config: dict[str, Any]) -> None:
        """
        Raises:
            ConfigError: On the first known key with a bad type or value
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        for key, value in config.items():
            rule = RULES.get(key)
            if rule is None:
                logger.debug(f"Ignoring unknown configuration key '{key}'")
                continue
            _check_type(key, value, rule.types)
            if rule.check is not None:
                rule.check(key, value)

    def load_and_validate(self) -> dict[str, Any]:
        config = self.load()
        self.validate(config)
        return config
