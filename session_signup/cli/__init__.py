"""CLI package for session_signup."""

from session_signup.cli.formatters import show_event_changes, show_stored_state
from session_signup.cli.main import (
    build_engine,
    build_payroll,
    cli,
    get_config_dir,
    get_config_file,
)
from session_signup.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "build_engine",
    "build_payroll",
    "cli",
    "get_config_dir",
    "get_config_file",
    "show_event_changes",
    "show_stored_state",
]
