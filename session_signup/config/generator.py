"""
Configuration file generator for the session signup tool.

Generates a default config.yaml with every available option documented.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Session Signup Configuration
# ============================
#
# Default options for session-signup. CLI arguments always override these
# values.
#
# To use this configuration:
#   1. Save as ~/.session-signup/config.yaml (or custom location)
#   2. Set spreadsheet_id and uncomment other options as needed
#   3. Run session-signup commands normally

# Spreadsheet
# -----------

# Id of the spreadsheet holding the setup and timesheet sheets
# (the long id in the spreadsheet URL: /spreadsheets/d/<id>/edit)
# Required
# spreadsheet_id: "1AbCdEfGhIjKlMnOpQrStUvWxYz"


# Conference Signup
# -----------------

# Sheet listing the sessions: title, date, start, end, location, event id
# Default: Conference Setup
# setup_sheet: Conference Setup

# Title of the calendar created for the session events
# Default: Conference Calendar
# calendar_name: Conference Calendar

# Title of the registration form
# Default: Conference Form
# form_title: Conference Form

# IANA time zone of the dates and times in the sheet
# Default: the calendar's time zone
# timezone: Europe/Amsterdam

# How often `session-signup watch` polls for new registrations
# Format: 30s, 5m, 1h, 1d
# Default: 5m
# watch_interval: 5m


# Timesheet Payroll
# -----------------

# Sheet with one row per timesheet submission
# Default: Form Responses 1
# timesheet_sheet: Form Responses 1


# Behavior
# --------

# Enable verbose output with detailed logging
# Default: false
# verbose: false

# Preview changes without applying them
# Default: false
# dry_run: false


# Logging
# -------

# Directory for log files
# Default: ~/.session-signup/logs
# log_dir: ~/.session-signup/logs

# Number of log files to keep
# Default: 10
# log_retention_count: 10


# API
# ---

# Maximum attempts for rate-limited or failing API calls
# Default: 5
# api_max_retries: 5

# Initial and maximum backoff delay in seconds
# Default: 1.0 and 60.0
# api_initial_retry_delay: 1.0
# api_max_retry_delay: 60.0

# Timeout in seconds for authentication network requests
# Default: 10
# auth_timeout: 10


# Watcher
# -------

# PID file of the running watcher
# Default: ~/.session-signup/watch.pid
# daemon_pid_file: ~/.session-signup/watch.pid
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves the
    configuration with owner-only permissions.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message)
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
