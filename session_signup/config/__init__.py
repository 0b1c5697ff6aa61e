"""
session_signup.config - Configuration management module

Contains configuration loading, validation, and typed settings.
"""

from session_signup.config.generator import generate_default_config, save_config_file
from session_signup.config.loader import (
    DEFAULT_CONFIG_FILE,
    ConfigError,
    ConfigLoader,
)
from session_signup.config.settings import (
    ApiSettings,
    ConferenceSettings,
    TimesheetSettings,
)

__all__ = [
    "ConfigLoader",
    "ConfigError",
    "DEFAULT_CONFIG_FILE",
    "ConferenceSettings",
    "TimesheetSettings",
    "ApiSettings",
    "generate_default_config",
    "save_config_file",
]
