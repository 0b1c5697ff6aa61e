"""
session_signup.utils - Utility module

Common utilities including logging configuration.
"""

from session_signup.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = ["resolve_config_dir", "DEFAULT_CONFIG_DIR"]
