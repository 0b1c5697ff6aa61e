"""
Entry point for running session_signup as a module.

Usage:
    python -m session_signup --help
    python -m session_signup auth
    python -m session_signup setup --dry-run
"""

from session_signup.cli import cli

if __name__ == "__main__":
    cli()
