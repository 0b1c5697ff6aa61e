"""
Typed settings built from the loaded configuration dictionary.

Each workflow reads only the settings it needs:

    conference:
        spreadsheet_id: "1AbC..."          # required
        setup_sheet: "Conference Setup"
        calendar_name: "Conference Calendar"
        form_title: "Conference Form"
        timezone: "Europe/Amsterdam"       # optional, calendar default if unset

    timesheet:
        spreadsheet_id: "1AbC..."          # required
        timesheet_sheet: "Form Responses 1"

Keys are flat in config.yaml; CLI options override them before the
settings are built.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from session_signup.api.base import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
)
from session_signup.storage.registry import ConfigMissing

DEFAULT_SETUP_SHEET = "Conference Setup"
DEFAULT_CALENDAR_NAME = "Conference Calendar"
DEFAULT_FORM_TITLE = "Conference Form"
DEFAULT_TIMESHEET_SHEET = "Form Responses 1"
DEFAULT_WATCH_INTERVAL = "5m"

logger = logging.getLogger(__name__)


def _require_spreadsheet_id(config: dict[str, Any]) -> str:
    spreadsheet_id = config.get("spreadsheet_id")
    if not spreadsheet_id:
        raise ConfigMissing(
            "No spreadsheet configured. Set 'spreadsheet_id' in config.yaml "
            "or pass --spreadsheet-id."
        )
    return str(spreadsheet_id)


@dataclass
class ConferenceSettings:
    """
    Settings of the conference signup workflow.

    Attributes:
        spreadsheet_id: Spreadsheet holding the setup sheet
        setup_sheet: Title of the sheet listing the sessions
        calendar_name: Title of the calendar created for the sessions
        form_title: Title of the registration form
        timezone: IANA time zone of the sheet's dates and times, or None
    """

    spreadsheet_id: str
    setup_sheet: str = DEFAULT_SETUP_SHEET
    calendar_name: str = DEFAULT_CALENDAR_NAME
    form_title: str = DEFAULT_FORM_TITLE
    timezone: str | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ConferenceSettings:
        """
        Build conference settings from a configuration dictionary.

        Raises:
            ConfigMissing: If no spreadsheet id is configured
        """
        return cls(
            spreadsheet_id=_require_spreadsheet_id(config),
            setup_sheet=config.get("setup_sheet", DEFAULT_SETUP_SHEET),
            calendar_name=config.get("calendar_name", DEFAULT_CALENDAR_NAME),
            form_title=config.get("form_title", DEFAULT_FORM_TITLE),
            timezone=config.get("timezone") or None,
        )


@dataclass
class TimesheetSettings:
    """
    Settings of the timesheet payroll workflow.

    Attributes:
        spreadsheet_id: Spreadsheet holding the timesheet responses
        timesheet_sheet: Title of the sheet with one row per submission
    """

    spreadsheet_id: str
    timesheet_sheet: str = DEFAULT_TIMESHEET_SHEET

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> TimesheetSettings:
        """
        Build timesheet settings from a configuration dictionary.

        Raises:
            ConfigMissing: If no spreadsheet id is configured
        """
        return cls(
            spreadsheet_id=_require_spreadsheet_id(config),
            timesheet_sheet=config.get("timesheet_sheet", DEFAULT_TIMESHEET_SHEET),
        )


@dataclass
class ApiSettings:
    """Retry settings shared by every API wrapper."""

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY
    max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ApiSettings:
        return cls(
            max_retries=config.get("api_max_retries", DEFAULT_MAX_RETRIES),
            initial_retry_delay=float(
                config.get("api_initial_retry_delay", DEFAULT_INITIAL_RETRY_DELAY)
            ),
            max_retry_delay=float(
                config.get("api_max_retry_delay", DEFAULT_MAX_RETRY_DELAY)
            ),
        )

    def as_kwargs(self) -> dict[str, Any]:
        """Keyword arguments accepted by every GoogleAPIClient subclass."""
        return {
            "max_retries": self.max_retries,
            "initial_retry_delay": self.initial_retry_delay,
            "max_retry_delay": self.max_retry_delay,
        }
