"""
Session data model for the conference setup sheet.

Provides a normalized Session representation with methods for:
- Parsing a sheet row (serial-number or text dates and times)
- Joining the date and time cells into event start/end datetimes
- Building Calendar API payloads for event creation and update
- Deriving the session's time slot for form questions
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

# Column layout of the setup sheet (0-based positions within a row)
TITLE_COLUMN = 0
DATE_COLUMN = 1
START_TIME_COLUMN = 2
END_TIME_COLUMN = 3
LOCATION_COLUMN = 4
EVENT_ID_COLUMN = 5

# Sheets serial numbers count days from this date
SHEETS_EPOCH = datetime(1899, 12, 30)

SECONDS_PER_DAY = 86400

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")
TIME_FORMATS = ("%H:%M", "%H:%M:%S", "%I:%M %p", "%I:%M:%S %p")

# en-GB renderings used for time slot keys, e.g. "18/10/2026" and "09:30:00"
DAY_FORMAT = "%d/%m/%Y"
TIME_OF_DAY_FORMAT = "%H:%M:%S"


class InvalidSessionRow(ValueError):
    """Raised when a sheet row cannot be parsed into a Session."""

    pass


def _cell(values: list[Any], index: int) -> Any:
    return values[index] if index < len(values) else ""


def parse_date_cell(value: Any) -> date:
    """
    Parse a date cell.

    Accepts Sheets serial numbers, date/datetime objects, and text in one of
    DATE_FORMATS.

    Raises:
        InvalidSessionRow: If the value is empty or not a recognizable date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (SHEETS_EPOCH + timedelta(days=int(value))).date()
    if isinstance(value, str) and value.strip():
        text = value.strip()
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
    raise InvalidSessionRow(f"Invalid date: {value!r}")


def parse_time_cell(value: Any) -> time:
    """
    Parse a time-of-day cell.

    Accepts Sheets serial numbers (the fractional day part is used, so a full
    date-time serial works too), time/datetime objects, and text in one of
    TIME_FORMATS. Seconds are dropped.

    Raises:
        InvalidSessionRow: If the value is empty or not a recognizable time
    """
    if isinstance(value, datetime):
        return time(value.hour, value.minute)
    if isinstance(value, time):
        return time(value.hour, value.minute)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = round((value % 1) * SECONDS_PER_DAY) % SECONDS_PER_DAY
        return time(seconds // 3600, (seconds % 3600) // 60)
    if isinstance(value, str) and value.strip():
        text = value.strip().upper()
        for fmt in TIME_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                return time(parsed.hour, parsed.minute)
            except ValueError:
                continue
    raise InvalidSessionRow(f"Invalid time: {value!r}")


def join_date_and_time(day: date, time_of_day: time) -> datetime:
    """Combine a date and a time of day into one (naive) datetime."""
    return datetime.combine(day, time(time_of_day.hour, time_of_day.minute))


@dataclass
class Session:
    """
    One conference session row of the setup sheet.

    Attributes:
        title: Session title (also the choice value on the form)
        date: Day of the session
        start_time: Start time of day
        end_time: End time of day
        location: Free-text location
        resource_id: Stored calendar event id, None until the event exists
        row_number: 1-based sheet row the session was read from

    Usage:
        session = Session.from_row(["Keynote", 46313, 0.375, 0.4167, "Hall A"], 2)
        payload = session.create_payload("Europe/Amsterdam")
    """

    title: str
    date: date
    start_time: time
    end_time: time
    location: str = ""
    resource_id: Optional[str] = None
    row_number: int = 0

    @classmethod
    def from_row(cls, values: list[Any], row_number: int) -> "Session":
        """
        Create a Session from the cell values of one sheet row.

        Args:
            values: Cell values (trailing empty cells may be missing)
            row_number: 1-based sheet row number

        Raises:
            InvalidSessionRow: If the title is empty or a date/time is invalid
        """
        title = str(_cell(values, TITLE_COLUMN)).strip()
        if not title:
            raise InvalidSessionRow(f"Row {row_number}: missing title")

        try:
            session_date = parse_date_cell(_cell(values, DATE_COLUMN))
            start_time = parse_time_cell(_cell(values, START_TIME_COLUMN))
            end_time = parse_time_cell(_cell(values, END_TIME_COLUMN))
        except InvalidSessionRow as e:
            raise InvalidSessionRow(f"Row {row_number} ({title}): {e}") from e

        resource_id = str(_cell(values, EVENT_ID_COLUMN)).strip() or None

        return cls(
            title=title,
            date=session_date,
            start_time=start_time,
            end_time=end_time,
            location=str(_cell(values, LOCATION_COLUMN)).strip(),
            resource_id=resource_id,
            row_number=row_number,
        )

    @property
    def start(self) -> datetime:
        return join_date_and_time(self.date, self.start_time)

    @property
    def end(self) -> datetime:
        return join_date_and_time(self.date, self.end_time)

    @property
    def day_label(self) -> str:
        """en-GB date string, e.g. "18/10/2026"."""
        return self.date.strftime(DAY_FORMAT)

    @property
    def time_label(self) -> str:
        """en-GB time string of the start time, e.g. "09:30:00"."""
        return self.start_time.strftime(TIME_OF_DAY_FORMAT)

    @property
    def slot_title(self) -> str:
        """Title of the form question offering this session."""
        return f"{self.time_label} {self.day_label}"

    def _time_fields(self, time_zone: Optional[str]) -> dict[str, Any]:
        start: dict[str, str] = {"dateTime": self.start.isoformat()}
        end: dict[str, str] = {"dateTime": self.end.isoformat()}
        if time_zone:
            start["timeZone"] = time_zone
            end["timeZone"] = time_zone
        return {"start": start, "end": end}

    def update_payload(self, time_zone: Optional[str] = None) -> dict[str, Any]:
        """
        Build the fields that are overwritten on an existing event.

        Returns:
            Calendar API event body with summary, start, end and location
        """
        payload: dict[str, Any] = {
            "summary": self.title,
            "location": self.location,
            "guestsCanSeeOtherGuests": True,
        }
        payload.update(self._time_fields(time_zone))
        return payload

    def create_payload(
        self, time_zone: Optional[str] = None, request_id: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Build the body of a new event, including a Google Meet link request.

        Args:
            time_zone: IANA time zone the sheet times are expressed in
            request_id: Idempotency key for the conference request
                        (a random UUID by default)
        """
        payload = self.update_payload(time_zone)
        payload["conferenceData"] = {
            "createRequest": {
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
                "requestId": request_id or str(uuid.uuid4()),
            }
        }
        return payload
