"""
Unit tests for the Session model.

Tests cell parsing (serial numbers and text), row parsing errors and the
Calendar API payloads built from a session.
"""

from datetime import date, datetime, time

import pytest

from session_signup.sync.session import (
    InvalidSessionRow,
    Session,
    join_date_and_time,
    parse_date_cell,
    parse_time_cell,
)

# 18/10/2026 as a Sheets serial number
SERIAL_DAY = 46313


@pytest.fixture
def session():
    return Session(
        title="Keynote",
        date=date(2026, 10, 18),
        start_time=time(9, 30),
        end_time=time(10, 15),
        location="Hall A",
        row_number=2,
    )


class TestParseDateCell:
    """Tests for parse_date_cell."""

    def test_serial_number(self):
        assert parse_date_cell(SERIAL_DAY) == date(2026, 10, 18)

    def test_serial_with_time_fraction(self):
        assert parse_date_cell(SERIAL_DAY + 0.75) == date(2026, 10, 18)

    def test_date_objects(self):
        assert parse_date_cell(date(2026, 1, 2)) == date(2026, 1, 2)
        assert parse_date_cell(datetime(2026, 1, 2, 8, 0)) == date(2026, 1, 2)

    @pytest.mark.parametrize(
        "text", ["2026-10-18", "18/10/2026", "18-10-2026", "2026/10/18", " 18/10/2026 "]
    )
    def test_text_formats(self, text):
        assert parse_date_cell(text) == date(2026, 10, 18)

    @pytest.mark.parametrize("value", ["", "   ", "tomorrow", "31/02/2026", True, None])
    def test_invalid(self, value):
        with pytest.raises(InvalidSessionRow, match="Invalid date"):
            parse_date_cell(value)


class TestParseTimeCell:
    """Tests for parse_time_cell."""

    def test_fraction_of_day(self):
        assert parse_time_cell(0.375) == time(9, 0)
        assert parse_time_cell(10 / 24) == time(10, 0)

    def test_full_serial_uses_fraction(self):
        assert parse_time_cell(SERIAL_DAY + 0.5) == time(12, 0)

    def test_seconds_dropped(self):
        assert parse_time_cell(time(9, 30, 45)) == time(9, 30)
        assert parse_time_cell(datetime(2026, 10, 18, 14, 5, 59)) == time(14, 5)

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("09:30", time(9, 30)),
            ("9:30:20", time(9, 30)),
            ("2:15 pm", time(14, 15)),
            ("11:00:00 AM", time(11, 0)),
        ],
    )
    def test_text_formats(self, text, expected):
        assert parse_time_cell(text) == expected

    @pytest.mark.parametrize("value", ["", "noon", "25:00", False])
    def test_invalid(self, value):
        with pytest.raises(InvalidSessionRow, match="Invalid time"):
            parse_time_cell(value)


class TestFromRow:
    """Tests for Session.from_row."""

    def test_serial_row(self):
        session = Session.from_row(
            ["Keynote", SERIAL_DAY, 0.375, 10 / 24, "Hall A", "evt1"], 2
        )

        assert session.title == "Keynote"
        assert session.start == datetime(2026, 10, 18, 9, 0)
        assert session.end == datetime(2026, 10, 18, 10, 0)
        assert session.location == "Hall A"
        assert session.resource_id == "evt1"
        assert session.row_number == 2

    def test_text_row_without_trailing_cells(self):
        session = Session.from_row(["Workshop", "18/10/2026", "13:00", "14:30"], 5)

        assert session.location == ""
        assert session.resource_id is None

    def test_blank_event_id_is_none(self):
        session = Session.from_row(
            ["Workshop", "18/10/2026", "13:00", "14:30", "", "  "], 5
        )

        assert session.resource_id is None

    def test_missing_title(self):
        with pytest.raises(InvalidSessionRow, match="Row 3: missing title"):
            Session.from_row(["", "18/10/2026", "13:00", "14:00"], 3)

    def test_invalid_date_names_row_and_title(self):
        with pytest.raises(InvalidSessionRow, match=r"Row 4 \(Panel\): Invalid date"):
            Session.from_row(["Panel", "someday", "13:00", "14:00"], 4)

    def test_missing_end_time(self):
        with pytest.raises(InvalidSessionRow, match="Invalid time"):
            Session.from_row(["Panel", "18/10/2026", "13:00"], 4)


class TestLabels:
    """Tests for the en-GB labels used as form question titles."""

    def test_labels(self, session):
        assert session.day_label == "18/10/2026"
        assert session.time_label == "09:30:00"
        assert session.slot_title == "09:30:00 18/10/2026"

    def test_join_date_and_time(self):
        assert join_date_and_time(date(2026, 10, 18), time(9, 30, 12)) == datetime(
            2026, 10, 18, 9, 30
        )


class TestPayloads:
    """Tests for the Calendar API event bodies."""

    def test_update_payload(self, session):
        assert session.update_payload() == {
            "summary": "Keynote",
            "location": "Hall A",
            "guestsCanSeeOtherGuests": True,
            "start": {"dateTime": "2026-10-18T09:30:00"},
            "end": {"dateTime": "2026-10-18T10:15:00"},
        }

    def test_update_payload_with_time_zone(self, session):
        payload = session.update_payload("Europe/Amsterdam")

        assert payload["start"]["timeZone"] == "Europe/Amsterdam"
        assert payload["end"]["timeZone"] == "Europe/Amsterdam"

    def test_create_payload_requests_meet_link(self, session):
        payload = session.create_payload("Europe/Amsterdam", request_id="req-1")

        assert payload["conferenceData"] == {
            "createRequest": {
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
                "requestId": "req-1",
            }
        }
        assert payload["summary"] == "Keynote"

    def test_create_payload_request_ids_are_unique(self, session):
        first = session.create_payload()["conferenceData"]["createRequest"]
        second = session.create_payload()["conferenceData"]["createRequest"]

        assert first["requestId"] != second["requestId"]
