"""
Unit tests for the Google API wrappers.

Tests the shared retry policy and the Sheets, Calendar, Forms and Gmail
wrappers against mocked discovery services.
"""

import base64
import email
from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from session_signup.api.base import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    GoogleAPIClient,
    GoogleAPIError,
    ResourceNotFound,
    TransientUnavailable,
)
from session_signup.api.calendar_api import (
    CalendarAPI,
    calendar_url,
    normalize_event_id,
)
from session_signup.api.forms_api import (
    FormsAPI,
    delete_item_request,
    form_edit_url,
    is_multiple_choice,
    is_section_header,
    multiple_choice_request,
    question_titles,
    section_header_request,
    text_question_request,
)
from session_signup.api.gmail_api import GmailAPI, build_message
from session_signup.api.sheets_api import SheetsAPI, a1_cell, column_letter


def http_error(status, content=b"error"):
    """Build an HttpError with the given status code."""
    resp = MagicMock()
    resp.status = status
    return HttpError(resp, content)


RATE_LIMIT_BODY = b'{"error": {"errors": [{"reason": "rateLimitExceeded"}]}}'


class DummyClient(GoogleAPIClient):
    api_name = "dummy"
    api_version = "v1"


# =============================================================================
# Base client
# =============================================================================


class TestServiceCreation:
    """Tests for the lazily built discovery service."""

    @patch("session_signup.api.base.build")
    def test_built_once(self, mock_build):
        creds = MagicMock()
        client = DummyClient(creds)

        first = client.service
        second = client.service

        mock_build.assert_called_once_with(
            "dummy", "v1", credentials=creds, cache_discovery=False
        )
        assert first is second

    @patch("session_signup.api.base.build")
    def test_build_failure_raises_api_error(self, mock_build):
        mock_build.side_effect = Exception("no network")
        client = DummyClient(MagicMock())

        with pytest.raises(GoogleAPIError, match="Failed to create dummy"):
            _ = client.service


class TestRetryWithBackoff:
    """Tests for the shared retry policy."""

    @pytest.fixture
    def client(self):
        return DummyClient(MagicMock())

    def test_success_returns_result(self, client):
        assert client._retry_with_backoff(lambda: {"ok": True}, "op") == {"ok": True}

    @pytest.mark.parametrize("status", [404, 410])
    def test_not_found_is_not_retried(self, client, status):
        operation = MagicMock(side_effect=http_error(status))

        with pytest.raises(ResourceNotFound):
            client._retry_with_backoff(operation, "op")

        assert operation.call_count == 1

    @patch("time.sleep")
    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_transient_errors_are_retried(self, mock_sleep, client, status):
        operation = MagicMock(side_effect=[http_error(status), {"ok": True}])

        assert client._retry_with_backoff(operation, "op") == {"ok": True}
        assert operation.call_count == 2
        mock_sleep.assert_called_once_with(DEFAULT_INITIAL_RETRY_DELAY)

    @patch("time.sleep")
    def test_exhausted_retries_raise_transient(self, mock_sleep, client):
        operation = MagicMock(side_effect=http_error(503))

        with pytest.raises(TransientUnavailable):
            client._retry_with_backoff(operation, "op")

        assert operation.call_count == DEFAULT_MAX_RETRIES
        assert mock_sleep.call_count == DEFAULT_MAX_RETRIES - 1

    @patch("time.sleep")
    def test_backoff_doubles_and_is_capped(self, mock_sleep):
        client = DummyClient(
            MagicMock(), max_retries=5, initial_retry_delay=1.0, max_retry_delay=3.0
        )

        with pytest.raises(TransientUnavailable):
            client._retry_with_backoff(MagicMock(side_effect=http_error(500)), "op")

        delays = [c.args[0] for c in mock_sleep.call_args_list]
        assert delays == [1.0, 2.0, 3.0, 3.0]

    @patch("time.sleep")
    def test_rate_limited_403_is_retried(self, mock_sleep, client):
        operation = MagicMock(
            side_effect=[http_error(403, RATE_LIMIT_BODY), {"ok": True}]
        )

        assert client._retry_with_backoff(operation, "op") == {"ok": True}

    def test_permission_403_fails_immediately(self, client):
        operation = MagicMock(side_effect=http_error(403, b"forbidden"))

        with pytest.raises(GoogleAPIError) as exc_info:
            client._retry_with_backoff(operation, "op")

        assert not isinstance(exc_info.value, TransientUnavailable)
        assert operation.call_count == 1

    def test_bad_request_fails_immediately(self, client):
        operation = MagicMock(side_effect=http_error(400))

        with pytest.raises(GoogleAPIError, match="op failed"):
            client._retry_with_backoff(operation, "op")

    @patch("time.sleep")
    def test_network_errors_are_retried(self, mock_sleep, client):
        operation = MagicMock(side_effect=[ConnectionError("reset"), {"ok": True}])

        assert client._retry_with_backoff(operation, "op") == {"ok": True}

    def test_error_hierarchy(self):
        assert issubclass(ResourceNotFound, GoogleAPIError)
        assert issubclass(TransientUnavailable, GoogleAPIError)


# =============================================================================
# Sheets
# =============================================================================


class TestSheetsHelpers:
    """Tests for A1 notation helpers."""

    @pytest.mark.parametrize(
        "column,letter", [(1, "A"), (6, "F"), (26, "Z"), (27, "AA"), (703, "AAA")]
    )
    def test_column_letter(self, column, letter):
        assert column_letter(column) == letter

    def test_column_letter_rejects_zero(self):
        with pytest.raises(ValueError):
            column_letter(0)

    def test_a1_cell_quotes_title(self):
        assert a1_cell("Bob's Sheet", 2, 6) == "'Bob''s Sheet'!F2"


class TestSheetsAPI:
    """Tests for SheetsAPI."""

    @pytest.fixture
    def sheets(self):
        api = SheetsAPI(MagicMock(), "sheet123")
        api._service = MagicMock()
        return api

    def test_read_rows(self, sheets):
        values = sheets._service.spreadsheets.return_value.values.return_value
        values.get.return_value.execute.return_value = {
            "values": [["Title", "Date"], ["Keynote", 46313]]
        }

        rows = sheets.read_rows("Conference Setup")

        assert rows == [["Title", "Date"], ["Keynote", 46313]]
        kwargs = values.get.call_args.kwargs
        assert kwargs["spreadsheetId"] == "sheet123"
        assert kwargs["range"] == "'Conference Setup'"
        assert kwargs["valueRenderOption"] == "UNFORMATTED_VALUE"
        assert kwargs["dateTimeRenderOption"] == "SERIAL_NUMBER"

    def test_read_rows_of_empty_sheet(self, sheets):
        values = sheets._service.spreadsheets.return_value.values.return_value
        values.get.return_value.execute.return_value = {}

        assert sheets.read_rows("Empty") == []

    def test_update_cell_writes_one_value(self, sheets):
        values = sheets._service.spreadsheets.return_value.values.return_value
        values.update.return_value.execute.return_value = {"updatedCells": 1}

        sheets.update_cell("Conference Setup", 3, 6, "evt1")

        kwargs = values.update.call_args.kwargs
        assert kwargs["range"] == "'Conference Setup'!F3"
        assert kwargs["valueInputOption"] == "RAW"
        assert kwargs["body"]["values"] == [["evt1"]]

    def test_write_rows_skips_empty_block(self, sheets):
        assert sheets.write_rows("S", 2, []) == 0
        sheets._service.spreadsheets.assert_not_called()

    def test_get_sheet_id(self, sheets):
        sheets._service.spreadsheets.return_value.get.return_value.execute.return_value = {
            "sheets": [
                {"properties": {"title": "Other", "sheetId": 1}},
                {"properties": {"title": "Timesheet", "sheetId": 42}},
            ]
        }

        assert sheets.get_sheet_id("Timesheet") == 42
        with pytest.raises(ResourceNotFound):
            sheets.get_sheet_id("Missing")

    def test_set_dropdown(self, sheets):
        spreadsheets = sheets._service.spreadsheets.return_value
        spreadsheets.get.return_value.execute.return_value = {
            "sheets": [{"properties": {"title": "Timesheet", "sheetId": 7}}]
        }

        sheets.set_dropdown("Timesheet", 3, ["YES", "NO"])

        request = spreadsheets.batchUpdate.call_args.kwargs["body"]["requests"][0]
        validation = request["setDataValidation"]
        assert validation["range"] == {
            "sheetId": 7,
            "startRowIndex": 1,
            "startColumnIndex": 2,
            "endColumnIndex": 3,
        }
        assert validation["rule"]["condition"]["values"] == [
            {"userEnteredValue": "YES"},
            {"userEnteredValue": "NO"},
        ]

    def test_spreadsheet_url(self, sheets):
        assert sheets.spreadsheet_url.endswith("/d/sheet123/edit")


# =============================================================================
# Calendar
# =============================================================================


class TestCalendarHelpers:
    """Tests for calendar module helpers."""

    def test_normalize_event_id_strips_suffix(self):
        assert normalize_event_id("abc123@google.com") == "abc123"
        assert normalize_event_id(" abc123 ") == "abc123"

    def test_calendar_url(self):
        assert (
            calendar_url("c1@group.calendar.google.com")
            == "https://calendar.google.com/calendar/?cid=c1@group.calendar.google.com"
        )


class TestCalendarAPI:
    """Tests for CalendarAPI."""

    @pytest.fixture
    def calendar(self):
        api = CalendarAPI(MagicMock())
        api._service = MagicMock()
        return api

    def test_resolve_calendar_missing(self, calendar):
        calendar._service.calendars.return_value.get.return_value.execute.side_effect = (
            http_error(404)
        )

        assert calendar.resolve_calendar("gone") is None

    def test_create_calendar_with_time_zone(self, calendar):
        insert = calendar._service.calendars.return_value.insert
        insert.return_value.execute.return_value = {"id": "cal1"}

        result = calendar.create_calendar("Conference", "Europe/Amsterdam")

        assert result == {"id": "cal1"}
        insert.assert_called_once_with(
            body={"summary": "Conference", "timeZone": "Europe/Amsterdam"}
        )

    def test_get_event_uses_bare_id(self, calendar):
        get = calendar._service.events.return_value.get
        get.return_value.execute.return_value = {"id": "e1", "status": "confirmed"}

        calendar.get_event("cal1", "e1@google.com")

        get.assert_called_once_with(calendarId="cal1", eventId="e1")

    def test_cancelled_event_is_not_found(self, calendar):
        get = calendar._service.events.return_value.get
        get.return_value.execute.return_value = {"id": "e1", "status": "cancelled"}

        with pytest.raises(ResourceNotFound):
            calendar.get_event("cal1", "e1")
        assert calendar.resolve_event("cal1", "e1") is None

    def test_create_event_requests_meet_and_notifies(self, calendar):
        insert = calendar._service.events.return_value.insert
        insert.return_value.execute.return_value = {"id": "new"}

        event = calendar.create_event("cal1", {"summary": "Keynote"})

        assert event["id"] == "new"
        insert.assert_called_once_with(
            calendarId="cal1",
            body={"summary": "Keynote"},
            conferenceDataVersion=1,
            sendUpdates="all",
        )

    def test_update_event_patches_fields(self, calendar):
        patch_call = calendar._service.events.return_value.patch
        patch_call.return_value.execute.return_value = {"id": "e1"}

        calendar.update_event("cal1", {"id": "e1"}, {"summary": "New"})

        patch_call.assert_called_once_with(
            calendarId="cal1", eventId="e1", body={"summary": "New"}
        )

    def test_add_guest_extends_attendees(self, calendar):
        events = calendar._service.events.return_value
        events.get.return_value.execute.return_value = {
            "id": "e1",
            "attendees": [{"email": "first@example.com"}],
        }

        assert calendar.add_guest("cal1", "e1", "ada@example.com") is True

        events.patch.assert_called_once_with(
            calendarId="cal1",
            eventId="e1",
            body={
                "attendees": [
                    {"email": "first@example.com"},
                    {"email": "ada@example.com"},
                ]
            },
            sendUpdates="all",
        )

    def test_add_guest_is_idempotent(self, calendar):
        events = calendar._service.events.return_value
        events.get.return_value.execute.return_value = {
            "id": "e1",
            "attendees": [{"email": "Ada@Example.com"}],
        }

        assert calendar.add_guest("cal1", "e1", "ada@example.com") is False
        events.patch.assert_not_called()


# =============================================================================
# Forms
# =============================================================================


class TestFormsHelpers:
    """Tests for item classification and request builders."""

    def test_classification(self):
        choice = multiple_choice_request("10:00:00 01/02/2026", ["A"], 2)["createItem"][
            "item"
        ]
        header = section_header_request("Sessions for 01/02/2026", 2)["createItem"][
            "item"
        ]
        text = text_question_request("Name", True, 0)["createItem"]["item"]

        assert is_multiple_choice(choice) and not is_section_header(choice)
        assert is_section_header(header) and not is_multiple_choice(header)
        assert not is_multiple_choice(text) and not is_section_header(text)

    def test_checkbox_question_is_not_multiple_choice(self):
        item = {
            "questionItem": {"question": {"choiceQuestion": {"type": "CHECKBOX"}}}
        }
        assert not is_multiple_choice(item)

    def test_multiple_choice_request(self):
        request = multiple_choice_request("T", ["A", "B"], 4)

        assert request["createItem"]["location"] == {"index": 4}
        options = request["createItem"]["item"]["questionItem"]["question"][
            "choiceQuestion"
        ]["options"]
        assert options == [{"value": "A"}, {"value": "B"}]

    def test_delete_item_request(self):
        assert delete_item_request(3) == {"deleteItem": {"location": {"index": 3}}}

    def test_question_titles(self):
        form = {
            "items": [
                {"title": "Name", "questionItem": {"question": {"questionId": "q1"}}},
                {"title": "Sessions for 01/02/2026", "textItem": {}},
                {"title": "Slot", "questionItem": {"question": {"questionId": "q2"}}},
            ]
        }

        assert question_titles(form) == {"q1": "Name", "q2": "Slot"}

    def test_form_edit_url(self):
        assert form_edit_url("f1") == "https://docs.google.com/forms/d/f1/edit"


class TestFormsAPI:
    """Tests for FormsAPI."""

    @pytest.fixture
    def forms(self):
        api = FormsAPI(MagicMock())
        api._service = MagicMock()
        return api

    def test_page_size_capped(self):
        assert FormsAPI(MagicMock(), page_size=10000).page_size == 5000

    def test_resolve_form_missing(self, forms):
        forms._service.forms.return_value.get.return_value.execute.side_effect = (
            http_error(404)
        )

        assert forms.resolve_form("gone") is None

    def test_create_form_sets_title(self, forms):
        create = forms._service.forms.return_value.create
        create.return_value.execute.return_value = {"formId": "f1"}

        assert forms.create_form("Conference Form")["formId"] == "f1"
        create.assert_called_once_with(
            body={"info": {"title": "Conference Form", "documentTitle": "Conference Form"}}
        )

    def test_batch_update_skips_empty(self, forms):
        assert forms.batch_update("f1", []) == {}
        forms._service.forms.assert_not_called()

    def test_batch_update_sends_all_requests(self, forms):
        batch = forms._service.forms.return_value.batchUpdate
        batch.return_value.execute.return_value = {"replies": []}
        requests = [delete_item_request(2), section_header_request("S", 2)]

        forms.batch_update("f1", requests)

        batch.assert_called_once_with(formId="f1", body={"requests": requests})

    def test_publish_opens_form_for_responses(self, forms):
        publish = forms._service.forms.return_value.setPublishSettings
        publish.return_value.execute.return_value = {"formId": "f1"}

        forms.publish("f1")

        body = publish.call_args.kwargs["body"]
        assert publish.call_args.kwargs["formId"] == "f1"
        assert body["publishSettings"]["publishState"] == {
            "isPublished": True,
            "isAcceptingResponses": True,
        }
        assert body["updateMask"] == "publishState"

    def test_list_responses_follows_pages(self, forms):
        responses_api = forms._service.forms.return_value.responses.return_value
        responses_api.list.return_value.execute.side_effect = [
            {"responses": [{"responseId": "r1"}], "nextPageToken": "p2"},
            {"responses": [{"responseId": "r2"}]},
        ]

        responses = forms.list_responses("f1")

        assert [r["responseId"] for r in responses] == ["r1", "r2"]
        second_call = responses_api.list.call_args_list[1].kwargs
        assert second_call["pageToken"] == "p2"


# =============================================================================
# Gmail
# =============================================================================


class TestGmail:
    """Tests for message building and sending."""

    def test_build_message(self):
        raw = build_message("jane@example.com", "Hello", "Body text")["raw"]

        message = email.message_from_bytes(base64.urlsafe_b64decode(raw))
        assert message["To"] == "jane@example.com"
        assert message["Subject"] == "Hello"
        assert message.get_payload().strip() == "Body text"

    def test_send_message(self):
        gmail = GmailAPI(MagicMock())
        gmail._service = MagicMock()
        send = gmail._service.users.return_value.messages.return_value.send
        send.return_value.execute.return_value = {"id": "m1"}

        assert gmail.send_message("jane@example.com", "Hi", "Body") == "m1"
        assert send.call_args.kwargs["userId"] == "me"
        assert "raw" in send.call_args.kwargs["body"]
