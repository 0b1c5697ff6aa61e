"""
Google Calendar API wrapper used as the event resource service.

Provides a high-level interface to the Calendar v3 API for:
- Looking up and creating the conference calendar
- Resolving, creating and updating session events
- Adding a registrant to an event's guest list (which sends the invitation)
"""

import logging
from typing import Any, Optional

from session_signup.api.base import GoogleAPIClient, ResourceNotFound

# Event ids written by the Apps Script CalendarApp service carry this suffix,
# the REST API only accepts the bare id
ICAL_ID_SUFFIX = "@google.com"

CALENDAR_URL_TEMPLATE = "https://calendar.google.com/calendar/?cid={calendar_id}"

logger = logging.getLogger(__name__)


def normalize_event_id(event_id: str) -> str:
    """Strip the iCal suffix from an event id, if present."""
    event_id = event_id.strip()
    if event_id.endswith(ICAL_ID_SUFFIX):
        return event_id[: -len(ICAL_ID_SUFFIX)]
    return event_id


def calendar_url(calendar_id: str) -> str:
    """Browser URL that subscribes to the calendar."""
    return CALENDAR_URL_TEMPLATE.format(calendar_id=calendar_id)


class CalendarAPI(GoogleAPIClient):
    """
    Google Calendar API wrapper for calendar and event operations.

    Usage:
        calendar = CalendarAPI(credentials)

        cal = calendar.create_calendar("Conference", "Europe/Amsterdam")
        event = calendar.create_event(cal["id"], payload)

        existing = calendar.resolve_event(cal["id"], event["id"])
        if existing is not None:
            calendar.update_event(cal["id"], existing, payload)
    """

    api_name = "calendar"
    api_version = "v3"

    # -------------------------------------------------------------------------
    # Calendars
    # -------------------------------------------------------------------------

    def resolve_calendar(self, calendar_id: str) -> Optional[dict[str, Any]]:
        """
        Get a calendar by id.

        Returns:
            Calendar resource, or None if it does not exist anymore
        """

        def execute_get() -> Any:
            return self.service.calendars().get(calendarId=calendar_id).execute()

        try:
            calendar: dict[str, Any] = self._retry_with_backoff(
                execute_get, f"get_calendar({calendar_id})"
            )
            return calendar
        except ResourceNotFound:
            logger.info(f"Calendar {calendar_id} no longer exists")
            return None

    def create_calendar(
        self, summary: str, time_zone: Optional[str] = None
    ) -> dict[str, Any]:
        """
        Create a new secondary calendar.

        Args:
            summary: Calendar title
            time_zone: IANA time zone name for the calendar

        Returns:
            Created calendar resource (with "id")
        """
        body: dict[str, Any] = {"summary": summary}
        if time_zone:
            body["timeZone"] = time_zone

        def execute_insert() -> Any:
            return self.service.calendars().insert(body=body).execute()

        calendar: dict[str, Any] = self._retry_with_backoff(
            execute_insert, "create_calendar"
        )
        logger.info(f"Created calendar '{summary}' ({calendar.get('id')})")
        return calendar

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def get_event(self, calendar_id: str, event_id: str) -> dict[str, Any]:
        """
        Get an event by id.

        Raises:
            ResourceNotFound: If the event does not exist or was cancelled
        """
        bare_id = normalize_event_id(event_id)

        def execute_get() -> Any:
            return (
                self.service.events()
                .get(calendarId=calendar_id, eventId=bare_id)
                .execute()
            )

        event: dict[str, Any] = self._retry_with_backoff(
            execute_get, f"get_event({bare_id})"
        )
        # Deleted events stay readable with a cancelled status
        if event.get("status") == "cancelled":
            raise ResourceNotFound(f"Event was cancelled: {bare_id}")
        return event

    def resolve_event(
        self, calendar_id: str, event_id: str
    ) -> Optional[dict[str, Any]]:
        """
        Look up an event, treating missing and cancelled events as absent.

        Returns:
            Event resource, or None if the event is gone
        """
        try:
            return self.get_event(calendar_id, event_id)
        except ResourceNotFound:
            logger.debug(f"Event {event_id} not found on {calendar_id}")
            return None

    def create_event(
        self, calendar_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Insert a new event and notify guests.

        Conference data in the payload (a Meet link request) requires
        conferenceDataVersion=1.

        Returns:
            Created event resource (with "id")
        """

        def execute_insert() -> Any:
            return (
                self.service.events()
                .insert(
                    calendarId=calendar_id,
                    body=payload,
                    conferenceDataVersion=1,
                    sendUpdates="all",
                )
                .execute()
            )

        event: dict[str, Any] = self._retry_with_backoff(
            execute_insert, "create_event"
        )
        logger.info(f"Created event '{payload.get('summary')}' ({event.get('id')})")
        return event

    def update_event(
        self,
        calendar_id: str,
        event: dict[str, Any],
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Overwrite the fields in payload on an existing event.

        Only the given fields are changed; the event id, guests and
        conference data are left as they are.

        Returns:
            Updated event resource
        """
        event_id = event["id"]

        def execute_patch() -> Any:
            return (
                self.service.events()
                .patch(calendarId=calendar_id, eventId=event_id, body=payload)
                .execute()
            )

        updated: dict[str, Any] = self._retry_with_backoff(
            execute_patch, f"update_event({event_id})"
        )
        logger.debug(f"Updated event {event_id}")
        return updated

    def add_guest(self, calendar_id: str, event_id: str, email: str) -> bool:
        """
        Add a guest to an event and send them the invitation.

        Args:
            calendar_id: Calendar holding the event
            event_id: Event id (an iCal suffix is stripped)
            email: Guest email address

        Returns:
            True if the guest was added, False if already on the guest list

        Raises:
            ResourceNotFound: If the event does not exist
        """
        event = self.get_event(calendar_id, event_id)
        attendees: list[dict[str, Any]] = list(event.get("attendees", []))

        if any(a.get("email", "").lower() == email.lower() for a in attendees):
            logger.debug(f"{email} is already a guest of {event['id']}")
            return False

        attendees.append({"email": email})

        def execute_patch() -> Any:
            return (
                self.service.events()
                .patch(
                    calendarId=calendar_id,
                    eventId=event["id"],
                    body={"attendees": attendees},
                    sendUpdates="all",
                )
                .execute()
            )

        self._retry_with_backoff(execute_patch, f"add_guest({event['id']})")
        logger.info(f"Invited {email} to event {event['id']}")
        return True
