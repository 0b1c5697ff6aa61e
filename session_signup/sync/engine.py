"""
Conference engine: keeps the calendar and registration form in step with
the setup sheet, and turns registrations into calendar invitations.

Setting up the conference:
1. Reads the session rows of the setup sheet (header row skipped)
2. Opens the stored calendar, creating one if there is none
3. Reconciles every row with an event, writing new event ids back into the
   row as soon as each event is created
4. Opens the stored form, creating one with Name and Email questions if
   there is none, then rebuilds its time slot questions

Nothing is ever deleted remotely: removing a row leaves its event alone,
and a reset only forgets the stored calendar and form ids.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from session_signup.api.base import ResourceNotFound
from session_signup.api.calendar_api import CalendarAPI, calendar_url
from session_signup.api.forms_api import (
    FormsAPI,
    delete_item_request,
    form_edit_url,
    is_multiple_choice,
    is_section_header,
    text_question_request,
)
from session_signup.api.sheets_api import SheetsAPI
from session_signup.config.settings import ConferenceSettings
from session_signup.storage.db import RUN_FAILED, RUN_SUCCESS, SyncDatabase
from session_signup.storage.registry import (
    CALENDAR_ID_KEY,
    FORM_ID_KEY,
    ResourceRegistry,
    require,
)
from session_signup.sync.reconciler import ReconcileResult, RowSyncReconciler
from session_signup.sync.schedule import plan_form_questions
from session_signup.sync.session import EVENT_ID_COLUMN, InvalidSessionRow, Session

# Questions created together with the form, answered by every registrant
NAME_QUESTION = "Name"
EMAIL_QUESTION = "Email"

# 1-based sheet column of the stored event id
EVENT_ID_SHEET_COLUMN = EVENT_ID_COLUMN + 1

NO_CALENDAR_MESSAGE = "No calendar has been set up yet."
NO_FORM_MESSAGE = "No registration form has been set up yet."

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _first_answer(named_values: dict[str, list[str]], title: str) -> Optional[str]:
    answers = named_values.get(title) or []
    value = answers[0].strip() if answers else ""
    return value or None


@dataclass
class SetupResult:
    """
    Result of setting up (or planning) the conference.

    Attributes:
        events: Reconcile result of the session events
        calendar_id: Calendar in use, None if it would be created (dry run)
        form_id: Form in use, None if it would be created (dry run)
        calendar_created: True if a new calendar was (or would be) created
        form_created: True if a new form was (or would be) created
        questions: Number of time slot items on the form
        responder_url: Link to share with registrants
        sessions: Sessions read from the sheet, in row order
        skipped_rows: Messages for rows that could not be parsed
        dry_run: True if nothing was changed
    """

    events: ReconcileResult
    calendar_id: Optional[str] = None
    form_id: Optional[str] = None
    calendar_created: bool = False
    form_created: bool = False
    questions: int = 0
    responder_url: Optional[str] = None
    sessions: list[Session] = field(default_factory=list)
    skipped_rows: list[str] = field(default_factory=list)
    dry_run: bool = False

    def summary(self) -> str:
        """Generate a human-readable summary of the setup."""
        verb = "would be" if self.dry_run else "was"
        lines = [
            "Conference Setup Summary:",
            f"  Calendar: {self.calendar_id or '(new)'}"
            + (f" ({verb} created)" if self.calendar_created else ""),
            f"  Form: {self.form_id or '(new)'}"
            + (f" ({verb} created)" if self.form_created else ""),
            "",
            self.events.summary("Events"),
            f"  Form time slot items: {self.questions}",
        ]
        if self.skipped_rows:
            lines.append(f"  Skipped (invalid rows): {len(self.skipped_rows)}")
        if self.responder_url:
            lines.extend(["", f"Registration link: {self.responder_url}"])
        return "\n".join(lines)


@dataclass
class SubmissionResult:
    """Outcome of handling one registration."""

    name: Optional[str]
    email: Optional[str]
    invited: list[str] = field(default_factory=list)
    already_invited: list[str] = field(default_factory=list)
    unavailable: list[str] = field(default_factory=list)

    @property
    def sessions_joined(self) -> int:
        return len(self.invited) + len(self.already_invited)


class ConferenceEngine:
    """
    Orchestrates the conference calendar and registration form.

    Usage:
        engine = ConferenceEngine(
            sheets=SheetsAPI(creds, spreadsheet_id),
            calendar=CalendarAPI(creds),
            forms=FormsAPI(creds),
            registry=DatabaseRegistry(database),
            settings=ConferenceSettings(spreadsheet_id),
            database=database,
        )

        result = engine.set_up_conference()
        print(result.summary())

        engine.handle_submission({"Name": ["Ada"], "Email": ["ada@example.com"],
                                  "09:30:00 18/10/2026": ["Keynote"]})
    """

    def __init__(
        self,
        sheets: SheetsAPI,
        calendar: CalendarAPI,
        forms: FormsAPI,
        registry: ResourceRegistry,
        settings: ConferenceSettings,
        database: Optional[SyncDatabase] = None,
    ):
        """
        Initialize the engine.

        Args:
            sheets: Table store holding the setup sheet
            calendar: Calendar service for the session events
            forms: Form service for the registration form
            registry: Store of the calendar and form ids
            settings: Sheet, calendar and form names and the time zone
            database: Optional database for run history and processed responses
        """
        self.sheets = sheets
        self.calendar = calendar
        self.forms = forms
        self.registry = registry
        self.settings = settings
        self.database = database
        # Time zone of the resolved calendar, used when none is configured
        self._calendar_time_zone: Optional[str] = None

    # =========================================================================
    # Sheet
    # =========================================================================

    def read_sessions(self) -> tuple[list[Session], list[str]]:
        """
        Read the session rows of the setup sheet.

        Fully blank rows are ignored; rows that cannot be parsed are skipped
        with a warning.

        Returns:
            Tuple of (sessions in sheet order, messages for skipped rows)
        """
        rows = self.sheets.read_rows(self.settings.setup_sheet)
        sessions: list[Session] = []
        skipped: list[str] = []

        # Row 1 is the header
        for row_number, values in enumerate(rows[1:], start=2):
            if not any(str(value).strip() for value in values):
                continue
            try:
                sessions.append(Session.from_row(values, row_number))
            except InvalidSessionRow as e:
                logger.warning(f"Skipping row: {e}")
                skipped.append(str(e))

        logger.info(
            f"Read {len(sessions)} sessions from '{self.settings.setup_sheet}'"
        )
        return sessions, skipped

    def _commit_event_id(self, index: int, session: Session) -> None:
        self.sheets.update_cell(
            self.settings.setup_sheet,
            session.row_number,
            EVENT_ID_SHEET_COLUMN,
            session.resource_id,
        )

    # =========================================================================
    # Calendar
    # =========================================================================

    def ensure_calendar(self, dry_run: bool = False) -> tuple[Optional[str], bool]:
        """
        Get the stored calendar, creating a new one if it is missing.

        Returns:
            Tuple of (calendar id, created). The id is None when a calendar
            would be created in a dry run.
        """
        stored_id = self.registry.get(CALENDAR_ID_KEY)
        if stored_id is not None:
            existing = self.calendar.resolve_calendar(stored_id)
            if existing is not None:
                self._calendar_time_zone = existing.get("timeZone")
                return stored_id, False
            logger.warning(f"Stored calendar {stored_id} is gone, creating a new one")

        if dry_run:
            return None, True

        created = self.calendar.create_calendar(
            self.settings.calendar_name, self.settings.timezone
        )
        calendar_id: str = created["id"]
        self._calendar_time_zone = created.get("timeZone")
        self.registry.set(CALENDAR_ID_KEY, calendar_id)
        return calendar_id, True

    def event_time_zone(self) -> Optional[str]:
        """
        Time zone the sheet's dates and times are read in.

        The configured one, else the one of the calendar found or created by
        ensure_calendar(). Calendar rejects event times without either an
        offset or a time zone.
        """
        return self.settings.timezone or self._calendar_time_zone

    def event_reconciler(
        self, calendar_id: Optional[str]
    ) -> RowSyncReconciler[Session]:
        """Build a reconciler binding session rows to events of a calendar."""
        time_zone = self.event_time_zone()

        def resolve(event_id: str) -> Optional[dict[str, Any]]:
            # A calendar that does not exist yet holds no events
            if calendar_id is None:
                return None
            return self.calendar.resolve_event(calendar_id, event_id)

        return RowSyncReconciler(
            resolve=resolve,
            create=lambda payload: self.calendar.create_event(calendar_id, payload),
            update=lambda event, payload: self.calendar.update_event(
                calendar_id, event, payload
            ),
            create_payload=lambda session: session.create_payload(time_zone),
            update_payload=lambda session: session.update_payload(time_zone),
        )

    def set_up_calendar(
        self, sessions: list[Session], dry_run: bool = False
    ) -> tuple[Optional[str], bool, ReconcileResult]:
        """
        Make sure every session has an up-to-date event.

        Returns:
            Tuple of (calendar id, calendar created, reconcile result)

        Raises:
            TransientUnavailable: If the Calendar or Sheets API stays
                                  unavailable; events committed so far keep
                                  their ids in the sheet
        """
        calendar_id, created = self.ensure_calendar(dry_run=dry_run)
        reconciler = self.event_reconciler(calendar_id)
        started_at = _utcnow()

        try:
            result = reconciler.reconcile(
                sessions, on_commit=self._commit_event_id, dry_run=dry_run
            )
        except Exception as e:
            if not dry_run:
                self._record_run(started_at, reconciler.last_result, error=str(e))
            raise

        if not dry_run:
            self._record_run(started_at, result)
        return calendar_id, created, result

    def _record_run(
        self,
        started_at: datetime,
        result: Optional[ReconcileResult],
        error: Optional[str] = None,
    ) -> None:
        if self.database is None:
            return
        stats = result.stats if result is not None else None
        self.database.record_run(
            self.settings.setup_sheet,
            started_at,
            RUN_FAILED if error else RUN_SUCCESS,
            created=stats.created if stats else 0,
            updated=stats.updated if stats else 0,
            recreated=stats.recreated if stats else 0,
            error=error,
        )

    # =========================================================================
    # Form
    # =========================================================================

    def ensure_form(
        self, dry_run: bool = False
    ) -> tuple[Optional[str], Optional[dict[str, Any]], bool]:
        """
        Open the stored form, creating a new one if it is missing.

        A new form gets required Name and Email questions. Storing its id
        links it to the response processor.

        Returns:
            Tuple of (form id, form resource, created). Id and form are None
            when a form would be created in a dry run.
        """
        stored_id = self.registry.get(FORM_ID_KEY)
        if stored_id is not None:
            form = self.forms.resolve_form(stored_id)
            if form is not None:
                return stored_id, form, False
            logger.warning(f"Stored form {stored_id} is gone, creating a new one")

        if dry_run:
            return None, None, True

        created = self.forms.create_form(self.settings.form_title)
        form_id: str = created["formId"]
        self.forms.publish(form_id)
        self.forms.batch_update(
            form_id,
            [
                text_question_request(NAME_QUESTION, True, 0),
                text_question_request(EMAIL_QUESTION, True, 1),
            ],
        )
        self.registry.set(FORM_ID_KEY, form_id)
        return form_id, self.forms.get_form(form_id), True

    def rebuild_questions(
        self, form_id: str, form: dict[str, Any], sessions: list[Session]
    ) -> int:
        """
        Replace the form's time slot items with ones built from the sessions.

        All multiple-choice questions and section headers are deleted; other
        items (Name, Email) are kept in front of the new ones. Deletion and
        creation are applied as one batch.

        Returns:
            Number of items created
        """
        items = form.get("items", [])
        stale = [
            index
            for index, item in enumerate(items)
            if is_multiple_choice(item) or is_section_header(item)
        ]
        kept = len(items) - len(stale)
        questions = plan_form_questions(sessions)

        requests = [delete_item_request(index) for index in sorted(stale, reverse=True)]
        requests.extend(
            question.to_request(kept + offset)
            for offset, question in enumerate(questions)
        )
        self.forms.batch_update(form_id, requests)

        logger.info(
            f"Rebuilt form {form_id}: removed {len(stale)} items, "
            f"added {len(questions)}"
        )
        return len(questions)

    def set_up_form(
        self, sessions: list[Session], dry_run: bool = False
    ) -> tuple[Optional[str], bool, int, Optional[str]]:
        """
        Make sure the form offers exactly the sessions of the sheet.

        Returns:
            Tuple of (form id, form created, time slot item count, responder URL)
        """
        form_id, form, created = self.ensure_form(dry_run=dry_run)

        if dry_run or form_id is None or form is None:
            return form_id, created, len(plan_form_questions(sessions)), None

        count = self.rebuild_questions(form_id, form, sessions)
        return form_id, created, count, form.get("responderUri")

    # =========================================================================
    # Workflows
    # =========================================================================

    def set_up_conference(self, dry_run: bool = False) -> SetupResult:
        """
        Set up or update the calendar and form from the setup sheet.

        Safe to run repeatedly: existing events are updated in place and
        only rows without a live event get a new one.

        Args:
            dry_run: Report what would change without changing anything

        Returns:
            SetupResult describing the calendar, events and form
        """
        logger.info(f"Setting up conference (dry_run={dry_run})")
        sessions, skipped = self.read_sessions()

        calendar_id, calendar_created, events = self.set_up_calendar(
            sessions, dry_run=dry_run
        )
        form_id, form_created, questions, responder_url = self.set_up_form(
            sessions, dry_run=dry_run
        )

        return SetupResult(
            events=events,
            calendar_id=calendar_id,
            form_id=form_id,
            calendar_created=calendar_created,
            form_created=form_created,
            questions=questions,
            responder_url=responder_url,
            sessions=sessions,
            skipped_rows=skipped,
            dry_run=dry_run,
        )

    def reset_conference(self) -> list[str]:
        """
        Forget the stored calendar and form.

        The next setup creates a new calendar and form. Responses already
        handled for the old form are forgotten too, so the response
        processor stops tracking it. Nothing is deleted remotely.

        Returns:
            Registry keys that were removed
        """
        removed = [
            key for key in (CALENDAR_ID_KEY, FORM_ID_KEY) if self.registry.delete(key)
        ]
        if self.database is not None:
            cleared = self.database.clear_processed_responses()
            logger.debug(f"Cleared {cleared} processed response records")
        logger.info(f"Conference reset (removed: {', '.join(removed) or 'nothing'})")
        return removed

    def handle_submission(
        self,
        named_values: dict[str, list[str]],
        sessions: Optional[list[Session]] = None,
    ) -> SubmissionResult:
        """
        Invite a registrant to every session they picked.

        A session is picked when the answer to its time slot question
        contains its title. Unknown time slots and titles are ignored.

        Args:
            named_values: Question title -> list of answers
            sessions: Sessions to match against (read from the sheet if None)

        Returns:
            SubmissionResult listing the invited sessions

        Raises:
            ConfigMissing: If no calendar has been set up
        """
        name = _first_answer(named_values, NAME_QUESTION)
        email = _first_answer(named_values, EMAIL_QUESTION)
        result = SubmissionResult(name=name, email=email)
        logger.info(f"Registration: {name} -- {email}")

        if email is None:
            logger.warning(f"Registration from {name!r} has no email, ignoring")
            return result

        calendar_id = require(self.registry, CALENDAR_ID_KEY, NO_CALENDAR_MESSAGE)
        if sessions is None:
            sessions, _ = self.read_sessions()

        for session in sessions:
            if session.title not in named_values.get(session.slot_title, []):
                continue

            if not session.resource_id:
                logger.warning(f"Session '{session.title}' has no event yet")
                result.unavailable.append(session.title)
                continue

            try:
                added = self.calendar.add_guest(
                    calendar_id, session.resource_id, email
                )
            except ResourceNotFound:
                logger.warning(
                    f"Event {session.resource_id} of '{session.title}' not found"
                )
                result.unavailable.append(session.title)
                continue

            if added:
                result.invited.append(session.title)
            else:
                result.already_invited.append(session.title)

        logger.info(
            f"{email}: invited to {len(result.invited)} sessions "
            f"({len(result.already_invited)} already invited)"
        )
        return result

    # =========================================================================
    # URLs
    # =========================================================================

    def form_url(self) -> str:
        """
        Edit URL of the registration form.

        Raises:
            ConfigMissing: If no form has been set up
        """
        return form_edit_url(require(self.registry, FORM_ID_KEY, NO_FORM_MESSAGE))

    def calendar_url(self) -> str:
        """
        Subscription URL of the conference calendar.

        Raises:
            ConfigMissing: If no calendar has been set up
        """
        return calendar_url(require(self.registry, CALENDAR_ID_KEY, NO_CALENDAR_MESSAGE))
