"""
Timesheet payroll: totals, approval tracking and employee notifications.

The timesheet sheet holds one row per submission with the employee's name,
email, hourly wage and hours worked Monday to Friday. Input columns are
located by header text, so the exact question wording of the submission
form does not matter as long as it names the field ("Employee Email",
"Hours worked on Monday", ...).

Derived columns are reconciled by header: each missing one is appended
once and existing ones are reused, so column setup can be run repeatedly.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from session_signup.api.gmail_api import GmailAPI
from session_signup.api.sheets_api import SheetsAPI
from session_signup.config.settings import TimesheetSettings
from session_signup.storage.registry import ConfigMissing

# Derived column headers, in the order they are appended
TOTAL_HOURS = "TOTAL HOURS"
CALCULATED_PAY = "CALCULATED PAY"
APPROVAL = "APPROVAL"
NOTIFIED_STATUS = "NOTIFIED STATUS"
DERIVED_HEADERS = (TOTAL_HOURS, CALCULATED_PAY, APPROVAL, NOTIFIED_STATUS)

# Approval states offered in the approval dropdown
APPROVED = "APPROVED"
NOT_APPROVED = "NOT APPROVED"
IN_PROGRESS = "IN PROGRESS"
APPROVAL_OPTIONS = [APPROVED, NOT_APPROVED, IN_PROGRESS]

NOTIFIED = "NOTIFIED"

# Header keywords of the input columns
NAME_KEYWORD = "name"
EMAIL_KEYWORD = "email"
WAGE_KEYWORD = "wage"
WORKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")

APPROVAL_SUBJECT = "Timesheet approved"
REJECTION_SUBJECT = "Timesheet not approved"

APPROVAL_BODY = """Dear {name},

Your timesheet has been approved.

Total hours: {total_hours}
Pay: {pay}

Thank you!
"""

REJECTION_BODY = """Dear {name},

Your timesheet has not been approved.

Total hours: {total_hours}
Pay: {pay}

Please contact your manager to resolve the issue.
"""

logger = logging.getLogger(__name__)


class InvalidTimesheetRow(ValueError):
    """Raised when the hours or wage of a row are not numbers."""

    pass


def parse_amount(value: Any) -> float:
    """
    Parse a numeric cell; blank cells count as zero.

    Accepts numbers and text such as "8", "7.5" or "$1,250.00".

    Raises:
        InvalidTimesheetRow: If the text is not a number
    """
    if isinstance(value, bool):
        raise InvalidTimesheetRow(f"Not a number: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().replace("$", "").replace(",", "")
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError as e:
        raise InvalidTimesheetRow(f"Not a number: {value!r}") from e


def format_amount(value: float) -> str:
    return f"{value:.2f}"


def _normalize(header: Any) -> str:
    return str(header).strip().lower()


def _find_column(header: Sequence[Any], keyword: str) -> Optional[int]:
    """0-based index of the first header containing keyword, excluding derived columns."""
    derived = {h.lower() for h in DERIVED_HEADERS}
    for index, title in enumerate(header):
        text = _normalize(title)
        if text not in derived and keyword in text:
            return index
    return None


def _find_exact(header: Sequence[Any], title: str) -> Optional[int]:
    for index, existing in enumerate(header):
        if _normalize(existing) == title.lower():
            return index
    return None


def _require_exact(header: Sequence[Any], title: str) -> int:
    index = _find_exact(header, title)
    if index is None:
        raise ConfigMissing(f"Timesheet has no '{title}' column")
    return index


@dataclass
class TimesheetColumns:
    """
    0-based column positions of a timesheet sheet.

    Derived columns are None until they have been added.
    """

    name: int
    email: int
    wage: int
    hours: list[int]
    total_hours: Optional[int] = None
    calculated_pay: Optional[int] = None
    approval: Optional[int] = None
    notified: Optional[int] = None

    @classmethod
    def from_header(cls, header: Sequence[Any]) -> "TimesheetColumns":
        """
        Locate the columns of a header row.

        Raises:
            ConfigMissing: If an input column cannot be found
        """
        found = {
            NAME_KEYWORD: _find_column(header, NAME_KEYWORD),
            EMAIL_KEYWORD: _find_column(header, EMAIL_KEYWORD),
            WAGE_KEYWORD: _find_column(header, WAGE_KEYWORD),
        }
        for day in WORKDAYS:
            found[day] = _find_column(header, day)

        missing = [keyword for keyword, index in found.items() if index is None]
        if missing:
            raise ConfigMissing(
                "Timesheet is missing input columns for: " + ", ".join(missing)
            )

        return cls(
            name=found[NAME_KEYWORD],  # type: ignore[arg-type]
            email=found[EMAIL_KEYWORD],  # type: ignore[arg-type]
            wage=found[WAGE_KEYWORD],  # type: ignore[arg-type]
            hours=[found[day] for day in WORKDAYS],  # type: ignore[misc]
            total_hours=_find_exact(header, TOTAL_HOURS),
            calculated_pay=_find_exact(header, CALCULATED_PAY),
            approval=_find_exact(header, APPROVAL),
            notified=_find_exact(header, NOTIFIED_STATUS),
        )


@dataclass
class TimesheetEntry:
    """One submission row of the timesheet."""

    row_number: int
    name: str
    email: str
    wage: Any
    hours: list[Any]
    approval: str = ""
    notified: str = ""

    @classmethod
    def from_row(
        cls, values: list[Any], columns: TimesheetColumns, row_number: int
    ) -> "TimesheetEntry":
        def cell(index: Optional[int]) -> Any:
            if index is None or index >= len(values):
                return ""
            return values[index]

        return cls(
            row_number=row_number,
            name=str(cell(columns.name)).strip(),
            email=str(cell(columns.email)).strip(),
            wage=cell(columns.wage),
            hours=[cell(index) for index in columns.hours],
            approval=str(cell(columns.approval)).strip(),
            notified=str(cell(columns.notified)).strip(),
        )

    @property
    def total_hours(self) -> float:
        """Sum of the weekday hours."""
        return sum(parse_amount(value) for value in self.hours)

    @property
    def calculated_pay(self) -> float:
        """Total hours times hourly wage, rounded to cents."""
        return round(self.total_hours * parse_amount(self.wage), 2)


@dataclass
class ColumnSetupResult:
    """Result of reconciling the derived timesheet columns."""

    added_headers: list[str] = field(default_factory=list)
    rows: int = 0
    defaulted_approvals: int = 0
    invalid_rows: list[str] = field(default_factory=list)

    def summary(self) -> str:
        lines = [
            "Timesheet Setup Summary:",
            f"  Columns added: {', '.join(self.added_headers) or 'none'}",
            f"  Rows computed: {self.rows}",
            f"  Approvals set to {IN_PROGRESS}: {self.defaulted_approvals}",
        ]
        if self.invalid_rows:
            lines.append(f"  Skipped (invalid numbers): {len(self.invalid_rows)}")
        return "\n".join(lines)


@dataclass
class NotifyResult:
    """Result of an employee notification run."""

    approved: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    already_notified: int = 0
    skipped: int = 0
    dry_run: bool = False

    def summary(self) -> str:
        verb = "to send" if self.dry_run else "sent"
        return "\n".join(
            [
                "Notification Summary:",
                f"  Approval emails {verb}: {len(self.approved)}",
                f"  Rejection emails {verb}: {len(self.rejected)}",
                f"  Already notified: {self.already_notified}",
                f"  Pending approval: {self.skipped}",
            ]
        )


class PayrollProcessor:
    """
    Timesheet column setup and employee notifications.

    Usage:
        payroll = PayrollProcessor(sheets, gmail, TimesheetSettings(spreadsheet_id))
        print(payroll.set_up_columns().summary())
        print(payroll.notify_employees().summary())
    """

    def __init__(
        self, sheets: SheetsAPI, gmail: GmailAPI, settings: TimesheetSettings
    ):
        self.sheets = sheets
        self.gmail = gmail
        self.settings = settings

    @property
    def sheet(self) -> str:
        return self.settings.timesheet_sheet

    def _read(self) -> tuple[list[Any], list[list[Any]]]:
        rows = self.sheets.read_rows(self.sheet)
        if not rows:
            raise ConfigMissing(f"Timesheet sheet '{self.sheet}' is empty")
        return list(rows[0]), rows[1:]

    def _entries(
        self, data: list[list[Any]], columns: TimesheetColumns
    ) -> list[TimesheetEntry]:
        entries = []
        for row_number, values in enumerate(data, start=2):
            if not any(str(value).strip() for value in values):
                continue
            entries.append(TimesheetEntry.from_row(values, columns, row_number))
        return entries

    def _write_column(self, column: int, values: dict[int, Any]) -> None:
        """Write values keyed by sheet row into one column, as one block."""
        if not values:
            return
        first, last = min(values), max(values)
        block = [[values.get(row, "")] for row in range(first, last + 1)]
        self.sheets.write_rows(self.sheet, first, block, start_column=column + 1)

    def set_up_columns(self) -> ColumnSetupResult:
        """
        Ensure the derived columns exist and fill them in.

        Missing derived headers are appended after the last header; existing
        ones are reused. Every row gets its total hours and pay, blank
        approvals become IN PROGRESS, and the approval column gets a
        dropdown of the approval states.

        Raises:
            ConfigMissing: If the sheet is empty or lacks an input column
        """
        header, data = self._read()
        columns = TimesheetColumns.from_header(header)
        result = ColumnSetupResult()

        missing = [
            title for title in DERIVED_HEADERS if _find_exact(header, title) is None
        ]
        if missing:
            self.sheets.write_rows(
                self.sheet, 1, [missing], start_column=len(header) + 1
            )
            header = header + missing
            columns = TimesheetColumns.from_header(header)
            result.added_headers = missing
            logger.info(f"Added columns to '{self.sheet}': {', '.join(missing)}")

        totals: dict[int, Any] = {}
        pays: dict[int, Any] = {}
        approvals: dict[int, Any] = {}

        for entry in self._entries(data, columns):
            try:
                totals[entry.row_number] = entry.total_hours
                pays[entry.row_number] = entry.calculated_pay
            except InvalidTimesheetRow as e:
                logger.warning(f"Row {entry.row_number} ({entry.name}): {e}")
                result.invalid_rows.append(f"Row {entry.row_number}: {e}")
                totals[entry.row_number] = ""
                pays[entry.row_number] = ""

            if entry.approval:
                approvals[entry.row_number] = entry.approval
            else:
                approvals[entry.row_number] = IN_PROGRESS
                result.defaulted_approvals += 1

        result.rows = len(totals)

        approval_column = _require_exact(header, APPROVAL)
        self._write_column(_require_exact(header, TOTAL_HOURS), totals)
        self._write_column(_require_exact(header, CALCULATED_PAY), pays)
        self._write_column(approval_column, approvals)
        self.sheets.set_dropdown(self.sheet, approval_column + 1, APPROVAL_OPTIONS)

        logger.info(f"Computed totals for {result.rows} timesheet rows")
        return result

    def _message(self, entry: TimesheetEntry, approved: bool) -> tuple[str, str]:
        template = APPROVAL_BODY if approved else REJECTION_BODY
        try:
            total_hours = format_amount(entry.total_hours)
            pay = format_amount(entry.calculated_pay)
        except InvalidTimesheetRow:
            total_hours = pay = "see timesheet"
        body = template.format(name=entry.name, total_hours=total_hours, pay=pay)
        return (APPROVAL_SUBJECT if approved else REJECTION_SUBJECT), body

    def notify_employees(self, dry_run: bool = False) -> NotifyResult:
        """
        Email every employee whose timesheet was decided and not yet notified.

        APPROVED rows get an approval email and NOT APPROVED rows a rejection
        email; other states are skipped silently. Each row is marked NOTIFIED
        right after its email is sent, so an interrupted run resumes where it
        stopped.

        Raises:
            ConfigMissing: If the approval columns have not been set up
        """
        header, data = self._read()
        columns = TimesheetColumns.from_header(header)
        if columns.approval is None or columns.notified is None:
            raise ConfigMissing(
                "Timesheet columns are not set up yet. "
                "Run 'session-signup timesheet-setup' first."
            )

        result = NotifyResult(dry_run=dry_run)

        for entry in self._entries(data, columns):
            if entry.notified.upper() == NOTIFIED:
                result.already_notified += 1
                continue

            status = entry.approval.upper()
            if status not in (APPROVED, NOT_APPROVED):
                result.skipped += 1
                continue

            if not entry.email:
                logger.warning(f"Row {entry.row_number} ({entry.name}) has no email")
                result.skipped += 1
                continue

            approved = status == APPROVED
            if not dry_run:
                subject, body = self._message(entry, approved)
                self.gmail.send_message(entry.email, subject, body)
                self.sheets.update_cell(
                    self.sheet, entry.row_number, columns.notified + 1, NOTIFIED
                )

            (result.approved if approved else result.rejected).append(entry.email)

        logger.info(
            f"Notified {len(result.approved)} approved and "
            f"{len(result.rejected)} rejected timesheets"
        )
        return result
