"""
Google Sheets API wrapper used as the table store.

Provides a high-level interface to the Sheets v4 API for:
- Reading every row of a named sheet (the sheet's data range)
- Writing rows or single cells back in place
- Adding dropdown data validation to a column
"""

import logging
from typing import Any

from google.oauth2.credentials import Credentials

from session_signup.api.base import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    GoogleAPIClient,
    ResourceNotFound,
)

# Dates and times are read as serial numbers so parsing does not depend on
# the spreadsheet's locale
VALUE_RENDER_OPTION = "UNFORMATTED_VALUE"
DATE_TIME_RENDER_OPTION = "SERIAL_NUMBER"

logger = logging.getLogger(__name__)


def column_letter(column: int) -> str:
    """
    Convert a 1-based column index into its A1 letter form.

    Examples:
        1 -> "A", 26 -> "Z", 27 -> "AA"
    """
    if column < 1:
        raise ValueError(f"Column index must be >= 1, got {column}")

    letters = ""
    while column:
        column, remainder = divmod(column - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def quote_sheet_title(title: str) -> str:
    """Quote a sheet title for use in A1 notation."""
    return "'" + title.replace("'", "''") + "'"


def a1_cell(sheet_name: str, row: int, column: int) -> str:
    """Build an A1 reference for one cell (1-based row and column)."""
    return f"{quote_sheet_title(sheet_name)}!{column_letter(column)}{row}"


class SheetsAPI(GoogleAPIClient):
    """
    Google Sheets API wrapper bound to one spreadsheet.

    Usage:
        sheets = SheetsAPI(credentials, spreadsheet_id)

        rows = sheets.read_rows("Conference Setup")
        sheets.update_cell("Conference Setup", row=2, column=6, value="evt1")
    """

    api_name = "sheets"
    api_version = "v4"

    def __init__(
        self,
        credentials: Credentials,
        spreadsheet_id: str,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
    ):
        super().__init__(
            credentials,
            max_retries=max_retries,
            initial_retry_delay=initial_retry_delay,
            max_retry_delay=max_retry_delay,
        )
        self.spreadsheet_id = spreadsheet_id

    @property
    def spreadsheet_url(self) -> str:
        """Browser URL of the spreadsheet."""
        return f"https://docs.google.com/spreadsheets/d/{self.spreadsheet_id}/edit"

    def read_rows(self, sheet_name: str) -> list[list[Any]]:
        """
        Read all rows of a sheet, header included.

        Rows are returned as the API reports them, so trailing empty cells
        are omitted and rows may have different lengths.

        Args:
            sheet_name: Title of the sheet tab

        Returns:
            List of rows, each a list of cell values

        Raises:
            ResourceNotFound: If the spreadsheet or sheet does not exist
        """
        logger.debug(f"Reading rows from sheet '{sheet_name}'")

        def execute_get() -> Any:
            return (
                self.service.spreadsheets()
                .values()
                .get(
                    spreadsheetId=self.spreadsheet_id,
                    range=quote_sheet_title(sheet_name),
                    majorDimension="ROWS",
                    valueRenderOption=VALUE_RENDER_OPTION,
                    dateTimeRenderOption=DATE_TIME_RENDER_OPTION,
                )
                .execute()
            )

        response = self._retry_with_backoff(execute_get, f"read_rows({sheet_name})")
        rows: list[list[Any]] = response.get("values", [])
        logger.debug(f"Read {len(rows)} rows from '{sheet_name}'")
        return rows

    def write_rows(
        self,
        sheet_name: str,
        start_row: int,
        rows: list[list[Any]],
        start_column: int = 1,
    ) -> int:
        """
        Write a block of rows starting at the given cell.

        Args:
            sheet_name: Title of the sheet tab
            start_row: 1-based row of the top-left cell
            rows: Values to write
            start_column: 1-based column of the top-left cell

        Returns:
            Number of cells updated
        """
        if not rows:
            return 0

        range_spec = a1_cell(sheet_name, start_row, start_column)
        body = {"majorDimension": "ROWS", "values": rows}

        def execute_update() -> Any:
            return (
                self.service.spreadsheets()
                .values()
                .update(
                    spreadsheetId=self.spreadsheet_id,
                    range=range_spec,
                    valueInputOption="RAW",
                    body=body,
                )
                .execute()
            )

        response = self._retry_with_backoff(execute_update, f"write_rows({range_spec})")
        updated: int = response.get("updatedCells", 0)
        logger.debug(f"Wrote {len(rows)} rows at {range_spec} ({updated} cells)")
        return updated

    def update_cell(self, sheet_name: str, row: int, column: int, value: Any) -> None:
        """
        Write a single cell.

        Args:
            sheet_name: Title of the sheet tab
            row: 1-based row index
            column: 1-based column index
            value: Value to store
        """
        self.write_rows(sheet_name, row, [[value]], start_column=column)

    def get_sheet_id(self, sheet_name: str) -> int:
        """
        Look up the numeric sheet id of a sheet tab.

        Raises:
            ResourceNotFound: If no sheet has that title
        """

        def execute_get() -> Any:
            return (
                self.service.spreadsheets()
                .get(spreadsheetId=self.spreadsheet_id, fields="sheets.properties")
                .execute()
            )

        response = self._retry_with_backoff(execute_get, "get_spreadsheet")
        for sheet in response.get("sheets", []):
            properties = sheet.get("properties", {})
            if properties.get("title") == sheet_name:
                sheet_id: int = properties.get("sheetId", 0)
                return sheet_id

        raise ResourceNotFound(f"Sheet not found: {sheet_name}")

    def set_dropdown(
        self,
        sheet_name: str,
        column: int,
        options: list[str],
        start_row: int = 2,
    ) -> None:
        """
        Restrict a column to a list of values shown as a dropdown.

        Args:
            sheet_name: Title of the sheet tab
            column: 1-based column index
            options: Allowed values
            start_row: First 1-based row the rule applies to (default skips header)
        """
        sheet_id = self.get_sheet_id(sheet_name)
        body = {
            "requests": [
                {
                    "setDataValidation": {
                        "range": {
                            "sheetId": sheet_id,
                            "startRowIndex": start_row - 1,
                            "startColumnIndex": column - 1,
                            "endColumnIndex": column,
                        },
                        "rule": {
                            "condition": {
                                "type": "ONE_OF_LIST",
                                "values": [
                                    {"userEnteredValue": option} for option in options
                                ],
                            },
                            "strict": True,
                            "showCustomUi": True,
                        },
                    }
                }
            ]
        }

        def execute_batch() -> Any:
            return (
                self.service.spreadsheets()
                .batchUpdate(spreadsheetId=self.spreadsheet_id, body=body)
                .execute()
            )

        self._retry_with_backoff(execute_batch, f"set_dropdown({sheet_name})")
        logger.info(
            f"Added dropdown to column {column_letter(column)} of '{sheet_name}'"
        )
