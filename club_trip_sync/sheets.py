"""
Row-oriented access to a Google Sheets spreadsheet.

Each sheet (tab) is treated as a table: row 1 holds the column headers and
every following row is a record keyed by those headers. Row indexes
returned here are 1-based sheet rows, so the first record is row 2.
"""

import datetime
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

from googleapiclient.errors import HttpError

from .errors import IntegrationError, SheetNotFoundError
from .google_api import ServiceFactory, http_error_details, service_factory_for
from .timezones import to_iso_instant

Row = Dict[str, str]

_MISSING_SHEET = re.compile(r"Unable to parse range|sheet.*not found", re.IGNORECASE)
_PLAIN_TITLE = re.compile(r"^[A-Za-z0-9_]+$")


@dataclass
class FoundRow:
    """A record plus the 1-based sheet row it was read from."""
    row: Row
    row_index: int


def column_letter(index: int) -> str:
    """
    Convert a 1-based column number to A1 letters (1 -> A, 27 -> AA).

    Raises:
        ValueError: If index is less than 1
    """
    if index < 1:
        raise ValueError(f"Column index must be >= 1, got {index}")
    letters = ""
    while index > 0:
        index, remainder = divmod(index - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def quote_sheet_title(title: str) -> str:
    """Quote a sheet title for use in A1 notation when it needs it."""
    if _PLAIN_TITLE.match(title):
        return title
    return "'" + title.replace("'", "''") + "'"


def format_cell(value: Any) -> str:
    """Render a record value the way it is stored in a cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime.datetime):
        return to_iso_instant(value)
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def rows_from_values(values: List[List[Any]]) -> List[Row]:
    """Turn a raw values grid (header row first) into keyed records."""
    if not values:
        return []
    headers = [str(h).strip() for h in values[0]]
    rows = []
    for raw in values[1:]:
        row: Row = {}
        for i, header in enumerate(headers):
            if not header:
                continue
            row[header] = str(raw[i]) if i < len(raw) else ""
        rows.append(row)
    return rows


class SheetsRowStore:
    """
    Row store backed by the Sheets v4 ``spreadsheets.values`` resource.
    https://developers.google.com/sheets/api/reference/rest/v4/spreadsheets.values
    """

    def __init__(
        self,
        token_provider,
        spreadsheet_id: str,
        service_factory: Optional[ServiceFactory] = None,
    ):
        self._tokens = token_provider
        self.spreadsheet_id = spreadsheet_id
        self._service_factory = service_factory or service_factory_for("sheets", "v4")

    def _values(self):
        return self._service_factory(self._tokens.get_token()).spreadsheets().values()

    @contextmanager
    def _api_call(self, action: str, sheet: str) -> Iterator[None]:
        try:
            yield
        except HttpError as error:
            status, body = http_error_details(error)
            if status == 400 and _MISSING_SHEET.search(body):
                raise SheetNotFoundError(
                    f"Sheet {sheet} not found", upstream_status=status, upstream_body=body
                ) from error
            if status == 401:
                self._tokens.invalidate()
            raise IntegrationError(
                f"Failed to {action} {sheet}", upstream_status=status, upstream_body=body
            ) from error

    def _read(self, sheet: str, a1_range: str) -> List[List[Any]]:
        with self._api_call("read", sheet):
            response = self._values().get(
                spreadsheetId=self.spreadsheet_id,
                range=a1_range,
            ).execute()
        return response.get("values", []) if response else []

    def _header_row(self, sheet: str) -> List[str]:
        values = self._read(sheet, f"{quote_sheet_title(sheet)}!1:1")
        if not values:
            return []
        return [str(h).strip() for h in values[0]]

    def _write(self, sheet: str, a1_range: str, values: List[List[str]]) -> None:
        with self._api_call("write", sheet):
            self._values().update(
                spreadsheetId=self.spreadsheet_id,
                range=a1_range,
                valueInputOption="RAW",
                body={"values": values},
            ).execute()

    def get_rows(self, sheet: str) -> List[Row]:
        """
        Read every record in ``sheet``.

        Raises:
            SheetNotFoundError: If the sheet does not exist
            IntegrationError: On any other API failure
        """
        return rows_from_values(self._read(sheet, quote_sheet_title(sheet)))

    def append_row(self, sheet: str, headers: Iterable[str], record: Mapping[str, Any]) -> None:
        """
        Append one record.

        Any of ``headers`` missing from the sheet's header row are added to
        the end of it first, so an empty sheet gets a full header row.
        Values are laid out in the sheet's own column order.
        """
        existing = self._header_row(sheet)
        missing = [h for h in headers if h not in existing]
        if missing:
            start = column_letter(len(existing) + 1)
            self._write(sheet, f"{quote_sheet_title(sheet)}!{start}1", [missing])
            existing = existing + missing

        values = [format_cell(record.get(h)) if h else "" for h in existing]
        with self._api_call("append to", sheet):
            self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=f"{quote_sheet_title(sheet)}!A1",
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": [values]},
            ).execute()

    def find_row_by_column(self, sheet: str, column: str, value: str) -> Optional[FoundRow]:
        """First record whose ``column`` equals ``value`` (both trimmed)."""
        target = str(value).strip()
        for index, row in enumerate(self.get_rows(sheet)):
            if row.get(column, "").strip() == target:
                return FoundRow(row=row, row_index=index + 2)
        return None

    def get_column_index(self, sheet: str, column: str) -> int:
        """1-based index of ``column`` in the header row, or 0 if absent."""
        headers = self._header_row(sheet)
        if column in headers:
            return headers.index(column) + 1
        return 0

    def update_cell(self, sheet: str, row_index: int, col_index: int, value: Any) -> None:
        cell = f"{quote_sheet_title(sheet)}!{column_letter(col_index)}{row_index}"
        self._write(sheet, cell, [[format_cell(value)]])
