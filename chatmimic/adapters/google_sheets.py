"""Google Sheets adapter — implements SheetsPort for the Google Sheets API v4.

All Google-specific logic lives here. Core modules never import this directly;
they depend on the SheetsPort protocol. Column order always follows
`SheetConfig.columns`.
"""

from __future__ import annotations

import logging

from chatmimic.data.models import SheetConfig
from chatmimic.ports.sheets_port import SheetsError

logger = logging.getLogger(__name__)

_DEFAULT_TAB_TITLE = "Customer Data"


def column_letter(index: int) -> str:
    """Convert a 0-based column index to A1 notation (0 → A, 25 → Z, 26 → AA)."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    letters = ""
    n = index + 1
    while n:
        n, rem = divmod(n - 1, 26)
        letters = chr(65 + rem) + letters
    return letters


def phone_column_index(config: SheetConfig) -> int | None:
    """Index of the column holding phone numbers, or None if the config has none."""
    return config.phone_column_index()


def _row_values(config: SheetConfig, record: dict[str, str]) -> list[str]:
    return [record.get(col.id) or "" for col in config.columns]


class GoogleSheetsAdapter:
    """Google Sheets implementation of SheetsPort."""

    def __init__(self, service) -> None:
        self._service = service

    async def append_row(self, config: SheetConfig, record: dict[str, str]) -> dict:
        values = _row_values(config, record)
        try:
            result = (
                self._service.spreadsheets()
                .values()
                .append(
                    spreadsheetId=config.sheet_id,
                    range="A:A",
                    valueInputOption="RAW",
                    insertDataOption="INSERT_ROWS",
                    body={"majorDimension": "ROWS", "values": [values]},
                )
                .execute()
            )
        except Exception as exc:
            logger.error("Failed to append row to sheet %s: %s", config.sheet_id, exc)
            raise SheetsError(f"Failed to append row: {exc}") from exc

        logger.info("Row appended to sheet '%s' (%s)", config.name, config.sheet_id)
        return result

    async def find_row(self, config: SheetConfig, phone_number: str) -> int | None:
        """Return the 1-based row holding `phone_number`, skipping the header row."""
        index = phone_column_index(config)
        if index is None:
            logger.warning("No phone column in sheet config '%s'", config.name)
            return None

        letter = column_letter(index)
        try:
            result = (
                self._service.spreadsheets()
                .values()
                .get(spreadsheetId=config.sheet_id, range=f"{letter}:{letter}")
                .execute()
            )
        except Exception as exc:
            logger.error("Failed to search sheet %s: %s", config.sheet_id, exc)
            raise SheetsError(f"Failed to search sheet data: {exc}") from exc

        rows = result.get("values", [])
        for i, row in enumerate(rows[1:], start=2):
            if row and str(row[0]).strip() == phone_number:
                return i
        return None

    async def update_row(
        self, config: SheetConfig, row_index: int, record: dict[str, str]
    ) -> dict:
        """Overwrite the configured cells of one row; ids not in the config are ignored."""
        data = []
        for i, col in enumerate(config.columns):
            if col.id not in record:
                continue
            data.append({
                "range": f"{column_letter(i)}{row_index}",
                "majorDimension": "ROWS",
                "values": [[record[col.id]]],
            })

        if not data:
            return {}

        try:
            result = (
                self._service.spreadsheets()
                .values()
                .batchUpdate(
                    spreadsheetId=config.sheet_id,
                    body={"valueInputOption": "RAW", "data": data},
                )
                .execute()
            )
        except Exception as exc:
            logger.error(
                "Failed to update row %d in sheet %s: %s", row_index, config.sheet_id, exc,
            )
            raise SheetsError(f"Failed to update row {row_index}: {exc}") from exc

        logger.info("Row %d updated in sheet '%s'", row_index, config.name)
        return result

    async def create_sheet(self, config: SheetConfig) -> SheetConfig:
        """Create the spreadsheet if needed, then write the header row of column names."""
        if not config.sheet_id:
            try:
                created = (
                    self._service.spreadsheets()
                    .create(
                        body={
                            "properties": {"title": config.name},
                            "sheets": [{"properties": {"title": _DEFAULT_TAB_TITLE}}],
                        },
                        fields="spreadsheetId",
                    )
                    .execute()
                )
            except Exception as exc:
                logger.error("Failed to create spreadsheet '%s': %s", config.name, exc)
                raise SheetsError(f"Failed to create spreadsheet: {exc}") from exc
            config.sheet_id = created["spreadsheetId"]
            logger.info("Spreadsheet '%s' created: %s", config.name, config.sheet_id)

        if not config.columns:
            return config

        headers = [col.name for col in config.columns]
        header_range = f"A1:{column_letter(len(headers) - 1)}1"
        try:
            (
                self._service.spreadsheets()
                .values()
                .update(
                    spreadsheetId=config.sheet_id,
                    range=header_range,
                    valueInputOption="RAW",
                    body={"range": header_range, "majorDimension": "ROWS", "values": [headers]},
                )
                .execute()
            )
        except Exception as exc:
            logger.error("Failed to write headers to %s: %s", config.sheet_id, exc)
            raise SheetsError(f"Failed to set up sheet headers: {exc}") from exc

        return config
