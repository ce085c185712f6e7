"""Sheets port — abstract interface for spreadsheet row operations.

Core modules depend on this protocol, never on a specific provider.
"""

from __future__ import annotations

from typing import Protocol

from chatmimic.data.models import SheetConfig


class SheetsError(Exception):
    """Raised when any spreadsheet operation fails."""


class SheetsPort(Protocol):
    """Abstract spreadsheet interface used by the extraction dispatcher."""

    async def append_row(self, config: SheetConfig, record: dict[str, str]) -> dict: ...

    async def find_row(self, config: SheetConfig, phone_number: str) -> int | None: ...

    async def update_row(
        self, config: SheetConfig, row_index: int, record: dict[str, str]
    ) -> dict: ...

    async def create_sheet(self, config: SheetConfig) -> SheetConfig: ...
