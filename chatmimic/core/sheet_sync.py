"""
ChatMimic Sync Worker — WhatsApp to Google Sheets extraction.

For every inbound customer message and every active sheet config, asks the
LLM for the configured fields and writes them as a spreadsheet row.

Each (message, config) pair is written at most once: a processed marker is
recorded after a successful write and checked before any work starts. A
failing config is logged and skipped; it never blocks other configs or
other messages.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from chatmimic.core.extractor import extract_fields
from chatmimic.core.lifecycle import matches_any
from chatmimic.data.models import (
    NOT_AVAILABLE,
    TRIGGER_MANUAL,
    TRIGGER_SHOW_INTEREST,
    Message,
    SheetConfig,
)
from chatmimic.ports.store_port import message_path

if TYPE_CHECKING:
    from chatmimic.data.rule_store import RuleStore
    from chatmimic.ports.sheets_port import SheetsPort
    from chatmimic.ports.store_port import DocumentStorePort

logger = logging.getLogger(__name__)

PHONE_NUMBER_KEY = "phone_number"


class MarkerStore(Protocol):
    """Implemented by ProcessedMessageCache and ProcessedMarkerDB."""

    def is_processed(self, phone_number: str, message_id: str, config_id: str) -> bool: ...

    def mark_processed(
        self,
        phone_number: str,
        message_id: str,
        config_id: str,
        message_timestamp: int = 0,
    ) -> None: ...


def should_process(config: SheetConfig, message: Message) -> bool:
    """Apply the config's add trigger to a message."""
    if config.add_trigger == TRIGGER_MANUAL:
        return False
    if config.add_trigger == TRIGGER_SHOW_INTEREST:
        return matches_any(message.message, config.interest_keywords)
    return True


class ExtractionDispatcher:
    """Extracts inbound messages of one tenant into its linked spreadsheets."""

    def __init__(
        self,
        store: DocumentStorePort,
        rule_store: RuleStore,
        sheets: SheetsPort,
        markers: MarkerStore,
    ) -> None:
        self._store = store
        self._rules = rule_store
        self._sheets = sheets
        self._markers = markers
        self._in_flight: set[tuple[str, str]] = set()

    @property
    def tenant_id(self) -> str:
        return self._rules.tenant_id

    async def build_record(
        self, phone_number: str, message: Message, config: SheetConfig
    ) -> dict[str, str]:
        """Extracted values for every column, plus the sender's phone number."""
        record = await extract_fields(message.message, config.columns)
        record[PHONE_NUMBER_KEY] = phone_number
        # Same column detection as the row lookup used by auto-update
        for col in config.columns:
            if col.is_phone and record.get(col.id) in (None, "", NOT_AVAILABLE):
                record[col.id] = phone_number
        return record

    async def _write(self, phone_number: str, config: SheetConfig, record: dict[str, str]) -> None:
        if config.auto_update_fields:
            row = await self._sheets.find_row(config, phone_number)
            if row is not None:
                await self._sheets.update_row(config, row, record)
                logger.info(
                    "Updated row %d in sheet '%s' for %s", row, config.name, phone_number,
                )
                return
        await self._sheets.append_row(config, record)
        logger.info("Added data to sheet '%s' for %s", config.name, phone_number)

    async def _process_pair(
        self,
        phone_number: str,
        message: Message,
        config: SheetConfig,
        check_markers: bool = True,
    ) -> bool:
        """Extract and write one message into one sheet. Returns True if a row was written."""
        key = (message.id, config.config_id)
        if check_markers and (
            key in self._in_flight
            or self._markers.is_processed(phone_number, message.id, config.config_id)
        ):
            return False

        if not message.message.strip():
            logger.warning("Empty message %s from %s, skipping", message.id, phone_number)
            return False

        if not should_process(config, message):
            logger.debug(
                "Trigger '%s' of sheet '%s' skipped message %s",
                config.add_trigger, config.name, message.id,
            )
            return False

        self._in_flight.add(key)
        try:
            record = await self.build_record(phone_number, message, config)
            await self._write(phone_number, config, record)
            self._markers.mark_processed(
                phone_number, message.id, config.config_id, message.timestamp,
            )
            return True
        except Exception as exc:
            logger.error(
                "Error processing message %s for sheet '%s': %s",
                message.id, config.name, exc,
            )
            return False
        finally:
            self._in_flight.discard(key)

    async def handle_messages(self, phone_number: str, messages: list[Message]) -> None:
        """Listener handler: process every unprocessed customer message in the batch."""
        inbound = sorted(
            (m for m in messages if m.is_from_customer), key=lambda m: m.timestamp,
        )
        if not inbound:
            return

        try:
            configs = await self._rules.list_active_sheet_configs()
        except Exception as exc:
            logger.error("Failed to load sheet configs for %s: %s", self.tenant_id, exc)
            return

        for message in inbound:
            for config in configs:
                await self._process_pair(phone_number, message, config)

    async def process_message(self, phone_number: str, message_id: str) -> bool:
        """Run one stored message through every active sheet config, ignoring markers.

        Returns True if at least one sheet received a row.
        """
        try:
            data = await self._store.get_document(
                message_path(self.tenant_id, phone_number, message_id)
            )
            if data is None:
                logger.error("Message not found: %s/%s", phone_number, message_id)
                return False
            message = Message.from_dict(message_id, data)

            configs = await self._rules.list_active_sheet_configs()
            if not configs:
                logger.info("No active Google Sheets integrations found")
                return False
        except Exception as exc:
            logger.error("Error processing WhatsApp message %s: %s", message_id, exc)
            return False

        written = False
        for config in configs:
            if await self._process_pair(phone_number, message, config, check_markers=False):
                written = True
        return written
