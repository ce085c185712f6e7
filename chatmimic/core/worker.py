"""
ChatMimic Sync Worker — Tenant Wiring.

Starts the background pipelines of one tenant: lifecycle tagging when the
tenant has active rules, and Sheets extraction when it has active sheet
configs and has connected Google Sheets. Each pipeline gets its own listener.
A tenant with nothing configured is a no-op, not an error.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from chatmimic.core.lifecycle import LifecycleMatcher
from chatmimic.core.listener import ChatListener
from chatmimic.core.sheet_sync import ExtractionDispatcher, MarkerStore
from chatmimic.data.rule_store import RuleStore

if TYPE_CHECKING:
    from chatmimic.ports.sheets_port import SheetsPort
    from chatmimic.ports.store_port import DocumentStorePort

logger = logging.getLogger(__name__)


def create_marker_store(tenant_id: str) -> MarkerStore:
    """Return the processed-marker store matching the MARKER_STORE setting."""
    from chatmimic.config import settings

    kind = settings.MARKER_STORE.lower()
    if kind == "sqlite":
        from chatmimic.data.db import ProcessedMarkerDB

        return ProcessedMarkerDB(db_path=settings.DATABASE_PATH, tenant_id=tenant_id)
    if kind == "memory":
        from chatmimic.data.marker_cache import ProcessedMessageCache

        return ProcessedMessageCache(ttl_seconds=settings.PROCESSED_TTL_HOURS * 3600)
    raise ValueError(f"Unknown MARKER_STORE: {kind!r}")


@dataclass
class TenantWorker:
    """The running listeners of one tenant."""

    tenant_id: str
    listeners: list[ChatListener] = field(default_factory=list)
    lifecycle: LifecycleMatcher | None = None
    dispatcher: ExtractionDispatcher | None = None

    @property
    def running(self) -> bool:
        return any(listener.running for listener in self.listeners)

    def stop(self) -> None:
        for listener in self.listeners:
            listener.stop()

    async def wait_idle(self) -> None:
        for listener in self.listeners:
            await listener.wait_idle()


async def start_lifecycle_tagging(
    store: DocumentStorePort, rule_store: RuleStore,
) -> tuple[LifecycleMatcher, ChatListener] | None:
    rules = await rule_store.list_active_lifecycle_rules()
    if not rules:
        logger.info("No active lifecycle tagging rules for tenant %s", rule_store.tenant_id)
        return None

    matcher = LifecycleMatcher(store, rule_store)
    listener = ChatListener(store, rule_store.tenant_id, [matcher.handle_messages])
    listener.start()
    logger.info(
        "Started lifecycle tagging for tenant %s with %d active rule(s)",
        rule_store.tenant_id, len(rules),
    )
    return matcher, listener


async def start_sheet_sync(
    store: DocumentStorePort,
    rule_store: RuleStore,
    sheets: SheetsPort | None = None,
    markers: MarkerStore | None = None,
) -> tuple[ExtractionDispatcher, ChatListener] | None:
    tenant_id = rule_store.tenant_id
    configs = await rule_store.list_active_sheet_configs()
    if not configs:
        logger.info("No active Google Sheets integrations for tenant %s", tenant_id)
        return None

    if sheets is None:
        from chatmimic.adapters.sheets_factory import create_sheets_adapter
        from chatmimic.ports.sheets_port import SheetsError

        try:
            sheets = await create_sheets_adapter(store, tenant_id)
        except SheetsError as exc:
            logger.warning("Sheets sync not started for tenant %s: %s", tenant_id, exc)
            return None

    dispatcher = ExtractionDispatcher(
        store, rule_store, sheets, markers or create_marker_store(tenant_id),
    )
    listener = ChatListener(store, tenant_id, [dispatcher.handle_messages])
    listener.start()
    logger.info(
        "Started WhatsApp to Google Sheets sync for tenant %s with %d active config(s)",
        tenant_id, len(configs),
    )
    return dispatcher, listener


async def start_tenant(
    store: DocumentStorePort,
    tenant_id: str,
    sheets: SheetsPort | None = None,
    markers: MarkerStore | None = None,
) -> TenantWorker:
    """Start every configured pipeline of a tenant. Failures are logged per pipeline."""
    rule_store = RuleStore(store, tenant_id)
    worker = TenantWorker(tenant_id=tenant_id)

    try:
        started = await start_lifecycle_tagging(store, rule_store)
        if started is not None:
            worker.lifecycle, listener = started
            worker.listeners.append(listener)
    except Exception as exc:
        logger.error("Error starting lifecycle tagging for %s: %s", tenant_id, exc)

    try:
        started = await start_sheet_sync(store, rule_store, sheets, markers)
        if started is not None:
            worker.dispatcher, listener = started
            worker.listeners.append(listener)
    except Exception as exc:
        logger.error("Error starting Google Sheets sync for %s: %s", tenant_id, exc)

    return worker
