"""
ChatMimic Sync Worker — Application.

Builds the Firestore store, starts every configured tenant and keeps the
event loop alive until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import logging
import signal

from chatmimic.config import settings
from chatmimic.core.worker import TenantWorker, start_tenant

logger = logging.getLogger(__name__)


async def run(tenant_ids: list[str] | None = None, store=None) -> None:
    """Start all tenants and block until a shutdown signal arrives."""
    if store is None:
        from chatmimic.adapters.firestore_store import FirestoreStore

        store = FirestoreStore()

    tenant_ids = settings.TENANT_IDS if tenant_ids is None else tenant_ids
    if not tenant_ids:
        logger.warning("No TENANT_IDS configured, nothing to run")
        return

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # add_signal_handler is unavailable on Windows event loops
            pass

    workers: list[TenantWorker] = []
    for tenant_id in tenant_ids:
        worker = await start_tenant(store, tenant_id)
        workers.append(worker)
        if not worker.running:
            logger.info("Tenant %s has no active pipelines", tenant_id)

    logger.info("Sync worker running for %d tenant(s)", len(workers))
    await stop_event.wait()

    logger.info("Shutting down...")
    for worker in workers:
        worker.stop()
    for worker in workers:
        await worker.wait_idle()


def main() -> None:
    """Entry point: configure logging and run the worker."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # main.py may already have configured the root logger
    logging.getLogger().setLevel(level)
    logger.info("Starting ChatMimic sync worker...")
    asyncio.run(run())


if __name__ == "__main__":
    main()
