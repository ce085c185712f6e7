"""
ChatMimic Sync Worker — Message Listener.

Watches a tenant's chats collection and, for each chat, its messages
sub-collection. Every message snapshot is handed to each registered handler
on the worker's event loop.

Message subscriptions are kept in an explicit registry keyed by chat id: a
chat gets exactly one, it is torn down when the chat is removed, and `stop()`
tears down all of them. Handler calls already scheduled are not cancelled by
`stop()`; they run to completion.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import Future
from functools import partial
from typing import TYPE_CHECKING, Awaitable, Callable

from chatmimic.data.models import Message
from chatmimic.ports.store_port import (
    CHANGE_ADDED,
    CHANGE_MODIFIED,
    CHANGE_REMOVED,
    CollectionSnapshot,
    chats_path,
    messages_path,
)

if TYPE_CHECKING:
    from chatmimic.ports.store_port import DocumentStorePort, Subscription

logger = logging.getLogger(__name__)

MessageHandler = Callable[[str, list[Message]], Awaitable[None]]


class ChatListener:
    """Fans message snapshots of one tenant's chats out to async handlers."""

    def __init__(
        self,
        store: DocumentStorePort,
        tenant_id: str,
        handlers: list[MessageHandler],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._store = store
        self.tenant_id = tenant_id
        self._handlers = list(handlers)
        self._loop = loop
        # Store callbacks arrive on the store client's thread
        self._lock = threading.Lock()
        self._chats_sub: Subscription | None = None
        self._chat_subs: dict[str, Subscription] = {}
        self._pending: set[Future] = set()
        self._stopped = False

    @property
    def chat_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._chat_subs)

    @property
    def running(self) -> bool:
        return self._chats_sub is not None and not self._stopped

    def start(self) -> None:
        """Subscribe to the tenant's chats. Must be called from the worker's event loop."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._stopped = False
        self._chats_sub = self._store.watch_collection(
            chats_path(self.tenant_id), self._on_chats_snapshot, self._on_error,
        )
        logger.info("Listening to chats of tenant %s", self.tenant_id)

    def stop(self) -> None:
        """Unsubscribe from the chats collection and every message sub-collection."""
        with self._lock:
            self._stopped = True
            subs = list(self._chat_subs.values())
            self._chat_subs.clear()
            chats_sub, self._chats_sub = self._chats_sub, None

        if chats_sub is not None:
            chats_sub.unsubscribe()
        for sub in subs:
            sub.unsubscribe()
        logger.info(
            "Stopped listening to tenant %s (%d chat subscription(s) closed)",
            self.tenant_id, len(subs),
        )

    async def wait_idle(self) -> None:
        """Wait for every handler call scheduled so far to finish."""
        pending = list(self._pending)
        if pending:
            await asyncio.gather(
                *(asyncio.wrap_future(f) for f in pending), return_exceptions=True,
            )

    # ---- chat registry ----

    def _subscribe_chat(self, phone_number: str) -> None:
        with self._lock:
            if self._stopped or phone_number in self._chat_subs:
                return
            sub = self._store.watch_collection(
                messages_path(self.tenant_id, phone_number),
                partial(self._on_messages_snapshot, phone_number),
                self._on_error,
            )
            self._chat_subs[phone_number] = sub
        logger.debug("Subscribed to messages of %s", phone_number)

    def _unsubscribe_chat(self, phone_number: str) -> None:
        with self._lock:
            sub = self._chat_subs.pop(phone_number, None)
        if sub is not None:
            sub.unsubscribe()
            logger.debug("Unsubscribed from messages of %s", phone_number)

    # ---- store callbacks ----

    def _on_chats_snapshot(self, snapshot: CollectionSnapshot) -> None:
        for change in snapshot.changes:
            phone_number = change.document.id
            if change.kind in (CHANGE_ADDED, CHANGE_MODIFIED):
                self._subscribe_chat(phone_number)
            elif change.kind == CHANGE_REMOVED:
                self._unsubscribe_chat(phone_number)

    def _on_messages_snapshot(self, phone_number: str, snapshot: CollectionSnapshot) -> None:
        if self._stopped:
            return
        messages = sorted(
            (Message.from_dict(d.id, d.data) for d in snapshot.documents),
            key=lambda m: m.timestamp,
        )
        for handler in self._handlers:
            self._dispatch(handler(phone_number, messages))

    def _on_error(self, exc: Exception) -> None:
        logger.error("Listener error for tenant %s: %s", self.tenant_id, exc)

    # ---- scheduling ----

    def _dispatch(self, coro: Awaitable[None]) -> None:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        self._pending.add(future)
        future.add_done_callback(self._on_handler_done)

    def _on_handler_done(self, future: Future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Message handler failed for tenant %s: %s", self.tenant_id, exc)
