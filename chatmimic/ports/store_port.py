"""Document store port — abstract interface for tenant documents and live queries.

Core modules depend on this protocol, never on a specific store client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol

CHANGE_ADDED = "added"
CHANGE_MODIFIED = "modified"
CHANGE_REMOVED = "removed"


class StoreError(Exception):
    """Raised when any document store operation fails."""


@dataclass
class StoredDocument:
    id: str
    data: dict


@dataclass
class DocumentChange:
    kind: str               # added | modified | removed
    document: StoredDocument


@dataclass
class CollectionSnapshot:
    """Every document currently in a collection plus what changed since the last delivery."""

    documents: list[StoredDocument] = field(default_factory=list)
    changes: list[DocumentChange] = field(default_factory=list)


SnapshotCallback = Callable[[CollectionSnapshot], None]
ErrorCallback = Callable[[Exception], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class DocumentStorePort(Protocol):
    """Abstract document store used by the pipelines."""

    async def get_document(self, path: str) -> dict | None: ...

    async def update_document(self, path: str, fields: dict) -> None: ...

    async def set_document(self, path: str, fields: dict, merge: bool = True) -> None: ...

    def watch_collection(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription: ...


# ---------------------------------------------------------------------------
# Document paths
# ---------------------------------------------------------------------------


def tenant_path(tenant_id: str) -> str:
    return f"Users/{tenant_id}"


def chats_path(tenant_id: str) -> str:
    return f"Whatsapp_Data/{tenant_id}/chats"


def chat_path(tenant_id: str, phone_number: str) -> str:
    return f"{chats_path(tenant_id)}/{phone_number}"


def messages_path(tenant_id: str, phone_number: str) -> str:
    return f"{chat_path(tenant_id, phone_number)}/messages"


def message_path(tenant_id: str, phone_number: str, message_id: str) -> str:
    return f"{messages_path(tenant_id, phone_number)}/{message_id}"
