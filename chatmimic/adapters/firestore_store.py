"""Firestore adapter — implements DocumentStorePort for Google Cloud Firestore.

All Firestore-specific logic lives here. Core modules never import this
directly; they depend on the DocumentStorePort protocol.
"""

from __future__ import annotations

import logging

from google.cloud import firestore

from chatmimic.ports.store_port import (
    CollectionSnapshot,
    DocumentChange,
    ErrorCallback,
    SnapshotCallback,
    StoredDocument,
    StoreError,
)

logger = logging.getLogger(__name__)

_CHANGE_KINDS = {
    "ADDED": "added",
    "MODIFIED": "modified",
    "REMOVED": "removed",
}


def create_firestore_client() -> firestore.Client:
    """Build a Firestore client from settings."""
    from chatmimic.config import settings
    from chatmimic.integrations.google_auth import get_firestore_credentials

    return firestore.Client(
        project=settings.FIREBASE_PROJECT_ID or None,
        credentials=get_firestore_credentials(),
    )


def _to_snapshot(docs, changes) -> CollectionSnapshot:
    return CollectionSnapshot(
        documents=[StoredDocument(id=d.id, data=d.to_dict() or {}) for d in docs],
        changes=[
            DocumentChange(
                kind=_CHANGE_KINDS.get(c.type.name, c.type.name.lower()),
                document=StoredDocument(id=c.document.id, data=c.document.to_dict() or {}),
            )
            for c in changes
        ],
    )


class _WatchSubscription:
    def __init__(self, watch, path: str) -> None:
        self._watch = watch
        self._path = path

    def unsubscribe(self) -> None:
        try:
            self._watch.unsubscribe()
            logger.debug("Unsubscribed from %s", self._path)
        except Exception as exc:
            logger.warning("Failed to unsubscribe from %s: %s", self._path, exc)


class FirestoreStore:
    """Firestore implementation of DocumentStorePort."""

    def __init__(self, client: firestore.Client | None = None) -> None:
        self._client = client or create_firestore_client()

    async def get_document(self, path: str) -> dict | None:
        try:
            snapshot = self._client.document(path).get()
        except Exception as exc:
            logger.error("Failed to read %s: %s", path, exc)
            raise StoreError(f"Failed to read {path}: {exc}") from exc
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def update_document(self, path: str, fields: dict) -> None:
        """Update fields of an existing document. Dotted keys address nested fields."""
        try:
            self._client.document(path).update(fields)
        except Exception as exc:
            logger.error("Failed to update %s: %s", path, exc)
            raise StoreError(f"Failed to update {path}: {exc}") from exc

    async def set_document(self, path: str, fields: dict, merge: bool = True) -> None:
        try:
            self._client.document(path).set(fields, merge=merge)
        except Exception as exc:
            logger.error("Failed to set %s: %s", path, exc)
            raise StoreError(f"Failed to set {path}: {exc}") from exc

    def watch_collection(
        self,
        path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
    ) -> _WatchSubscription:
        """Subscribe to a collection. Callbacks run on the Firestore watch thread."""

        def _callback(docs, changes, read_time) -> None:
            try:
                on_snapshot(_to_snapshot(docs, changes))
            except Exception as exc:
                logger.error("Snapshot handler for %s failed: %s", path, exc)
                if on_error is not None:
                    on_error(exc)

        try:
            watch = self._client.collection(path).on_snapshot(_callback)
        except Exception as exc:
            logger.error("Failed to watch %s: %s", path, exc)
            raise StoreError(f"Failed to watch {path}: {exc}") from exc

        logger.debug("Watching %s", path)
        return _WatchSubscription(watch, path)
