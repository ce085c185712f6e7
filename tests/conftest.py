"""Shared test fixtures and configuration.

Sets up fake environment variables so chatmimic.config doesn't sys.exit(),
and provides common fixtures: an in-memory document store and temp DB paths.
"""

import copy
import os

# Patch env vars BEFORE any chatmimic imports
os.environ.setdefault("LLM_API_KEY", "fake-llm-key-for-tests")
os.environ.setdefault("LLM_PROVIDER", "groq")
os.environ.setdefault("TENANT_IDS", "tenant-1")
os.environ.setdefault("MARKER_STORE", "memory")
os.environ.setdefault("DATABASE_PATH", ":memory:")

import pytest

from chatmimic.ports.store_port import (
    CollectionSnapshot,
    DocumentChange,
    StoredDocument,
    StoreError,
)


class FakeSubscription:
    def __init__(self, store: "FakeStore", path: str, callback) -> None:
        self._store = store
        self.path = path
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        self.active = False


class FakeStore:
    """In-memory DocumentStorePort. Watch callbacks fire only on `emit()`."""

    def __init__(self) -> None:
        self.docs: dict[str, dict] = {}
        self.subscriptions: list[FakeSubscription] = []
        self.update_calls: list[tuple[str, dict]] = []
        self.set_calls: list[tuple[str, dict]] = []
        self.fail_updates = 0          # next N updates raise StoreError
        self.ignore_updates = False    # updates "succeed" without changing data

    # ---- DocumentStorePort ----

    async def get_document(self, path: str) -> dict | None:
        doc = self.docs.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    async def update_document(self, path: str, fields: dict) -> None:
        self.update_calls.append((path, copy.deepcopy(fields)))
        if self.fail_updates:
            self.fail_updates -= 1
            raise StoreError(f"update failed: {path}")
        if path not in self.docs:
            raise StoreError(f"No document to update: {path}")
        if self.ignore_updates:
            return
        for key, value in fields.items():
            target = self.docs[path]
            *parents, leaf = key.split(".")
            for part in parents:
                target = target.setdefault(part, {})
            target[leaf] = copy.deepcopy(value)

    async def set_document(self, path: str, fields: dict, merge: bool = True) -> None:
        self.set_calls.append((path, copy.deepcopy(fields)))
        if merge:
            self.docs.setdefault(path, {}).update(copy.deepcopy(fields))
        else:
            self.docs[path] = copy.deepcopy(fields)

    def watch_collection(self, path, on_snapshot, on_error=None) -> FakeSubscription:
        sub = FakeSubscription(self, path, on_snapshot)
        self.subscriptions.append(sub)
        return sub

    # ---- test helpers ----

    def active_paths(self) -> list[str]:
        return [s.path for s in self.subscriptions if s.active]

    def emit(self, path: str, documents: dict[str, dict], changes: list[tuple[str, str]] = ()) -> None:
        """Deliver a snapshot to every active watcher of `path`."""
        snapshot = CollectionSnapshot(
            documents=[StoredDocument(id=k, data=v) for k, v in documents.items()],
            changes=[
                DocumentChange(kind=kind, document=StoredDocument(id=doc_id, data=documents.get(doc_id, {})))
                for kind, doc_id in changes
            ],
        )
        for sub in list(self.subscriptions):
            if sub.active and sub.path == path:
                sub.callback(snapshot)


@pytest.fixture
def fake_store():
    """Return an empty in-memory document store."""
    return FakeStore()


@pytest.fixture
def tenant_store(fake_store):
    """A store holding tenant 'tenant-1' with an empty agent config."""
    fake_store.docs["Users/tenant-1"] = {
        "workflows": {"whatsapp_agent": {"lifecycleTagConfigs": [], "sheetConfigs": []}},
    }
    return fake_store


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_markers.db")


@pytest.fixture
def marker_db(tmp_db_path):
    """Return a ProcessedMarkerDB backed by a temp file."""
    from chatmimic.data.db import ProcessedMarkerDB
    return ProcessedMarkerDB(db_path=tmp_db_path, tenant_id="tenant-1")
