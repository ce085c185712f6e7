"""
ChatMimic Sync Worker — Processed Marker Database.

Durable idempotency markers: a (tenant, message, sheet config) pair written
to a spreadsheet is recorded in SQLite, so restarts and repeated snapshot
deliveries never append the same extraction twice.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

logger = logging.getLogger(__name__)


class ProcessedMarkerDB:
    """SQLite-backed processed markers, scoped to one tenant."""

    def __init__(self, db_path: str | None = None, tenant_id: str = "") -> None:
        if db_path is None:
            from chatmimic.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        self._tenant_id = tenant_id
        # An in-memory database lives only as long as its connection
        self._shared_conn: sqlite3.Connection | None = None
        if db_path == ":memory:":
            self._shared_conn = sqlite3.connect(db_path, check_same_thread=False)
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        if self._shared_conn is not None:
            return self._shared_conn
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS processed_markers (
                    tenant_id         TEXT    NOT NULL,
                    message_id        TEXT    NOT NULL,
                    config_id         TEXT    NOT NULL,
                    phone_number      TEXT    NOT NULL,
                    message_timestamp INTEGER NOT NULL DEFAULT 0,
                    processed_at      REAL    NOT NULL,
                    PRIMARY KEY (tenant_id, message_id, config_id)
                )
            """)
        logger.debug("Processed markers table initialized at %s", self._db_path)

    def is_processed(self, phone_number: str, message_id: str, config_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM processed_markers
                WHERE tenant_id = ? AND message_id = ? AND config_id = ?
                """,
                (self._tenant_id, message_id, config_id),
            ).fetchone()
        return row is not None

    def mark_processed(
        self,
        phone_number: str,
        message_id: str,
        config_id: str,
        message_timestamp: int = 0,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO processed_markers
                    (tenant_id, message_id, config_id, phone_number,
                     message_timestamp, processed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    self._tenant_id, message_id, config_id, phone_number,
                    message_timestamp, time.time(),
                ),
            )
        logger.debug("Marked message %s processed for config %s", message_id, config_id)

    def prune(self, older_than_hours: float) -> int:
        """Delete this tenant's markers older than the given age. Returns rows removed."""
        cutoff = time.time() - older_than_hours * 3600
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM processed_markers WHERE tenant_id = ? AND processed_at < ?",
                (self._tenant_id, cutoff),
            )
            removed = cursor.rowcount
        if removed:
            logger.info("Pruned %d processed marker(s) for tenant %s", removed, self._tenant_id)
        return removed

    def count(self) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM processed_markers WHERE tenant_id = ?",
                (self._tenant_id,),
            ).fetchone()
        return row[0]
