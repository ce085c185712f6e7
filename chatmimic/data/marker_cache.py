"""
ChatMimic Sync Worker — In-memory processed-message markers.

Process-local record of which (message, sheet config) pairs were already
written to a spreadsheet, grouped by phone number and kept for a bounded
window. Lost on restart: a restarted worker may extract recent messages again.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

ONE_DAY_SECONDS = 24 * 60 * 60


@dataclass
class ProcessedMarker:
    message_id: str
    config_id: str
    message_timestamp: int      # epoch ms of the source message
    processed_at: float         # epoch seconds when marked


class ProcessedMessageCache:
    """Per-phone-number processed markers, pruned after `ttl_seconds`."""

    def __init__(
        self,
        ttl_seconds: float = ONE_DAY_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._markers: dict[str, list[ProcessedMarker]] = {}
        self._last_sweep = clock()

    def is_processed(self, phone_number: str, message_id: str, config_id: str) -> bool:
        now = self._clock()
        return any(
            m.message_id == message_id
            and m.config_id == config_id
            and now - m.processed_at < self._ttl
            for m in self._markers.get(phone_number, [])
        )

    def mark_processed(
        self,
        phone_number: str,
        message_id: str,
        config_id: str,
        message_timestamp: int = 0,
    ) -> None:
        """Record a marker and prune this phone number's expired ones.

        Other phone numbers are swept at most once per window, and a phone
        number with no live markers left is dropped.
        """
        now = self._clock()
        markers = self._markers.setdefault(phone_number, [])
        markers.append(ProcessedMarker(message_id, config_id, message_timestamp, now))
        self._markers[phone_number] = [
            m for m in markers if now - m.processed_at < self._ttl
        ]
        if now - self._last_sweep >= self._ttl:
            self.prune()

    def prune(self) -> int:
        """Drop expired markers of every phone number. Returns markers removed."""
        now = self._clock()
        removed = 0
        for phone_number in list(self._markers):
            live = [m for m in self._markers[phone_number] if now - m.processed_at < self._ttl]
            removed += len(self._markers[phone_number]) - len(live)
            if live:
                self._markers[phone_number] = live
            else:
                del self._markers[phone_number]
        self._last_sweep = now
        if removed:
            logger.debug("Pruned %d expired processed marker(s)", removed)
        return removed

    def count(self, phone_number: str | None = None) -> int:
        if phone_number is not None:
            return len(self._markers.get(phone_number, []))
        return sum(len(v) for v in self._markers.values())
