"""
ChatMimic Sync Worker — Lifecycle Tagging.

Moves a contact to a CRM lifecycle stage when an inbound message contains one
of a rule's keywords. Matching is case-insensitive substring containment
("hot" matches inside "photograph"); rules are tried in stored order and the
first match wins.

A contact whose `manually_set_lifecycle` flag is true is never touched by
automation. Only `clear_manual_override()` resets the flag.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chatmimic.data.models import Contact, LifecycleRule
from chatmimic.ports.store_port import StoreError, chat_path

if TYPE_CHECKING:
    from chatmimic.data.models import Message
    from chatmimic.data.rule_store import RuleStore
    from chatmimic.ports.store_port import DocumentStorePort

logger = logging.getLogger(__name__)

# Contacts whose last evaluated message id is remembered
MAX_TRACKED_CONTACTS = 10_000


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def matches_any(text: str, keywords: list[str]) -> bool:
    """True if any non-empty keyword occurs in `text`, ignoring case."""
    normalized = text.lower()
    return any(kw.strip() and kw.lower() in normalized for kw in keywords)


def match_rule(rules: list[LifecycleRule], text: str) -> LifecycleRule | None:
    """Return the first active rule with a keyword contained in `text`."""
    for rule in rules:
        if rule.active and matches_any(text, rule.keywords):
            return rule
    return None


# ---------------------------------------------------------------------------
# Contact writes
# ---------------------------------------------------------------------------


@dataclass
class WritePolicy:
    """How contact writes are confirmed.

    verify:   read the document back after writing and compare the fields.
    attempts: how many merge-`set` retries follow a failed write or a failed
              verification.
    """

    verify: bool = True
    attempts: int = 1

    @classmethod
    def from_settings(cls) -> WritePolicy:
        from chatmimic.config import settings

        return cls(
            verify=settings.LIFECYCLE_VERIFY_WRITES,
            attempts=settings.LIFECYCLE_WRITE_ATTEMPTS,
        )


class LifecycleMatcher:
    """Evaluates lifecycle rules for one tenant's contacts."""

    def __init__(
        self,
        store: DocumentStorePort,
        rule_store: RuleStore,
        write_policy: WritePolicy | None = None,
        skip_same_stage: bool | None = None,
    ) -> None:
        if skip_same_stage is None:
            from chatmimic.config import settings
            skip_same_stage = settings.LIFECYCLE_SKIP_SAME_STAGE

        self._store = store
        self._rules = rule_store
        self._policy = write_policy or WritePolicy.from_settings()
        self._skip_same_stage = skip_same_stage
        self._last_evaluated: OrderedDict[str, str] = OrderedDict()

    @property
    def tenant_id(self) -> str:
        return self._rules.tenant_id

    async def get_contact(self, phone_number: str) -> Contact | None:
        data = await self._store.get_document(chat_path(self.tenant_id, phone_number))
        if data is None:
            return None
        return Contact.from_dict(phone_number, data)

    async def _fields_match(self, path: str, fields: dict) -> bool:
        data = await self._store.get_document(path) or {}
        return all(data.get(k) == v for k, v in fields.items())

    async def _write_contact(self, phone_number: str, fields: dict) -> bool:
        """Write fields to a contact under the write policy. Returns True once confirmed."""
        path = chat_path(self.tenant_id, phone_number)

        try:
            await self._store.update_document(path, fields)
            if not self._policy.verify or await self._fields_match(path, fields):
                return True
            logger.warning("Write verification failed for %s: expected %s", path, fields)
        except StoreError as exc:
            logger.warning("Update of %s failed: %s", path, exc)

        for attempt in range(1, self._policy.attempts + 1):
            try:
                await self._store.set_document(path, fields, merge=True)
                if not self._policy.verify or await self._fields_match(path, fields):
                    logger.info("Write to %s confirmed on retry %d", path, attempt)
                    return True
                logger.warning("Retry %d for %s did not verify", attempt, path)
            except StoreError as exc:
                logger.warning("Retry %d for %s failed: %s", attempt, path, exc)

        return False

    # ---- automatic tagging ----

    async def process_message(self, phone_number: str, text: str) -> bool:
        """Apply the first matching rule to the contact. Returns True if the stage was written."""
        try:
            rules = await self._rules.list_active_lifecycle_rules()
            if not rules:
                return False

            contact = await self.get_contact(phone_number)
            if contact is not None and contact.manually_set_lifecycle:
                logger.debug("Lifecycle for %s set manually, skipping", phone_number)
                return False

            rule = match_rule(rules, text)
            if rule is None:
                return False

            if (
                self._skip_same_stage
                and contact is not None
                and contact.lifecycle == rule.name
            ):
                logger.debug("Lifecycle for %s already '%s'", phone_number, rule.name)
                return False

            if not await self._write_contact(phone_number, {"lifecycle": rule.name}):
                logger.error("Failed to update lifecycle for %s to '%s'", phone_number, rule.name)
                return False

            logger.info(
                "Updated lifecycle for %s to '%s' based on message content",
                phone_number, rule.name,
            )
            return True
        except Exception as exc:
            logger.error("Error processing message for lifecycle tagging: %s", exc)
            return False

    async def handle_messages(self, phone_number: str, messages: list[Message]) -> None:
        """Listener handler: evaluate the newest customer message once."""
        inbound = [m for m in messages if m.is_from_customer]
        if not inbound:
            return

        latest = max(inbound, key=lambda m: m.timestamp)
        seen = self._last_evaluated.get(phone_number) == latest.id
        self._last_evaluated[phone_number] = latest.id
        # Least recently active contacts are forgotten first
        self._last_evaluated.move_to_end(phone_number)
        if seen:
            return
        while len(self._last_evaluated) > MAX_TRACKED_CONTACTS:
            self._last_evaluated.popitem(last=False)

        await self.process_message(phone_number, latest.message)

    # ---- manual override ----

    async def set_manual_lifecycle(self, phone_number: str, stage: str) -> bool:
        """Set a stage on behalf of a human and lock out automation for this contact.

        Raises StoreError if the contact cannot be read.
        """
        contact = await self.get_contact(phone_number)
        if contact is None:
            raise StoreError(f"Contact not found: {phone_number}")

        if contact.lifecycle != stage:
            fields = {"lifecycle": stage, "manually_set_lifecycle": True}
        elif not contact.manually_set_lifecycle:
            fields = {"manually_set_lifecycle": True}
        else:
            return True

        ok = await self._write_contact(phone_number, fields)
        if ok:
            logger.info("Lifecycle for %s manually set to '%s'", phone_number, stage)
        return ok

    async def clear_manual_override(self, phone_number: str) -> bool:
        """Re-enable automatic lifecycle tagging for a contact."""
        ok = await self._write_contact(phone_number, {"manually_set_lifecycle": False})
        if ok:
            logger.info("Automatic lifecycle tagging re-enabled for %s", phone_number)
        return ok
