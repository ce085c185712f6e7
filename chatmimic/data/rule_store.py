"""
ChatMimic Sync Worker — Rule Store.

Tenant configuration lives on the tenant document under
`workflows.whatsapp_agent`: `lifecycleTagConfigs` (keyword rules) and
`sheetConfigs` (spreadsheet extraction specs). Reads are never cached; every
call goes back to the store. Writes only touch the nested list they change.
"""

from __future__ import annotations

import logging
import time

from chatmimic.data.models import LifecycleRule, SheetConfig
from chatmimic.ports.store_port import DocumentStorePort, StoreError, tenant_path

logger = logging.getLogger(__name__)

LIFECYCLE_FIELD = "workflows.whatsapp_agent.lifecycleTagConfigs"
SHEETS_FIELD = "workflows.whatsapp_agent.sheetConfigs"

AVAILABLE_LIFECYCLE_STAGES = [
    "new_lead",
    "interested",
    "hot_lead",
    "payment",
    "customer",
    "cold_lead",
    "vip_lead",
]


def _now_ms() -> int:
    return int(time.time() * 1000)


def available_lifecycle_stages() -> list[str]:
    """The predefined lifecycle stages a rule or a human can assign."""
    return list(AVAILABLE_LIFECYCLE_STAGES)


class RuleStore:
    """Reads and writes one tenant's lifecycle rules and sheet configs."""

    def __init__(self, store: DocumentStorePort, tenant_id: str) -> None:
        self._store = store
        self.tenant_id = tenant_id

    async def _agent_config(self, required: bool = False) -> dict:
        doc = await self._store.get_document(tenant_path(self.tenant_id))
        if doc is None:
            if required:
                raise StoreError(f"Tenant document not found: {self.tenant_id}")
            return {}
        return (doc.get("workflows") or {}).get("whatsapp_agent") or {}

    # ---- lifecycle rules ----

    async def list_lifecycle_rules(self) -> list[LifecycleRule]:
        agent = await self._agent_config()
        return [LifecycleRule.from_dict(r) for r in agent.get("lifecycleTagConfigs") or []]

    async def list_active_lifecycle_rules(self) -> list[LifecycleRule]:
        return [r for r in await self.list_lifecycle_rules() if r.active]

    async def save_lifecycle_rule(self, rule: LifecycleRule) -> LifecycleRule:
        """Insert or replace a rule, matched by id or by stage name.

        Only the matched entry is rewritten; other stored rules are kept as they are.
        """
        agent = await self._agent_config(required=True)
        raw = list(agent.get("lifecycleTagConfigs") or [])

        existing = next(
            (i for i, r in enumerate(raw)
             if (rule.id and r.get("id") == rule.id) or r.get("name") == rule.name),
            None,
        )
        if existing is not None:
            rule.id = rule.id or raw[existing].get("id")
            raw[existing] = {**raw[existing], **rule.to_dict()}
        else:
            if not rule.id:
                taken = {r.get("id") for r in raw}
                stamp = _now_ms()
                while f"lifecycle_{stamp}" in taken:
                    stamp += 1
                rule.id = f"lifecycle_{stamp}"
            raw.append(rule.to_dict())

        await self._store.update_document(
            tenant_path(self.tenant_id), {LIFECYCLE_FIELD: raw},
        )
        logger.info("Lifecycle rule saved: '%s' (%s)", rule.name, rule.id)
        return rule

    async def delete_lifecycle_rule(self, rule_id: str) -> bool:
        agent = await self._agent_config(required=True)
        raw = agent.get("lifecycleTagConfigs") or []
        remaining = [r for r in raw if r.get("id") != rule_id]
        if len(remaining) == len(raw):
            return False

        await self._store.update_document(
            tenant_path(self.tenant_id), {LIFECYCLE_FIELD: remaining},
        )
        logger.info("Lifecycle rule deleted: %s", rule_id)
        return True

    # ---- sheet configs ----

    async def list_sheet_configs(self) -> list[SheetConfig]:
        agent = await self._agent_config()
        return [SheetConfig.from_dict(c) for c in agent.get("sheetConfigs") or []]

    async def list_active_sheet_configs(self) -> list[SheetConfig]:
        return [
            c for c in await self.list_sheet_configs()
            if c.active and c.sheet_id and c.columns
        ]

    async def get_sheet_config(self, sheet_id: str) -> SheetConfig | None:
        for config in await self.list_sheet_configs():
            if config.sheet_id == sheet_id:
                return config
        return None

    async def save_sheet_config(self, config: SheetConfig) -> SheetConfig:
        """Insert or replace a sheet config, matched by spreadsheet id.

        Only the matched entry is rewritten; other stored configs are kept as they are.
        """
        agent = await self._agent_config(required=True)
        raw = list(agent.get("sheetConfigs") or [])

        config.last_updated = _now_ms()
        existing = next(
            (i for i, c in enumerate(raw) if c.get("sheetId") == config.sheet_id), None,
        )
        if existing is not None:
            raw[existing] = {**raw[existing], **config.to_dict()}
        else:
            raw.append(config.to_dict())

        await self._store.update_document(
            tenant_path(self.tenant_id), {SHEETS_FIELD: raw},
        )
        logger.info("Sheet config saved: '%s' (%s)", config.name, config.sheet_id)
        return config

    async def delete_sheet_config(self, sheet_id: str) -> bool:
        agent = await self._agent_config(required=True)
        raw = agent.get("sheetConfigs") or []
        remaining = [c for c in raw if c.get("sheetId") != sheet_id]
        if len(remaining) == len(raw):
            return False

        await self._store.update_document(
            tenant_path(self.tenant_id), {SHEETS_FIELD: remaining},
        )
        logger.info("Sheet config deleted: %s", sheet_id)
        return True
