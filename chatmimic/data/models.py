"""
ChatMimic Sync Worker — Data Models.

Tenant configuration (lifecycle rules, sheet configs) and the chat records
the pipelines read. Documents in the store use camelCase keys; the
`from_dict` / `to_dict` helpers map between the two.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Message.sender values
SENDER_USER = "user"      # the customer
SENDER_AGENT = "agent"    # the AI agent
SENDER_HUMAN = "human"    # a human operator

# SheetConfig.add_trigger values
TRIGGER_FIRST_MESSAGE = "first_message"
TRIGGER_SHOW_INTEREST = "show_interest"
TRIGGER_MANUAL = "manual"

NOT_AVAILABLE = "N/A"


def _to_millis(value) -> int:
    """Epoch milliseconds from an int, float or datetime-like store value."""
    if value is None:
        return 0
    if hasattr(value, "timestamp"):
        return int(value.timestamp() * 1000)
    return int(value)


@dataclass
class LifecycleRule:
    """A keyword rule that moves a contact to the lifecycle stage `name`."""

    name: str                          # target stage, e.g. "hot_lead"
    keywords: list[str] = field(default_factory=list)
    active: bool = True
    id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> LifecycleRule:
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            keywords=list(data.get("keywords") or []),
            active=bool(data.get("active", False)),
        )

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "keywords": list(self.keywords),
            "active": self.active,
        }
        if self.id is not None:
            data["id"] = self.id
        return data


@dataclass
class SheetColumn:
    """One spreadsheet column and how the LLM should fill it."""

    id: str
    name: str
    description: str = ""
    type: str = "text"                 # text | date | name | product | inquiry | phone
    ai_prompt: str = ""
    is_auto_populated: bool = False

    @property
    def is_phone(self) -> bool:
        """Phone columns are found by type or, for untyped sheets, by name."""
        return self.type == "phone" or "phone" in self.name.lower()

    @classmethod
    def from_dict(cls, data: dict) -> SheetColumn:
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            type=data.get("type", "text"),
            ai_prompt=data.get("aiPrompt", ""),
            is_auto_populated=bool(data.get("isAutoPopulated", False)),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "aiPrompt": self.ai_prompt,
            "isAutoPopulated": self.is_auto_populated,
        }


@dataclass
class SheetConfig:
    """Maps extracted message fields onto the columns of one spreadsheet."""

    name: str
    sheet_id: str
    columns: list[SheetColumn] = field(default_factory=list)
    active: bool = True
    last_updated: int = 0              # epoch milliseconds
    add_trigger: str = TRIGGER_FIRST_MESSAGE
    auto_update_fields: bool = False
    interest_keywords: list[str] = field(default_factory=list)
    description: str = ""
    id: str | None = None

    @property
    def config_id(self) -> str:
        """Key used for processed markers; falls back to the spreadsheet id."""
        return self.id or self.sheet_id

    @classmethod
    def from_dict(cls, data: dict) -> SheetConfig:
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            description=data.get("description", ""),
            sheet_id=data.get("sheetId", ""),
            columns=[SheetColumn.from_dict(c) for c in data.get("columns") or []],
            active=bool(data.get("active", False)),
            last_updated=_to_millis(data.get("lastUpdated")),
            add_trigger=data.get("addTrigger") or TRIGGER_FIRST_MESSAGE,
            auto_update_fields=bool(data.get("autoUpdateFields", False)),
            interest_keywords=list(data.get("interestKeywords") or []),
        )

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "description": self.description,
            "sheetId": self.sheet_id,
            "columns": [c.to_dict() for c in self.columns],
            "active": self.active,
            "lastUpdated": self.last_updated,
            "addTrigger": self.add_trigger,
            "autoUpdateFields": self.auto_update_fields,
            "interestKeywords": list(self.interest_keywords),
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    def phone_column_index(self) -> int | None:
        """Index of the column holding phone numbers, or None if the config has none."""
        for i, col in enumerate(self.columns):
            if col.is_phone:
                return i
        return None


@dataclass
class Contact:
    """A chat contact, keyed by phone number."""

    phone_number: str
    lifecycle: str | None = None
    manually_set_lifecycle: bool = False
    contact_name: str | None = None

    @classmethod
    def from_dict(cls, phone_number: str, data: dict) -> Contact:
        return cls(
            phone_number=phone_number,
            lifecycle=data.get("lifecycle"),
            manually_set_lifecycle=data.get("manually_set_lifecycle") is True,
            contact_name=data.get("contactName"),
        )


@dataclass
class Message:
    """A single chat message. Immutable once written."""

    id: str
    message: str
    sender: str
    timestamp: int = 0                 # epoch milliseconds

    @property
    def is_from_customer(self) -> bool:
        return self.sender == SENDER_USER

    @classmethod
    def from_dict(cls, message_id: str, data: dict) -> Message:
        return cls(
            id=message_id,
            message=data.get("message") or "",
            sender=data.get("sender", ""),
            timestamp=_to_millis(data.get("timestamp")),
        )
