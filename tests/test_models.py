"""Tests for chatmimic.data.models — store document mapping."""

from datetime import datetime, timezone

from chatmimic.data.models import (
    TRIGGER_FIRST_MESSAGE,
    Contact,
    LifecycleRule,
    Message,
    SheetColumn,
    SheetConfig,
)


def test_lifecycle_rule_from_dict():
    rule = LifecycleRule.from_dict(
        {"id": "lifecycle_1", "name": "hot_lead", "keywords": ["price"], "active": True}
    )
    assert rule.id == "lifecycle_1"
    assert rule.name == "hot_lead"
    assert rule.keywords == ["price"]
    assert rule.active is True


def test_lifecycle_rule_missing_fields_defaults_inactive():
    rule = LifecycleRule.from_dict({"name": "cold_lead"})
    assert rule.keywords == []
    assert rule.active is False
    assert rule.id is None


def test_sheet_config_round_trips_store_keys():
    raw = {
        "id": "cfg-1",
        "name": "Leads",
        "sheetId": "sheet-abc",
        "columns": [
            {"id": "name", "name": "Customer Name", "description": "", "type": "name", "aiPrompt": ""},
            {"id": "phone", "name": "Phone Number", "type": "phone", "aiPrompt": "Find it"},
        ],
        "active": True,
        "lastUpdated": 1700000000000,
        "addTrigger": "show_interest",
        "autoUpdateFields": True,
        "interestKeywords": ["buy"],
    }
    config = SheetConfig.from_dict(raw)
    assert config.sheet_id == "sheet-abc"
    assert [c.id for c in config.columns] == ["name", "phone"]
    assert config.columns[1].ai_prompt == "Find it"
    assert config.auto_update_fields is True

    out = config.to_dict()
    assert out["sheetId"] == "sheet-abc"
    assert out["columns"][1]["aiPrompt"] == "Find it"
    assert out["addTrigger"] == "show_interest"


def test_sheet_config_defaults():
    config = SheetConfig.from_dict({"name": "Leads", "sheetId": "s1"})
    assert config.add_trigger == TRIGGER_FIRST_MESSAGE
    assert config.auto_update_fields is False
    assert config.columns == []


def test_sheet_config_id_falls_back_to_sheet_id():
    assert SheetConfig(name="x", sheet_id="s1").config_id == "s1"
    assert SheetConfig(name="x", sheet_id="s1", id="cfg").config_id == "cfg"


def test_sheet_column_name_defaults_to_id():
    assert SheetColumn.from_dict({"id": "product"}).name == "product"


def test_contact_manual_flag_must_be_true():
    assert Contact.from_dict("+1", {"manually_set_lifecycle": True}).manually_set_lifecycle is True
    assert Contact.from_dict("+1", {"manually_set_lifecycle": "yes"}).manually_set_lifecycle is False
    assert Contact.from_dict("+1", {}).lifecycle is None


def test_message_from_dict():
    msg = Message.from_dict("m1", {"message": "hi", "sender": "user", "timestamp": 1000})
    assert msg.is_from_customer
    assert msg.timestamp == 1000


def test_message_datetime_timestamp():
    ts = datetime(2025, 1, 1, tzinfo=timezone.utc)
    msg = Message.from_dict("m1", {"message": "hi", "sender": "agent", "timestamp": ts})
    assert msg.timestamp == int(ts.timestamp() * 1000)
    assert not msg.is_from_customer


def test_message_missing_text_is_empty():
    assert Message.from_dict("m1", {"sender": "user"}).message == ""


def test_to_dict_omits_missing_id():
    assert "id" not in LifecycleRule(name="hot_lead").to_dict()
    assert "id" not in SheetConfig(name="Leads", sheet_id="s1").to_dict()
    assert SheetConfig(name="Leads", sheet_id="s1", id="cfg").to_dict()["id"] == "cfg"


def test_phone_column_detected_by_type_or_name():
    config = SheetConfig(name="Leads", sheet_id="s1", columns=[
        SheetColumn(id="name", name="Name", type="name"),
        SheetColumn(id="tel", name="Phone Number", type="text"),
    ])
    assert config.columns[1].is_phone
    assert not config.columns[0].is_phone
    assert config.phone_column_index() == 1
    assert SheetConfig(name="Leads", sheet_id="s1").phone_column_index() is None
