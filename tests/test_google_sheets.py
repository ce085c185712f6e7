"""Tests for the Google Sheets adapter and its factory.

The googleapiclient service is a MagicMock; every call chain ends in `.execute()`.
"""

import pytest
from unittest.mock import MagicMock, patch

from chatmimic.adapters.google_sheets import (
    GoogleSheetsAdapter,
    column_letter,
    phone_column_index,
)
from chatmimic.adapters.sheets_factory import create_sheets_adapter, get_tenant_sheets_oauth
from chatmimic.data.models import SheetColumn, SheetConfig
from chatmimic.ports.sheets_port import SheetsError


def _config(sheet_id="sheet-1"):
    return SheetConfig(
        name="Leads",
        sheet_id=sheet_id,
        columns=[
            SheetColumn(id="name", name="Customer Name", type="name"),
            SheetColumn(id="phone", name="Phone Number", type="phone"),
            SheetColumn(id="product", name="Product", type="product"),
        ],
    )


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def values_api(service):
    return service.spreadsheets.return_value.values.return_value


@pytest.fixture
def adapter(service):
    return GoogleSheetsAdapter(service)


class TestColumnLetter:
    @pytest.mark.parametrize("index,expected", [
        (0, "A"), (25, "Z"), (26, "AA"), (27, "AB"), (701, "ZZ"), (702, "AAA"),
    ])
    def test_conversion(self, index, expected):
        assert column_letter(index) == expected

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError):
            column_letter(-1)


class TestPhoneColumnIndex:
    def test_by_type(self):
        assert phone_column_index(_config()) == 1

    def test_by_name(self):
        config = SheetConfig(name="Leads", sheet_id="s", columns=[
            SheetColumn(id="a", name="Name"),
            SheetColumn(id="b", name="WhatsApp phone"),
        ])
        assert phone_column_index(config) == 1

    def test_none(self):
        config = SheetConfig(name="Leads", sheet_id="s", columns=[SheetColumn(id="a", name="Name")])
        assert phone_column_index(config) is None


class TestAppendRow:
    @pytest.mark.asyncio
    async def test_values_follow_column_order(self, adapter, values_api):
        values_api.append.return_value.execute.return_value = {"updates": {"updatedRows": 1}}

        await adapter.append_row(_config(), {"product": "Sofa", "name": "Dana", "phone": "+1"})

        kwargs = values_api.append.call_args.kwargs
        assert kwargs["spreadsheetId"] == "sheet-1"
        assert kwargs["range"] == "A:A"
        assert kwargs["valueInputOption"] == "RAW"
        assert kwargs["insertDataOption"] == "INSERT_ROWS"
        assert kwargs["body"]["values"] == [["Dana", "+1", "Sofa"]]

    @pytest.mark.asyncio
    async def test_missing_values_become_empty_cells(self, adapter, values_api):
        await adapter.append_row(_config(), {"name": "Dana"})
        assert values_api.append.call_args.kwargs["body"]["values"] == [["Dana", "", ""]]

    @pytest.mark.asyncio
    async def test_api_error_raises_sheets_error(self, adapter, values_api):
        values_api.append.return_value.execute.side_effect = Exception("403 Forbidden")
        with pytest.raises(SheetsError, match="append"):
            await adapter.append_row(_config(), {"name": "Dana"})


class TestFindRow:
    @pytest.mark.asyncio
    async def test_returns_one_based_row_skipping_header(self, adapter, values_api):
        values_api.get.return_value.execute.return_value = {
            "values": [["Phone Number"], ["+1"], [], ["+2 "]],
        }
        assert await adapter.find_row(_config(), "+2") == 4
        assert values_api.get.call_args.kwargs["range"] == "B:B"

    @pytest.mark.asyncio
    async def test_header_never_matches(self, adapter, values_api):
        values_api.get.return_value.execute.return_value = {"values": [["+1"]]}
        assert await adapter.find_row(_config(), "+1") is None

    @pytest.mark.asyncio
    async def test_no_phone_column_skips_api(self, adapter, values_api):
        config = SheetConfig(name="Leads", sheet_id="s", columns=[SheetColumn(id="a", name="Name")])
        assert await adapter.find_row(config, "+1") is None
        values_api.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error_raises_sheets_error(self, adapter, values_api):
        values_api.get.return_value.execute.side_effect = Exception("boom")
        with pytest.raises(SheetsError):
            await adapter.find_row(_config(), "+1")


class TestUpdateRow:
    @pytest.mark.asyncio
    async def test_batch_update_targets_row_cells(self, adapter, values_api):
        await adapter.update_row(_config(), 5, {"name": "Dana", "product": "Sofa", "extra": "x"})

        body = values_api.batchUpdate.call_args.kwargs["body"]
        assert body["valueInputOption"] == "RAW"
        assert [(d["range"], d["values"]) for d in body["data"]] == [
            ("A5", [["Dana"]]),
            ("C5", [["Sofa"]]),
        ]

    @pytest.mark.asyncio
    async def test_nothing_to_write_skips_api(self, adapter, values_api):
        assert await adapter.update_row(_config(), 5, {"unknown": "x"}) == {}
        values_api.batchUpdate.assert_not_called()

    @pytest.mark.asyncio
    async def test_api_error_raises_sheets_error(self, adapter, values_api):
        values_api.batchUpdate.return_value.execute.side_effect = Exception("quota")
        with pytest.raises(SheetsError, match="row 5"):
            await adapter.update_row(_config(), 5, {"name": "Dana"})


class TestCreateSheet:
    @pytest.mark.asyncio
    async def test_creates_spreadsheet_and_headers(self, adapter, service, values_api):
        service.spreadsheets.return_value.create.return_value.execute.return_value = {
            "spreadsheetId": "new-id",
        }

        config = await adapter.create_sheet(_config(sheet_id=""))

        assert config.sheet_id == "new-id"
        create_kwargs = service.spreadsheets.return_value.create.call_args.kwargs
        assert create_kwargs["body"]["properties"]["title"] == "Leads"
        update_kwargs = values_api.update.call_args.kwargs
        assert update_kwargs["spreadsheetId"] == "new-id"
        assert update_kwargs["range"] == "A1:C1"
        assert update_kwargs["body"]["values"] == [["Customer Name", "Phone Number", "Product"]]

    @pytest.mark.asyncio
    async def test_existing_sheet_only_gets_headers(self, adapter, service, values_api):
        await adapter.create_sheet(_config())
        service.spreadsheets.return_value.create.assert_not_called()
        values_api.update.assert_called_once()

    @pytest.mark.asyncio
    async def test_create_error_raises_sheets_error(self, adapter, service):
        service.spreadsheets.return_value.create.return_value.execute.side_effect = Exception("x")
        with pytest.raises(SheetsError, match="create"):
            await adapter.create_sheet(_config(sheet_id=""))


class TestSheetsFactory:
    @pytest.mark.asyncio
    async def test_not_connected_without_tokens(self, tenant_store):
        assert await get_tenant_sheets_oauth(tenant_store, "tenant-1") is None
        with pytest.raises(SheetsError, match="not connected"):
            await create_sheets_adapter(tenant_store, "tenant-1")

    @pytest.mark.asyncio
    async def test_missing_tenant_not_connected(self, fake_store):
        assert await get_tenant_sheets_oauth(fake_store, "ghost") is None

    @pytest.mark.asyncio
    async def test_builds_adapter_from_stored_tokens(self, tenant_store):
        tenant_store.docs["Users/tenant-1"]["credentials"] = {
            "googleSheetsOAuth": {"accessToken": "at", "refreshToken": "rt"},
        }
        with patch(
            "chatmimic.integrations.google_auth.get_sheets_service_for_tenant",
            return_value=MagicMock(),
        ) as build:
            adapter = await create_sheets_adapter(tenant_store, "tenant-1")

        assert isinstance(adapter, GoogleSheetsAdapter)
        assert build.call_args.args[0]["refreshToken"] == "rt"

    @pytest.mark.asyncio
    async def test_auth_failure_raises_sheets_error(self, tenant_store):
        tenant_store.docs["Users/tenant-1"]["credentials"] = {
            "googleSheetsOAuth": {"refreshToken": "rt"},
        }
        with patch(
            "chatmimic.integrations.google_auth.get_sheets_service_for_tenant",
            side_effect=Exception("invalid_grant"),
        ):
            with pytest.raises(SheetsError, match="authorize"):
                await create_sheets_adapter(tenant_store, "tenant-1")
