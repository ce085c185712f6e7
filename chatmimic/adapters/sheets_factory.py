"""Sheets adapter factory — builds a tenant's adapter from their stored Google tokens."""

from __future__ import annotations

from chatmimic.ports.sheets_port import SheetsError, SheetsPort
from chatmimic.ports.store_port import DocumentStorePort, tenant_path


async def get_tenant_sheets_oauth(store: DocumentStorePort, tenant_id: str) -> dict | None:
    """Return the tenant's `googleSheetsOAuth` record, or None if Sheets is not connected."""
    tenant_doc = await store.get_document(tenant_path(tenant_id))
    if not tenant_doc:
        return None
    oauth = (tenant_doc.get("credentials") or {}).get("googleSheetsOAuth") or {}
    if not oauth.get("accessToken") and not oauth.get("refreshToken"):
        return None
    return oauth


async def create_sheets_adapter(store: DocumentStorePort, tenant_id: str) -> SheetsPort:
    """Return a SheetsPort authorized as the tenant.

    Raises SheetsError when the tenant has not connected Google Sheets.
    """
    oauth = await get_tenant_sheets_oauth(store, tenant_id)
    if oauth is None:
        raise SheetsError(f"Google Sheets not connected for tenant {tenant_id}")

    from chatmimic.adapters.google_sheets import GoogleSheetsAdapter
    from chatmimic.integrations.google_auth import get_sheets_service_for_tenant

    try:
        service = get_sheets_service_for_tenant(oauth)
    except Exception as exc:
        raise SheetsError(f"Failed to authorize Google Sheets for {tenant_id}: {exc}") from exc
    return GoogleSheetsAdapter(service)
