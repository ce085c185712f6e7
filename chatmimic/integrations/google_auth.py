"""
ChatMimic Sync Worker — Google Authentication.

Two kinds of credentials are needed: the worker's own service account for
Firestore, and each tenant's OAuth tokens (stored on the tenant document when
they connected Google Sheets in the dashboard) for the Sheets API.
"""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build

logger = logging.getLogger(__name__)

SHEETS_SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive.file",
]
FIRESTORE_SCOPES = ["https://www.googleapis.com/auth/datastore"]
TOKEN_URI = "https://oauth2.googleapis.com/token"


def get_firestore_credentials() -> service_account.Credentials | None:
    """Load the worker's service account, or None to fall back to application default credentials."""
    from chatmimic.config import settings

    creds_path = Path(settings.FIREBASE_CREDENTIALS_PATH)
    if not creds_path.exists():
        logger.info(
            "No service account file at %s, using application default credentials",
            creds_path,
        )
        return None

    creds = service_account.Credentials.from_service_account_file(
        str(creds_path), scopes=FIRESTORE_SCOPES,
    )
    logger.debug("Loaded Firestore service account from %s", creds_path)
    return creds


def credentials_from_tenant_oauth(oauth: dict) -> Credentials:
    """Build Google OAuth credentials from a tenant's stored `googleSheetsOAuth` record.

    Refreshes the token when it is expired, or when only a refresh token is stored.
    """
    from chatmimic.config import settings

    creds = Credentials(
        token=oauth.get("accessToken"),
        refresh_token=oauth.get("refreshToken"),
        token_uri=TOKEN_URI,
        client_id=settings.GOOGLE_CLIENT_ID or None,
        client_secret=settings.GOOGLE_CLIENT_SECRET or None,
        scopes=SHEETS_SCOPES,
    )
    if creds.refresh_token and (creds.expired or not creds.token):
        creds.refresh(Request())
        logger.info("Tenant Sheets token refreshed")
    return creds


def get_sheets_service_for_tenant(oauth: dict):
    """Build a Google Sheets API v4 service from stored tenant credentials."""
    creds = credentials_from_tenant_oauth(oauth)
    return build("sheets", "v4", credentials=creds, cache_discovery=False)
