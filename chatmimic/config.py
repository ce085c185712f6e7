"""
ChatMimic Sync Worker — Centralized configuration.

Loads all settings from .env and validates required keys.
Every other module imports the `settings` singleton from here.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from chatmimic/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # LLM: provider-agnostic (groq, openai, anthropic, gemini)
    LLM_PROVIDER: str = "groq"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str

    # Firestore (service account for the worker process)
    FIREBASE_PROJECT_ID: str = ""
    FIREBASE_CREDENTIALS_PATH: str = "firebase-credentials.json"

    # Google OAuth client used to refresh tenant Sheets tokens
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # Tenants whose pipelines this worker runs
    TENANT_IDS: list[str] = []

    # Processed-message markers: "sqlite" (durable) | "memory" (24h, per process)
    MARKER_STORE: str = "sqlite"
    DATABASE_PATH: str = "data/markers.db"
    PROCESSED_TTL_HOURS: int = 24

    # Lifecycle tagging
    LIFECYCLE_SKIP_SAME_STAGE: bool = True
    LIFECYCLE_VERIFY_WRITES: bool = True
    LIFECYCLE_WRITE_ATTEMPTS: int = 1

    LOG_LEVEL: str = "INFO"

    @field_validator("TENANT_IDS", mode="before")
    @classmethod
    def parse_tenant_ids(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [tid.strip() for tid in v.split(",") if tid.strip()]
        return []

    @field_validator("LIFECYCLE_SKIP_SAME_STAGE", "LIFECYCLE_VERIFY_WRITES", mode="before")
    @classmethod
    def parse_bool(cls, v: str | bool) -> bool:
        if isinstance(v, bool):
            return v
        return str(v).strip().lower() in ("1", "true", "yes", "on")

    @field_validator("PROCESSED_TTL_HOURS", "LIFECYCLE_WRITE_ATTEMPTS", mode="before")
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    llm_api_key = os.getenv("LLM_API_KEY", "")

    if not llm_api_key or llm_api_key.startswith("your-"):
        print("ERROR: LLM_API_KEY is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "groq"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=llm_api_key,
        FIREBASE_PROJECT_ID=os.getenv("FIREBASE_PROJECT_ID", ""),
        FIREBASE_CREDENTIALS_PATH=os.getenv("FIREBASE_CREDENTIALS_PATH", "firebase-credentials.json"),
        GOOGLE_CLIENT_ID=os.getenv("GOOGLE_CLIENT_ID", ""),
        GOOGLE_CLIENT_SECRET=os.getenv("GOOGLE_CLIENT_SECRET", ""),
        TENANT_IDS=os.getenv("TENANT_IDS", ""),
        MARKER_STORE=os.getenv("MARKER_STORE", "sqlite"),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/markers.db"),
        PROCESSED_TTL_HOURS=os.getenv("PROCESSED_TTL_HOURS", "24"),
        LIFECYCLE_SKIP_SAME_STAGE=os.getenv("LIFECYCLE_SKIP_SAME_STAGE", "true"),
        LIFECYCLE_VERIFY_WRITES=os.getenv("LIFECYCLE_VERIFY_WRITES", "true"),
        LIFECYCLE_WRITE_ATTEMPTS=os.getenv("LIFECYCLE_WRITE_ATTEMPTS", "1"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )


# Singleton, imported by all other modules as:
#   from chatmimic.config import settings
settings = _load_settings()
