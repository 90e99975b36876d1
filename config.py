"""
config.py
Settings read from the environment (and a local .env file, if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


class Config:
    # "local" (SQLite + files on disk) or "supabase"
    BACKEND = os.environ.get("NATIVE_BACKEND", "local").strip().lower()

    SUPABASE_URL = os.environ.get("SUPABASE_URL", "").rstrip("/")
    SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
    SUPABASE_BUCKET = os.environ.get("SUPABASE_BUCKET", "activation-cards")
    REQUEST_TIMEOUT = float(os.environ.get("NATIVE_REQUEST_TIMEOUT", "15"))

    DB_FILE = Path(os.environ.get("NATIVE_DB_FILE", str(BASE_DIR / "native.db")))
    STORAGE_DIR = Path(os.environ.get("NATIVE_STORAGE_DIR", str(BASE_DIR / "storage")))

    PAGE_SIZE = int(os.environ.get("NATIVE_PAGE_SIZE", "10"))
    PASSWORD_LENGTH = int(os.environ.get("NATIVE_PASSWORD_LENGTH", "12"))
    COUNTRY_CODE = os.environ.get("NATIVE_COUNTRY_CODE", "+230")
    LODGE_NAME = os.environ.get("NATIVE_LODGE_NAME", "Native Lodge")
    CURRENCY = os.environ.get("NATIVE_CURRENCY", "Rs")
    LOG_LEVEL = os.environ.get("NATIVE_LOG_LEVEL", "INFO").upper()


# Remote table names
MEMBERS_TABLE = "native_users"
TRANSACTIONS_TABLE = "native_transactions"
TICKETS_TABLE = "concert_ticket_prices"
CONCERTS_TABLE = "concerts"
