# backend/techstore/config.py
from __future__ import annotations
import os


def _csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/techstore.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///techstore.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    CORS_ALLOWED_ORIGINS = _csv_env(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080",
    )

    # Sold serial units are purged once their sold_date is older than this
    SOLD_UNIT_RETENTION_DAYS = int(os.environ.get("SOLD_UNIT_RETENTION_DAYS", "4"))

    # A location whose name contains one of these makes the product customer-visible
    STOREFRONT_LOCATION_KEYWORDS = _csv_env("STOREFRONT_LOCATION_KEYWORDS", "store,shop")

    DEFAULT_RECEIVING_LOCATION = os.environ.get("DEFAULT_RECEIVING_LOCATION", "Main Warehouse")
    DEFAULT_RECEIVING_CONDITION = os.environ.get("DEFAULT_RECEIVING_CONDITION", "new")

    BACKUP_ROW_LIMIT = int(os.environ.get("BACKUP_ROW_LIMIT", "10000"))
    BACKUP_APP_NAME = os.environ.get("BACKUP_APP_NAME", "Fady Technologies")

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))
