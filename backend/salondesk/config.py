# backend/salondesk/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/salondesk.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///salondesk.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Per-entity serialization: seconds a caller waits for an appointment/commanda lock
    ENTITY_LOCK_TIMEOUT = float(os.environ.get("ENTITY_LOCK_TIMEOUT", "10"))

    # run_with_retry policy for deadlocks and optimistic-lock conflicts
    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "3"))
    RETRY_BACKOFF_BASE = float(os.environ.get("RETRY_BACKOFF_BASE", "0.1"))

    # Display only; amounts are always 2-decimal fixed point
    CURRENCY = os.environ.get("CURRENCY", "BRL")
