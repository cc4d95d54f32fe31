# backend/tillshift/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file next to the instance by default; any SQLAlchemy URL works
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///tillshift.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shifts whose |variance| exceeds this are closed as REVIEW (cents, >= 0)
    VARIANCE_THRESHOLD_CENTS = int(os.environ.get("VARIANCE_THRESHOLD_CENTS", "10000"))

    # Order subsystem (completed sales per shift). Unset means in-memory source.
    ORDER_SERVICE_URL = os.environ.get("ORDER_SERVICE_URL")
    ORDER_SERVICE_TIMEOUT = float(os.environ.get("ORDER_SERVICE_TIMEOUT", "5"))

    # Audit subsystem. Unset means facts go to the "tillshift.audit" logger only.
    AUDIT_WEBHOOK_URL = os.environ.get("AUDIT_WEBHOOK_URL")
    AUDIT_WEBHOOK_TIMEOUT = float(os.environ.get("AUDIT_WEBHOOK_TIMEOUT", "2"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
