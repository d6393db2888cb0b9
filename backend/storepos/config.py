# backend/storepos/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # A relative SQLite path resolves against the Flask instance folder (app.instance_path)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///storepos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Bearer tokens expire this many hours after login
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "12"))

    # Print agent relay; unset disables notifications entirely
    PRINT_AGENT_BASE = os.environ.get("PRINT_AGENT_BASE") or None
    PRINT_AGENT_TIMEOUT = float(os.environ.get("PRINT_AGENT_TIMEOUT", "5"))
    PRINT_AGENT_DISPATCH = os.environ.get("PRINT_AGENT_DISPATCH", "thread")  # thread | inline

    PAYMENT_METHODS = ("CASH", "CARD", "OTHER")

    # Oversell is permitted unless this is switched off
    ALLOW_NEGATIVE_INVENTORY = _env_bool("ALLOW_NEGATIVE_INVENTORY", True)

    # Bound each refund by purchased minus already-refunded quantity
    ENFORCE_CUMULATIVE_REFUND_LIMIT = _env_bool("ENFORCE_CUMULATIVE_REFUND_LIMIT", True)

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }
