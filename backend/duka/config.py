# backend/duka/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/duka.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///duka.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Fallbacks used when no store_settings row exists for a location
    DEFAULT_TAX_RATE_PERCENT = float(os.environ.get("DEFAULT_TAX_RATE_PERCENT", "0"))
    DISCOUNT_CAP_PERCENT = int(os.environ.get("DISCOUNT_CAP_PERCENT", "30"))
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))
    RECEIPT_FOOTER = os.environ.get("RECEIPT_FOOTER", "Thank you for your business!")
    DEFAULT_STORE_NAME = os.environ.get("DEFAULT_STORE_NAME", "My Shop")

    # Roles allowed to discount past the cap
    PRIVILEGED_ROLES = tuple(
        role.strip() for role in os.environ.get("PRIVILEGED_ROLES", "owner").split(",") if role.strip()
    )

    # Off by default: stock is only checked when a line is added to the cart
    REVALIDATE_STOCK_AT_COMMIT = _env_flag("REVALIDATE_STOCK_AT_COMMIT", False)

    STORE_RETRY_ATTEMPTS = int(os.environ.get("STORE_RETRY_ATTEMPTS", "3"))
