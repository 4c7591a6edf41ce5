# backend/backoffice/config.py
from __future__ import annotations
import os


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Fallbacks used when app_settings has no tax_rate / currency row.
    # Tax rate is a percentage ("7.5" means 7.5%).
    DEFAULT_TAX_RATE_PERCENT = os.environ.get("DEFAULT_TAX_RATE_PERCENT", "0")
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")

    # Roles allowed to run a checkout / administer vouchers
    CHECKOUT_ROLES = _csv(os.environ.get("CHECKOUT_ROLES", "admin,manager,cashier"))
    VOUCHER_ADMIN_ROLES = _csv(os.environ.get("VOUCHER_ADMIN_ROLES", "admin,manager"))

    # Upper bound for catalog fetches and checkout persistence, in seconds
    PERSISTENCE_TIMEOUT_SECONDS = float(os.environ.get("PERSISTENCE_TIMEOUT_SECONDS", "10"))

    # Reject payments that do not cover the total (off: caller reconciles)
    CHECKOUT_STRICT_PAYMENTS = os.environ.get("CHECKOUT_STRICT_PAYMENTS", "false").lower() == "true"

    # Identity is established upstream by the hosting gateway, which forwards
    # the authenticated user id in this header.
    AUTH_USER_HEADER = os.environ.get("AUTH_USER_HEADER", "X-Authenticated-User")
    IDENTITY_PROVIDER = None

    # Browser origins allowed to call the API (the till front-end dev servers)
    CORS_ALLOWED_ORIGINS = tuple(
        part.strip() for part in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",") if part.strip()
    )
