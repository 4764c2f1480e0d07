# backend/ferreteria/config.py
from __future__ import annotations
import os


def _csv(value: str) -> frozenset[str]:
    return frozenset(part.strip() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/ferreteria.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///ferreteria.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Amounts are stored as integers in the currency's smallest unit.
    # CLP has no minor unit, so 12990 means $12.990.
    CURRENCY = os.environ.get("CURRENCY", "CLP")

    # Sale numbering: V-000123
    SALE_NUMBER_PREFIX = os.environ.get("SALE_NUMBER_PREFIX", "V")
    SALE_NUMBER_PAD = int(os.environ.get("SALE_NUMBER_PAD", "6"))

    # Tax in basis points applied to (subtotal - discount). 1900 = 19% IVA.
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "0"))

    # Roles allowed to sell at a price other than the catalog price
    PRICE_OVERRIDE_ROLES = _csv(os.environ.get("PRICE_OVERRIDE_ROLES", "admin"))

    # Whole-operation retries performed by the HTTP layer on PersistenceConflict
    CONFLICT_RETRY_ATTEMPTS = int(os.environ.get("CONFLICT_RETRY_ATTEMPTS", "3"))
    CONFLICT_RETRY_BACKOFF = float(os.environ.get("CONFLICT_RETRY_BACKOFF", "0.1"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "12"))
