# backend/shopstock/config.py
from __future__ import annotations
import os


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopstock.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopstock.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # Order derivation on stock-out: "keyword" (legacy rule) or "flag_only"
    ORDER_DERIVATION_MODE = os.environ.get("ORDER_DERIVATION_MODE", "keyword")
    SALE_KEYWORDS = _csv(os.environ.get("SALE_KEYWORDS", "bán"))
    WALK_IN_CUSTOMER_NAME = os.environ.get("WALK_IN_CUSTOMER_NAME", "Khách lẻ")

    # Minimum stock threshold for variants auto-created by bulk transactions
    DEFAULT_MIN_STOCK = int(os.environ.get("DEFAULT_MIN_STOCK", "5"))

    STOCK_RETRY_ATTEMPTS = int(os.environ.get("STOCK_RETRY_ATTEMPTS", "3"))
    MAX_PAGE_SIZE = int(os.environ.get("MAX_PAGE_SIZE", "500"))

    # Browser origins allowed to call the API (comma separated)
    CORS_ORIGINS = _csv(os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"))
