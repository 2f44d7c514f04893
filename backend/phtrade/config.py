# backend/phtrade/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/phtrade.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///phtrade.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Listing defaults
    DEFAULT_PAGE_SIZE = int(os.environ.get("PHTRADE_DEFAULT_PAGE_SIZE", "10"))
    RECENT_TRADES_LIMIT = int(os.environ.get("PHTRADE_RECENT_TRADES_LIMIT", "5"))

    # Session lifetimes (hours)
    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("PHTRADE_SESSION_ABSOLUTE_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("PHTRADE_SESSION_IDLE_HOURS", "2"))

    # Password hashing cost
    BCRYPT_ROUNDS = int(os.environ.get("PHTRADE_BCRYPT_ROUNDS", "12"))
