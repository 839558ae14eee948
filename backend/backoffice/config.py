# backend/backoffice/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/backoffice.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Whole-transaction budget for reversals and stock edits, in seconds
    LEDGER_TRANSACTION_TIMEOUT = float(os.environ.get("LEDGER_TRANSACTION_TIMEOUT", "60"))

    # Default page size for the stock adjustment ledger listing (clamped to 1..500)
    STOCK_ADJUSTMENT_LIST_LIMIT = int(os.environ.get("STOCK_ADJUSTMENT_LIST_LIMIT", "150"))
