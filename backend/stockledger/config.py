# backend/stockledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Invoice numbers look like POS-20260101-0001
    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "POS")
    INVOICE_SEQUENCE_PAD = int(os.environ.get("INVOICE_SEQUENCE_PAD", "4"))

    PAGINATION_DEFAULT_LIMIT = 10
    PAGINATION_MAX_LIMIT = 100
