"""Database factory functions for creating ledger store instances."""

import os
from pathlib import Path
from typing import Optional

from shiftledger.config import LedgerSettings
from shiftledger.database.sqlalchemy_db import SQLAlchemyDatabase


def create_sqlite_database(
    database_path: Optional[str] = None, settings: Optional[LedgerSettings] = None
) -> SQLAlchemyDatabase:
    """Create a SQLite ledger store.

    Args:
        database_path: Path to SQLite database file. If None, checks SHIFTLEDGER_DB_PATH
            environment variable, then defaults to ~/.shiftledger/shiftledger.db
        settings: Settings supplying the lock timeout (defaults from environment)

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        # Check environment variable
        database_path = os.environ.get("SHIFTLEDGER_DB_PATH")

    if database_path is None:
        # Default to ~/.shiftledger/shiftledger.db
        home = Path.home()
        db_dir = home / ".shiftledger"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "shiftledger.db")

    if settings is None:
        settings = LedgerSettings.from_env()

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url, sqlite_timeout=settings.sqlite_timeout)


def create_database(database_url: str, settings: Optional[LedgerSettings] = None) -> SQLAlchemyDatabase:
    """Create a ledger store for any SQLAlchemy URL (PostgreSQL, MySQL, ...)."""
    if settings is None:
        settings = LedgerSettings.from_env()
    return SQLAlchemyDatabase(database_url, sqlite_timeout=settings.sqlite_timeout)
