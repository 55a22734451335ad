"""Ledger store for shiftledger."""

from shiftledger.database.base import Database
from shiftledger.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
