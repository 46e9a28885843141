"""Ledger store for ledgersync."""

from ledgersync.database.base import Database
from ledgersync.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
