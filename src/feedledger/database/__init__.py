"""Database layer for feedledger."""

from feedledger.database.base import Database
from feedledger.database.factories import create_sqlite_database

__all__ = ["Database", "create_sqlite_database"]
