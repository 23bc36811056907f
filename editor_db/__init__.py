"""
editor-db: cross-dialect SQL query builder and execution layer.

    from editor_db import Database

    with Database("sqlite", "sqlite:///:memory:") as db:
        db.sql("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
        res = db.insert("users", {"name": "Allan"}, pkey="id")
        res.insert_id()  # "1"
"""

from editor_db.core.config import DatabaseSettings
from editor_db.core.database import Database, get_database
from editor_db.core.exceptions import (
    ConfigurationError,
    EditorDbError,
    ProviderError,
    TransactionStateError,
)
from editor_db.dialects import Dialect, get_dialect
from editor_db.query import Binding, DbType, Query, Raw, Result, ValueKind

__version__ = "1.0.0"

__all__ = [
    "Database",
    "DatabaseSettings",
    "get_database",
    "Dialect",
    "get_dialect",
    "Query",
    "Result",
    "Binding",
    "DbType",
    "Raw",
    "ValueKind",
    # Errors
    "EditorDbError",
    "ConfigurationError",
    "TransactionStateError",
    "ProviderError",
]
