# editor_db/dialects/registry.py
"""Supported database backends and their dialect policies."""

from typing import Dict, List

from editor_db.core.exceptions import ConfigurationError
from editor_db.dialects.base import Dialect, LimitStyle
from editor_db.dialects.coercion import infer_strong_type
from editor_db.dialects.insert_id import (
    CatalogReturning,
    FollowUpStatement,
    InsertIdColumn,
    NoInsertId,
    OutputInserted,
)

# ===== DIALECT DEFINITIONS =====

MYSQL = Dialect(
    name="mysql",
    identifier_quote=("`", "`"),
    field_quote="'",
    bind_prefix="@",
    insert_id=InsertIdColumn("insert_id", reads_cursor=True),
    timeout_statement="SET SESSION max_execution_time = {ms}",
)

POSTGRES = Dialect(
    name="postgres",
    identifier_quote=None,
    field_quote='"',
    bind_prefix="@",
    coerce=infer_strong_type,
    insert_id=CatalogReturning("dt_pkey"),
    timeout_statement="SET statement_timeout = {ms}",
    like_as_text_ilike=True,
)

SQLITE = Dialect(
    name="sqlite",
    identifier_quote=None,
    field_quote="'",
    bind_prefix="@",
    insert_id=FollowUpStatement("SELECT last_insert_rowid()"),
)

SQLSERVER = Dialect(
    name="sqlserver",
    identifier_quote=("[", "]"),
    field_quote="'",
    bind_prefix="@",
    limit_style=LimitStyle.OFFSET_FETCH,
    insert_id=OutputInserted("insert_id"),
)

ORACLE = Dialect(
    name="oracle",
    identifier_quote=('"', '"'),
    field_quote='"',
    bind_prefix=":",
    limit_style=LimitStyle.OFFSET_FETCH,
    insert_id=NoInsertId(),
    # Use ISO 8601 for dates and times
    init_statements=(
        "ALTER SESSION SET NLS_DATE_FORMAT = 'YYYY-MM-DD HH24:MI:SS'",
        "ALTER SESSION SET NLS_TIMESTAMP_FORMAT = 'YYYY-MM-DD HH24:MI:SS'",
    ),
    table_alias_keyword=False,
)


class DialectRegistry:
    """Registry of dialects by database type name."""

    def __init__(self):
        self.dialects: Dict[str, Dialect] = {}
        self.aliases: Dict[str, str] = {}

    def register(self, dialect: Dialect, *aliases: str) -> None:
        """Register a dialect under its own name plus any aliases"""
        self.dialects[dialect.name] = dialect
        for alias in aliases:
            self.aliases[alias] = dialect.name

    def get(self, db_type: str) -> Dialect:
        """Get the dialect for a database type, or raise ConfigurationError"""
        key = (db_type or "").strip().lower()
        key = self.aliases.get(key, key)
        if key not in self.dialects:
            raise ConfigurationError(f"Unknown database type specified: {db_type}")
        return self.dialects[key]

    def names(self) -> List[str]:
        return sorted(list(self.dialects.keys()) + list(self.aliases.keys()))


registry = DialectRegistry()
registry.register(MYSQL)
registry.register(POSTGRES, "postgresql")
registry.register(SQLITE)
registry.register(SQLSERVER, "azure", "sqlserverce", "mssql")
registry.register(ORACLE)


def get_dialect(db_type: str) -> Dialect:
    """Get the dialect policy for a database type."""
    return registry.get(db_type)
