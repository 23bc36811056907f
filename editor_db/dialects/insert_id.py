# editor_db/dialects/insert_id.py
"""
Strategies for retrieving the primary key of a freshly inserted row.

Backends disagree on how to report it, so each dialect carries one of these:

- InsertIdColumn: the insert itself reports the id (MySQL cursor id)
- CatalogReturning: look the key column up in pg_catalog, add RETURNING
- OutputInserted: add an OUTPUT INSERTED clause (SQL Server)
- FollowUpStatement: ask the session for the last row id afterwards (SQLite)
- NoInsertId: the backend cannot report it through this layer
"""

import logging
from typing import TYPE_CHECKING, Optional

from sqlalchemy import text

if TYPE_CHECKING:
    from editor_db.query.builder import Query
    from editor_db.query.result import Result

logger = logging.getLogger(__name__)


class InsertIdStrategy:
    """Base strategy: no statement changes, no id."""

    # Capture the DB-API cursor's lastrowid when the insert executes
    reads_cursor = False

    def before_insert(self, query: "Query", sql: str) -> str:
        """Adjust an INSERT statement before it is prepared."""
        return sql

    def resolve(self, result: "Result") -> Optional[str]:
        """Return the inserted id as a string, or None."""
        return None


class NoInsertId(InsertIdStrategy):
    """Backend cannot report insert ids through a plain statement."""
    pass


class InsertIdColumn(InsertIdStrategy):
    """Read the id from a synthetic column produced by the insert's own execution."""

    def __init__(self, column: str = "insert_id", reads_cursor: bool = False):
        self.column = column
        self.reads_cursor = reads_cursor

    def resolve(self, result: "Result") -> Optional[str]:
        value = result.first_value(self.column)
        if value is None and self.reads_cursor:
            value = result.native_insert_id
        return None if value is None else str(value)


class CatalogReturning(InsertIdColumn):
    """
    Postgres: discover the table's primary key from the system catalog and
    append `RETURNING <pk> as dt_pkey` to the insert.

    Tables without a primary key are inserted normally and report no id.
    """

    PRIMARY_KEY_SQL = """
        SELECT
            pg_attribute.attname AS attname,
            format_type(pg_attribute.atttypid, pg_attribute.atttypmod) AS data_type
        FROM pg_index, pg_class, pg_attribute
        WHERE
            pg_class.oid = CAST(:table AS regclass) AND
            indrelid = pg_class.oid AND
            pg_attribute.attrelid = pg_class.oid AND
            pg_attribute.attnum = any(pg_index.indkey)
            AND indisprimary
    """

    def __init__(self, column: str = "dt_pkey"):
        super().__init__(column=column)

    def discover(self, query: "Query") -> Optional[str]:
        table = query.target_table()
        cursor = query.db.execute(text(self.PRIMARY_KEY_SQL), {"table": table})
        row = cursor.mappings().first()
        if row is None:
            return None
        return row["attname"]

    def before_insert(self, query: "Query", sql: str) -> str:
        pkey = self.discover(query)
        if pkey is None:
            logger.warning(
                f"No primary key found for table '{query.target_table()}' - insert id will not be available"
            )
            return sql
        return f"{sql} RETURNING {pkey} as {self.column}"


class OutputInserted(InsertIdColumn):
    """
    SQL Server: emit the key from the insert with `OUTPUT INSERTED.<pk>`.

    Uses the declared pkey when there is exactly one, otherwise looks the key
    up in INFORMATION_SCHEMA.
    """

    PRIMARY_KEY_SQL = """
        SELECT KCU.column_name AS column_name
        FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS AS TC
        INNER JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE AS KCU ON
            TC.CONSTRAINT_TYPE = 'PRIMARY KEY' AND
            TC.CONSTRAINT_NAME = KCU.CONSTRAINT_NAME AND
            {schema_filter}
            KCU.TABLE_NAME = :table
        ORDER BY KCU.TABLE_NAME, KCU.ORDINAL_POSITION
    """

    def __init__(self, column: str = "insert_id"):
        super().__init__(column=column)

    def discover(self, query: "Query") -> Optional[str]:
        pkey = query.primary_key
        if pkey and len(pkey) == 1:
            return pkey[0].split(".")[-1]

        parts = query.target_table().split(".")
        params = {"table": parts[-1]}
        schema_filter = ""
        if len(parts) > 1:
            schema_filter = "KCU.TABLE_SCHEMA = :schema AND"
            params["schema"] = parts[0]

        sql = self.PRIMARY_KEY_SQL.format(schema_filter=schema_filter)
        row = query.db.execute(text(sql), params).mappings().first()
        return None if row is None else row["column_name"]

    def before_insert(self, query: "Query", sql: str) -> str:
        pkey = self.discover(query)
        if pkey is None:
            logger.warning(
                f"No primary key found for table '{query.target_table()}' - insert id will not be available"
            )
            return sql
        return sql.replace(" VALUES (", f" OUTPUT INSERTED.{pkey} as {self.column} VALUES (", 1)


class FollowUpStatement(InsertIdStrategy):
    """Issue a separate statement reading the session's last row id."""

    def __init__(self, sql: str):
        self.sql = sql

    def resolve(self, result: "Result") -> Optional[str]:
        value = result.db.scalar(text(self.sql))
        return None if value is None else str(value)
