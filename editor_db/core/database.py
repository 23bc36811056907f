# editor_db/core/database.py
"""Database connection, transaction lifecycle and query factory."""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, CursorResult, Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.sql.elements import TextClause

from editor_db.core.config import DatabaseSettings
from editor_db.core.exceptions import ConfigurationError, TransactionStateError
from editor_db.dialects import Dialect, get_dialect
from editor_db.query.binding import Binding
from editor_db.query.builder import Query
from editor_db.query.result import Result

logger = logging.getLogger(__name__)

DebugCallback = Callable[[str, List[Binding]], Any]
WhereArg = Union[Dict[str, Any], Callable[[Query], Any], None]


class Database:
    """
    One connection to one database backend.

    Statements executed outside an explicit transaction are committed as soon
    as they complete. Between transaction() and commit() / rollback() every
    query on this instance shares the same transaction.
    """

    def __init__(
        self,
        db_type: str,
        conn: Union[str, Engine, Connection],
        command_timeout: Optional[float] = None,
        debug: Optional[DebugCallback] = None,
        **engine_kwargs: Any,
    ):
        self._dialect: Dialect = get_dialect(db_type)
        self._db_type = db_type
        self._engine: Optional[Engine] = None
        self._owns_connection = False

        if isinstance(conn, str):
            self._engine = create_engine(conn, **engine_kwargs)
            self._connection = self._engine.connect()
            self._owns_connection = True
        elif isinstance(conn, Engine):
            self._connection = conn.connect()
            self._owns_connection = True
        else:
            self._connection = conn

        self._transaction = None
        self._initialised = False
        self._command_timeout = command_timeout
        self._applied_timeout: Optional[float] = None
        self._debug_callback: Optional[DebugCallback] = None

        self.debug(debug)

    @classmethod
    def from_settings(cls, settings: Optional[DatabaseSettings] = None) -> "Database":
        """Open a database from settings (read from the environment when omitted)."""
        if settings is None:
            settings = DatabaseSettings.from_env()

        return cls(
            settings.db_type,
            settings.url,
            command_timeout=settings.command_timeout,
            **settings.engine_kwargs(),
        )

    # ===== PROPERTIES =====

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def db_type(self) -> str:
        return self._db_type

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def command_timeout(self) -> Optional[float]:
        return self._command_timeout

    def in_transaction(self) -> bool:
        """True between transaction() and commit() / rollback()."""
        return self._transaction is not None

    # ===== EXECUTION =====

    def execute(
        self,
        statement: TextClause,
        parameters: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> CursorResult:
        """
        Execute a prepared statement on this connection.

        Driver errors propagate unchanged. Outside an explicit transaction the
        failed implicit transaction is rolled back first so the connection
        remains usable.
        """
        try:
            self._apply_timeout(timeout if timeout is not None else self._command_timeout)
            if parameters:
                return self._connection.execute(statement, parameters)
            return self._connection.execute(statement)
        except DBAPIError:
            if self._transaction is None and self._connection.in_transaction():
                self._connection.rollback()
                self._applied_timeout = None
            raise

    def scalar(self, statement: TextClause) -> Any:
        """Execute a single-value statement and release the connection."""
        value = self.execute(statement).scalar()
        self.release()
        return value

    def release(self) -> None:
        """Commit the implicit transaction when no explicit one is open."""
        if self._transaction is None and self._connection.in_transaction():
            self._connection.commit()

    def _apply_timeout(self, timeout: Optional[float]) -> None:
        if timeout is None or timeout == self._applied_timeout:
            return

        sql = self._dialect.timeout_sql(timeout)
        if sql is None:
            return

        self._connection.execute(text(sql))
        self._applied_timeout = timeout

    # ===== TRANSACTIONS =====

    def transaction(self) -> "Database":
        """Start a transaction. Only one can be open at a time."""
        if self._transaction is not None:
            raise TransactionStateError("A transaction is already in progress")

        # Close the implicit transaction SQLAlchemy may have auto-begun
        if self._connection.in_transaction():
            self._connection.commit()

        self._transaction = self._connection.begin()
        logger.debug("Transaction started")
        return self

    def commit(self) -> "Database":
        """Commit the open transaction."""
        if self._transaction is None:
            raise TransactionStateError("No transaction in progress to commit")

        transaction, self._transaction = self._transaction, None
        transaction.commit()
        logger.debug("Transaction committed")
        return self

    def rollback(self) -> "Database":
        """Roll back the open transaction."""
        if self._transaction is None:
            raise TransactionStateError("No transaction in progress to roll back")

        transaction, self._transaction = self._transaction, None
        transaction.rollback()
        # Session settings made inside the transaction are undone with it
        self._applied_timeout = None
        logger.debug("Transaction rolled back")
        return self

    # ===== QUERY FACTORY =====

    def query(self, query_type: str, table: Union[str, Iterable[str], None] = None) -> Query:
        """Create a query of the given type (select, insert, update, delete, count or raw)."""
        if not self._initialised:
            self._initialise()

        query = Query(self, self._dialect, query_type, command_timeout=self._command_timeout)
        if table is not None:
            query.table(table)
        return query

    def _initialise(self) -> None:
        for statement in self._dialect.init_statements:
            self.execute(text(statement))
        self.release()
        self._initialised = True

    # ===== DEBUG =====

    def debug(self, callback: Optional[DebugCallback] = None) -> "Database":
        """
        Set the callback invoked with `(sql, bindings)` for every statement
        prepared. None (or False) disables it.
        """
        if callback is True:
            raise ConfigurationError("debug() needs a callback, not a flag")
        if not callback:
            self._debug_callback = None
        else:
            self._debug_callback = callback
        return self

    def is_debug(self) -> bool:
        return self._debug_callback is not None

    def debug_info(self, sql: str, bindings: List[Binding]) -> None:
        """Log a prepared statement and hand it to the debug callback, if any."""
        logger.debug(f"Executing SQL: {sql} | bindings: {[(b.name, b.value) for b in bindings]}")
        if self._debug_callback is not None:
            self._debug_callback(sql, bindings)

    # ===== SHORTCUTS =====

    def any(self, table: str, where: WhereArg = None) -> bool:
        """True if any row in `table` matches the condition."""
        result = self.query("select", table).get("*").where(where).exec()
        return result.count() > 0

    def select(
        self,
        table: str,
        fields: Optional[Iterable[str]] = None,
        where: WhereArg = None,
        order_by: Union[str, Iterable[str], None] = None,
    ) -> Result:
        """Select `fields` (all when omitted) from a table."""
        return (
            self.query("select", table)
            .get(fields if fields is not None else "*")
            .where(where)
            .order(order_by)
            .exec()
        )

    def select_distinct(
        self,
        table: str,
        fields: Optional[Iterable[str]] = None,
        where: WhereArg = None,
        order_by: Union[str, Iterable[str], None] = None,
    ) -> Result:
        return (
            self.query("select", table)
            .distinct(True)
            .get(fields if fields is not None else "*")
            .where(where)
            .order(order_by)
            .exec()
        )

    def insert(
        self,
        table: str,
        values: Dict[str, Any],
        pkey: Union[str, Iterable[str], None] = None,
    ) -> Result:
        """Insert a row. Give `pkey` to make the insert id available on some backends."""
        return self.query("insert", table).pkey(pkey).set(values).exec()

    def update(self, table: str, values: Dict[str, Any], where: WhereArg = None) -> Result:
        return self.query("update", table).set(values).where(where).exec()

    def delete(self, table: str, where: WhereArg = None) -> Result:
        return self.query("delete", table).where(where).exec()

    def push(
        self,
        table: str,
        values: Dict[str, Any],
        where: Dict[str, Any],
        pkey: Union[str, Iterable[str], None] = None,
    ) -> Result:
        """
        Update the rows matching `where`, or insert a new row when there are
        none. On insert the `where` pairs are added to the values unless the
        values already set that field.
        """
        if isinstance(pkey, str):
            pkey = [pkey]
        fields = list(pkey) if pkey else ["*"]

        if self.select(table, fields, where).count() > 0:
            return self.update(table, values, where)

        row = dict(values)
        for key, value in where.items():
            row.setdefault(key, value)

        return self.insert(table, row, pkey)

    def sql(self, sql: str) -> Result:
        """Execute a raw SQL statement."""
        return self.query("raw").exec(sql)

    # ===== LIFECYCLE =====

    def close(self) -> None:
        """Roll back any open transaction and release the connection."""
        if self._transaction is not None:
            logger.warning("Closing database with an open transaction - rolling back")
            self.rollback()

        if self._owns_connection:
            self._connection.close()
        self._applied_timeout = None
        if self._engine is not None:
            self._engine.dispose()

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ===== SESSION GENERATOR =====


def get_database():
    """Yield a Database configured from the environment, closing it afterwards."""
    db = Database.from_settings()
    try:
        yield db
    finally:
        db.close()
