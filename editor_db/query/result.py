"""Cursor over the rows produced by an executed Query."""

from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    from editor_db.core.database import Database
    from editor_db.dialects.base import Dialect

Row = Dict[str, Any]


class Result:
    """
    Materialised outcome of a Query execution.

    Instances are created by Query.exec() only. All rows are read from the
    driver before the Result is returned, so count() never streams.
    """

    def __init__(
        self,
        db: "Database",
        dialect: "Dialect",
        rows: List[Row],
        statement_type: str = "UNKNOWN",
        rowcount: int = -1,
        native_insert_id: Any = None,
    ):
        self._db = db
        self._dialect = dialect
        self._rows = rows
        self._pointer = 0
        self._statement_type = statement_type
        self._rowcount = rowcount
        self._native_insert_id = native_insert_id

    # ===== ROW ACCESS =====

    def count(self) -> int:
        """Number of rows in the result set."""
        return len(self._rows)

    def fetch(self) -> Optional[Row]:
        """Next row, or None when the rows are exhausted."""
        if self._pointer >= len(self._rows):
            return None
        row = self._rows[self._pointer]
        self._pointer += 1
        return dict(row)

    def fetch_all(self) -> List[Row]:
        """All rows not yet fetched."""
        remaining = [dict(row) for row in self._rows[self._pointer:]]
        self._pointer = len(self._rows)
        return remaining

    def first_value(self, column: str) -> Any:
        """Value of `column` in the first row, without moving the cursor."""
        if self._rows and column in self._rows[0]:
            return self._rows[0][column]
        return None

    def __len__(self) -> int:
        return self.count()

    def __iter__(self):
        row = self.fetch()
        while row is not None:
            yield row
            row = self.fetch()

    # ===== EXECUTION METADATA =====

    @property
    def db(self) -> "Database":
        return self._db

    @property
    def rowcount(self) -> int:
        """Rows affected as reported by the driver (-1 when unknown)."""
        return self._rowcount

    @property
    def statement_type(self) -> str:
        return self._statement_type

    @property
    def native_insert_id(self) -> Any:
        return self._native_insert_id

    def is_insert(self) -> bool:
        return self._statement_type == "INSERT"

    def insert_id(self) -> Optional[str]:
        """Primary key value of the inserted row, or None when not applicable."""
        if not self.is_insert():
            return None
        return self._dialect.insert_id.resolve(self)
