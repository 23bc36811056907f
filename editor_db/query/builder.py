"""
Query builder for the database access layer.

One Query instance crafts one statement. The builder is dialect agnostic:
quoting, bind placeholders, LIMIT syntax, value coercion and insert-id
retrieval all come from the Dialect value it is constructed with. Every
caller-supplied value becomes a bound parameter unless it is wrapped in Raw
(or passed with bind=False).

Typical use is through Database.query() rather than direct construction:

    db.query("select").table("users").where("age", 30, ">").order("name asc").limit(10).exec()
"""

import re
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Union

import sqlparse
from sqlalchemy import bindparam, text
from sqlalchemy.sql.elements import TextClause

from editor_db.core.exceptions import ConfigurationError
from editor_db.query.binding import Binding, DeclaredType, Raw, safe_bind_name
from editor_db.query.result import Result, Row
from editor_db.query.where import AND, OR, Condition, WhereTree, normalise_connective

if TYPE_CHECKING:
    from editor_db.core.database import Database
    from editor_db.dialects.base import Dialect

STATEMENT_TYPES = {
    "select": "SELECT",
    "count": "SELECT",
    "insert": "INSERT",
    "update": "UPDATE",
    "delete": "DELETE",
}

JOIN_TYPES = ("LEFT", "RIGHT", "INNER", "OUTER", "LEFT OUTER", "RIGHT OUTER")

# `left.field <op> right.field` - both sides get identifier protection
JOIN_CONDITION = re.compile(r"([\w\.]+)([\W\s]+)(.+)")

# Named parameters as SQLAlchemy's text() recognises them (`::` casts excluded)
BIND_NAME = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")

WhereCallback = Callable[["Query"], Any]


class Query:
    """Builds and executes a single SELECT / INSERT / UPDATE / DELETE / COUNT / raw statement."""

    def __init__(
        self,
        db: "Database",
        dialect: "Dialect",
        query_type: str,
        command_timeout: Optional[float] = None,
    ):
        self._db = db
        self._dialect = dialect
        self._type = query_type
        self._command_timeout = command_timeout

        self._tables: List[str] = []
        self._fields: List[str] = []
        self._set_values: Dict[str, Union[Binding, Raw]] = {}
        self._bindings: Dict[str, Binding] = {}
        self._where = WhereTree()
        self._joins: List[str] = []
        self._order: List[str] = []
        self._group_by: Optional[str] = None
        self._limit: Optional[int] = None
        self._offset: Optional[int] = None
        self._distinct = False
        self._pkey: Optional[List[str]] = None

        self._where_count = 0
        self._where_in_count = 1
        self._set_names: Dict[str, str] = {}

    # ===== ACCESSORS =====

    @property
    def db(self) -> "Database":
        return self._db

    @property
    def dialect(self) -> "Dialect":
        return self._dialect

    @property
    def type(self) -> str:
        return self._type

    @property
    def fields(self) -> List[str]:
        return list(self._fields)

    @property
    def tables(self) -> List[str]:
        return list(self._tables)

    @property
    def bindings(self) -> List[Binding]:
        return list(self._bindings.values())

    @property
    def primary_key(self) -> Optional[List[str]]:
        return list(self._pkey) if self._pkey else None

    def has_conditions(self) -> bool:
        return not self._where.is_empty()

    def target_table(self) -> str:
        """First table with any alias removed (the table an insert writes to)."""
        if not self._tables:
            raise ConfigurationError("No table has been set for the query")
        return self._strip_alias(self._tables[0])

    # ===== BUILDER METHODS =====

    def bind(self, name: str, value: Any, db_type: DeclaredType = None) -> "Query":
        """
        Bind a value for safe SQL execution.

        The name may include the dialect's bind prefix. Binding the same name
        twice replaces the earlier value.
        """
        prefix = self._dialect.bind_prefix
        if name.startswith(prefix):
            name = name[len(prefix):]
        name = safe_bind_name(name)
        self._bindings[name] = Binding(name=name, value=value, declared_type=db_type)
        return self

    def distinct(self, flag: bool = True) -> "Query":
        """DISTINCT flag for select queries (ignored by other types)."""
        self._distinct = flag
        return self

    def get(self, *fields: Union[str, Iterable[str]]) -> "Query":
        """Add one or more fields to select."""
        for field in fields:
            if field is None:
                continue
            if isinstance(field, str):
                self._fields.append(field)
            else:
                self._fields.extend(field)
        return self

    def group_by(self, group_by: Optional[str]) -> "Query":
        self._group_by = group_by
        return self

    def join(self, table: str, condition: str, join_type: str = "", bind: bool = True) -> "Query":
        """
        Add a JOIN. Unknown join types fall back to a plain JOIN.

        With bind=True the two sides of a simple `a.b = c.d` condition are
        identifier-protected; pass bind=False for complex conditions.
        """
        join_type = (join_type or "").strip().upper()
        if join_type not in JOIN_TYPES:
            join_type = ""

        if bind:
            match = JOIN_CONDITION.match(condition)
            if match:
                condition = (
                    self._protect_identifiers(match.group(1))
                    + match.group(2)
                    + self._protect_identifiers(match.group(3))
                )

        keyword = f"{join_type} JOIN" if join_type else "JOIN"
        self._joins.append(f"{keyword} {self._protect_identifiers(table)} ON {condition}")
        return self

    def left_join(
        self,
        table: str,
        field1: str,
        operator: Optional[str] = None,
        field2: Optional[str] = None,
    ) -> "Query":
        """LEFT JOIN on `field1 operator field2`, or on a raw condition when only field1 is given."""
        if operator is None and field2 is None:
            return self.join(table, field1, "LEFT", bind=False)
        return self.join(table, f"{field1} {operator} {field2}", "LEFT")

    def limit(self, limit: Optional[int]) -> "Query":
        self._limit = limit
        return self

    def offset(self, offset: Optional[int]) -> "Query":
        self._offset = offset
        return self

    def order(self, order: Union[str, Iterable[str], None]) -> "Query":
        """
        Columns and direction to order by, e.g. `"name asc, age desc"`.
        The direction is optional and never quoted.
        """
        if order is None:
            return self

        if not isinstance(order, str):
            for item in order:
                self.order(item)
            return self

        for part in order.split(","):
            part = part.replace("\t", " ").strip()
            if not part:
                continue

            idx = part.find(" ")
            if idx != -1:
                identifier, direction = part[:idx], part[idx + 1:].strip()
            else:
                identifier, direction = part, ""

            self._order.append(f"{self._protect_identifiers(identifier)} {direction}".rstrip())

        return self

    def pkey(self, columns: Union[str, Iterable[str], None]) -> "Query":
        """Primary key column(s), used to retrieve the id of an inserted row."""
        if columns is None:
            self._pkey = None
        elif isinstance(columns, str):
            self._pkey = [columns]
        else:
            self._pkey = list(columns)
        return self

    def set(
        self,
        field: Union[str, Dict[str, Any], None],
        value: Any = None,
        bind: bool = True,
        db_type: DeclaredType = None,
    ) -> "Query":
        """
        Set a field (or a dict of fields) to a value for insert / update.

        With bind=False, or a Raw value, the value is written into the SQL
        unescaped - use it for column references and function calls only.
        """
        if field is None:
            return self

        if isinstance(field, dict):
            for key, val in field.items():
                self.set(key, val, bind, db_type)
            return self

        name = self._set_name(field)

        if not bind or isinstance(value, Raw):
            self._bindings.pop(name, None)
            self._set_values[field] = value if isinstance(value, Raw) else Raw(str(value))
        else:
            binding = Binding(name=name, value=value, declared_type=db_type)
            self._bindings[name] = binding
            self._set_values[field] = binding

        return self

    def _set_name(self, field: str) -> str:
        """Binding name for a set field, stable for the field and unique in the query."""
        if field in self._set_names:
            return self._set_names[field]

        base = "set_" + safe_bind_name(field)
        name = base
        taken = set(self._set_names.values()) | set(self._bindings)
        suffix = 1
        while name in taken:
            name = f"{base}_{suffix}"
            suffix += 1

        self._set_names[field] = name
        return name

    def table(self, table: Union[str, Iterable[str], None]) -> "Query":
        """Table(s) to run the query on - a comma separated string or a list."""
        if table is None:
            return self

        if not isinstance(table, str):
            for item in table:
                self.table(item)
            return self

        for name in table.split(","):
            name = name.strip()
            if name:
                self._tables.append(name)
        return self

    # ===== CONDITIONS =====

    def where(
        self,
        key: Union[str, Dict[str, Any], WhereCallback, None],
        value: Any = None,
        op: str = "=",
        bind: bool = True,
    ) -> "Query":
        """
        Add a condition joined to the previous one with AND.

        `key` may be a column name, a dict of column/value pairs, or a
        callback receiving this query whose conditions are grouped in
        parentheses. A None value renders IS NULL (op `=`) or IS NOT NULL.
        """
        return self._add_where(key, value, AND, op, bind)

    def and_where(
        self,
        key: Union[str, Dict[str, Any], WhereCallback, None],
        value: Any = None,
        op: str = "=",
        bind: bool = True,
    ) -> "Query":
        return self._add_where(key, value, AND, op, bind)

    def or_where(
        self,
        key: Union[str, Dict[str, Any], WhereCallback, None],
        value: Any = None,
        op: str = "=",
        bind: bool = True,
    ) -> "Query":
        """Add a condition joined to the previous one with OR."""
        return self._add_where(key, value, OR, op, bind)

    def where_group(self, fn: WhereCallback, op: str = AND) -> "Query":
        """Group the conditions added by `fn` in parentheses."""
        self._where.open_group(op)
        try:
            fn(self)
        finally:
            self._where.close_group()
        return self

    def where_in(self, field: str, values: Iterable[Any], op: str = AND) -> "Query":
        """`field IN (...)` with one bound parameter per value. No values - no condition."""
        values = list(values)
        if not values:
            return self

        placeholders = []
        for value in values:
            name = f"wherein_{self._where_in_count}"
            self._where_in_count += 1
            self._bindings[name] = Binding(name=name, value=value)
            placeholders.append(self._dialect.placeholder(name))

        protected = self._protect_identifiers(field)
        self._where.add(
            Condition(
                sql=f"{protected} IN ({','.join(placeholders)})",
                connective=normalise_connective(op),
                field=field,
            )
        )
        return self

    def _add_where(self, key, value, connective: str, op: str, bind: bool) -> "Query":
        if key is None:
            return self

        if callable(key):
            return self.where_group(key, connective)

        if isinstance(key, dict):
            for field, val in key.items():
                self._add_condition(field, val, connective, op, bind)
        elif isinstance(value, (list, tuple, set)):
            for val in value:
                self._add_condition(key, val, connective, op, bind)
        else:
            self._add_condition(key, value, connective, op, bind)

        return self

    def _add_condition(self, key: str, value: Any, connective: str, op: str, bind: bool) -> None:
        field = self._protect_identifiers(key)

        if value is None:
            sql = f"{field} IS NULL" if op == "=" else f"{field} IS NOT NULL"
        elif not bind or isinstance(value, Raw):
            sql = f"{field} {op} {value}"
        else:
            name = self._next_where_name()
            placeholder = self._dialect.placeholder(name)

            if self._dialect.like_as_text_ilike and op.lower() == "like":
                sql = f"{field}::text ilike {placeholder}"
            else:
                sql = f"{field} {op} {placeholder}"

            self._bindings[name] = Binding(name=name, value=value)

        self._where.add(Condition(sql=sql, connective=connective, field=key))

    def _next_where_name(self) -> str:
        name = f"where_{self._where_count}"
        self._where_count += 1
        while name in self._bindings:
            name = f"where_{self._where_count}"
            self._where_count += 1
        return name

    # ===== SQL BUILDING =====

    def render(self, sql: Optional[str] = None) -> str:
        """Assemble the statement text for this query's type (without executing it)."""
        query_type = (self._type or "").lower()

        if query_type == "raw":
            if sql is None:
                raise ConfigurationError("A raw query needs the SQL to execute")
            return sql

        builders = {
            "select": self._build_select,
            "count": self._build_count,
            "insert": self._build_insert,
            "update": self._build_update,
            "delete": self._build_delete,
        }
        if query_type not in builders:
            raise ConfigurationError(f"Unknown database command or not supported: {self._type}")

        return builders[query_type]()

    def _build_select(self) -> str:
        return self._assemble(
            "SELECT DISTINCT" if self._distinct else "SELECT",
            self._build_fields(add_alias=True),
            "FROM",
            self._build_tables(),
            self._build_joins(),
            self._where.render(),
            self._build_group_by(),
            self._build_order(),
            self._dialect.render_limit(self._limit, self._offset),
        )

    def _build_count(self) -> str:
        return self._assemble(
            f"SELECT COUNT({self._build_fields()}) AS {self._protect_identifiers('cnt')}",
            "FROM",
            self._build_tables(),
            self._build_joins(),
            self._where.render(),
            self._build_group_by(),
        )

    def _build_insert(self) -> str:
        fields = []
        values = []
        for field, value in self._set_values.items():
            fields.append(self._protect_identifiers(field))
            if isinstance(value, Raw):
                values.append(value.sql)
            else:
                values.append(self._dialect.placeholder(value.name))

        return self._assemble(
            "INSERT INTO",
            self._build_tables(),
            f"({', '.join(fields)})",
            f"VALUES ({', '.join(values)})",
        )

    def _build_update(self) -> str:
        assignments = []
        for field, value in self._set_values.items():
            target = value.sql if isinstance(value, Raw) else self._dialect.placeholder(value.name)
            assignments.append(f"{self._protect_identifiers(field)} = {target}")

        return self._assemble(
            "UPDATE",
            self._build_tables(),
            "SET",
            ", ".join(assignments),
            self._where.render(),
        )

    def _build_delete(self) -> str:
        return self._assemble("DELETE FROM", self._build_tables(), self._where.render())

    def _build_fields(self, add_alias: bool = False) -> str:
        """Comma separated field list, `*` when no fields were requested."""
        if not self._fields:
            return "*"

        quote = self._dialect.field_quote
        out = []
        for field in self._fields:
            if add_alias and field != "*":
                if " as " in field:
                    name, alias = field.split(" as ", 1)
                elif "(" not in field and len(field.strip().split(" ")) == 2:
                    name, alias = field.strip().split(" ")
                else:
                    name, alias = field, field
                # Embedded quote characters are doubled to escape them
                alias = alias.replace(quote, quote + quote)
                out.append(f"{self._protect_identifiers(name)} as {quote}{alias}{quote}")
            else:
                out.append(self._protect_identifiers(field))
        return ", ".join(out)

    def _build_tables(self) -> str:
        tables = []
        for table in self._tables:
            if self._type.lower() == "insert":
                table = self._strip_alias(table)
            elif not self._dialect.table_alias_keyword:
                table = table.replace(" as ", " ")
            tables.append(self._protect_identifiers(table))
        return ", ".join(tables)

    def _build_joins(self) -> str:
        return " ".join(self._joins)

    def _build_group_by(self) -> str:
        if self._group_by is None:
            return ""
        return "GROUP BY " + self._protect_identifiers(self._group_by)

    def _build_order(self) -> str:
        if not self._order:
            return ""
        return "ORDER BY " + ", ".join(self._order)

    @staticmethod
    def _assemble(*parts: str) -> str:
        return " ".join(part for part in parts if part)

    @staticmethod
    def _strip_alias(table: str) -> str:
        if " as " in table:
            return table.split(" as ")[0].strip()
        return table.strip().split(" ")[0]

    def _protect_identifiers(self, identifier: str) -> str:
        """
        Quote a table / column name with the dialect's identifier quotes.

        Functions, `*` and anything with more than a name and an alias are
        treated as expressions and returned untouched. An alias is kept
        after the quoted name.
        """
        quote = self._dialect.identifier_quote
        if quote is None:
            return identifier

        left, right = quote

        if "(" in identifier or "*" in identifier:
            return identifier

        identifier = identifier.replace("\t", " ").replace(" as ", " ")

        if len(identifier.split(" ")) > 2:
            return identifier

        alias = ""
        idx = identifier.find(" ")
        if idx != -1:
            alias = identifier[idx:]
            identifier = identifier[:idx]

        return left + (right + "." + left).join(identifier.split(".")) + right + alias

    # ===== EXECUTION =====

    def exec(self, sql: Optional[str] = None) -> Result:
        """
        Render, prepare and execute the query.

        `sql` is only used by raw queries. Driver errors propagate unchanged.
        """
        rendered = self.render(sql)
        statement_type = self._statement_type(rendered)

        if self._type.lower() == "insert":
            rendered = self._dialect.insert_id.before_insert(self, rendered)

        statement = self._prepare(rendered)
        return self._execute(statement, statement_type)

    def _prepare(self, sql: str) -> TextClause:
        """Bind the collected values onto a SQLAlchemy text statement."""
        bindings = self.bindings
        self._db.debug_info(sql, bindings)

        sa_sql = self._dialect.to_sqlalchemy_sql(sql, self._bindings.keys())
        # text() refuses values for names the statement does not use
        used = set(BIND_NAME.findall(sa_sql))

        params = []
        for binding in bindings:
            if binding.name not in used:
                continue
            value, sa_type = self._dialect.coerce(binding)
            params.append(bindparam(binding.name, value=value, type_=sa_type))

        statement = text(sa_sql)
        if params:
            statement = statement.bindparams(*params)
        return statement

    def _execute(self, statement: TextClause, statement_type: str) -> Result:
        cursor = self._db.execute(statement, timeout=self._command_timeout)

        # Read cursor metadata before the rows are consumed and the cursor closes
        rowcount = cursor.rowcount
        native_insert_id = None
        if statement_type == "INSERT" and self._dialect.insert_id.reads_cursor:
            native_insert_id = cursor.lastrowid

        rows: List[Row] = []
        if cursor.returns_rows:
            rows = [dict(row) for row in cursor.mappings()]

        self._db.release()

        return Result(
            self._db,
            self._dialect,
            rows,
            statement_type=statement_type,
            rowcount=rowcount,
            native_insert_id=native_insert_id,
        )

    def _statement_type(self, sql: str) -> str:
        query_type = self._type.lower()
        if query_type in STATEMENT_TYPES:
            return STATEMENT_TYPES[query_type]

        parsed = sqlparse.parse(sql)
        if not parsed:
            return "UNKNOWN"
        return parsed[0].get_type()

    def __repr__(self) -> str:
        return f"<Query type={self._type!r} tables={self._tables!r}>"
