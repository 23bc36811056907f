"""
Bound parameter values for the query builder.

A Binding is a named value attached to a prepared statement. The value is
classified into a small tagged union (ValueKind) so that dialects can decide
how to coerce it, and may carry an explicitly declared column type which
always wins over any inference.
"""

import datetime
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from sqlalchemy import types as sa_types
from sqlalchemy.types import TypeEngine


class ValueKind(str, Enum):
    """Classification of a bound value."""

    NULL = "NULL"
    INT = "INT"
    DECIMAL = "DECIMAL"
    TEXT = "TEXT"
    DATETIME = "DATETIME"
    RAW = "RAW"  # SQL fragment rendered verbatim, never bound


class DbType(str, Enum):
    """Column types a caller can declare for a bound value."""

    INTEGER = "INTEGER"
    BIGINT = "BIGINT"
    DECIMAL = "DECIMAL"
    FLOAT = "FLOAT"
    STRING = "STRING"
    TEXT = "TEXT"
    BOOLEAN = "BOOLEAN"
    DATE = "DATE"
    DATETIME = "DATETIME"
    TIME = "TIME"
    BINARY = "BINARY"

    def to_sqlalchemy(self) -> TypeEngine:
        return _SQLALCHEMY_TYPES[self]()


_SQLALCHEMY_TYPES = {
    DbType.INTEGER: sa_types.Integer,
    DbType.BIGINT: sa_types.BigInteger,
    DbType.DECIMAL: sa_types.Numeric,
    DbType.FLOAT: sa_types.Float,
    DbType.STRING: sa_types.String,
    DbType.TEXT: sa_types.Text,
    DbType.BOOLEAN: sa_types.Boolean,
    DbType.DATE: sa_types.Date,
    DbType.DATETIME: sa_types.DateTime,
    DbType.TIME: sa_types.Time,
    DbType.BINARY: sa_types.LargeBinary,
}

DeclaredType = Union[DbType, TypeEngine, None]


@dataclass(frozen=True)
class Raw:
    """An SQL fragment (function call, column reference) used unescaped."""

    sql: str

    def __str__(self) -> str:
        return self.sql


def classify(value: Any) -> ValueKind:
    """Place a Python value into the ValueKind union."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, Raw):
        return ValueKind.RAW
    # bool is an int subclass and is bound as one
    if isinstance(value, int):
        return ValueKind.INT
    if isinstance(value, (float, Decimal)):
        return ValueKind.DECIMAL
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return ValueKind.DATETIME
    return ValueKind.TEXT


@dataclass
class Binding:
    """A named parameter value. `name` excludes the dialect bind prefix."""

    name: str
    value: Any
    declared_type: DeclaredType = None

    @property
    def kind(self) -> ValueKind:
        return classify(self.value)

    def sqlalchemy_type(self) -> Optional[TypeEngine]:
        """The declared type as a SQLAlchemy type instance, if any."""
        if self.declared_type is None:
            return None
        if isinstance(self.declared_type, DbType):
            return self.declared_type.to_sqlalchemy()
        return self.declared_type


def safe_bind_name(name: str) -> str:
    """
    Replace characters that are not valid in a named placeholder.

    Dotted names such as `users.first_name` are common, so the replacement
    tokens are fixed and reversible.
    """
    return (
        name.replace(".", "_1_")
        .replace("-", "_2_")
        .replace("/", "_3_")
        .replace("\\", "_4_")
    )
