"""
Dialect policies for the supported database backends.

A dialect is a value, not a subclass: identifier and field quoting, the bind
prefix, LIMIT style, value coercion and the insert-id strategy.
"""

from .base import Dialect, LimitStyle
from .insert_id import (
    InsertIdStrategy,
    NoInsertId,
    InsertIdColumn,
    CatalogReturning,
    OutputInserted,
    FollowUpStatement,
)
from .registry import (
    DialectRegistry,
    registry,
    get_dialect,
    MYSQL,
    POSTGRES,
    SQLITE,
    SQLSERVER,
    ORACLE,
)

__all__ = [
    "Dialect",
    "LimitStyle",
    # Insert id strategies
    "InsertIdStrategy",
    "NoInsertId",
    "InsertIdColumn",
    "CatalogReturning",
    "OutputInserted",
    "FollowUpStatement",
    # Registry
    "DialectRegistry",
    "registry",
    "get_dialect",
    "MYSQL",
    "POSTGRES",
    "SQLITE",
    "SQLSERVER",
    "ORACLE",
]
