"""
Query building: bound values, the WHERE condition tree, the builder itself
and the result cursor it produces.
"""

from .binding import Binding, DbType, Raw, ValueKind, classify, safe_bind_name
from .where import AND, OR, Condition, WhereGroup, WhereTree
from .result import Result
from .builder import Query

__all__ = [
    "Binding",
    "DbType",
    "Raw",
    "ValueKind",
    "classify",
    "safe_bind_name",
    # Conditions
    "AND",
    "OR",
    "Condition",
    "WhereGroup",
    "WhereTree",
    # Execution
    "Query",
    "Result",
]
