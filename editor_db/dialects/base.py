# editor_db/dialects/base.py
"""Dialect policy value consumed by the query builder."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Tuple

from sqlalchemy.types import TypeEngine

from editor_db.dialects.coercion import passthrough
from editor_db.query.binding import Binding

if TYPE_CHECKING:
    from editor_db.dialects.insert_id import InsertIdStrategy


class LimitStyle(str, Enum):
    """How a dialect expresses LIMIT / OFFSET."""

    LIMIT_OFFSET = "limit_offset"  # LIMIT n OFFSET m
    OFFSET_FETCH = "offset_fetch"  # OFFSET m ROWS FETCH NEXT n ROWS ONLY


CoerceFn = Callable[[Binding], Tuple[Any, Optional[TypeEngine]]]


@dataclass(frozen=True)
class Dialect:
    """
    Everything the builder needs to know about one database backend.

    A single Query implementation is parameterised by one of these values
    rather than subclassed per backend.
    """

    name: str
    insert_id: "InsertIdStrategy"
    identifier_quote: Optional[Tuple[str, str]] = None
    field_quote: str = "'"
    bind_prefix: str = "@"
    limit_style: LimitStyle = LimitStyle.LIMIT_OFFSET
    coerce: CoerceFn = passthrough
    init_statements: Tuple[str, ...] = ()
    timeout_statement: Optional[str] = None  # formatted with {ms}
    like_as_text_ilike: bool = False
    table_alias_keyword: bool = True  # Oracle rejects `FROM t AS a`

    def placeholder(self, name: str) -> str:
        return self.bind_prefix + name

    def render_limit(self, limit: Optional[int], offset: Optional[int]) -> str:
        """LIMIT / OFFSET clause, or an empty string when neither is set."""
        if self.limit_style == LimitStyle.OFFSET_FETCH:
            parts = []
            if offset is not None:
                parts.append(f"OFFSET {offset} ROWS")
            if limit is not None:
                if offset is None:
                    # FETCH is only valid after OFFSET (and needs an ORDER BY)
                    parts.append("OFFSET 0 ROWS")
                parts.append(f"FETCH NEXT {limit} ROWS ONLY")
            return " ".join(parts)

        parts = []
        if limit is not None:
            parts.append(f"LIMIT {limit}")
        if offset is not None:
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def timeout_sql(self, seconds: float) -> Optional[str]:
        if self.timeout_statement is None:
            return None
        return self.timeout_statement.format(ms=int(seconds * 1000))

    def to_sqlalchemy_sql(self, sql: str, names: Iterable[str]) -> str:
        """
        Rewrite this dialect's placeholders into SQLAlchemy's `:name` form.

        Only names that are actually bound are rewritten, so an `@` or `:`
        elsewhere in the statement is left alone.
        """
        if self.bind_prefix == ":":
            return sql

        owned = set(names)
        if not owned:
            return sql

        pattern = re.compile(re.escape(self.bind_prefix) + r"(\w+)")

        def swap(match: "re.Match[str]") -> str:
            name = match.group(1)
            return ":" + name if name in owned else match.group(0)

        return pattern.sub(swap, sql)
