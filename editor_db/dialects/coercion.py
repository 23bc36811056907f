# editor_db/dialects/coercion.py
"""Value coercion policies applied to bindings at prepare time."""

import datetime
from typing import Any, Optional, Tuple

from sqlalchemy import types as sa_types
from sqlalchemy.types import TypeEngine

from editor_db.query.binding import Binding, ValueKind

# Tried in order after datetime.fromisoformat has failed
DATE_FORMATS = (
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%d-%m-%Y",
    "%d-%m-%Y %H:%M:%S",
)


def passthrough(binding: Binding) -> Tuple[Any, Optional[TypeEngine]]:
    """Weakly typed backends: bind the value as given."""
    return binding.value, binding.sqlalchemy_type()


def looks_like_date(text: str) -> bool:
    return ("-" in text or "/" in text) and "," not in text


def parse_datetime(text: str) -> Optional[datetime.datetime]:
    """Parse a date / date-time string, or return None."""
    text = text.strip()
    try:
        return datetime.datetime.fromisoformat(text)
    except ValueError:
        pass

    for fmt in DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def parse_int(text: str) -> Optional[int]:
    try:
        return int(text.strip())
    except ValueError:
        return None


def infer_strong_type(binding: Binding) -> Tuple[Any, Optional[TypeEngine]]:
    """
    Strongly typed backends (Postgres) will not compare a text parameter to
    an integer or timestamp column, so untyped text is sniffed.

    Order: declared type, integer parse, date parse (only when the text has a
    `-` or `/` and no comma), plain text.
    """
    declared = binding.sqlalchemy_type()
    if declared is not None:
        return binding.value, declared

    if binding.kind != ValueKind.TEXT or not isinstance(binding.value, str):
        return binding.value, None

    text = binding.value

    as_int = parse_int(text)
    if as_int is not None:
        return as_int, sa_types.Integer()

    if looks_like_date(text):
        as_date = parse_datetime(text)
        if as_date is not None:
            return as_date, sa_types.DateTime()

    return text, sa_types.String()
