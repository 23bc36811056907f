# editor_db/core/exceptions.py
"""Exception types raised by the database access layer."""

from sqlalchemy.exc import DBAPIError

# Driver failures are never wrapped - they surface exactly as SQLAlchemy raises them
ProviderError = DBAPIError


class EditorDbError(Exception):
    """Base exception for the database access layer."""
    pass


class ConfigurationError(EditorDbError):
    """Unknown dialect, unknown query type or incomplete settings."""
    pass


class TransactionStateError(EditorDbError):
    """Transaction begun while one is open, or closed while none is."""
    pass
