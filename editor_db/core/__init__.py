"""Connection, configuration and error types for the database access layer."""
