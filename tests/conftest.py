"""
Test configuration and shared fixtures for the editor-db test suite.
Provides an in-memory SQLite database and builder helpers.
"""

import pytest
from typing import List, Tuple
from unittest.mock import Mock
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from editor_db import Database
from editor_db.dialects import MYSQL
from editor_db.query import Query


# ===== DATABASE SETUP =====

@pytest.fixture(scope="function")
def engine():
    """Create in-memory SQLite engine shared by a single connection"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    """Database instance with a users table"""
    database = Database("sqlite", engine)
    database.sql(
        """
        CREATE TABLE users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            age INTEGER,
            site TEXT
        )
        """
    )
    try:
        yield database
    finally:
        database.close()


@pytest.fixture
def sample_users(db) -> List[str]:
    """Insert sample users, returning their insert ids"""
    users = [
        {"name": "Allan", "age": 32, "site": "Edinburgh"},
        {"name": "Bryn", "age": 45, "site": "London"},
        {"name": "Cara", "age": 27, "site": "Edinburgh"},
        {"name": "Dev", "age": None, "site": "Paris"},
    ]
    return [db.insert("users", user, pkey="id").insert_id() for user in users]


# ===== BUILDER HELPERS =====

@pytest.fixture
def debug_log(db) -> List[Tuple[str, list]]:
    """Collect (sql, bindings) pairs passed to the debug hook"""
    log: List[Tuple[str, list]] = []
    db.debug(lambda sql, bindings: log.append((sql, bindings)))
    return log


@pytest.fixture
def mysql_query():
    """Factory for MySQL-dialect queries on a mocked database (render only)"""
    def factory(query_type: str = "select") -> Query:
        return Query(Mock(), MYSQL, query_type)
    return factory
