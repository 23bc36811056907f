"""
Unit tests for the insert-id strategies.
Provider round-trips are mocked; the SQLite strategy is covered end to end
in the functional tests.
"""

import logging

import pytest
from unittest.mock import Mock

from editor_db.dialects import MYSQL, ORACLE, POSTGRES, SQLSERVER
from editor_db.query import Query


def cursor(rows=None, rowcount=1, lastrowid=None):
    """Mock SQLAlchemy cursor result"""
    result = Mock(returns_rows=rows is not None, rowcount=rowcount, lastrowid=lastrowid)
    result.mappings.return_value = rows or []
    return result


def lookup(row):
    """Mock cursor for a key lookup returning a single mapping row (or none)"""
    result = Mock()
    result.mappings.return_value.first.return_value = row
    return result


class TestCatalogReturning:
    """Test Postgres primary key discovery and RETURNING"""

    def test_table_without_primary_key_inserts_and_reports_no_id(self, caplog):
        db = Mock()
        db.execute.side_effect = [lookup(None), cursor()]

        with caplog.at_level(logging.WARNING, logger="editor_db.dialects.insert_id"):
            result = Query(db, POSTGRES, "insert").table("audit_log").set("message", "hello").exec()

        insert_sql = str(db.execute.call_args_list[1][0][0])
        assert "RETURNING" not in insert_sql
        assert result.insert_id() is None
        assert "audit_log" in caplog.text

    def test_primary_key_is_returned(self):
        db = Mock()
        db.execute.side_effect = [lookup({"attname": "id"}), cursor(rows=[{"dt_pkey": 7}])]

        result = Query(db, POSTGRES, "insert").table("users as u").set("name", "Allan").exec()

        lookup_params = db.execute.call_args_list[0][0][1]
        insert_sql = str(db.execute.call_args_list[1][0][0])
        assert lookup_params == {"table": "users"}
        assert insert_sql == "INSERT INTO users (name) VALUES (:set_name) RETURNING id as dt_pkey"
        assert result.insert_id() == "7"


class TestOutputInserted:
    """Test SQL Server OUTPUT INSERTED"""

    def test_declared_primary_key_is_used(self):
        db = Mock()
        q = Query(db, SQLSERVER, "insert").table("users").pkey("users.id").set("name", "Allan")

        sql = SQLSERVER.insert_id.before_insert(q, q.render())

        assert sql == "INSERT INTO [users] ([name]) OUTPUT INSERTED.id as insert_id VALUES (@set_name)"
        db.execute.assert_not_called()

    def test_key_is_looked_up_with_schema(self):
        db = Mock()
        db.execute.return_value = lookup({"column_name": "uid"})
        q = Query(db, SQLSERVER, "insert").table("dbo.users").set("name", "Allan")

        sql = SQLSERVER.insert_id.before_insert(q, q.render())

        assert "OUTPUT INSERTED.uid as insert_id VALUES" in sql
        assert db.execute.call_args[0][1] == {"table": "users", "schema": "dbo"}

    def test_no_key_leaves_insert_unchanged(self):
        db = Mock()
        db.execute.return_value = lookup(None)
        q = Query(db, SQLSERVER, "insert").table("users").set("name", "Allan")

        assert SQLSERVER.insert_id.before_insert(q, q.render()) == q.render()

    def test_insert_id_read_from_output_column(self):
        db = Mock()
        db.execute.return_value = cursor(rows=[{"insert_id": 41}])

        result = Query(db, SQLSERVER, "insert").table("users").pkey("id").set("name", "x").exec()

        assert result.insert_id() == "41"


class TestOtherStrategies:
    """Test cursor and no-op strategies"""

    def test_mysql_uses_cursor_lastrowid(self):
        db = Mock()
        db.execute.return_value = cursor(lastrowid=99)

        assert Query(db, MYSQL, "insert").table("users").set("name", "x").exec().insert_id() == "99"

    def test_oracle_reports_no_id(self):
        db = Mock()
        db.execute.return_value = cursor()

        assert Query(db, ORACLE, "insert").table("users").set("name", "x").exec().insert_id() is None

    @pytest.mark.parametrize("query_type", ["update", "delete"])
    def test_non_insert_reports_no_id(self, query_type):
        db = Mock()
        db.execute.return_value = cursor(lastrowid=5)

        result = Query(db, MYSQL, query_type).table("users").exec()

        assert result.insert_id() is None
