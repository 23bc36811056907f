"""
Unit tests for the dialect policies and registry.
"""

import dataclasses

import pytest
from unittest.mock import Mock

from editor_db.core.exceptions import ConfigurationError
from editor_db.dialects import (
    MYSQL,
    ORACLE,
    POSTGRES,
    SQLITE,
    SQLSERVER,
    CatalogReturning,
    FollowUpStatement,
    LimitStyle,
    NoInsertId,
    OutputInserted,
    get_dialect,
    registry,
)
from editor_db.query import Query


def build(dialect, query_type="select"):
    return Query(Mock(), dialect, query_type)


class TestDialectRegistry:
    """Test dialect lookup by database type"""

    @pytest.mark.parametrize(
        "db_type,dialect",
        [
            ("mysql", MYSQL),
            ("Postgres", POSTGRES),
            ("postgresql", POSTGRES),
            ("sqlite", SQLITE),
            ("sqlserver", SQLSERVER),
            ("azure", SQLSERVER),
            ("sqlserverce", SQLSERVER),
            (" oracle ", ORACLE),
        ],
    )
    def test_lookup(self, db_type, dialect):
        assert get_dialect(db_type) is dialect

    def test_unknown_type_raises(self):
        with pytest.raises(ConfigurationError, match="db2"):
            get_dialect("db2")

    def test_names_include_aliases(self):
        assert {"mysql", "postgres", "azure", "sqlserverce"} <= set(registry.names())

    def test_dialects_are_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            MYSQL.bind_prefix = ":"

    def test_insert_id_strategies(self):
        assert isinstance(POSTGRES.insert_id, CatalogReturning)
        assert isinstance(SQLSERVER.insert_id, OutputInserted)
        assert isinstance(SQLITE.insert_id, FollowUpStatement)
        assert isinstance(ORACLE.insert_id, NoInsertId)
        assert MYSQL.insert_id.reads_cursor


class TestDialectRendering:
    """Test dialect specific SQL"""

    def test_postgres_does_not_quote_identifiers(self):
        q = build(POSTGRES).table("users").get("users.name").where("users.age", 30)

        assert q.render() == 'SELECT users.name as "users.name" FROM users WHERE users.age = @where_0'

    def test_postgres_like_is_case_insensitive_text_match(self):
        q = build(POSTGRES).table("users").where("age", "%3%", "like")

        assert q.render() == "SELECT * FROM users WHERE age::text ilike @where_0"

    def test_mysql_like_is_unchanged(self):
        q = build(MYSQL).table("users").where("name", "%al%", "like")

        assert q.render() == "SELECT * FROM `users` WHERE `name` like @where_0"

    def test_sqlserver_brackets_and_offset_fetch(self):
        q = build(SQLSERVER).table("dbo.users").order("name").limit(10).offset(20)

        assert q.render() == (
            "SELECT * FROM [dbo].[users] ORDER BY [name] OFFSET 20 ROWS FETCH NEXT 10 ROWS ONLY"
        )

    def test_oracle_binds_with_colon_and_drops_table_as(self):
        q = build(ORACLE).table("users as u").get("u.name").where("u.id", 1).limit(5)

        assert q.render() == (
            'SELECT "u"."name" as "u.name" FROM "users" u WHERE "u"."id" = :where_0 '
            "OFFSET 0 ROWS FETCH NEXT 5 ROWS ONLY"
        )


class TestLimitStyles:
    """Test LIMIT / OFFSET rendering"""

    @pytest.mark.parametrize(
        "limit,offset,expected",
        [
            (None, None, ""),
            (10, None, "LIMIT 10"),
            (None, 5, "OFFSET 5"),
            (10, 5, "LIMIT 10 OFFSET 5"),
        ],
    )
    def test_limit_offset(self, limit, offset, expected):
        assert SQLITE.render_limit(limit, offset) == expected

    @pytest.mark.parametrize(
        "limit,offset,expected",
        [
            (None, None, ""),
            (10, None, "OFFSET 0 ROWS FETCH NEXT 10 ROWS ONLY"),
            (None, 5, "OFFSET 5 ROWS"),
            (10, 5, "OFFSET 5 ROWS FETCH NEXT 10 ROWS ONLY"),
        ],
    )
    def test_offset_fetch(self, limit, offset, expected):
        assert SQLSERVER.limit_style == LimitStyle.OFFSET_FETCH
        assert SQLSERVER.render_limit(limit, offset) == expected


class TestPlaceholderTranslation:
    """Test rewriting of dialect placeholders to SQLAlchemy form"""

    def test_only_owned_names_are_rewritten(self):
        sql = "SELECT @@IDENTITY, @other FROM t WHERE a = @where_0 AND b = @where_1"

        assert MYSQL.to_sqlalchemy_sql(sql, ["where_0", "where_1"]) == (
            "SELECT @@IDENTITY, @other FROM t WHERE a = :where_0 AND b = :where_1"
        )

    def test_no_bindings_leaves_sql_alone(self):
        assert MYSQL.to_sqlalchemy_sql("SELECT @a", []) == "SELECT @a"

    def test_colon_prefix_is_already_sqlalchemy_form(self):
        assert ORACLE.to_sqlalchemy_sql("a = :where_0", ["where_0"]) == "a = :where_0"


class TestSessionStatements:
    """Test timeout and init statements"""

    def test_timeout_in_milliseconds(self):
        assert MYSQL.timeout_sql(1.5) == "SET SESSION max_execution_time = 1500"
        assert POSTGRES.timeout_sql(2) == "SET statement_timeout = 2000"

    def test_timeout_ignored_elsewhere(self):
        assert SQLITE.timeout_sql(3) is None
        assert SQLSERVER.timeout_sql(3) is None

    def test_oracle_init_statements_use_iso_dates(self):
        assert len(ORACLE.init_statements) == 2
        assert all("YYYY-MM-DD HH24:MI:SS" in s for s in ORACLE.init_statements)
        assert MYSQL.init_statements == ()
