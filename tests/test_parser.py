"""
tests/test_parser.py
Unit tests for ddlapi.parser.

Tests cover:
- CREATE TABLE with column clauses and table constraints
- CREATE INDEX / VIEW / TYPE, DROP and COMMENT ON statements
- ALTER TABLE actions
- Dialect specifics (MySQL keys and options, SQLite type-less columns,
  MSSQL batch separators)
- Statement-level error recovery and skipped statements
"""

from __future__ import annotations

from typing import Callable, List, Tuple

import pytest

from ddlapi.ast_nodes import (
    AddColumn,
    AddConstraint,
    AlterColumn,
    AlterTable,
    CheckDef,
    CommentOn,
    CreateEnumType,
    CreateIndex,
    CreateTable,
    CreateView,
    DropColumn,
    DropConstraint,
    DropTable,
    ForeignKeyDef,
    IndexDef,
    PrimaryKeyDef,
    RenameColumn,
    RenameTable,
    Statement,
    UniqueDef,
)
from ddlapi.diagnostics import Diagnostics
from ddlapi.errors import LexError
from ddlapi.parser import StatementParser, parse_sql
from ddlapi.tokenizer import Tokenizer

Parse = Callable[..., Tuple[List[Statement], Diagnostics]]


# ===========================================================================
# CREATE TABLE
# ===========================================================================


class TestCreateTable:
    """Tests for table definitions."""

    def test_blog_schema_statements(self, parse: Parse, blog_ddl: str) -> None:
        statements, diagnostics = parse(blog_ddl)
        assert [type(s) for s in statements] == [
            CreateTable, CreateTable, CreateTable, CreateTable, CreateIndex,
        ]
        assert len(diagnostics) == 0

    def test_column_definitions(self, parse: Parse, blog_ddl: str) -> None:
        statements, _ = parse(blog_ddl)
        users: CreateTable = statements[0]  # type: ignore[assignment]
        assert users.name.name == "users"
        assert users.name.schema is None
        assert [c.name for c in users.columns] == [
            "id", "email", "display_name", "status", "age", "created_at",
        ]

        email = users.columns[1]
        assert email.type is not None
        assert email.type.base == "VARCHAR"
        assert email.type.args == ("255",)
        assert email.type.raw == "VARCHAR(255)"
        assert email.not_null is True
        assert any(isinstance(c, UniqueDef) for c in email.constraints)

        status = users.columns[3]
        assert status.default == "'active'"
        checks = [c for c in status.constraints if isinstance(c, CheckDef)]
        assert checks[0].expression == "status IN ('active', 'banned')"
        assert checks[0].column == "status"

        created_at = users.columns[5]
        assert created_at.type.base == "TIMESTAMP"
        assert created_at.type.timezone is True
        assert created_at.default == "now()"

    def test_inline_reference(self, parse: Parse, blog_ddl: str) -> None:
        statements, _ = parse(blog_ddl)
        posts: CreateTable = statements[1]  # type: ignore[assignment]
        author = posts.columns[1]
        fk = next(c for c in author.constraints if isinstance(c, ForeignKeyDef))
        assert fk.columns == ("author_id",)
        assert fk.reference.table.name == "users"
        assert fk.reference.columns == ("id",)
        assert fk.reference.on_delete == "CASCADE"
        assert fk.reference.on_update is None

    def test_table_level_constraints(self, parse: Parse, blog_ddl: str) -> None:
        statements, _ = parse(blog_ddl)
        posts: CreateTable = statements[1]  # type: ignore[assignment]
        check = posts.constraints[0]
        assert isinstance(check, CheckDef)
        assert check.name == "posts_score_check"
        assert check.expression == "score >= 0 AND score <= 100"
        assert posts.columns[4].type.args == ("5", "2")

        post_tags: CreateTable = statements[3]  # type: ignore[assignment]
        pk = post_tags.constraints[0]
        assert isinstance(pk, PrimaryKeyDef)
        assert pk.columns == ("post_id", "tag_id")

    def test_qualified_name_and_if_not_exists(self, parse: Parse) -> None:
        statements, _ = parse("CREATE TABLE IF NOT EXISTS app.items (id INT);")
        table: CreateTable = statements[0]  # type: ignore[assignment]
        assert table.if_not_exists
        assert (table.name.schema, table.name.name) == ("app", "items")

    def test_temporary_table(self, parse: Parse) -> None:
        statements, _ = parse("CREATE TEMPORARY TABLE scratch (id INT);")
        assert statements[0].temporary  # type: ignore[union-attr]

    def test_identity_and_generated_columns(self, parse: Parse) -> None:
        statements, diagnostics = parse(
            "CREATE TABLE t ("
            " id BIGINT GENERATED ALWAYS AS IDENTITY PRIMARY KEY,"
            " price NUMERIC(10, 2) NOT NULL,"
            " total NUMERIC GENERATED ALWAYS AS (price * 2) STORED"
            ");"
        )
        table: CreateTable = statements[0]  # type: ignore[assignment]
        assert not diagnostics.has_errors
        assert table.columns[0].auto_increment
        assert table.columns[2].generated == "price * 2"

    def test_column_without_type_is_an_error_outside_sqlite(self, parse: Parse) -> None:
        statements, diagnostics = parse("CREATE TABLE kv (k, v TEXT);")
        assert statements == []
        assert diagnostics.with_code("PARSE_ERROR")

    def test_sqlite_type_less_columns(self, parse: Parse) -> None:
        statements, diagnostics = parse("CREATE TABLE kv (k, v TEXT);", "sqlite")
        table: CreateTable = statements[0]  # type: ignore[assignment]
        assert not diagnostics.has_errors
        assert table.columns[0].type is None
        assert table.columns[1].type.base == "TEXT"

    def test_exclude_constraint_is_skipped_with_warning(self, parse: Parse) -> None:
        statements, diagnostics = parse(
            "CREATE TABLE booking (id INT PRIMARY KEY, room INT,"
            " EXCLUDE USING gist (room WITH =));"
        )
        table: CreateTable = statements[0]  # type: ignore[assignment]
        assert len(table.constraints) == 0
        assert diagnostics.with_code("UNSUPPORTED_CLAUSE")


# ===========================================================================
# MySQL specifics
# ===========================================================================


class TestMySql:
    """Tests for MySQL table syntax."""

    def test_keys_and_options(self, parse: Parse, mysql_ddl: str) -> None:
        statements, diagnostics = parse(mysql_ddl, "mysql")
        assert not diagnostics.has_errors
        customers, orders = statements  # type: ignore[misc]

        assert customers.columns[0].auto_increment
        assert customers.columns[0].type.unsigned
        unique = customers.constraints[1]
        assert isinstance(unique, UniqueDef)
        assert unique.name == "uq_customers_email"

        state = orders.columns[2]
        assert state.type.base == "ENUM"
        assert state.type.args == ("new", "paid", "shipped")
        key = orders.constraints[1]
        assert isinstance(key, IndexDef)
        assert key.name == "idx_orders_state"
        fk = orders.constraints[2]
        assert isinstance(fk, ForeignKeyDef)
        assert fk.name == "fk_orders_customer"
        assert orders.comment == "Customer orders"


# ===========================================================================
# Other statements
# ===========================================================================


class TestOtherStatements:
    """Tests for indexes, views, types, drops and comments."""

    def test_create_unique_expression_index(self, parse: Parse) -> None:
        statements, _ = parse(
            "CREATE UNIQUE INDEX IF NOT EXISTS ux_email ON users USING btree "
            "(lower(email)) WHERE deleted_at IS NULL;"
        )
        index: CreateIndex = statements[0]  # type: ignore[assignment]
        assert index.unique
        assert index.if_not_exists
        assert index.name == "ux_email"
        assert index.method == "btree"
        assert index.elements[0].column is None
        assert index.elements[0].text == "lower(email)"
        assert index.where == "deleted_at IS NULL"

    def test_create_index_columns(self, parse: Parse) -> None:
        statements, _ = parse("CREATE INDEX ON posts (author_id, created_at DESC);")
        index: CreateIndex = statements[0]  # type: ignore[assignment]
        assert index.name is None
        assert [e.column for e in index.elements] == ["author_id", "created_at"]
        assert index.elements[1].descending

    def test_create_view(self, parse: Parse) -> None:
        statements, _ = parse("CREATE OR REPLACE VIEW active AS SELECT * FROM users WHERE x = 1;")
        view: CreateView = statements[0]  # type: ignore[assignment]
        assert view.or_replace
        assert view.query == "SELECT * FROM users WHERE x = 1"

    def test_create_enum_type(self, parse: Parse) -> None:
        statements, _ = parse("CREATE TYPE mood AS ENUM ('sad', 'ok', 'happy');")
        enum: CreateEnumType = statements[0]  # type: ignore[assignment]
        assert enum.name.name == "mood"
        assert enum.values == ("sad", "ok", "happy")

    def test_drop_table(self, parse: Parse) -> None:
        statements, _ = parse("DROP TABLE IF EXISTS a, b CASCADE;")
        drop: DropTable = statements[0]  # type: ignore[assignment]
        assert [n.name for n in drop.names] == ["a", "b"]
        assert drop.if_exists
        assert drop.cascade

    def test_comment_on_column(self, parse: Parse) -> None:
        statements, _ = parse("COMMENT ON COLUMN public.users.email IS 'Login e-mail';")
        comment: CommentOn = statements[0]  # type: ignore[assignment]
        assert comment.target == "column"
        assert comment.table.name == "users"
        assert comment.table.schema == "public"
        assert comment.column == "email"
        assert comment.text == "Login e-mail"


# ===========================================================================
# ALTER TABLE
# ===========================================================================


class TestAlterTable:
    """Tests for ALTER TABLE actions."""

    def test_multiple_actions(self, parse: Parse) -> None:
        statements, diagnostics = parse(
            "ALTER TABLE posts ADD COLUMN slug VARCHAR(80), DROP COLUMN body, "
            "ALTER COLUMN title SET NOT NULL, RENAME COLUMN score TO rating;"
        )
        alter: AlterTable = statements[0]  # type: ignore[assignment]
        assert not diagnostics.has_errors
        assert [type(a) for a in alter.actions] == [AddColumn, DropColumn, AlterColumn, RenameColumn]
        assert alter.actions[0].column.name == "slug"  # type: ignore[union-attr]
        assert alter.actions[2].set_not_null is True  # type: ignore[union-attr]
        assert (alter.actions[3].old, alter.actions[3].new) == ("score", "rating")  # type: ignore[union-attr]

    def test_add_and_drop_constraint(self, parse: Parse) -> None:
        statements, _ = parse(
            "ALTER TABLE posts ADD CONSTRAINT fk_author FOREIGN KEY (author_id) "
            "REFERENCES users (id) ON DELETE SET NULL;"
            "ALTER TABLE posts DROP CONSTRAINT IF EXISTS fk_author;"
        )
        add, drop = statements
        constraint = add.actions[0]  # type: ignore[union-attr]
        assert isinstance(constraint, AddConstraint)
        assert constraint.constraint.name == "fk_author"
        assert constraint.constraint.reference.on_delete == "SET NULL"  # type: ignore[union-attr]
        assert isinstance(drop.actions[0], DropConstraint)  # type: ignore[union-attr]
        assert drop.actions[0].if_exists  # type: ignore[union-attr]

    def test_rename_table(self, parse: Parse) -> None:
        statements, _ = parse("ALTER TABLE users RENAME TO members;")
        action = statements[0].actions[0]  # type: ignore[union-attr]
        assert isinstance(action, RenameTable)
        assert action.new_name.name == "members"

    def test_unsupported_action_is_skipped(self, parse: Parse) -> None:
        statements, diagnostics = parse("ALTER TABLE posts OWNER TO admin;")
        assert isinstance(statements[0], AlterTable)
        assert statements[0].actions == ()  # type: ignore[union-attr]
        assert diagnostics.with_code("UNSUPPORTED_ALTER_ACTION")


# ===========================================================================
# Recovery
# ===========================================================================


class TestRecovery:
    """Tests for statement-level error recovery."""

    def test_malformed_statement_does_not_affect_others(self, parse: Parse) -> None:
        statements, diagnostics = parse(
            "CREATE TABLE a (id INT PRIMARY KEY);\n"
            "CREATE TABLE b (id INT,, x INT);\n"
            "CREATE TABLE c (id INT);"
        )
        assert [s.name.name for s in statements] == ["a", "c"]  # type: ignore[union-attr]
        errors = diagnostics.errors
        assert len(errors) == 1
        assert errors[0].code == "PARSE_ERROR"
        assert errors[0].stage == "parse"
        assert errors[0].line == 2

    def test_unsupported_statement_is_info(self, parse: Parse) -> None:
        statements, diagnostics = parse(
            "INSERT INTO t VALUES (1); CREATE EXTENSION pgcrypto; CREATE TABLE t (id INT);"
        )
        assert len(statements) == 1
        infos = diagnostics.with_code("UNSUPPORTED_STATEMENT")
        assert len(infos) == 2
        assert all(d.severity == "info" for d in infos)
        assert not diagnostics.has_errors

    def test_missing_semicolon_warns(self, parse: Parse) -> None:
        statements, diagnostics = parse(
            "CREATE TABLE a (id INT)\nCREATE TABLE b (id INT);"
        )
        assert len(statements) == 2
        warnings = diagnostics.with_code("MISSING_SEMICOLON")
        assert len(warnings) == 1
        assert warnings[0].line == 2

    def test_trailing_garbage_is_an_error(self, parse: Parse) -> None:
        statements, diagnostics = parse("DROP TABLE a garbage;")
        assert statements == []
        assert diagnostics.with_code("PARSE_ERROR")

    def test_lex_error_propagates(self) -> None:
        with pytest.raises(LexError):
            parse_sql("CREATE TABLE t (id INT) 'oops", "postgresql", Diagnostics())

    def test_statement_order_is_preserved(self, parse: Parse) -> None:
        statements, _ = parse(
            "DROP TABLE IF EXISTS x; CREATE TABLE x (id INT); ALTER TABLE x ADD y INT;"
        )
        assert [type(s) for s in statements] == [DropTable, CreateTable, AlterTable]


# ===========================================================================
# Dialect switches
# ===========================================================================


class TestDialects:
    """Tests for dialect-level parser behaviour."""

    def test_mssql_go_separator_and_reserved_info(self, parse: Parse) -> None:
        statements, diagnostics = parse(
            "CREATE TABLE [dbo].[items] ([id] INT IDENTITY(1,1) PRIMARY KEY)\nGO\n"
            "CREATE TABLE [dbo].[tags] ([id] INT NOT NULL)\nGO\n",
            "mssql",
        )
        assert [s.name.name for s in statements] == ["items", "tags"]  # type: ignore[union-attr]
        assert statements[0].columns[0].auto_increment  # type: ignore[union-attr]
        assert diagnostics.with_code("RESERVED_DIALECT")
        assert not diagnostics.has_errors

    def test_parser_over_explicit_tokenizer(self) -> None:
        diagnostics = Diagnostics()
        parser = StatementParser("sqlite", source="inline")
        result = parser.parse(Tokenizer("CREATE TABLE t (id INTEGER);", "sqlite"), diagnostics)
        assert len(result) == 1
        assert result.source == "inline"
