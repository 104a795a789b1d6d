"""
tests/test_pipeline.py
Integration tests for ddlapi.pipeline.SchemaPipeline.

Tests cover:
- End-to-end run of the blog schema
- Several inputs merged as one logical schema
- Lexical errors aborting only their own input
- Unreadable files as input-stage errors
- Exit status precedence
- Parallel parsing matching sequential parsing
- Deterministic descriptor serialisation
- The pipeline summary report
"""

from __future__ import annotations

import json
import pathlib
from typing import Any, Callable, List, Tuple

import pytest

from ddlapi.config import PipelineConfig
from ddlapi.pipeline import (
    EXIT_INPUT_ERROR,
    EXIT_MODEL_ERROR,
    EXIT_PARSE_ERROR,
    EXIT_SUCCESS,
    EXIT_WARNINGS,
    PipelineResult,
    SchemaPipeline,
)

RunPipeline = Callable[..., PipelineResult]
Source = Tuple[str, str]


# ===========================================================================
# End-to-end
# ===========================================================================


class TestEndToEnd:
    """Tests for a complete successful run."""

    def test_blog_schema(self, blog_result: PipelineResult) -> None:
        assert blog_result.success, blog_result.diagnostics.format_report()
        assert blog_result.exit_status() == EXIT_SUCCESS
        assert blog_result.statement_count == 5
        assert blog_result.sources == ["test.sql"]
        assert blog_result.model is not None
        assert blog_result.model.table_names == ["users", "posts", "tags", "post_tags"]
        assert blog_result.descriptor is not None
        assert blog_result.descriptor.resource_names == ["users", "posts", "tags"]
        assert len(blog_result.usable_tables) == 4

    def test_steps_are_recorded(self, blog_result: PipelineResult) -> None:
        assert [s.step_name for s in blog_result.steps] == ["Parse", "Build Model", "Infer API"]
        assert all(s.success for s in blog_result.steps)
        assert blog_result.steps[0].detail == "5 statement(s) from 1 input(s)"
        assert blog_result.elapsed >= 0.0

    def test_config_flows_to_inference(self, run_pipeline: RunPipeline, blog_ddl: str) -> None:
        result = run_pipeline(blog_ddl, naming_strategy="singular", default_limit=10)
        users = result.descriptor.get_resource("user")
        assert users is not None
        assert users.list_parameters.limit.default == 10

    def test_schema_filter(self, run_pipeline: RunPipeline) -> None:
        result = run_pipeline(
            "CREATE TABLE a.t (id INT PRIMARY KEY); CREATE TABLE b.t (id INT PRIMARY KEY);",
            schema_filter="b",
        )
        assert [t.qualified_name for t in result.model.tables] == ["b.t"]

    def test_pipeline_is_reusable(self, blog_ddl: str) -> None:
        pipeline = SchemaPipeline()
        first = pipeline.run_text(blog_ddl)
        second = pipeline.run_text("CREATE TABLE t (id INT PRIMARY KEY);")
        assert len(first.model.tables) == 4
        assert len(second.model.tables) == 1


# ===========================================================================
# Multiple inputs
# ===========================================================================


class TestMultipleInputs:
    """Tests for runs over more than one input."""

    def test_inputs_form_one_schema(self, scenario_sources: List[Source]) -> None:
        result = SchemaPipeline().run(scenario_sources)
        assert result.success
        assert result.sources == ["users.sql", "posts.sql"]
        posts = result.descriptor.get_resource("posts")
        assert posts.binding("user").target_resource == "users"

    def test_reference_to_missing_table_is_a_model_error(self, scenario_sources: List[Source]) -> None:
        result = SchemaPipeline().run(scenario_sources[1:])
        assert not result.success
        assert result.descriptor is None
        assert result.usable_tables == []
        assert [d.code for d in result.model_errors] == ["UNKNOWN_REFERENCED_TABLE"]
        assert result.exit_status() == EXIT_MODEL_ERROR
        assert result.steps[-1].detail == "skipped (invalid model)"

    def test_undeclared_table_leaves_no_usable_tables(self, run_pipeline: RunPipeline) -> None:
        result = run_pipeline(
            "CREATE TABLE orders (id INT PRIMARY KEY, ghost_id INT REFERENCES ghost (id));"
        )
        assert result.usable_tables == []
        assert len(result.model_errors) == 1
        assert "ghost" in result.model_errors[0].message

    def test_later_input_alters_earlier_table(self, scenario_sources: List[Source]) -> None:
        result = SchemaPipeline().run([
            scenario_sources[0],
            ("b.sql", "ALTER TABLE users ADD COLUMN nickname TEXT;"),
        ])
        assert result.model.get_table("users").column_names == ["id", "email", "nickname"]

    def test_lex_error_aborts_only_its_input(self, scenario_sources: List[Source]) -> None:
        result = SchemaPipeline().run([
            scenario_sources[0],
            ("bad.sql", "CREATE TABLE broken (id INT) 'oops"),
        ])
        assert result.model.table_names == ["users"]
        lex_errors = [d for d in result.diagnostics.errors if d.code == "LEX_ERROR"]
        assert len(lex_errors) == 1
        assert lex_errors[0].source == "bad.sql"
        assert result.exit_status() == EXIT_PARSE_ERROR
        assert "1 aborted" in result.steps[0].detail

    @pytest.mark.parametrize("workers", [2, 4])
    def test_parallel_matches_sequential(self, workers: int, scenario_sources: List[Source]) -> None:
        sources = scenario_sources
        sequential = SchemaPipeline(PipelineConfig(max_workers=1)).run(sources)
        parallel = SchemaPipeline(PipelineConfig(max_workers=workers)).run(sources)
        assert parallel.descriptor.to_json() == sequential.descriptor.to_json()
        assert [str(d) for d in parallel.diagnostics] == [str(d) for d in sequential.diagnostics]


# ===========================================================================
# Vendor syntax
# ===========================================================================


class TestVendorSyntax:
    """Tests for dump syntax that must not abort an input."""

    def test_mysql_session_variables(self) -> None:
        result = SchemaPipeline(PipelineConfig(dialect="mysql")).run_text(
            "SET @saved = @@foreign_key_checks;\n"
            "CREATE TABLE users (id INT PRIMARY KEY);\n"
            "SET foreign_key_checks = @saved;\n"
        )
        assert not result.diagnostics.with_code("LEX_ERROR")
        assert result.model.table_names == ["users"]
        assert len(result.usable_tables) == 1
        assert result.exit_status() == EXIT_SUCCESS

    def test_postgres_partial_index_with_containment_operator(self, run_pipeline: RunPipeline) -> None:
        result = run_pipeline(
            "CREATE TABLE docs (id INT PRIMARY KEY, tags TEXT[]);"
            "CREATE INDEX ix ON docs USING gin (tags) WHERE tags @> ARRAY['a'];"
        )
        assert not result.diagnostics.errors
        docs = result.model.get_table("docs")
        assert [i.name for i in docs.indexes] == ["ix"]
        assert result.descriptor.get_resource("docs") is not None

    def test_stray_character_only_costs_its_statement(self, run_pipeline: RunPipeline) -> None:
        result = run_pipeline("CREATE TABLE a (id INT PRIMARY KEY, ? x); CREATE TABLE b (id INT PRIMARY KEY);")
        assert result.model.table_names == ["b"]
        assert not result.diagnostics.with_code("LEX_ERROR")
        assert result.diagnostics.with_code("PARSE_ERROR")


# ===========================================================================
# Files
# ===========================================================================


class TestFiles:
    """Tests for run_files."""

    def test_reads_files(self, blog_sql_path: pathlib.Path) -> None:
        result = SchemaPipeline().run_files([blog_sql_path])
        assert result.success
        assert result.sources == [str(blog_sql_path)]

    def test_missing_file_is_input_error(self, blog_sql_path: pathlib.Path, tmp_path: pathlib.Path) -> None:
        missing = tmp_path / "missing.sql"
        result = SchemaPipeline().run_files([missing, blog_sql_path])
        assert result.has_input_errors
        assert result.exit_status() == EXIT_INPUT_ERROR
        error = result.diagnostics.with_code("INPUT_ERROR")[0]
        assert error.stage == "input"
        assert error.source == str(missing)
        assert result.model.table_names == ["users", "posts", "tags", "post_tags"]


# ===========================================================================
# Exit status
# ===========================================================================


class TestExitStatus:
    """Tests for PipelineResult.exit_status."""

    def test_parse_error(self, run_pipeline: RunPipeline) -> None:
        result = run_pipeline("CREATE TABLE t (id INT PRIMARY KEY); CREATE TABLE (;")
        assert result.has_syntax_errors
        assert result.exit_status() == EXIT_PARSE_ERROR

    def test_warnings_only_fail_on_request(self, run_pipeline: RunPipeline) -> None:
        result = run_pipeline("CREATE TABLE log (msg TEXT);")
        assert result.diagnostics.has_warnings
        assert result.exit_status() == EXIT_SUCCESS
        assert result.exit_status(fail_on_warnings=True) == EXIT_WARNINGS

    def test_empty_input_succeeds(self, run_pipeline: RunPipeline) -> None:
        result = run_pipeline("")
        assert result.exit_status() == EXIT_SUCCESS
        assert result.descriptor.resources == ()


# ===========================================================================
# Output determinism
# ===========================================================================


class TestDeterminism:
    """Tests for stable descriptor output."""

    def test_to_json_is_idempotent(self, run_pipeline: RunPipeline, blog_ddl: str) -> None:
        first = run_pipeline(blog_ddl).descriptor.to_json()
        second = run_pipeline(blog_ddl).descriptor.to_json()
        assert first == second

    def test_to_json_is_valid_json(self, blog_result: PipelineResult) -> None:
        data: Any = json.loads(blog_result.descriptor.to_json())
        assert data["dialect"] == "postgresql"
        assert [r["name"] for r in data["resources"]] == ["users", "posts", "tags"]

    def test_summary(self, blog_result: PipelineResult, run_pipeline: RunPipeline, scenario_sources: List[Source]) -> None:
        summary = blog_result.summary()
        assert "SUCCESS" in summary
        assert "Resources:   3" in summary
        assert "Infer API" in summary
        failed = run_pipeline(scenario_sources[1][1]).summary()
        assert "FAILED" in failed
