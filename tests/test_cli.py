"""
tests/test_cli.py
Tests for the ddlapi command-line interface.

Tests cover:
- JSON and YAML output on stdout or to a file
- --emit model/both, --listing and --validate-only
- Reading DDL from stdin
- Config files and command-line overrides
- Exit codes for input, parse, model and warning outcomes
"""

from __future__ import annotations

import io
import json
import pathlib
from typing import List, Tuple

import pytest
import yaml

from ddlapi.cli import cli_main


def _run(argv: List[str], capsys: pytest.CaptureFixture[str]) -> Tuple[int, str, str]:
    """Run the CLI and return ``(exit_code, stdout, stderr)``."""
    with pytest.raises(SystemExit) as exc_info:
        cli_main(argv)
    captured = capsys.readouterr()
    return exc_info.value.code, captured.out, captured.err


def _sql_file(tmp_path: pathlib.Path, name: str, text: str) -> str:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


# ===========================================================================
# Output
# ===========================================================================


class TestOutput:
    """Tests for what the CLI writes."""

    def test_json_on_stdout(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, out, _ = _run([str(blog_sql_path)], capsys)
        assert code == 0
        data = json.loads(out)
        assert [r["name"] for r in data["resources"]] == ["users", "posts", "tags"]

    def test_yaml_output(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, out, _ = _run([str(blog_sql_path), "--format", "yaml"], capsys)
        assert code == 0
        data = yaml.safe_load(out)
        assert data["dialect"] == "postgresql"
        assert data["resources"][0]["path"] == "/users"

    def test_output_file(
        self,
        blog_sql_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        target = tmp_path / "out" / "api.json"
        code, out, _ = _run([str(blog_sql_path), "-o", str(target)], capsys)
        assert code == 0
        assert out == ""
        assert json.loads(target.read_text(encoding="utf-8"))["relationship_mode"] == "reference"

    def test_emit_model(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        _, out, _ = _run([str(blog_sql_path), "--emit", "model"], capsys)
        data = json.loads(out)
        assert [t["name"] for t in data["tables"]] == ["users", "posts", "tags", "post_tags"]

    def test_emit_both(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        _, out, _ = _run([str(blog_sql_path), "--emit", "both"], capsys)
        data = json.loads(out)
        assert list(data) == ["model", "descriptor"]
        assert len(data["descriptor"]["resources"]) == 3

    def test_listing(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, out, _ = _run([str(blog_sql_path), "--listing"], capsys)
        assert code == 0
        assert out.startswith("TABLE public.users\n")
        assert "TABLE public.post_tags [junction]" in out

    def test_validate_only(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, out, _ = _run([str(blog_sql_path), "--validate-only"], capsys)
        assert code == 0
        assert "SUCCESS" in out
        assert "resources" not in out

    def test_stdin(
        self,
        blog_ddl: str,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        monkeypatch.setattr("sys.stdin", io.StringIO(blog_ddl))
        code, out, _ = _run(["-"], capsys)
        assert code == 0
        assert len(json.loads(out)["resources"]) == 3

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        code, out, _ = _run(["--version"], capsys)
        assert code == 0
        assert out.startswith("ddlapi v")


# ===========================================================================
# Configuration
# ===========================================================================


class TestConfiguration:
    """Tests for config files and overrides."""

    def test_config_file(
        self,
        blog_sql_path: pathlib.Path,
        config_yaml_path: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _, out, _ = _run([str(blog_sql_path), "-c", str(config_yaml_path)], capsys)
        data = json.loads(out)
        assert data["naming_strategy"] == "singular"
        assert data["relationship_mode"] == "embed"
        assert data["resources"][0]["name"] == "user"

    def test_override_beats_config_file(
        self,
        blog_sql_path: pathlib.Path,
        config_yaml_path: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        _, out, _ = _run(
            [str(blog_sql_path), "-c", str(config_yaml_path), "--naming-strategy", "plural"],
            capsys,
        )
        assert json.loads(out)["naming_strategy"] == "plural"

    def test_dialect_option(self, tmp_path: pathlib.Path, mysql_ddl: str, capsys: pytest.CaptureFixture[str]) -> None:
        path = _sql_file(tmp_path, "shop.sql", mysql_ddl)
        code, out, _ = _run([path, "-d", "mariadb"], capsys)
        assert code == 0
        assert json.loads(out)["dialect"] == "mysql"


# ===========================================================================
# Exit codes
# ===========================================================================


class TestExitCodes:
    """Tests for the documented exit codes."""

    def test_unknown_dialect(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = _run([str(blog_sql_path), "-d", "oracle"], capsys)
        assert code == 4
        assert "Invalid configuration" in err

    def test_unknown_argument(self, blog_sql_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = _run([str(blog_sql_path), "--frobnicate"], capsys)
        assert code == 4
        assert "unrecognized arguments" in err

    def test_missing_config_file(
        self,
        blog_sql_path: pathlib.Path,
        tmp_path: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        code, _, _ = _run([str(blog_sql_path), "-c", str(tmp_path / "none.yaml")], capsys)
        assert code == 4

    def test_missing_input_file(self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        code, _, err = _run([str(tmp_path / "none.sql")], capsys)
        assert code == 4
        assert "error[INPUT_ERROR]" in err

    def test_model_error(self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _sql_file(
            tmp_path,
            "posts.sql",
            "CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id));",
        )
        code, out, err = _run([path], capsys)
        assert code == 1
        assert out == ""
        assert "error[UNKNOWN_REFERENCED_TABLE]" in err

    def test_parse_error(self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _sql_file(tmp_path, "bad.sql", "CREATE TABLE t (id INT PRIMARY KEY); CREATE TABLE (;")
        code, _, err = _run([path], capsys)
        assert code == 2
        assert "error[PARSE_ERROR]" in err

    def test_warnings_fail_on_request(self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _sql_file(tmp_path, "log.sql", "CREATE TABLE log (msg TEXT);")
        assert _run([path], capsys)[0] == 0
        code, _, err = _run([path, "--fail-on-warnings"], capsys)
        assert code == 3
        assert "warning[NO_IDENTITY]" in err

    def test_quiet_hides_warnings(self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]) -> None:
        path = _sql_file(tmp_path, "log.sql", "CREATE TABLE log (msg TEXT);")
        _, _, err = _run([path, "-q"], capsys)
        assert "warning[" not in err
