"""
tests/test_diagnostics.py
Unit tests for ddlapi.diagnostics and ddlapi.errors.

Tests cover:
- Diagnostic formatting and locations
- The Diagnostics collector (add, report helpers, queries, merge)
- Summary and report text
- Exception to diagnostic conversion for every error class
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from ddlapi.diagnostics import Diagnostic, Diagnostics, Severity, SourcePosition, Stage
from ddlapi.errors import DdlApiError, InferenceWarning, LexError, ModelError, ParseError


def _filled() -> Diagnostics:
    diagnostics = Diagnostics()
    diagnostics.error(Stage.MODEL, "UNKNOWN_REFERENCED_TABLE", "no table 'ghost'", source="a.sql")
    diagnostics.warning(Stage.PARSE, "MISSING_SEMICOLON", "Missing ';'", position=SourcePosition(3, 7, 40))
    diagnostics.info(Stage.MODEL, "DROP_SKIPPED", "skipped")
    diagnostics.error(Stage.LEX, "LEX_ERROR", "bad char")
    return diagnostics


# ===========================================================================
# Diagnostic
# ===========================================================================


class TestDiagnostic:
    """Tests for the Diagnostic record."""

    def test_str_with_full_location(self) -> None:
        diagnostic = Diagnostic(
            severity=Severity.ERROR,
            stage=Stage.PARSE,
            code="PARSE_ERROR",
            message="Expected ')'",
            source="schema.sql",
            line=4,
            column=12,
        )
        assert str(diagnostic) == "schema.sql:4:12: error[PARSE_ERROR]: Expected ')'"

    def test_location_without_position(self) -> None:
        diagnostic = Diagnostic(severity="warning", stage="inference", code="NO_IDENTITY", message="m")
        assert diagnostic.location == "<input>"
        assert diagnostic.is_warning
        assert not diagnostic.is_error

    def test_is_frozen_and_strict(self) -> None:
        diagnostic = Diagnostic(severity="info", stage="model", code="X", message="m")
        with pytest.raises(ValidationError):
            diagnostic.code = "Y"  # type: ignore[misc]
        with pytest.raises(ValidationError):
            Diagnostic(severity="fatal", stage="model", code="X", message="m")
        with pytest.raises(ValidationError):
            Diagnostic(severity="info", stage="model", code="", message="m")


# ===========================================================================
# Diagnostics collector
# ===========================================================================


class TestDiagnostics:
    """Tests for the Diagnostics accumulator."""

    def test_empty(self) -> None:
        diagnostics = Diagnostics()
        assert len(diagnostics) == 0
        assert diagnostics.is_valid
        assert not diagnostics.has_errors
        assert not diagnostics.has_warnings

    def test_counts_and_filters(self) -> None:
        diagnostics = _filled()
        assert len(diagnostics) == 4
        assert diagnostics.error_count == 2
        assert diagnostics.warning_count == 1
        assert [d.code for d in diagnostics.model_errors] == ["UNKNOWN_REFERENCED_TABLE"]
        assert [d.code for d in diagnostics.by_stage(Stage.MODEL)] == [
            "UNKNOWN_REFERENCED_TABLE",
            "DROP_SKIPPED",
        ]
        assert diagnostics.with_code("LEX_ERROR")[0].message == "bad char"
        assert diagnostics.counts_by_stage() == {"model": 2, "parse": 1, "lex": 1}
        assert not diagnostics.is_valid

    def test_report_positions(self) -> None:
        warning = _filled().warnings[0]
        assert (warning.line, warning.column) == (3, 7)
        assert str(warning) == "<input>:3:7: warning[MISSING_SEMICOLON]: Missing ';'"

    def test_order_is_preserved(self) -> None:
        assert [d.code for d in _filled()] == [
            "UNKNOWN_REFERENCED_TABLE",
            "MISSING_SEMICOLON",
            "DROP_SKIPPED",
            "LEX_ERROR",
        ]

    def test_merge_and_extend(self) -> None:
        target = Diagnostics()
        target.info(Stage.INPUT, "FIRST", "first")
        target.merge(_filled())
        target.extend(_filled().errors)
        assert len(target) == 7
        assert target.items[0].code == "FIRST"

    def test_summary_and_report(self) -> None:
        diagnostics = _filled()
        assert diagnostics.summary() == "Diagnostics: 2 error(s), 1 warning(s), 4 total item(s)."
        report = diagnostics.format_report()
        assert "DROP_SKIPPED" not in report
        assert "DROP_SKIPPED" in diagnostics.format_report(include_info=True)
        assert report.splitlines()[1] == "  a.sql: error[UNKNOWN_REFERENCED_TABLE]: no table 'ghost'"


# ===========================================================================
# Errors
# ===========================================================================


class TestErrors:
    """Tests for exception classes and their diagnostics."""

    def test_lex_error(self) -> None:
        exc = LexError("Unexpected character '@'", position=SourcePosition(2, 5, 9), character="@")
        diagnostic = exc.to_diagnostic(source="x.sql")
        assert (diagnostic.stage, diagnostic.code) == ("lex", "LEX_ERROR")
        assert (diagnostic.line, diagnostic.column, diagnostic.source) == (2, 5, "x.sql")
        assert str(exc) == "Unexpected character '@' (at 2:5)"

    def test_parse_error_keeps_own_source(self) -> None:
        exc = ParseError("Expected '('", source="a.sql")
        diagnostic = exc.to_diagnostic()
        assert (diagnostic.stage, diagnostic.code, diagnostic.source) == ("parse", "PARSE_ERROR", "a.sql")
        assert str(exc) == "Expected '('"

    def test_model_error(self) -> None:
        exc = ModelError("DUPLICATE_TABLE", "Table 'users' is declared twice", table="users")
        diagnostic = exc.to_diagnostic()
        assert (diagnostic.stage, diagnostic.code) == ("model", "DUPLICATE_TABLE")
        assert exc.table == "users"
        assert isinstance(exc, DdlApiError)

    def test_inference_warning(self) -> None:
        warning = InferenceWarning("NO_IDENTITY", "no key")
        assert isinstance(warning, UserWarning)
        diagnostic = warning.to_diagnostic("s.sql")
        assert (diagnostic.severity, diagnostic.stage, diagnostic.source) == ("warning", "inference", "s.sql")

    def test_error_as_warning(self) -> None:
        diagnostic = ModelError("X", "m").to_diagnostic(severity=Severity.WARNING)
        assert diagnostic.severity == "warning"
