"""
tests/test_checks.py
Unit tests for ddlapi.checks.translate_check.

Tests cover:
- Comparison operators, mirrored comparisons and literal kinds
- BETWEEN, IN lists, = ANY (ARRAY[...]) and IS NOT NULL
- AND conjunctions at any parenthesis depth
- Opaque fallback with an UNTRANSLATED_CHECK warning
"""

from __future__ import annotations

from typing import Any, List, Sequence, Tuple

import pytest

from ddlapi.checks import CheckTranslation, translate_check
from ddlapi.descriptor import RuleKind
from ddlapi.dialects import get_grammar

COLUMNS: Sequence[str] = ("id", "age", "price", "qty", "status", "active", "email", "rate")
POSTGRES = get_grammar("postgresql")


def _translate(expression: str, **kwargs: Any) -> CheckTranslation:
    return translate_check(expression, COLUMNS, POSTGRES, **kwargs)


def _summary(translation: CheckTranslation) -> List[Tuple[str, Tuple[str, ...], Any]]:
    return [(r.kind, r.field_names, r.value) for r in translation.rules]


# ===========================================================================
# Comparisons
# ===========================================================================


class TestComparisons:
    """Tests for single comparison terms."""

    @pytest.mark.parametrize(
        "expression, kind, value",
        [
            ("age > 0", RuleKind.EXCLUSIVE_MINIMUM, 0),
            ("age >= 18", RuleKind.MINIMUM, 18),
            ("qty < 1000", RuleKind.EXCLUSIVE_MAXIMUM, 1000),
            ("rate <= 1.5", RuleKind.MAXIMUM, 1.5),
            ("status = 'open'", RuleKind.CONST, "open"),
            ("status <> 'deleted'", RuleKind.NOT_EQUAL, "deleted"),
            ("status != 'deleted'", RuleKind.NOT_EQUAL, "deleted"),
            ("active = TRUE", RuleKind.CONST, True),
            ("price > -5", RuleKind.EXCLUSIVE_MINIMUM, -5),
            ("price >= 0::numeric(10,2)", RuleKind.MINIMUM, 0),
            ("(price >= (0))", RuleKind.MINIMUM, 0),
        ],
    )
    def test_operator_forms(self, expression: str, kind: RuleKind, value: Any) -> None:
        translation = _translate(expression)
        assert translation.translated, f"{expression!r} should translate"
        assert len(translation.rules) == 1
        rule = translation.rules[0]
        assert rule.kind == kind
        assert rule.value == value
        assert rule.expression == expression
        assert rule.translated

    def test_mirrored_comparison(self) -> None:
        translation = _translate("0 < qty")
        assert _summary(translation) == [(RuleKind.EXCLUSIVE_MINIMUM, ("qty",), 0)]

    def test_message_names_field_and_bound(self) -> None:
        rule = _translate("age >= 13").rules[0]
        assert rule.message == "age must be greater than or equal to 13"


# ===========================================================================
# Other forms
# ===========================================================================


class TestOtherForms:
    """Tests for BETWEEN, IN, ANY(ARRAY) and IS NOT NULL."""

    def test_between(self) -> None:
        translation = _translate("age BETWEEN 13 AND 130")
        assert _summary(translation) == [
            (RuleKind.MINIMUM, ("age",), 13),
            (RuleKind.MAXIMUM, ("age",), 130),
        ]

    def test_in_list(self) -> None:
        translation = _translate("status IN ('active', 'banned')")
        assert _summary(translation) == [(RuleKind.ENUM, ("status",), ("active", "banned"))]
        assert translation.rules[0].message == "status must be one of ['active', 'banned']"

    def test_any_array(self) -> None:
        translation = _translate("status = ANY (ARRAY['a'::text, 'b'::text])")
        assert _summary(translation) == [(RuleKind.ENUM, ("status",), ("a", "b"))]

    def test_is_not_null(self) -> None:
        translation = _translate("email IS NOT NULL")
        assert _summary(translation) == [(RuleKind.NOT_NULL, ("email",), None)]


# ===========================================================================
# Conjunctions
# ===========================================================================


class TestConjunctions:
    """Tests for AND-joined terms."""

    def test_range_conjunction(self) -> None:
        translation = _translate("price >= 0 AND price <= 100")
        assert _summary(translation) == [
            (RuleKind.MINIMUM, ("price",), 0),
            (RuleKind.MAXIMUM, ("price",), 100),
        ]

    def test_parenthesized_terms(self) -> None:
        translation = _translate("(age > 1) AND ((qty < 2) AND rate >= 0.5)")
        assert [r.field_names[0] for r in translation.rules] == ["age", "qty", "rate"]

    def test_between_inside_conjunction(self) -> None:
        translation = _translate("age BETWEEN 1 AND 10 AND qty > 0")
        assert [r.kind for r in translation.rules] == [
            RuleKind.MINIMUM, RuleKind.MAXIMUM, RuleKind.EXCLUSIVE_MINIMUM,
        ]

    def test_multi_column_check_translates_per_term(self) -> None:
        translation = _translate("age > 0 AND qty > 0")
        assert [r.field_names for r in translation.rules] == [("age",), ("qty",)]


# ===========================================================================
# Opaque fallback
# ===========================================================================


class TestOpaque:
    """Tests for expressions outside the supported forms."""

    @pytest.mark.parametrize(
        "expression",
        [
            "length(email) > 3",
            "age > qty",
            "age > 1 OR qty > 2",
            "unknown_col > 1",
            "age > 0 AND length(email) > 3",
            "age > 1 @",
            "age",
        ],
    )
    def test_untranslatable(self, expression: str) -> None:
        translation = _translate(expression, column="age", table="public.people")
        assert not translation.translated
        assert len(translation.rules) == 1
        rule = translation.rules[0]
        assert rule.kind == RuleKind.OPAQUE
        assert rule.field_names == ("age",)
        assert rule.expression == expression
        assert rule.translated is False
        assert translation.warning is not None
        assert translation.warning.code == "UNTRANSLATED_CHECK"
        assert "public.people" in translation.warning.message

    @pytest.mark.parametrize(
        "expression",
        [
            "age > " + "(" * 1000 + "1" + ")" * 1000,
            "(" * 1000 + "age > 1" + ")" * 1000,
        ],
    )
    def test_deep_nesting_stays_opaque(self, expression: str) -> None:
        translation = _translate(expression, column="age")
        assert not translation.translated
        assert translation.rules[0].kind == RuleKind.OPAQUE
        assert translation.warning.code == "UNTRANSLATED_CHECK"

    def test_moderate_nesting_translates(self) -> None:
        translation = _translate("age > " + "(" * 10 + "1" + ")" * 10)
        assert _summary(translation) == [(RuleKind.EXCLUSIVE_MINIMUM, ("age",), 1)]

    def test_table_level_opaque_rule_has_no_field(self) -> None:
        translation = _translate("length(email) > 3")
        assert translation.rules[0].field_names == ()

    def test_warning_becomes_inference_diagnostic(self) -> None:
        warning = _translate("age > qty").warning
        diagnostic = warning.to_diagnostic("schema.sql")
        assert diagnostic.stage == "inference"
        assert diagnostic.severity == "warning"
        assert diagnostic.source == "schema.sql"


# ===========================================================================
# Dialects
# ===========================================================================


class TestDialectNames:
    """Tests for column-name matching per dialect."""

    def test_mysql_matches_case_insensitively(self) -> None:
        translation = translate_check("`QTY` > 0", ["qty"], get_grammar("mysql"))
        assert _summary(translation) == [(RuleKind.EXCLUSIVE_MINIMUM, ("qty",), 0)]

    def test_postgres_folds_unquoted_names(self) -> None:
        translation = translate_check("QTY > 0", ["qty"], POSTGRES)
        assert translation.translated
        assert translation.rules[0].field_names == ("qty",)
