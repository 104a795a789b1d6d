# File: ddlapi/checks.py
"""
ddlapi - CHECK Constraint Translation
======================================
Turns simple ``CHECK`` expressions into field validation rules.

Translated forms (``lit`` is a number, string or boolean literal, optionally
parenthesized and/or cast with ``::type``)::

    col >  lit      → exclusive_minimum      lit <  col  (mirrored)
    col >= lit      → minimum                col BETWEEN lo AND hi
    col <  lit      → exclusive_maximum          → minimum + maximum
    col <= lit      → maximum                col IN (lit, ...)  → enum
    col =  lit      → const                  col = ANY (ARRAY[lit, ...]) → enum
    col <> lit      → not_equal              col IS NOT NULL → not_null

Conjunctions with ``AND`` (at any parenthesis depth) translate term by
term.  A CHECK is translated as a whole or not at all: if any term falls
outside these forms the result is a single ``opaque`` rule carrying the
verbatim expression plus an ``InferenceWarning``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ddlapi.descriptor import RuleKind, ValidationRule
from ddlapi.dialects import DialectGrammar
from ddlapi.errors import InferenceWarning, LexError
from ddlapi.tokenizer import Token, TokenKind, Tokenizer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.checks")

_RULE_FOR_OPERATOR: Dict[str, RuleKind] = {
    ">": RuleKind.EXCLUSIVE_MINIMUM,
    ">=": RuleKind.MINIMUM,
    "<": RuleKind.EXCLUSIVE_MAXIMUM,
    "<=": RuleKind.MAXIMUM,
    "=": RuleKind.CONST,
    "<>": RuleKind.NOT_EQUAL,
    "!=": RuleKind.NOT_EQUAL,
}

# deeper parenthesis nesting is left opaque
_MAX_NESTING: int = 64

# ``lit OP col`` is ``col MIRROR[OP] lit``
_MIRROR: Dict[str, str] = {
    ">": "<", ">=": "<=", "<": ">", "<=": ">=", "=": "=", "<>": "<>", "!=": "!=",
}

_MESSAGES: Dict[RuleKind, str] = {
    RuleKind.MINIMUM: "{field} must be greater than or equal to {value}",
    RuleKind.MAXIMUM: "{field} must be less than or equal to {value}",
    RuleKind.EXCLUSIVE_MINIMUM: "{field} must be greater than {value}",
    RuleKind.EXCLUSIVE_MAXIMUM: "{field} must be less than {value}",
    RuleKind.CONST: "{field} must equal {value}",
    RuleKind.NOT_EQUAL: "{field} must not equal {value}",
    RuleKind.ENUM: "{field} must be one of {value}",
    RuleKind.NOT_NULL: "{field} must not be null",
}


@dataclass(frozen=True, slots=True)
class CheckTranslation:
    """Rules produced for one CHECK, and the warning when it stayed opaque."""

    rules: Tuple[ValidationRule, ...]
    warning: Optional[InferenceWarning] = None

    @property
    def translated(self) -> bool:
        return self.warning is None


class _Untranslatable(Exception):
    """Raised internally when a term is outside the supported forms."""


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _matching_paren(tokens: Sequence[Token], start: int) -> int:
    depth: int = 0
    for i in range(start, len(tokens)):
        if tokens[i].is_punct("("):
            depth += 1
        elif tokens[i].is_punct(")"):
            depth -= 1
            if depth == 0:
                return i
    raise _Untranslatable("unbalanced parentheses")


def _nesting(tokens: Sequence[Token]) -> int:
    depth: int = 0
    deepest: int = 0
    for token in tokens:
        if token.is_punct("("):
            depth += 1
            deepest = max(deepest, depth)
        elif token.is_punct(")"):
            depth -= 1
    return deepest


def _unwrap(tokens: List[Token]) -> List[Token]:
    while len(tokens) >= 2 and tokens[0].is_punct("(") and _matching_paren(tokens, 0) == len(tokens) - 1:
        tokens = tokens[1:-1]
    return tokens


def _conjuncts(tokens: List[Token]) -> List[List[Token]]:
    """Split on top-level AND (the AND of a BETWEEN excluded), recursively."""
    tokens = _unwrap(tokens)
    parts: List[List[Token]] = []
    current: List[Token] = []
    depth: int = 0
    in_between: bool = False
    for token in tokens:
        if token.is_punct("("):
            depth += 1
        elif token.is_punct(")"):
            depth -= 1
        elif depth == 0 and token.is_keyword("BETWEEN"):
            in_between = True
        elif depth == 0 and token.is_keyword("AND"):
            if in_between:
                in_between = False
            else:
                parts.append(current)
                current = []
                continue
        current.append(token)
    parts.append(current)

    if len(parts) == 1:
        return parts
    flat: List[List[Token]] = []
    for part in parts:
        if not part:
            raise _Untranslatable("empty term")
        flat.extend(_conjuncts(part))
    return flat


# ---------------------------------------------------------------------------
# Translator
# ---------------------------------------------------------------------------


class _TermReader:
    """Matches one conjunct against the supported forms."""

    def __init__(self, tokens: List[Token], columns: Sequence[str], grammar: DialectGrammar) -> None:
        self.tokens: List[Token] = tokens
        self.columns: Sequence[str] = columns
        self.grammar: DialectGrammar = grammar

    def _at(self, i: int) -> Optional[Token]:
        return self.tokens[i] if i < len(self.tokens) else None

    def column(self, i: int) -> Optional[Tuple[str, int]]:
        """``col`` or ``alias.col`` at *i* → (canonical column name, next index)."""
        token: Optional[Token] = self._at(i)
        if token is None or not token.is_word or " " in token.text:
            return None
        name: str = (
            token.value if token.kind == TokenKind.IDENTIFIER
            else self.grammar.normalize_identifier(token.text)
        )
        following: Optional[Token] = self._at(i + 1)
        nxt: Optional[Token] = self._at(i + 2)
        if following is not None and following.is_punct(".") and nxt is not None and nxt.kind == TokenKind.IDENTIFIER:
            name, i = nxt.value, i + 2
        folded: str = self.grammar.fold(name)
        for column in self.columns:
            if self.grammar.fold(column) == folded:
                return column, i + 1
        return None

    def literal(self, i: int) -> Optional[Tuple[Any, int]]:
        """Literal at *i* → (python value, next index)."""
        token: Optional[Token] = self._at(i)
        if token is None:
            return None

        if token.is_punct("("):
            inner = self.literal(i + 1)
            closing: Optional[Token] = self._at(inner[1]) if inner is not None else None
            if inner is None or closing is None or not closing.is_punct(")"):
                return None
            return inner[0], self._skip_cast(inner[1] + 1)

        sign: int = 1
        if token.is_operator("-", "+"):
            sign = -1 if token.value == "-" else 1
            i += 1
            token = self._at(i)
            if token is None or token.kind != TokenKind.NUMBER:
                return None

        value: Any
        if token.kind == TokenKind.NUMBER:
            value = _number(token.text) * sign
        elif token.kind == TokenKind.STRING:
            value = token.value
        elif token.is_keyword("TRUE", "FALSE"):
            value = token.value == "TRUE"
        else:
            return None
        return value, self._skip_cast(i + 1)

    def _skip_cast(self, i: int) -> int:
        while True:
            token: Optional[Token] = self._at(i)
            following: Optional[Token] = self._at(i + 1)
            if token is None or not token.is_operator("::") or following is None or not following.is_word:
                return i
            i += 2
            # numeric(10,2) style arguments on the cast type
            after: Optional[Token] = self._at(i)
            if after is not None and after.is_punct("("):
                i = _matching_paren(self.tokens, i) + 1

    def literal_list(self, i: int, opening: str, closing: str) -> Optional[Tuple[Tuple[Any, ...], int]]:
        token: Optional[Token] = self._at(i)
        if token is None or not token.is_punct(opening):
            return None
        values: List[Any] = []
        i += 1
        while True:
            item = self.literal(i)
            if item is None:
                return None
            values.append(item[0])
            i = item[1]
            token = self._at(i)
            if token is not None and token.is_punct(","):
                i += 1
                continue
            if token is not None and token.is_punct(closing):
                return tuple(values), i + 1
            return None

    def _any_array(self, i: int) -> Optional[Tuple[Tuple[Any, ...], int]]:
        """``ANY (ARRAY[lit, ...])`` as written by pg_dump."""
        words: List[Optional[Token]] = [self._at(i), self._at(i + 1), self._at(i + 2)]
        if (
            words[0] is None or words[0].text.upper() != "ANY"
            or words[1] is None or not words[1].is_punct("(")
            or words[2] is None or words[2].text.upper() != "ARRAY"
        ):
            return None
        items = self.literal_list(i + 3, "[", "]")
        if items is None:
            return None
        end: int = self._skip_cast(items[1])
        closing: Optional[Token] = self._at(end)
        if closing is None or not closing.is_punct(")"):
            return None
        return items[0], end + 1

    def translate(self) -> List[Tuple[RuleKind, str, Any]]:
        end: int = len(self.tokens)

        found = self.column(0)
        if found is not None:
            name, i = found
            token: Optional[Token] = self._at(i)
            if token is None:
                raise _Untranslatable("bare column")

            if token.kind == TokenKind.OPERATOR and token.value in _RULE_FOR_OPERATOR:
                if token.value == "=":
                    listed = self._any_array(i + 1)
                    if listed is not None and listed[1] == end:
                        return [(RuleKind.ENUM, name, listed[0])]
                value = self.literal(i + 1)
                if value is not None and value[1] == end:
                    return [(_RULE_FOR_OPERATOR[token.value], name, value[0])]

            elif token.is_keyword("BETWEEN"):
                low = self.literal(i + 1)
                conj: Optional[Token] = self._at(low[1]) if low is not None else None
                if low is not None and conj is not None and conj.is_keyword("AND"):
                    high = self.literal(low[1] + 1)
                    if high is not None and high[1] == end:
                        return [
                            (RuleKind.MINIMUM, name, low[0]),
                            (RuleKind.MAXIMUM, name, high[0]),
                        ]

            elif token.is_keyword("IN"):
                listed = self.literal_list(i + 1, "(", ")")
                if listed is not None and listed[1] == end:
                    return [(RuleKind.ENUM, name, listed[0])]

            elif token.is_keyword("IS"):
                nxt: Optional[Token] = self._at(i + 1)
                if nxt is not None and nxt.is_keyword("NOT NULL") and i + 2 == end:
                    return [(RuleKind.NOT_NULL, name, None)]

            raise _Untranslatable("unsupported form")

        value = self.literal(0)
        if value is not None:
            token = self._at(value[1])
            if token is not None and token.kind == TokenKind.OPERATOR and token.value in _MIRROR:
                found = self.column(value[1] + 1)
                if found is not None and found[1] == end:
                    return [(_RULE_FOR_OPERATOR[_MIRROR[token.value]], found[0], value[0])]
        raise _Untranslatable("unsupported form")


def _number(text: str) -> Any:
    if text[:2].lower() == "0x":
        return int(text, 16)
    if any(ch in text for ch in ".eE"):
        return float(text)
    return int(text)


def _format_value(value: Any) -> str:
    if isinstance(value, tuple):
        return "[" + ", ".join(_format_value(v) for v in value) + "]"
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def translate_check(
    expression: str,
    columns: Sequence[str],
    grammar: DialectGrammar,
    *,
    column: Optional[str] = None,
    table: Optional[str] = None,
) -> CheckTranslation:
    """
    Translate one CHECK *expression* over the table's *columns*.

    ``column`` is set for column-level checks and is used as the field of
    the opaque rule when translation fails.

    Complexity: O(n) in the number of expression tokens.
    """
    rules: List[ValidationRule] = []
    try:
        tokens: List[Token] = list(Tokenizer(expression, grammar))
        if not tokens:
            raise _Untranslatable("empty expression")
        if _nesting(tokens) > _MAX_NESTING:
            raise _Untranslatable("parentheses nested too deeply")
        for term in _conjuncts(tokens):
            for kind, name, value in _TermReader(term, columns, grammar).translate():
                rules.append(
                    ValidationRule(
                        kind=kind,
                        field_names=(name,),
                        value=value,
                        expression=expression,
                        message=_MESSAGES[kind].format(field=name, value=_format_value(value)),
                        translated=True,
                    )
                )
    except (_Untranslatable, LexError) as exc:
        logger.debug("CHECK (%s) stays opaque: %s", expression, exc)
        where: str = f" on '{table}'" if table else ""
        warning: InferenceWarning = InferenceWarning(
            "UNTRANSLATED_CHECK",
            f"CHECK ({expression}){where} could not be translated into validation rules",
        )
        opaque: ValidationRule = ValidationRule(
            kind=RuleKind.OPAQUE,
            field_names=(column,) if column else (),
            expression=expression,
            message=f"Must satisfy CHECK ({expression})",
            translated=False,
        )
        return CheckTranslation(rules=(opaque,), warning=warning)

    return CheckTranslation(rules=tuple(rules))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "CheckTranslation",
    "translate_check",
]

logger.debug("ddlapi.checks loaded — %d public symbols.", len(__all__))
