"""
tests/test_tokenizer.py
Unit tests for ddlapi.tokenizer.

Tests cover:
- Token kinds and normalized values
- Multi-word keyword merging (longest match, exact source slice)
- Identifier quoting and per-dialect case folding
- String literals, escapes and dollar quoting
- Comment skipping per dialect
- Source positions
- LexError for unterminated constructs
"""

from __future__ import annotations

from typing import List

import pytest

from ddlapi.errors import LexError
from ddlapi.tokenizer import Token, TokenKind, Tokenizer, tokenize


def _values(tokens: List[Token]) -> List[str]:
    return [t.value for t in tokens]


# ===========================================================================
# Basic token kinds
# ===========================================================================


class TestTokenKinds:
    """Tests for the lexical categories produced by the scanner."""

    def test_simple_create_table(self) -> None:
        tokens = tokenize("CREATE TABLE t (id INT);")
        assert [t.kind for t in tokens] == [
            TokenKind.KEYWORD,
            TokenKind.KEYWORD,
            TokenKind.IDENTIFIER,
            TokenKind.PUNCTUATION,
            TokenKind.IDENTIFIER,
            TokenKind.IDENTIFIER,
            TokenKind.PUNCTUATION,
            TokenKind.PUNCTUATION,
        ]
        assert _values(tokens) == ["CREATE", "TABLE", "t", "(", "id", "int", ")", ";"]

    def test_keywords_are_upper_cased(self) -> None:
        tokens = tokenize("create table")
        assert _values(tokens) == ["CREATE", "TABLE"]
        assert [t.text for t in tokens] == ["create", "table"]

    @pytest.mark.parametrize("text", ["1", "2.5", ".5", "1e3", "3.0E-2", "0x1F"])
    def test_numbers(self, text: str) -> None:
        tokens = tokenize(text)
        assert len(tokens) == 1
        assert tokens[0].kind == TokenKind.NUMBER
        assert tokens[0].text == text

    def test_operators(self) -> None:
        tokens = tokenize("a::text >= b <> c != d")
        operators = [t.value for t in tokens if t.kind == TokenKind.OPERATOR]
        assert operators == ["::", ">=", "<>", "!="]

    def test_vendor_operators(self) -> None:
        tokens = tokenize("tags @> x AND doc ->> 'k' AND y <@ z AND @@flag")
        operators = [t.value for t in tokens if t.kind == TokenKind.OPERATOR]
        assert operators == ["@>", "->>", "<@", "@@"]

    @pytest.mark.parametrize("character", ["@", "?", ":", "{", "$"])
    def test_unknown_punctuation_is_an_operator(self, character: str) -> None:
        tokens = tokenize(f"CREATE TABLE t (id INT) {character}")
        last = tokens[-1]
        assert (last.kind, last.value) == (TokenKind.OPERATOR, character)
        assert last.position.column == 25

    def test_literal_and_word_helpers(self) -> None:
        string, number, word = tokenize("'x' 42 name")
        assert string.is_literal and number.is_literal
        assert not word.is_literal
        assert word.is_word

    def test_empty_input(self) -> None:
        assert tokenize("") == []
        assert tokenize("   \n\t ") == []


# ===========================================================================
# Multi-word keywords
# ===========================================================================


class TestPhraseMerging:
    """Tests for folding keyword sequences into one token."""

    def test_not_null_is_one_token(self) -> None:
        tokens = tokenize("x INT NOT NULL")
        assert tokens[-1].kind == TokenKind.KEYWORD
        assert tokens[-1].value == "NOT NULL"

    def test_longest_match_wins(self) -> None:
        tokens = tokenize("created_at timestamp  with time zone")
        assert len(tokens) == 2
        assert tokens[1].value == "TIMESTAMP WITH TIME ZONE"

    def test_text_keeps_exact_source_slice(self) -> None:
        tokens = tokenize("PRIMARY\n   KEY")
        assert len(tokens) == 1
        assert tokens[0].value == "PRIMARY KEY"
        assert tokens[0].text == "PRIMARY\n   KEY"

    def test_three_word_phrase(self) -> None:
        tokens = tokenize("CREATE TABLE IF NOT EXISTS t")
        assert _values(tokens) == ["CREATE", "TABLE", "IF NOT EXISTS", "t"]

    def test_quoted_words_are_not_merged(self) -> None:
        tokens = tokenize('x "not" NULL')
        assert len(tokens) == 3
        assert tokens[1].quoted
        assert tokens[2].value == "NULL"

    def test_partial_phrase_at_end_of_input(self) -> None:
        tokens = tokenize("a NOT")
        assert _values(tokens) == ["a", "NOT"]

    def test_dialect_specific_phrase(self) -> None:
        mysql = tokenize("UNIQUE KEY uq (a)", "mysql")
        postgres = tokenize("UNIQUE KEY uq (a)", "postgresql")
        assert mysql[0].value == "UNIQUE KEY"
        assert _values(postgres)[:2] == ["UNIQUE", "KEY"]


# ===========================================================================
# Identifiers
# ===========================================================================


class TestIdentifiers:
    """Tests for quoting and case folding."""

    def test_postgres_folds_unquoted_identifiers(self) -> None:
        tokens = tokenize('Users "Mixed Case"')
        assert tokens[0].value == "users"
        assert tokens[0].text == "Users"
        assert tokens[1].value == "Mixed Case"
        assert tokens[1].quoted

    def test_mysql_keeps_identifier_case(self) -> None:
        tokens = tokenize("Users", "mysql")
        assert tokens[0].value == "Users"

    def test_mysql_backticks_with_escaped_quote(self) -> None:
        tokens = tokenize("`a``b`", "mysql")
        assert tokens[0].kind == TokenKind.IDENTIFIER
        assert tokens[0].value == "a`b"
        assert tokens[0].quoted

    def test_sqlite_bracket_quotes(self) -> None:
        tokens = tokenize("[order id]", "sqlite")
        assert tokens[0].value == "order id"
        assert tokens[0].quoted

    def test_quoted_keyword_is_identifier(self) -> None:
        tokens = tokenize('"table"')
        assert tokens[0].kind == TokenKind.IDENTIFIER
        assert tokens[0].value == "table"


# ===========================================================================
# Strings and comments
# ===========================================================================


class TestStringsAndComments:
    """Tests for literal unescaping and comment handling."""

    def test_doubled_quote_is_unescaped(self) -> None:
        tokens = tokenize("'it''s'")
        assert tokens[0].kind == TokenKind.STRING
        assert tokens[0].value == "it's"
        assert tokens[0].text == "'it''s'"

    def test_mysql_backslash_escapes(self) -> None:
        tokens = tokenize("'it\\'s'", "mysql")
        assert tokens[0].value == "it's"

    def test_postgres_escape_string_prefix(self) -> None:
        tokens = tokenize("E'a\\nb'")
        assert len(tokens) == 1
        assert tokens[0].value == "a\nb"

    def test_dollar_quoted_string(self) -> None:
        tokens = tokenize("$$ it's $$ $fn$body$fn$")
        assert _values(tokens) == [" it's ", "body"]
        assert all(t.kind == TokenKind.STRING for t in tokens)

    def test_line_and_block_comments_are_skipped(self) -> None:
        text = "-- header\nCREATE /* inline\n comment */ TABLE"
        assert _values(tokenize(text)) == ["CREATE", "TABLE"]

    def test_hash_comments_only_in_mysql(self) -> None:
        assert _values(tokenize("# note\nCREATE", "mysql")) == ["CREATE"]
        first = tokenize("# note\nCREATE", "postgresql")[0]
        assert (first.kind, first.value) == (TokenKind.OPERATOR, "#")


# ===========================================================================
# Positions
# ===========================================================================


class TestPositions:
    """Tests for 1-based line/column positions."""

    def test_positions_across_lines(self) -> None:
        tokens = tokenize("CREATE TABLE t (\n  id INT\n);")
        by_value = {t.value: t for t in tokens}
        assert (by_value["CREATE"].position.line, by_value["CREATE"].position.column) == (1, 1)
        assert (by_value["id"].position.line, by_value["id"].position.column) == (2, 3)
        assert by_value["id"].position.offset == 19

    def test_position_str(self) -> None:
        token = tokenize("\n\n   x")[0]
        assert str(token.position) == "3:4"


# ===========================================================================
# Errors
# ===========================================================================


class TestLexErrors:
    """Tests for LexError reporting."""

    def test_unterminated_string(self) -> None:
        with pytest.raises(LexError) as exc_info:
            tokenize("SELECT 'abc")
        assert exc_info.value.position.line == 1
        assert exc_info.value.position.column == 8
        assert "Unterminated string" in exc_info.value.message

    def test_unterminated_quoted_identifier(self) -> None:
        with pytest.raises(LexError, match="quoted identifier"):
            tokenize('CREATE TABLE "users (id INT);')

    def test_unterminated_block_comment(self) -> None:
        with pytest.raises(LexError, match="block comment"):
            tokenize("CREATE /* never closed")

    def test_unterminated_dollar_quote(self) -> None:
        with pytest.raises(LexError, match="dollar"):
            tokenize("$tag$ body")

    def test_error_string_includes_position(self) -> None:
        with pytest.raises(LexError) as exc_info:
            tokenize("x\n  'abc", source="schema.sql")
        assert str(exc_info.value).endswith("(at 2:3)")
        diagnostic = exc_info.value.to_diagnostic()
        assert diagnostic.stage == "lex"
        assert diagnostic.code == "LEX_ERROR"
        assert diagnostic.source == "schema.sql"

    def test_tokenizer_is_lazy(self) -> None:
        stream = Tokenizer("CREATE TABLE t 'abc", "postgresql")
        assert next(stream).value == "CREATE"
        assert next(stream).value == "TABLE"
        with pytest.raises(LexError):
            list(stream)
