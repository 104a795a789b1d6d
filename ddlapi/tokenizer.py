# File: ddlapi/tokenizer.py
"""
ddlapi - Dialect-Aware SQL Tokenizer
======================================
Turns raw DDL text into a lazy stream of ``Token`` objects.

    Tokenizer(text, "postgresql")  →  Token, Token, Token, ...

The tokenizer is its own iterator: it is finite and cannot be restarted
(create a fresh one per input).  Scanning happens in two layers:

1. ``_scan`` walks the text once, skipping whitespace and comments and
   producing raw tokens with exact positions;
2. ``_merge_phrases`` folds multi-word keywords (``NOT NULL``,
   ``PRIMARY KEY``, ``TIMESTAMP WITH TIME ZONE`` ...) into a single token,
   longest match first, keeping the exact source slice as its text.

Unknown identifiers are never an error here.  Unterminated strings, quoted
identifiers, dollar quotes and block comments raise ``LexError``.  Any other
character becomes a one-character operator token and is left to the parser.

Complexity: O(n) in the length of the input.
"""

from __future__ import annotations

import bisect
import logging
import re
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Iterator, List, Optional, Tuple, Union

from ddlapi.diagnostics import SourcePosition
from ddlapi.dialects import Dialect, DialectGrammar, get_grammar
from ddlapi.errors import LexError

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.tokenizer")


class TokenKind(str, Enum):
    """Lexical categories; STRING and NUMBER are the literal kinds."""

    KEYWORD = "keyword"
    IDENTIFIER = "identifier"
    STRING = "string"
    NUMBER = "number"
    OPERATOR = "operator"
    PUNCTUATION = "punctuation"


@dataclass(frozen=True, slots=True)
class Token:
    """
    One lexical token.

    ``text`` is the exact source slice; ``value`` is the normalized form
    (keywords upper-cased and single-spaced, quoted identifiers unquoted,
    strings unescaped, unquoted identifiers folded per dialect).
    """

    kind: TokenKind
    text: str
    value: str
    position: SourcePosition
    quoted: bool = False

    @property
    def end_offset(self) -> int:
        return self.position.offset + len(self.text)

    @property
    def is_literal(self) -> bool:
        return self.kind in (TokenKind.STRING, TokenKind.NUMBER)

    @property
    def is_word(self) -> bool:
        return self.kind in (TokenKind.KEYWORD, TokenKind.IDENTIFIER)

    def is_keyword(self, *values: str) -> bool:
        return self.kind == TokenKind.KEYWORD and self.value in values

    def is_punct(self, value: str) -> bool:
        return self.kind == TokenKind.PUNCTUATION and self.value == value

    def is_operator(self, *values: str) -> bool:
        return self.kind == TokenKind.OPERATOR and self.value in values

    def __repr__(self) -> str:
        return f"<Token {self.kind.value} {self.text!r} @{self.position}>"


# ---------------------------------------------------------------------------
# Pre-compiled patterns
# ---------------------------------------------------------------------------

_WORD_RE: re.Pattern[str] = re.compile(r"[^\W\d][\w$]*")
_NUMBER_RE: re.Pattern[str] = re.compile(
    r"0[xX][0-9a-fA-F]+|(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?"
)
_DOLLAR_TAG_RE: re.Pattern[str] = re.compile(r"\$(?:[^\W\d]\w*)?\$")

_OPERATORS: Tuple[str, ...] = (
    "->>", "#>>", "::", "<=", ">=", "<>", "!=", "||", "->", "#>", "@>", "<@", "@@", "?|", "?&",
    "=", "<", ">", "+", "-", "*", "/", "%", "~", "&", "|", "^",
)
_PUNCTUATION: str = "(),;.[]"

_BACKSLASH_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0", "b": "\b", "Z": "\x1a"}

# single-letter prefixes that turn a following quote into a string literal
_STRING_PREFIXES: Tuple[str, ...] = ("E", "N", "X", "B")


class Tokenizer:
    """
    Lazy tokenizer over one input text.

    Usage::

        for token in Tokenizer("CREATE TABLE t (id INT);", "sqlite"):
            print(token.kind, token.value)
    """

    def __init__(
        self,
        text: str,
        dialect: Union[str, Dialect, DialectGrammar] = Dialect.POSTGRESQL,
        *,
        source: Optional[str] = None,
    ) -> None:
        self._text: str = text
        self._grammar: DialectGrammar = get_grammar(dialect)
        self._source: Optional[str] = source
        self._pos: int = 0
        self._line_starts: List[int] = [0]
        self._line_starts.extend(
            index + 1 for index, ch in enumerate(text) if ch == "\n"
        )
        self._stream: Iterator[Token] = self._merge_phrases(self._scan())

    @property
    def grammar(self) -> DialectGrammar:
        return self._grammar

    @property
    def text(self) -> str:
        return self._text

    def __iter__(self) -> "Tokenizer":
        return self

    def __next__(self) -> Token:
        return next(self._stream)

    # -----------------------------------------------------------------
    # Positions
    # -----------------------------------------------------------------

    def _position(self, offset: int) -> SourcePosition:
        line_index: int = bisect.bisect_right(self._line_starts, offset) - 1
        return SourcePosition(
            line=line_index + 1,
            column=offset - self._line_starts[line_index] + 1,
            offset=offset,
        )

    def _error(self, message: str, offset: int, character: Optional[str]) -> LexError:
        return LexError(
            message,
            position=self._position(offset),
            character=character,
            source=self._source,
        )

    # -----------------------------------------------------------------
    # Layer 1: raw scanning
    # -----------------------------------------------------------------

    def _scan(self) -> Iterator[Token]:
        text: str = self._text
        length: int = len(text)
        grammar: DialectGrammar = self._grammar

        while True:
            self._skip_trivia()
            if self._pos >= length:
                return

            start: int = self._pos
            ch: str = text[start]

            if ch in grammar.identifier_quotes:
                yield self._read_quoted_identifier(start, ch)
            elif ch in grammar.string_quotes:
                yield self._read_string(start, start, ch, grammar.backslash_escapes)
            elif ch == "$" and grammar.dollar_quoting:
                yield self._read_dollar_string(start)
            elif ch.isdigit() or (ch == "." and text[start + 1:start + 2].isdigit()):
                match = _NUMBER_RE.match(text, start)
                assert match is not None
                self._pos = match.end()
                yield Token(TokenKind.NUMBER, match.group(), match.group(), self._position(start))
            elif ch.isalpha() or ch == "_":
                yield self._read_word(start)
            else:
                operator: Optional[str] = next(
                    (op for op in _OPERATORS if text.startswith(op, start)), None
                )
                if operator is not None:
                    self._pos = start + len(operator)
                    yield Token(TokenKind.OPERATOR, operator, operator, self._position(start))
                elif ch in _PUNCTUATION:
                    self._pos = start + 1
                    yield Token(TokenKind.PUNCTUATION, ch, ch, self._position(start))
                else:
                    # placeholders and vendor operators (@var, ?, :name, #)
                    self._pos = start + 1
                    yield Token(TokenKind.OPERATOR, ch, ch, self._position(start))

    def _skip_trivia(self) -> None:
        text: str = self._text
        length: int = len(text)
        while self._pos < length:
            ch: str = text[self._pos]
            if ch.isspace():
                self._pos += 1
            elif text.startswith("--", self._pos) or (
                ch == "#" and self._grammar.hash_comments
            ):
                newline: int = text.find("\n", self._pos)
                self._pos = length if newline == -1 else newline + 1
            elif text.startswith("/*", self._pos):
                close: int = text.find("*/", self._pos + 2)
                if close == -1:
                    raise self._error("Unterminated block comment", self._pos, "/*")
                self._pos = close + 2
            else:
                return

    def _read_word(self, start: int) -> Token:
        text: str = self._text
        match = _WORD_RE.match(text, start)
        assert match is not None
        word: str = match.group()
        end: int = match.end()

        # E'..', N'..', X'..', B'..'
        if (
            len(word) == 1
            and word.upper() in _STRING_PREFIXES
            and text[end:end + 1] == "'"
        ):
            backslash: bool = word.upper() == "E" or self._grammar.backslash_escapes
            return self._read_string(start, end, "'", backslash)

        self._pos = end
        position: SourcePosition = self._position(start)
        if self._grammar.is_keyword(word):
            return Token(TokenKind.KEYWORD, word, word.upper(), position)
        return Token(
            TokenKind.IDENTIFIER,
            word,
            self._grammar.normalize_identifier(word),
            position,
        )

    def _read_string(self, start: int, quote_at: int, quote: str, backslash: bool) -> Token:
        text: str = self._text
        length: int = len(text)
        chars: List[str] = []
        i: int = quote_at + 1
        while i < length:
            c: str = text[i]
            if backslash and c == "\\" and i + 1 < length:
                escaped: str = text[i + 1]
                chars.append(_BACKSLASH_ESCAPES.get(escaped, escaped))
                i += 2
                continue
            if c == quote:
                if text[i + 1:i + 2] == quote:
                    chars.append(quote)
                    i += 2
                    continue
                self._pos = i + 1
                return Token(
                    TokenKind.STRING,
                    text[start:self._pos],
                    "".join(chars),
                    self._position(start),
                )
            chars.append(c)
            i += 1
        raise self._error("Unterminated string literal", start, quote)

    def _read_quoted_identifier(self, start: int, opening: str) -> Token:
        text: str = self._text
        closing: str = self._grammar.identifier_quotes[opening]
        chars: List[str] = []
        i: int = start + 1
        while i < len(text):
            c: str = text[i]
            if c == closing:
                if text[i + 1:i + 2] == closing:
                    chars.append(closing)
                    i += 2
                    continue
                self._pos = i + 1
                return Token(
                    TokenKind.IDENTIFIER,
                    text[start:self._pos],
                    "".join(chars),
                    self._position(start),
                    quoted=True,
                )
            chars.append(c)
            i += 1
        raise self._error("Unterminated quoted identifier", start, opening)

    def _read_dollar_string(self, start: int) -> Token:
        text: str = self._text
        match = _DOLLAR_TAG_RE.match(text, start)
        if match is None:
            self._pos = start + 1
            return Token(TokenKind.OPERATOR, "$", "$", self._position(start))
        tag: str = match.group()
        close: int = text.find(tag, match.end())
        if close == -1:
            raise self._error("Unterminated dollar-quoted string", start, tag)
        self._pos = close + len(tag)
        return Token(
            TokenKind.STRING,
            text[start:self._pos],
            text[match.end():close],
            self._position(start),
        )

    # -----------------------------------------------------------------
    # Layer 2: multi-word keywords
    # -----------------------------------------------------------------

    def _merge_phrases(self, raw: Iterator[Token]) -> Iterator[Token]:
        buffer: Deque[Token] = deque()
        exhausted: bool = False

        while True:
            if not buffer:
                if exhausted:
                    return
                first: Optional[Token] = next(raw, None)
                if first is None:
                    return
                buffer.append(first)

            head: Token = buffer[0]
            candidates: Tuple[Tuple[str, ...], ...] = ()
            if head.is_word and not head.quoted:
                candidates = self._grammar.phrases_starting_with(head.text)

            if candidates:
                wanted: int = len(candidates[0])
                while len(buffer) < wanted and not exhausted:
                    nxt: Optional[Token] = next(raw, None)
                    if nxt is None:
                        exhausted = True
                    else:
                        buffer.append(nxt)
                size: int = self._match_phrase(buffer, candidates)
                if size:
                    words: List[Token] = [buffer.popleft() for _ in range(size)]
                    yield Token(
                        TokenKind.KEYWORD,
                        self._text[words[0].position.offset:words[-1].end_offset],
                        " ".join(w.text.upper() for w in words),
                        words[0].position,
                    )
                    continue

            yield buffer.popleft()

    @staticmethod
    def _match_phrase(buffer: Deque[Token], candidates: Tuple[Tuple[str, ...], ...]) -> int:
        for phrase in candidates:
            if len(buffer) < len(phrase):
                continue
            if all(
                buffer[i].is_word
                and not buffer[i].quoted
                and buffer[i].text.upper() == word
                for i, word in enumerate(phrase)
            ):
                return len(phrase)
        return 0


def tokenize(
    text: str,
    dialect: Union[str, Dialect, DialectGrammar] = Dialect.POSTGRESQL,
    *,
    source: Optional[str] = None,
) -> List[Token]:
    """Eagerly tokenize *text*; convenience wrapper used by tests and tools."""
    tokens: List[Token] = list(Tokenizer(text, dialect, source=source))
    logger.debug("Tokenized %s: %d tokens.", source or "<input>", len(tokens))
    return tokens


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Token",
    "TokenKind",
    "Tokenizer",
    "tokenize",
]

logger.debug("ddlapi.tokenizer loaded — %d public symbols.", len(__all__))
