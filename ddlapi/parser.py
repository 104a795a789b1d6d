# File: ddlapi/parser.py
"""
ddlapi - Recovering DDL Statement Parser
=========================================
Consumes a token stream and produces an ordered sequence of AST statements
(``ddlapi.ast_nodes``).

Pipeline::

    Tokenizer → segments split on ';' → _StatementReader → Statement

Recovery policy
---------------
The token stream is split into statement segments on ``;`` (and on ``GO``
batch separators for MSSQL).  Each segment is parsed on its own:

* a malformed statement raises ``ParseError`` inside the reader; the parser
  records it as an error diagnostic and moves on to the next segment, so
  later statements are never affected;
* statements the grammar does not model (``INSERT``, ``SET``,
  ``CREATE EXTENSION`` ...) are skipped with an info diagnostic;
* a ``LexError`` raised by the (lazy) tokenizer is fatal for the input and
  propagates to the caller.

Statement order is preserved exactly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from ddlapi.ast_nodes import (
    AddColumn,
    AddConstraint,
    AlterAction,
    AlterColumn,
    AlterTable,
    CheckDef,
    ColumnDef,
    CommentOn,
    ConstraintDef,
    CreateEnumType,
    CreateIndex,
    CreateTable,
    CreateView,
    DropColumn,
    DropConstraint,
    DropIndex,
    DropTable,
    DropView,
    ForeignKeyDef,
    IndexDef,
    IndexElement,
    ModifyColumn,
    PrimaryKeyDef,
    QualifiedName,
    ReferenceClause,
    RenameColumn,
    RenameTable,
    Statement,
    TypeName,
    UniqueDef,
)
from ddlapi.diagnostics import Diagnostics, SourcePosition, Stage
from ddlapi.dialects import Dialect, DialectGrammar, get_grammar
from ddlapi.errors import ParseError
from ddlapi.tokenizer import Token, TokenKind, Tokenizer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.parser")

# ---------------------------------------------------------------------------
# Grammar constants
# ---------------------------------------------------------------------------

_STATEMENT_STARTS: FrozenSet[str] = frozenset({"CREATE", "ALTER", "DROP", "COMMENT ON"})

_REFERENTIAL_ACTIONS: Tuple[str, ...] = (
    "CASCADE",
    "RESTRICT",
    "SET NULL",
    "SET DEFAULT",
    "NO ACTION",
)

# Words that end a DEFAULT expression and mark a type-less column (SQLite).
_COLUMN_CLAUSE_STARTS: FrozenSet[str] = frozenset({
    "AFTER", "AS", "AUTO_INCREMENT", "AUTOINCREMENT", "CHARACTER SET",
    "CHARSET", "CHECK", "COLLATE", "COMMENT", "CONSTRAINT", "DEFAULT",
    "DEFERRABLE", "FIRST", "GENERATED ALWAYS AS",
    "GENERATED ALWAYS AS IDENTITY", "GENERATED BY DEFAULT AS IDENTITY",
    "IDENTITY", "INITIALLY", "NOT NULL", "NULL", "ON", "ON UPDATE",
    "PRIMARY KEY", "REFERENCES", "UNIQUE", "UNIQUE KEY",
})

_TABLE_CONSTRAINT_STARTS: FrozenSet[str] = frozenset({
    "CONSTRAINT", "PRIMARY KEY", "FOREIGN KEY", "UNIQUE", "UNIQUE KEY",
    "UNIQUE INDEX", "CHECK", "EXCLUDE",
})

_MYSQL_INDEX_STARTS: FrozenSet[str] = frozenset({"KEY", "INDEX", "FULLTEXT", "SPATIAL"})


def _word(token: Optional[Token]) -> Optional[str]:
    """Upper-cased text of an unquoted word token, ``None`` for anything else."""
    if token is None or not token.is_word or token.quoted:
        return None
    return token.value if token.kind == TokenKind.KEYWORD else token.text.upper()


class _Unsupported(Exception):
    """A statement or clause outside the modeled grammar."""

    def __init__(self, what: str, position: Optional[SourcePosition]) -> None:
        super().__init__(what)
        self.what: str = what
        self.position: Optional[SourcePosition] = position


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Ordered statements parsed from one input."""

    statements: Tuple[Statement, ...]
    source: Optional[str] = None

    def __len__(self) -> int:
        return len(self.statements)

    def __iter__(self) -> Iterator[Statement]:
        return iter(self.statements)


# ---------------------------------------------------------------------------
# Statement reader (one segment)
# ---------------------------------------------------------------------------


class _StatementReader:
    """Cursor plus recursive-descent rules over the tokens of one segment."""

    def __init__(
        self,
        tokens: Sequence[Token],
        grammar: DialectGrammar,
        diagnostics: Diagnostics,
        source: Optional[str],
        text: Optional[str],
    ) -> None:
        self._tokens: Sequence[Token] = tokens
        self._grammar: DialectGrammar = grammar
        self._diagnostics: Diagnostics = diagnostics
        self._source: Optional[str] = source
        self._text: Optional[str] = text
        self.index: int = 0

    # ------------------------------------------------------------------
    # Cursor
    # ------------------------------------------------------------------

    @property
    def at_end(self) -> bool:
        return self.index >= len(self._tokens)

    def peek(self, ahead: int = 0) -> Optional[Token]:
        i: int = self.index + ahead
        return self._tokens[i] if i < len(self._tokens) else None

    def peek_word(self, ahead: int = 0) -> Optional[str]:
        return _word(self.peek(ahead))

    def peek_punct(self, value: str) -> bool:
        tok: Optional[Token] = self.peek()
        return tok is not None and tok.is_punct(value)

    def advance(self) -> Token:
        tok: Optional[Token] = self.peek()
        if tok is None:
            raise self.error("Unexpected end of statement")
        self.index += 1
        return tok

    def accept_keyword(self, *words: str) -> Optional[Token]:
        if self.peek_word() in words:
            return self.advance()
        return None

    def expect_keyword(self, *words: str) -> Token:
        tok: Optional[Token] = self.accept_keyword(*words)
        if tok is None:
            raise self.error(f"Expected {' or '.join(words)}")
        return tok

    def accept_punct(self, value: str) -> Optional[Token]:
        if self.peek_punct(value):
            return self.advance()
        return None

    def expect_punct(self, value: str) -> Token:
        tok: Optional[Token] = self.accept_punct(value)
        if tok is None:
            raise self.error(f"Expected '{value}'")
        return tok

    def accept_operator(self, value: str) -> Optional[Token]:
        tok: Optional[Token] = self.peek()
        if tok is not None and tok.is_operator(value):
            return self.advance()
        return None

    def starts_statement(self) -> bool:
        return self.peek_word() in _STATEMENT_STARTS

    def error(self, message: str) -> ParseError:
        tok: Optional[Token] = self.peek()
        if tok is None:
            last: Optional[Token] = self._tokens[-1] if self._tokens else None
            return ParseError(
                f"{message} at end of statement",
                position=last.position if last is not None else None,
                source=self._source,
            )
        return ParseError(
            f"{message}, found {tok.text!r}",
            position=tok.position,
            source=self._source,
        )

    # ------------------------------------------------------------------
    # Names, literals and verbatim text
    # ------------------------------------------------------------------

    def identifier(self, tok: Token) -> str:
        if tok.quoted or tok.kind == TokenKind.IDENTIFIER:
            return tok.value
        return self._grammar.normalize_identifier(tok.text)

    def name(self, what: str = "identifier") -> str:
        tok: Optional[Token] = self.peek()
        if tok is None or not tok.is_word or (
            tok.kind == TokenKind.KEYWORD and " " in tok.value
        ):
            raise self.error(f"Expected {what}")
        self.index += 1
        return self.identifier(tok)

    def qualified_name(self, what: str = "table name") -> QualifiedName:
        parts: List[str] = [self.name(what)]
        while self.accept_punct("."):
            parts.append(self.name(what))
        if len(parts) == 1:
            return QualifiedName(parts[0])
        return QualifiedName(parts[-1], parts[-2])

    def name_list(self, what: str) -> Tuple[QualifiedName, ...]:
        names: List[QualifiedName] = [self.qualified_name(what)]
        while self.accept_punct(","):
            names.append(self.qualified_name(what))
        return tuple(names)

    def string_literal(self) -> str:
        tok: Optional[Token] = self.peek()
        if tok is None or tok.kind != TokenKind.STRING:
            raise self.error("Expected a string literal")
        self.index += 1
        return tok.value

    def verbatim(self, tokens: Sequence[Token]) -> str:
        """Source text spanning *tokens* (single spaces when no text is known)."""
        if not tokens:
            return ""
        if self._text is not None:
            return self._text[tokens[0].position.offset:tokens[-1].end_offset]
        parts: List[str] = [tokens[0].text]
        for prev, tok in zip(tokens, tokens[1:]):
            if tok.position.offset > prev.end_offset:
                parts.append(" ")
            parts.append(tok.text)
        return "".join(parts)

    def group(self) -> List[Token]:
        """Consume ``( ... )`` and return the tokens inside it."""
        self.expect_punct("(")
        inner: List[Token] = []
        depth: int = 0
        while True:
            tok: Token = self.advance()
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                if depth == 0:
                    return inner
                depth -= 1
            inner.append(tok)

    def collect(self, stop: Callable[[Token], bool], depth: int = 0) -> List[Token]:
        """Consume tokens up to a depth-0 ``,`` / ``)`` or a token matching *stop*."""
        out: List[Token] = []
        while not self.at_end:
            tok: Token = self._tokens[self.index]
            if depth == 0 and (tok.is_punct(",") or tok.is_punct(")") or stop(tok)):
                break
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                depth -= 1
            out.append(tok)
            self.index += 1
        return out

    def expression(self, stop_words: FrozenSet[str]) -> str:
        """A verbatim expression; the first token is always part of it."""
        start: int = self.index
        first: Token = self.advance()
        if first.is_punct(",") or first.is_punct(")"):
            self.index = start
            raise self.error("Expected an expression")
        self.collect(
            lambda t: _word(t) in stop_words,
            depth=1 if first.is_punct("(") else 0,
        )
        return self.verbatim(self._tokens[start:self.index])

    def rest_of_statement(self) -> List[Token]:
        toks: List[Token] = []
        while not self.at_end and not self.starts_statement():
            toks.append(self.advance())
        return toks

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def statement(self) -> Statement:
        first: Token = self.peek()  # type: ignore[assignment]
        word: Optional[str] = _word(first)
        if word == "CREATE":
            return self._create()
        if word == "ALTER":
            return self._alter()
        if word == "DROP":
            return self._drop()
        if word == "COMMENT ON":
            return self._comment_on()
        raise _Unsupported(word or first.text, first.position)

    # ------------------------------------------------------------------
    # CREATE ...
    # ------------------------------------------------------------------

    def _create(self) -> Statement:
        start: Token = self.advance()
        or_replace: bool = self.accept_keyword("OR REPLACE") is not None
        temporary: bool = False
        while True:
            modifier: Optional[Token] = self.accept_keyword(
                "TEMP", "TEMPORARY", "GLOBAL", "LOCAL", "UNLOGGED"
            )
            if modifier is None:
                break
            if _word(modifier) in ("TEMP", "TEMPORARY"):
                temporary = True

        word: Optional[str] = self.peek_word()
        if word == "TABLE":
            return self._create_table(start, temporary)
        if word in ("INDEX", "UNIQUE", "UNIQUE INDEX", "CLUSTERED", "NONCLUSTERED", "FULLTEXT", "SPATIAL"):
            return self._create_index(start)
        if word in ("VIEW", "MATERIALIZED"):
            return self._create_view(start, or_replace)
        if word == "TYPE":
            return self._create_type(start)
        tok: Optional[Token] = self.peek()
        raise _Unsupported(
            f"CREATE {word or (tok.text if tok else '')}".strip(), start.position
        )

    def _create_table(self, start: Token, temporary: bool) -> CreateTable:
        self.expect_keyword("TABLE")
        if_not_exists: bool = self.accept_keyword("IF NOT EXISTS") is not None
        name: QualifiedName = self.qualified_name()
        if self.peek_word() in ("AS", "LIKE"):
            raise _Unsupported(f"CREATE TABLE ... {self.peek_word()}", start.position)

        self.expect_punct("(")
        columns: List[ColumnDef] = []
        constraints: List[ConstraintDef] = []
        if not self.accept_punct(")"):
            while True:
                if self._at_table_constraint():
                    constraint: Optional[ConstraintDef] = self._table_constraint()
                    if constraint is not None:
                        constraints.append(constraint)
                else:
                    columns.append(self._column_def())
                if self.accept_punct(","):
                    continue
                self.expect_punct(")")
                break

        comment: Optional[str] = self._table_options()
        return CreateTable(
            name=name,
            columns=tuple(columns),
            constraints=tuple(constraints),
            if_not_exists=if_not_exists,
            temporary=temporary,
            comment=comment,
            position=start.position,
            source=self._source,
        )

    def _table_options(self) -> Optional[str]:
        """Skip trailing table options; returns a MySQL ``COMMENT`` if present."""
        comment: Optional[str] = None
        while not self.at_end and not self.starts_statement():
            if self.accept_keyword("COMMENT"):
                self.accept_operator("=")
                comment = self.string_literal()
            elif self.peek_punct("("):
                self.group()
            else:
                self.advance()
        return comment

    def _create_index(self, start: Token) -> CreateIndex:
        method: Optional[str] = None
        unique: bool = self.accept_keyword("UNIQUE INDEX") is not None
        if not unique:
            unique = self.accept_keyword("UNIQUE") is not None
            modifier: Optional[Token] = self.accept_keyword(
                "CLUSTERED", "NONCLUSTERED", "FULLTEXT", "SPATIAL"
            )
            if _word(modifier) in ("FULLTEXT", "SPATIAL"):
                method = _word(modifier).lower()  # type: ignore[union-attr]
            self.expect_keyword("INDEX")
        self.accept_keyword("CONCURRENTLY")
        if_not_exists: bool = self.accept_keyword("IF NOT EXISTS") is not None

        name: Optional[str] = None
        if self.peek_word() != "ON":
            name = self.qualified_name("index name").name
        method = self._index_method() or method
        self.expect_keyword("ON")
        self.accept_keyword("ONLY")
        table: QualifiedName = self.qualified_name()
        method = self._index_method() or method
        elements: Tuple[IndexElement, ...] = self.index_elements()

        where: Optional[str] = None
        while not self.at_end and not self.starts_statement():
            if self.accept_keyword("WHERE"):
                where = self.verbatim(self.rest_of_statement())
            elif self.peek_word() == "USING":
                method = self._index_method() or method
            elif self.accept_keyword("INCLUDE", "WITH"):
                if self.peek_punct("("):
                    self.group()
            else:
                self.advance()

        return CreateIndex(
            name=name,
            table=table,
            elements=elements,
            unique=unique,
            method=method,
            where=where,
            if_not_exists=if_not_exists,
            position=start.position,
            source=self._source,
        )

    def _index_method(self) -> Optional[str]:
        if self.accept_keyword("USING"):
            return self.name("index method").lower()
        return None

    def _create_view(self, start: Token, or_replace: bool) -> CreateView:
        materialized: bool = self.accept_keyword("MATERIALIZED") is not None
        self.expect_keyword("VIEW")
        self.accept_keyword("IF NOT EXISTS")
        name: QualifiedName = self.qualified_name("view name")
        columns: Tuple[str, ...] = self.column_list() if self.peek_punct("(") else ()
        if self.accept_keyword("WITH"):
            self.group()
        self.expect_keyword("AS")
        rest: Sequence[Token] = self._tokens[self.index:]
        if not rest:
            raise self.error("Expected a view query")
        self.index = len(self._tokens)
        return CreateView(
            name=name,
            query=self.verbatim(rest),
            or_replace=or_replace,
            materialized=materialized,
            columns=columns,
            position=start.position,
            source=self._source,
        )

    def _create_type(self, start: Token) -> CreateEnumType:
        self.expect_keyword("TYPE")
        name: QualifiedName = self.qualified_name("type name")
        self.expect_keyword("AS")
        if self.peek_word() != "ENUM":
            raise _Unsupported("CREATE TYPE (non-enum)", start.position)
        self.advance()
        self.expect_punct("(")
        values: List[str] = []
        if not self.accept_punct(")"):
            while True:
                values.append(self.string_literal())
                if self.accept_punct(","):
                    continue
                self.expect_punct(")")
                break
        return CreateEnumType(name, tuple(values), start.position, self._source)

    # ------------------------------------------------------------------
    # Columns and types
    # ------------------------------------------------------------------

    def _column_def(self) -> ColumnDef:
        name_tok: Optional[Token] = self.peek()
        name: str = self.name("column name")
        type_name: Optional[TypeName] = None
        nxt: Optional[Token] = self.peek()
        if (
            nxt is None
            or nxt.is_punct(",")
            or nxt.is_punct(")")
            or self.peek_word() in _COLUMN_CLAUSE_STARTS
        ):
            if not (self._grammar.optional_column_types or self.peek_word() == "AS"):
                raise self.error(f"Expected a type for column '{name}'")
        else:
            type_name = self.type_name()
        return self._column_clauses(name, type_name, name_tok.position if name_tok else None)

    def type_name(self) -> TypeName:
        start: int = self.index
        tok: Optional[Token] = self.peek()
        if tok is None or not tok.is_word:
            raise self.error("Expected a column type")
        self.index += 1

        schema: Optional[str] = None
        identifier: Optional[str] = None
        timezone: Optional[bool] = None
        if tok.kind == TokenKind.KEYWORD:
            base: str = tok.value
        else:
            identifier = self.identifier(tok)
            if self.accept_punct("."):
                schema = identifier
                identifier = self.name("type name")
            base = identifier.upper()

        for suffix, with_zone in ((" WITH TIME ZONE", True), (" WITHOUT TIME ZONE", False)):
            if base.endswith(suffix):
                base = base[: -len(suffix)]
                timezone = with_zone

        args: Tuple[str, ...] = self._type_args() if self.peek_punct("(") else ()

        zone: Optional[Token] = self.accept_keyword("WITH TIME ZONE", "WITHOUT TIME ZONE")
        if zone is not None:
            timezone = _word(zone) == "WITH TIME ZONE"

        unsigned: bool = False
        while True:
            modifier: Optional[Token] = self.accept_keyword("UNSIGNED", "SIGNED", "ZEROFILL")
            if modifier is None:
                break
            if _word(modifier) == "UNSIGNED":
                unsigned = True

        is_array: bool = False
        while True:
            if self.accept_punct("["):
                while not self.accept_punct("]"):
                    self.advance()
                is_array = True
            elif self.accept_keyword("ARRAY"):
                is_array = True
            else:
                break

        return TypeName(
            base=base,
            args=args,
            raw=self.verbatim(self._tokens[start:self.index]),
            is_array=is_array,
            unsigned=unsigned,
            timezone=timezone,
            identifier=identifier,
            schema=schema,
        )

    def _type_args(self) -> Tuple[str, ...]:
        inner: List[Token] = self.group()
        args: List[str] = []
        current: List[Token] = []
        depth: int = 0
        for tok in inner + [None]:  # type: ignore[operator]
            if tok is None or (depth == 0 and tok.is_punct(",")):
                if len(current) == 1 and current[0].kind == TokenKind.STRING:
                    args.append(current[0].value)
                elif current:
                    args.append(self.verbatim(current))
                current = []
                continue
            if tok.is_punct("("):
                depth += 1
            elif tok.is_punct(")"):
                depth -= 1
            current.append(tok)
        return tuple(args)

    def _column_clauses(
        self,
        name: str,
        type_name: Optional[TypeName],
        position: Optional[SourcePosition],
    ) -> ColumnDef:
        not_null: Optional[bool] = None
        default: Optional[str] = None
        auto_increment: bool = False
        generated: Optional[str] = None
        comment: Optional[str] = None
        constraints: List[ConstraintDef] = []
        constraint_name: Optional[str] = None

        while not self.at_end:
            tok: Token = self.peek()  # type: ignore[assignment]
            if tok.is_punct(",") or tok.is_punct(")"):
                break
            word: Optional[str] = _word(tok)
            if word == "CONSTRAINT":
                self.advance()
                constraint_name = self.name("constraint name")
                continue

            if word == "NOT NULL":
                self.advance()
                not_null = True
            elif word == "NULL":
                self.advance()
                not_null = False
            elif word == "PRIMARY KEY":
                self.advance()
                self.accept_keyword("ASC", "DESC")
                self._conflict_clause()
                if self.accept_keyword("AUTOINCREMENT"):
                    auto_increment = True
                constraints.append(PrimaryKeyDef((name,), constraint_name, tok.position))
            elif word in ("UNIQUE", "UNIQUE KEY"):
                self.advance()
                self._conflict_clause()
                constraints.append(UniqueDef((name,), constraint_name, tok.position))
            elif word == "DEFAULT":
                self.advance()
                default = self.expression(_COLUMN_CLAUSE_STARTS)
            elif word == "CHECK":
                self.advance()
                constraints.append(
                    CheckDef(self.verbatim(self.group()), constraint_name, name, tok.position)
                )
            elif word == "REFERENCES":
                self.advance()
                constraints.append(
                    ForeignKeyDef((name,), self._reference_clause(), constraint_name, tok.position)
                )
            elif word in ("AUTO_INCREMENT", "AUTOINCREMENT"):
                self.advance()
                auto_increment = True
            elif word in ("IDENTITY", "GENERATED ALWAYS AS IDENTITY", "GENERATED BY DEFAULT AS IDENTITY"):
                self.advance()
                auto_increment = True
                if self.peek_punct("("):
                    self.group()
            elif word in ("GENERATED ALWAYS AS", "AS"):
                self.advance()
                generated = self.verbatim(self.group())
                self.accept_keyword("STORED", "VIRTUAL", "PERSISTED")
            elif word == "COMMENT":
                self.advance()
                comment = self.string_literal()
            elif word == "COLLATE":
                self.advance()
                self.advance()
            elif word in ("CHARACTER SET", "CHARSET"):
                self.advance()
                self.accept_operator("=")
                self.advance()
            elif word == "ON UPDATE":
                self.advance()
                self.expression(_COLUMN_CLAUSE_STARTS)
            elif word in ("DEFERRABLE", "INITIALLY") or (
                word == "NOT" and self.peek_word(1) == "DEFERRABLE"
            ):
                self._constraint_attributes()
            elif word == "ON" and self.peek_word(1) == "CONFLICT":
                self._conflict_clause()
            elif word == "FIRST":
                self.advance()
            elif word == "AFTER":
                self.advance()
                self.name("column name")
            else:
                raise self.error(f"Unexpected token in definition of column '{name}'")
            constraint_name = None

        return ColumnDef(
            name=name,
            type=type_name,
            position=position,
            not_null=not_null,
            default=default,
            auto_increment=auto_increment,
            generated=generated,
            comment=comment,
            constraints=tuple(constraints),
        )

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def _conflict_clause(self) -> None:
        if self.peek_word() == "ON" and self.peek_word(1) == "CONFLICT":
            self.index += 2
            self.advance()

    def _constraint_attributes(self) -> None:
        while True:
            if self.accept_keyword("DEFERRABLE", "ENFORCED"):
                continue
            if self.peek_word() == "NOT" and self.peek_word(1) in ("DEFERRABLE", "VALID", "ENFORCED"):
                self.index += 2
                continue
            if self.accept_keyword("INITIALLY"):
                self.expect_keyword("DEFERRED", "IMMEDIATE")
                continue
            return

    def _reference_clause(self) -> ReferenceClause:
        table: QualifiedName = self.qualified_name()
        columns: Tuple[str, ...] = self.column_list() if self.peek_punct("(") else ()
        on_delete: Optional[str] = None
        on_update: Optional[str] = None
        while True:
            if self.accept_keyword("MATCH"):
                self.advance()
                continue
            clause: Optional[Token] = self.accept_keyword("ON DELETE", "ON UPDATE")
            if clause is None:
                break
            action: Optional[str] = _word(self.expect_keyword(*_REFERENTIAL_ACTIONS))
            if _word(clause) == "ON DELETE":
                on_delete = action
            else:
                on_update = action
        self._constraint_attributes()
        return ReferenceClause(table, columns, on_delete, on_update)

    def column_list(self) -> Tuple[str, ...]:
        self.expect_punct("(")
        names: List[str] = []
        while True:
            names.append(self.name("column name"))
            if self.peek_punct("("):
                self.group()
            self.accept_keyword("ASC", "DESC")
            if self.accept_punct(","):
                continue
            self.expect_punct(")")
            return tuple(names)

    def index_elements(self) -> Tuple[IndexElement, ...]:
        self.expect_punct("(")
        elements: List[IndexElement] = []
        while True:
            toks: List[Token] = self.collect(lambda t: False)
            if not toks:
                raise self.error("Expected an index element")
            elements.append(self._index_element(toks))
            if self.accept_punct(","):
                continue
            self.expect_punct(")")
            return tuple(elements)

    def _index_element(self, toks: List[Token]) -> IndexElement:
        text: str = self.verbatim(toks)
        head: Token = toks[0]
        rest: List[Token] = toks[1:]
        if head.is_word and not (head.kind == TokenKind.KEYWORD and " " in head.value):
            # MySQL prefix length: col(10)
            if (
                len(rest) >= 3
                and rest[0].is_punct("(")
                and rest[1].kind == TokenKind.NUMBER
                and rest[2].is_punct(")")
            ):
                rest = rest[3:]
            if all(t.is_word for t in rest):
                return IndexElement(
                    text,
                    self.identifier(head),
                    any(_word(t) == "DESC" for t in rest),
                )
        return IndexElement(text, None, _word(toks[-1]) == "DESC")

    def _at_table_constraint(self) -> bool:
        word: Optional[str] = self.peek_word()
        if word in _TABLE_CONSTRAINT_STARTS:
            return True
        if word in _MYSQL_INDEX_STARTS and self._grammar.dialect is Dialect.MYSQL:
            nxt: Optional[Token] = self.peek(1)
            if nxt is None or not nxt.is_word:
                return True
            if self._grammar.lookup_type(nxt.text) is None:
                return True
            # KEY date (date): a type name followed by a column list
            after: Optional[Token] = self.peek(3)
            return self.peek_punct_at(2, "(") and after is not None and after.is_word
        return False

    def peek_punct_at(self, ahead: int, value: str) -> bool:
        tok: Optional[Token] = self.peek(ahead)
        return tok is not None and tok.is_punct(value)

    def _table_constraint(self) -> Optional[ConstraintDef]:
        start: Token = self.peek()  # type: ignore[assignment]
        name: Optional[str] = None
        if self.accept_keyword("CONSTRAINT"):
            name = self.name("constraint name")
        word: Optional[str] = self.peek_word()

        if word == "PRIMARY KEY":
            self.advance()
            self.accept_keyword("CLUSTERED", "NONCLUSTERED")
            columns: Tuple[str, ...] = self.column_list()
            self._index_method()
            self._conflict_clause()
            self._constraint_attributes()
            return PrimaryKeyDef(columns, name, start.position)

        if word in ("UNIQUE", "UNIQUE KEY", "UNIQUE INDEX"):
            self.advance()
            self.accept_keyword("KEY", "INDEX", "CLUSTERED", "NONCLUSTERED")
            if not self.peek_punct("("):
                index_name: str = self.name("index name")
                name = name or index_name
            columns = self.column_list()
            self._index_method()
            self._conflict_clause()
            self._constraint_attributes()
            return UniqueDef(columns, name, start.position)

        if word == "FOREIGN KEY":
            self.advance()
            if not self.peek_punct("("):
                index_name = self.name("index name")
                name = name or index_name
            columns = self.column_list()
            self.expect_keyword("REFERENCES")
            return ForeignKeyDef(columns, self._reference_clause(), name, start.position)

        if word == "CHECK":
            self.advance()
            expression: str = self.verbatim(self.group())
            self._constraint_attributes()
            return CheckDef(expression, name, None, start.position)

        if word in _MYSQL_INDEX_STARTS:
            kind: Optional[str] = _word(self.advance())
            if kind in ("FULLTEXT", "SPATIAL"):
                self.accept_keyword("KEY", "INDEX")
            else:
                kind = None
            index_name_opt: Optional[str] = None
            if not self.peek_punct("("):
                index_name_opt = self.name("index name")
            method: Optional[str] = self._index_method()
            elements: Tuple[IndexElement, ...] = self.index_elements()
            method = self._index_method() or method
            return IndexDef(
                elements,
                index_name_opt or name,
                False,
                kind.lower() if kind else method,
                start.position,
            )

        if word == "EXCLUDE":
            self._diagnostics.warning(
                Stage.PARSE,
                "UNSUPPORTED_CLAUSE",
                "Skipped unsupported EXCLUDE constraint in table definition",
                source=self._source,
                position=start.position,
            )
            self.collect(lambda t: False)
            return None

        raise self.error("Expected a table constraint")

    # ------------------------------------------------------------------
    # ALTER TABLE
    # ------------------------------------------------------------------

    def _alter(self) -> AlterTable:
        start: Token = self.advance()
        if self.peek_word() != "TABLE":
            raise _Unsupported(f"ALTER {self.peek_word() or ''}".strip(), start.position)
        self.advance()
        if_exists: bool = self.accept_keyword("IF EXISTS") is not None
        self.accept_keyword("ONLY")
        name: QualifiedName = self.qualified_name()

        actions: List[AlterAction] = []
        previous: Optional[AlterAction] = None
        while True:
            action: Optional[AlterAction] = self._alter_action(previous)
            if action is not None:
                actions.append(action)
                previous = action
            if not self.accept_punct(","):
                break
        return AlterTable(name, tuple(actions), if_exists, start.position, self._source)

    def _alter_action(self, previous: Optional[AlterAction]) -> Optional[AlterAction]:
        if self.peek_word() == "WITH" and self.peek_word(1) in ("CHECK", "NOCHECK"):
            self.index += 2
        tok: Optional[Token] = self.peek()
        if tok is None:
            raise self.error("Expected an ALTER TABLE action")
        word: Optional[str] = _word(tok)

        if word == "ADD":
            self.advance()
            if self.accept_keyword("COLUMN"):
                if_not_exists: bool = self.accept_keyword("IF NOT EXISTS") is not None
                return AddColumn(self._column_def(), if_not_exists)
            if_not_exists = self.accept_keyword("IF NOT EXISTS") is not None
            if self._at_table_constraint():
                constraint: Optional[ConstraintDef] = self._table_constraint()
                return AddConstraint(constraint) if constraint is not None else None
            return AddColumn(self._column_def(), if_not_exists)

        if word == "DROP":
            self.advance()
            target: Optional[str] = self.peek_word()
            if target == "CONSTRAINT":
                self.advance()
                if_exists: bool = self.accept_keyword("IF EXISTS") is not None
                constraint_name: str = self.name("constraint name")
                self.accept_keyword("CASCADE", "RESTRICT")
                return DropConstraint(constraint_name, if_exists)
            if target == "PRIMARY KEY":
                self.advance()
                return DropConstraint(None, kind="primary_key")
            if target == "FOREIGN KEY":
                self.advance()
                return DropConstraint(self.name("constraint name"), kind="foreign_key")
            if target in ("INDEX", "KEY"):
                self.advance()
                return DropConstraint(self.name("index name"), kind="index")
            self.accept_keyword("COLUMN")
            if_exists = self.accept_keyword("IF EXISTS") is not None
            column: str = self.name("column name")
            cascade: bool = _word(self.accept_keyword("CASCADE", "RESTRICT")) == "CASCADE"
            return DropColumn(column, if_exists, cascade)

        if word == "ALTER":
            self.advance()
            self.accept_keyword("COLUMN")
            return self._alter_column(self.name("column name"), tok)

        if word == "RENAME":
            self.advance()
            if self.accept_keyword("COLUMN"):
                old: str = self.name("column name")
                self.expect_keyword("TO")
                return RenameColumn(old, self.name("column name"))
            if self.accept_keyword("TO", "AS"):
                return RenameTable(self.qualified_name())
            if self.peek_word() in ("CONSTRAINT", "INDEX", "KEY"):
                return self._skip_action(tok)
            old = self.name("column name")
            if self.accept_keyword("TO"):
                return RenameColumn(old, self.name("column name"))
            return RenameTable(QualifiedName(old))

        if word == "MODIFY":
            self.advance()
            self.accept_keyword("COLUMN")
            return ModifyColumn(self._column_def())

        if word == "CHANGE":
            self.advance()
            self.accept_keyword("COLUMN")
            old_name: str = self.name("column name")
            return ModifyColumn(self._column_def(), old_name)

        # MSSQL: ADD a INT, b INT
        if isinstance(previous, AddColumn) and tok.is_word and word not in (
            "SET", "ENGINE", "OWNER", "ENABLE", "DISABLE", "CLUSTER", "INHERIT",
        ):
            return AddColumn(self._column_def())

        return self._skip_action(tok)

    def _alter_column(self, name: str, start: Token) -> Optional[AlterColumn]:
        if self.accept_keyword("SET NOT NULL"):
            return AlterColumn(name, set_not_null=True)
        if self.accept_keyword("DROP NOT NULL"):
            return AlterColumn(name, set_not_null=False)
        if self.accept_keyword("SET DEFAULT"):
            return AlterColumn(name, default=self.expression(frozenset()))
        if self.accept_keyword("DROP DEFAULT"):
            return AlterColumn(name, drop_default=True)
        if self.accept_keyword("SET DATA TYPE", "TYPE"):
            new_type: TypeName = self.type_name()
            if self.accept_keyword("USING"):
                self.collect(lambda t: False)
            return AlterColumn(name, new_type=new_type)
        if self.peek_word() in ("SET", "DROP", "ADD", "RESET"):
            self._skip_action(start)
            return None

        # MSSQL: ALTER COLUMN c type [NOT NULL | NULL]
        new_type = self.type_name()
        set_not_null: Optional[bool] = None
        if self.accept_keyword("NOT NULL"):
            set_not_null = True
        elif self.accept_keyword("NULL"):
            set_not_null = False
        return AlterColumn(name, set_not_null=set_not_null, new_type=new_type)

    def _skip_action(self, tok: Token) -> None:
        self._diagnostics.warning(
            Stage.PARSE,
            "UNSUPPORTED_ALTER_ACTION",
            f"Skipped unsupported ALTER TABLE action starting with {tok.text!r}",
            source=self._source,
            position=tok.position,
        )
        self.collect(lambda t: False)

    # ------------------------------------------------------------------
    # DROP / COMMENT ON
    # ------------------------------------------------------------------

    def _drop(self) -> Statement:
        start: Token = self.advance()
        word: Optional[str] = self.peek_word()

        if word == "TABLE":
            self.advance()
            if_exists: bool = self.accept_keyword("IF EXISTS") is not None
            names: Tuple[QualifiedName, ...] = self.name_list("table name")
            cascade: bool = _word(self.accept_keyword("CASCADE", "RESTRICT")) == "CASCADE"
            return DropTable(names, if_exists, cascade, start.position, self._source)

        if word == "INDEX":
            self.advance()
            self.accept_keyword("CONCURRENTLY")
            if_exists = self.accept_keyword("IF EXISTS") is not None
            names = self.name_list("index name")
            table: Optional[QualifiedName] = None
            if self.accept_keyword("ON"):
                table = self.qualified_name()
            self.accept_keyword("CASCADE", "RESTRICT")
            return DropIndex(names, if_exists, table, start.position, self._source)

        if word in ("VIEW", "MATERIALIZED"):
            self.advance()
            if word == "MATERIALIZED":
                self.expect_keyword("VIEW")
            if_exists = self.accept_keyword("IF EXISTS") is not None
            names = self.name_list("view name")
            self.accept_keyword("CASCADE", "RESTRICT")
            return DropView(names, if_exists, start.position, self._source)

        raise _Unsupported(f"DROP {word or ''}".strip(), start.position)

    def _comment_on(self) -> CommentOn:
        start: Token = self.advance()
        target: Optional[str] = self.peek_word()
        column: Optional[str] = None
        if target == "TABLE":
            self.advance()
            table: QualifiedName = self.qualified_name()
        elif target == "COLUMN":
            self.advance()
            parts: List[str] = [self.name("table name")]
            while self.accept_punct("."):
                parts.append(self.name("column name"))
            if len(parts) < 2:
                raise self.error("Expected table.column")
            column = parts[-1]
            table = QualifiedName(parts[-2], parts[-3] if len(parts) > 2 else None)
        else:
            raise _Unsupported(f"COMMENT ON {target or ''}".strip(), start.position)

        self.expect_keyword("IS")
        text: Optional[str] = None if self.accept_keyword("NULL") else self.string_literal()
        return CommentOn(
            target=target.lower(),
            table=table,
            column=column,
            text=text,
            position=start.position,
            source=self._source,
        )


# ---------------------------------------------------------------------------
# Public parser
# ---------------------------------------------------------------------------


class StatementParser:
    """
    Dialect-parameterised DDL parser.

    Usage::

        diagnostics = Diagnostics()
        parser = StatementParser("postgresql", source="schema.sql")
        result = parser.parse(Tokenizer(text, "postgresql"), diagnostics)
        for statement in result.statements:
            ...
    """

    def __init__(
        self,
        dialect: Union[str, Dialect, DialectGrammar] = Dialect.POSTGRESQL,
        *,
        source: Optional[str] = None,
    ) -> None:
        self._grammar: DialectGrammar = get_grammar(dialect)
        self._source: Optional[str] = source

    @property
    def grammar(self) -> DialectGrammar:
        return self._grammar

    def parse(self, tokens: Iterable[Token], diagnostics: Diagnostics) -> ParseResult:
        """
        Parse every statement in *tokens*.

        Malformed statements become diagnostics; ``LexError`` propagates.
        """
        text: Optional[str] = tokens.text if isinstance(tokens, Tokenizer) else None
        if self._grammar.reserved:
            diagnostics.info(
                Stage.PARSE,
                "RESERVED_DIALECT",
                f"Dialect '{self._grammar.dialect.value}' has basic grammar support only.",
                source=self._source,
            )

        statements: List[Statement] = []
        for segment in self._segments(tokens):
            statements.extend(self._parse_segment(segment, diagnostics, text))

        logger.info(
            "Parsed %d statement(s) from %s.",
            len(statements),
            self._source or "<input>",
        )
        return ParseResult(tuple(statements), self._source)

    # ------------------------------------------------------------------

    def _segments(self, tokens: Iterable[Token]) -> Iterator[List[Token]]:
        segment: List[Token] = []
        for tok in tokens:
            if tok.is_punct(";") or self._is_batch_separator(tok):
                if segment:
                    yield segment
                    segment = []
                continue
            segment.append(tok)
        if segment:
            yield segment

    def _is_batch_separator(self, tok: Token) -> bool:
        return (
            self._grammar.dialect is Dialect.MSSQL
            and tok.is_word
            and not tok.quoted
            and tok.text.upper() == "GO"
            and tok.position.column == 1
        )

    def _parse_segment(
        self,
        segment: List[Token],
        diagnostics: Diagnostics,
        text: Optional[str],
    ) -> List[Statement]:
        reader: _StatementReader = _StatementReader(
            segment, self._grammar, diagnostics, self._source, text
        )
        parsed: List[Statement] = []
        while not reader.at_end:
            try:
                statement: Statement = reader.statement()
            except _Unsupported as exc:
                diagnostics.info(
                    Stage.PARSE,
                    "UNSUPPORTED_STATEMENT",
                    f"Skipped unsupported statement: {exc.what}",
                    source=self._source,
                    position=exc.position,
                )
                break
            except ParseError as exc:
                logger.debug("Parse error in %s: %s", self._source or "<input>", exc)
                diagnostics.add(exc.to_diagnostic(self._source))
                break

            parsed.append(statement)
            logger.debug("Parsed %s.", type(statement).__name__)
            if reader.at_end:
                break

            trailing: Token = reader.peek()  # type: ignore[assignment]
            if reader.starts_statement():
                diagnostics.warning(
                    Stage.PARSE,
                    "MISSING_SEMICOLON",
                    "Missing ';' between statements",
                    source=self._source,
                    position=trailing.position,
                )
                continue
            parsed.pop()
            diagnostics.add(
                ParseError(
                    f"Unexpected {trailing.text!r} after end of statement",
                    position=trailing.position,
                    source=self._source,
                ).to_diagnostic(self._source)
            )
            break
        return parsed


def parse_sql(
    text: str,
    dialect: Union[str, Dialect, DialectGrammar],
    diagnostics: Diagnostics,
    source: Optional[str] = None,
) -> ParseResult:
    """Tokenize and parse *text* in one call."""
    parser: StatementParser = StatementParser(dialect, source=source)
    return parser.parse(Tokenizer(text, parser.grammar, source=source), diagnostics)


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ParseResult",
    "StatementParser",
    "parse_sql",
]

logger.debug("ddlapi.parser loaded — %d public symbols.", len(__all__))
