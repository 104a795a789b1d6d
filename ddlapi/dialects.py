# File: ddlapi/dialects.py
"""
ddlapi - Dialect Grammar & Type-Mapping Tables
================================================
One ``DialectGrammar`` per supported dialect.  The tokenizer, parser and
model builder are single implementations parameterised by these tables;
there are no per-dialect subclasses.

A grammar answers:
    - which characters delimit identifiers and strings;
    - which words are keywords and which word sequences form one keyword;
    - how identifiers fold and compare (PostgreSQL folds unquoted names to
      lower case, the others compare case-insensitively);
    - which schema an unqualified name belongs to;
    - how a declared SQL type maps to a semantic type.

Lookups are O(1) dictionary hits; ``get_grammar`` is cached.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.dialects")


class Dialect(str, Enum):
    """Supported SQL dialects."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    MSSQL = "mssql"


# Accepted spellings for ``Dialect`` on the command line and in config files.
_DIALECT_ALIASES: Dict[str, Dialect] = {
    "postgresql": Dialect.POSTGRESQL,
    "postgres": Dialect.POSTGRESQL,
    "pg": Dialect.POSTGRESQL,
    "mysql": Dialect.MYSQL,
    "mariadb": Dialect.MYSQL,
    "sqlite": Dialect.SQLITE,
    "sqlite3": Dialect.SQLITE,
    "mssql": Dialect.MSSQL,
    "sqlserver": Dialect.MSSQL,
    "tsql": Dialect.MSSQL,
}


def parse_dialect(value: Union[str, Dialect]) -> Dialect:
    """Resolve a dialect tag or alias; raises ``ValueError`` for unknown tags."""
    if isinstance(value, Dialect):
        return value
    key: str = str(value).strip().lower()
    if key not in _DIALECT_ALIASES:
        raise ValueError(
            f"Unknown dialect '{value}'. "
            f"Expected one of: {', '.join(d.value for d in Dialect)}."
        )
    return _DIALECT_ALIASES[key]


# ---------------------------------------------------------------------------
# Type mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TypeRule:
    """How one declared base type maps onto the semantic type system."""

    semantic: str
    format: Optional[str] = None
    auto_increment: bool = False
    timezone: Optional[bool] = None
    sized: bool = False          # first argument is a length
    numeric_args: bool = False   # arguments are (precision, scale)
    enum_args: bool = False      # arguments are the allowed values
    is_array: bool = False


_INT16: TypeRule = TypeRule("integer", "int16")
_INT32: TypeRule = TypeRule("integer", "int32")
_INT64: TypeRule = TypeRule("integer", "int64")
_REAL: TypeRule = TypeRule("float", "float")
_DOUBLE: TypeRule = TypeRule("float", "double")
_DECIMAL: TypeRule = TypeRule("decimal", None, numeric_args=True)
_TEXT: TypeRule = TypeRule("text")
_SIZED_TEXT: TypeRule = TypeRule("text", None, sized=True)
_BOOL: TypeRule = TypeRule("boolean")
_DATE: TypeRule = TypeRule("date", "date")
_TIME: TypeRule = TypeRule("time", "time")
_TIMESTAMP: TypeRule = TypeRule("timestamp", "date-time")
_TIMESTAMP_TZ: TypeRule = TypeRule("timestamp", "date-time", timezone=True)
_UUID: TypeRule = TypeRule("uuid", "uuid")
_JSON: TypeRule = TypeRule("json")
_BINARY: TypeRule = TypeRule("binary", "byte")
_SIZED_BINARY: TypeRule = TypeRule("binary", "byte", sized=True)

_COMMON_TYPES: Dict[str, TypeRule] = {
    "INT": _INT32,
    "INTEGER": _INT32,
    "SMALLINT": _INT16,
    "BIGINT": _INT64,
    "REAL": _REAL,
    "FLOAT": _DOUBLE,
    "DOUBLE": _DOUBLE,
    "DOUBLE PRECISION": _DOUBLE,
    "DECIMAL": _DECIMAL,
    "DEC": _DECIMAL,
    "NUMERIC": _DECIMAL,
    "BOOLEAN": _BOOL,
    "BOOL": _BOOL,
    "CHAR": _SIZED_TEXT,
    "CHARACTER": _SIZED_TEXT,
    "VARCHAR": _SIZED_TEXT,
    "CHARACTER VARYING": _SIZED_TEXT,
    "CHAR VARYING": _SIZED_TEXT,
    "NCHAR": _SIZED_TEXT,
    "NVARCHAR": _SIZED_TEXT,
    "TEXT": _TEXT,
    "CLOB": _TEXT,
    "DATE": _DATE,
    "TIME": _TIME,
    "TIMESTAMP": _TIMESTAMP,
    "DATETIME": _TIMESTAMP,
    "INTERVAL": TypeRule("interval", "duration"),
    "UUID": _UUID,
    "JSON": _JSON,
    "BLOB": _BINARY,
    "BINARY": _SIZED_BINARY,
    "VARBINARY": _SIZED_BINARY,
}

_POSTGRES_TYPES: Dict[str, TypeRule] = {
    "INT2": _INT16,
    "INT4": _INT32,
    "INT8": _INT64,
    "SERIAL": TypeRule("integer", "int32", auto_increment=True),
    "SERIAL4": TypeRule("integer", "int32", auto_increment=True),
    "BIGSERIAL": TypeRule("integer", "int64", auto_increment=True),
    "SERIAL8": TypeRule("integer", "int64", auto_increment=True),
    "SMALLSERIAL": TypeRule("integer", "int16", auto_increment=True),
    "SERIAL2": TypeRule("integer", "int16", auto_increment=True),
    "FLOAT4": _REAL,
    "FLOAT8": _DOUBLE,
    "MONEY": _DECIMAL,
    "BPCHAR": _SIZED_TEXT,
    "CITEXT": _TEXT,
    "NAME": _TEXT,
    "TIMESTAMPTZ": _TIMESTAMP_TZ,
    "TIMETZ": TypeRule("time", "time", timezone=True),
    "JSONB": _JSON,
    "BYTEA": _BINARY,
    "INET": TypeRule("text", "ip"),
    "CIDR": TypeRule("text", "cidr"),
    "MACADDR": TypeRule("text", "mac"),
    "XML": TypeRule("text", "xml"),
    "BIT": _SIZED_TEXT,
    "BIT VARYING": _SIZED_TEXT,
    "VARBIT": _SIZED_TEXT,
    "TSVECTOR": TypeRule("other"),
    "TSQUERY": TypeRule("other"),
    "POINT": TypeRule("other"),
    "LINE": TypeRule("other"),
    "POLYGON": TypeRule("other"),
    "BOX": TypeRule("other"),
    "CIRCLE": TypeRule("other"),
}

_MYSQL_TYPES: Dict[str, TypeRule] = {
    "TINYINT": _INT16,
    "MEDIUMINT": _INT32,
    "BIT": _BOOL,
    "YEAR": _INT16,
    "TINYTEXT": _TEXT,
    "MEDIUMTEXT": _TEXT,
    "LONGTEXT": _TEXT,
    "TINYBLOB": _BINARY,
    "MEDIUMBLOB": _BINARY,
    "LONGBLOB": _BINARY,
    "ENUM": TypeRule("enum", enum_args=True),
    "SET": TypeRule("enum", enum_args=True, is_array=True),
    "GEOMETRY": TypeRule("other"),
    "POINT": TypeRule("other"),
    "LINESTRING": TypeRule("other"),
    "POLYGON": TypeRule("other"),
}

_SQLITE_TYPES: Dict[str, TypeRule] = {
    "INTEGER": _INT64,
    "TINYINT": _INT16,
    "MEDIUMINT": _INT32,
    "INT2": _INT16,
    "INT8": _INT64,
}

_MSSQL_TYPES: Dict[str, TypeRule] = {
    "TINYINT": _INT16,
    "BIT": _BOOL,
    "MONEY": _DECIMAL,
    "SMALLMONEY": _DECIMAL,
    "NTEXT": _TEXT,
    "DATETIME2": _TIMESTAMP,
    "SMALLDATETIME": _TIMESTAMP,
    "DATETIMEOFFSET": _TIMESTAMP_TZ,
    "UNIQUEIDENTIFIER": _UUID,
    "IMAGE": _BINARY,
    "ROWVERSION": _BINARY,
    "XML": TypeRule("text", "xml"),
}


# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

_COMMON_KEYWORDS: FrozenSet[str] = frozenset({
    "ACTION", "ADD", "ALL", "ALTER", "ALWAYS", "AND", "AS", "ASC", "BETWEEN",
    "BY", "CASCADE", "CASE", "CAST", "CHECK", "COLLATE", "COLUMN", "COMMENT",
    "CONSTRAINT", "CREATE", "CURRENT_DATE", "CURRENT_TIME",
    "CURRENT_TIMESTAMP", "DEFAULT", "DEFERRABLE", "DEFERRED", "DELETE",
    "DESC", "DISTINCT", "DROP", "ELSE", "END", "EXISTS", "FALSE", "FOREIGN",
    "FROM", "GENERATED", "IF", "IMMEDIATE", "IN", "INDEX", "INITIALLY", "IS",
    "KEY", "LIKE", "MATCH", "NO", "NOT", "NULL", "ON", "OR", "PRIMARY",
    "REFERENCES", "RENAME", "REPLACE", "RESTRICT", "SELECT", "SET", "TABLE",
    "TEMP", "TEMPORARY", "THEN", "TO", "TRUE", "TYPE", "UNIQUE", "UPDATE",
    "USING", "VIEW", "WHEN", "WHERE", "WITH", "WITHOUT",
})

_DIALECT_KEYWORDS: Dict[Dialect, FrozenSet[str]] = {
    Dialect.POSTGRESQL: frozenset({
        "CONCURRENTLY", "ENUM", "IDENTITY", "ILIKE", "INCLUDE", "INHERITS",
        "MATERIALIZED", "ONLY", "PARTITION", "STORED", "UNLOGGED",
    }),
    Dialect.MYSQL: frozenset({
        "AUTO_INCREMENT", "CHANGE", "CHARSET", "ENGINE", "FULLTEXT", "MODIFY",
        "SIGNED", "SPATIAL", "STORED", "UNSIGNED", "VIRTUAL", "ZEROFILL",
    }),
    Dialect.SQLITE: frozenset({
        "AUTOINCREMENT", "CONFLICT", "STORED", "STRICT", "VIRTUAL",
    }),
    Dialect.MSSQL: frozenset({
        "CLUSTERED", "IDENTITY", "NONCLUSTERED", "PERSISTED",
    }),
}

# Word sequences merged by the tokenizer into one keyword token.
_COMMON_PHRASES: Tuple[Tuple[str, ...], ...] = (
    ("NOT", "NULL"),
    ("PRIMARY", "KEY"),
    ("FOREIGN", "KEY"),
    ("IF", "NOT", "EXISTS"),
    ("IF", "EXISTS"),
    ("ON", "DELETE"),
    ("ON", "UPDATE"),
    ("SET", "NULL"),
    ("SET", "DEFAULT"),
    ("SET", "NOT", "NULL"),
    ("SET", "DATA", "TYPE"),
    ("DROP", "NOT", "NULL"),
    ("DROP", "DEFAULT"),
    ("NO", "ACTION"),
    ("OR", "REPLACE"),
    ("COMMENT", "ON"),
    ("DOUBLE", "PRECISION"),
    ("CHARACTER", "VARYING"),
    ("CHAR", "VARYING"),
    ("WITH", "TIME", "ZONE"),
    ("WITHOUT", "TIME", "ZONE"),
    ("TIMESTAMP", "WITH", "TIME", "ZONE"),
    ("TIMESTAMP", "WITHOUT", "TIME", "ZONE"),
    ("TIME", "WITH", "TIME", "ZONE"),
    ("TIME", "WITHOUT", "TIME", "ZONE"),
    ("GENERATED", "ALWAYS", "AS", "IDENTITY"),
    ("GENERATED", "BY", "DEFAULT", "AS", "IDENTITY"),
    ("GENERATED", "ALWAYS", "AS"),
    ("NULLS", "FIRST"),
    ("NULLS", "LAST"),
)

_DIALECT_PHRASES: Dict[Dialect, Tuple[Tuple[str, ...], ...]] = {
    Dialect.POSTGRESQL: (("BIT", "VARYING"), ("UNIQUE", "INDEX")),
    Dialect.MYSQL: (
        ("UNIQUE", "KEY"),
        ("UNIQUE", "INDEX"),
        ("CHARACTER", "SET"),
    ),
    Dialect.SQLITE: (("WITHOUT", "ROWID"), ("UNIQUE", "INDEX")),
    Dialect.MSSQL: (("UNIQUE", "INDEX"),),
}


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------


@dataclass(frozen=True, eq=False)
class DialectGrammar:
    """Everything dialect-specific the core needs, as plain data."""

    dialect: Dialect
    identifier_quotes: Mapping[str, str]
    string_quotes: FrozenSet[str]
    keywords: FrozenSet[str]
    phrases: Tuple[Tuple[str, ...], ...]
    type_map: Mapping[str, TypeRule]
    default_schema: Optional[str] = None
    fold_unquoted_lower: bool = False
    case_sensitive: bool = False
    backslash_escapes: bool = False
    hash_comments: bool = False
    dollar_quoting: bool = False
    affinity_types: bool = False
    optional_column_types: bool = False
    tinyint1_boolean: bool = False
    reserved: bool = False
    _phrase_index: Dict[str, Tuple[Tuple[str, ...], ...]] = field(
        default_factory=dict, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        index: Dict[str, List[Tuple[str, ...]]] = {}
        for phrase in self.phrases:
            index.setdefault(phrase[0], []).append(phrase)
        for first, group in index.items():
            # longest first so the tokenizer can stop at the first match
            self._phrase_index[first] = tuple(sorted(group, key=len, reverse=True))

    # -- Keywords -----------------------------------------------------------

    def is_keyword(self, word: str) -> bool:
        return word.upper() in self.keywords

    def phrases_starting_with(self, word: str) -> Tuple[Tuple[str, ...], ...]:
        return self._phrase_index.get(word.upper(), ())

    # -- Identifiers --------------------------------------------------------

    def normalize_identifier(self, text: str, quoted: bool = False) -> str:
        """Apply the dialect's folding rule to a declared identifier."""
        if quoted or not self.fold_unquoted_lower:
            return text
        return text.lower()

    def fold(self, name: Optional[str]) -> str:
        """Comparison key for an identifier that has already been normalized."""
        if name is None:
            return ""
        return name if self.case_sensitive else name.lower()

    def table_key(self, schema: Optional[str], name: str) -> str:
        """Lookup key for a table; unqualified names use the default schema."""
        effective: Optional[str] = schema if schema is not None else self.default_schema
        return f"{self.fold(effective)}.{self.fold(name)}"

    def schema_matches(self, schema: Optional[str], wanted: str) -> bool:
        effective: Optional[str] = schema if schema is not None else self.default_schema
        return self.fold(effective) == self.fold(wanted)

    # -- Types --------------------------------------------------------------

    def lookup_type(self, base: str) -> Optional[TypeRule]:
        return self.type_map.get(base.upper())

    def affinity_rule(self, base: str) -> TypeRule:
        """SQLite column affinity for type names missing from the table."""
        upper: str = base.upper()
        if "INT" in upper:
            return _INT64
        if any(part in upper for part in ("CHAR", "CLOB", "TEXT")):
            return _TEXT
        if not upper or "BLOB" in upper:
            return _BINARY
        if any(part in upper for part in ("REAL", "FLOA", "DOUB")):
            return _DOUBLE
        return _DECIMAL


def _build_grammar(dialect: Dialect) -> DialectGrammar:
    type_map: Dict[str, TypeRule] = dict(_COMMON_TYPES)
    keywords: FrozenSet[str] = _COMMON_KEYWORDS | _DIALECT_KEYWORDS[dialect]
    phrases: Tuple[Tuple[str, ...], ...] = _COMMON_PHRASES + _DIALECT_PHRASES[dialect]

    if dialect is Dialect.POSTGRESQL:
        type_map.update(_POSTGRES_TYPES)
        return DialectGrammar(
            dialect=dialect,
            identifier_quotes={'"': '"'},
            string_quotes=frozenset({"'"}),
            keywords=keywords,
            phrases=phrases,
            type_map=type_map,
            default_schema="public",
            fold_unquoted_lower=True,
            case_sensitive=True,
            dollar_quoting=True,
        )
    if dialect is Dialect.MYSQL:
        type_map.update(_MYSQL_TYPES)
        return DialectGrammar(
            dialect=dialect,
            identifier_quotes={"`": "`"},
            string_quotes=frozenset({"'", '"'}),
            keywords=keywords,
            phrases=phrases,
            type_map=type_map,
            backslash_escapes=True,
            hash_comments=True,
            tinyint1_boolean=True,
        )
    if dialect is Dialect.SQLITE:
        type_map.update(_SQLITE_TYPES)
        return DialectGrammar(
            dialect=dialect,
            identifier_quotes={'"': '"', "`": "`", "[": "]"},
            string_quotes=frozenset({"'"}),
            keywords=keywords,
            phrases=phrases,
            type_map=type_map,
            default_schema="main",
            affinity_types=True,
            optional_column_types=True,
        )
    type_map.update(_MSSQL_TYPES)
    return DialectGrammar(
        dialect=dialect,
        identifier_quotes={"[": "]", '"': '"'},
        string_quotes=frozenset({"'"}),
        keywords=keywords,
        phrases=phrases,
        type_map=type_map,
        default_schema="dbo",
        reserved=True,
    )


@functools.lru_cache(maxsize=None)
def _cached_grammar(dialect: Dialect) -> DialectGrammar:
    grammar: DialectGrammar = _build_grammar(dialect)
    logger.debug(
        "Built %s grammar: %d keywords, %d phrases, %d type rules.",
        dialect.value,
        len(grammar.keywords),
        len(grammar.phrases),
        len(grammar.type_map),
    )
    return grammar


def get_grammar(dialect: Union[str, Dialect, DialectGrammar]) -> DialectGrammar:
    """Return the grammar for a dialect tag (grammars pass through unchanged)."""
    if isinstance(dialect, DialectGrammar):
        return dialect
    return _cached_grammar(parse_dialect(dialect))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Dialect",
    "DialectGrammar",
    "TypeRule",
    "get_grammar",
    "parse_dialect",
]

logger.debug("ddlapi.dialects loaded — %d public symbols.", len(__all__))
