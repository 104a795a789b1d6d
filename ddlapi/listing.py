# File: ddlapi/listing.py
"""
ddlapi - Schema Listing
========================
Renders a domain model back into a plain-text listing, one block per table::

    TABLE public.users
      COLUMN id INTEGER NOT NULL
      COLUMN email VARCHAR(255) NOT NULL
      PRIMARY KEY (id)
      UNIQUE (email)

Every column and every constraint of the model appears in the listing, so
``parse_listing(render_listing(model))`` yields exactly the entries of
``listing_entries(table)`` for each table.  Newlines and backslashes inside an
entry or a comment are written as ``\\n`` and ``\\\\`` so that every entry stays
on its own line.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional

from ddlapi.models import (
    CheckConstraint,
    Column,
    DomainModel,
    ForeignKeyConstraint,
    Index,
    PrimaryKeyConstraint,
    Table,
    UniqueConstraint,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.listing")

_TABLE_PREFIX: str = "TABLE "
_INDENT: str = "  "

_ESCAPE_RE: re.Pattern[str] = re.compile(r"\\(.)")
_UNESCAPES: Dict[str, str] = {"n": "\n", "r": "\r", "\\": "\\"}


def _escape(text: str) -> str:
    """Keep one listing entry on one line."""
    return text.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")


def _unescape(text: str) -> str:
    return _ESCAPE_RE.sub(lambda m: _UNESCAPES.get(m.group(1), m.group(0)), text)


def _column_line(column: Column) -> str:
    parts: List[str] = ["COLUMN", column.name, column.type.declared or "-"]
    parts.append("NULL" if column.nullable else "NOT NULL")
    if column.default is not None:
        parts.append(f"DEFAULT {column.default}")
    if column.auto_increment:
        parts.append("AUTO_INCREMENT")
    if column.generated is not None:
        parts.append(f"GENERATED AS ({column.generated})")
    return " ".join(parts)


def _named(name: Optional[str], body: str) -> str:
    return f"CONSTRAINT {name} {body}" if name else body


def _constraint_line(constraint: object) -> str:
    if isinstance(constraint, PrimaryKeyConstraint):
        return _named(constraint.name, f"PRIMARY KEY ({', '.join(constraint.columns)})")
    if isinstance(constraint, UniqueConstraint):
        return _named(constraint.name, f"UNIQUE ({', '.join(constraint.columns)})")
    if isinstance(constraint, ForeignKeyConstraint):
        body: str = (
            f"FOREIGN KEY ({', '.join(constraint.columns)}) REFERENCES "
            f"{constraint.referenced_table} ({', '.join(constraint.referenced_columns)})"
        )
        if constraint.on_delete:
            body += f" ON DELETE {constraint.on_delete}"
        if constraint.on_update:
            body += f" ON UPDATE {constraint.on_update}"
        return _named(constraint.name, body)
    if isinstance(constraint, CheckConstraint):
        return _named(constraint.name, f"CHECK ({constraint.expression})")
    raise TypeError(f"Unsupported constraint: {constraint!r}")


def _index_line(index: Index) -> str:
    parts: List[str] = ["UNIQUE INDEX" if index.unique else "INDEX"]
    if index.name:
        parts.append(index.name)
    parts.append(f"({', '.join(index.columns)})")
    if index.method:
        parts.append(f"USING {index.method}")
    if index.where:
        parts.append(f"WHERE {index.where}")
    return " ".join(parts)


def listing_entries(table: Table, include_indexes: bool = True) -> List[str]:
    """Column lines, then constraint lines, then index lines of *table*."""
    entries: List[str] = [_column_line(c) for c in table.columns]
    entries.extend(_constraint_line(c) for c in table.constraints)
    if include_indexes:
        entries.extend(_index_line(i) for i in table.indexes)
    return entries


def render_listing(model: DomainModel, include_indexes: bool = True) -> str:
    """
    Render every table of *model* as a listing block.

    Relationships follow the tables as ``RELATIONSHIP`` lines.
    """
    lines: List[str] = []
    for table in model.tables:
        if lines:
            lines.append("")
        header: str = f"{_TABLE_PREFIX}{table.qualified_name}"
        if model.is_junction(table):
            header += " [junction]"
        lines.append(header)
        if table.comment:
            lines.append(f"{_INDENT}-- {_escape(table.comment)}")
        lines.extend(f"{_INDENT}{_escape(entry)}" for entry in listing_entries(table, include_indexes))

    if model.relationships:
        lines.append("")
        for rel in model.relationships:
            line: str = (
                f"RELATIONSHIP {rel.name} {rel.kind} "
                f"{rel.from_table}({', '.join(rel.from_columns)}) → "
                f"{rel.to_table}({', '.join(rel.to_columns)})"
            )
            if rel.junction is not None:
                line += f" VIA {rel.junction.table}"
            lines.append(line)

    logger.debug("Rendered listing: %d table(s), %d line(s).", len(model.tables), len(lines))
    return "\n".join(lines) + ("\n" if lines else "")


def parse_listing(text: str) -> Dict[str, List[str]]:
    """Entries per qualified table name, read back from ``render_listing`` output."""
    tables: Dict[str, List[str]] = {}
    current: Optional[List[str]] = None
    for line in text.split("\n"):
        if line.startswith(_TABLE_PREFIX):
            name: str = line[len(_TABLE_PREFIX):].removesuffix(" [junction]")
            current = tables.setdefault(name, [])
        elif not line.strip() or not line.startswith(_INDENT):
            current = None
        elif current is not None and not line.strip().startswith("--"):
            current.append(_unescape(line[len(_INDENT):]))
    return tables


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "listing_entries",
    "parse_listing",
    "render_listing",
]

logger.debug("ddlapi.listing loaded — %d public symbols.", len(__all__))
