# File: ddlapi/ast_nodes.py
"""
ddlapi - DDL Abstract Syntax Tree
==================================
Immutable statement nodes produced by ``ddlapi.parser`` and consumed once
by ``ddlapi.builder``.  Nodes hold the raw clauses needed for resolution;
names are already normalized per dialect, nothing is resolved yet.

Statement kinds (closed set, see ``Statement``):

    CreateTable  AlterTable  CreateIndex  CreateView  CreateEnumType
    DropTable    DropIndex   DropView     CommentOn
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

from ddlapi.diagnostics import SourcePosition

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.ast_nodes")


# ---------------------------------------------------------------------------
# Names & types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class QualifiedName:
    """``[schema.]name`` as written (after identifier normalization)."""

    name: str
    schema: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name


@dataclass(frozen=True, slots=True)
class TypeName:
    """
    A declared column type.

    ``base`` is the upper-cased type keyword (``VARCHAR``, ``DOUBLE
    PRECISION``) or, for user-defined types, the identifier as written
    (``identifier`` is then set).  ``raw`` is the verbatim declaration.
    """

    base: str
    args: Tuple[str, ...] = ()
    raw: str = ""
    is_array: bool = False
    unsigned: bool = False
    timezone: Optional[bool] = None
    identifier: Optional[str] = None
    schema: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ReferenceClause:
    """``REFERENCES table [(cols)] [ON DELETE ...] [ON UPDATE ...]``."""

    table: QualifiedName
    columns: Tuple[str, ...] = ()
    on_delete: Optional[str] = None
    on_update: Optional[str] = None


# ---------------------------------------------------------------------------
# Constraint clauses
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PrimaryKeyDef:
    columns: Tuple[str, ...]
    name: Optional[str] = None
    position: Optional[SourcePosition] = None


@dataclass(frozen=True, slots=True)
class UniqueDef:
    columns: Tuple[str, ...]
    name: Optional[str] = None
    position: Optional[SourcePosition] = None


@dataclass(frozen=True, slots=True)
class ForeignKeyDef:
    columns: Tuple[str, ...]
    reference: ReferenceClause
    name: Optional[str] = None
    position: Optional[SourcePosition] = None


@dataclass(frozen=True, slots=True)
class CheckDef:
    """``CHECK (expr)``; ``column`` is set for column-level checks."""

    expression: str
    name: Optional[str] = None
    column: Optional[str] = None
    position: Optional[SourcePosition] = None


@dataclass(frozen=True, slots=True)
class IndexElement:
    """One indexed element: a plain column or an expression."""

    text: str
    column: Optional[str] = None
    descending: bool = False


@dataclass(frozen=True, slots=True)
class IndexDef:
    """Inline ``KEY``/``INDEX`` clause inside ``CREATE TABLE`` (MySQL)."""

    elements: Tuple[IndexElement, ...]
    name: Optional[str] = None
    unique: bool = False
    kind: Optional[str] = None
    position: Optional[SourcePosition] = None


ConstraintDef = Union[PrimaryKeyDef, UniqueDef, ForeignKeyDef, CheckDef, IndexDef]


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ColumnDef:
    """
    A column definition with its raw clauses.

    Inline constraints (``PRIMARY KEY``, ``UNIQUE``, ``REFERENCES``,
    ``CHECK``) are normalized into table-level constraint clauses whose
    column list is ``(name,)``.  ``not_null`` is ``None`` when nullability
    was not stated.
    """

    name: str
    type: Optional[TypeName]
    position: Optional[SourcePosition] = None
    not_null: Optional[bool] = None
    default: Optional[str] = None
    auto_increment: bool = False
    generated: Optional[str] = None
    comment: Optional[str] = None
    constraints: Tuple[ConstraintDef, ...] = ()


# ---------------------------------------------------------------------------
# ALTER TABLE actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AddColumn:
    column: ColumnDef
    if_not_exists: bool = False


@dataclass(frozen=True, slots=True)
class DropColumn:
    name: str
    if_exists: bool = False
    cascade: bool = False


@dataclass(frozen=True, slots=True)
class AddConstraint:
    constraint: ConstraintDef


@dataclass(frozen=True, slots=True)
class DropConstraint:
    """``kind`` narrows the lookup: primary_key, foreign_key, index or None."""

    name: Optional[str]
    if_exists: bool = False
    kind: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AlterColumn:
    """``ALTER COLUMN``: each field is ``None`` when the clause is absent."""

    name: str
    set_not_null: Optional[bool] = None
    default: Optional[str] = None
    drop_default: bool = False
    new_type: Optional[TypeName] = None


@dataclass(frozen=True, slots=True)
class RenameColumn:
    old: str
    new: str


@dataclass(frozen=True, slots=True)
class RenameTable:
    new_name: QualifiedName


@dataclass(frozen=True, slots=True)
class ModifyColumn:
    """MySQL ``MODIFY`` (``old_name`` is None) and ``CHANGE`` (old → new)."""

    column: ColumnDef
    old_name: Optional[str] = None


AlterAction = Union[
    AddColumn,
    DropColumn,
    AddConstraint,
    DropConstraint,
    AlterColumn,
    RenameColumn,
    RenameTable,
    ModifyColumn,
]


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CreateTable:
    name: QualifiedName
    columns: Tuple[ColumnDef, ...]
    constraints: Tuple[ConstraintDef, ...] = ()
    if_not_exists: bool = False
    temporary: bool = False
    comment: Optional[str] = None
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AlterTable:
    name: QualifiedName
    actions: Tuple[AlterAction, ...]
    if_exists: bool = False
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CreateIndex:
    name: Optional[str]
    table: QualifiedName
    elements: Tuple[IndexElement, ...]
    unique: bool = False
    method: Optional[str] = None
    where: Optional[str] = None
    if_not_exists: bool = False
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CreateView:
    """The query is captured verbatim; views are not semantically modeled."""

    name: QualifiedName
    query: str
    or_replace: bool = False
    materialized: bool = False
    columns: Tuple[str, ...] = ()
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CreateEnumType:
    name: QualifiedName
    values: Tuple[str, ...]
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DropTable:
    names: Tuple[QualifiedName, ...]
    if_exists: bool = False
    cascade: bool = False
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DropIndex:
    names: Tuple[QualifiedName, ...]
    if_exists: bool = False
    table: Optional[QualifiedName] = None
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class DropView:
    names: Tuple[QualifiedName, ...]
    if_exists: bool = False
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CommentOn:
    """``COMMENT ON TABLE t`` / ``COMMENT ON COLUMN t.c``; ``text`` None clears."""

    target: str
    table: QualifiedName
    column: Optional[str] = None
    text: Optional[str] = None
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


Statement = Union[
    CreateTable,
    AlterTable,
    CreateIndex,
    CreateView,
    CreateEnumType,
    DropTable,
    DropIndex,
    DropView,
    CommentOn,
]


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    # names & types
    "QualifiedName",
    "TypeName",
    "ReferenceClause",
    # constraints
    "PrimaryKeyDef",
    "UniqueDef",
    "ForeignKeyDef",
    "CheckDef",
    "IndexElement",
    "IndexDef",
    "ConstraintDef",
    "ColumnDef",
    # alter actions
    "AddColumn",
    "DropColumn",
    "AddConstraint",
    "DropConstraint",
    "AlterColumn",
    "RenameColumn",
    "RenameTable",
    "ModifyColumn",
    "AlterAction",
    # statements
    "CreateTable",
    "AlterTable",
    "CreateIndex",
    "CreateView",
    "CreateEnumType",
    "DropTable",
    "DropIndex",
    "DropView",
    "CommentOn",
    "Statement",
]

logger.debug("ddlapi.ast_nodes loaded — %d public symbols.", len(__all__))
