# File: ddlapi/models.py
"""
ddlapi - Domain Model
======================
Pydantic V2 models for the resolved schema: tables, columns, constraints,
indexes, views, enum types and derived relationships.

These models form the single source of truth between the model builder and
everything downstream:

    Parsing → Model building → API inference → (external writers)

All models are frozen.  A ``DomainModel`` serializes deterministically with
``model_dump(mode="json")`` / ``model_dump_json()``.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Dict, FrozenSet, List, Literal, Optional, Set, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from ddlapi.diagnostics import Diagnostic

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.models")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SemanticType(str, Enum):
    """Dialect-independent meaning of a column type."""

    INTEGER = "integer"
    FLOAT = "float"
    DECIMAL = "decimal"
    TEXT = "text"
    BOOLEAN = "boolean"
    DATE = "date"
    TIME = "time"
    TIMESTAMP = "timestamp"
    INTERVAL = "interval"
    UUID = "uuid"
    JSON = "json"
    BINARY = "binary"
    ENUM = "enum"
    OTHER = "other"


class ReferentialAction(str, Enum):
    """Foreign-key ON DELETE / ON UPDATE behaviour."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


class RelationshipKind(str, Enum):
    """Derived relationship cardinalities."""

    ONE_TO_MANY = "one_to_many"
    ONE_TO_ONE = "one_to_one"
    MANY_TO_MANY = "many_to_many"


NUMERIC_SEMANTICS: FrozenSet[str] = frozenset({"integer", "float", "decimal"})
TEMPORAL_SEMANTICS: FrozenSet[str] = frozenset({"date", "time", "timestamp", "interval"})

# ---------------------------------------------------------------------------
# Shared model configuration
# ---------------------------------------------------------------------------

_SHARED_CONFIG: ConfigDict = ConfigDict(
    frozen=True,
    extra="forbid",
    use_enum_values=True,
    populate_by_name=True,
)


# ---------------------------------------------------------------------------
# Columns
# ---------------------------------------------------------------------------


class SqlType(BaseModel):
    """A declared SQL type plus its normalized semantic type."""

    model_config = _SHARED_CONFIG

    declared: str = Field(..., description="Type exactly as declared, e.g. 'VARCHAR(255)'.")
    base: str = Field(..., description="Upper-cased base type name, e.g. 'VARCHAR'.")
    semantic: SemanticType = Field(..., description="Normalized semantic type.")
    format: Optional[str] = Field(default=None, description="int32, date-time, uuid ...")
    length: Optional[int] = Field(default=None, ge=1, description="VARCHAR(n) / CHAR(n).")
    precision: Optional[int] = Field(default=None, ge=0)
    scale: Optional[int] = Field(default=None, ge=0)
    enum_values: Tuple[str, ...] = Field(default=(), description="Allowed enum values.")
    is_array: bool = False
    unsigned: bool = False
    timezone: Optional[bool] = None

    @property
    def is_numeric(self) -> bool:
        return self.semantic in NUMERIC_SEMANTICS

    @property
    def is_temporal(self) -> bool:
        return self.semantic in TEMPORAL_SEMANTICS

    @property
    def is_textual(self) -> bool:
        return self.semantic == SemanticType.TEXT

    def __repr__(self) -> str:
        return f"<SqlType {self.declared} → {self.semantic}>"


class Column(BaseModel):
    """
    A single resolved column.

    Every column of every table in the schema becomes exactly one
    ``Column`` instance, kept in declaration order.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1, description="Column name.")
    type: SqlType = Field(..., description="Declared and semantic type.")
    nullable: bool = Field(default=True, description="Whether the column allows NULL.")
    default: Optional[str] = Field(default=None, description="Default expression, verbatim.")
    auto_increment: bool = Field(default=False, description="SERIAL / IDENTITY / AUTO_INCREMENT.")
    generated: Optional[str] = Field(default=None, description="Computed-column expression.")
    comment: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return self.default is not None

    @property
    def is_generated(self) -> bool:
        return self.auto_increment or self.generated is not None

    def __repr__(self) -> str:
        null_flag: str = " NULL" if self.nullable else " NOT NULL"
        return f"<Column {self.name} {self.type.declared}{null_flag}>"


# ---------------------------------------------------------------------------
# Constraints (closed tagged union on ``kind``)
# ---------------------------------------------------------------------------


class TableRef(BaseModel):
    """Named reference to a table; never an owning pointer."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    schema_name: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.schema_name}.{self.name}" if self.schema_name else self.name


class PrimaryKeyConstraint(BaseModel):
    model_config = _SHARED_CONFIG

    kind: Literal["primary_key"] = "primary_key"
    name: Optional[str] = None
    columns: Tuple[str, ...] = Field(..., min_length=1)


class UniqueConstraint(BaseModel):
    model_config = _SHARED_CONFIG

    kind: Literal["unique"] = "unique"
    name: Optional[str] = None
    columns: Tuple[str, ...] = Field(..., min_length=1)


class ForeignKeyConstraint(BaseModel):
    """Foreign key; ``referenced_columns`` is filled in during resolution."""

    model_config = _SHARED_CONFIG

    kind: Literal["foreign_key"] = "foreign_key"
    name: Optional[str] = None
    columns: Tuple[str, ...] = Field(..., min_length=1)
    referenced_table: TableRef
    referenced_columns: Tuple[str, ...] = ()
    on_delete: Optional[ReferentialAction] = None
    on_update: Optional[ReferentialAction] = None

    def __repr__(self) -> str:
        return (
            f"<FK ({', '.join(self.columns)}) → "
            f"{self.referenced_table}({', '.join(self.referenced_columns)})>"
        )


class CheckConstraint(BaseModel):
    model_config = _SHARED_CONFIG

    kind: Literal["check"] = "check"
    name: Optional[str] = None
    expression: str = Field(..., min_length=1, description="CHECK expression, verbatim.")
    column: Optional[str] = Field(default=None, description="Set for column-level checks.")


Constraint = Annotated[
    Union[PrimaryKeyConstraint, UniqueConstraint, ForeignKeyConstraint, CheckConstraint],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Index
# ---------------------------------------------------------------------------


class Index(BaseModel):
    """Single, composite or expression index."""

    model_config = _SHARED_CONFIG

    name: Optional[str] = None
    columns: Tuple[str, ...] = Field(
        ..., min_length=1, description="Column names, or element text for expressions."
    )
    unique: bool = False
    method: Optional[str] = None
    where: Optional[str] = Field(default=None, description="Partial index predicate.")
    is_expression: bool = False


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------


class Table(BaseModel):
    """
    Complete representation of a single table.

    ``key`` is the folded ``schema.name`` lookup key used for duplicate
    detection and reference resolution.
    """

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    schema_name: Optional[str] = None
    key: str = Field(..., min_length=1)
    columns: Tuple[Column, ...] = ()
    constraints: Tuple[Constraint, ...] = ()
    indexes: Tuple[Index, ...] = ()
    comment: Optional[str] = None

    # -- O(1) column lookup (populated once) ---------------------------------
    _column_map: Dict[str, Column] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._column_map = {c.name: c for c in self.columns}

    @property
    def ref(self) -> TableRef:
        return TableRef(name=self.name, schema_name=self.schema_name)

    @property
    def qualified_name(self) -> str:
        return str(self.ref)

    @property
    def column_names(self) -> List[str]:
        return [c.name for c in self.columns]

    def get_column(self, name: str) -> Optional[Column]:
        """O(1) column lookup by (normalized) name."""
        return self._column_map.get(name)

    @property
    def primary_key(self) -> Optional[PrimaryKeyConstraint]:
        for constraint in self.constraints:
            if isinstance(constraint, PrimaryKeyConstraint):
                return constraint
        return None

    @property
    def primary_key_columns(self) -> Tuple[str, ...]:
        pk: Optional[PrimaryKeyConstraint] = self.primary_key
        return pk.columns if pk is not None else ()

    @property
    def unique_constraints(self) -> List[UniqueConstraint]:
        return [c for c in self.constraints if isinstance(c, UniqueConstraint)]

    @property
    def foreign_keys(self) -> List[ForeignKeyConstraint]:
        return [c for c in self.constraints if isinstance(c, ForeignKeyConstraint)]

    @property
    def checks(self) -> List[CheckConstraint]:
        return [c for c in self.constraints if isinstance(c, CheckConstraint)]

    def unique_column_sets(self) -> List[Tuple[str, ...]]:
        """Primary key, unique constraints and plain unique indexes, in order."""
        sets: List[Tuple[str, ...]] = []
        if self.primary_key_columns:
            sets.append(self.primary_key_columns)
        sets.extend(u.columns for u in self.unique_constraints)
        sets.extend(
            i.columns
            for i in self.indexes
            if i.unique and not i.is_expression and i.where is None
        )
        return sets

    def is_unique_set(self, columns: Tuple[str, ...]) -> bool:
        wanted: Set[str] = set(columns)
        return any(set(s) == wanted for s in self.unique_column_sets())

    def __repr__(self) -> str:
        return (
            f"<Table {self.qualified_name} "
            f"({len(self.columns)} cols, {len(self.constraints)} constraints)>"
        )


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


class JunctionLink(BaseModel):
    """The junction table behind a many-to-many relationship."""

    model_config = _SHARED_CONFIG

    table: TableRef
    from_columns: Tuple[str, ...] = Field(..., description="Junction columns → from_table.")
    to_columns: Tuple[str, ...] = Field(..., description="Junction columns → to_table.")


class Relationship(BaseModel):
    """
    A relationship derived from foreign keys.

    ``from_*`` is the referencing side and ``to_*`` the referenced side.
    For many-to-many, both sides are the tables linked by ``junction``.
    """

    model_config = _SHARED_CONFIG

    kind: RelationshipKind
    name: str = Field(..., min_length=1)
    from_table: TableRef
    from_columns: Tuple[str, ...]
    to_table: TableRef
    to_columns: Tuple[str, ...]
    junction: Optional[JunctionLink] = None
    on_delete: Optional[ReferentialAction] = None
    on_update: Optional[ReferentialAction] = None
    self_referential: bool = False

    @field_validator("from_columns", "to_columns")
    @classmethod
    def _non_empty(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("Relationship column lists must not be empty.")
        return v

    def involves(self, ref: TableRef) -> bool:
        if self.from_table == ref or self.to_table == ref:
            return True
        return self.junction is not None and self.junction.table == ref

    def __repr__(self) -> str:
        return (
            f"<Relationship {self.name} ({self.kind}) "
            f"{self.from_table} → {self.to_table}>"
        )


# ---------------------------------------------------------------------------
# Views & enum types
# ---------------------------------------------------------------------------


class ViewDefinition(BaseModel):
    """A view; the query is kept verbatim and not modeled."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    schema_name: Optional[str] = None
    query: str
    materialized: bool = False
    columns: Tuple[str, ...] = ()


class EnumType(BaseModel):
    """A named enum type (PostgreSQL ``CREATE TYPE ... AS ENUM``)."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    schema_name: Optional[str] = None
    values: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Domain model
# ---------------------------------------------------------------------------


class DomainModel(BaseModel):
    """
    The closed set of resolved tables plus the relationship index.

    Invariant: every foreign key resolves to an existing table and to its
    primary key or a unique key, or the model carries the corresponding
    resolution errors in ``errors`` and ``is_valid`` is False.
    """

    model_config = _SHARED_CONFIG

    dialect: str
    tables: Tuple[Table, ...] = ()
    relationships: Tuple[Relationship, ...] = ()
    junction_tables: Tuple[TableRef, ...] = ()
    views: Tuple[ViewDefinition, ...] = ()
    enums: Tuple[EnumType, ...] = ()
    errors: Tuple[Diagnostic, ...] = ()

    _by_ref: Dict[Tuple[Optional[str], str], Table] = PrivateAttr(default_factory=dict)
    _by_key: Dict[str, Table] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._by_ref = {(t.schema_name, t.name): t for t in self.tables}
        self._by_key = {t.key: t for t in self.tables}
        logger.debug(
            "DomainModel ready: %d tables, %d relationships, %d errors.",
            len(self.tables),
            len(self.relationships),
            len(self.errors),
        )

    # -- Status -------------------------------------------------------------

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def table_names(self) -> List[str]:
        return [t.name for t in self.tables]

    # -- Lookup -------------------------------------------------------------

    def table_for(self, ref: TableRef) -> Optional[Table]:
        return self._by_ref.get((ref.schema_name, ref.name))

    def get_table(self, name: str, schema_name: Optional[str] = None) -> Optional[Table]:
        """Find a table by its name (and schema), or by its folded key."""
        if name in self._by_key:
            return self._by_key[name]
        for table in self.tables:
            if table.name == name and (schema_name is None or table.schema_name == schema_name):
                return table
        return None

    def is_junction(self, table: Table) -> bool:
        return table.ref in self.junction_tables

    def relationships_for(self, table: Union[Table, TableRef, str]) -> List[Relationship]:
        """Every relationship in which *table* takes part, in model order."""
        ref: Optional[TableRef]
        if isinstance(table, Table):
            ref = table.ref
        elif isinstance(table, TableRef):
            ref = table
        else:
            found: Optional[Table] = self.get_table(table)
            ref = found.ref if found is not None else None
        if ref is None:
            return []
        return [r for r in self.relationships if r.involves(ref)]

    def topological_order(self) -> List[Table]:
        """
        Tables ordered so that referenced tables precede referencing ones.

        Kahn's algorithm; ties keep declaration order and tables caught in
        a foreign-key cycle are appended in declaration order.

        Complexity: O(T + F) for T tables and F foreign keys.
        """
        position: Dict[Tuple[Optional[str], str], int] = {
            (t.schema_name, t.name): i for i, t in enumerate(self.tables)
        }
        indegree: List[int] = [0] * len(self.tables)
        dependants: List[List[int]] = [[] for _ in self.tables]

        for i, table in enumerate(self.tables):
            targets: Set[int] = set()
            for fk in table.foreign_keys:
                target: Optional[int] = position.get(
                    (fk.referenced_table.schema_name, fk.referenced_table.name)
                )
                if target is not None and target != i:
                    targets.add(target)
            for target in sorted(targets):
                dependants[target].append(i)
                indegree[i] += 1

        ready: List[int] = [i for i, d in enumerate(indegree) if d == 0]
        ordered: List[int] = []
        while ready:
            ready.sort()
            current: int = ready.pop(0)
            ordered.append(current)
            for dependant in dependants[current]:
                indegree[dependant] -= 1
                if indegree[dependant] == 0:
                    ready.append(dependant)

        placed: Set[int] = set(ordered)
        ordered.extend(i for i in range(len(self.tables)) if i not in placed)
        return [self.tables[i] for i in ordered]

    def __repr__(self) -> str:
        return (
            f"<DomainModel {self.dialect} ({len(self.tables)} tables, "
            f"{len(self.relationships)} relationships, {len(self.errors)} errors)>"
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    # enums
    "SemanticType",
    "ReferentialAction",
    "RelationshipKind",
    "NUMERIC_SEMANTICS",
    "TEMPORAL_SEMANTICS",
    # columns
    "SqlType",
    "Column",
    # constraints
    "TableRef",
    "PrimaryKeyConstraint",
    "UniqueConstraint",
    "ForeignKeyConstraint",
    "CheckConstraint",
    "Constraint",
    "Index",
    "Table",
    # relationships
    "JunctionLink",
    "Relationship",
    # other objects
    "ViewDefinition",
    "EnumType",
    "DomainModel",
]

logger.debug("ddlapi.models loaded — %d public symbols.", len(__all__))
