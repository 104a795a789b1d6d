# File: ddlapi/builder.py
"""
ddlapi - Domain Model Builder
==============================
Resolves parsed statements (from one or more inputs, treated as one logical
schema) into a ``DomainModel``.

Passes
------
0. register ``CREATE TYPE ... AS ENUM`` types;
1. register every ``CREATE TABLE`` / ``CREATE VIEW`` (forward references are
   ignored at this point);
2. apply ``ALTER TABLE``, ``CREATE INDEX``, ``DROP ...`` and ``COMMENT ON``
   in statement order;
3. resolve every foreign key against the now complete table set;
4. derive relationships (``ddlapi.relationships``).

Resolution failures are raised as ``ModelError`` inside the handlers and
collected per statement, action or foreign key; processing always
continues so one run reports every resolvable problem.  The returned model
carries the collected errors and is invalid when there are any.

Tables are mutable drafts while the passes run and are frozen into the
Pydantic models of ``ddlapi.models`` at the end.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from ddlapi.ast_nodes import (
    AddColumn,
    AddConstraint,
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
    RenameColumn,
    RenameTable,
    Statement,
    TypeName,
    UniqueDef,
)
from ddlapi.config import PipelineConfig
from ddlapi.diagnostics import Diagnostic, Diagnostics, SourcePosition, Stage
from ddlapi.dialects import Dialect, DialectGrammar, TypeRule, get_grammar
from ddlapi.errors import ModelError
from ddlapi.models import (
    CheckConstraint,
    Column,
    Constraint,
    DomainModel,
    EnumType,
    ForeignKeyConstraint,
    Index,
    NUMERIC_SEMANTICS,
    PrimaryKeyConstraint,
    SqlType,
    Table,
    TableRef,
    UniqueConstraint,
    ViewDefinition,
)
from ddlapi.relationships import derive_relationships

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.builder")

_OTHER_RULE: TypeRule = TypeRule("other")
_BOOLEAN_RULE: TypeRule = TypeRule("boolean")


# ---------------------------------------------------------------------------
# Mutable drafts (internal to one build)
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class _ColumnDraft:
    name: str
    type: SqlType
    nullable: bool = True
    default: Optional[str] = None
    auto_increment: bool = False
    generated: Optional[str] = None
    comment: Optional[str] = None

    def freeze(self) -> Column:
        return Column(
            name=self.name,
            type=self.type,
            nullable=self.nullable,
            default=self.default,
            auto_increment=self.auto_increment,
            generated=self.generated,
            comment=self.comment,
        )


@dataclass(slots=True)
class _ConstraintDraft:
    constraint: Constraint
    position: Optional[SourcePosition] = None
    source: Optional[str] = None


@dataclass(slots=True)
class _TableDraft:
    name: str
    schema_name: Optional[str]
    key: str
    statement_index: int
    position: Optional[SourcePosition] = None
    source: Optional[str] = None
    comment: Optional[str] = None
    columns: List[_ColumnDraft] = field(default_factory=list)
    constraints: List[_ConstraintDraft] = field(default_factory=list)
    indexes: List[Index] = field(default_factory=list)

    @property
    def ref(self) -> TableRef:
        return TableRef(name=self.name, schema_name=self.schema_name)

    @property
    def label(self) -> str:
        return str(self.ref)

    def primary_key(self) -> Optional[PrimaryKeyConstraint]:
        for entry in self.constraints:
            if isinstance(entry.constraint, PrimaryKeyConstraint):
                return entry.constraint
        return None

    def unique_sets(self) -> List[Tuple[str, ...]]:
        sets: List[Tuple[str, ...]] = []
        pk: Optional[PrimaryKeyConstraint] = self.primary_key()
        if pk is not None:
            sets.append(pk.columns)
        sets.extend(
            e.constraint.columns
            for e in self.constraints
            if isinstance(e.constraint, UniqueConstraint)
        )
        sets.extend(
            i.columns
            for i in self.indexes
            if i.unique and not i.is_expression and i.where is None
        )
        return sets

    def freeze(self) -> Table:
        return Table(
            name=self.name,
            schema_name=self.schema_name,
            key=self.key,
            columns=tuple(c.freeze() for c in self.columns),
            constraints=tuple(e.constraint for e in self.constraints),
            indexes=tuple(self.indexes),
            comment=self.comment,
        )


# ---------------------------------------------------------------------------
# One build run
# ---------------------------------------------------------------------------


class _BuildRun:
    """All mutable state of a single ``build()`` call."""

    def __init__(
        self,
        grammar: DialectGrammar,
        diagnostics: Diagnostics,
        schema_filter: Optional[str],
    ) -> None:
        self.grammar: DialectGrammar = grammar
        self.diagnostics: Diagnostics = diagnostics
        self.schema_filter: Optional[str] = schema_filter
        self.statements: List[Statement] = []
        self.tables: Dict[str, _TableDraft] = {}
        self.enums: Dict[str, EnumType] = {}
        self.views: Dict[str, ViewDefinition] = {}
        self.errors: List[Diagnostic] = []

    # ------------------------------------------------------------------
    # Diagnostics helpers
    # ------------------------------------------------------------------

    def _attempt(
        self,
        position: Optional[SourcePosition],
        source: Optional[str],
        fn: Callable[..., Any],
        *args: Any,
    ) -> None:
        """Run *fn*; a ``ModelError`` it raises is recorded and swallowed here."""
        try:
            fn(*args)
        except ModelError as exc:
            if exc.position is None:
                exc.position = position
            if exc.source is None:
                exc.source = source
            diagnostic: Diagnostic = self.diagnostics.add(exc.to_diagnostic())
            self.errors.append(diagnostic)
            logger.debug("Model error: %s", diagnostic)

    def _warn(
        self,
        code: str,
        message: str,
        position: Optional[SourcePosition] = None,
        source: Optional[str] = None,
    ) -> None:
        self.diagnostics.warning(Stage.MODEL, code, message, source=source, position=position)

    def _info(
        self,
        code: str,
        message: str,
        position: Optional[SourcePosition] = None,
        source: Optional[str] = None,
    ) -> None:
        self.diagnostics.info(Stage.MODEL, code, message, source=source, position=position)

    # ------------------------------------------------------------------
    # Name helpers
    # ------------------------------------------------------------------

    def _key(self, name: QualifiedName) -> str:
        return self.grammar.table_key(name.schema, name.name)

    def _ref_key(self, ref: TableRef) -> str:
        return self.grammar.table_key(ref.schema_name, ref.name)

    def _same(self, a: str, b: str) -> bool:
        return self.grammar.fold(a) == self.grammar.fold(b)

    def _find_column(self, draft: _TableDraft, name: str) -> Optional[_ColumnDraft]:
        for column in draft.columns:
            if self._same(column.name, name):
                return column
        return None

    def _require_table(self, name: QualifiedName, what: str) -> _TableDraft:
        draft: Optional[_TableDraft] = self.tables.get(self._key(name))
        if draft is None:
            raise ModelError("UNKNOWN_TABLE", f"{what} targets unknown table '{name}'", table=str(name))
        return draft

    def _require_column(self, draft: _TableDraft, name: str, what: str) -> _ColumnDraft:
        column: Optional[_ColumnDraft] = self._find_column(draft, name)
        if column is None:
            raise ModelError(
                "UNKNOWN_COLUMN",
                f"{what} on table '{draft.label}' references unknown column '{name}'",
                table=draft.label,
            )
        return column

    def _canonical(self, draft: _TableDraft, names: Iterable[str], what: str) -> Tuple[str, ...]:
        return tuple(self._require_column(draft, n, what).name for n in names)

    def _rename(self, names: Tuple[str, ...], old: str, new: str) -> Tuple[str, ...]:
        return tuple(new if self._same(n, old) else n for n in names)

    def _dropped_between(self, key: str, start: int, end: int) -> bool:
        for statement in self.statements[start + 1:end]:
            if isinstance(statement, DropTable) and any(
                self._key(n) == key for n in statement.names
            ):
                return True
        return False

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def execute(self, statements: List[Statement]) -> DomainModel:
        self.statements = statements

        # Pass 0: enum types
        for st in statements:
            if isinstance(st, CreateEnumType):
                self._attempt(st.position, st.source, self._register_enum, st)

        # Pass 1: tables and views
        for index, st in enumerate(statements):
            if isinstance(st, CreateTable):
                self._attempt(st.position, st.source, self._register_table, st, index)
            elif isinstance(st, CreateView):
                self._attempt(st.position, st.source, self._register_view, st)

        # Pass 2: changes, in statement order
        for index, st in enumerate(statements):
            if isinstance(st, AlterTable):
                self._attempt(st.position, st.source, self._apply_alter, st)
            elif isinstance(st, CreateIndex):
                self._attempt(st.position, st.source, self._apply_create_index, st)
            elif isinstance(st, DropTable):
                self._attempt(st.position, st.source, self._apply_drop_table, st, index)
            elif isinstance(st, DropIndex):
                self._attempt(st.position, st.source, self._apply_drop_index, st)
            elif isinstance(st, DropView):
                self._attempt(st.position, st.source, self._apply_drop_view, st)
            elif isinstance(st, CommentOn):
                self._attempt(st.position, st.source, self._apply_comment, st)

        # Pass 3: foreign keys
        for draft in list(self.tables.values()):
            for i, entry in enumerate(draft.constraints):
                if isinstance(entry.constraint, ForeignKeyConstraint):
                    self._attempt(entry.position, entry.source, self._resolve_foreign_key, draft, i)

        for draft in self.tables.values():
            if draft.primary_key() is None:
                self._warn(
                    "NO_PRIMARY_KEY",
                    f"Table '{draft.label}' has no primary key",
                    draft.position,
                    draft.source,
                )
        self._report_cycles()

        tables: List[Table] = [d.freeze() for d in self.tables.values()]
        views: List[ViewDefinition] = list(self.views.values())
        enums: List[EnumType] = list(self.enums.values())
        if self.schema_filter is not None:
            tables, views, enums = self._apply_schema_filter(tables, views, enums)

        # Pass 4: relationships
        relationships, junctions = derive_relationships(tables)

        model: DomainModel = DomainModel(
            dialect=self.grammar.dialect.value,
            tables=tuple(tables),
            relationships=tuple(relationships),
            junction_tables=tuple(junctions),
            views=tuple(views),
            enums=tuple(enums),
            errors=tuple(self.errors),
        )
        logger.info(
            "Built domain model: %d table(s), %d relationship(s), %d error(s).",
            len(model.tables),
            len(model.relationships),
            len(model.errors),
        )
        return model

    # ------------------------------------------------------------------
    # Pass 0 / 1: registration
    # ------------------------------------------------------------------

    def _register_enum(self, st: CreateEnumType) -> None:
        key: str = self._key(st.name)
        if key in self.enums:
            raise ModelError("DUPLICATE_TYPE", f"Duplicate enum type '{st.name}'")
        if len(set(st.values)) != len(st.values):
            self._warn("DUPLICATE_ENUM_VALUE", f"Enum type '{st.name}' repeats a value", st.position, st.source)
        self.enums[key] = EnumType(
            name=st.name.name,
            schema_name=st.name.schema or self.grammar.default_schema,
            values=tuple(dict.fromkeys(st.values)),
        )

    def _register_view(self, st: CreateView) -> None:
        key: str = self._key(st.name)
        if key in self.views and not st.or_replace:
            raise ModelError("DUPLICATE_VIEW", f"Duplicate view '{st.name}'")
        self.views[key] = ViewDefinition(
            name=st.name.name,
            schema_name=st.name.schema or self.grammar.default_schema,
            query=st.query,
            materialized=st.materialized,
            columns=st.columns,
        )

    def _register_table(self, st: CreateTable, index: int) -> None:
        key: str = self._key(st.name)
        existing: Optional[_TableDraft] = self.tables.get(key)
        if existing is not None:
            if self._dropped_between(key, existing.statement_index, index):
                del self.tables[key]
            elif st.if_not_exists:
                self._warn(
                    "DUPLICATE_TABLE",
                    f"Table '{st.name}' is declared again with IF NOT EXISTS; "
                    f"the first declaration is kept",
                    st.position,
                    st.source,
                )
                return
            else:
                first: str = str(existing.position) if existing.position else "?"
                raise ModelError(
                    "DUPLICATE_TABLE",
                    f"Duplicate table '{st.name}' (first declared at {first})",
                    table=str(st.name),
                )

        draft: _TableDraft = _TableDraft(
            name=st.name.name,
            schema_name=st.name.schema or self.grammar.default_schema,
            key=key,
            statement_index=index,
            position=st.position,
            source=st.source,
            comment=st.comment,
        )
        self.tables[key] = draft

        for coldef in st.columns:
            self._attempt(coldef.position or st.position, st.source, self._add_column, draft, coldef, st.source)
        for cdef in st.constraints:
            self._attempt(cdef.position or st.position, st.source, self._add_constraint, draft, cdef, st.source)
        if not st.columns:
            self._warn("EMPTY_TABLE", f"Table '{draft.label}' declares no columns", st.position, st.source)

    # ------------------------------------------------------------------
    # Columns and types
    # ------------------------------------------------------------------

    def _map_type(
        self,
        type_name: Optional[TypeName],
        where: str,
        position: Optional[SourcePosition],
        source: Optional[str],
    ) -> Tuple[SqlType, bool]:
        """Map a declared type; returns the type and whether it implies auto-increment."""
        if type_name is None:
            return SqlType(declared="", base="", semantic="other"), False

        base: str = type_name.base
        rule: Optional[TypeRule] = self.grammar.lookup_type(base)
        enum_values: Tuple[str, ...] = ()

        if rule is None and type_name.identifier is not None:
            enum: Optional[EnumType] = self.enums.get(
                self.grammar.table_key(type_name.schema, type_name.identifier)
            )
            if enum is not None:
                rule = TypeRule("enum")
                enum_values = enum.values
        if rule is None:
            if self.grammar.affinity_types:
                rule = self.grammar.affinity_rule(base)
            else:
                self._warn(
                    "UNKNOWN_TYPE",
                    f"Unknown type '{type_name.raw or base}' for column '{where}'; mapped to 'other'",
                    position,
                    source,
                )
                rule = _OTHER_RULE
        if self.grammar.tinyint1_boolean and base == "TINYINT" and type_name.args == ("1",):
            rule = _BOOLEAN_RULE

        length: Optional[int] = None
        precision: Optional[int] = None
        scale: Optional[int] = None
        args: Tuple[str, ...] = type_name.args
        if rule.sized and args:
            length = _positive_int(args[0])
        if rule.numeric_args and args:
            precision = _positive_int(args[0], allow_zero=True)
            if len(args) > 1:
                scale = _positive_int(args[1], allow_zero=True)
        if rule.enum_args:
            enum_values = args

        sql_type: SqlType = SqlType(
            declared=type_name.raw or base,
            base=base,
            semantic=rule.semantic,
            format=rule.format,
            length=length,
            precision=precision,
            scale=scale,
            enum_values=enum_values,
            is_array=type_name.is_array or rule.is_array,
            unsigned=type_name.unsigned,
            timezone=type_name.timezone if type_name.timezone is not None else rule.timezone,
        )
        return sql_type, rule.auto_increment

    def _column_draft(self, draft: _TableDraft, coldef: ColumnDef, source: Optional[str]) -> _ColumnDraft:
        sql_type, implied = self._map_type(
            coldef.type, f"{draft.label}.{coldef.name}", coldef.position, source
        )
        return _ColumnDraft(
            name=coldef.name,
            type=sql_type,
            nullable=not coldef.not_null if coldef.not_null is not None else True,
            default=coldef.default,
            auto_increment=coldef.auto_increment or implied,
            generated=coldef.generated,
            comment=coldef.comment,
        )

    def _add_column(self, draft: _TableDraft, coldef: ColumnDef, source: Optional[str]) -> None:
        if self._find_column(draft, coldef.name) is not None:
            raise ModelError(
                "DUPLICATE_COLUMN",
                f"Duplicate column '{coldef.name}' in table '{draft.label}'",
                table=draft.label,
            )
        draft.columns.append(self._column_draft(draft, coldef, source))
        for cdef in coldef.constraints:
            self._attempt(cdef.position or coldef.position, source, self._add_constraint, draft, cdef, source)

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def _add_constraint(self, draft: _TableDraft, cdef: ConstraintDef, source: Optional[str]) -> None:
        position: Optional[SourcePosition] = cdef.position

        if isinstance(cdef, PrimaryKeyDef):
            columns: Tuple[str, ...] = self._canonical(draft, cdef.columns, "Primary key")
            if draft.primary_key() is not None:
                raise ModelError(
                    "MULTIPLE_PRIMARY_KEYS",
                    f"Table '{draft.label}' declares more than one primary key",
                    table=draft.label,
                )
            for name in columns:
                self._require_column(draft, name, "Primary key").nullable = False
            constraint: Constraint = PrimaryKeyConstraint(name=cdef.name, columns=columns)

        elif isinstance(cdef, UniqueDef):
            constraint = UniqueConstraint(
                name=cdef.name, columns=self._canonical(draft, cdef.columns, "Unique constraint")
            )

        elif isinstance(cdef, ForeignKeyDef):
            ref = cdef.reference
            constraint = ForeignKeyConstraint(
                name=cdef.name,
                columns=self._canonical(draft, cdef.columns, "Foreign key"),
                referenced_table=TableRef(name=ref.table.name, schema_name=ref.table.schema),
                referenced_columns=ref.columns,
                on_delete=ref.on_delete,
                on_update=ref.on_update,
            )

        elif isinstance(cdef, CheckDef):
            column: Optional[str] = None
            if cdef.column is not None:
                column = self._require_column(draft, cdef.column, "Check constraint").name
            constraint = CheckConstraint(name=cdef.name, expression=cdef.expression, column=column)

        else:
            draft.indexes.append(self._index(draft, cdef.elements, cdef.name, cdef.unique, cdef.kind, None))
            return

        draft.constraints.append(_ConstraintDraft(constraint, position, source))

    def _index(
        self,
        draft: _TableDraft,
        elements: Tuple[IndexElement, ...],
        name: Optional[str],
        unique: bool,
        method: Optional[str],
        where: Optional[str],
    ) -> Index:
        columns: List[str] = []
        is_expression: bool = False
        for element in elements:
            if element.column is None:
                is_expression = True
                columns.append(element.text)
            else:
                columns.append(self._require_column(draft, element.column, "Index").name)
        return Index(
            name=name,
            columns=tuple(columns),
            unique=unique,
            method=method,
            where=where,
            is_expression=is_expression,
        )

    # ------------------------------------------------------------------
    # Pass 2: ALTER TABLE
    # ------------------------------------------------------------------

    def _apply_alter(self, st: AlterTable) -> None:
        draft: Optional[_TableDraft] = self.tables.get(self._key(st.name))
        if draft is None:
            if st.if_exists:
                self._warn(
                    "UNKNOWN_TABLE",
                    f"ALTER TABLE IF EXISTS targets unknown table '{st.name}'; skipped",
                    st.position,
                    st.source,
                )
                return
            raise ModelError("UNKNOWN_TABLE", f"ALTER TABLE targets unknown table '{st.name}'", table=str(st.name))
        for action in st.actions:
            self._attempt(st.position, st.source, self._alter_action, draft, action, st)

    def _alter_action(self, draft: _TableDraft, action: Any, st: AlterTable) -> None:
        if isinstance(action, AddColumn):
            if action.if_not_exists and self._find_column(draft, action.column.name) is not None:
                return
            self._add_column(draft, action.column, st.source)
        elif isinstance(action, DropColumn):
            self._drop_column(draft, action, st)
        elif isinstance(action, AddConstraint):
            self._add_constraint(draft, action.constraint, st.source)
        elif isinstance(action, DropConstraint):
            self._drop_constraint(draft, action, st)
        elif isinstance(action, AlterColumn):
            self._alter_column(draft, action, st)
        elif isinstance(action, RenameColumn):
            self._rename_column(draft, action.old, action.new)
        elif isinstance(action, RenameTable):
            self._rename_table(draft, action.new_name)
        elif isinstance(action, ModifyColumn):
            self._modify_column(draft, action, st)

    def _drop_column(self, draft: _TableDraft, action: DropColumn, st: AlterTable) -> None:
        column: Optional[_ColumnDraft] = self._find_column(draft, action.name)
        if column is None:
            if action.if_exists:
                self._info("UNKNOWN_COLUMN", f"DROP COLUMN IF EXISTS: no column '{action.name}' in '{draft.label}'", st.position, st.source)
                return
            self._require_column(draft, action.name, "DROP COLUMN")
            return
        name: str = column.name
        draft.columns.remove(column)
        kept: List[_ConstraintDraft] = []
        for entry in draft.constraints:
            c = entry.constraint
            if isinstance(c, CheckConstraint):
                if c.column is not None and self._same(c.column, name):
                    continue
            elif any(self._same(n, name) for n in c.columns):
                continue
            kept.append(entry)
        draft.constraints = kept
        draft.indexes = [
            i for i in draft.indexes
            if i.is_expression or not any(self._same(n, name) for n in i.columns)
        ]
        if action.cascade:
            self._drop_incoming_foreign_keys(draft.key, column=name)

    def _drop_constraint(self, draft: _TableDraft, action: DropConstraint, st: AlterTable) -> None:
        if action.kind == "primary_key":
            before: int = len(draft.constraints)
            draft.constraints = [
                e for e in draft.constraints if not isinstance(e.constraint, PrimaryKeyConstraint)
            ]
            if len(draft.constraints) == before:
                raise ModelError("UNKNOWN_CONSTRAINT", f"Table '{draft.label}' has no primary key to drop", table=draft.label)
            return

        name: str = action.name or ""
        if action.kind != "index":
            for entry in draft.constraints:
                if entry.constraint.name is not None and self._same(entry.constraint.name, name):
                    draft.constraints.remove(entry)
                    return
        for index in draft.indexes:
            if index.name is not None and self._same(index.name, name):
                draft.indexes.remove(index)
                return
        if action.kind == "index":
            # MySQL unique keys are dropped as indexes
            for entry in draft.constraints:
                if isinstance(entry.constraint, UniqueConstraint) and entry.constraint.name is not None \
                        and self._same(entry.constraint.name, name):
                    draft.constraints.remove(entry)
                    return

        if action.if_exists:
            self._info("UNKNOWN_CONSTRAINT", f"DROP CONSTRAINT IF EXISTS: no constraint '{name}' on '{draft.label}'", st.position, st.source)
            return
        raise ModelError(
            "UNKNOWN_CONSTRAINT",
            f"Table '{draft.label}' has no constraint or index named '{name}'",
            table=draft.label,
        )

    def _alter_column(self, draft: _TableDraft, action: AlterColumn, st: AlterTable) -> None:
        column: _ColumnDraft = self._require_column(draft, action.name, "ALTER COLUMN")
        if action.set_not_null is not None:
            pk: Optional[PrimaryKeyConstraint] = draft.primary_key()
            if not action.set_not_null and pk is not None and column.name in pk.columns:
                raise ModelError(
                    "PRIMARY_KEY_NULLABLE",
                    f"Column '{draft.label}.{column.name}' is part of the primary key and cannot be nullable",
                    table=draft.label,
                )
            column.nullable = not action.set_not_null
        if action.default is not None:
            column.default = action.default
        if action.drop_default:
            column.default = None
        if action.new_type is not None:
            column.type, implied = self._map_type(
                action.new_type, f"{draft.label}.{column.name}", st.position, st.source
            )
            column.auto_increment = column.auto_increment or implied

    def _modify_column(self, draft: _TableDraft, action: ModifyColumn, st: AlterTable) -> None:
        old_name: str = action.old_name or action.column.name
        column: _ColumnDraft = self._require_column(draft, old_name, "MODIFY COLUMN")
        if action.old_name is not None and not self._same(old_name, action.column.name):
            self._rename_column(draft, old_name, action.column.name)
        replacement: _ColumnDraft = self._column_draft(draft, action.column, st.source)
        pk: Optional[PrimaryKeyConstraint] = draft.primary_key()
        if pk is not None and replacement.name in pk.columns:
            replacement.nullable = False
        draft.columns[draft.columns.index(column)] = replacement
        for cdef in action.column.constraints:
            self._attempt(cdef.position or st.position, st.source, self._add_constraint, draft, cdef, st.source)

    def _rename_column(self, draft: _TableDraft, old: str, new: str) -> None:
        column: _ColumnDraft = self._require_column(draft, old, "RENAME COLUMN")
        if self._find_column(draft, new) is not None and not self._same(old, new):
            raise ModelError(
                "DUPLICATE_COLUMN",
                f"Cannot rename '{draft.label}.{old}': column '{new}' already exists",
                table=draft.label,
            )
        old_name: str = column.name
        column.name = new
        for entry in draft.constraints:
            c = entry.constraint
            if isinstance(c, CheckConstraint):
                if c.column is not None and self._same(c.column, old_name):
                    entry.constraint = c.model_copy(update={"column": new})
            else:
                entry.constraint = c.model_copy(update={"columns": self._rename(c.columns, old_name, new)})
        draft.indexes = [
            i if i.is_expression else i.model_copy(update={"columns": self._rename(i.columns, old_name, new)})
            for i in draft.indexes
        ]
        for other in self.tables.values():
            for entry in other.constraints:
                c = entry.constraint
                if isinstance(c, ForeignKeyConstraint) and self._ref_key(c.referenced_table) == draft.key:
                    entry.constraint = c.model_copy(
                        update={"referenced_columns": self._rename(c.referenced_columns, old_name, new)}
                    )

    def _rename_table(self, draft: _TableDraft, new_name: QualifiedName) -> None:
        schema: Optional[str] = new_name.schema or draft.schema_name
        new_key: str = self.grammar.table_key(schema, new_name.name)
        if new_key in self.tables and new_key != draft.key:
            raise ModelError(
                "DUPLICATE_TABLE",
                f"Cannot rename '{draft.label}' to '{new_name}': table already exists",
                table=draft.label,
            )
        old_key: str = draft.key
        draft.name, draft.schema_name, draft.key = new_name.name, schema, new_key
        self.tables = {
            (new_key if k == old_key else k): v for k, v in self.tables.items()
        }
        for other in self.tables.values():
            for entry in other.constraints:
                c = entry.constraint
                if isinstance(c, ForeignKeyConstraint) and self._ref_key(c.referenced_table) == old_key:
                    entry.constraint = c.model_copy(update={"referenced_table": draft.ref})

    def _drop_incoming_foreign_keys(self, key: str, column: Optional[str] = None) -> None:
        for other in self.tables.values():
            other.constraints = [
                e for e in other.constraints
                if not (
                    isinstance(e.constraint, ForeignKeyConstraint)
                    and self._ref_key(e.constraint.referenced_table) == key
                    and (
                        column is None
                        or any(self._same(n, column) for n in e.constraint.referenced_columns)
                    )
                )
            ]

    # ------------------------------------------------------------------
    # Pass 2: indexes, drops, comments
    # ------------------------------------------------------------------

    def _apply_create_index(self, st: CreateIndex) -> None:
        draft: _TableDraft = self._require_table(st.table, "CREATE INDEX")
        if st.name is not None and any(
            i.name is not None and self._same(i.name, st.name) for i in draft.indexes
        ):
            if st.if_not_exists:
                return
            raise ModelError(
                "DUPLICATE_INDEX",
                f"Index '{st.name}' already exists on table '{draft.label}'",
                table=draft.label,
            )
        draft.indexes.append(self._index(draft, st.elements, st.name, st.unique, st.method, st.where))

    def _apply_drop_table(self, st: DropTable, index: int) -> None:
        for name in st.names:
            key: str = self._key(name)
            draft: Optional[_TableDraft] = self.tables.get(key)
            if draft is not None and draft.statement_index < index:
                del self.tables[key]
                if st.cascade:
                    self._drop_incoming_foreign_keys(key)
            elif draft is not None or st.if_exists:
                # IF EXISTS, or the table is only created later
                self._info("DROP_SKIPPED", f"DROP TABLE: '{name}' does not exist at this point", st.position, st.source)
            else:
                raise ModelError("UNKNOWN_TABLE", f"DROP TABLE targets unknown table '{name}'", table=str(name))

    def _apply_drop_index(self, st: DropIndex) -> None:
        candidates: List[_TableDraft] = (
            [self._require_table(st.table, "DROP INDEX")] if st.table is not None
            else list(self.tables.values())
        )
        for name in st.names:
            found: bool = False
            for draft in candidates:
                for idx in draft.indexes:
                    if idx.name is not None and self._same(idx.name, name.name):
                        draft.indexes.remove(idx)
                        found = True
                        break
                if found:
                    break
            if found:
                continue
            if st.if_exists:
                self._info("DROP_SKIPPED", f"DROP INDEX: '{name}' does not exist", st.position, st.source)
            else:
                raise ModelError("UNKNOWN_INDEX", f"DROP INDEX targets unknown index '{name}'")

    def _apply_drop_view(self, st: DropView) -> None:
        for name in st.names:
            key: str = self._key(name)
            if key in self.views:
                del self.views[key]
            elif st.if_exists:
                self._info("DROP_SKIPPED", f"DROP VIEW: '{name}' does not exist", st.position, st.source)
            else:
                raise ModelError("UNKNOWN_VIEW", f"DROP VIEW targets unknown view '{name}'")

    def _apply_comment(self, st: CommentOn) -> None:
        draft: Optional[_TableDraft] = self.tables.get(self._key(st.table))
        if draft is None:
            self._warn("UNKNOWN_COMMENT_TARGET", f"COMMENT ON targets unknown table '{st.table}'", st.position, st.source)
            return
        if st.column is None:
            draft.comment = st.text
            return
        column: Optional[_ColumnDraft] = self._find_column(draft, st.column)
        if column is None:
            self._warn(
                "UNKNOWN_COMMENT_TARGET",
                f"COMMENT ON targets unknown column '{draft.label}.{st.column}'",
                st.position,
                st.source,
            )
            return
        column.comment = st.text

    # ------------------------------------------------------------------
    # Pass 3: foreign keys
    # ------------------------------------------------------------------

    def _resolve_foreign_key(self, draft: _TableDraft, index: int) -> None:
        entry: _ConstraintDraft = draft.constraints[index]
        fk: ForeignKeyConstraint = entry.constraint  # type: ignore[assignment]
        label: str = f"Foreign key ({', '.join(fk.columns)}) on '{draft.label}'"

        target: Optional[_TableDraft] = self.tables.get(self._ref_key(fk.referenced_table))
        if target is None:
            raise ModelError(
                "UNKNOWN_REFERENCED_TABLE",
                f"{label} references unknown table '{fk.referenced_table}'",
                table=draft.label,
            )

        if fk.referenced_columns:
            referenced: Tuple[str, ...] = tuple(
                self._require_column(target, n, f"{label} → referenced column").name
                for n in fk.referenced_columns
            )
        else:
            pk: Optional[PrimaryKeyConstraint] = target.primary_key()
            if pk is None:
                raise ModelError(
                    "FK_TARGET_NO_PRIMARY_KEY",
                    f"{label} references '{target.label}' without columns, "
                    f"but '{target.label}' has no primary key",
                    table=draft.label,
                )
            referenced = pk.columns

        if len(referenced) != len(fk.columns):
            raise ModelError(
                "FK_COLUMN_COUNT_MISMATCH",
                f"{label} has {len(fk.columns)} column(s) but references {len(referenced)}",
                table=draft.label,
            )

        unique_sets: List[Tuple[str, ...]] = target.unique_sets()
        if referenced not in unique_sets:
            if any(set(s) == set(referenced) for s in unique_sets):
                raise ModelError(
                    "FK_COLUMN_ORDER_MISMATCH",
                    f"{label} names the key columns of '{target.label}' in a different order: "
                    f"({', '.join(referenced)})",
                    table=draft.label,
                )
            raise ModelError(
                "FK_TARGET_NOT_UNIQUE",
                f"{label} references ({', '.join(referenced)}) of '{target.label}', "
                f"which is neither its primary key nor a unique key",
                table=draft.label,
            )

        for local_name, remote_name in zip(fk.columns, referenced):
            local: Optional[_ColumnDraft] = self._find_column(draft, local_name)
            remote: Optional[_ColumnDraft] = self._find_column(target, remote_name)
            if local is not None and remote is not None and not _compatible(local.type, remote.type):
                self._warn(
                    "FK_TYPE_MISMATCH",
                    f"{label}: column '{local.name}' ({local.type.semantic}) does not match "
                    f"'{target.label}.{remote.name}' ({remote.type.semantic})",
                    entry.position,
                    entry.source,
                )

        entry.constraint = fk.model_copy(
            update={"referenced_table": target.ref, "referenced_columns": referenced}
        )

    def _report_cycles(self) -> None:
        """Info diagnostics for foreign-key cycles spanning several tables."""
        keys: List[str] = list(self.tables)
        edges: Dict[str, Set[str]] = {k: set() for k in keys}
        for key, draft in self.tables.items():
            for entry in draft.constraints:
                c = entry.constraint
                if isinstance(c, ForeignKeyConstraint) and c.referenced_columns:
                    target: str = self._ref_key(c.referenced_table)
                    if target in edges and target != key:
                        edges[key].add(target)

        reach: Dict[str, Set[str]] = {}
        for key in keys:
            seen: Set[str] = set()
            stack: List[str] = list(edges[key])
            while stack:
                node: str = stack.pop()
                if node not in seen:
                    seen.add(node)
                    stack.extend(edges[node])
            reach[key] = seen

        reported: Set[str] = set()
        for key in keys:
            if key in reported or key not in reach[key]:
                continue
            members: List[str] = [k for k in keys if k in reach[key] and key in reach[k]]
            reported.update(members)
            names: List[str] = [self.tables[k].label for k in members]
            self._info(
                "CIRCULAR_REFERENCE",
                f"Circular foreign-key chain between tables: {', '.join(names)}",
                self.tables[key].position,
                self.tables[key].source,
            )

    # ------------------------------------------------------------------
    # Schema filter
    # ------------------------------------------------------------------

    def _apply_schema_filter(
        self,
        tables: List[Table],
        views: List[ViewDefinition],
        enums: List[EnumType],
    ) -> Tuple[List[Table], List[ViewDefinition], List[EnumType]]:
        wanted: str = self.schema_filter  # type: ignore[assignment]
        kept: List[Table] = [t for t in tables if self.grammar.schema_matches(t.schema_name, wanted)]
        kept_refs: Set[TableRef] = {t.ref for t in kept}
        result: List[Table] = []
        for table in kept:
            constraints: List[Constraint] = []
            for c in table.constraints:
                if isinstance(c, ForeignKeyConstraint) and c.referenced_table not in kept_refs:
                    self._warn(
                        "CROSS_SCHEMA_REFERENCE",
                        f"Foreign key ({', '.join(c.columns)}) on '{table.qualified_name}' leaves "
                        f"schema '{wanted}' (→ {c.referenced_table}); dropped",
                    )
                    continue
                constraints.append(c)
            result.append(
                table if len(constraints) == len(table.constraints)
                else table.model_copy(update={"constraints": tuple(constraints)})
            )
        logger.info(
            "Schema filter '%s' kept %d of %d table(s).", wanted, len(result), len(tables)
        )
        return (
            result,
            [v for v in views if self.grammar.schema_matches(v.schema_name, wanted)],
            [e for e in enums if self.grammar.schema_matches(e.schema_name, wanted)],
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _positive_int(text: str, allow_zero: bool = False) -> Optional[int]:
    """Integer type argument, or None for MAX / expressions."""
    stripped: str = text.strip()
    if not stripped.isdigit():
        return None
    value: int = int(stripped)
    if value == 0 and not allow_zero:
        return None
    return value


def _compatible(local: SqlType, remote: SqlType) -> bool:
    if local.semantic == remote.semantic:
        return True
    if local.semantic in NUMERIC_SEMANTICS and remote.semantic in NUMERIC_SEMANTICS:
        return True
    return "other" in (local.semantic, remote.semantic)


# ---------------------------------------------------------------------------
# Public builder
# ---------------------------------------------------------------------------


class DomainModelBuilder:
    """
    Resolves parsed statements into a ``DomainModel``.

    The builder is stateless between calls; each ``build()`` starts from a
    clean slate.

    Usage::

        builder = DomainModelBuilder("postgresql", schema_filter="public")
        model = builder.build(result.statements, diagnostics)
        if not model.is_valid:
            for error in model.errors:
                print(error)
    """

    def __init__(
        self,
        dialect: Union[str, Dialect, DialectGrammar] = Dialect.POSTGRESQL,
        *,
        schema_filter: Optional[str] = None,
    ) -> None:
        self._grammar: DialectGrammar = get_grammar(dialect)
        self._schema_filter: Optional[str] = schema_filter

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "DomainModelBuilder":
        return cls(config.dialect, schema_filter=config.schema_filter)

    @property
    def grammar(self) -> DialectGrammar:
        return self._grammar

    def build(self, statements: Iterable[Statement], diagnostics: Diagnostics) -> DomainModel:
        """
        Run all passes over *statements* and return the (possibly invalid) model.

        Complexity: O(S + T·C + F·K) for S statements, T tables of C columns
        and F foreign keys against K candidate keys.
        """
        run: _BuildRun = _BuildRun(self._grammar, diagnostics, self._schema_filter)
        return run.execute(list(statements))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DomainModelBuilder",
]

logger.debug("ddlapi.builder loaded — %d public symbols.", len(__all__))
