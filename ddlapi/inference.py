# File: ddlapi/inference.py
"""
ddlapi - API Inference Engine
==============================
Derives an ``ApiDescriptor`` from a valid ``DomainModel``.

For every table that is not a junction table it infers one resource:

    name / path        naming strategy + kebab-case path, collisions resolved
    identity           primary key, else the first all-NOT-NULL unique key
    operations         list + create always; read/update/patch/delete on
                       the item path when there is an identity
    list parameters    limit / offset / sort / per-field filter templates
    validation rules   required, not_null, max_length, enum, unique and
                       translated CHECK constraints (``ddlapi.checks``)
    relationships      bindings in ``reference`` or ``embed`` mode;
                       junction tables become many-to-many bindings on
                       both linked resources

Inference never fails on a valid model; everything it cannot express is
reported as an ``InferenceWarning`` diagnostic.  Output is deterministic:
table declaration order, then column and constraint order.

Complexity: O(T × (C + K) + R) for T tables, C columns, K constraints and
R relationships.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, List, Optional, Set, Tuple

from ddlapi.checks import CheckTranslation, translate_check
from ddlapi.config import NamingStrategy, PipelineConfig
from ddlapi.descriptor import (
    ApiDescriptor,
    BindingKind,
    FilterTemplate,
    HttpMethod,
    IdentitySource,
    ListParameters,
    Operation,
    OperationKind,
    Parameter,
    ParameterLocation,
    Property,
    PropertyReference,
    RelationshipBinding,
    RequestBody,
    Resource,
    RuleKind,
    ValidationRule,
)
from ddlapi.diagnostics import Diagnostics
from ddlapi.dialects import DialectGrammar, get_grammar
from ddlapi.errors import InferenceWarning
from ddlapi.models import (
    NUMERIC_SEMANTICS,
    TEMPORAL_SEMANTICS,
    Column,
    DomainModel,
    Relationship,
    RelationshipKind,
    Table,
    TableRef,
)
from ddlapi.utils import to_kebab_case, to_plural, to_singular

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.inference")

_EQUALITY_OPERATORS: Tuple[str, ...] = ("eq", "ne")
_RANGE_OPERATORS: Tuple[str, ...] = ("gt", "gte", "lt", "lte")


class ApiInferenceEngine:
    """
    Infers the REST API descriptor of a domain model.

    Usage::

        engine = ApiInferenceEngine(PipelineConfig(naming_strategy="plural"))
        descriptor = engine.infer(model, diagnostics)
        for resource in descriptor.resources:
            print(resource.path, resource.operation_kinds)

    The engine keeps no state between ``infer()`` calls.
    """

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self._config: PipelineConfig = config or PipelineConfig()
        logger.debug(
            "ApiInferenceEngine initialised: naming=%s, relationships=%s, limit=%d/%d.",
            self._config.naming_strategy,
            self._config.relationship_mode,
            self._config.default_limit,
            self._config.max_limit,
        )

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # -----------------------------------------------------------------
    # Public entry point
    # -----------------------------------------------------------------

    def infer(self, model: DomainModel, diagnostics: Diagnostics) -> ApiDescriptor:
        """
        Build the descriptor for *model*.

        Raises:
            ValueError: If the model carries resolution errors.
        """
        if not model.is_valid:
            raise ValueError(
                f"Cannot infer an API from an invalid domain model "
                f"({len(model.errors)} model error(s))."
            )

        grammar: DialectGrammar = get_grammar(model.dialect)
        tables: List[Table] = [t for t in model.tables if not model.is_junction(t)]
        names: Dict[TableRef, str] = self._resource_names(tables, diagnostics)
        bindings: Dict[TableRef, List[RelationshipBinding]] = self._bindings(model, names, diagnostics)

        resources: List[Resource] = [
            self._resource(table, grammar, names, bindings.get(table.ref, []), diagnostics)
            for table in tables
        ]
        descriptor: ApiDescriptor = ApiDescriptor(
            dialect=model.dialect,
            naming_strategy=self._config.naming_strategy,
            relationship_mode=self._config.relationship_mode,
            resources=tuple(resources),
        )
        logger.info(
            "Inferred %d resource(s) from %d table(s) (%d junction table(s) skipped).",
            len(resources),
            len(model.tables),
            len(model.junction_tables),
        )
        return descriptor

    # -----------------------------------------------------------------
    # Naming
    # -----------------------------------------------------------------

    def _apply_strategy(self, name: str) -> str:
        strategy: str = self._config.naming_strategy
        if strategy == NamingStrategy.SINGULAR.value:
            return to_singular(name)
        if strategy == NamingStrategy.PLURAL.value:
            return to_plural(name)
        return name

    def _resource_names(self, tables: List[Table], diagnostics: Diagnostics) -> Dict[TableRef, str]:
        """
        Resource name per table; colliding names get the schema name as a
        prefix and then a numeric suffix.  Names are compared by their
        kebab-case path segment.
        """
        bases: List[str] = [self._apply_strategy(t.name) for t in tables]
        counts: Counter = Counter(to_kebab_case(b) or b for b in bases)
        used: Set[str] = set()
        names: Dict[TableRef, str] = {}

        for table, base in zip(tables, bases):
            name: str = base
            if counts[to_kebab_case(base) or base] > 1 and table.schema_name:
                name = f"{table.schema_name}_{base}"
            candidate: str = name
            suffix: int = 2
            while (to_kebab_case(candidate) or candidate) in used:
                candidate = f"{name}_{suffix}"
                suffix += 1
            if candidate != base:
                self._warn(
                    diagnostics,
                    "RESOURCE_NAME_COLLISION",
                    f"Resource name '{base}' of table '{table.qualified_name}' collides "
                    f"with another resource; using '{candidate}'",
                )
            used.add(to_kebab_case(candidate) or candidate)
            names[table.ref] = candidate
        return names

    @staticmethod
    def _warn(diagnostics: Diagnostics, code: str, message: str) -> None:
        diagnostics.add(InferenceWarning(code, message).to_diagnostic())

    # -----------------------------------------------------------------
    # Resource
    # -----------------------------------------------------------------

    def _resource(
        self,
        table: Table,
        grammar: DialectGrammar,
        names: Dict[TableRef, str],
        bindings: List[RelationshipBinding],
        diagnostics: Diagnostics,
    ) -> Resource:
        name: str = names[table.ref]
        path: str = "/" + (to_kebab_case(name) or name)
        identity, source = self._identity(table)

        item_path: Optional[str] = None
        if identity:
            item_path = path + "".join(f"/{{{c}}}" for c in identity)
        else:
            self._warn(
                diagnostics,
                "NO_IDENTITY",
                f"Resource '{name}' (table '{table.qualified_name}') has no primary key "
                f"or NOT NULL unique key; only list and create are exposed",
            )

        properties: List[Property] = self._properties(table, names)
        list_parameters: ListParameters = self._list_parameters(table, properties)

        return Resource(
            name=name,
            table=table.name,
            schema_name=table.schema_name,
            path=path,
            item_path=item_path,
            identity=identity,
            identity_source=source,
            properties=tuple(properties),
            operations=tuple(self._operations(name, path, item_path, identity, table, properties, list_parameters)),
            list_parameters=list_parameters,
            validation_rules=tuple(self._validation_rules(table, grammar, diagnostics)),
            relationships=tuple(bindings),
            description=table.comment,
        )

    @staticmethod
    def _identity(table: Table) -> Tuple[Tuple[str, ...], IdentitySource]:
        if table.primary_key_columns:
            return table.primary_key_columns, IdentitySource.PRIMARY_KEY
        candidates: List[Tuple[str, ...]] = [u.columns for u in table.unique_constraints]
        candidates.extend(
            i.columns for i in table.indexes if i.unique and not i.is_expression and i.where is None
        )
        for columns in candidates:
            cols: List[Optional[Column]] = [table.get_column(c) for c in columns]
            if all(c is not None and not c.nullable for c in cols):
                return columns, IdentitySource.UNIQUE
        return (), IdentitySource.NONE

    # -----------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------

    def _properties(
        self,
        table: Table,
        names: Dict[TableRef, str],
    ) -> List[Property]:
        single_unique: Set[str] = {s[0] for s in table.unique_column_sets() if len(s) == 1}
        references: Dict[str, PropertyReference] = {}
        for fk in table.foreign_keys:
            target: Optional[str] = names.get(fk.referenced_table)
            if target is None:
                continue
            for local, remote in zip(fk.columns, fk.referenced_columns):
                references.setdefault(local, PropertyReference(resource=target, fields=(remote,)))

        properties: List[Property] = []
        for column in table.columns:
            sql_type = column.type
            properties.append(
                Property(
                    name=column.name,
                    column=column.name,
                    semantic=sql_type.semantic,
                    format=sql_type.format,
                    sql_type=sql_type.declared,
                    nullable=column.nullable,
                    required=_is_required(column),
                    read_only=column.is_generated,
                    default=column.default,
                    max_length=sql_type.length if sql_type.is_textual else None,
                    precision=sql_type.precision,
                    scale=sql_type.scale,
                    enum=sql_type.enum_values,
                    is_array=sql_type.is_array,
                    unique=column.name in single_unique,
                    reference=references.get(column.name),
                    description=column.comment,
                )
            )
        return properties

    # -----------------------------------------------------------------
    # Operations & parameters
    # -----------------------------------------------------------------

    def _operations(
        self,
        name: str,
        path: str,
        item_path: Optional[str],
        identity: Tuple[str, ...],
        table: Table,
        properties: List[Property],
        list_parameters: ListParameters,
    ) -> List[Operation]:
        writable: Tuple[str, ...] = tuple(p.name for p in properties if not p.read_only)
        required: Tuple[str, ...] = tuple(p.name for p in properties if p.required)

        operations: List[Operation] = [
            Operation(
                kind=OperationKind.LIST,
                method=HttpMethod.GET,
                path=path,
                query_parameters=list_parameters.as_query_parameters(),
                success_status=200,
            ),
            Operation(
                kind=OperationKind.CREATE,
                method=HttpMethod.POST,
                path=path,
                request_body=RequestBody(fields=writable, required=required),
                success_status=201,
            ),
        ]
        if item_path is None:
            return operations

        by_name: Dict[str, Property] = {p.name: p for p in properties}
        path_parameters: Tuple[Parameter, ...] = tuple(
            Parameter(
                name=column,
                location=ParameterLocation.PATH,
                semantic=by_name[column].semantic,
                format=by_name[column].format,
                required=True,
                description=f"{column} of the {name} to address",
            )
            for column in identity
        )
        operations.extend([
            Operation(
                kind=OperationKind.READ,
                method=HttpMethod.GET,
                path=item_path,
                path_parameters=path_parameters,
                success_status=200,
            ),
            Operation(
                kind=OperationKind.UPDATE,
                method=HttpMethod.PUT,
                path=item_path,
                path_parameters=path_parameters,
                request_body=RequestBody(fields=writable, required=required),
                success_status=200,
            ),
            Operation(
                kind=OperationKind.PATCH,
                method=HttpMethod.PATCH,
                path=item_path,
                path_parameters=path_parameters,
                request_body=RequestBody(fields=writable, partial=True),
                success_status=200,
            ),
            Operation(
                kind=OperationKind.DELETE,
                method=HttpMethod.DELETE,
                path=item_path,
                path_parameters=path_parameters,
                success_status=204,
            ),
        ])
        return operations

    def _list_parameters(self, table: Table, properties: List[Property]) -> ListParameters:
        sortable: List[str] = []
        for columns in table.unique_column_sets():
            sortable.extend(c for c in columns if c not in sortable)
        for index in table.indexes:
            if not index.is_expression:
                sortable.extend(c for c in index.columns if c not in sortable)
        sort_values: List[str] = []
        for column in sortable:
            sort_values.extend((column, f"-{column}"))

        filters: List[FilterTemplate] = []
        for prop in properties:
            filters.append(FilterTemplate(
                field=prop.name,
                semantic=prop.semantic,
                operators=_filter_operators(prop.semantic),
            ))

        return ListParameters(
            limit=Parameter(
                name="limit",
                location=ParameterLocation.QUERY,
                semantic="integer",
                format="int32",
                default=self._config.default_limit,
                minimum=1,
                maximum=self._config.max_limit,
                description="Maximum number of items to return",
            ),
            offset=Parameter(
                name="offset",
                location=ParameterLocation.QUERY,
                semantic="integer",
                format="int32",
                default=0,
                minimum=0,
                description="Number of items to skip",
            ),
            sort=Parameter(
                name="sort",
                location=ParameterLocation.QUERY,
                semantic="text",
                allowed_values=tuple(sort_values),
                description="Sort field; prefix with '-' for descending order",
            ),
            filters=tuple(filters),
        )

    # -----------------------------------------------------------------
    # Validation rules
    # -----------------------------------------------------------------

    def _validation_rules(
        self,
        table: Table,
        grammar: DialectGrammar,
        diagnostics: Diagnostics,
    ) -> List[ValidationRule]:
        rules: List[ValidationRule] = []

        for column in table.columns:
            if not column.nullable:
                if _is_required(column):
                    rules.append(ValidationRule(
                        kind=RuleKind.REQUIRED,
                        field_names=(column.name,),
                        message=f"{column.name} is required",
                    ))
                else:
                    rules.append(ValidationRule(
                        kind=RuleKind.NOT_NULL,
                        field_names=(column.name,),
                        message=f"{column.name} must not be null",
                    ))
            if column.type.is_textual and column.type.length is not None:
                rules.append(ValidationRule(
                    kind=RuleKind.MAX_LENGTH,
                    field_names=(column.name,),
                    value=column.type.length,
                    message=f"{column.name} must be at most {column.type.length} characters",
                ))
            if column.type.enum_values:
                rules.append(ValidationRule(
                    kind=RuleKind.ENUM,
                    field_names=(column.name,),
                    value=column.type.enum_values,
                    message=f"{column.name} must be one of {', '.join(column.type.enum_values)}",
                ))

        unique_sets: List[Tuple[str, ...]] = [u.columns for u in table.unique_constraints]
        unique_sets.extend(
            i.columns for i in table.indexes if i.unique and not i.is_expression
        )
        for columns in unique_sets:
            rules.append(ValidationRule(
                kind=RuleKind.UNIQUE,
                field_names=columns,
                message=f"({', '.join(columns)}) must be unique (enforced by the database)",
            ))

        for check in table.checks:
            translation: CheckTranslation = translate_check(
                check.expression,
                table.column_names,
                grammar,
                column=check.column,
                table=table.qualified_name,
            )
            rules.extend(translation.rules)
            if translation.warning is not None:
                diagnostics.add(translation.warning.to_diagnostic())
        return rules

    # -----------------------------------------------------------------
    # Relationship bindings
    # -----------------------------------------------------------------

    def _bindings(
        self,
        model: DomainModel,
        names: Dict[TableRef, str],
        diagnostics: Diagnostics,
    ) -> Dict[TableRef, List[RelationshipBinding]]:
        mode: str = self._config.relationship_mode
        result: Dict[TableRef, List[RelationshipBinding]] = {}
        taken: Dict[TableRef, Set[str]] = {}

        def add(owner: TableRef, base: str, **fields: object) -> None:
            used: Set[str] = taken.setdefault(owner, set())
            name: str = base
            suffix: int = 2
            while name in used:
                name = f"{base}_{suffix}"
                suffix += 1
            used.add(name)
            result.setdefault(owner, []).append(
                RelationshipBinding(name=name, mode=mode, **fields)  # type: ignore[arg-type]
            )

        for rel in model.relationships:
            source: Optional[str] = names.get(rel.from_table)
            target: Optional[str] = names.get(rel.to_table)
            if source is None or target is None:
                missing: TableRef = rel.from_table if source is None else rel.to_table
                self._warn(
                    diagnostics,
                    "RELATIONSHIP_NOT_EXPOSED",
                    f"Relationship '{rel.name}' ({rel.from_table} -> {rel.to_table}) has no binding: "
                    f"junction table '{missing}' is not a resource",
                )
                continue

            if rel.kind == RelationshipKind.MANY_TO_MANY.value:
                via: str = rel.junction.table.name if rel.junction is not None else rel.name
                add(rel.from_table, target, kind=BindingKind.MANY_TO_MANY, target_resource=target,
                    local_fields=rel.from_columns, target_fields=rel.to_columns, via=via)
                add(rel.to_table, source, kind=BindingKind.MANY_TO_MANY, target_resource=source,
                    local_fields=rel.to_columns, target_fields=rel.from_columns, via=via)
                continue

            outgoing: BindingKind = (
                BindingKind.ONE_TO_ONE if rel.kind == RelationshipKind.ONE_TO_ONE.value
                else BindingKind.MANY_TO_ONE
            )
            incoming: BindingKind = (
                BindingKind.ONE_TO_ONE if rel.kind == RelationshipKind.ONE_TO_ONE.value
                else BindingKind.ONE_TO_MANY
            )
            add(rel.from_table, _outgoing_name(rel, target), kind=outgoing, target_resource=target,
                local_fields=rel.from_columns, target_fields=rel.to_columns,
                nullable=_fk_nullable(model, rel))
            add(rel.to_table, source, kind=incoming, target_resource=source,
                local_fields=rel.to_columns, target_fields=rel.from_columns)
        return result


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_required(column: Column) -> bool:
    return not column.nullable and not column.has_default and not column.is_generated


def _filter_operators(semantic: str) -> Tuple[str, ...]:
    if semantic in NUMERIC_SEMANTICS or semantic in TEMPORAL_SEMANTICS:
        return _EQUALITY_OPERATORS + _RANGE_OPERATORS
    if semantic == "text":
        return _EQUALITY_OPERATORS + ("like",)
    if semantic == "enum":
        return _EQUALITY_OPERATORS + ("in",)
    return _EQUALITY_OPERATORS


def _outgoing_name(rel: Relationship, target: str) -> str:
    """``author_id`` → ``author``; otherwise the target resource name."""
    if len(rel.from_columns) == 1:
        column: str = rel.from_columns[0]
        for suffix in ("_id", "_ID", "Id"):
            if column.endswith(suffix) and len(column) > len(suffix):
                return column[: -len(suffix)]
    return target


def _fk_nullable(model: DomainModel, rel: Relationship) -> bool:
    table: Optional[Table] = model.table_for(rel.from_table)
    if table is None:
        return True
    for name in rel.from_columns:
        column: Optional[Column] = table.get_column(name)
        if column is None or column.nullable:
            return True
    return False


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "ApiInferenceEngine",
]

logger.debug("ddlapi.inference loaded — %d public symbols.", len(__all__))
