# File: ddlapi/descriptor.py
"""
ddlapi - API Descriptor
========================
Pydantic V2 models for the inferred REST API: one ``Resource`` per
(non-junction) table, with its properties, operations, list parameters,
validation rules and relationship bindings.

The descriptor is the hand-off point to external format writers (OpenAPI,
JSON Schema, documentation).  It is immutable and serializes
deterministically::

    descriptor.model_dump_json(indent=2)
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from ddlapi.config import NamingStrategy, RelationshipMode
from ddlapi.models import SemanticType

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.descriptor")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class OperationKind(str, Enum):
    LIST = "list"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    PATCH = "patch"
    DELETE = "delete"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class ParameterLocation(str, Enum):
    PATH = "path"
    QUERY = "query"


class IdentitySource(str, Enum):
    """Where a resource's identity comes from."""

    PRIMARY_KEY = "primary_key"
    UNIQUE = "unique"
    NONE = "none"


class RuleKind(str, Enum):
    """Validation rule kinds; ``opaque`` carries an untranslated CHECK."""

    REQUIRED = "required"
    NOT_NULL = "not_null"
    MAX_LENGTH = "max_length"
    ENUM = "enum"
    UNIQUE = "unique"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    EXCLUSIVE_MINIMUM = "exclusive_minimum"
    EXCLUSIVE_MAXIMUM = "exclusive_maximum"
    CONST = "const"
    NOT_EQUAL = "not_equal"
    OPAQUE = "opaque"


class BindingKind(str, Enum):
    """Relationship kinds as seen from the owning resource."""

    MANY_TO_ONE = "many_to_one"
    ONE_TO_MANY = "one_to_many"
    ONE_TO_ONE = "one_to_one"
    MANY_TO_MANY = "many_to_many"


_SHARED_CONFIG: ConfigDict = ConfigDict(
    frozen=True,
    extra="forbid",
    use_enum_values=True,
    populate_by_name=True,
)


# ---------------------------------------------------------------------------
# Fields & parameters
# ---------------------------------------------------------------------------


class PropertyReference(BaseModel):
    """The target of a foreign-key property (an id reference)."""

    model_config = _SHARED_CONFIG

    resource: str
    fields: Tuple[str, ...]


class Property(BaseModel):
    """One field of a resource, derived from one column."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    column: str = Field(..., min_length=1)
    semantic: SemanticType
    format: Optional[str] = None
    sql_type: str
    nullable: bool = True
    required: bool = False
    read_only: bool = False
    default: Optional[str] = None
    max_length: Optional[int] = None
    precision: Optional[int] = None
    scale: Optional[int] = None
    enum: Tuple[str, ...] = ()
    is_array: bool = False
    unique: bool = False
    reference: Optional[PropertyReference] = None
    description: Optional[str] = None


class Parameter(BaseModel):
    """A path or query parameter."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    location: ParameterLocation
    semantic: SemanticType
    format: Optional[str] = None
    required: bool = False
    default: Optional[Any] = None
    minimum: Optional[int] = None
    maximum: Optional[int] = None
    allowed_values: Tuple[str, ...] = ()
    description: Optional[str] = None


class FilterTemplate(BaseModel):
    """Filterable field: ``?filter[<field>][<operator>]=value``."""

    model_config = _SHARED_CONFIG

    field: str
    semantic: SemanticType
    operators: Tuple[str, ...]


class ListParameters(BaseModel):
    """Pagination, sorting and filtering of the collection endpoint."""

    model_config = _SHARED_CONFIG

    limit: Parameter
    offset: Parameter
    sort: Parameter
    filters: Tuple[FilterTemplate, ...] = ()

    @property
    def sortable_fields(self) -> List[str]:
        return [v for v in self.sort.allowed_values if not v.startswith("-")]

    def as_query_parameters(self) -> Tuple[Parameter, ...]:
        return (self.limit, self.offset, self.sort)


class RequestBody(BaseModel):
    """Writable fields of a create/update/patch request."""

    model_config = _SHARED_CONFIG

    fields: Tuple[str, ...]
    required: Tuple[str, ...] = ()
    partial: bool = False


class Operation(BaseModel):
    model_config = _SHARED_CONFIG

    kind: OperationKind
    method: HttpMethod
    path: str
    path_parameters: Tuple[Parameter, ...] = ()
    query_parameters: Tuple[Parameter, ...] = ()
    request_body: Optional[RequestBody] = None
    success_status: int = Field(default=200, ge=200, le=299)


# ---------------------------------------------------------------------------
# Validation rules & relationship bindings
# ---------------------------------------------------------------------------


class ValidationRule(BaseModel):
    """
    A field validation rule.

    ``value`` holds the rule argument (a bound, a length, a tuple of allowed
    values).  ``translated`` is False for ``opaque`` rules, whose
    ``expression`` is the verbatim CHECK text.
    """

    model_config = _SHARED_CONFIG

    kind: RuleKind
    field_names: Tuple[str, ...] = ()
    value: Optional[Any] = None
    expression: Optional[str] = None
    message: str = ""
    translated: bool = True


class RelationshipBinding(BaseModel):
    """
    A relationship exposed on a resource.

    ``local_fields``/``target_fields`` are the joined columns on each side;
    for many-to-many ``via`` names the junction table.
    """

    model_config = _SHARED_CONFIG

    name: str
    kind: BindingKind
    target_resource: str
    local_fields: Tuple[str, ...]
    target_fields: Tuple[str, ...]
    mode: RelationshipMode
    via: Optional[str] = None
    nullable: bool = True


# ---------------------------------------------------------------------------
# Resource & descriptor
# ---------------------------------------------------------------------------


class Resource(BaseModel):
    """One REST resource (collection + optional item endpoint)."""

    model_config = _SHARED_CONFIG

    name: str = Field(..., min_length=1)
    table: str
    schema_name: Optional[str] = None
    path: str
    item_path: Optional[str] = None
    identity: Tuple[str, ...] = ()
    identity_source: IdentitySource = IdentitySource.NONE
    properties: Tuple[Property, ...] = ()
    operations: Tuple[Operation, ...] = ()
    list_parameters: ListParameters
    validation_rules: Tuple[ValidationRule, ...] = ()
    relationships: Tuple[RelationshipBinding, ...] = ()
    description: Optional[str] = None

    @property
    def operation_kinds(self) -> List[str]:
        return [op.kind for op in self.operations]

    def get_operation(self, kind: str) -> Optional[Operation]:
        for op in self.operations:
            if op.kind == kind:
                return op
        return None

    def get_property(self, name: str) -> Optional[Property]:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def rules_for(self, field_name: str) -> List[ValidationRule]:
        return [r for r in self.validation_rules if field_name in r.field_names]

    def binding(self, name: str) -> Optional[RelationshipBinding]:
        for b in self.relationships:
            if b.name == name:
                return b
        return None

    def __repr__(self) -> str:
        return f"<Resource {self.name} {self.path} ({len(self.operations)} ops)>"


class ApiDescriptor(BaseModel):
    """The complete inferred API for one domain model."""

    model_config = _SHARED_CONFIG

    dialect: str
    naming_strategy: NamingStrategy = NamingStrategy.PASSTHROUGH
    relationship_mode: RelationshipMode = RelationshipMode.REFERENCE
    resources: Tuple[Resource, ...] = ()

    _by_name: Dict[str, Resource] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        self._by_name = {r.name: r for r in self.resources}

    @property
    def resource_names(self) -> List[str]:
        return [r.name for r in self.resources]

    def get_resource(self, name: str) -> Optional[Resource]:
        return self._by_name.get(name)

    def resource_for_table(self, table: str, schema_name: Optional[str] = None) -> Optional[Resource]:
        for resource in self.resources:
            if resource.table == table and (schema_name is None or resource.schema_name == schema_name):
                return resource
        return None

    def to_json(self, indent: Optional[int] = 2) -> str:
        return self.model_dump_json(indent=indent)

    def __repr__(self) -> str:
        return f"<ApiDescriptor {self.dialect} ({len(self.resources)} resources)>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "OperationKind",
    "HttpMethod",
    "ParameterLocation",
    "IdentitySource",
    "RuleKind",
    "BindingKind",
    "PropertyReference",
    "Property",
    "Parameter",
    "FilterTemplate",
    "ListParameters",
    "RequestBody",
    "Operation",
    "ValidationRule",
    "RelationshipBinding",
    "Resource",
    "ApiDescriptor",
]

logger.debug("ddlapi.descriptor loaded — %d public symbols.", len(__all__))
