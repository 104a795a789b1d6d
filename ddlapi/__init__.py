# File: ddlapi/__init__.py
"""
ddlapi - REST API Inference from SQL DDL
=========================================

Reads relational schema definitions written as SQL DDL (PostgreSQL, MySQL,
SQLite, basic SQL Server), builds a resolved domain model of tables,
columns, constraints and relationships, and infers a REST API descriptor
from it: resources, CRUD operations, list parameters, validation rules and
relationship bindings.

Architecture overview::

    ┌──────────────┐     ┌────────────────┐     ┌──────────────────┐
    │  CLI / Entry │────▶│ SchemaPipeline │────▶│ ApiInferenceEngine│
    │   (cli.py)   │     │ (pipeline.py)  │     │  (inference.py)  │
    └──────────────┘     └───────┬────────┘     └──────────────────┘
                                 │
                    ┌────────────┼──────────────┐
                    ▼            ▼              ▼
             ┌──────────┐ ┌────────────┐ ┌───────────────┐
             │tokenizer │ │   parser   │ │    builder    │
             │  (.py)   │ │   (.py)    │ │ relationships │
             └──────────┘ └────────────┘ └───────────────┘

Usage::

    # As a library
    from ddlapi import PipelineConfig, SchemaPipeline
    result = SchemaPipeline(PipelineConfig(dialect="mysql")).run_text(ddl)
    print(result.descriptor.to_json())

    # From the command line
    ddlapi schema.sql -d mysql --format yaml -o api.yaml

Public API:
    - SchemaPipeline      - Parse → build → infer orchestrator
    - PipelineConfig      - Settings model
    - DomainModelBuilder  - Statements → DomainModel
    - ApiInferenceEngine  - DomainModel → ApiDescriptor
    - parse_sql / tokenize
    - render_listing      - Plain-text table listing
"""

from __future__ import annotations

__version__: str = "1.0.0"
__author__: str = "Diegoproggramer"
__license__: str = "MIT"

from ddlapi.builder import DomainModelBuilder
from ddlapi.checks import CheckTranslation, translate_check
from ddlapi.config import (
    NamingStrategy,
    PipelineConfig,
    RelationshipMode,
    config_from_mapping,
    load_config,
)
from ddlapi.descriptor import (
    ApiDescriptor,
    Operation,
    Property,
    RelationshipBinding,
    Resource,
    ValidationRule,
)
from ddlapi.diagnostics import Diagnostic, Diagnostics, Severity, Stage
from ddlapi.dialects import Dialect, get_grammar
from ddlapi.errors import DdlApiError, InferenceWarning, LexError, ModelError, ParseError
from ddlapi.inference import ApiInferenceEngine
from ddlapi.listing import listing_entries, render_listing
from ddlapi.models import (
    Column,
    DomainModel,
    Relationship,
    RelationshipKind,
    SemanticType,
    Table,
    TableRef,
)
from ddlapi.parser import ParseResult, parse_sql
from ddlapi.pipeline import PipelineResult, SchemaPipeline
from ddlapi.tokenizer import Token, TokenKind, tokenize

# ---------------------------------------------------------------------------
# Public API surface
# ---------------------------------------------------------------------------

__all__: list[str] = [
    # Version info
    "__version__",
    "__author__",
    "__license__",
    # Orchestration
    "SchemaPipeline",
    "PipelineResult",
    "PipelineConfig",
    "NamingStrategy",
    "RelationshipMode",
    "config_from_mapping",
    "load_config",
    # Front end
    "Dialect",
    "get_grammar",
    "Token",
    "TokenKind",
    "tokenize",
    "ParseResult",
    "parse_sql",
    # Domain model
    "DomainModelBuilder",
    "DomainModel",
    "Table",
    "TableRef",
    "Column",
    "Relationship",
    "RelationshipKind",
    "SemanticType",
    # API descriptor
    "ApiInferenceEngine",
    "ApiDescriptor",
    "Resource",
    "Property",
    "Operation",
    "ValidationRule",
    "RelationshipBinding",
    "CheckTranslation",
    "translate_check",
    # Diagnostics & errors
    "Diagnostic",
    "Diagnostics",
    "Severity",
    "Stage",
    "DdlApiError",
    "LexError",
    "ParseError",
    "ModelError",
    "InferenceWarning",
    # Listing
    "render_listing",
    "listing_entries",
]
