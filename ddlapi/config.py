# File: ddlapi/config.py
"""
ddlapi - Pipeline Configuration
================================
``PipelineConfig`` is the single configuration object of a run.  It can be
built in code, loaded from a YAML or JSON file with ``load_config``, and
overridden field by field (the CLI does this for its flags).

Example YAML::

    ddlapi:
      dialect: postgresql
      schema_filter: public
      naming_strategy: plural
      relationship_mode: embed
      default_limit: 50
      max_limit: 500
      max_workers: 4
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ddlapi.dialects import Dialect, parse_dialect

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.config")

DEFAULT_LIMIT: int = 100
MAX_LIMIT: int = 1000


class NamingStrategy(str, Enum):
    """How resource names are derived from table names."""

    SINGULAR = "singular"
    PLURAL = "plural"
    PASSTHROUGH = "passthrough"


class RelationshipMode(str, Enum):
    """How related resources are exposed on a resource."""

    EMBED = "embed"
    REFERENCE = "reference"


class PipelineConfig(BaseModel):
    """Settings for parsing, model building and API inference."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        use_enum_values=True,
        populate_by_name=True,
    )

    dialect: Dialect = Field(default=Dialect.POSTGRESQL, description="Input SQL dialect.")
    schema_filter: Optional[str] = Field(
        default=None, description="Keep only tables of this schema."
    )
    naming_strategy: NamingStrategy = Field(default=NamingStrategy.PASSTHROUGH)
    relationship_mode: RelationshipMode = Field(default=RelationshipMode.REFERENCE)
    default_limit: int = Field(default=DEFAULT_LIMIT, ge=1, description="Default page size.")
    max_limit: int = Field(default=MAX_LIMIT, ge=1, description="Upper bound for ?limit.")
    max_workers: int = Field(
        default=1, ge=1, le=64, description="Threads used to parse independent inputs."
    )
    fail_on_warnings: bool = False

    @field_validator("dialect", mode="before")
    @classmethod
    def _normalize_dialect(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_dialect(v)
        return v

    @field_validator("schema_filter")
    @classmethod
    def _blank_filter_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _validate_limits(self) -> "PipelineConfig":
        if self.default_limit > self.max_limit:
            raise ValueError(
                f"default_limit ({self.default_limit}) must not exceed "
                f"max_limit ({self.max_limit})."
            )
        return self

    def with_overrides(self, **overrides: Any) -> "PipelineConfig":
        """Return a copy with every non-None override applied (and re-validated)."""
        updates: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        merged: Dict[str, Any] = self.model_dump()
        merged.update(updates)
        return PipelineConfig.model_validate(merged)


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc


def config_from_mapping(data: Optional[Dict[str, Any]]) -> PipelineConfig:
    """
    Validate a raw mapping into a ``PipelineConfig``.

    A top-level ``ddlapi:`` key is unwrapped; ``None`` (an empty file)
    yields the defaults.

    Raises:
        ValueError: If the mapping does not validate.
    """
    if data is None:
        return PipelineConfig()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at top level, got {type(data).__name__}.")
    if "ddlapi" in data:
        data = data["ddlapi"] or {}
        if not isinstance(data, dict):
            raise ValueError("The 'ddlapi' key must hold a mapping.")
    try:
        return PipelineConfig.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Config validation failed: {exc}") from exc


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """
    Load a configuration file (YAML or JSON, chosen by extension).

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file can't be parsed or validated.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    if not path.is_file():
        raise ValueError(f"Config path is not a file: {path}")

    suffix: str = path.suffix.lower()
    raw: Any
    if suffix == ".json":
        raw = _load_json(path)
    else:
        # YAML is a superset of JSON, so anything else goes through PyYAML
        raw = _load_yaml(path)

    config: PipelineConfig = config_from_mapping(raw)
    logger.info("Loaded config from %s (dialect=%s).", path, config.dialect)
    return config


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DEFAULT_LIMIT",
    "MAX_LIMIT",
    "NamingStrategy",
    "RelationshipMode",
    "PipelineConfig",
    "config_from_mapping",
    "load_config",
]

logger.debug("ddlapi.config loaded — %d public symbols.", len(__all__))
