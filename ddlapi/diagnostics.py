# File: ddlapi/diagnostics.py
"""
ddlapi - Diagnostics Collection
================================
Accumulates the non-fatal findings produced while a schema moves through the
pipeline: parse problems, resolution (model) errors and inference warnings.

A single ``Diagnostics`` instance is created per run and passed explicitly
through parser → builder → inference.  Nothing in the core prints; the CLI
layer decides how to display what was collected.

Usage::

    diagnostics = Diagnostics()
    result = StatementParser("postgresql").parse(tokens, diagnostics)
    model = DomainModelBuilder("postgresql").build(result.statements, diagnostics)
    if diagnostics.model_errors:
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.diagnostics")


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Severity(str, Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Stage(str, Enum):
    """Pipeline stage that produced a diagnostic."""

    INPUT = "input"
    LEX = "lex"
    PARSE = "parse"
    MODEL = "model"
    INFERENCE = "inference"


# ---------------------------------------------------------------------------
# Source positions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourcePosition:
    """1-based line/column plus the 0-based character offset into the input."""

    line: int = 1
    column: int = 1
    offset: int = 0

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


# ---------------------------------------------------------------------------
# Diagnostic record
# ---------------------------------------------------------------------------


class Diagnostic(BaseModel):
    """A single finding, serializable across the diagnostics boundary."""

    model_config = ConfigDict(frozen=True, extra="forbid", use_enum_values=True)

    severity: Severity = Field(..., description="error | warning | info")
    stage: Stage = Field(..., description="Stage that produced the finding.")
    code: str = Field(..., min_length=1, description="Stable machine-readable code.")
    message: str = Field(..., description="Human-readable message.")
    source: Optional[str] = Field(default=None, description="Input file or label.")
    line: Optional[int] = Field(default=None, ge=1)
    column: Optional[int] = Field(default=None, ge=1)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    @property
    def is_warning(self) -> bool:
        return self.severity == Severity.WARNING

    @property
    def location(self) -> str:
        """``file:line:column`` with missing parts left out."""
        parts: List[str] = [self.source or "<input>"]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)

    def __str__(self) -> str:
        return f"{self.location}: {self.severity}[{self.code}]: {self.message}"


# ---------------------------------------------------------------------------
# Collector
# ---------------------------------------------------------------------------


class Diagnostics:
    """
    Accumulates ``Diagnostic`` instances in the order they were produced.

    Provides O(1) appends and O(n) filtering.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Optional[Iterable[Diagnostic]] = None) -> None:
        self._items: List[Diagnostic] = list(items) if items is not None else []

    # -- Mutation -----------------------------------------------------------

    def add(self, diagnostic: Diagnostic) -> Diagnostic:
        self._items.append(diagnostic)
        return diagnostic

    def report(
        self,
        severity: Severity,
        stage: Stage,
        code: str,
        message: str,
        *,
        source: Optional[str] = None,
        position: Optional[SourcePosition] = None,
    ) -> Diagnostic:
        diagnostic: Diagnostic = Diagnostic(
            severity=severity,
            stage=stage,
            code=code,
            message=message,
            source=source,
            line=position.line if position is not None else None,
            column=position.column if position is not None else None,
        )
        logger.debug("%s", diagnostic)
        return self.add(diagnostic)

    def error(self, stage: Stage, code: str, message: str, **where: object) -> Diagnostic:
        return self.report(Severity.ERROR, stage, code, message, **where)  # type: ignore[arg-type]

    def warning(self, stage: Stage, code: str, message: str, **where: object) -> Diagnostic:
        return self.report(Severity.WARNING, stage, code, message, **where)  # type: ignore[arg-type]

    def info(self, stage: Stage, code: str, message: str, **where: object) -> Diagnostic:
        return self.report(Severity.INFO, stage, code, message, **where)  # type: ignore[arg-type]

    def extend(self, diagnostics: Iterable[Diagnostic]) -> None:
        self._items.extend(diagnostics)

    def merge(self, other: "Diagnostics") -> None:
        """Merge another collector into this one, O(k) where k = len(other)."""
        self._items.extend(other._items)

    # -- Query --------------------------------------------------------------

    @property
    def items(self) -> List[Diagnostic]:
        return list(self._items)

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.is_error]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self._items if d.is_warning]

    @property
    def model_errors(self) -> List[Diagnostic]:
        return [d for d in self._items if d.is_error and d.stage == Stage.MODEL]

    def by_stage(self, stage: Stage) -> List[Diagnostic]:
        return [d for d in self._items if d.stage == stage]

    def with_code(self, code: str) -> List[Diagnostic]:
        return [d for d in self._items if d.code == code]

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self._items)

    @property
    def has_warnings(self) -> bool:
        return any(d.is_warning for d in self._items)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self._items if d.is_error)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self._items if d.is_warning)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    def summary(self) -> str:
        return (
            f"Diagnostics: {self.error_count} error(s), "
            f"{self.warning_count} warning(s), "
            f"{len(self._items)} total item(s)."
        )

    def counts_by_stage(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for d in self._items:
            counts[d.stage] = counts.get(d.stage, 0) + 1
        return counts

    def format_report(self, include_info: bool = False) -> str:
        """Human-readable multi-line report, one diagnostic per line."""
        lines: List[str] = [self.summary()]
        for item in self._items:
            if not include_info and item.severity == Severity.INFO:
                continue
            lines.append(f"  {item}")
        return "\n".join(lines)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"<Diagnostics {self.summary()}>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "Severity",
    "Stage",
    "SourcePosition",
    "Diagnostic",
    "Diagnostics",
]

logger.debug("ddlapi.diagnostics loaded — %d public symbols.", len(__all__))
