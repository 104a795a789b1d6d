# File: ddlapi/errors.py
"""
ddlapi - Error Taxonomy
========================

    LexError          malformed token; fatal for the current input
    ParseError        malformed statement; recovered by skipping to ``;``
    ModelError        resolution failure; collected, never short-circuits
    InferenceWarning  non-fatal inference finding

Every class converts itself into a ``Diagnostic`` with ``to_diagnostic()``
so that the stage catching it can hand it to the shared collector.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ddlapi.diagnostics import Diagnostic, Severity, SourcePosition, Stage

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.errors")


class DdlApiError(Exception):
    """Base class for every error raised by the ddlapi core."""

    stage: Stage = Stage.INPUT
    default_code: str = "ERROR"

    def __init__(
        self,
        message: str,
        *,
        position: Optional[SourcePosition] = None,
        source: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.position: Optional[SourcePosition] = position
        self.source: Optional[str] = source
        self.code: str = code or self.default_code

    def to_diagnostic(
        self,
        source: Optional[str] = None,
        severity: Severity = Severity.ERROR,
    ) -> Diagnostic:
        return Diagnostic(
            severity=severity,
            stage=self.stage,
            code=self.code,
            message=self.message,
            source=source if source is not None else self.source,
            line=self.position.line if self.position is not None else None,
            column=self.position.column if self.position is not None else None,
        )

    def __str__(self) -> str:
        if self.position is not None:
            return f"{self.message} (at {self.position})"
        return self.message


class LexError(DdlApiError):
    """Raised by the tokenizer when the input cannot be split into tokens."""

    stage = Stage.LEX
    default_code = "LEX_ERROR"

    def __init__(
        self,
        message: str,
        *,
        position: SourcePosition,
        character: Optional[str] = None,
        source: Optional[str] = None,
    ) -> None:
        super().__init__(message, position=position, source=source)
        self.character: Optional[str] = character


class ParseError(DdlApiError):
    """Raised inside the parser for a malformed statement."""

    stage = Stage.PARSE
    default_code = "PARSE_ERROR"


class ModelError(DdlApiError):
    """Raised inside the model builder for a resolution failure."""

    stage = Stage.MODEL
    default_code = "MODEL_ERROR"

    def __init__(
        self,
        code: str,
        message: str,
        *,
        table: Optional[str] = None,
        position: Optional[SourcePosition] = None,
        source: Optional[str] = None,
    ) -> None:
        super().__init__(message, position=position, source=source, code=code)
        self.table: Optional[str] = table


class InferenceWarning(UserWarning):
    """Category of the non-fatal findings produced by API inference."""

    stage: Stage = Stage.INFERENCE

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code: str = code
        self.message: str = message

    def to_diagnostic(self, source: Optional[str] = None) -> Diagnostic:
        return Diagnostic(
            severity=Severity.WARNING,
            stage=self.stage,
            code=self.code,
            message=self.message,
            source=source,
        )


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "DdlApiError",
    "LexError",
    "ParseError",
    "ModelError",
    "InferenceWarning",
]

logger.debug("ddlapi.errors loaded.")
