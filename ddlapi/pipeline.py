# File: ddlapi/pipeline.py
"""
ddlapi - Pipeline Orchestrator
===============================
Connects every stage together:

    DDL text → Tokens → Statements → Domain Model → API Descriptor

``SchemaPipeline`` is both the programmatic API and the backend of the CLI.

Workflow::

    1. Parse every input (optionally in a thread pool when
       ``max_workers > 1``); results are merged in input order.
    2. Build one domain model from all statements.
    3. Infer the API descriptor, only when the model has no errors.
    4. Return a ``PipelineResult`` with artifacts, diagnostics and timings.

Error handling strategy:
    - A ``LexError`` aborts only the input it occurred in.
    - Parse errors are recovered statement by statement.
    - Model errors are collected; an invalid model is never handed to
      inference, and the result then has no usable tables.
    - Nothing is printed; the caller decides how to present diagnostics.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ddlapi.ast_nodes import Statement
from ddlapi.builder import DomainModelBuilder
from ddlapi.config import PipelineConfig
from ddlapi.descriptor import ApiDescriptor
from ddlapi.diagnostics import Diagnostic, Diagnostics, Stage
from ddlapi.dialects import DialectGrammar, get_grammar
from ddlapi.errors import LexError
from ddlapi.inference import ApiInferenceEngine
from ddlapi.models import DomainModel, Table
from ddlapi.parser import ParseResult, parse_sql
from ddlapi.utils import Timer, read_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("ddlapi.pipeline")

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS: int = 0
EXIT_MODEL_ERROR: int = 1
EXIT_PARSE_ERROR: int = 2
EXIT_WARNINGS: int = 3
EXIT_INPUT_ERROR: int = 4

Source = Tuple[str, str]


# ---------------------------------------------------------------------------
# Pipeline result
# ---------------------------------------------------------------------------


@dataclass(frozen=False, slots=True)
class PipelineStepMetric:
    """Timing and outcome for a single pipeline step."""

    step_name: str = ""
    success: bool = True
    elapsed_seconds: float = 0.0
    detail: str = ""


@dataclass(frozen=False, slots=True)
class PipelineResult:
    """
    Everything one ``SchemaPipeline.run()`` produced.

    ``descriptor`` is None whenever the model is invalid.
    """

    model: Optional[DomainModel] = None
    descriptor: Optional[ApiDescriptor] = None
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    steps: List[PipelineStepMetric] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    statement_count: int = 0
    elapsed: float = 0.0

    @property
    def usable_tables(self) -> List[Table]:
        """Tables of a valid model; empty when the model has errors."""
        if self.model is None or not self.model.is_valid:
            return []
        return list(self.model.tables)

    @property
    def model_errors(self) -> List[Diagnostic]:
        return self.diagnostics.model_errors

    @property
    def has_input_errors(self) -> bool:
        return any(d.stage == Stage.INPUT.value for d in self.diagnostics.errors)

    @property
    def has_syntax_errors(self) -> bool:
        return any(
            d.stage in (Stage.LEX.value, Stage.PARSE.value) for d in self.diagnostics.errors
        )

    @property
    def success(self) -> bool:
        return not self.diagnostics.has_errors and self.descriptor is not None

    def exit_status(self, fail_on_warnings: bool = False) -> int:
        """
        Process exit code for this result.

        Input errors take precedence over lex/parse errors, which take
        precedence over model errors; warnings only count with
        *fail_on_warnings*.
        """
        if self.has_input_errors:
            return EXIT_INPUT_ERROR
        if self.has_syntax_errors:
            return EXIT_PARSE_ERROR
        if self.diagnostics.has_errors or (self.model is not None and not self.model.is_valid):
            return EXIT_MODEL_ERROR
        if fail_on_warnings and self.diagnostics.has_warnings:
            return EXIT_WARNINGS
        return EXIT_SUCCESS

    def summary(self) -> str:
        """Return a human-readable summary string."""
        lines: List[str] = []
        status: str = "✅ SUCCESS" if self.success else "❌ FAILED"
        lines.append(f"{'=' * 60}")
        lines.append("  ddlapi — Pipeline Report")
        lines.append(f"{'=' * 60}")
        lines.append(f"  Status:      {status}")
        lines.append(f"  Inputs:      {', '.join(self.sources) or '-'}")
        lines.append(f"  Statements:  {self.statement_count}")
        if self.model is not None:
            lines.append(f"  Tables:      {len(self.model.tables)}")
            lines.append(f"  Relations:   {len(self.model.relationships)}")
        if self.descriptor is not None:
            lines.append(f"  Resources:   {len(self.descriptor.resources)}")
        lines.append(f"  {self.diagnostics.summary()}")
        lines.append(f"  Total time:  {self.elapsed:.3f}s")
        lines.append(f"{'─' * 60}")

        if self.steps:
            lines.append("  Pipeline Steps:")
            for step in self.steps:
                icon: str = "✓" if step.success else "✗"
                lines.append(
                    f"    {icon} {step.step_name:<20s} "
                    f"{step.elapsed_seconds:>7.3f}s  "
                    f"{step.detail}"
                )
        lines.append(f"{'=' * 60}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# SchemaPipeline orchestrator
# ---------------------------------------------------------------------------


class SchemaPipeline:
    """
    Runs DDL inputs through parsing, model building and API inference.

    Usage::

        pipeline = SchemaPipeline(PipelineConfig(dialect="mysql"))

        result = pipeline.run_files([Path("schema.sql")])
        result = pipeline.run_text("CREATE TABLE t (id INT PRIMARY KEY);")

        if result.descriptor is not None:
            print(result.descriptor.to_json())
        print(result.summary())

    The pipeline is reusable; every run starts from a clean slate.
    """

    def __init__(self, config: Optional[PipelineConfig] = None) -> None:
        self._config: PipelineConfig = config or PipelineConfig()
        self._grammar: DialectGrammar = get_grammar(self._config.dialect)
        logger.debug(
            "SchemaPipeline initialised: dialect=%s, schema_filter=%s, workers=%d.",
            self._config.dialect,
            self._config.schema_filter,
            self._config.max_workers,
        )

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # -----------------------------------------------------------------
    # Public entry points
    # -----------------------------------------------------------------

    def run_text(self, text: str, source: str = "<input>") -> PipelineResult:
        """Run a single in-memory DDL string."""
        return self.run([(source, text)])

    def run_files(self, paths: Iterable[Union[str, Path]]) -> PipelineResult:
        """
        Read and run DDL files.

        Unreadable files become input-stage error diagnostics and are
        skipped; the remaining files still run.
        """
        diagnostics: Diagnostics = Diagnostics()
        sources: List[Source] = []
        for raw in paths:
            path: Path = Path(raw)
            try:
                sources.append((str(path), read_file(path)))
            except (OSError, UnicodeDecodeError) as exc:
                diagnostics.error(
                    Stage.INPUT,
                    "INPUT_ERROR",
                    f"Cannot read input: {exc}",
                    source=str(path),
                )
                logger.error("Cannot read %s: %s", path, exc)
        return self.run(sources, diagnostics=diagnostics)

    def run(
        self,
        sources: Iterable[Source],
        diagnostics: Optional[Diagnostics] = None,
    ) -> PipelineResult:
        """
        Run ``(name, text)`` inputs as one logical schema.

        Args:
            sources: Inputs in order; later inputs may alter tables of
                earlier ones.
            diagnostics: Optional pre-filled collector (used by run_files).
        """
        pipeline_start: float = time.perf_counter()
        result: PipelineResult = PipelineResult(
            diagnostics=diagnostics if diagnostics is not None else Diagnostics()
        )
        inputs: List[Source] = list(sources)
        result.sources = [name for name, _ in inputs]

        statements: List[Statement] = self._step_parse(inputs, result)
        model: DomainModel = self._step_build(statements, result)
        self._step_infer(model, result)

        result.elapsed = time.perf_counter() - pipeline_start
        logger.info(
            "Pipeline finished in %.3fs: %s.", result.elapsed, result.diagnostics.summary()
        )
        return result

    # -----------------------------------------------------------------
    # Pipeline step: parse
    # -----------------------------------------------------------------

    def _parse_one(self, source: Source) -> Tuple[Optional[ParseResult], Diagnostics]:
        """Parse one input into its own collector (safe to run in a worker thread)."""
        name, text = source
        diagnostics: Diagnostics = Diagnostics()
        try:
            return parse_sql(text, self._grammar, diagnostics, source=name), diagnostics
        except LexError as exc:
            diagnostics.add(exc.to_diagnostic(source=name))
            logger.error("Lexical error in %s: %s", name, exc)
            return None, diagnostics

    def _step_parse(self, inputs: Sequence[Source], result: PipelineResult) -> List[Statement]:
        with Timer("parse") as t:
            if self._config.max_workers > 1 and len(inputs) > 1:
                with ThreadPoolExecutor(max_workers=self._config.max_workers) as pool:
                    parsed: List[Tuple[Optional[ParseResult], Diagnostics]] = list(
                        pool.map(self._parse_one, inputs)
                    )
            else:
                parsed = [self._parse_one(source) for source in inputs]

            statements: List[Statement] = []
            aborted: int = 0
            for parse_result, input_diagnostics in parsed:
                result.diagnostics.merge(input_diagnostics)
                if parse_result is None:
                    aborted += 1
                    continue
                statements.extend(parse_result.statements)

        result.statement_count = len(statements)
        detail: str = f"{len(statements)} statement(s) from {len(inputs)} input(s)"
        if aborted:
            detail += f", {aborted} aborted"
        result.steps.append(PipelineStepMetric(
            step_name="Parse",
            success=not result.has_syntax_errors,
            elapsed_seconds=t.elapsed,
            detail=detail,
        ))
        return statements

    # -----------------------------------------------------------------
    # Pipeline step: build
    # -----------------------------------------------------------------

    def _step_build(self, statements: List[Statement], result: PipelineResult) -> DomainModel:
        with Timer("build_model") as t:
            model: DomainModel = DomainModelBuilder.from_config(self._config).build(
                statements, result.diagnostics
            )
        result.model = model
        result.steps.append(PipelineStepMetric(
            step_name="Build Model",
            success=model.is_valid,
            elapsed_seconds=t.elapsed,
            detail=(
                f"{len(model.tables)} table(s), {len(model.relationships)} relationship(s)"
                if model.is_valid
                else f"{len(model.errors)} model error(s)"
            ),
        ))
        if not model.is_valid:
            logger.error("Model has %d error(s); inference skipped.", len(model.errors))
        return model

    # -----------------------------------------------------------------
    # Pipeline step: infer
    # -----------------------------------------------------------------

    def _step_infer(self, model: DomainModel, result: PipelineResult) -> None:
        if not model.is_valid:
            result.steps.append(PipelineStepMetric(
                step_name="Infer API",
                success=False,
                detail="skipped (invalid model)",
            ))
            return

        with Timer("infer_api") as t:
            descriptor: ApiDescriptor = ApiInferenceEngine(self._config).infer(
                model, result.diagnostics
            )
        result.descriptor = descriptor
        result.steps.append(PipelineStepMetric(
            step_name="Infer API",
            success=True,
            elapsed_seconds=t.elapsed,
            detail=f"{len(descriptor.resources)} resource(s)",
        ))


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "EXIT_SUCCESS",
    "EXIT_MODEL_ERROR",
    "EXIT_PARSE_ERROR",
    "EXIT_WARNINGS",
    "EXIT_INPUT_ERROR",
    "PipelineStepMetric",
    "PipelineResult",
    "SchemaPipeline",
]

logger.debug("ddlapi.pipeline loaded — %d public symbols.", len(__all__))
