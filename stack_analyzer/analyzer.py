"""Stack usage analysis pipeline.

    buffer -> Container -> {.stack_sizes records, function symbols}
           -> RecordMerger -> filter/sort -> AnalysisOutput

Every stage works on the in-memory image; fatal errors propagate, and
non-fatal conditions are collected as diagnostics.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from stack_analyzer.demangle.registry import DemanglerRegistry, create_default_registry
from stack_analyzer.diagnostics import Diagnostic, DiagnosticKind, DiagnosticLog
from stack_analyzer.elf.container import EM_ARM, Container, ContainerInfo
from stack_analyzer.elf.stack_sizes import StackUsageExtractor
from stack_analyzer.elf.symbols import SymbolResolver
from stack_analyzer.exceptions import InputReadError, MissingStackUsageSection
from stack_analyzer.merger import RecordMerger
from stack_analyzer.models.records import FunctionReport
from stack_analyzer.ordering import order_reports

logger = logging.getLogger(__name__)


@dataclass
class AnalysisOutput:
    """Analyzer return value."""

    reports: list[FunctionReport]
    container: ContainerInfo
    diagnostics: list[Diagnostic] = field(default_factory=list)
    stack_record_count: int = 0
    symbol_count: int = 0

    @property
    def warnings(self) -> list[str]:
        return [str(d) for d in self.diagnostics]


class StackAnalyzer:
    """
    Analyze one executable image.

    Args:
        demanglers: Scheme registry; defaults to Rust legacy then c++filt.
        tagged: Decode .stack_sizes values with qualifier tag bits.
        require_stack_sizes: Treat a missing .stack_sizes section as fatal.
    """

    def __init__(
        self,
        demanglers: DemanglerRegistry | None = None,
        tagged: bool = False,
        require_stack_sizes: bool = False,
    ) -> None:
        self.demanglers = demanglers if demanglers is not None else create_default_registry()
        self.extractor = StackUsageExtractor(tagged=tagged)
        self.resolver = SymbolResolver()
        self.require_stack_sizes = require_stack_sizes

    def analyze_file(self, path: str | Path, min_stack: int = 0) -> AnalysisOutput:
        try:
            buffer = Path(path).read_bytes()
        except OSError as e:
            raise InputReadError(f"Cannot read {path}: {e.strerror or e}") from e
        logger.info("Analyzing %s (%d bytes)", path, len(buffer))
        return self.analyze(buffer, min_stack=min_stack)

    def analyze(self, buffer: bytes, min_stack: int = 0) -> AnalysisOutput:
        if min_stack < 0:
            raise ValueError(f"min_stack must be non-negative, got {min_stack}")

        diagnostics = DiagnosticLog()
        container = Container.parse(buffer)

        # symbols first: a stripped binary is fatal and should fail fast
        symbols = self.resolver.resolve(container, diagnostics)
        stack_records = list(self.extractor.extract(container, diagnostics))

        if self.require_stack_sizes and diagnostics.of_kind(
            DiagnosticKind.MISSING_STACK_USAGE_SECTION
        ):
            raise MissingStackUsageSection(
                "Binary has no stack usage metadata",
                section=self.extractor.section_name,
            )

        merger = RecordMerger(self.demanglers, thumb=container.info.machine == EM_ARM)
        reports = merger.merge(stack_records, symbols, diagnostics)
        ordered = order_reports(reports, min_stack)

        logger.info(
            "%d stack records, %d function symbols, %d matched, %d reported (min_stack=%d)",
            len(stack_records),
            len(symbols),
            len(reports),
            len(ordered),
            min_stack,
        )
        return AnalysisOutput(
            reports=ordered,
            container=container.info,
            diagnostics=diagnostics.to_list(),
            stack_record_count=len(stack_records),
            symbol_count=len(symbols),
        )


def analyze_executable(buffer: bytes, min_stack: int = 0, **kwargs) -> AnalysisOutput:
    """Convenience wrapper around StackAnalyzer(**kwargs).analyze()."""
    return StackAnalyzer(**kwargs).analyze(buffer, min_stack=min_stack)
