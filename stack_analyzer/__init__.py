"""Stack-Analyzer: per-function code size and static stack usage from ELF binaries."""

__version__ = "0.1.0"

from stack_analyzer.analyzer import AnalysisOutput, StackAnalyzer, analyze_executable
from stack_analyzer.diagnostics import Diagnostic, DiagnosticKind
from stack_analyzer.elf.container import Container, ContainerInfo
from stack_analyzer.models.records import (
    FunctionReport,
    Qualifier,
    StackUsageRecord,
    SymbolKind,
    SymbolRecord,
)
from stack_analyzer.ordering import order_reports
from stack_analyzer.render import render_json, render_table

__all__ = [
    "AnalysisOutput",
    "Container",
    "ContainerInfo",
    "Diagnostic",
    "DiagnosticKind",
    "FunctionReport",
    "Qualifier",
    "StackAnalyzer",
    "StackUsageRecord",
    "SymbolKind",
    "SymbolRecord",
    "analyze_executable",
    "order_reports",
    "render_json",
    "render_table",
]
