"""Join stack usage records with function symbols by address."""

from __future__ import annotations

import logging
from typing import Iterable

from stack_analyzer.demangle.base import looks_mangled
from stack_analyzer.demangle.registry import DemanglerRegistry
from stack_analyzer.diagnostics import DiagnosticKind, DiagnosticLog
from stack_analyzer.models.records import FunctionReport, StackUsageRecord, SymbolRecord

logger = logging.getLogger(__name__)


class RecordMerger:
    """
    Index symbols by address, then stream stack usage records through
    the index. At most one report per symbol address; later entries win.
    """

    def __init__(self, demanglers: DemanglerRegistry, thumb: bool = False) -> None:
        self.demanglers = demanglers
        # ARM: function symbols carry the Thumb bit, .stack_sizes may not
        self.thumb = thumb

    def index_symbols(
        self, symbols: Iterable[SymbolRecord], diagnostics: DiagnosticLog
    ) -> dict[int, SymbolRecord]:
        index: dict[int, SymbolRecord] = {}
        for symbol in symbols:
            previous = index.get(symbol.address)
            if previous is not None:
                diagnostics.add(
                    DiagnosticKind.DUPLICATE_ADDRESS,
                    f"Symbols {previous.raw_name!r} ({previous.code_size} bytes) and "
                    f"{symbol.raw_name!r} ({symbol.code_size} bytes) share "
                    f"address {symbol.address:#x}; keeping the latter",
                    address=symbol.address,
                )
            index[symbol.address] = symbol
        return index

    def merge(
        self,
        stack_records: Iterable[StackUsageRecord],
        symbols: Iterable[SymbolRecord],
        diagnostics: DiagnosticLog,
    ) -> list[FunctionReport]:
        index = self.index_symbols(symbols, diagnostics)

        matched: dict[int, tuple[SymbolRecord, StackUsageRecord]] = {}
        unmatched = 0
        for record in stack_records:
            symbol = self._lookup(index, record.address)
            if symbol is None:
                unmatched += 1
                diagnostics.add(
                    DiagnosticKind.UNMATCHED_STACK_RECORD,
                    f"No function symbol at {record.address:#x} "
                    f"({record.stack_bytes} bytes of stack); dropped",
                    address=record.address,
                )
                continue
            if symbol.address in matched:
                diagnostics.add(
                    DiagnosticKind.DUPLICATE_ADDRESS,
                    f"Multiple stack usage records for {symbol.address:#x}; keeping the latter",
                    address=symbol.address,
                )
            matched[symbol.address] = (symbol, record)

        if unmatched:
            logger.info("Dropped %d stack usage records without a function symbol", unmatched)

        self.demanglers.prime(symbol.raw_name for symbol, _ in matched.values())
        return [self._report(symbol, record, diagnostics) for symbol, record in matched.values()]

    def _lookup(self, index: dict[int, SymbolRecord], address: int) -> SymbolRecord | None:
        symbol = index.get(address)
        if symbol is None and self.thumb:
            symbol = index.get(address | 1) or index.get(address & ~1)
        return symbol

    def _report(
        self, symbol: SymbolRecord, record: StackUsageRecord, diagnostics: DiagnosticLog
    ) -> FunctionReport:
        result = self.demanglers.demangle(symbol.raw_name)
        if result.scheme is None and looks_mangled(symbol.raw_name):
            diagnostics.add(
                DiagnosticKind.DEMANGLE_FALLBACK,
                f"Could not demangle {result.display_name}; using the raw name",
                address=symbol.address,
            )
        display_name = result.display_name or f"<unnamed@{symbol.address:#x}>"
        return FunctionReport(
            display_name=display_name,
            code_size=symbol.code_size,
            stack_size=record.stack_bytes,
            qualifier=record.qualifier,
            address=symbol.address,
        )
