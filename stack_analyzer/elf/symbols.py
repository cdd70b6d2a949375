"""Symbol table resolver for function symbols and their code size."""

from __future__ import annotations

import logging
import re
from typing import Iterator

from elftools.common.exceptions import ELFError
from elftools.elf.sections import SymbolTableSection

from stack_analyzer.diagnostics import DiagnosticKind, DiagnosticLog
from stack_analyzer.elf.container import SHN_UNDEF, SHT_STRTAB, SHT_SYMTAB, Container, Section
from stack_analyzer.exceptions import (
    MalformedContainerError,
    StringTableRangeError,
    SymbolTableMissingError,
)
from stack_analyzer.models.records import SymbolKind, SymbolRecord

logger = logging.getLogger(__name__)

# pyelftools names STT_GNU_IFUNC (10) after the first OS-specific value
_CODE_TYPES = {"STT_FUNC", "STT_GNU_IFUNC", "STT_LOOS"}

# ARM/AArch64 mapping symbols delimit code and data inside a function
_MAPPING_SYMBOL_RE = re.compile(rb"^\$[adtx](\.\d+)?$")


def read_string(strtab: bytes, offset: int) -> bytes:
    """Read a NUL-terminated name from a string table."""
    if offset >= len(strtab):
        raise StringTableRangeError(
            f"Name offset {offset} is outside the {len(strtab)}-byte string table",
            offset=offset,
        )
    end = strtab.find(b"\x00", offset)
    if end < 0:
        raise StringTableRangeError("Name is not NUL-terminated", offset=offset)
    return strtab[offset:end]


def is_mapping_symbol(name: bytes) -> bool:
    return _MAPPING_SYMBOL_RE.match(name) is not None


class SymbolResolver:
    """Read function symbols out of .symtab."""

    def resolve(self, container: Container, diagnostics: DiagnosticLog) -> list[SymbolRecord]:
        symtab, strtab = self._locate_tables(container)
        symbols = list(self.iter_functions(container, symtab, strtab, diagnostics))
        logger.debug("Resolved %d function symbols from %s", len(symbols), symtab.name)
        return symbols

    def _locate_tables(self, container: Container) -> tuple[Section, Section]:
        symtab = container.find_section_by_type(SHT_SYMTAB)
        if symtab is None:
            raise SymbolTableMissingError(
                "No symbol table found; the binary appears to be stripped"
            )
        strtab = container.section_at(symtab.link)
        if strtab is None or strtab.type != SHT_STRTAB:
            raise SymbolTableMissingError(
                f"Symbol table links to section {symtab.link}, which is not a string table",
                section=symtab.name,
            )
        return symtab, strtab

    def iter_functions(
        self,
        container: Container,
        symtab: Section,
        strtab: Section,
        diagnostics: DiagnosticLog,
    ) -> Iterator[SymbolRecord]:
        table = container.elf_section(symtab)
        if not isinstance(table, SymbolTableSection):
            raise SymbolTableMissingError(
                f"Section {symtab.name} is not a readable symbol table", section=symtab.name
            )
        min_size = container.elffile.structs.Elf_Sym.sizeof()
        if symtab.entsize < min_size:
            raise MalformedContainerError(
                f"Symbol entry size {symtab.entsize} is smaller than {min_size}",
                section=symtab.name,
                offset=symtab.offset,
            )

        names = container.section_data(strtab)
        try:
            symbols = list(table.iter_symbols())
        except ELFError as e:
            raise MalformedContainerError(
                f"Cannot read symbol table: {e}", section=symtab.name, offset=symtab.offset
            ) from e

        for index, symbol in enumerate(symbols):
            # entry 0 is the reserved null symbol and has type STT_NOTYPE
            if symbol["st_info"]["type"] not in _CODE_TYPES or symbol["st_shndx"] == SHN_UNDEF:
                continue

            address = symbol["st_value"]
            try:
                raw_name = read_string(names, symbol["st_name"])
            except StringTableRangeError as e:
                logger.warning("Skipping symbol %d at %#x: %s", index, address, e)
                diagnostics.add(
                    DiagnosticKind.STRING_TABLE_RANGE,
                    f"Symbol {index} at {address:#x}: {e}",
                    index=index,
                    address=address,
                )
                continue

            if is_mapping_symbol(raw_name):
                continue

            yield SymbolRecord(
                address=address,
                code_size=symbol["st_size"],
                raw_name=raw_name,
                kind=SymbolKind.FUNCTION,
            )
