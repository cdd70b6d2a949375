"""Test helpers to build small synthetic ELF images in memory.

Usage::

    from stack_analyzer.testing import ElfBuilder

    elf = ElfBuilder(word_size=32, byte_order="big")
    elf.add_function(b"foo", address=0x100, size=16)
    elf.add_stack_sizes([StackUsageRecord(0x100, 48)])
    image = elf.build()
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable

from stack_analyzer.elf.container import ELF_MAGIC
from stack_analyzer.elf.stack_sizes import STACK_SIZES_SECTION, encode_stack_sizes
from stack_analyzer.models.records import StackUsageRecord

# Raw numbers as written to disk; the reader sees these through pyelftools names.
SHT_NULL = 0
SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3

STT_NOTYPE = 0
STT_OBJECT = 1
STT_FUNC = 2
STT_SECTION = 3
STT_GNU_IFUNC = 10
STB_GLOBAL = 1

EM_ARM = 40
EM_X86_64 = 62
SHN_XINDEX = 0xFFFF

_HEADER_FORMATS = {32: "HHIIIIIHHHHHH", 64: "HHIQQQIHHHHHH"}
_SECTION_FORMATS = {32: "IIIIIIIIII", 64: "IIQQQQIIQQ"}
_SYMBOL_FORMATS = {32: "IIIBBH", 64: "IBBHQQ"}


@dataclass
class _Section:
    name: str
    type: int
    data: bytes
    link: int = 0
    info: int = 0
    entsize: int = 0


@dataclass
class _Symbol:
    name: bytes
    value: int
    size: int
    type: int
    shndx: int
    name_offset: int | None = None


class ElfBuilder:
    """Assemble an ELF image with a .text placeholder, optional extra
    sections, a symbol table and a section-name string table."""

    TEXT_INDEX = 1

    def __init__(self, word_size: int = 64, byte_order: str = "little", machine: int = EM_X86_64) -> None:
        self.word_size = word_size
        self.byte_order = byte_order
        self.machine = machine
        self._extra: list[_Section] = []
        self._symbols: list[_Symbol] = []

    @property
    def _prefix(self) -> str:
        return "<" if self.byte_order == "little" else ">"

    def add_section(self, name: str, data: bytes, section_type: int = SHT_PROGBITS) -> None:
        self._extra.append(_Section(name=name, type=section_type, data=data))

    def add_stack_sizes(self, records: Iterable[StackUsageRecord], tagged: bool = False) -> bytes:
        data = encode_stack_sizes(records, self.word_size, self.byte_order, tagged=tagged)
        self.add_section(STACK_SIZES_SECTION, data)
        return data

    def add_symbol(
        self,
        name: bytes,
        value: int,
        size: int,
        symbol_type: int,
        shndx: int = TEXT_INDEX,
        name_offset: int | None = None,
    ) -> None:
        self._symbols.append(_Symbol(name, value, size, symbol_type, shndx, name_offset))

    def add_function(self, name: bytes, address: int, size: int) -> None:
        self.add_symbol(name, address, size, STT_FUNC)

    def build(self, include_symtab: bool = True) -> bytes:
        sections = [
            _Section(name="", type=SHT_NULL, data=b""),
            _Section(name=".text", type=SHT_PROGBITS, data=b"\x00" * 16),
        ]
        sections.extend(self._extra)
        if include_symtab:
            symtab_index = len(sections)
            strtab, symtab = self._symbol_tables()
            sections.append(
                _Section(
                    name=".symtab",
                    type=SHT_SYMTAB,
                    data=symtab,
                    link=symtab_index + 1,
                    info=1,
                    entsize=struct.calcsize(_SYMBOL_FORMATS[self.word_size]),
                )
            )
            sections.append(_Section(name=".strtab", type=SHT_STRTAB, data=strtab))

        shstrtab = bytearray(b"\x00")
        name_offsets = []
        for section in sections + [_Section(name=".shstrtab", type=SHT_STRTAB, data=b"")]:
            if section.name:
                name_offsets.append(len(shstrtab))
                shstrtab += section.name.encode() + b"\x00"
            else:
                name_offsets.append(0)
        sections.append(_Section(name=".shstrtab", type=SHT_STRTAB, data=bytes(shstrtab)))

        header_size = 16 + struct.calcsize(self._prefix + _HEADER_FORMATS[self.word_size])
        body = bytearray()
        offsets = []
        for section in sections:
            offsets.append(header_size + len(body) if section.data else 0)
            body += section.data

        shoff = header_size + len(body)
        shentsize = struct.calcsize(self._prefix + _SECTION_FORMATS[self.word_size])
        table = bytearray()
        for section, name_offset, offset in zip(sections, name_offsets, offsets):
            table += struct.pack(
                self._prefix + _SECTION_FORMATS[self.word_size],
                name_offset,
                section.type,
                0,
                0,
                offset,
                len(section.data),
                section.link,
                section.info,
                1,
                section.entsize,
            )

        header = self._ident() + struct.pack(
            self._prefix + _HEADER_FORMATS[self.word_size],
            2,  # ET_EXEC
            self.machine,
            1,
            0,
            0,
            shoff,
            0,
            header_size,
            0,
            0,
            shentsize,
            len(sections),
            len(sections) - 1,
        )
        return bytes(header) + bytes(body) + bytes(table)

    def _ident(self) -> bytes:
        elf_class = 1 if self.word_size == 32 else 2
        data = 1 if self.byte_order == "little" else 2
        return ELF_MAGIC + bytes([elf_class, data, 1, 0]) + b"\x00" * 8

    def _symbol_tables(self) -> tuple[bytes, bytes]:
        fmt = self._prefix + _SYMBOL_FORMATS[self.word_size]
        strtab = bytearray(b"\x00")
        symtab = bytearray(struct.calcsize(fmt))  # null symbol
        for sym in self._symbols:
            if sym.name_offset is None:
                name_offset = len(strtab)
                strtab += sym.name + b"\x00"
            else:
                name_offset = sym.name_offset
            st_info = (STB_GLOBAL << 4) | sym.type
            if self.word_size == 32:
                symtab += struct.pack(fmt, name_offset, sym.value, sym.size, st_info, 0, sym.shndx)
            else:
                symtab += struct.pack(fmt, name_offset, st_info, 0, sym.shndx, sym.value, sym.size)
        return bytes(strtab), bytes(symtab)
