"""ELF container reader built on pyelftools.

The identification bytes are checked up front so that foreign and
unsupported images fail with our own errors. Everything past them is read
through ``ELFFile``. Sections are held in an immutable tuple and looked up
by linear scan.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from elftools.common.exceptions import ELFError
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import Section as ELFSection

from stack_analyzer.exceptions import MalformedContainerError, UnsupportedContainerError

logger = logging.getLogger(__name__)

ELF_MAGIC = b"\x7fELF"
EI_NIDENT = 16

ELFCLASS32 = 1
ELFCLASS64 = 2
ELFDATA2LSB = 1
ELFDATA2MSB = 2

# pyelftools reports enumerated header fields by name
EM_ARM = "EM_ARM"
SHT_NULL = "SHT_NULL"
SHT_SYMTAB = "SHT_SYMTAB"
SHT_STRTAB = "SHT_STRTAB"
SHT_NOBITS = "SHT_NOBITS"
SHN_UNDEF = "SHN_UNDEF"

_CLASSES = {ELFCLASS32: 32, ELFCLASS64: 64}
_ENCODINGS = {ELFDATA2LSB: "little", ELFDATA2MSB: "big"}
# whole file header, e_ident included
_HEADER_SIZES = {32: 52, 64: 64}


@dataclass(frozen=True)
class ContainerInfo:
    """Layout facts derived from the ELF file header."""

    word_size: int  # 32 | 64
    byte_order: str  # "little" | "big"
    machine: str | int  # e.g. "EM_ARM"; raw number when pyelftools has no name
    shoff: int  # section header table offset
    shentsize: int
    shnum: int  # extended numbering already resolved
    shstrndx: int  # index of the section-name string table

    @property
    def struct_prefix(self) -> str:
        return "<" if self.byte_order == "little" else ">"

    @property
    def address_size(self) -> int:
        return self.word_size // 8


@dataclass(frozen=True)
class Section:
    index: int
    name: str
    type: str | int
    address: int
    offset: int
    size: int
    link: int
    entsize: int


class Container:
    """A parsed ELF image: the pyelftools file plus its section table."""

    def __init__(
        self,
        elffile: ELFFile,
        info: ContainerInfo,
        sections: tuple[Section, ...],
        elf_sections: tuple[ELFSection, ...],
    ) -> None:
        self.elffile = elffile
        self.info = info
        self.sections = sections
        self._elf_sections = elf_sections

    @classmethod
    def parse(cls, buffer: bytes) -> Container:
        buffer = bytes(buffer)
        elffile, info = open_elf(buffer)
        _check_section_table(elffile, info, len(buffer))
        sections, elf_sections = _read_sections(elffile, info, len(buffer))
        logger.debug(
            "Parsed ELF%d %s-endian image: %d sections, machine=%s",
            info.word_size,
            info.byte_order,
            len(sections),
            info.machine,
        )
        return cls(elffile, info, sections, elf_sections)

    def find_section(self, name: str) -> Section | None:
        for section in self.sections:
            if section.name == name:
                return section
        return None

    def find_section_by_type(self, section_type: str | int) -> Section | None:
        for section in self.sections:
            if section.type == section_type:
                return section
        return None

    def section_at(self, index: int) -> Section | None:
        if 0 <= index < len(self.sections):
            return self.sections[index]
        return None

    def elf_section(self, section: Section) -> ELFSection:
        return self._elf_sections[section.index]

    def section_data(self, section: Section) -> bytes:
        if section.type == SHT_NOBITS:
            return b""
        try:
            return self.elf_section(section).data()
        except ELFError as e:
            raise MalformedContainerError(
                f"Cannot read section data: {e}", section=section.name, offset=section.offset
            ) from e


def check_identification(buffer: bytes) -> tuple[int, str]:
    """Validate magic, class and data encoding; return (word_size, byte_order)."""
    if len(buffer) < EI_NIDENT or buffer[:4] != ELF_MAGIC:
        raise MalformedContainerError("Not an ELF image: bad magic", offset=0)

    word_size = _CLASSES.get(buffer[4])
    if word_size is None:
        raise UnsupportedContainerError(f"Unsupported ELF class {buffer[4]}", offset=4)
    byte_order = _ENCODINGS.get(buffer[5])
    if byte_order is None:
        raise UnsupportedContainerError(f"Unsupported ELF data encoding {buffer[5]}", offset=5)

    if len(buffer) < _HEADER_SIZES[word_size]:
        raise MalformedContainerError("ELF header is truncated", offset=EI_NIDENT)
    return word_size, byte_order


def open_elf(buffer: bytes) -> tuple[ELFFile, ContainerInfo]:
    word_size, byte_order = check_identification(buffer)
    try:
        elffile = ELFFile(io.BytesIO(buffer))
        info = ContainerInfo(
            word_size=word_size,
            byte_order=byte_order,
            machine=elffile["e_machine"],
            shoff=elffile["e_shoff"],
            shentsize=elffile["e_shentsize"],
            shnum=elffile.num_sections(),
            shstrndx=elffile.get_shstrndx(),
        )
    except ELFError as e:
        raise MalformedContainerError(f"Cannot parse ELF header: {e}", offset=0) from e
    return elffile, info


def read_container_info(buffer: bytes) -> ContainerInfo:
    """Validate the identification bytes and decode the file header."""
    return open_elf(bytes(buffer))[1]


def _check_section_table(elffile: ELFFile, info: ContainerInfo, image_size: int) -> None:
    if info.shnum == 0:
        return

    expected = elffile.structs.Elf_Shdr.sizeof()
    if info.shentsize < expected:
        raise MalformedContainerError(
            f"Section header entry size {info.shentsize} is smaller than {expected}",
            offset=info.shoff,
        )
    if info.shoff + info.shnum * info.shentsize > image_size:
        raise MalformedContainerError(
            f"Section header table ({info.shnum} entries) lies outside the image",
            offset=info.shoff,
        )


def _read_sections(
    elffile: ELFFile, info: ContainerInfo, image_size: int
) -> tuple[tuple[Section, ...], tuple[ELFSection, ...]]:
    sections = []
    elf_sections = []
    for index in range(info.shnum):
        try:
            elf_section = elffile.get_section(index)
        except ELFError as e:
            raise MalformedContainerError(
                f"Cannot read section header {index}: {e}",
                offset=info.shoff + index * info.shentsize,
            ) from e

        header = elf_section.header
        if (
            header["sh_type"] not in (SHT_NULL, SHT_NOBITS)
            and header["sh_offset"] + header["sh_size"] > image_size
        ):
            raise MalformedContainerError(
                f"Section {index} ({header['sh_size']} bytes) extends past the end of the image",
                section=elf_section.name,
                offset=header["sh_offset"],
            )

        sections.append(
            Section(
                index=index,
                name=elf_section.name,
                type=header["sh_type"],
                address=header["sh_addr"],
                offset=header["sh_offset"],
                size=header["sh_size"],
                link=header["sh_link"],
                entsize=header["sh_entsize"],
            )
        )
        elf_sections.append(elf_section)
    return tuple(sections), tuple(elf_sections)
