"""Decode the .stack_sizes section emitted by LLVM.

Each record is a target-word address followed by a ULEB128 stack size:

    +----------------------+-------------------+
    | address (4/8 bytes)  | stack size (LEB)  |
    +----------------------+-------------------+

In the tagged variant the two low bits of the LEB value carry the
qualifier and the remaining bits the stack size.
"""

from __future__ import annotations

import logging
import struct
from typing import Iterable, Iterator

from stack_analyzer.diagnostics import DiagnosticKind, DiagnosticLog
from stack_analyzer.elf.container import Container
from stack_analyzer.exceptions import TruncatedRecordError
from stack_analyzer.models.records import Qualifier, StackUsageRecord

logger = logging.getLogger(__name__)

STACK_SIZES_SECTION = ".stack_sizes"

# 64-bit values need at most ceil(64 / 7) bytes
MAX_ULEB128_BYTES = 10

_TAG_BITS = 2
_TAG_MASK = (1 << _TAG_BITS) - 1
_QUALIFIER_TAGS: dict[int, Qualifier] = {
    0: Qualifier.STATIC,
    1: Qualifier.BOUNDED_DYNAMIC,
    2: Qualifier.UNBOUNDED_DYNAMIC,
}
_TAGS_BY_QUALIFIER = {q: tag for tag, q in _QUALIFIER_TAGS.items()}


def read_uleb128(data: bytes, offset: int, end: int | None = None) -> tuple[int, int]:
    """Read one ULEB128 value starting at offset.

    Returns:
        (value, offset just past the value)
    """
    if end is None:
        end = len(data)
    value = 0
    shift = 0
    pos = offset
    while True:
        if pos >= end:
            raise TruncatedRecordError("LEB128 value runs past the end of the section", offset=offset)
        if pos - offset >= MAX_ULEB128_BYTES:
            raise TruncatedRecordError("LEB128 value exceeds 64 bits", offset=offset)
        byte = data[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, pos
        shift += 7


def encode_uleb128(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"ULEB128 cannot encode negative value {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _address_format(word_size: int, byte_order: str) -> str:
    return ("<" if byte_order == "little" else ">") + ("I" if word_size == 32 else "Q")


def decode_stack_sizes(
    data: bytes,
    word_size: int,
    byte_order: str,
    tagged: bool = False,
    diagnostics: DiagnosticLog | None = None,
) -> Iterator[StackUsageRecord]:
    """Lazily decode records in encounter order.

    Raises TruncatedRecordError when a record crosses the end of data;
    records yielded before that point remain valid.
    """
    fmt = _address_format(word_size, byte_order)
    address_size = struct.calcsize(fmt)
    end = len(data)
    pos = 0
    while pos < end:
        if pos + address_size > end:
            raise TruncatedRecordError(
                f"Address needs {address_size} bytes, {end - pos} left",
                section=STACK_SIZES_SECTION,
                offset=pos,
            )
        (address,) = struct.unpack_from(fmt, data, pos)
        try:
            value, pos = read_uleb128(data, pos + address_size, end)
        except TruncatedRecordError as e:
            raise TruncatedRecordError(
                f"Stack size for {address:#x} is truncated",
                section=STACK_SIZES_SECTION,
                offset=e.offset,
            ) from e

        qualifier = Qualifier.STATIC
        if tagged:
            tag = value & _TAG_MASK
            value >>= _TAG_BITS
            qualifier = _QUALIFIER_TAGS.get(tag, Qualifier.UNBOUNDED_DYNAMIC)
            if tag not in _QUALIFIER_TAGS and diagnostics is not None:
                diagnostics.add(
                    DiagnosticKind.MALFORMED_RECORD,
                    f"Unknown qualifier tag {tag} for {address:#x}, assuming unbounded",
                    address=address,
                )
        yield StackUsageRecord(address=address, stack_bytes=value, qualifier=qualifier)


def encode_stack_sizes(
    records: Iterable[StackUsageRecord],
    word_size: int,
    byte_order: str,
    tagged: bool = False,
) -> bytes:
    """Inverse of decode_stack_sizes."""
    fmt = _address_format(word_size, byte_order)
    out = bytearray()
    for record in records:
        value = record.stack_bytes
        if tagged:
            value = (value << _TAG_BITS) | _TAGS_BY_QUALIFIER[record.qualifier]
        out += struct.pack(fmt, record.address)
        out += encode_uleb128(value)
    return bytes(out)


class StackUsageExtractor:
    """Locate .stack_sizes in a container and stream its records."""

    def __init__(self, tagged: bool = False, section_name: str = STACK_SIZES_SECTION) -> None:
        self.tagged = tagged
        self.section_name = section_name

    def extract(self, container: Container, diagnostics: DiagnosticLog) -> Iterator[StackUsageRecord]:
        section = container.find_section(self.section_name)
        if section is None:
            logger.warning("No %s section found; the report will be empty", self.section_name)
            diagnostics.add(
                DiagnosticKind.MISSING_STACK_USAGE_SECTION,
                f"No {self.section_name} section in the binary; "
                "was it built with -Z emit-stack-sizes?",
            )
            return

        data = container.section_data(section)
        info = container.info
        decoded = 0
        try:
            for record in decode_stack_sizes(
                data, info.word_size, info.byte_order, self.tagged, diagnostics
            ):
                decoded += 1
                yield record
        except TruncatedRecordError as e:
            file_offset = section.offset + (e.offset or 0)
            logger.warning(
                "Truncated %s record at file offset %#x after %d records",
                self.section_name,
                file_offset,
                decoded,
            )
            diagnostics.add(
                DiagnosticKind.TRUNCATED_RECORD,
                f"{e}; kept {decoded} records decoded before it",
                offset=file_offset,
                decoded=decoded,
            )
            return

        logger.debug("Decoded %d records from %s", decoded, self.section_name)
