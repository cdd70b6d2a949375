"""Core types for demangling schemes.

A scheme is a plain callable ``bytes -> str | None``: it returns the
display name when it recognizes the raw symbol, or None to let the next
scheme try.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

Demangler = Callable[[bytes], Optional[str]]

# Prefixes that mark a name as mangled by a scheme we know about
MANGLED_PREFIXES: tuple[bytes, ...] = (b"_Z", b"__Z", b"ZN", b"_R")


@dataclass(frozen=True)
class DemanglerDescriptor:
    name: str
    demangle: Demangler
    description: str = ""


@dataclass(frozen=True)
class DemangleResult:
    display_name: str
    scheme: str | None  # None = raw name used verbatim


def looks_mangled(raw_name: bytes) -> bool:
    return raw_name.startswith(MANGLED_PREFIXES)


def raw_display_name(raw_name: bytes) -> str:
    return raw_name.decode("utf-8", errors="replace")
