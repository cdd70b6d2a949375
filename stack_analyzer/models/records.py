"""Record types flowing through the analysis pipeline.

All records are created once per run and never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Qualifier(Enum):
    """Whether the compiler could statically bound the frame."""

    STATIC = "static"
    BOUNDED_DYNAMIC = "bounded-dynamic"
    UNBOUNDED_DYNAMIC = "unbounded-dynamic"


class SymbolKind(Enum):
    FUNCTION = "function"
    OTHER = "other"


@dataclass(frozen=True)
class StackUsageRecord:
    """One entry decoded from the .stack_sizes section."""

    address: int
    stack_bytes: int
    qualifier: Qualifier = Qualifier.STATIC


@dataclass(frozen=True)
class SymbolRecord:
    """A symbol table entry that describes code."""

    address: int
    code_size: int
    raw_name: bytes
    kind: SymbolKind = SymbolKind.FUNCTION


@dataclass(frozen=True)
class FunctionReport:
    """
    A function with both a symbol and stack usage metadata.
    Renderer-agnostic: the table and JSON renderers both consume this.
    """

    display_name: str
    code_size: int
    stack_size: int
    qualifier: Qualifier = Qualifier.STATIC
    address: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.display_name,
            "address": self.address,
            "code_size": self.code_size,
            "stack_size": self.stack_size,
            "qualifier": self.qualifier.value,
        }
