"""Non-fatal conditions collected alongside a (possibly partial) result."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class DiagnosticKind(Enum):
    MISSING_STACK_USAGE_SECTION = "missing_stack_usage_section"
    TRUNCATED_RECORD = "truncated_record"
    MALFORMED_RECORD = "malformed_record"
    STRING_TABLE_RANGE = "string_table_range"
    DUPLICATE_ADDRESS = "duplicate_address"
    UNMATCHED_STACK_RECORD = "unmatched_stack_record"
    DEMANGLE_FALLBACK = "demangle_fallback"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class DiagnosticLog:
    """Ordered collection of diagnostics for a single analysis run."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def add(self, kind: DiagnosticKind, message: str, **context: Any) -> Diagnostic:
        diag = Diagnostic(kind=kind, message=message, context=context)
        self._items.append(diag)
        logger.debug("Diagnostic %s: %s", kind.value, message)
        return diag

    def of_kind(self, kind: DiagnosticKind) -> list[Diagnostic]:
        return [d for d in self._items if d.kind is kind]

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def to_list(self) -> list[Diagnostic]:
        return list(self._items)
