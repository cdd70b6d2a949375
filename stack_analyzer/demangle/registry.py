"""Demangler registry: ordered scheme list, first success wins."""

from __future__ import annotations

import logging
from typing import Iterable

from stack_analyzer.demangle.base import (
    DemangleResult,
    DemanglerDescriptor,
    raw_display_name,
)

logger = logging.getLogger(__name__)


class DemanglerRegistry:
    """Schemes in priority order (registration order)."""

    def __init__(self) -> None:
        self._schemes: list[DemanglerDescriptor] = []

    def register(self, descriptor: DemanglerDescriptor) -> None:
        if self.get(descriptor.name) is not None:
            raise ValueError(f"Demangler '{descriptor.name}' is already registered")
        self._schemes.append(descriptor)
        logger.debug("Registered demangler: %s", descriptor.name)

    def get(self, name: str) -> DemanglerDescriptor | None:
        for descriptor in self._schemes:
            if descriptor.name == name:
                return descriptor
        return None

    def list_all(self) -> list[DemanglerDescriptor]:
        return list(self._schemes)

    def prime(self, raw_names: Iterable[bytes]) -> None:
        """Let batch-capable schemes process all names up front."""
        raw_names = list(raw_names)
        for descriptor in self._schemes:
            prime = getattr(descriptor.demangle, "prime", None)
            if prime is not None:
                prime(raw_names)

    def demangle(self, raw_name: bytes) -> DemangleResult:
        for descriptor in self._schemes:
            try:
                display = descriptor.demangle(raw_name)
            except Exception:
                # a buggy scheme only affects presentation
                logger.debug("Demangler %s raised on %r", descriptor.name, raw_name, exc_info=True)
                continue
            if display:
                return DemangleResult(display_name=display, scheme=descriptor.name)
        return DemangleResult(display_name=raw_display_name(raw_name), scheme=None)


def create_default_registry() -> DemanglerRegistry:
    """Rust legacy first, then c++filt for everything else."""
    from stack_analyzer.demangle.itanium import CxxFiltDemangler
    from stack_analyzer.demangle.rust import demangle_rust_legacy

    registry = DemanglerRegistry()
    registry.register(
        DemanglerDescriptor(
            name="rust-legacy",
            demangle=demangle_rust_legacy,
            description="Rust legacy (_ZN...E) mangling",
        )
    )
    registry.register(
        DemanglerDescriptor(
            name="c++filt",
            demangle=CxxFiltDemangler(),
            description="Itanium C++ ABI / Rust v0 via binutils",
        )
    )
    return registry
