"""Shared pytest fixtures for stack analyzer tests."""

import pytest

from stack_analyzer.demangle.base import DemanglerDescriptor
from stack_analyzer.demangle.registry import DemanglerRegistry
from stack_analyzer.demangle.rust import demangle_rust_legacy
from stack_analyzer.diagnostics import DiagnosticLog
from stack_analyzer.testing import ElfBuilder


@pytest.fixture
def diagnostics():
    return DiagnosticLog()


@pytest.fixture
def rust_only_registry():
    """Demangler registry that never shells out to c++filt."""
    registry = DemanglerRegistry()
    registry.register(DemanglerDescriptor(name="rust-legacy", demangle=demangle_rust_legacy))
    return registry


@pytest.fixture(params=[(32, "little"), (32, "big"), (64, "little"), (64, "big")],
                ids=["elf32-le", "elf32-be", "elf64-le", "elf64-be"])
def layout(request):
    """(word_size, byte_order) for every supported container layout."""
    return request.param


@pytest.fixture
def builder(layout):
    word_size, byte_order = layout
    return ElfBuilder(word_size=word_size, byte_order=byte_order)
