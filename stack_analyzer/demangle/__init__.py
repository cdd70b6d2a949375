"""Symbol name demangling schemes, tried in priority order."""

from stack_analyzer.demangle.base import DemangleResult, Demangler, DemanglerDescriptor
from stack_analyzer.demangle.registry import DemanglerRegistry, create_default_registry

__all__ = [
    "DemangleResult",
    "Demangler",
    "DemanglerDescriptor",
    "DemanglerRegistry",
    "create_default_registry",
]
