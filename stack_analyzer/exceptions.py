"""Custom exceptions for the stack usage analyzer."""


class AnalyzerError(Exception):
    """Base exception for all analyzer errors."""

    def __init__(self, message: str, *, section: str | None = None, offset: int | None = None):
        self.section = section
        self.offset = offset
        context = []
        if section is not None:
            context.append(f"section {section}")
        if offset is not None:
            context.append(f"offset {offset:#x}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class InputReadError(AnalyzerError):
    """Raised when the executable cannot be read from disk."""


class MalformedContainerError(AnalyzerError):
    """Raised when the buffer is not an ELF image or its headers point outside it."""


class UnsupportedContainerError(AnalyzerError):
    """Raised for an unknown ELF class or data encoding."""


class SymbolTableMissingError(AnalyzerError):
    """Raised when the binary has no symbol table (typically stripped)."""


class MissingStackUsageSection(AnalyzerError):
    """Raised when a caller requires .stack_sizes and the binary has none."""


class TruncatedRecordError(AnalyzerError):
    """Raised when a .stack_sizes record runs past the end of the section."""


class StringTableRangeError(AnalyzerError):
    """Raised when a symbol name offset falls outside its string table."""


class BuildError(AnalyzerError):
    """Raised when the cargo build fails."""


class ArtifactNotFoundError(AnalyzerError):
    """Raised when the built executable cannot be located."""
