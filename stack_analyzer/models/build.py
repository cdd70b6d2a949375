"""Data models for the cargo build step."""

from __future__ import annotations

from dataclasses import dataclass

from stack_analyzer.exceptions import BuildError


@dataclass
class CargoBuildConfig:
    """What to build; mirrors the cargo flags exposed on the CLI."""

    project_dir: str = "."
    bin: str | None = None
    example: str | None = None
    features: str | None = None
    all_features: bool = False

    def validate(self) -> None:
        if bool(self.bin) == bool(self.example):
            raise BuildError("Please specify either --example <NAME> or --bin <NAME>.")

    @property
    def kind(self) -> str:
        return "example" if self.example else "bin"

    @property
    def artifact_name(self) -> str:
        return self.example or self.bin or ""


@dataclass
class BuildResult:
    """Outcome of a successful cargo build."""

    kind: str  # "bin" | "example"
    name: str
    target: str  # target triple the artifact was built for
    host: str  # host triple reported by rustc
    project_dir: str = "."
