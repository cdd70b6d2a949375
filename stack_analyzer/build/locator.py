"""Locate the ELF produced by a cargo release build."""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path

from stack_analyzer.exceptions import ArtifactNotFoundError
from stack_analyzer.models.build import BuildResult

logger = logging.getLogger(__name__)


class ArtifactLocator:
    """Find the built executable for a BuildResult."""

    def __init__(self, cargo: str = "cargo") -> None:
        self.cargo = cargo

    def target_directory(self, project_dir: str) -> Path:
        """Ask cargo for the target directory; fall back to <project>/target."""
        try:
            proc = subprocess.run(
                [self.cargo, "metadata", "--format-version", "1", "--no-deps"],
                cwd=project_dir,
                capture_output=True,
                text=True,
                check=True,
            )
            return Path(json.loads(proc.stdout)["target_directory"])
        except (OSError, subprocess.CalledProcessError, ValueError, KeyError) as e:
            logger.debug("cargo metadata unavailable (%s), assuming ./target", e)
            return Path(project_dir).resolve() / "target"

    @staticmethod
    def expected_path(result: BuildResult, target_dir: Path) -> Path:
        """
        Search order:
          <target_dir>/[<triple>/]release/[examples/]<name>[.exe]
        The triple directory only exists for cross builds.
        """
        path = target_dir
        if result.target != result.host:
            path = path / result.target
        path = path / "release"
        if result.kind == "example":
            path = path / "examples"
        name = result.name
        if "windows" in result.target:
            name += ".exe"
        return path / name

    @staticmethod
    def workspace_fallback(path: Path) -> Path | None:
        """Drop the directory just above 'target' (member crate -> workspace root)."""
        parts = list(path.parts)
        if "target" not in parts:
            return None
        index = len(parts) - 1 - parts[::-1].index("target")
        if index == 0:
            return None
        del parts[index - 1]
        return Path(*parts)

    def locate(
        self,
        result: BuildResult,
        project_dir: str = ".",
        out_override: str | None = None,
    ) -> Path:
        if out_override:
            path = Path(out_override)
            if not path.is_file():
                raise ArtifactNotFoundError(f"Override path {path} does not exist")
            return path

        path = self.expected_path(result, self.target_directory(project_dir))
        if path.is_file():
            logger.info("Found artifact: %s", path)
            return path

        fallback = self.workspace_fallback(path)
        if fallback is not None and fallback.is_file():
            logger.info("Found artifact (workspace fallback): %s", fallback)
            return fallback

        raise ArtifactNotFoundError(
            f"Built {result.kind} '{result.name}' not found at {path}; "
            "use --out-override to point at the ELF"
        )
